"""
Single-page layout of the gas detector calibration certificate.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from .layout import (
    FONT_BOLD, FONT_REGULAR, PAGE_HEIGHT, PAGE_WIDTH, TITLE_COLOR,
    FieldBlock, FieldSpec, PageDescription, RenderReport, TableSpec,
    as_rows, attribute, draw_fields, draw_table_header, draw_table_row,
    format_cell, format_date
)

logger = logging.getLogger(__name__)

MARGIN = 10

LOGO_BOX = (MARGIN, MARGIN, 175, 50)

TITLE = "CALIBRATION CERTIFICATE"
TITLE_TOP = 100
TITLE_LEFT = 50
TITLE_WIDTH = PAGE_WIDTH - 2 * TITLE_LEFT

CERTIFICATE_FIELDS = (
    FieldSpec("certificate_no", "Certificate No."),
    FieldSpec("customer_name", "Customer Name"),
    FieldSpec("site_location", "Site Location"),
    FieldSpec("make_model", "Make & Model"),
    FieldSpec("range", "Range", extra_space=20),
    FieldSpec("serial_no", "Serial No."),
    FieldSpec("calibration_gas", "Calibration Gas"),
    FieldSpec("gas_canister_details", "Gas Canister Details", extra_space=40),
    FieldSpec("date_of_calibration", "Date of Calibration", formatter=format_date),
    FieldSpec("calibration_due_date", "Calibration Due Date", formatter=format_date),
    FieldSpec("status", "Status"),
)

FIELD_BLOCK = FieldBlock(label_x=20, value_x=250, top=180, line_height=20)

OBSERVATIONS_HEADING = "OBSERVATIONS"
OBSERVATIONS_HEADING_TOP = 490
OBSERVATIONS_TABLE_TOP = 525

OBSERVATION_TABLE = TableSpec(
    left=20,
    col_widths=(40, 150, 150, 140),
    headers=("Sr. No.", "Concentration of Gas", "Reading Before Calibration", "Reading After Calibration"),
    inset=5,
    header_line_width=1,
    row_line_width=2
)

STATEMENT = (
    "The above-mentioned Gas Detector was calibrated successfully, and the result "
    "confirms that the performance of the instrument is within acceptable limits."
)
FOOTER_TOP = PAGE_HEIGHT - 120
STATEMENT_BOX = (50, FOOTER_TOP - 50, 490)
# Observation rows that fit above the statement box
MAX_OBSERVATION_ROWS = OBSERVATION_TABLE.rows_fitting(OBSERVATIONS_TABLE_TOP, STATEMENT_BOX[1])

SIGNATURE_LEFT = PAGE_WIDTH - MARGIN - 180
SIGNATURE_TOP = 720
GENERATED_TOP = PAGE_HEIGHT - MARGIN - 65


def observation_cells(index: int, observation) -> list:
    """Cells of one observation row: serial, gas, before, after."""
    return [
        str(index + 1),
        format_cell(attribute(observation, "gas")),
        format_cell(attribute(observation, "before")),
        format_cell(attribute(observation, "after")),
    ]


def layout_certificate(record, generated_at: datetime,
                       logo_path: Optional[str] = None) -> Tuple[PageDescription, RenderReport]:
    """
    Lays out a certificate record on one A4 page.

    The result depends only on the record, the generation time and the logo
    file. Fields or observation rows that cannot be formatted are recorded in
    the report and left blank; the rest of the page is still produced.

    Args:
        record: CertificateRecord or a mapping with the same field names
        generated_at: Timestamp printed in the footer
        logo_path: Logo image; skipped when absent

    Returns:
        Tuple[PageDescription, RenderReport]: Page description and step report
    """
    report = RenderReport()
    number = report.run("title", lambda: format_cell(attribute(record, "certificate_no")))
    description = PageDescription(title=f"Calibration Certificate {number.value or ''}".strip())
    page = description.new_page()

    page.image(logo_path, *LOGO_BOX)
    page.text(TITLE, TITLE_LEFT, TITLE_TOP, font=FONT_BOLD, size=16, color=TITLE_COLOR,
              align="center", width=TITLE_WIDTH, underline=True)

    draw_fields(page, report, record, CERTIFICATE_FIELDS, FIELD_BLOCK)

    page.text(OBSERVATIONS_HEADING, 50, OBSERVATIONS_HEADING_TOP, font=FONT_BOLD, size=10, underline=True)
    draw_table_header(page, OBSERVATION_TABLE, OBSERVATIONS_TABLE_TOP)

    observations = report.run("observations", lambda: as_rows(attribute(record, "observations")))
    for index, observation in enumerate(observations.value or []):
        draw_table_row(page, report, OBSERVATION_TABLE, OBSERVATIONS_TABLE_TOP,
                       index, index, observation_cells, observation)
    rows = len(observations.value or [])
    if rows > MAX_OBSERVATION_ROWS:
        logger.warning(
            f"{description.title}: {rows} observations overflow the table area, "
            f"rows after {MAX_OBSERVATION_ROWS} overlap the statement"
        )

    statement_left, statement_top, statement_width = STATEMENT_BOX
    page.text(STATEMENT, statement_left, statement_top, size=10, align="center", width=statement_width)

    page.text("Tested & Calibrated By", SIGNATURE_LEFT, SIGNATURE_TOP, font=FONT_BOLD, size=14)
    engineer = report.run("field:engineer_name", lambda: format_cell(attribute(record, "engineer_name")))
    if engineer.ok and engineer.value:
        page.text(engineer.value, SIGNATURE_LEFT, SIGNATURE_TOP + 26, font=FONT_REGULAR, size=12)

    page.text(f"Generated on: {generated_at.strftime('%d-%m-%Y %H:%M:%S')}", 20, GENERATED_TOP, size=8)

    if not report.ok:
        logger.warning(f"{description.title} rendered with {len(report.failures)} failed step(s)")
    return description, report
