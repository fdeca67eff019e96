"""
Layout of the service / calibration / installation job report.

The engineer remarks table continues on further pages when it does not fit;
the column header is repeated on every page the table spans.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from .layout import (
    FONT_BOLD, FONT_REGULAR, PAGE_HEIGHT, PAGE_WIDTH,
    FieldBlock, FieldSpec, Page, PageDescription, RenderReport, TableSpec,
    as_rows, attribute, draw_fields, draw_table_header, draw_table_row,
    format_cell, format_date
)

logger = logging.getLogger(__name__)

MARGIN = 35

LOGO_BOX = (MARGIN, 45, 175, 50)
BANNER_WIDTH = PAGE_WIDTH - 2 * MARGIN
BANNER_HEIGHT = 50
HEADER_BANNER_TOP = 140
FOOTER_BANNER_TOP = PAGE_HEIGHT - 85

TITLE = "SERVICE / CALIBRATION / INSTALLATION  JOBREPORT"
TITLE_TOP = 200
TITLE_LEFT = 50
TITLE_WIDTH = PAGE_WIDTH - 2 * TITLE_LEFT

SERVICE_FIELDS = (
    FieldSpec("customer_name", "Customer Name"),
    FieldSpec("customer_location", "Customer Location"),
    FieldSpec("contact_person", "Contact Person"),
    FieldSpec("status", "Status"),
    FieldSpec("contact_number", "Contact Number"),
    FieldSpec("service_engineer", "Service Engineer"),
    FieldSpec("date", "Date", formatter=format_date),
    FieldSpec("place", "Place"),
    FieldSpec("place_options", "Place Options"),
    FieldSpec("nature_of_job", "Nature of Job"),
    FieldSpec("report_no", "Report No."),
    FieldSpec("instruments_make_model", "Make & Model Number", extra_space=20),
    FieldSpec("instruments_calibrated_ok", "Calibrated & Tested OK", extra_space=20),
    FieldSpec("instruments_faulty", "Sr.No Faulty/Non-Working"),
)

FIELD_BLOCK = FieldBlock(label_x=45, value_x=None, top=230, line_height=20)

REMARKS_HEADING = "ENGINEER REMARKS"
REMARKS_HEADING_GAP = 20
REMARKS_TABLE_GAP = 20
CONTINUATION_HEADING_TOP = 40
CONTINUATION_TABLE_TOP = 70

REMARKS_TABLE = TableSpec(
    left=45,
    col_widths=(40, 165, 60, 80, 70, 85),
    headers=("Sr. No.", "Service/Spares", "Part No.", "Rate", "Quantity", "PO No."),
    inset=6
)

CONTENT_BOTTOM = 700
GENERATED_TOP = 707

SIGNATURE_LEFT = 420
SIGNATURE_NAME_LEFT = 440
SIGNATURE_TOP_GAP = 10
SIGNATURE_LINE = 20
SIGNATURE_HEIGHT = 34


def remark_cells(index: int, remark) -> list:
    """Cells of one remark row; the rate is printed as rupees."""
    rate = format_cell(attribute(remark, "rate"))
    return [
        str(index + 1),
        format_cell(attribute(remark, "service_spares")),
        format_cell(attribute(remark, "part_no")),
        f"Rs {rate} /-" if rate else "",
        format_cell(attribute(remark, "quantity")),
        format_cell(attribute(remark, "po_no")),
    ]


def _draw_remarks_heading(page: Page, top: float, continued: bool = False) -> None:
    heading = f"{REMARKS_HEADING} (continued)" if continued else REMARKS_HEADING
    page.text(heading, REMARKS_TABLE.left, top, font=FONT_BOLD, size=10, underline=True)


def _draw_footer(page: Page, banner_path, number: int, total: int) -> None:
    page.image(banner_path, MARGIN, FOOTER_BANNER_TOP, BANNER_WIDTH, BANNER_HEIGHT)
    page.text(f"Page {number} of {total}", MARGIN, FOOTER_BANNER_TOP + BANNER_HEIGHT + 8,
              size=8, align="right", width=BANNER_WIDTH)


def layout_service(record, generated_at: datetime, logo_path: Optional[str] = None,
                   banner_path: Optional[str] = None) -> Tuple[PageDescription, RenderReport]:
    """
    Lays out a service report record on one or more A4 pages.

    Args:
        record: ServiceRecord or a mapping with the same field names
        generated_at: Timestamp printed on the last page
        logo_path: Logo image; skipped when absent
        banner_path: Header and footer banner image; skipped when absent

    Returns:
        Tuple[PageDescription, RenderReport]: Page description and step report
    """
    report = RenderReport()
    service_id = report.run("title", lambda: format_cell(attribute(record, "service_id")))
    description = PageDescription(title=f"Service Report {service_id.value or ''}".strip())
    page = description.new_page()

    page.image(logo_path, *LOGO_BOX)
    page.image(banner_path, MARGIN, HEADER_BANNER_TOP, BANNER_WIDTH, BANNER_HEIGHT)
    page.text(TITLE, TITLE_LEFT, TITLE_TOP, font=FONT_BOLD, size=16,
              align="center", width=TITLE_WIDTH, underline=True)

    y = draw_fields(page, report, record, SERVICE_FIELDS, FIELD_BLOCK)

    heading_top = y + REMARKS_HEADING_GAP
    _draw_remarks_heading(page, heading_top)
    table_top = heading_top + REMARKS_TABLE_GAP
    draw_table_header(page, REMARKS_TABLE, table_top)

    remarks = report.run("engineer_remarks", lambda: as_rows(attribute(record, "engineer_remarks")))
    page_row = 0
    for number, remark in enumerate(remarks.value or []):
        if page_row >= REMARKS_TABLE.rows_fitting(table_top, CONTENT_BOTTOM):
            page = description.new_page()
            _draw_remarks_heading(page, CONTINUATION_HEADING_TOP, continued=True)
            table_top = CONTINUATION_TABLE_TOP
            draw_table_header(page, REMARKS_TABLE, table_top)
            page_row = 0
        draw_table_row(page, report, REMARKS_TABLE, table_top, page_row, number, remark_cells, remark)
        page_row += 1

    signature_top = REMARKS_TABLE.row_top(table_top, page_row) + SIGNATURE_TOP_GAP
    if signature_top + SIGNATURE_HEIGHT > CONTENT_BOTTOM:
        page = description.new_page()
        signature_top = CONTINUATION_HEADING_TOP

    page.text("Service Engineer", SIGNATURE_LEFT, signature_top, font=FONT_BOLD, size=12)
    engineer = report.run("field:engineer_name", lambda: format_cell(attribute(record, "engineer_name")))
    if engineer.ok and engineer.value:
        page.text(engineer.value, SIGNATURE_NAME_LEFT, signature_top + SIGNATURE_LINE, font=FONT_REGULAR, size=12)

    total = len(description.pages)
    for number, footer_page in enumerate(description.pages, 1):
        _draw_footer(footer_page, banner_path, number, total)
    description.pages[-1].text(
        f"Generated on: {generated_at.strftime('%d-%m-%Y %H:%M:%S')}", FIELD_BLOCK.label_x, GENERATED_TOP, size=12
    )

    if not report.ok:
        logger.warning(f"{description.title} rendered with {len(report.failures)} failed step(s)")
    return description, report
