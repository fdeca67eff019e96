"""
Tests for certificate and service page layouts
"""
from datetime import date, datetime

import pytest

from labdocs.certificate_layout import (
    MAX_OBSERVATION_ROWS, OBSERVATION_TABLE, OBSERVATIONS_TABLE_TOP, STATEMENT_BOX, layout_certificate
)
from labdocs.layout import INVALID_DATE, MISSING, TableSpec, format_date
from labdocs.service_layout import REMARKS_TABLE, layout_service

GENERATED_AT = datetime(2024, 5, 2, 10, 30, 0)


def texts(page):
    return [op.text for op in page.texts()]


def value_after(page, label):
    """Text drawn on the same line right after a label"""
    ops = page.texts()
    for index, op in enumerate(ops):
        if op.text == label:
            return ops[index + 1].text
    raise AssertionError(f"Label {label!r} not found")


class BrokenValue:
    """Value whose formatting fails"""

    def __str__(self):
        raise RuntimeError("cannot format")


class TestFormatDate:
    """Tests for date formatting"""

    @pytest.mark.parametrize("value, expected", [
        (date(2024, 5, 2), "02-05-2024"),
        (datetime(2024, 5, 2, 13, 0), "02-05-2024"),
        ("2024-05-02", "02-05-2024"),
        ("2024-05-02T00:00:00.000Z", "02-05-2024"),
        ("02/05/2024", "02-05-2024"),
        (None, MISSING),
        ("", MISSING),
        ("not a date", INVALID_DATE),
        (12345, INVALID_DATE),
    ])
    def test_format_date(self, value, expected):
        assert format_date(value) == expected


class TestTableSpec:
    """Tests for table geometry"""

    def test_column_lefts_are_cumulative(self):
        spec = TableSpec(left=20, col_widths=(40, 150, 150, 140), headers=("a", "b", "c", "d"))

        assert spec.column_lefts == [20, 60, 210, 360]
        assert spec.width == 480

    def test_row_top(self):
        spec = TableSpec(left=20, col_widths=(40,), headers=("a",), row_height=20, header_height=20)

        assert spec.row_top(525, 0) == 545
        assert spec.row_top(525, 3) == 605


class TestCertificateLayout:
    """Tests for the certificate page"""

    def test_single_page(self, certificate_record):
        description, report = layout_certificate(certificate_record, GENERATED_AT)

        assert len(description.pages) == 1
        assert report.ok

    def test_field_values(self, certificate_record):
        description, _ = layout_certificate(certificate_record, GENERATED_AT)
        page = description.pages[0]

        assert value_after(page, "Certificate No.") == ": RPS/CERT/24-25/007"
        assert value_after(page, "Customer Name") == ": Acme Refinery"
        assert value_after(page, "Date of Calibration") == ": 02-05-2024"
        assert value_after(page, "Calibration Due Date") == ": 01-05-2025"
        assert "CALIBRATION CERTIFICATE" in texts(page)
        assert "Tested & Calibrated By" in texts(page)
        assert "R. Patel" in texts(page)
        assert "Generated on: 02-05-2024 10:30:00" in texts(page)

    def test_field_rows_spacing(self, certificate_record):
        description, _ = layout_certificate(certificate_record, GENERATED_AT)
        tops = {op.text: op.y for op in description.pages[0].texts()}

        assert tops["Certificate No."] == 180
        assert tops["Range"] == 260
        assert tops["Serial No."] == 300
        assert tops["Date of Calibration"] == 400
        assert tops["Status"] == 440

    def test_missing_and_invalid_values_use_placeholders(self, certificate_record):
        record = certificate_record.model_copy(update={
            "site_location": None,
            "calibration_due_date": "someday"
        })

        description, report = layout_certificate(record, GENERATED_AT)
        page = description.pages[0]

        assert value_after(page, "Site Location") == f": {MISSING}"
        assert value_after(page, "Calibration Due Date") == f": {INVALID_DATE}"
        assert report.ok

    def test_observation_rows_are_bordered(self, certificate_record):
        record = certificate_record.model_copy(update={"observations": [
            {"gas": "25 ppm", "before": "22 ppm", "after": "25 ppm"},
            {"gas": "50 ppm", "before": "47 ppm", "after": "50 ppm"},
        ]})

        description, _ = layout_certificate(record, GENERATED_AT)
        rects = description.pages[0].rects()

        # header row plus two data rows of four cells
        assert len(rects) == 12
        second_row = [r for r in rects if r.y == OBSERVATION_TABLE.row_top(OBSERVATIONS_TABLE_TOP, 1)]
        assert [r.x for r in second_row] == OBSERVATION_TABLE.column_lefts
        assert all(r.line_width == 2 for r in second_row)

    def test_failing_row_is_left_blank(self, certificate_record):
        record = certificate_record.model_dump()
        record["observations"] = [
            {"gas": "25 ppm", "before": "22 ppm", "after": "25 ppm"},
            42,
            {"gas": "50 ppm", "before": "47 ppm", "after": "50 ppm"},
        ]

        description, report = layout_certificate(record, GENERATED_AT)
        page = description.pages[0]

        assert [step.name for step in report.failures] == ["row:1"]
        assert len(page.rects()) == 16
        assert "3" in texts(page)
        assert "2" not in texts(page)

    def test_failing_field_keeps_label(self, certificate_record):
        record = certificate_record.model_dump()
        record["make_model"] = BrokenValue()

        description, report = layout_certificate(record, GENERATED_AT)
        page = description.pages[0]

        assert [step.name for step in report.failures] == ["field:make_model"]
        assert "Make & Model" in texts(page)
        assert value_after(page, "Range") == ": 0-100 ppm"

    def test_missing_range_renders_placeholder(self, certificate_record):
        record = certificate_record.model_dump()
        del record["range"]

        description, report = layout_certificate(record, GENERATED_AT)
        page = description.pages[0]

        assert value_after(page, "Range") == ": N/A"
        assert value_after(page, "Serial No.") == ": CA318-004512"
        assert report.ok

    def test_empty_observations_render_header_only(self, certificate_record):
        record = certificate_record.model_copy(update={"observations": []})

        description, _ = layout_certificate(record, GENERATED_AT)
        rects = description.pages[0].rects()

        assert len(rects) == 4
        assert all(r.y == OBSERVATIONS_TABLE_TOP for r in rects)

    def test_non_list_observations_render_empty_table(self, certificate_record):
        record = certificate_record.model_dump()
        record["observations"] = "none"

        description, report = layout_certificate(record, GENERATED_AT)

        assert len(description.pages[0].rects()) == 4
        assert report.ok

    def test_observations_fitting_above_statement(self, certificate_record, caplog):
        record = certificate_record.model_copy(update={"observations": [
            {"gas": f"{i} ppm", "before": "0", "after": "0"} for i in range(MAX_OBSERVATION_ROWS)
        ]})

        description, _ = layout_certificate(record, GENERATED_AT)

        bottom = max(r.y + r.height for r in description.pages[0].rects())
        assert bottom <= STATEMENT_BOX[1]
        assert "overflow" not in caplog.text

    def test_observation_overflow_is_logged(self, certificate_record, caplog):
        record = certificate_record.model_copy(update={"observations": [
            {"gas": f"{i} ppm", "before": "0", "after": "0"} for i in range(16)
        ]})

        description, report = layout_certificate(record, GENERATED_AT)

        assert len(description.pages) == 1
        assert len(description.pages[0].rects()) == 4 * 17
        assert report.ok
        assert "16 observations overflow the table area" in caplog.text

    def test_logo_is_optional(self, certificate_record, tmp_path):
        description, _ = layout_certificate(certificate_record, GENERATED_AT, logo_path=tmp_path / "missing.png")

        assert description.pages[0].images() == []

    def test_logo_drawn_when_present(self, certificate_record, settings, assets):
        description, _ = layout_certificate(certificate_record, GENERATED_AT, logo_path=settings.logo_path)

        images = description.pages[0].images()
        assert len(images) == 1
        assert (images[0].x, images[0].y, images[0].width, images[0].height) == (10, 10, 175, 50)

    def test_layout_is_deterministic(self, certificate_record):
        first, _ = layout_certificate(certificate_record, GENERATED_AT)
        second, _ = layout_certificate(certificate_record, GENERATED_AT)

        assert first == second


class TestServiceLayout:
    """Tests for the service report pages"""

    def remarks(self, count):
        return [
            {"service_spares": f"Item {i}", "part_no": f"P{i}", "rate": "100", "quantity": 1, "po_no": "PO-1"}
            for i in range(count)
        ]

    def test_single_remark_fits_one_page(self, service_record):
        description, report = layout_service(service_record, GENERATED_AT)
        page = description.pages[0]

        assert len(description.pages) == 1
        assert report.ok
        assert "Page 1 of 1" in texts(page)
        assert "Rs 4500 /-" in texts(page)
        assert "Service Engineer" in texts(page)

    def test_inline_labels(self, service_record):
        description, _ = layout_service(service_record, GENERATED_AT)
        page = description.pages[0]

        assert value_after(page, "Customer Name: ") == "Acme Refinery"
        assert value_after(page, "Date: ") == "02-05-2024"
        label = next(op for op in page.texts() if op.text == "Report No.: ")
        value = next(op for op in page.texts() if op.text == "SR-117")
        assert value.y == label.y
        assert value.x > label.x

    def test_long_table_paginates_with_repeated_header(self, service_record):
        record = service_record.model_copy(update={"engineer_remarks": self.remarks(40)})

        description, report = layout_service(record, GENERATED_AT)

        assert len(description.pages) > 1
        assert report.ok
        for page in description.pages[:-1]:
            assert "Sr. No." in texts(page)
        total = len(description.pages)
        for number, page in enumerate(description.pages, 1):
            assert f"Page {number} of {total}" in texts(page)

        serial_x = REMARKS_TABLE.column_lefts[0] + REMARKS_TABLE.inset
        serials = [
            op.text for page in description.pages for op in page.texts()
            if op.x == serial_x and op.text.isdigit()
        ]
        assert serials == [str(i) for i in range(1, 41)]

    def test_rows_stay_above_footer(self, service_record):
        record = service_record.model_copy(update={"engineer_remarks": self.remarks(40)})

        description, _ = layout_service(record, GENERATED_AT)

        for page in description.pages:
            for rect in page.rects():
                assert rect.y + rect.height <= 700

    def test_generated_on_only_on_last_page(self, service_record):
        record = service_record.model_copy(update={"engineer_remarks": self.remarks(40)})

        description, _ = layout_service(record, GENERATED_AT)

        stamps = [
            index for index, page in enumerate(description.pages)
            if any(t.startswith("Generated on:") for t in texts(page))
        ]
        assert stamps == [len(description.pages) - 1]

    def test_non_list_remarks_render_header_only(self, service_record):
        record = service_record.model_dump()
        record["engineer_remarks"] = {"serviceSpares": "Sensor"}

        description, report = layout_service(record, GENERATED_AT)

        assert len(description.pages[0].rects()) == len(REMARKS_TABLE.col_widths)
        assert report.ok

    def test_banner_on_every_page(self, service_record, settings, assets):
        record = service_record.model_copy(update={"engineer_remarks": self.remarks(40)})

        description, _ = layout_service(record, GENERATED_AT, logo_path=settings.logo_path,
                                        banner_path=settings.banner_path)

        assert len(description.pages[0].images()) == 3
        for page in description.pages[1:]:
            assert len(page.images()) == 1
