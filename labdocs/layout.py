"""
Shared layout primitives: in-memory page description, render report,
field schema and bordered table grid.

Coordinates are in points from the top-left corner of the page.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, date
from pathlib import Path
from typing import Any, Callable, List, Optional, Sequence, Tuple, Union

from reportlab.lib.pagesizes import A4
from reportlab.pdfbase.pdfmetrics import stringWidth

logger = logging.getLogger(__name__)

PAGE_WIDTH, PAGE_HEIGHT = A4

MISSING = "N/A"
INVALID_DATE = "Invalid Date"

FONT_REGULAR = "Helvetica"
FONT_BOLD = "Helvetica-Bold"
BLACK = "#000000"
TITLE_COLOR = "#1a237e"


@dataclass(frozen=True)
class TextOp:
    """Text placed with the top of its first line at y."""
    text: str
    x: float
    y: float
    font: str = FONT_REGULAR
    size: float = 12
    color: str = BLACK
    align: str = "left"
    width: Optional[float] = None
    underline: bool = False


@dataclass(frozen=True)
class RectOp:
    """Stroked, unfilled rectangle."""
    x: float
    y: float
    width: float
    height: float
    line_width: float = 1.0
    color: str = BLACK


@dataclass(frozen=True)
class ImageOp:
    """Image scaled into a box."""
    path: str
    x: float
    y: float
    width: float
    height: float


DrawOp = Union[TextOp, RectOp, ImageOp]


@dataclass
class Page:
    """Drawing instructions of a single page."""
    ops: List[DrawOp] = field(default_factory=list)

    def text(self, text: str, x: float, y: float, **kwargs) -> TextOp:
        op = TextOp(text, x, y, **kwargs)
        self.ops.append(op)
        return op

    def rect(self, x: float, y: float, width: float, height: float, **kwargs) -> RectOp:
        op = RectOp(x, y, width, height, **kwargs)
        self.ops.append(op)
        return op

    def image(self, path, x: float, y: float, width: float, height: float) -> Optional[ImageOp]:
        """Adds an image if the file exists; a missing image is skipped."""
        if path is None or not Path(path).is_file():
            logger.debug(f"Layout image not found, skipped: {path}")
            return None
        op = ImageOp(str(path), x, y, width, height)
        self.ops.append(op)
        return op

    def texts(self) -> List[TextOp]:
        return [op for op in self.ops if isinstance(op, TextOp)]

    def rects(self) -> List[RectOp]:
        return [op for op in self.ops if isinstance(op, RectOp)]

    def images(self) -> List[ImageOp]:
        return [op for op in self.ops if isinstance(op, ImageOp)]


@dataclass
class PageDescription:
    """Complete fixed-size document ready to be streamed to PDF."""
    title: str
    page_size: Tuple[float, float] = (PAGE_WIDTH, PAGE_HEIGHT)
    pages: List[Page] = field(default_factory=list)

    def new_page(self) -> Page:
        page = Page()
        self.pages.append(page)
        return page


@dataclass
class StepResult:
    """Outcome of one layout sub-step (a field or a table row)."""
    name: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


@dataclass
class RenderReport:
    """Collected step results of one render."""
    steps: List[StepResult] = field(default_factory=list)

    def run(self, name: str, func: Callable, *args) -> StepResult:
        """
        Runs a sub-step and records its outcome.

        A failing step is logged and recorded; the render continues.

        Args:
            name: Step name, e.g. "field:range" or "row:3"
            func: Callable producing the step value

        Returns:
            StepResult: Recorded result
        """
        try:
            result = StepResult(name, True, func(*args))
        except Exception as e:
            logger.warning(f"Layout step {name} failed: {e}")
            result = StepResult(name, False, None, str(e))
        self.steps.append(result)
        return result

    @property
    def failures(self) -> List[StepResult]:
        return [step for step in self.steps if not step.ok]

    @property
    def ok(self) -> bool:
        return not self.failures


def attribute(source, name: str):
    """Reads a value from a model or a plain dict."""
    if isinstance(source, dict):
        return source.get(name)
    return getattr(source, name)


def format_text(value) -> str:
    """Text value with the placeholder for missing or blank values."""
    if value is None:
        return MISSING
    text = str(value).strip()
    return text if text else MISSING


def format_date(value) -> str:
    """
    Formats a date as dd-mm-yyyy.

    Missing values give "N/A"; values that cannot be read as a date give "Invalid Date".
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        return MISSING

    if isinstance(value, (datetime, date)):
        return value.strftime("%d-%m-%Y")

    if isinstance(value, str):
        text = value.strip()
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).strftime("%d-%m-%Y")
        except ValueError:
            pass
        for fmt in ("%d-%m-%Y", "%d/%m/%Y"):
            try:
                return datetime.strptime(text, fmt).strftime("%d-%m-%Y")
            except ValueError:
                continue

    logger.warning(f"Invalid date value: {value!r}")
    return INVALID_DATE


def format_cell(value) -> str:
    """Table cell text; missing values leave the cell blank."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class FieldSpec:
    """One row of a labeled field block."""
    name: str
    label: str
    required: bool = True
    formatter: Callable[[Any], str] = format_text
    extra_space: float = 0

    def render_value(self, record) -> str:
        value = self.formatter(attribute(record, self.name))
        if value == MISSING and not self.required:
            return ""
        return value


@dataclass(frozen=True)
class FieldBlock:
    """Geometry of a labeled field block."""
    label_x: float
    value_x: Optional[float]
    top: float
    line_height: float
    size: float = 12
    separator: str = ": "


def draw_fields(page: Page, report: RenderReport, record, specs: Sequence[FieldSpec],
                block: FieldBlock) -> float:
    """
    Draws (bold label, plain value) rows and returns the cursor below the block.

    With a value column the value sits at block.value_x prefixed by the separator;
    without one it follows the label on the same line. A row whose value cannot be
    formatted keeps its label and leaves the value blank.
    """
    y = block.top
    for spec in specs:
        result = report.run(f"field:{spec.name}", spec.render_value, record)

        if block.value_x is not None:
            label = spec.label
            value_x = block.value_x
            value = f"{block.separator}{result.value}" if result.ok else ""
        else:
            label = f"{spec.label}{block.separator}"
            value_x = block.label_x + stringWidth(label, FONT_BOLD, block.size)
            value = result.value if result.ok else ""

        page.text(label, block.label_x, y, font=FONT_BOLD, size=block.size)
        if value:
            page.text(value, value_x, y, font=FONT_REGULAR, size=block.size)

        y += block.line_height + spec.extra_space
    return y


@dataclass(frozen=True)
class TableSpec:
    """Fixed-width bordered table; every cell gets its own rectangle."""
    left: float
    col_widths: Tuple[float, ...]
    headers: Tuple[str, ...]
    row_height: float = 20
    header_height: float = 20
    inset: float = 5
    size: float = 10
    header_line_width: float = 1.0
    row_line_width: float = 1.0

    @property
    def column_lefts(self) -> List[float]:
        """Left edge of every column: cumulative sums of the column widths."""
        lefts = []
        x = self.left
        for width in self.col_widths:
            lefts.append(x)
            x += width
        return lefts

    @property
    def width(self) -> float:
        return sum(self.col_widths)

    def row_top(self, table_top: float, index: int) -> float:
        """Top edge of the zero-based data row on a page."""
        return table_top + self.header_height + index * self.row_height

    def rows_fitting(self, table_top: float, bottom: float) -> int:
        """Number of data rows that fit between the header and the bottom limit."""
        available = bottom - table_top - self.header_height
        return max(0, int(available // self.row_height))


def draw_table_header(page: Page, spec: TableSpec, table_top: float) -> None:
    for x, width, header in zip(spec.column_lefts, spec.col_widths, spec.headers):
        page.rect(x, table_top, width, spec.header_height, line_width=spec.header_line_width)
        page.text(header, x + spec.inset, table_top + spec.inset, font=FONT_BOLD, size=spec.size)


def draw_table_row(page: Page, report: RenderReport, spec: TableSpec, table_top: float,
                   page_index: int, row_number: int, cells_func: Callable, item) -> None:
    """
    Draws one bordered data row.

    Args:
        page_index: Row index on this page, determines the position
        row_number: Row index in the whole table, used for the report and the serial cell
        cells_func: Callable (row_number, item) -> cell texts
        item: Source entry of the row

    Borders are always drawn; cells of a row that cannot be formatted stay blank.
    """
    y = spec.row_top(table_top, page_index)
    result = report.run(f"row:{row_number}", cells_func, row_number, item)
    cells = result.value if result.ok else [""] * len(spec.col_widths)

    for x, width, cell in zip(spec.column_lefts, spec.col_widths, cells):
        page.rect(x, y, width, spec.row_height, line_width=spec.row_line_width)
        if cell:
            page.text(cell, x + spec.inset, y + spec.inset, font=FONT_REGULAR, size=spec.size)


def as_rows(value) -> list:
    """Table entries; anything that is not a list renders as an empty table."""
    if isinstance(value, (list, tuple)):
        return list(value)
    if value is not None:
        logger.warning(f"Expected a list of table rows, got {type(value).__name__}")
    return []
