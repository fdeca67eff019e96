"""
Streams a page description into a PDF with reportlab.
"""

import logging
from io import BytesIO

from reportlab.lib.colors import HexColor
from reportlab.lib.utils import simpleSplit
from reportlab.pdfbase.pdfmetrics import getAscent, stringWidth
from reportlab.pdfgen import canvas

from .layout import ImageOp, PageDescription, RectOp, TextOp

logger = logging.getLogger(__name__)

LEADING = 1.2


class PdfWriter:
    """Draws layout operations on a reportlab canvas."""

    def __init__(self, invariant: bool = False, author: str = "RPS"):
        """
        Args:
            invariant: Omit timestamps and random IDs from the PDF so identical
                descriptions produce identical bytes
            author: Author written to the PDF metadata
        """
        self.invariant = invariant
        self.author = author

    def write(self, description: PageDescription, sink) -> int:
        """
        Writes all pages of the description to the sink.

        Args:
            description: Laid out document
            sink: Binary file object or file path

        Returns:
            int: Number of pages written
        """
        width, height = description.page_size
        pdf = canvas.Canvas(sink, pagesize=(width, height), invariant=int(self.invariant))
        pdf.setTitle(description.title)
        pdf.setAuthor(self.author)

        for page in description.pages:
            for op in page.ops:
                if isinstance(op, TextOp):
                    self._draw_text(pdf, op, height)
                elif isinstance(op, RectOp):
                    self._draw_rect(pdf, op, height)
                elif isinstance(op, ImageOp):
                    self._draw_image(pdf, op, height)
            pdf.showPage()

        pdf.save()
        logger.debug(f"PDF written: {description.title}, {len(description.pages)} page(s)")
        return len(description.pages)

    def to_bytes(self, description: PageDescription) -> bytes:
        """Renders the description into memory."""
        buffer = BytesIO()
        self.write(description, buffer)
        return buffer.getvalue()

    def _draw_text(self, pdf: canvas.Canvas, op: TextOp, height: float):
        pdf.setFont(op.font, op.size)
        pdf.setFillColor(HexColor(op.color))

        if op.width:
            lines = simpleSplit(op.text, op.font, op.size, op.width) or [""]
        else:
            lines = [op.text]

        baseline = height - op.y - getAscent(op.font, op.size)
        for line in lines:
            line_width = stringWidth(line, op.font, op.size)
            if op.align == "center" and op.width:
                start = op.x + (op.width - line_width) / 2
            elif op.align == "right" and op.width:
                start = op.x + op.width - line_width
            else:
                start = op.x
            pdf.drawString(start, baseline, line)

            if op.underline:
                pdf.setStrokeColor(HexColor(op.color))
                pdf.setLineWidth(max(0.5, op.size / 20))
                pdf.line(start, baseline - 2, start + line_width, baseline - 2)

            baseline -= op.size * LEADING

    def _draw_rect(self, pdf: canvas.Canvas, op: RectOp, height: float):
        pdf.setLineWidth(op.line_width)
        pdf.setStrokeColor(HexColor(op.color))
        pdf.rect(op.x, height - op.y - op.height, op.width, op.height, stroke=1, fill=0)

    def _draw_image(self, pdf: canvas.Canvas, op: ImageOp, height: float):
        try:
            pdf.drawImage(op.path, op.x, height - op.y - op.height,
                          width=op.width, height=op.height, mask='auto')
        except Exception as e:
            logger.warning(f"Could not draw image {op.path}: {e}")
