"""
Page writer: a reportlab canvas with a top-down cursor and page bookkeeping.

Positions handed to PageWriter are measured from the top of the page, the
way the layout code thinks about flowing text; conversion to PDF
coordinates (origin bottom-left) happens here only.
"""
import io
import logging
from typing import Optional

from reportlab.lib.colors import HexColor
from reportlab.lib.pagesizes import A4
from reportlab.pdfgen.canvas import Canvas

from fund_docs.core.config import (
    FOOTER_OFFSET,
    PAGE_BOTTOM_MARGIN,
    PAGE_MARGIN,
    PDF_INVARIANT,
)
from fund_docs.pdf.fonts import ITALIC_SKEW, FontSet

logger = logging.getLogger(__name__)

FOOTER_FONT_SIZE = 10
BLACK = "#000000"


class PageWriter:
    """
    Owns the canvas of one composition run.

    Attributes:
        y: Cursor, distance from the top edge of the current page
        page_number: 1-based number of the current page
    """

    def __init__(
        self,
        fonts: FontSet,
        pagesize: tuple[float, float] = A4,
        margin: float = PAGE_MARGIN,
        bottom_margin: float = PAGE_BOTTOM_MARGIN,
        footer_offset: float = FOOTER_OFFSET,
        invariant: bool = PDF_INVARIANT,
        title: Optional[str] = None,
        author: Optional[str] = None,
    ):
        self.fonts = fonts
        self.width, self.height = pagesize
        self.margin = margin
        self.bottom_margin = bottom_margin
        self.footer_offset = footer_offset

        self._buffer = io.BytesIO()
        self.canvas = Canvas(self._buffer, pagesize=pagesize, invariant=1 if invariant else 0)
        if title:
            self.canvas.setTitle(title)
            self.canvas.setSubject(title)
        if author:
            self.canvas.setAuthor(author)

        self.page_number = 1
        self.y = margin
        self._page_has_body = False
        self._finished = False

    @property
    def content_width(self) -> float:
        return self.width - self.margin * 2

    @property
    def max_y(self) -> float:
        """Lowest cursor position body content may reach."""
        return self.height - self.bottom_margin

    @property
    def page_is_blank(self) -> bool:
        return not self._page_has_body

    def new_page(self) -> int:
        """Finish the current page and start the next one. Returns the new page number."""
        self.canvas.showPage()
        self.page_number += 1
        self.y = self.margin
        self._page_has_body = False
        self._draw_footer()
        return self.page_number

    def start_page(self) -> int:
        """Start a fresh page unless the current one is still blank."""
        if self._page_has_body:
            return self.new_page()
        self.y = self.margin
        return self.page_number

    def ensure_space(self, height: float) -> bool:
        """
        Break the page if height would cross the bottom margin.

        Returns:
            True when a new page was started
        """
        if self.y + height > self.max_y and self._page_has_body:
            self.new_page()
            return True
        return False

    def move_down(self, amount: float):
        self.y += amount

    def _draw_footer(self):
        # Page 1 carries no page number
        if self.page_number == 1:
            return
        label = f"- {self.page_number} -"
        width = self.fonts.string_width(label, FOOTER_FONT_SIZE)
        self.draw_string(
            (self.width - width) / 2,
            self.height - self.footer_offset,
            label,
            size=FOOTER_FONT_SIZE,
            mark_body=False,
        )

    def draw_string(
        self,
        x: float,
        baseline: float,
        text: str,
        size: float,
        bold: bool = False,
        italic: bool = False,
        color: str = BLACK,
        mark_body: bool = True,
    ):
        """
        Draw one string with its baseline at a top-down position.

        Bold falls back to a fill-and-stroke render mode when the font set
        has no bold face; italics are a skewed baseline.
        """
        if not text:
            return
        canvas = self.canvas
        pdf_y = self.height - baseline

        canvas.saveState()
        canvas.setFillColor(HexColor(color))
        canvas.setStrokeColor(HexColor(color))
        canvas.translate(x, pdf_y)
        if italic:
            canvas.skew(0, ITALIC_SKEW)

        text_object = canvas.beginText(0, 0)
        text_object.setFont(self.fonts.face(bold), size)
        if bold and self.fonts.synthetic_bold:
            canvas.setLineWidth(size * 0.03)
            text_object.setTextRenderMode(2)
        text_object.textOut(text)
        canvas.drawText(text_object)
        canvas.restoreState()

        if mark_body:
            self._page_has_body = True

    def draw_rect(
        self,
        x: float,
        top: float,
        width: float,
        height: float,
        fill_color: Optional[str] = None,
        stroke_color: Optional[str] = None,
        line_width: float = 0.5,
    ):
        canvas = self.canvas
        canvas.saveState()
        if fill_color:
            canvas.setFillColor(HexColor(fill_color))
        if stroke_color:
            canvas.setStrokeColor(HexColor(stroke_color))
            canvas.setLineWidth(line_width)
        canvas.rect(
            x,
            self.height - top - height,
            width,
            height,
            stroke=1 if stroke_color else 0,
            fill=1 if fill_color else 0,
        )
        canvas.restoreState()
        self._page_has_body = True

    def draw_line(
        self,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        color: str = BLACK,
        line_width: float = 0.5,
    ):
        canvas = self.canvas
        canvas.saveState()
        canvas.setStrokeColor(HexColor(color))
        canvas.setLineWidth(line_width)
        canvas.line(x1, self.height - y1, x2, self.height - y2)
        canvas.restoreState()
        self._page_has_body = True

    def finish(self) -> bytes:
        """Close the document and return the PDF bytes."""
        if not self._finished:
            self.canvas.showPage()
            self.canvas.save()
            self._finished = True
            logger.debug(f"Finished PDF with {self.page_number} page(s)")
        return self._buffer.getvalue()

    @property
    def page_count(self) -> int:
        return self.page_number
