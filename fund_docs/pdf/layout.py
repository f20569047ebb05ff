"""
Section tree layout.

Walks a template's section tree depth-first and flows it onto pages:
- depth 0 titles become centered chapter headings (제 N 장)
- depth 1 titles become left-aligned article headings (제N조 (title))
- text is resolved against the render context, prefixed with its legal
  citation and moved to a new page as a whole when it would cross the
  bottom margin
- table nodes render their text and then the member table
"""
import logging
from datetime import datetime
from typing import Optional

from fund_docs.core.config import (
    ARTICLE_FONT_SIZE,
    BODY_FONT_SIZE,
    CHAPTER_FONT_SIZE,
    INDENT_SIZE,
)
from fund_docs.core.exceptions import LayoutError
from fund_docs.pdf.page_writer import PageWriter
from fund_docs.pdf.styled_text import StyledTextRenderer
from fund_docs.pdf.table import MemberTableRenderer
from fund_docs.templating.context import RenderContext
from fund_docs.templating.numbering import article_heading, chapter_heading, child_indent, number_text
from fund_docs.templating.sections import Section
from fund_docs.templating.styles import strip_markers
from fund_docs.utils.progress import ProgressTracker

logger = logging.getLogger(__name__)

MAX_DEPTH = 16
BODY_LINE_GAP = 2

# Title page
TITLE_FUND_NAME_SIZE = 28
TITLE_DOCUMENT_SIZE = 24
TITLE_DATE_SIZE = 14
TITLE_GP_SIZE = 12
DEFAULT_DOCUMENT_TITLE = "규약(안)"


def line_advance(size: float, lines: float = 1) -> float:
    """Vertical distance of `lines` blank lines at a font size."""
    return size * 1.2 * lines


class SectionLayout:
    """
    Lays out section trees through a PageWriter.

    Usage:
        layout = SectionLayout(writer)
        layout.render_title_page(context)
        layout.render_sections(template.sections, context)
    """

    def __init__(
        self,
        writer: PageWriter,
        tracker: Optional[ProgressTracker] = None,
        indent_size: float = INDENT_SIZE,
    ):
        self.writer = writer
        self.text = StyledTextRenderer(writer)
        self.tracker = tracker or ProgressTracker(enabled=False, label="sections")
        self.table = MemberTableRenderer(writer, tracker=self.tracker)
        self.indent_size = indent_size

    def render_title_page(self, context: RenderContext, document_title: str = DEFAULT_DOCUMENT_TITLE):
        """
        Draw the cover page and start the body on a new page.

        Layout: fund name and document title around the vertical center,
        'YYYY. MM.' and the general partners near the bottom.
        """
        writer = self.writer
        writer.start_page()
        center_y = writer.height / 2
        width = writer.width - writer.margin * 2

        self._draw_centered(context.fund.name, center_y - 60, TITLE_FUND_NAME_SIZE, bold=True, width=width)
        self._draw_centered(document_title, center_y - 10, TITLE_DOCUMENT_SIZE, bold=True, width=width)

        when: datetime = context.generated_at
        self._draw_centered(f"{when.year}. {when.month:02d}.", writer.height - 150, TITLE_DATE_SIZE, width=width)

        gp_names = ", ".join(m.name for m in context.gp_members)
        if gp_names:
            self._draw_centered(f"업무집행조합원: {gp_names}", writer.height - 120, TITLE_GP_SIZE, width=width)

        writer.new_page()

    def _draw_centered(self, text: str, top: float, size: float, width: float, bold: bool = False):
        self.writer.y = top
        self.text.draw_plain(text, self.writer.margin, width, size, bold=bold, align="center", line_gap=0)

    def render_sections(
        self,
        sections: list[Section],
        context: RenderContext,
        depth: int = 0,
        indent: float = 0,
    ):
        """
        Render sibling sections at one depth.

        Args:
            sections: Sibling nodes
            context: Immutable render context
            depth: Positional depth of the siblings (root = 0)
            indent: Accumulated indentation of the siblings

        Raises:
            LayoutError: If the tree is deeper than MAX_DEPTH
            CompositionCancelled: If the tracker's cancel event is set
        """
        if depth > MAX_DEPTH:
            raise LayoutError(
                "Section tree too deep",
                details={"depth": depth, "max_depth": MAX_DEPTH},
            )
        for section in sections:
            self.tracker.checkpoint()
            self.render_section(section, context, depth, indent)

    def render_section(self, section: Section, context: RenderContext, depth: int, indent: float):
        writer = self.writer

        if depth == 0 and section.title:
            self._render_chapter_heading(section)
        elif depth == 1 and section.title:
            self._render_article_heading(section)

        # Depths 0 and 1 are never indented
        current_indent = indent if depth >= 2 else 0
        x = writer.margin + current_indent
        width = writer.content_width - current_indent

        if section.text and not section.is_table:
            text = number_text(depth, section.ordinal, context.resolve(section.text))
            self._keep_together(text, width)
            self.text.draw(text, x, width, BODY_FONT_SIZE, align="justify", line_gap=BODY_LINE_GAP)
            writer.move_down(line_advance(BODY_FONT_SIZE))
        elif section.text:
            self.text.draw(context.resolve(section.text), x, width, BODY_FONT_SIZE, align="justify", line_gap=BODY_LINE_GAP)
            writer.move_down(line_advance(BODY_FONT_SIZE, 0.5))

        if section.is_table:
            if section.table_config is None:
                logger.warning(f"Table section {section.ordinal} has no table config")
            else:
                self.table.render(section.table_config, context, x)
                writer.move_down(line_advance(BODY_FONT_SIZE, 0.5))

        for child in section.children:
            next_indent = child_indent(depth + 1, child.ordinal, indent, self.indent_size)
            self.render_sections([child], context, depth + 1, next_indent)

    def _keep_together(self, text: str, width: float):
        # Measured without markers; a block taller than a page still flows line by line
        height = self.text.measure_height(strip_markers(text), width, BODY_FONT_SIZE, BODY_LINE_GAP)
        usable = self.writer.max_y - self.writer.margin
        if height <= usable:
            self.writer.ensure_space(height)

    def _render_chapter_heading(self, section: Section):
        writer = self.writer
        writer.ensure_space(CHAPTER_FONT_SIZE + 30)
        # Space above unless at the top of a page
        if writer.y > 100:
            writer.move_down(line_advance(CHAPTER_FONT_SIZE, 2))
        self.text.draw_plain(
            chapter_heading(section.ordinal, section.title),
            writer.margin,
            writer.content_width,
            CHAPTER_FONT_SIZE,
            bold=True,
            align="center",
        )
        writer.move_down(line_advance(CHAPTER_FONT_SIZE, 2))

    def _render_article_heading(self, section: Section):
        writer = self.writer
        writer.ensure_space(ARTICLE_FONT_SIZE + 10)
        self.text.draw_plain(
            article_heading(section.ordinal, section.title),
            writer.margin,
            writer.content_width,
            ARTICLE_FONT_SIZE,
            bold=True,
        )
        writer.move_down(line_advance(ARTICLE_FONT_SIZE, 0.5))
