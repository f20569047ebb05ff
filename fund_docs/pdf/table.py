"""
Member roster table (조합원 명부) rendering.

Column ratios are scaled to the table width. The header row is shaded,
body rows alternate shading and a computed totals row (계) closes the
table. When the table crosses a page break the outer vertical borders are
stroked per page segment, from that page's own top to its last row.
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Optional

from fund_docs.pdf.page_writer import PageWriter
from fund_docs.pdf.styled_text import StyledTextRenderer
from fund_docs.templating.context import Member, RenderContext, sort_key_for_name
from fund_docs.templating.sections import TableColumn, TableConfig
from fund_docs.templating.styles import parse_styled_text
from fund_docs.templating.variables import wrap_resolved_value
from fund_docs.utils.progress import ProgressTracker

logger = logging.getLogger(__name__)

ROW_HEIGHT = 18
CELL_PADDING_X = 6
CELL_PADDING_Y = 3
TABLE_FONT_SIZE = 9
TABLE_SIDE_INSET = 55

BORDER_COLOR = "#BFBFBF"
HEADER_BG_COLOR = "#D9D9D9"
STRIPE_BG_COLOR = "#FAFAFA"
TOTAL_BG_COLOR = "#F2F2F2"

MEMBER_TYPE_LABELS = {"GP": "업무집행조합원", "LP": "유한책임조합원"}
TOTAL_LABEL = "계"

# Only present for capital-call funds
CAPITAL_CALL_PROPERTIES = {"restAmount"}


@dataclass
class ScaledColumn:
    label: str
    property: str
    x: float
    width: float
    align: str
    header_align: str


def format_units(value: int) -> str:
    return f"{value:,}"


def format_percentage(amount: int, total_cap: int) -> str:
    if not total_cap:
        return "0.00%"
    return f"{amount / total_cap * 100:.2f}%"


def sort_table_members(members: list[Member]) -> list[Member]:
    """GP rows first, then name order with entity markers ignored."""
    return sorted(members, key=lambda m: (0 if m.is_gp else 1, sort_key_for_name(m.name), m.name))


def visible_columns(config: TableConfig, context: RenderContext) -> list[TableColumn]:
    if context.fund.is_lump_sum:
        return [c for c in config.columns if c.property not in CAPITAL_CALL_PROPERTIES]
    return list(config.columns)


def member_row(member: Member, context: RenderContext) -> dict[str, str]:
    fund = context.fund
    values: dict[str, Any] = {
        "memberType": MEMBER_TYPE_LABELS["GP" if member.is_gp else "LP"],
        "name": member.name,
        "units": format_units(member.total_units),
        "totalAmount": format_units(member.total_amount),
        "initialAmount": format_units(member.initial_amount),
        "percentage": format_percentage(member.total_amount, fund.total_cap),
    }
    if not fund.is_lump_sum:
        values["restAmount"] = format_units(member.total_amount - member.initial_amount)
    return {key: wrap_resolved_value(value, context.preview) for key, value in values.items()}


def totals_row(context: RenderContext) -> dict[str, str]:
    fund = context.fund
    row = {
        "memberType": TOTAL_LABEL,
        "name": "",
        "units": format_units(sum(m.total_units for m in context.members)),
        "totalAmount": format_units(fund.total_cap),
        "initialAmount": format_units(fund.initial_cap),
        "percentage": "100.00%",
    }
    if not fund.is_lump_sum:
        row["restAmount"] = format_units(fund.total_cap - fund.initial_cap)
    return row


class MemberTableRenderer:
    """Draws the member table at the writer's cursor."""

    def __init__(self, writer: PageWriter, tracker: Optional[ProgressTracker] = None):
        self.writer = writer
        self.text = StyledTextRenderer(writer)
        self.tracker = tracker or ProgressTracker(enabled=False, label="table rows")
        self.table_width = self.width_at(writer.margin)

    def width_at(self, x: float) -> float:
        """Table width when the left edge is at x; the right edge stays inside the content margin."""
        writer = self.writer
        return min(writer.width - TABLE_SIDE_INSET * 2, writer.width - writer.margin - x)

    def scale_columns(self, columns: list[TableColumn], x: float) -> list[ScaledColumn]:
        self.table_width = self.width_at(x)
        total_ratio = sum(c.width for c in columns) or 1.0
        scaled = []
        cursor = x
        for column in columns:
            width = self.table_width * (column.width / total_ratio)
            scaled.append(
                ScaledColumn(
                    label=column.label,
                    property=column.property,
                    x=cursor,
                    width=width,
                    align=column.align,
                    header_align=column.header_align,
                )
            )
            cursor += width
        return scaled

    def render(self, config: TableConfig, context: RenderContext, x: float) -> int:
        """
        Render the roster table.

        Returns:
            Number of body rows drawn (totals row excluded)
        """
        columns = self.scale_columns(visible_columns(config, context), x)
        if not columns:
            logger.warning("Table has no visible columns, skipping")
            return 0

        members = sort_table_members(list(context.members))
        rows = [member_row(m, context) for m in members]
        rows.append(totals_row(context))

        writer = self.writer
        writer.ensure_space(ROW_HEIGHT * 2)
        page_top = writer.y
        self._draw_header(columns, x)

        self.tracker.start(len(members))
        for index, row in enumerate(rows):
            self.tracker.checkpoint()
            is_total = index == len(rows) - 1

            if writer.y + ROW_HEIGHT > writer.max_y:
                # Close this page's segment before breaking
                self._draw_hline(x, writer.y)
                self._draw_outer_borders(x, page_top, writer.y)
                writer.new_page()
                page_top = writer.y

            if is_total:
                fill = TOTAL_BG_COLOR
            elif index % 2 == 1:
                fill = STRIPE_BG_COLOR
            else:
                fill = None
            self._draw_row(columns, x, row, fill=fill, bold=is_total)
            if not is_total:
                self.tracker.update()

        self._draw_hline(x, writer.y)
        self._draw_outer_borders(x, page_top, writer.y)
        self.tracker.finish()
        logger.debug(f"Rendered member table: {len(members)} rows, {len(columns)} columns")
        return len(members)

    def _draw_header(self, columns: list[ScaledColumn], x: float):
        writer = self.writer
        top = writer.y
        writer.draw_rect(
            x, top, self.table_width, ROW_HEIGHT,
            fill_color=HEADER_BG_COLOR, stroke_color=BORDER_COLOR,
        )
        for index, column in enumerate(columns):
            if index > 0:
                writer.draw_line(column.x, top, column.x, top + ROW_HEIGHT, color=BORDER_COLOR)
            self._draw_cell(column, top, column.label, align=column.header_align, bold=True)
        writer.move_down(ROW_HEIGHT)

    def _draw_row(
        self,
        columns: list[ScaledColumn],
        x: float,
        row: dict[str, str],
        fill: Optional[str],
        bold: bool,
    ):
        writer = self.writer
        top = writer.y
        if fill:
            writer.draw_rect(x, top, self.table_width, ROW_HEIGHT, fill_color=fill)
        self._draw_hline(x, top)
        for index, column in enumerate(columns):
            if index > 0:
                writer.draw_line(column.x, top, column.x, top + ROW_HEIGHT, color=BORDER_COLOR)
            self._draw_cell(column, top, row.get(column.property, ""), align=column.align, bold=bold)
        writer.move_down(ROW_HEIGHT)

    def _draw_cell(self, column: ScaledColumn, top: float, value: str, align: str, bold: bool):
        if not value:
            return
        inner_width = column.width - CELL_PADDING_X * 2
        runs = parse_styled_text(value)
        if bold:
            runs = [replace(run, bold=True) for run in runs]
        lines = self.text.layout(runs, inner_width, TABLE_FONT_SIZE)
        # Cells are single-line; overflow is clipped to the first line
        line = lines[0]
        baseline = top + CELL_PADDING_Y + TABLE_FONT_SIZE
        positions = self.text.line_positions(line, column.x + CELL_PADDING_X, inner_width, align)
        for fragment, position in zip(line.fragments, positions):
            if fragment.is_space:
                continue
            self.writer.draw_string(
                position,
                baseline,
                fragment.text,
                size=TABLE_FONT_SIZE,
                bold=fragment.run.bold,
                italic=fragment.run.italic,
                color=fragment.run.color,
            )

    def _draw_hline(self, x: float, y: float):
        self.writer.draw_line(x, y, x + self.table_width, y, color=BORDER_COLOR)

    def _draw_outer_borders(self, x: float, top: float, bottom: float):
        right = x + self.table_width
        self.writer.draw_line(x, top, x, bottom, color=BORDER_COLOR, line_width=1)
        self.writer.draw_line(right, top, right, bottom, color=BORDER_COLOR, line_width=1)
