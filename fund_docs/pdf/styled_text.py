"""
Styled text rendering: wrap style runs into lines and draw them.

Every fragment is measured in the font of its own run. Line positions are
computed up front: a line's start offset comes from its total measured
width and the alignment, and each fragment is then drawn at an absolute x.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Union

from fund_docs.pdf.page_writer import PageWriter
from fund_docs.templating.styles import StyledRun, parse_styled_text

logger = logging.getLogger(__name__)

DEFAULT_LINE_GAP = 2.0
LINE_HEIGHT_FACTOR = 1.2
BASELINE_FACTOR = 0.9

_BREAKS = re.compile(r"(\n| +)")


@dataclass
class Fragment:
    text: str
    run: StyledRun
    width: float

    @property
    def is_space(self) -> bool:
        return self.text.isspace()


@dataclass
class Line:
    fragments: list[Fragment] = field(default_factory=list)
    hard_break: bool = False

    @property
    def width(self) -> float:
        return sum(f.width for f in self.fragments)

    @property
    def space_count(self) -> int:
        return sum(len(f.text) for f in self.fragments if f.is_space)

    def trim(self):
        while self.fragments and self.fragments[-1].is_space:
            self.fragments.pop()


class StyledTextRenderer:
    """Measures and draws marked-up text through a PageWriter."""

    def __init__(self, writer: PageWriter):
        self.writer = writer
        self.fonts = writer.fonts

    def measure(self, text: str, run: StyledRun, size: float) -> float:
        return self.fonts.string_width(text, size, bold=run.bold)

    def line_height(self, size: float, line_gap: float = DEFAULT_LINE_GAP) -> float:
        return size * LINE_HEIGHT_FACTOR + line_gap

    def layout(self, text: Union[str, list[StyledRun]], width: float, size: float) -> list[Line]:
        """
        Break text into lines no wider than width.

        Breaks at spaces; a word wider than the line is split by character.
        Explicit newlines force a break.
        """
        runs = parse_styled_text(text) if isinstance(text, str) else text
        lines: list[Line] = []
        current = Line()

        def flush(hard: bool = False):
            nonlocal current
            current.trim()
            current.hard_break = hard
            lines.append(current)
            current = Line()

        for run in runs:
            for piece in _BREAKS.split(run.text):
                if not piece:
                    continue
                if piece == "\n":
                    flush(hard=True)
                    continue

                piece_width = self.measure(piece, run, size)
                if piece.isspace():
                    if current.fragments:
                        current.fragments.append(Fragment(piece, run, piece_width))
                    continue

                if current.width + piece_width <= width:
                    current.fragments.append(Fragment(piece, run, piece_width))
                    continue

                if current.fragments:
                    flush()
                if piece_width <= width:
                    current.fragments.append(Fragment(piece, run, piece_width))
                    continue

                for char in piece:
                    char_width = self.measure(char, run, size)
                    if current.fragments and current.width + char_width > width:
                        flush()
                    current.fragments.append(Fragment(char, run, char_width))

        if current.fragments or not lines:
            flush(hard=True)
        else:
            lines[-1].hard_break = True
        return lines

    def measure_height(
        self,
        text: str,
        width: float,
        size: float,
        line_gap: float = DEFAULT_LINE_GAP,
    ) -> float:
        """Rendered height of text at the given width."""
        if not text:
            return 0.0
        return len(self.layout(text, width, size)) * self.line_height(size, line_gap)

    def line_positions(self, line: Line, x: float, width: float, align: str) -> list[float]:
        """
        Absolute x of every fragment in a line.

        center/right: one start offset from the summed run widths.
        justify: extra space spread over the line's spaces, except on the
        last line of a paragraph.
        """
        line_width = line.width
        extra_per_space = 0.0
        if align == "center":
            start = x + (width - line_width) / 2
        elif align == "right":
            start = x + width - line_width
        else:
            start = x
            if align == "justify" and not line.hard_break and line.space_count:
                extra_per_space = max(0.0, width - line_width) / line.space_count

        positions = []
        cursor = start
        for fragment in line.fragments:
            positions.append(cursor)
            cursor += fragment.width
            if fragment.is_space:
                cursor += extra_per_space * len(fragment.text)
        return positions

    def draw(
        self,
        text: Union[str, list[StyledRun]],
        x: float,
        width: float,
        size: float,
        align: str = "left",
        line_gap: float = DEFAULT_LINE_GAP,
    ) -> float:
        """
        Draw text at the writer's cursor, breaking pages line by line.

        Returns:
            Total height consumed (summed over pages)
        """
        lines = self.layout(text, width, size)
        line_height = self.line_height(size, line_gap)
        consumed = 0.0

        for line in lines:
            self.writer.ensure_space(line_height)
            baseline = self.writer.y + size * BASELINE_FACTOR
            for fragment, position in zip(line.fragments, self.line_positions(line, x, width, align)):
                if fragment.is_space:
                    continue
                self.writer.draw_string(
                    position,
                    baseline,
                    fragment.text,
                    size=size,
                    bold=fragment.run.bold,
                    italic=fragment.run.italic,
                    color=fragment.run.color,
                )
            self.writer.move_down(line_height)
            consumed += line_height

        return consumed

    def draw_plain(
        self,
        text: str,
        x: float,
        width: float,
        size: float,
        bold: bool = False,
        align: str = "left",
        line_gap: float = DEFAULT_LINE_GAP,
    ) -> float:
        """Draw unmarked text in one style (headings, titles)."""
        run = StyledRun(text=text, bold=bold)
        return self.draw([run], x, width, size, align=align, line_gap=line_gap)
