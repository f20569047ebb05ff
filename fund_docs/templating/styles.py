"""
Inline style markers for rendered template text.

Three style kinds are embedded in plain text as paired sentinel tokens:

    <<PREVIEW>>...<<PREVIEW_END>>   provisional: unresolved template token
    <<INPUT>>...<<INPUT_END>>       resolved: value substituted from data
    <<GRAY>>...<<GRAY_END>>         muted: secondary text

Markers may nest arbitrarily. parse_styled_text() turns marked text into
an ordered list of StyledRun values so renderers never scan for markers.
"""
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

logger = logging.getLogger(__name__)


class StyleKind(Enum):
    """Closed set of inline style kinds, valued by their marker name."""

    PROVISIONAL = "PREVIEW"
    RESOLVED = "INPUT"
    MUTED = "GRAY"

    @property
    def start_marker(self) -> str:
        return f"<<{self.value}>>"

    @property
    def end_marker(self) -> str:
        return f"<<{self.value}_END>>"


@dataclass(frozen=True)
class StyleAttributes:
    """Visual attributes a style kind sets. None leaves the attribute untouched."""

    color: Optional[str] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None


STYLE_ATTRIBUTES: dict[StyleKind, StyleAttributes] = {
    StyleKind.PROVISIONAL: StyleAttributes(color="#0066CC", bold=True),
    StyleKind.RESOLVED: StyleAttributes(color="#B45309"),
    StyleKind.MUTED: StyleAttributes(color="#808080", italic=True),
}

DEFAULT_COLOR = "#000000"

_MARKER_PATTERN = re.compile(
    r"<<(" + "|".join(kind.value for kind in StyleKind) + r")(_END)?>>"
)
_KIND_BY_NAME = {kind.value: kind for kind in StyleKind}


@dataclass(frozen=True)
class StyledRun:
    """A span of text with the style kinds active over it and their merged attributes."""

    text: str
    kinds: tuple[StyleKind, ...] = ()
    color: str = DEFAULT_COLOR
    bold: bool = False
    italic: bool = False

    @property
    def is_plain(self) -> bool:
        return not self.kinds


def wrap(text: str, kind: StyleKind) -> str:
    """Wrap text in the start/end markers of a style kind."""
    return f"{kind.start_marker}{text}{kind.end_marker}"


def strip_markers(text: str) -> str:
    """Remove every style marker, leaving the plain text."""
    return _MARKER_PATTERN.sub("", text or "")


def has_markers(text: str) -> bool:
    return bool(text) and _MARKER_PATTERN.search(text) is not None


def merge_attributes(kinds: Iterable[StyleKind]) -> StyleAttributes:
    """
    Merge attributes of the active kinds in opening order.

    When two kinds set the same attribute, the one opened last wins.
    """
    color: Optional[str] = None
    bold: Optional[bool] = None
    italic: Optional[bool] = None
    for kind in kinds:
        attrs = STYLE_ATTRIBUTES[kind]
        if attrs.color is not None:
            color = attrs.color
        if attrs.bold is not None:
            bold = attrs.bold
        if attrs.italic is not None:
            italic = attrs.italic
    return StyleAttributes(color=color, bold=bold, italic=italic)


def _make_run(text: str, active: list[StyleKind]) -> StyledRun:
    attrs = merge_attributes(active)
    # Unique kinds, keeping the position of each kind's latest opening
    kinds = tuple(reversed(list(dict.fromkeys(reversed(active)))))
    return StyledRun(
        text=text,
        kinds=kinds,
        color=attrs.color or DEFAULT_COLOR,
        bold=bool(attrs.bold),
        italic=bool(attrs.italic),
    )


def parse_styled_text(text: str) -> list[StyledRun]:
    """
    Parse marked text into ordered styled runs.

    An end marker without a matching open marker is dropped. A start marker
    that is never closed styles the remainder of the text. Adjacent runs
    with identical styling are merged.

    Args:
        text: Text possibly containing style markers

    Returns:
        List of StyledRun in reading order (empty for empty input)
    """
    if not text:
        return []

    runs: list[StyledRun] = []
    active: list[StyleKind] = []
    position = 0

    def emit(segment: str):
        if not segment:
            return
        run = _make_run(segment, active)
        if runs and runs[-1].kinds == run.kinds:
            runs[-1] = StyledRun(
                text=runs[-1].text + segment,
                kinds=run.kinds,
                color=run.color,
                bold=run.bold,
                italic=run.italic,
            )
        else:
            runs.append(run)

    for match in _MARKER_PATTERN.finditer(text):
        emit(text[position:match.start()])
        position = match.end()

        kind = _KIND_BY_NAME[match.group(1)]
        if match.group(2):
            # Close the most recent opening of this kind
            for i in range(len(active) - 1, -1, -1):
                if active[i] is kind:
                    del active[i]
                    break
            else:
                logger.debug(f"Ignoring unmatched end marker {kind.end_marker}")
        else:
            active.append(kind)

    emit(text[position:])

    if active:
        logger.debug(f"Unclosed style markers at end of text: {[k.value for k in active]}")

    return runs


def plain_text(runs: Iterable[StyledRun]) -> str:
    """Concatenate run texts."""
    return "".join(run.text for run in runs)
