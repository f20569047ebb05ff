"""
Template variable resolution.

Scans text for ${name} tokens and substitutes values from a variable map.
Resolved values are wrapped as RESOLVED in preview mode; unresolved tokens
stay in place wrapped as PROVISIONAL so an editor can see what is missing.

Sample mode renders a blank form: unresolved tokens become empty, carry no
marker, and a unit suffix directly after them ("${shares}좌") is dropped.
"""
import logging
import re
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from fund_docs.templating.styles import StyleKind, wrap

logger = logging.getLogger(__name__)

VARIABLE_PATTERN = re.compile(r"\$\{([^}]+)\}")

# Token plus an optional unit suffix that is not the start of a longer word
_TOKEN_WITH_UNIT = re.compile(r"\$\{([^}]+)\}(\s*(?:좌|주|원)(?![가-힣]))?")

VALID_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_.]*$")


@dataclass(frozen=True)
class TemplateSegment:
    """A piece of template text: literal text or a variable reference."""

    kind: str  # 'text' | 'variable'
    value: str


def _is_present(value: Any) -> bool:
    return value is not None and str(value) != ""


def wrap_resolved_value(value: Any, preview: bool) -> str:
    """
    Mark a directly computed value (e.g. a table cell) as resolved.

    Used for values that never pass through ${} substitution.
    """
    text = "" if value is None else str(value)
    if preview and text:
        return wrap(text, StyleKind.RESOLVED)
    return text


def render_template_string(
    template: Optional[str],
    variables: Mapping[str, Any],
    preview: bool = False,
    sample: bool = False,
) -> str:
    """
    Substitute ${name} tokens.

    Args:
        template: Text containing ${name} tokens
        variables: Variable values; None or "" count as unresolved
        preview: Wrap substituted values in RESOLVED markers
        sample: Render unresolved tokens blank for an empty sample form

    Returns:
        Rendered text with style markers
    """
    if not template:
        return ""

    unresolved: list[str] = []

    def replace(match: re.Match) -> str:
        name = match.group(1).strip()
        unit = match.group(2) or ""
        value = variables.get(name)

        if _is_present(value):
            return wrap_resolved_value(value, preview) + unit

        unresolved.append(name)
        if sample:
            return ""
        token = template[match.start():match.end(1) + 1]
        return wrap(token, StyleKind.PROVISIONAL) + unit

    rendered = _TOKEN_WITH_UNIT.sub(replace, template)
    if unresolved:
        logger.debug(f"Unresolved template variables: {unresolved}")
    return rendered


def parse_template_text(text: Optional[str]) -> list[TemplateSegment]:
    """Split text into literal and variable segments, in order."""
    if not text:
        return []

    segments: list[TemplateSegment] = []
    position = 0
    for match in VARIABLE_PATTERN.finditer(text):
        if match.start() > position:
            segments.append(TemplateSegment("text", text[position:match.start()]))
        segments.append(TemplateSegment("variable", match.group(1).strip()))
        position = match.end()
    if position < len(text):
        segments.append(TemplateSegment("text", text[position:]))
    return segments


def extract_variables(text: Optional[str]) -> list[str]:
    """Unique variable names in order of first appearance."""
    names = [s.value for s in parse_template_text(text) if s.kind == "variable"]
    return list(dict.fromkeys(names))


def has_variables(text: Optional[str]) -> bool:
    return bool(text) and VARIABLE_PATTERN.search(text) is not None


def is_valid_variable(name: str, known: Optional[Iterable[str]] = None) -> bool:
    """Check a variable name is well-formed and, when given, one of the known names."""
    if not VALID_NAME.match(name or ""):
        return False
    if known is not None:
        return name in set(known)
    return True
