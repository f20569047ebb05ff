"""
Korean legal numbering.

Citation scheme is a pure function of tree depth:

    depth 0  제N장          chapter
    depth 1  제N조          article
    depth 2  ① .. ⑳, (N)   paragraph (항)
    depth 3  N.             item (호)
    depth 4  가. .. 하., [N] sub-item (목)
    deeper   N)

A negative ordinal suppresses the citation at any depth.
"""
from typing import Optional

from fund_docs.core.config import INDENT_SIZE

CIRCLED_NUMERALS = "①②③④⑤⑥⑦⑧⑨⑩⑪⑫⑬⑭⑮⑯⑰⑱⑲⑳"
JAMO_LETTERS = "가나다라마바사아자차카타파하"

# Unit names used in human-readable citations ("제7조 제2항")
CITATION_UNITS = ("장", "조", "항", "호", "목")


def format_citation(depth: int, ordinal: int) -> str:
    """
    Format the legal citation for a node.

    Args:
        depth: Tree depth (root sections are depth 0)
        ordinal: Semantic number of the node; negative means unnumbered

    Returns:
        Citation string, or "" for unnumbered nodes
    """
    if ordinal < 0:
        return ""
    if depth == 0:
        return f"제{ordinal}장"
    if depth == 1:
        return f"제{ordinal}조"
    if depth == 2:
        if 1 <= ordinal <= len(CIRCLED_NUMERALS):
            return CIRCLED_NUMERALS[ordinal - 1]
        return f"({ordinal})"
    if depth == 3:
        return f"{ordinal}."
    if depth == 4:
        if 1 <= ordinal <= len(JAMO_LETTERS):
            return f"{JAMO_LETTERS[ordinal - 1]}."
        return f"[{ordinal}]"
    return f"{ordinal})"


def number_text(depth: int, ordinal: int, text: str) -> str:
    """Prefix body text with its citation. Chapters and articles carry the number in the heading."""
    if depth < 2:
        return text
    citation = format_citation(depth, ordinal)
    if not citation:
        return text
    return f"{citation} {text}"


def chapter_heading(ordinal: int, title: Optional[str]) -> str:
    if ordinal < 0:
        return title or ""
    return f"제 {ordinal} 장    {title or ''}".rstrip()


def article_heading(ordinal: int, title: Optional[str]) -> str:
    if ordinal < 0:
        return title or ""
    if title:
        return f"제{ordinal}조 ({title})"
    return f"제{ordinal}조"


def child_indent(child_depth: int, child_ordinal: int, indent: float, step: float = INDENT_SIZE) -> float:
    """
    Indentation for a child node.

    Indentation starts accumulating at depth 2 and only grows for numbered
    children; an unnumbered child inherits the parent's indentation.
    """
    if child_depth >= 2 and child_ordinal > 0:
        return indent + step
    return indent


def citation_unit(depth: int) -> str:
    """Unit word for a depth ("장", "조", "항", "호", "목"); deeper levels reuse "목"."""
    return CITATION_UNITS[min(depth, len(CITATION_UNITS) - 1)]


def citation_label(depth: int, ordinal: int) -> str:
    """Citation as used in prose and change listings: "제3조", "제2항", "제1호"."""
    if ordinal < 0:
        return ""
    return f"제{ordinal}{citation_unit(depth)}"
