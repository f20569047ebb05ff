"""
Tests for Korean legal numbering (fund_docs/templating/numbering.py)
"""
import pytest

from fund_docs.templating.numbering import (
    article_heading,
    chapter_heading,
    child_indent,
    citation_label,
    format_citation,
    number_text,
)


class TestFormatCitation:
    """Tests for format_citation()."""

    @pytest.mark.parametrize(
        "depth,ordinal,expected",
        [
            (0, 3, "제3장"),
            (1, 7, "제7조"),
            (2, 1, "①"),
            (2, 20, "⑳"),
            (2, 21, "(21)"),
            (3, 4, "4."),
            (4, 1, "가."),
            (4, 14, "하."),
            (4, 15, "[15]"),
            (5, 2, "2)"),
            (9, 11, "11)"),
        ],
    )
    def test_scheme_by_depth(self, depth, ordinal, expected):
        """Test the citation depends only on depth and ordinal."""
        assert format_citation(depth, ordinal) == expected

    @pytest.mark.parametrize("depth", [0, 1, 2, 3, 4, 5])
    def test_negative_ordinal_is_empty(self, depth):
        """Test unnumbered nodes have no citation at any depth."""
        assert format_citation(depth, -1) == ""

    def test_deterministic(self):
        """Test repeated calls give the same result."""
        assert format_citation(2, 5) == format_citation(2, 5)


class TestNumberText:
    """Tests for number_text()."""

    def test_paragraph_prefix(self):
        """Test depth-2 text is prefixed with its circled numeral."""
        assert number_text(2, 2, "내용") == "② 내용"

    def test_articles_are_not_prefixed(self):
        """Test depth 0 and 1 carry their number in the heading instead."""
        assert number_text(0, 1, "내용") == "내용"
        assert number_text(1, 3, "내용") == "내용"

    def test_unnumbered_text_unchanged(self):
        """Test a sentinel ordinal adds no prefix."""
        assert number_text(3, -1, "단서") == "단서"


class TestHeadings:
    """Tests for chapter and article headings."""

    def test_chapter_heading(self):
        """Test chapter heading layout."""
        assert chapter_heading(1, "총칙") == "제 1 장    총칙"

    def test_unnumbered_chapter_shows_title_only(self):
        """Test a sentinel chapter shows only its title."""
        assert chapter_heading(-1, "부칙") == "부칙"

    def test_article_heading(self):
        """Test article heading with and without a title."""
        assert article_heading(3, "출자") == "제3조 (출자)"
        assert article_heading(3, None) == "제3조"


class TestChildIndent:
    """Tests for child_indent()."""

    def test_depth_one_children_do_not_indent(self):
        """Test articles never add indentation."""
        assert child_indent(1, 3, 0, step=10) == 0

    def test_numbered_child_adds_step(self):
        """Test numbered nodes from depth 2 indent one step deeper."""
        assert child_indent(2, 1, 0, step=10) == 10
        assert child_indent(3, 2, 10, step=10) == 20

    def test_sentinel_child_inherits(self):
        """Test an unnumbered node keeps its parent's indentation."""
        assert child_indent(3, -1, 10, step=10) == 10
        assert child_indent(2, 0, 10, step=10) == 10


class TestCitationLabel:
    """Tests for citation_label()."""

    def test_units(self):
        """Test citation units per depth."""
        assert citation_label(1, 7) == "제7조"
        assert citation_label(2, 2) == "제2항"
        assert citation_label(3, 1) == "제1호"
        assert citation_label(4, 1) == "제1목"

    def test_negative(self):
        """Test unnumbered nodes have no label."""
        assert citation_label(1, -1) == ""
