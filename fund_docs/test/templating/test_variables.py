"""
Tests for variable resolution (fund_docs/templating/variables.py)

Tests cover:
- Substitution in final and preview mode
- Unresolved tokens flagged as provisional
- Blank sample mode with unit suffix stripping
"""
from fund_docs.templating.styles import StyleKind, wrap
from fund_docs.templating.variables import (
    extract_variables,
    has_variables,
    is_valid_variable,
    parse_template_text,
    render_template_string,
    wrap_resolved_value,
)


class TestRenderTemplateString:
    """Tests for render_template_string()."""

    def test_substitutes_plainly(self):
        """Test values are substituted without markers outside preview."""
        result = render_template_string("조합명: ${fundName}", {"fundName": "제1호"})
        assert result == "조합명: 제1호"

    def test_preview_wraps_resolved(self):
        """Test preview wraps substituted values as resolved."""
        result = render_template_string("${fundName}", {"fundName": "제1호"}, preview=True)
        assert result == wrap("제1호", StyleKind.RESOLVED)

    def test_missing_token_flagged_provisional(self):
        """Test an unresolved token stays literal and is marked provisional."""
        result = render_template_string("성명: ${name}", {})
        assert result == "성명: " + wrap("${name}", StyleKind.PROVISIONAL)

    def test_empty_value_counts_as_missing(self):
        """Test empty strings are treated as unresolved."""
        result = render_template_string("${name}", {"name": ""})
        assert result == wrap("${name}", StyleKind.PROVISIONAL)

    def test_zero_is_a_value(self):
        """Test 0 is substituted rather than flagged."""
        assert render_template_string("${count}개", {"count": 0}) == "0개"

    def test_unit_suffix_kept_when_resolved(self):
        """Test unit suffixes stay after resolved values."""
        assert render_template_string("${shares}좌", {"shares": "10"}) == "10좌"

    def test_sample_mode_blanks_and_strips_units(self):
        """Test sample mode drops unresolved tokens and their unit suffix."""
        result = render_template_string("출자좌수: ${shares}좌, 금액: ${amount} 원", {}, sample=True)
        assert result == "출자좌수: , 금액: "

    def test_sample_mode_keeps_words_starting_with_unit(self):
        """Test a following word that merely starts with a unit syllable is kept."""
        result = render_template_string("${name}주소", {}, sample=True)
        assert result == "주소"

    def test_sample_mode_has_no_provisional_markers(self):
        """Test blank samples carry no provisional styling."""
        result = render_template_string("${a} ${b}", {"a": "x"}, sample=True)
        assert "<<PREVIEW>>" not in result
        assert result == "x "

    def test_empty_template(self):
        """Test None and empty strings render empty."""
        assert render_template_string(None, {}) == ""
        assert render_template_string("", {}) == ""


class TestWrapResolvedValue:
    """Tests for wrap_resolved_value()."""

    def test_preview(self):
        """Test computed values are wrapped in preview mode."""
        assert wrap_resolved_value(1000, preview=True) == wrap("1000", StyleKind.RESOLVED)

    def test_final(self):
        """Test computed values are plain outside preview."""
        assert wrap_resolved_value("a", preview=False) == "a"

    def test_empty_never_wrapped(self):
        """Test empty values are not wrapped."""
        assert wrap_resolved_value(None, preview=True) == ""


class TestTemplateParsing:
    """Tests for template text parsing helpers."""

    def test_parse_segments(self):
        """Test text splits into literal and variable segments."""
        segments = parse_template_text("a ${x} b")
        assert [(s.kind, s.value) for s in segments] == [
            ("text", "a "),
            ("variable", "x"),
            ("text", " b"),
        ]

    def test_extract_variables_unique_in_order(self):
        """Test variables are listed once, in order of appearance."""
        assert extract_variables("${b} ${a} ${b}") == ["b", "a"]

    def test_has_variables(self):
        """Test token detection."""
        assert has_variables("${x}")
        assert not has_variables("$x {x}")

    def test_is_valid_variable(self):
        """Test variable name validation."""
        assert is_valid_variable("fundName")
        assert not is_valid_variable("1abc")
        assert is_valid_variable("fundName", known=["fundName"])
        assert not is_valid_variable("other", known=["fundName"])
