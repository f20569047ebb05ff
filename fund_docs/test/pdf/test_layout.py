"""
Tests for page geometry (fund_docs/pdf/page_writer.py, layout.py, table.py)

Tests cover:
- Page number footers, none on the first page
- Table borders closed on every page a long table crosses
- Indentation of body text and appendix fields by depth
- Table width kept inside the content margin
"""
import io
from dataclasses import replace
from unittest import mock

import pytest
from pypdf import PdfReader

from fund_docs.pdf.appendix import FIELD_INDENT, RepeatingPageComposer
from fund_docs.pdf.fonts import load_fonts
from fund_docs.pdf.generator import generate_combined_pdf
from fund_docs.pdf.layout import SectionLayout
from fund_docs.pdf.page_writer import FOOTER_FONT_SIZE, PageWriter
from fund_docs.pdf.table import MemberTableRenderer, TABLE_SIDE_INSET
from fund_docs.templating.context import Member
from fund_docs.templating.sections import FieldSpec, TableConfig

OUTER_BORDER_WIDTH = 1


@pytest.fixture
def writer():
    return PageWriter(load_fonts())


@pytest.fixture
def table_config(member_table_columns):
    return TableConfig.from_dict({"columns": member_table_columns})


@pytest.fixture
def long_context(context, members):
    extra = tuple(
        Member(id=f"lp-x{i}", name=f"조합원{i:03d}", total_units=1, total_amount=1_000_000)
        for i in range(60)
    )
    return replace(context, members=members + extra)


def record_lines(writer):
    """Patch writer.draw_line to record (page, x1, y1, x2, y2, line_width) and still draw."""
    lines = []
    original = writer.draw_line

    def record(x1, y1, x2, y2, **kwargs):
        lines.append((writer.page_number, x1, y1, x2, y2, kwargs.get("line_width", 0.5)))
        return original(x1, y1, x2, y2, **kwargs)

    return lines, mock.patch.object(writer, "draw_line", side_effect=record)


class TestFooter:
    """Tests for page number footers."""

    def test_no_footer_on_first_page(self, writer):
        """Test pages 2 and 3 carry '- N -' and page 1 carries nothing."""
        strings = []
        original = writer.draw_string

        def record(x, baseline, text, **kwargs):
            strings.append((writer.page_number, x, baseline, text, kwargs.get("mark_body", True)))
            return original(x, baseline, text, **kwargs)

        with mock.patch.object(writer, "draw_string", side_effect=record):
            writer.draw_string(writer.margin, 70, "본문", size=11)
            writer.new_page()
            writer.new_page()

        footers = [(page, text) for page, _, _, text, body in strings if not body]
        assert footers == [(2, "- 2 -"), (3, "- 3 -")]

    def test_footer_position(self, writer):
        """Test the footer is centered at the footer offset above the bottom edge."""
        with mock.patch.object(writer, "draw_string", wraps=writer.draw_string) as draw_string:
            writer.new_page()

        x, baseline, text = draw_string.call_args.args
        width = writer.fonts.string_width(text, FOOTER_FONT_SIZE)
        assert x + width / 2 == pytest.approx(writer.width / 2)
        assert baseline == writer.height - writer.footer_offset

    def test_footers_in_combined_pdf(self, template_content, context):
        """Test a composed three-member artifact numbers pages 2 and 3 only."""
        footers = []
        original = PageWriter.draw_string

        def record(self, x, baseline, text, **kwargs):
            if not kwargs.get("mark_body", True):
                footers.append((self.page_number, text))
            return original(self, x, baseline, text, **kwargs)

        with mock.patch.object(PageWriter, "draw_string", autospec=True, side_effect=record):
            composed = generate_combined_pdf(template_content.appendix[0], context)

        assert footers == [(2, "- 2 -"), (3, "- 3 -")]
        assert len(PdfReader(io.BytesIO(composed.pdf_bytes)).pages) == 3


class TestTableBorders:
    """Tests for table borders across page breaks."""

    def test_outer_borders_closed_per_page(self, writer, table_config, long_context):
        """Test every page segment gets its own left and right border, top to last row."""
        writer.y = 300
        lines, patch = record_lines(writer)
        with patch:
            MemberTableRenderer(writer).render(table_config, long_context, writer.margin)

        assert writer.page_count >= 2
        outer = [line for line in lines if line[5] == OUTER_BORDER_WIDTH]
        pages = sorted({line[0] for line in outer})
        assert pages == list(range(1, writer.page_count + 1))

        for page in pages:
            segment = [line for line in outer if line[0] == page]
            assert len(segment) == 2
            (_, left_x, top, _, bottom, _), (_, right_x, right_top, _, right_bottom, _) = segment
            assert (top, bottom) == (right_top, right_bottom)
            assert top == (300 if page == 1 else writer.margin)
            assert bottom <= writer.max_y
            # Bottom rule closes the segment on the same page
            assert any(
                line[0] == page and line[2] == line[4] == bottom and line[1] == left_x and line[3] == right_x
                for line in lines
            )

    def test_short_table_single_segment(self, writer, table_config, context):
        """Test a table that fits is framed once."""
        lines, patch = record_lines(writer)
        with patch:
            MemberTableRenderer(writer).render(table_config, context, writer.margin)
        assert [line[0] for line in lines if line[5] == OUTER_BORDER_WIDTH] == [1, 1]


class TestTableWidth:
    """Tests for the table's horizontal extent."""

    def test_unindented_width(self, writer):
        """Test a table at the margin keeps the side inset."""
        assert MemberTableRenderer(writer).width_at(writer.margin) == pytest.approx(
            writer.width - TABLE_SIDE_INSET * 2
        )

    def test_indented_table_stays_inside_margin(self, writer, table_config, context):
        """Test a nested table's right border does not pass the content margin."""
        x = writer.margin + 20
        lines, patch = record_lines(writer)
        with patch:
            MemberTableRenderer(writer).render(table_config, context, x)

        outer = [line for line in lines if line[5] == OUTER_BORDER_WIDTH]
        assert outer[0][1] == x
        assert outer[1][1] == pytest.approx(writer.width - writer.margin)


class TestIndentation:
    """Tests for horizontal offsets by depth."""

    def _body_x(self, layout, template_content, context):
        with mock.patch.object(layout.text, "draw", wraps=layout.text.draw) as draw:
            layout.render_sections(template_content.sections, context)
        return [(c.args[0], c.args[1]) for c in draw.call_args_list if isinstance(c.args[0], str)]

    def test_body_indent_by_depth(self, writer, template_content, context):
        """Test depth 0 and 1 text sit at the margin and each deeper level adds one step."""
        layout = SectionLayout(writer, indent_size=10)
        drawn = self._body_x(layout, template_content, context)

        def x_of(fragment):
            return next(x for text, x in drawn if fragment in text)

        margin = writer.margin
        assert x_of("이라 한다") == margin
        assert x_of("사업을 목적으로 한다") == margin
        assert x_of("벤처기업에 대한 투자") == margin + 10
        assert x_of("목적 달성에 필요한 사업") == margin + 10
        assert x_of("부대 사업") == margin + 20
        assert x_of("시행한다") == margin

    def test_appendix_fields_indented(self, writer, context, members):
        """Test appendix fields are drawn one field indent in from the margin."""
        composer = RepeatingPageComposer(writer)
        composer.text = mock.Mock()
        composer.render_fields([FieldSpec(label="성명", variable="name")], context.with_entity(members[1]))

        text, x, width = composer.text.draw.call_args.args[:3]
        assert text == "성명 : 홍길동"
        assert x == writer.margin + FIELD_INDENT
        assert width == writer.content_width - FIELD_INDENT
