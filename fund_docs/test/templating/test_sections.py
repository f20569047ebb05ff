"""
Tests for the template content model (fund_docs/templating/sections.py)
"""
import pytest

from fund_docs.core.exceptions import ValidationError
from fund_docs.templating.sections import AppendixDefinition, Section, TemplateContent


class TestSection:
    """Tests for Section parsing."""

    def test_from_dict(self):
        """Test a nested section parses with positional depth."""
        section = Section.from_dict({
            "ordinal": 1,
            "title": "총칙",
            "children": [{"ordinal": 1, "text": "a", "children": [{"ordinal": 2, "text": "b"}]}],
        })
        depths = [(depth, node.ordinal) for depth, node in section.walk()]
        assert depths == [(0, 1), (1, 1), (2, 2)]

    def test_legacy_keys(self):
        """Test older stored keys still load."""
        section = Section.from_dict({
            "index": 4,
            "type": "table",
            "tableConfig": {"headers": [{"label": "성명", "property": "name", "headerAlign": "left"}]},
            "sub": [{"index": 1, "text": "x"}],
        })
        assert section.ordinal == 4
        assert section.is_table
        assert section.table_config.columns[0].header_align == "left"
        assert section.children[0].ordinal == 1

    def test_unnumbered(self):
        """Test negative ordinals mark unnumbered sections."""
        assert not Section(ordinal=-1, title="부칙").is_numbered
        assert Section(ordinal=0).is_numbered

    @pytest.mark.parametrize("ordinal", [None, "1", 1.5, True])
    def test_ordinal_must_be_integer(self, ordinal):
        """Test non-integer ordinals are rejected."""
        with pytest.raises(ValidationError):
            Section.from_dict({"ordinal": ordinal, "text": "x"})

    def test_unknown_kind(self):
        """Test unknown section kinds are rejected."""
        with pytest.raises(ValidationError):
            Section.from_dict({"ordinal": 1, "kind": "image"})

    def test_unknown_alignment(self):
        """Test column alignments are validated."""
        with pytest.raises(ValidationError):
            Section.from_dict({
                "ordinal": 1,
                "kind": "table",
                "table_config": {"columns": [{"label": "a", "property": "name", "align": "middle"}]},
            })


class TestAppendixDefinition:
    """Tests for appendix definitions."""

    def test_legacy_filter_and_template(self):
        """Test legacy filter names and single-page template key."""
        definition = AppendixDefinition.from_dict({
            "id": 2,
            "renderKind": "repeating-page",
            "filter": "lpMembers",
            "template": {
                "header": {"text": "[별지 2]"},
                "content": [{"type": "form-fields", "fields": [{"label": "성명", "variable": "name", "seal": True}]}],
            },
        })
        assert definition.id == "2"
        assert definition.entity_filter == "lp"
        assert definition.pages[0].header == "[별지 2]"
        assert definition.pages[0].elements[0].kind == "fields"
        assert definition.fields[0].requires_seal

    def test_legacy_repeating_section(self):
        """Test stored repeating-section blocks load as paragraph and fields elements."""
        definition = AppendixDefinition.from_dict({
            "id": "1",
            "type": "repeating-section",
            "filter": "allMembers",
            "template": {
                "title": "조합원 명부",
                "sections": [
                    {"title": "조합원", "fields": [{"label": "성명", "variable": "${name}", "seal": True}]},
                    {"fields": [{"label": "주소", "variable": "${address}"}]},
                ],
            },
        })
        assert definition.render_kind == "repeating-section"
        assert [e.kind for e in definition.pages[0].elements] == ["paragraph", "fields", "fields"]
        assert definition.pages[0].elements[0].text == "조합원"
        assert [f.label for f in definition.fields] == ["성명", "주소"]

    def test_template_ref(self):
        """Test external references are kept."""
        definition = AppendixDefinition.from_dict({"id": "3", "templateRef": "lpa-consent-form-template"})
        assert definition.template_ref == "lpa-consent-form-template"
        assert definition.pages == []

    def test_unknown_filter(self):
        """Test unknown entity filters are rejected."""
        with pytest.raises(ValidationError):
            AppendixDefinition.from_dict({"id": "1", "entity_filter": "investors"})

    def test_unknown_render_kind(self):
        """Test unknown render kinds are rejected."""
        with pytest.raises(ValidationError):
            AppendixDefinition.from_dict({"id": "1", "render_kind": "table"})


class TestTemplateContent:
    """Tests for TemplateContent."""

    def test_round_trip(self, template_dict):
        """Test to_dict output parses back to the same tree."""
        content = TemplateContent.from_dict(template_dict)
        assert TemplateContent.from_dict(content.to_dict()).to_dict() == content.to_dict()

    def test_doc_type_fallback(self):
        """Test the doc type argument is used when the content has none."""
        content = TemplateContent.from_dict({"sections": []}, doc_type="lpa")
        assert content.doc_type == "lpa"

    def test_doc_type_required(self):
        """Test content without any doc type is rejected."""
        with pytest.raises(ValidationError):
            TemplateContent.from_dict({"sections": []})

    def test_walk(self, template_content):
        """Test walk visits every node depth-first."""
        titles = [node.title for depth, node in template_content.walk() if depth == 0]
        assert titles == ["총칙", "조합원", "부칙"]
