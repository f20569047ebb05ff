"""
Template content model.

A template is a tree of Section nodes plus an optional list of appendix
definitions. Depth in the tree is positional (root sections are depth 0)
and drives the legal citation scheme; each node's ordinal is its semantic
number, independent of its position among siblings.

Stored JSON uses the keys produced by to_dict(). from_dict() also accepts
the legacy stored keys (index, sub, type, tableConfig, headers, renderKind,
filter, template.content, template.sections) so older template rows keep
loading.
"""
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from fund_docs.core.exceptions import ValidationError

SECTION_KINDS = ("plain", "table")
RENDER_KINDS = ("repeating-page", "repeating-section", "single-sample")
ENTITY_FILTERS = ("gp", "lp", "all", "individual")
ELEMENT_KINDS = ("paragraph", "fields", "spacer", "date")
ALIGNMENTS = ("left", "center", "right", "justify")

_LEGACY_FILTERS = {"gpMembers": "gp", "lpMembers": "lp", "allMembers": "all"}
_LEGACY_ELEMENT_KINDS = {"form-fields": "fields", "date-field": "date"}


def _require_int(data: dict, key: str, fallback_key: Optional[str] = None) -> int:
    value = data.get(key)
    if value is None and fallback_key:
        value = data.get(fallback_key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(
            "Section ordinal must be an integer",
            field_name=key,
            field_value=value,
        )
    return value


@dataclass
class TableColumn:
    """One table column; width is a relative ratio scaled to the content width."""

    label: str
    property: str
    width: float = 1.0
    align: str = "left"
    header_align: str = "center"

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "property": self.property,
            "width": self.width,
            "align": self.align,
            "header_align": self.header_align,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableColumn":
        align = data.get("align", "left")
        header_align = data.get("header_align", data.get("headerAlign", "center"))
        for name, value in (("align", align), ("header_align", header_align)):
            if value not in ALIGNMENTS:
                raise ValidationError("Unknown column alignment", field_name=name, field_value=value)
        return cls(
            label=data.get("label", ""),
            property=data.get("property", ""),
            width=float(data.get("width", 1.0)),
            align=align,
            header_align=header_align,
        )


@dataclass
class TableConfig:
    table_type: str = "members"
    columns: list[TableColumn] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "table_type": self.table_type,
            "columns": [column.to_dict() for column in self.columns],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TableConfig":
        columns = data.get("columns", data.get("headers", []))
        return cls(
            table_type=data.get("table_type", data.get("tableType", "members")),
            columns=[TableColumn.from_dict(c) for c in columns],
        )


@dataclass
class Section:
    """A node of the legal document tree."""

    ordinal: int
    title: Optional[str] = None
    text: Optional[str] = None
    kind: str = "plain"
    table_config: Optional[TableConfig] = None
    children: list["Section"] = field(default_factory=list)

    @property
    def is_numbered(self) -> bool:
        return self.ordinal >= 0

    @property
    def is_table(self) -> bool:
        return self.kind == "table"

    def walk(self, depth: int = 0) -> Iterator[tuple[int, "Section"]]:
        """Yield (depth, node) pairs depth-first, starting with this node."""
        yield depth, self
        for child in self.children:
            yield from child.walk(depth + 1)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ordinal": self.ordinal,
            "title": self.title,
            "text": self.text,
            "kind": self.kind,
            "table_config": self.table_config.to_dict() if self.table_config else None,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Section":
        if not isinstance(data, dict):
            raise ValidationError("Section must be an object", field_value=type(data).__name__)

        kind = data.get("kind", data.get("type")) or "plain"
        if kind not in SECTION_KINDS:
            raise ValidationError("Unknown section kind", field_name="kind", field_value=kind)

        raw_table = data.get("table_config", data.get("tableConfig"))
        children = data.get("children", data.get("sub")) or []
        if not isinstance(children, list):
            raise ValidationError("Section children must be a list", field_name="children")

        return cls(
            ordinal=_require_int(data, "ordinal", "index"),
            title=data.get("title"),
            text=data.get("text"),
            kind=kind,
            table_config=TableConfig.from_dict(raw_table) if raw_table else None,
            children=[cls.from_dict(child) for child in children],
        )


@dataclass
class FieldCondition:
    """Show a field only when the current entity's value matches."""

    key: str
    equals: Optional[Any] = None
    not_equals: Optional[Any] = None

    def matches(self, values: dict[str, Any]) -> bool:
        value = values.get(self.key)
        if self.equals is not None and value != self.equals:
            return False
        if self.not_equals is not None and value == self.not_equals:
            return False
        return True

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "equals": self.equals, "not_equals": self.not_equals}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldCondition":
        if not data.get("key"):
            raise ValidationError("Field condition needs a key", field_name="condition")
        return cls(key=data["key"], equals=data.get("equals"), not_equals=data.get("not_equals"))


@dataclass
class FieldSpec:
    label: str
    variable: str
    requires_seal: bool = False
    condition: Optional[FieldCondition] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "label": self.label,
            "variable": self.variable,
            "requires_seal": self.requires_seal,
            "condition": self.condition.to_dict() if self.condition else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FieldSpec":
        condition = data.get("condition")
        return cls(
            label=data.get("label", ""),
            variable=data.get("variable", ""),
            requires_seal=bool(data.get("requires_seal", data.get("seal", False))),
            condition=FieldCondition.from_dict(condition) if condition else None,
        )


@dataclass
class AppendixElement:
    kind: str
    text: Optional[str] = None
    align: str = "left"
    lines: int = 1
    format: Optional[str] = None
    fields: list[FieldSpec] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "text": self.text,
            "align": self.align,
            "lines": self.lines,
            "format": self.format,
            "fields": [f.to_dict() for f in self.fields],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppendixElement":
        kind = data.get("kind", data.get("type"))
        kind = _LEGACY_ELEMENT_KINDS.get(kind, kind)
        if kind not in ELEMENT_KINDS:
            raise ValidationError("Unknown appendix element kind", field_name="kind", field_value=kind)
        align = data.get("align") or "left"
        if align not in ALIGNMENTS:
            raise ValidationError("Unknown element alignment", field_name="align", field_value=align)
        return cls(
            kind=kind,
            text=data.get("text"),
            align=align,
            lines=int(data.get("lines") or 1),
            format=data.get("format"),
            fields=[FieldSpec.from_dict(f) for f in data.get("fields") or []],
        )


@dataclass
class AppendixPage:
    """
    One page emitted per entity; header and title repeat on every page.

    In a repeating-section appendix the first page's header and title are
    drawn once and the elements of every page form each member's block.
    """

    header: Optional[str] = None
    title: Optional[str] = None
    elements: list[AppendixElement] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "header": self.header,
            "title": self.title,
            "elements": [e.to_dict() for e in self.elements],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppendixPage":
        header = data.get("header")
        if isinstance(header, dict):
            header = header.get("text")
        elements = data.get("elements", data.get("content")) or []
        if not elements and data.get("sections"):
            elements = _legacy_section_elements(data["sections"])
        return cls(
            header=header,
            title=data.get("title"),
            elements=[AppendixElement.from_dict(e) for e in elements],
        )


def _legacy_section_elements(sections: list[dict[str, Any]]) -> list[dict[str, Any]]:
    # Stored repeating-section blocks: [{title, fields}] -> paragraph + fields
    elements = []
    for block in sections:
        if block.get("title"):
            elements.append({"kind": "paragraph", "text": block["title"]})
        elements.append({"kind": "fields", "fields": block.get("fields") or []})
    return elements


@dataclass
class AppendixDefinition:
    id: str
    title: Optional[str] = None
    render_kind: str = "repeating-page"
    entity_filter: str = "all"
    pages: list[AppendixPage] = field(default_factory=list)
    template_ref: Optional[str] = None

    @property
    def fields(self) -> list[FieldSpec]:
        """All field specs across pages, in render order."""
        return [
            spec
            for page in self.pages
            for element in page.elements
            if element.kind == "fields"
            for spec in element.fields
        ]

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "render_kind": self.render_kind,
            "entity_filter": self.entity_filter,
            "pages": [p.to_dict() for p in self.pages],
            "template_ref": self.template_ref,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppendixDefinition":
        render_kind = data.get("render_kind", data.get("renderKind", data.get("type", "repeating-page")))
        if render_kind not in RENDER_KINDS:
            raise ValidationError("Unknown appendix render kind", field_name="render_kind", field_value=render_kind)

        entity_filter = data.get("entity_filter", data.get("filter", "all"))
        entity_filter = _LEGACY_FILTERS.get(entity_filter, entity_filter)
        if entity_filter not in ENTITY_FILTERS:
            raise ValidationError("Unknown entity filter", field_name="entity_filter", field_value=entity_filter)

        if "pages" in data:
            pages = [AppendixPage.from_dict(p) for p in data["pages"] or []]
        elif "template" in data:
            pages = [AppendixPage.from_dict(data["template"] or {})]
        else:
            pages = []

        return cls(
            id=str(data.get("id", "")),
            title=data.get("title"),
            render_kind=render_kind,
            entity_filter=entity_filter,
            pages=pages,
            template_ref=data.get("template_ref", data.get("templateRef")),
        )


@dataclass
class TemplateContent:
    doc_type: str
    sections: list[Section] = field(default_factory=list)
    appendix: list[AppendixDefinition] = field(default_factory=list)

    def walk(self) -> Iterator[tuple[int, Section]]:
        for section in self.sections:
            yield from section.walk()

    def to_dict(self) -> dict[str, Any]:
        return {
            "doc_type": self.doc_type,
            "sections": [s.to_dict() for s in self.sections],
            "appendix": [a.to_dict() for a in self.appendix],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], doc_type: Optional[str] = None) -> "TemplateContent":
        if not isinstance(data, dict):
            raise ValidationError("Template content must be an object", field_value=type(data).__name__)
        resolved_type = data.get("doc_type", data.get("type")) or doc_type
        if not resolved_type:
            raise ValidationError("Template content has no document type", field_name="doc_type")
        return cls(
            doc_type=resolved_type,
            sections=[Section.from_dict(s) for s in data.get("sections") or []],
            appendix=[AppendixDefinition.from_dict(a) for a in data.get("appendix") or []],
        )
