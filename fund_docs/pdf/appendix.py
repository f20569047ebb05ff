"""
Appendix composition (별지).

repeating-page: for each qualifying member, every page of the appendix
definition is started fresh, the member is bound into a new render context
and the page's header, title and elements are drawn. The first page number
and page count of each member are recorded in the page map, which is what
later allows a member's pages to be cut out of the combined PDF.

repeating-section: one heading, then every member's block on shared pages.
single-sample: one blank copy of the form.
"""
import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

from fund_docs.core.config import BODY_FONT_SIZE
from fund_docs.core.exceptions import LayoutError, TemplateNotFoundError
from fund_docs.pdf.layout import line_advance
from fund_docs.pdf.page_writer import PageWriter
from fund_docs.pdf.styled_text import StyledTextRenderer
from fund_docs.templating.context import Member, RenderContext, sort_members
from fund_docs.templating.sections import (
    AppendixDefinition,
    AppendixElement,
    AppendixPage,
    FieldSpec,
    TemplateContent,
)
from fund_docs.templating.variables import extract_variables, has_variables
from fund_docs.utils.progress import ProgressTracker

logger = logging.getLogger(__name__)

HEADER_FONT_SIZE = 10
TITLE_FONT_SIZE = 16
FIELD_INDENT = 20
FIELD_LINE_GAP = 0
SEAL_SUFFIX = "    (인)"
DEFAULT_DATE_TEXT = "년    월    일"
SECTION_BLOCK_GAP = 2
ROSTER_ENTITY_PREFIX = "appendix-"

BIRTH_DATE_LABEL = "생년월일"
BUSINESS_NUMBER_LABEL = "사업자번호"

TemplateLoader = Callable[[str], TemplateContent]


@dataclass
class PageMapEntry:
    """Pages of one member inside a combined PDF (1-based)."""

    entity_id: str
    entity_name: str
    start_page: int
    page_count: int

    @property
    def end_page(self) -> int:
        return self.start_page + self.page_count - 1

    @property
    def page_numbers(self) -> list[int]:
        return list(range(self.start_page, self.end_page + 1))

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "start_page": self.start_page,
            "page_count": self.page_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PageMapEntry":
        return cls(
            entity_id=str(data["entity_id"]),
            entity_name=data.get("entity_name", ""),
            start_page=int(data["start_page"]),
            page_count=int(data.get("page_count", 1)),
        )


def filter_entities(members: list[Member], entity_filter: str) -> list[Member]:
    """
    Select the members an appendix repeats over, in display-name order.

    'individual' selects members that are natural persons.
    """
    if entity_filter == "gp":
        selected = [m for m in members if m.is_gp]
    elif entity_filter == "lp":
        selected = [m for m in members if not m.is_gp]
    elif entity_filter == "all":
        selected = list(members)
    elif entity_filter == "individual":
        selected = [m for m in members if not m.is_corporate]
    else:
        raise LayoutError("Unknown entity filter", details={"entity_filter": entity_filter})
    return sort_members(selected)


def field_template(spec: FieldSpec) -> str:
    """A field's variable may be a bare name or template text."""
    if has_variables(spec.variable):
        return spec.variable
    return "${" + spec.variable + "}"


def field_label(spec: FieldSpec, member: Optional[Member]) -> str:
    if spec.label == BIRTH_DATE_LABEL and member is not None and member.is_corporate:
        return BUSINESS_NUMBER_LABEL
    return spec.label


def merge_external(definition: AppendixDefinition, loader: Optional[TemplateLoader]) -> AppendixDefinition:
    """
    Fill an appendix that references shared boilerplate.

    The definition's own pages win; a definition without pages takes the
    pages (and missing title) of the referenced template's first appendix.

    Raises:
        LayoutError: If the reference cannot be loaded
    """
    if not definition.template_ref or definition.pages:
        return definition
    if loader is None:
        raise LayoutError(
            "Appendix references an external template but no loader was given",
            details={"appendix": definition.id, "template_ref": definition.template_ref},
        )
    try:
        external = loader(definition.template_ref)
    except TemplateNotFoundError as e:
        raise LayoutError(
            "External appendix template not found",
            details={"appendix": definition.id, "template_ref": definition.template_ref, "reason": str(e)},
        )
    if not external.appendix:
        raise LayoutError(
            "External template has no appendix pages",
            details={"template_ref": definition.template_ref},
        )
    source = external.appendix[0]
    logger.debug(f"Merged external template {definition.template_ref} into appendix {definition.id}")
    return replace(definition, pages=list(source.pages), title=definition.title or source.title)


class RepeatingPageComposer:
    """
    Renders appendix definitions and records the page map.

    Usage:
        composer = RepeatingPageComposer(writer)
        entries = composer.render(definition, context)
    """

    def __init__(
        self,
        writer: PageWriter,
        tracker: Optional[ProgressTracker] = None,
        template_loader: Optional[TemplateLoader] = None,
    ):
        self.writer = writer
        self.text = StyledTextRenderer(writer)
        self.tracker = tracker or ProgressTracker(enabled=False, label="appendix pages")
        self.template_loader = template_loader
        self._pages_started = 0

    def render(self, definition: AppendixDefinition, context: RenderContext) -> list[PageMapEntry]:
        """
        Render one appendix definition.

        Returns:
            Page map entries, one per rendered member (empty for samples)

        Raises:
            LayoutError: If the appendix has no pages to render
            CompositionCancelled: If the tracker's cancel event is set
        """
        definition = merge_external(definition, self.template_loader)
        if not definition.pages:
            raise LayoutError("Appendix has no pages", details={"appendix": definition.id})

        if definition.render_kind == "single-sample":
            self.render_sample(definition, context)
            return []

        members = filter_entities(list(context.members), definition.entity_filter)
        if not members:
            logger.info(f"Appendix {definition.id}: no members match filter {definition.entity_filter}")
            return []

        entries = self.render_members(definition, context, members)
        logger.info(f"Appendix {definition.id}: rendered {len(members)} member(s)")
        return entries

    def render_members(
        self,
        definition: AppendixDefinition,
        context: RenderContext,
        members: list[Member],
    ) -> list[PageMapEntry]:
        """Every page of the definition for each member in turn; one entry per member."""
        entries = []
        self.tracker.start(len(members))
        for member in members:
            self.tracker.checkpoint()
            entries.append(self.render_entity(definition, context.with_entity(member), member))
            self.tracker.update()
        self.tracker.finish()
        return entries

    def render_entity(self, definition: AppendixDefinition, context: RenderContext, member: Member) -> PageMapEntry:
        start_page = None
        for page in definition.pages:
            page_number = self._begin_page()
            if start_page is None:
                start_page = page_number
            self.render_page(page, context)
        return PageMapEntry(
            entity_id=member.id,
            entity_name=member.name,
            start_page=start_page,
            page_count=self.writer.page_number - start_page + 1,
        )

    def render_sample(self, definition: AppendixDefinition, context: RenderContext):
        """One blank copy of the form: no member bound, placeholders left empty."""
        sample = context.blank_sample()
        for page in definition.pages:
            self._begin_page()
            self.render_page(page, sample)

    def _begin_page(self) -> int:
        # Only the first appendix page may reuse a blank page; later pages always break
        self._pages_started += 1
        if self._pages_started == 1:
            return self.writer.start_page()
        return self.writer.new_page()

    def render_page(self, page: AppendixPage, context: RenderContext):
        self.render_heading(page, context)
        for element in page.elements:
            self.render_element(element, context)

    def render_heading(self, page: AppendixPage, context: RenderContext):
        writer = self.writer
        if page.header:
            self.text.draw(context.resolve(page.header), writer.margin, writer.content_width, HEADER_FONT_SIZE)
            writer.move_down(line_advance(HEADER_FONT_SIZE, 2))
        if page.title:
            self.text.draw(
                context.resolve(page.title),
                writer.margin,
                writer.content_width,
                TITLE_FONT_SIZE,
                align="center",
            )
            writer.move_down(line_advance(TITLE_FONT_SIZE, 2))

    def render_element(self, element: AppendixElement, context: RenderContext):
        writer = self.writer
        if element.kind == "paragraph":
            self.text.draw(
                context.resolve(element.text or ""),
                writer.margin,
                writer.content_width,
                BODY_FONT_SIZE,
                align=element.align,
            )
            writer.move_down(line_advance(BODY_FONT_SIZE))
        elif element.kind == "fields":
            self.render_fields(element.fields, context)
        elif element.kind == "spacer":
            writer.move_down(line_advance(BODY_FONT_SIZE, element.lines))
        elif element.kind == "date":
            text = context.resolve(element.format) if element.format else DEFAULT_DATE_TEXT
            self.text.draw(text, writer.margin, writer.content_width, BODY_FONT_SIZE, align="center")
            writer.move_down(line_advance(BODY_FONT_SIZE))

    def render_fields(self, fields: list[FieldSpec], context: RenderContext):
        writer = self.writer
        member = context.current_member
        values = member.condition_values() if member else {}
        x = writer.margin + FIELD_INDENT
        width = writer.content_width - FIELD_INDENT

        for spec in fields:
            if spec.condition is not None and member is not None and not spec.condition.matches(values):
                continue
            template = field_template(spec)
            if spec.requires_seal and not context.preview and not context.is_blank_sample:
                self._require_resolved(spec, template, context)
            value = context.resolve(template)
            line = f"{field_label(spec, member)} : {value}"
            if spec.requires_seal:
                line += SEAL_SUFFIX
            self.text.draw(line, x, width, BODY_FONT_SIZE, line_gap=FIELD_LINE_GAP)
            writer.move_down(line_advance(BODY_FONT_SIZE, 0.5))

    @staticmethod
    def _require_resolved(spec: FieldSpec, template: str, context: RenderContext):
        # Sealed fields must resolve in a final render
        variables = context.variables()
        missing = [name for name in extract_variables(template) if variables.get(name) in (None, "")]
        if missing:
            member = context.current_member
            raise LayoutError(
                "Required appendix field is unresolved",
                details={
                    "field": spec.label,
                    "variables": missing,
                    "entity_id": member.id if member else None,
                },
            )


class RepeatingSectionComposer(RepeatingPageComposer):
    """
    Renders a 'repeating-section' appendix (별지 1 style).

    The first page's header and title are drawn once; then each member's
    block of elements follows on the same flow, breaking pages as needed.
    The pages are shared by all members, so the whole roster is recorded
    as a single page map entry keyed by the appendix.
    """

    def render_members(
        self,
        definition: AppendixDefinition,
        context: RenderContext,
        members: list[Member],
    ) -> list[PageMapEntry]:
        start_page = self._begin_page()
        self.render_heading(definition.pages[0], context)

        self.tracker.start(len(members))
        for member in members:
            self.tracker.checkpoint()
            self.render_block(definition, context.with_entity(member))
            self.tracker.update()
        self.tracker.finish()

        return [PageMapEntry(
            entity_id=roster_entity_id(definition),
            entity_name=definition.title or definition.pages[0].title or "",
            start_page=start_page,
            page_count=self.writer.page_number - start_page + 1,
        )]

    def render_block(self, definition: AppendixDefinition, context: RenderContext):
        for page in definition.pages:
            for element in page.elements:
                self.render_element(element, context)
        self.writer.move_down(line_advance(BODY_FONT_SIZE, SECTION_BLOCK_GAP))


def roster_entity_id(definition: AppendixDefinition) -> str:
    return f"{ROSTER_ENTITY_PREFIX}{definition.id}"


def appendix_composer(
    definition: AppendixDefinition,
    writer: PageWriter,
    tracker: Optional[ProgressTracker] = None,
    template_loader: Optional[TemplateLoader] = None,
) -> RepeatingPageComposer:
    """Composer for the definition's render kind."""
    if definition.render_kind == "repeating-section":
        composer_class = RepeatingSectionComposer
    else:
        composer_class = RepeatingPageComposer
    return composer_class(writer, tracker=tracker, template_loader=template_loader)
