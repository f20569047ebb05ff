"""
Document composition entry points.

generate_document_pdf() lays out a full template (optional title page, the
section tree, then every appendix) into one PDF and returns it together
with the page map of its repeating appendices. generate_combined_pdf()
composes a stand-alone appendix artifact such as a consent form bundle,
whose first member starts on page 1.

The PDF buffer is completed before anything is persisted; callers write
it to storage only after composition returns.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from fund_docs.core.exceptions import LayoutError
from fund_docs.pdf.appendix import PageMapEntry, TemplateLoader, appendix_composer
from fund_docs.pdf.fonts import load_fonts
from fund_docs.pdf.layout import SectionLayout
from fund_docs.pdf.page_writer import PageWriter
from fund_docs.templating.context import RenderContext
from fund_docs.templating.sections import AppendixDefinition, TemplateContent
from fund_docs.templating.template_store import TemplateRecord
from fund_docs.utils.progress import ProgressTracker

logger = logging.getLogger(__name__)

DOCUMENT_TITLES = {
    "lpa": "규약(안)",
    "lpa_consent_form": "규약 동의서",
    "personal_info_consent_form": "개인정보 수집·이용 동의서",
    "member_list": "조합원 명부",
}


@dataclass
class ComposedDocument:
    pdf_bytes: bytes
    page_map: list[PageMapEntry] = field(default_factory=list)
    page_count: int = 0

    def page_map_dicts(self) -> list[dict[str, Any]]:
        return [entry.to_dict() for entry in self.page_map]


def document_title(doc_type: str) -> str:
    return DOCUMENT_TITLES.get(doc_type, doc_type)


def _content_of(template: Union[TemplateRecord, TemplateContent]) -> TemplateContent:
    if isinstance(template, TemplateRecord):
        return template.content
    if isinstance(template, TemplateContent):
        return template
    raise LayoutError("Unsupported template object", details={"type": type(template).__name__})


def _new_writer(context: RenderContext, title: str) -> PageWriter:
    gp_names = ", ".join(m.name for m in context.gp_members)
    return PageWriter(
        load_fonts(),
        title=f"{context.fund.name} {title}",
        author=gp_names or None,
    )


def generate_document_pdf(
    template: Union[TemplateRecord, TemplateContent],
    context: RenderContext,
    *,
    title_page: bool = False,
    template_loader: Optional[TemplateLoader] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ComposedDocument:
    """
    Compose a full document.

    Args:
        template: Stored template or bare content
        context: Render context (fund, members, preview flag)
        title_page: Start with a cover page
        template_loader: Resolves appendix template_ref values
        cancel_event: Set to abort composition between members or sections

    Returns:
        ComposedDocument with the PDF bytes, page map and page count

    Raises:
        LayoutError: If fonts or the template tree cannot be laid out
        CompositionCancelled: If cancel_event was set
    """
    content = _content_of(template)
    title = document_title(content.doc_type)
    tracker = ProgressTracker(cancel_event=cancel_event, label=f"{content.doc_type} composition")

    writer = _new_writer(context, title)
    layout = SectionLayout(writer, tracker=tracker)
    if title_page:
        layout.render_title_page(context, document_title=title)
    layout.render_sections(content.sections, context)

    page_map: list[PageMapEntry] = []
    for definition in content.appendix:
        composer = appendix_composer(definition, writer, tracker=tracker, template_loader=template_loader)
        page_map.extend(composer.render(definition, context))

    pdf_bytes = writer.finish()
    logger.info(
        f"Composed {content.doc_type} for {context.fund.name}: "
        f"{writer.page_count} page(s), {len(page_map)} page map entries"
    )
    return ComposedDocument(pdf_bytes=pdf_bytes, page_map=page_map, page_count=writer.page_count)


def generate_combined_pdf(
    appendix: Union[AppendixDefinition, list[AppendixDefinition]],
    context: RenderContext,
    *,
    doc_type: str = "lpa_consent_form",
    template_loader: Optional[TemplateLoader] = None,
    cancel_event: Optional[threading.Event] = None,
) -> ComposedDocument:
    """
    Compose a stand-alone combined artifact from appendix definitions only.

    The first rendered page is page 1; each member's pages are recorded in
    the returned page map.
    """
    definitions = appendix if isinstance(appendix, list) else [appendix]
    tracker = ProgressTracker(cancel_event=cancel_event, label=f"{doc_type} combined")

    writer = _new_writer(context, document_title(doc_type))
    page_map: list[PageMapEntry] = []
    for definition in definitions:
        composer = appendix_composer(definition, writer, tracker=tracker, template_loader=template_loader)
        page_map.extend(composer.render(definition, context))

    pdf_bytes = writer.finish()
    logger.info(f"Composed combined {doc_type}: {writer.page_count} page(s), {len(page_map)} member(s)")
    return ComposedDocument(pdf_bytes=pdf_bytes, page_map=page_map, page_count=writer.page_count)
