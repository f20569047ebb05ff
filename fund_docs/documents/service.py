"""
Document service: save combined artifacts and serve per-member extracts.

save_combined() composes (or takes) a combined PDF, writes it to blob
storage and records a parent row with the page map plus one metadata-only
child row per member. A member's own PDF is cut from the parent artifact
the first time it is requested and the child row remembers its path, so
the document is never recomposed from the template.

The blob write and the row inserts are not one transaction. If a row
insert fails after the blob was written, the blob and any rows already
inserted are removed before the error is re-raised.
"""
import logging
import threading
from datetime import datetime
from typing import Callable, Optional, Union

from sqlalchemy.engine import Engine

from fund_docs.core.exceptions import DatabaseError, FundDocsError, StorageError, ValidationError
from fund_docs.documents.blob_store import BlobStore, LocalBlobStore
from fund_docs.documents.document_store import DocumentStore, GeneratedDocument, new_document_id
from fund_docs.pdf.appendix import TemplateLoader
from fund_docs.pdf.generator import ComposedDocument, generate_document_pdf
from fund_docs.pdf.splitter import extract_pages
from fund_docs.templating.context import RenderContext
from fund_docs.templating.sections import TemplateContent
from fund_docs.templating.template_store import TemplateRecord

logger = logging.getLogger(__name__)


def artifact_path_for(fund_id: Optional[str], doc_type: str, document_id: str) -> str:
    return f"{fund_id or 'global'}/{doc_type}/{document_id}.pdf"


def child_artifact_path_for(parent: GeneratedDocument, child: GeneratedDocument) -> str:
    return f"{parent.fund_id or 'global'}/{parent.doc_type}/{parent.id}/{child.entity_id}.pdf"


class DocumentService:
    """
    Usage:
        service = DocumentService(engine=engine, blob_store=LocalBlobStore(root))
        parent = service.save_combined(context, template=record)
        path = service.get_entity_artifact(child_id)
    """

    def __init__(
        self,
        store: Optional[DocumentStore] = None,
        blob_store: Optional[BlobStore] = None,
        engine: Optional[Engine] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.store = store or DocumentStore(engine)
        self.blob_store = blob_store or LocalBlobStore()
        self.clock = clock

    def save_combined(
        self,
        context: RenderContext,
        template: Optional[Union[TemplateRecord, TemplateContent]] = None,
        *,
        composed: Optional[ComposedDocument] = None,
        doc_type: Optional[str] = None,
        generated_by: Optional[str] = None,
        template_loader: Optional[TemplateLoader] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GeneratedDocument:
        """
        Persist a combined document and its per-member children.

        Args:
            context: Render context the document was (or is) composed with
            template: Template to compose; may be omitted when composed is given
            composed: Already composed document
            doc_type: Document type (defaults to the template's)
            generated_by: User id recorded on every row
            template_loader: Resolves appendix template_ref values
            cancel_event: Aborts composition before anything is written

        Returns:
            The parent GeneratedDocument

        Raises:
            ValidationError: If neither template nor composed is given
            LayoutError / CompositionCancelled: Before anything is persisted
            StorageError / DatabaseError: After cleanup of partial writes
        """
        if template is None and composed is None:
            raise ValidationError("Nothing to save: pass a template or a composed document")

        record = template if isinstance(template, TemplateRecord) else None
        content = record.content if record else template
        doc_type = doc_type or (content.doc_type if content else None)
        if not doc_type:
            raise ValidationError("Document type is required", field_name="doc_type")

        if composed is None:
            composed = generate_document_pdf(
                template,
                context,
                template_loader=template_loader,
                cancel_event=cancel_event,
            )

        generated_at = self.clock()
        parent = GeneratedDocument(
            id=new_document_id(),
            fund_id=context.fund.id or None,
            doc_type=doc_type,
            processed_content=content.to_dict() if content else None,
            generation_context=context.to_dict(),
            template_id=record.id if record else None,
            template_version=record.version if record else None,
            is_combined_parent=bool(composed.page_map),
            page_map=list(composed.page_map),
            generated_by=generated_by,
            generated_at=generated_at,
        )
        parent.artifact_path = artifact_path_for(parent.fund_id, doc_type, parent.id)

        self.blob_store.write(parent.artifact_path, composed.pdf_bytes)

        inserted: list[str] = []
        try:
            self.store.insert(parent)
            inserted.append(parent.id)
            for entry in composed.page_map:
                child = GeneratedDocument(
                    id=new_document_id(),
                    fund_id=parent.fund_id,
                    doc_type=doc_type,
                    template_id=parent.template_id,
                    template_version=parent.template_version,
                    parent_document_id=parent.id,
                    entity_id=entry.entity_id,
                    entity_name=entry.entity_name,
                    page_numbers=entry.page_numbers,
                    generated_by=generated_by,
                    generated_at=generated_at,
                )
                self.store.insert(child)
                inserted.append(child.id)
        except Exception:
            self._rollback(parent.artifact_path, inserted)
            raise

        logger.info(
            f"Saved {doc_type} {parent.id}: {composed.page_count} page(s), "
            f"{len(composed.page_map)} child document(s)"
        )
        return parent

    def _rollback(self, artifact_path: str, inserted: list[str]):
        logger.error(f"Saving {artifact_path} failed, removing blob and {len(inserted)} row(s)")
        try:
            self.blob_store.delete(artifact_path)
        except StorageError as e:
            logger.error(f"Could not remove orphaned blob {artifact_path}: {e}")
        if inserted:
            try:
                self.store.delete(inserted)
            except DatabaseError as e:
                logger.error(f"Could not remove partially saved rows {inserted}: {e}")

    def get(self, document_id: str) -> GeneratedDocument:
        document = self.store.get(document_id)
        if document is None:
            raise FundDocsError("Generated document not found", details={"id": document_id})
        return document

    def get_entity_artifact(self, child_id: str) -> str:
        """
        Path of a member's own PDF, extracting it on first request.

        A recorded path whose blob still exists is returned as-is. Otherwise
        the child's pages are copied out of the parent artifact, written to
        blob storage and the path is recorded on the child row.

        Raises:
            FundDocsError: If the child or its parent does not exist
            PageRangeError: If the recorded pages are not in the parent PDF
        """
        child = self.get(child_id)
        if child.artifact_path and self.blob_store.exists(child.artifact_path):
            logger.debug(f"Using recorded artifact for {child_id}")
            return child.artifact_path

        if not child.parent_document_id:
            raise FundDocsError("Document is not part of a combined artifact", details={"id": child_id})
        parent = self.get(child.parent_document_id)
        if not parent.artifact_path:
            raise StorageError("Parent document has no artifact", details={"id": parent.id})

        pdf_bytes = extract_pages(self.blob_store.read(parent.artifact_path), child.page_numbers)
        path = child_artifact_path_for(parent, child)
        self.blob_store.write(path, pdf_bytes)
        self.store.set_artifact_path(child.id, path)

        logger.info(f"Extracted pages {child.page_numbers} of {parent.id} for {child.entity_name}")
        return path

    def read_entity_pdf(self, child_id: str) -> bytes:
        return self.blob_store.read(self.get_entity_artifact(child_id))
