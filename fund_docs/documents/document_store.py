"""
Document store: persistence of generated documents.

A combined parent row carries the artifact path and the page map; its
children are per-member rows that start without an artifact and record
the pages they own in the parent's PDF.
"""
import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from fund_docs.core.db import from_db_timestamp, get_db_connection, to_db_timestamp
from fund_docs.core.exceptions import DatabaseError
from fund_docs.pdf.appendix import PageMapEntry

logger = logging.getLogger(__name__)

_COLUMNS = """
    id, fund_id, doc_type, processed_content, generation_context,
    template_id, template_version, artifact_path, is_combined_parent,
    parent_document_id, entity_id, entity_name, page_map, page_numbers,
    generated_by, generated_at
"""


def new_document_id() -> str:
    return str(uuid.uuid4())


@dataclass
class GeneratedDocument:
    id: str
    fund_id: Optional[str]
    doc_type: str
    processed_content: Optional[dict[str, Any]] = None
    generation_context: Optional[dict[str, Any]] = None
    template_id: Optional[str] = None
    template_version: Optional[str] = None
    artifact_path: Optional[str] = None
    is_combined_parent: bool = False
    parent_document_id: Optional[str] = None
    entity_id: Optional[str] = None
    entity_name: Optional[str] = None
    page_map: list[PageMapEntry] = field(default_factory=list)
    page_numbers: list[int] = field(default_factory=list)
    generated_by: Optional[str] = None
    generated_at: Optional[datetime] = None

    @property
    def is_child(self) -> bool:
        return self.parent_document_id is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "fund_id": self.fund_id,
            "doc_type": self.doc_type,
            "template_id": self.template_id,
            "template_version": self.template_version,
            "artifact_path": self.artifact_path,
            "is_combined_parent": self.is_combined_parent,
            "parent_document_id": self.parent_document_id,
            "entity_id": self.entity_id,
            "entity_name": self.entity_name,
            "page_map": [entry.to_dict() for entry in self.page_map],
            "page_numbers": list(self.page_numbers),
            "generated_by": self.generated_by,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }


def _dump(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, ensure_ascii=False)


def _load(value: Optional[str]) -> Any:
    if value is None or value == "":
        return None
    if isinstance(value, (dict, list)):
        return value
    return json.loads(value)


def _row_to_document(row) -> GeneratedDocument:
    page_map = _load(row["page_map"]) or []
    return GeneratedDocument(
        id=row["id"],
        fund_id=row["fund_id"],
        doc_type=row["doc_type"],
        processed_content=_load(row["processed_content"]),
        generation_context=_load(row["generation_context"]),
        template_id=row["template_id"],
        template_version=row["template_version"],
        artifact_path=row["artifact_path"],
        is_combined_parent=bool(row["is_combined_parent"]),
        parent_document_id=row["parent_document_id"],
        entity_id=row["entity_id"],
        entity_name=row["entity_name"],
        page_map=[PageMapEntry.from_dict(entry) for entry in page_map],
        page_numbers=[int(n) for n in _load(row["page_numbers"]) or []],
        generated_by=row["generated_by"],
        generated_at=from_db_timestamp(row["generated_at"]),
    )


class DocumentStore:
    """SQL access to generated_documents."""

    def __init__(self, engine: Optional[Engine] = None):
        self.engine = engine

    def insert(self, document: GeneratedDocument) -> GeneratedDocument:
        """Insert one row. Raises DatabaseError on failure."""
        query = text(f"""
            INSERT INTO generated_documents ({_COLUMNS})
            VALUES (
                :id, :fund_id, :doc_type, :processed_content, :generation_context,
                :template_id, :template_version, :artifact_path, :is_combined_parent,
                :parent_document_id, :entity_id, :entity_name, :page_map, :page_numbers,
                :generated_by, :generated_at
            )
        """)
        params = {
            "id": document.id,
            "fund_id": document.fund_id,
            "doc_type": document.doc_type,
            "processed_content": _dump(document.processed_content),
            "generation_context": _dump(document.generation_context),
            "template_id": document.template_id,
            "template_version": document.template_version,
            "artifact_path": document.artifact_path,
            "is_combined_parent": document.is_combined_parent,
            "parent_document_id": document.parent_document_id,
            "entity_id": document.entity_id,
            "entity_name": document.entity_name,
            "page_map": _dump([entry.to_dict() for entry in document.page_map]) if document.page_map else None,
            "page_numbers": _dump(document.page_numbers) if document.page_numbers else None,
            "generated_by": document.generated_by,
            "generated_at": to_db_timestamp(document.generated_at or datetime.now()),
        }
        try:
            with get_db_connection(self.engine) as conn:
                conn.execute(query, params)
                conn.commit()
        except Exception as e:
            raise DatabaseError(
                "Failed to insert generated document",
                details={"id": document.id, "doc_type": document.doc_type},
                original_error=e,
            )
        return document

    def get(self, document_id: str) -> Optional[GeneratedDocument]:
        query = text(f"SELECT {_COLUMNS} FROM generated_documents WHERE id = :id")
        try:
            with get_db_connection(self.engine) as conn:
                row = conn.execute(query, {"id": document_id}).mappings().fetchone()
        except Exception as e:
            raise DatabaseError("Failed to load generated document", details={"id": document_id}, original_error=e)
        return _row_to_document(row) if row else None

    def children(self, parent_id: str) -> list[GeneratedDocument]:
        """Child rows of a combined document, in page order."""
        query = text(f"""
            SELECT {_COLUMNS} FROM generated_documents
            WHERE parent_document_id = :parent_id
        """)
        try:
            with get_db_connection(self.engine) as conn:
                rows = conn.execute(query, {"parent_id": parent_id}).mappings().all()
        except Exception as e:
            raise DatabaseError("Failed to list child documents", details={"parent_id": parent_id}, original_error=e)
        documents = [_row_to_document(row) for row in rows]
        return sorted(documents, key=lambda d: d.page_numbers[0] if d.page_numbers else 0)

    def list_for_fund(self, fund_id: str, doc_type: Optional[str] = None) -> list[GeneratedDocument]:
        """Top-level documents of a fund, newest first."""
        conditions = ["fund_id = :fund_id", "parent_document_id IS NULL"]
        params: dict[str, Any] = {"fund_id": fund_id}
        if doc_type:
            conditions.append("doc_type = :doc_type")
            params["doc_type"] = doc_type
        query = text(f"""
            SELECT {_COLUMNS} FROM generated_documents
            WHERE {" AND ".join(conditions)}
            ORDER BY generated_at DESC
        """)
        try:
            with get_db_connection(self.engine) as conn:
                rows = conn.execute(query, params).mappings().all()
        except Exception as e:
            raise DatabaseError("Failed to list generated documents", details={"fund_id": fund_id}, original_error=e)
        return [_row_to_document(row) for row in rows]

    def set_artifact_path(self, document_id: str, artifact_path: str) -> int:
        query = text("UPDATE generated_documents SET artifact_path = :path WHERE id = :id")
        try:
            with get_db_connection(self.engine) as conn:
                result = conn.execute(query, {"path": artifact_path, "id": document_id})
                conn.commit()
                return result.rowcount
        except Exception as e:
            raise DatabaseError("Failed to record artifact path", details={"id": document_id}, original_error=e)

    def delete(self, document_ids: list[str]) -> int:
        if not document_ids:
            return 0
        placeholders = ", ".join(f":id{i}" for i in range(len(document_ids)))
        query = text(f"DELETE FROM generated_documents WHERE id IN ({placeholders})")
        params = {f"id{i}": doc_id for i, doc_id in enumerate(document_ids)}
        try:
            with get_db_connection(self.engine) as conn:
                result = conn.execute(query, params)
                conn.commit()
                return result.rowcount
        except Exception as e:
            raise DatabaseError("Failed to delete generated documents", original_error=e)
