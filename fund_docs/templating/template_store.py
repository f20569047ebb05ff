"""
Template store: persistence of document template versions.

Rows live in the document_templates table. A NULL fund_id is the global
scope; any other value scopes the template to that fund.
"""
import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine

from fund_docs.core.db import from_db_timestamp, get_db_connection, to_db_timestamp
from fund_docs.core.exceptions import DatabaseError
from fund_docs.templating.sections import TemplateContent

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "global"

_COLUMNS = """
    id, doc_type, fund_id, version, content, is_active,
    description, created_by, created_at, activated_at
"""


@dataclass
class TemplateRecord:
    """A stored template version."""
    id: str
    doc_type: str
    version: str
    content: TemplateContent
    fund_id: Optional[str] = None
    is_active: bool = False
    description: str = ""
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    activated_at: Optional[datetime] = None

    @property
    def scope(self) -> str:
        return GLOBAL_SCOPE if self.fund_id is None else f"fund:{self.fund_id}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "doc_type": self.doc_type,
            "fund_id": self.fund_id,
            "version": self.version,
            "content": self.content.to_dict(),
            "is_active": self.is_active,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "activated_at": self.activated_at.isoformat() if self.activated_at else None,
        }


def new_template_id() -> str:
    return str(uuid.uuid4())


def _scope_clause(fund_id: Optional[str]) -> str:
    return "fund_id IS NULL" if fund_id is None else "fund_id = :fund_id"


def _row_to_record(row) -> TemplateRecord:
    content = row["content"]
    if isinstance(content, str):
        content = json.loads(content)
    return TemplateRecord(
        id=row["id"],
        doc_type=row["doc_type"],
        version=row["version"],
        content=TemplateContent.from_dict(content, doc_type=row["doc_type"]),
        fund_id=row["fund_id"],
        is_active=bool(row["is_active"]),
        description=row["description"] or "",
        created_by=row["created_by"],
        created_at=from_db_timestamp(row["created_at"]),
        activated_at=from_db_timestamp(row["activated_at"]),
    )


class TemplateStore:
    """
    SQL access to document_templates.

    Every write commits on its own; no operation spans two statements
    in one transaction.
    """

    def __init__(self, engine: Optional[Engine] = None):
        """
        Initialize the store.

        Args:
            engine: SQLAlchemy engine (defaults to the configured database)
        """
        self.engine = engine

    def insert(self, record: TemplateRecord) -> TemplateRecord:
        """Insert a template row. Raises DatabaseError on failure."""
        query = text(f"""
            INSERT INTO document_templates ({_COLUMNS})
            VALUES (
                :id, :doc_type, :fund_id, :version, :content, :is_active,
                :description, :created_by, :created_at, :activated_at
            )
        """)
        params = {
            "id": record.id,
            "doc_type": record.doc_type,
            "fund_id": record.fund_id,
            "version": record.version,
            "content": json.dumps(record.content.to_dict(), ensure_ascii=False),
            "is_active": record.is_active,
            "description": record.description,
            "created_by": record.created_by,
            "created_at": to_db_timestamp(record.created_at or datetime.now()),
            "activated_at": to_db_timestamp(record.activated_at) if record.activated_at else None,
        }
        try:
            with get_db_connection(self.engine) as conn:
                conn.execute(query, params)
                conn.commit()
        except Exception as e:
            raise DatabaseError(
                "Failed to insert template",
                details={"doc_type": record.doc_type, "version": record.version},
                original_error=e,
            )
        logger.debug(f"Inserted template {record.doc_type} {record.version} ({record.scope})")
        return record

    def get(self, template_id: str) -> Optional[TemplateRecord]:
        query = text(f"SELECT {_COLUMNS} FROM document_templates WHERE id = :id")
        try:
            with get_db_connection(self.engine) as conn:
                row = conn.execute(query, {"id": template_id}).mappings().fetchone()
        except Exception as e:
            raise DatabaseError("Failed to load template", details={"id": template_id}, original_error=e)
        return _row_to_record(row) if row else None

    def find(
        self,
        doc_type: str,
        fund_id: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> list[TemplateRecord]:
        """
        List templates of one type in one scope, newest first.

        Args:
            doc_type: Document type
            fund_id: Fund scope (None = global scope)
            is_active: Filter on the active flag when given
        """
        conditions = ["doc_type = :doc_type", _scope_clause(fund_id)]
        params: dict[str, Any] = {"doc_type": doc_type, "fund_id": fund_id}
        if is_active is not None:
            conditions.append("is_active = :is_active")
            params["is_active"] = is_active

        query = text(f"""
            SELECT {_COLUMNS}
            FROM document_templates
            WHERE {" AND ".join(conditions)}
            ORDER BY created_at DESC
        """)
        try:
            with get_db_connection(self.engine) as conn:
                rows = conn.execute(query, params).mappings().all()
        except Exception as e:
            raise DatabaseError(
                "Failed to list templates",
                details={"doc_type": doc_type, "fund_id": fund_id},
                original_error=e,
            )
        return [_row_to_record(row) for row in rows]

    def version_exists(self, doc_type: str, version: str, fund_id: Optional[str] = None) -> bool:
        query = text(f"""
            SELECT COUNT(*) FROM document_templates
            WHERE doc_type = :doc_type AND version = :version AND {_scope_clause(fund_id)}
        """)
        try:
            with get_db_connection(self.engine) as conn:
                count = conn.execute(
                    query, {"doc_type": doc_type, "version": version, "fund_id": fund_id}
                ).scalar()
        except Exception as e:
            raise DatabaseError("Failed to check template version", original_error=e)
        return bool(count)

    def deactivate_scope(
        self,
        doc_type: str,
        fund_id: Optional[str] = None,
        exclude_id: Optional[str] = None,
    ) -> int:
        """
        Clear the active flag on every active row of (doc_type, scope).

        Returns:
            Number of rows deactivated
        """
        exclusion = " AND id != :exclude_id" if exclude_id else ""
        query = text(f"""
            UPDATE document_templates
            SET is_active = :inactive
            WHERE doc_type = :doc_type AND {_scope_clause(fund_id)}
              AND is_active = :active{exclusion}
        """)
        params = {
            "inactive": False,
            "active": True,
            "doc_type": doc_type,
            "fund_id": fund_id,
            "exclude_id": exclude_id,
        }
        try:
            with get_db_connection(self.engine) as conn:
                result = conn.execute(query, params)
                conn.commit()
                return result.rowcount
        except Exception as e:
            raise DatabaseError(
                "Failed to deactivate templates",
                details={"doc_type": doc_type, "fund_id": fund_id},
                original_error=e,
            )

    def set_active(self, template_id: str, activated_at: datetime) -> int:
        """Mark one row active and stamp its activation time."""
        query = text("""
            UPDATE document_templates
            SET is_active = :active, activated_at = :activated_at
            WHERE id = :id
        """)
        try:
            with get_db_connection(self.engine) as conn:
                result = conn.execute(query, {
                    "active": True,
                    "activated_at": to_db_timestamp(activated_at),
                    "id": template_id,
                })
                conn.commit()
                return result.rowcount
        except Exception as e:
            raise DatabaseError("Failed to activate template", details={"id": template_id}, original_error=e)

    def set_inactive(self, template_ids: list[str]) -> int:
        if not template_ids:
            return 0
        placeholders = ", ".join(f":id_{i}" for i in range(len(template_ids)))
        query = text(f"UPDATE document_templates SET is_active = :inactive WHERE id IN ({placeholders})")
        params: dict[str, Any] = {f"id_{i}": tid for i, tid in enumerate(template_ids)}
        params["inactive"] = False
        try:
            with get_db_connection(self.engine) as conn:
                result = conn.execute(query, params)
                conn.commit()
                return result.rowcount
        except Exception as e:
            raise DatabaseError("Failed to deactivate templates", original_error=e)

    def active_scope_counts(self) -> list[tuple[str, Optional[str], int]]:
        """(doc_type, fund_id, active row count) for every scope with an active row."""
        query = text("""
            SELECT doc_type, fund_id, COUNT(*) AS active_count
            FROM document_templates
            WHERE is_active = :active
            GROUP BY doc_type, fund_id
        """)
        try:
            with get_db_connection(self.engine) as conn:
                rows = conn.execute(query, {"active": True}).fetchall()
        except Exception as e:
            raise DatabaseError("Failed to count active templates", original_error=e)
        return [(row[0], row[1], int(row[2])) for row in rows]
