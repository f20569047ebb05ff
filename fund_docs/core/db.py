"""
Database connection utilities.
Engine setup, connection context manager and schema bootstrap for the
template and generated-document stores.
"""
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import ArgumentError

from fund_docs.core.config import DATABASE_URL
from fund_docs.core.exceptions import ConfigurationError, DatabaseError

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None

# Portable DDL: ids are uuid4 strings, JSON payloads are stored as TEXT
SCHEMA_STATEMENTS = (
    """
    CREATE TABLE IF NOT EXISTS document_templates (
        id VARCHAR(36) PRIMARY KEY,
        doc_type VARCHAR(100) NOT NULL,
        fund_id VARCHAR(100),
        version VARCHAR(50) NOT NULL,
        content TEXT NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT FALSE,
        description TEXT,
        created_by VARCHAR(100),
        created_at VARCHAR(40) NOT NULL,
        activated_at VARCHAR(40)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_document_templates_scope
        ON document_templates (doc_type, fund_id, is_active)
    """,
    """
    CREATE TABLE IF NOT EXISTS generated_documents (
        id VARCHAR(36) PRIMARY KEY,
        fund_id VARCHAR(100),
        doc_type VARCHAR(100) NOT NULL,
        processed_content TEXT,
        generation_context TEXT,
        template_id VARCHAR(36),
        template_version VARCHAR(50),
        artifact_path TEXT,
        is_combined_parent BOOLEAN NOT NULL DEFAULT FALSE,
        parent_document_id VARCHAR(36),
        entity_id VARCHAR(100),
        entity_name TEXT,
        page_map TEXT,
        page_numbers TEXT,
        generated_by VARCHAR(100),
        generated_at VARCHAR(40) NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_generated_documents_parent
        ON generated_documents (parent_document_id)
    """,
)


def get_engine() -> Engine:
    """
    Get the process-wide SQLAlchemy engine, creating it on first use.

    pool_pre_ping=True verifies connections before using them.

    Raises:
        ConfigurationError: If DATABASE_URL is empty or not a database URL
    """
    global _engine
    if _engine is None:
        if not DATABASE_URL:
            raise ConfigurationError("No database configured", config_key="DATABASE_URL")
        try:
            _engine = create_engine(DATABASE_URL, pool_pre_ping=True)
        except ArgumentError as e:
            raise ConfigurationError("Invalid database URL", details={"error": str(e)}, config_key="DATABASE_URL")
    return _engine


@contextmanager
def get_db_connection(engine: Optional[Engine] = None):
    """
    Context manager for database connections.
    Ensures connection is closed after use.

    Args:
        engine: Engine to connect with (defaults to the configured engine)

    Example:
        from fund_docs.core.db import get_db_connection
        from sqlalchemy import text

        with get_db_connection() as conn:
            result = conn.execute(text("SELECT 1"))
            print(result.scalar())
    """
    conn = None
    try:
        conn = (engine or get_engine()).connect()
        yield conn
    finally:
        if conn:
            conn.close()


def check_db_connection(engine: Optional[Engine] = None) -> bool:
    """
    Test database connection.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with get_db_connection(engine) as conn:
            conn.execute(text("SELECT 1"))
        logger.info("Database connection successful")
        return True
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        return False


def ensure_schema(engine: Optional[Engine] = None) -> None:
    """
    Create the document_templates and generated_documents tables if missing.

    Raises:
        DatabaseError: If the DDL fails
    """
    try:
        with get_db_connection(engine) as conn:
            for statement in SCHEMA_STATEMENTS:
                conn.execute(text(statement))
            conn.commit()
        logger.debug("Document schema ensured")
    except Exception as e:
        raise DatabaseError("Failed to create document schema", original_error=e)


def to_db_timestamp(value: datetime) -> str:
    """Serialize a timestamp for storage (ISO 8601, sortable as text)."""
    return value.isoformat(timespec="microseconds")


def from_db_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp; drivers may hand back a string or a datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))
