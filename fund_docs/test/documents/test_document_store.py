"""
Tests for generated document persistence (fund_docs/documents/document_store.py)
"""
from datetime import datetime

import pytest

from fund_docs.documents.document_store import DocumentStore, GeneratedDocument, new_document_id
from fund_docs.pdf.appendix import PageMapEntry


@pytest.fixture
def store(engine):
    return DocumentStore(engine)


def _document(**kwargs):
    values = {
        "id": new_document_id(),
        "fund_id": "fund-1",
        "doc_type": "lpa_consent_form",
        "generated_at": datetime(2026, 3, 15, 10, 0),
    }
    values.update(kwargs)
    return GeneratedDocument(**values)


class TestDocumentStore:
    """Tests for DocumentStore."""

    def test_round_trip(self, store):
        """Test JSON columns and timestamps survive storage."""
        document = _document(
            is_combined_parent=True,
            artifact_path="fund-1/lpa_consent_form/x.pdf",
            page_map=[PageMapEntry("lp-1", "홍길동", 1, 2)],
            generation_context={"fund": {"id": "fund-1"}},
        )
        store.insert(document)

        loaded = store.get(document.id)
        assert loaded.page_map == [PageMapEntry("lp-1", "홍길동", 1, 2)]
        assert loaded.generation_context == {"fund": {"id": "fund-1"}}
        assert loaded.generated_at == datetime(2026, 3, 15, 10, 0)
        assert loaded.is_combined_parent
        assert not loaded.is_child

    def test_missing(self, store):
        """Test unknown ids return None."""
        assert store.get("missing") is None

    def test_children_in_page_order(self, store):
        """Test children are listed by their first page."""
        parent = store.insert(_document(is_combined_parent=True))
        for entity, pages in (("b", [3, 4]), ("a", [1, 2])):
            store.insert(_document(parent_document_id=parent.id, entity_id=entity, page_numbers=pages))

        children = store.children(parent.id)
        assert [c.entity_id for c in children] == ["a", "b"]
        assert children[0].is_child
        assert children[0].page_numbers == [1, 2]

    def test_list_for_fund_excludes_children(self, store):
        """Test only top-level documents are listed, newest first."""
        older = store.insert(_document(generated_at=datetime(2026, 1, 1)))
        newer = store.insert(_document(generated_at=datetime(2026, 2, 1), doc_type="lpa"))
        store.insert(_document(parent_document_id=newer.id, entity_id="a", page_numbers=[1]))

        assert [d.id for d in store.list_for_fund("fund-1")] == [newer.id, older.id]
        assert [d.id for d in store.list_for_fund("fund-1", doc_type="lpa")] == [newer.id]

    def test_set_artifact_path_and_delete(self, store):
        """Test artifact paths are recorded and rows deleted."""
        document = store.insert(_document())
        assert store.set_artifact_path(document.id, "p.pdf") == 1
        assert store.get(document.id).artifact_path == "p.pdf"

        assert store.delete([document.id]) == 1
        assert store.get(document.id) is None
        assert store.delete([]) == 0
