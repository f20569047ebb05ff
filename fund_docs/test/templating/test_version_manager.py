"""
Tests for the Template Version Manager (fund_docs/templating/version_manager.py)

Tests cover:
- Version creation and duplicate detection
- Single active version per (doc_type, scope)
- Active template resolution with fund scope shadowing global
- Scope violation detection and repair
- Revisions with suggested versions
"""
import copy
import itertools
from datetime import datetime, timedelta
from unittest import mock

import pytest

from fund_docs.core.exceptions import (
    DatabaseError,
    DuplicateTemplateVersionError,
    TemplateNotFoundError,
    ValidationError,
)
from fund_docs.templating.template_store import TemplateRecord, TemplateStore, new_template_id
from fund_docs.templating.version_manager import TemplateState, VersionManager


@pytest.fixture
def clock():
    ticks = itertools.count()
    return lambda: datetime(2026, 1, 1) + timedelta(minutes=next(ticks))


@pytest.fixture
def store(engine):
    return TemplateStore(engine)


@pytest.fixture
def manager(store, clock):
    return VersionManager(store, clock=clock)


class TestCreate:
    """Tests for VersionManager.create()."""

    def test_creates_draft(self, manager, template_dict):
        """Test a new version starts inactive."""
        record = manager.create("lpa", "1.0.0", template_dict)
        assert not record.is_active
        assert VersionManager.state_of(record) == TemplateState.DRAFT
        stored = manager.get(record.id)
        assert stored.version == "1.0.0"
        assert stored.content.to_dict() == record.content.to_dict()

    def test_create_and_activate(self, manager, template_dict):
        """Test activate=True returns the active record."""
        record = manager.create("lpa", "1.0.0", template_dict, activate=True)
        assert record.is_active
        assert record.activated_at is not None

    def test_duplicate_version(self, manager, template_dict):
        """Test the same version twice in one scope is rejected."""
        manager.create("lpa", "1.0.0", template_dict)
        with pytest.raises(DuplicateTemplateVersionError) as exc_info:
            manager.create("lpa", "1.0.0", template_dict)
        assert exc_info.value.version == "1.0.0"

    def test_same_version_other_scope(self, manager, template_dict):
        """Test versions are unique per scope, not globally."""
        manager.create("lpa", "1.0.0", template_dict)
        record = manager.create("lpa", "1.0.0", template_dict, fund_id="fund-1")
        assert record.fund_id == "fund-1"

    def test_doc_type_mismatch(self, manager, template_dict):
        """Test content of another document type is rejected."""
        with pytest.raises(ValidationError):
            manager.create("member_list", "1.0.0", template_dict)

    def test_blank_version(self, manager, template_dict):
        """Test an empty version string is rejected."""
        with pytest.raises(ValidationError):
            manager.create("lpa", "  ", template_dict)


class TestActivate:
    """Tests for the activation transition."""

    def test_single_active_per_scope(self, manager, template_dict):
        """Test activating a version supersedes the previous active one."""
        first = manager.create("lpa", "1.0.0", template_dict, activate=True)
        second = manager.create("lpa", "1.1.0", template_dict, activate=True)

        check = manager.check_scope("lpa")
        assert check.ok
        assert check.active_ids == [second.id]
        assert VersionManager.state_of(manager.get(first.id)) == TemplateState.SUPERSEDED

    def test_reactivate_superseded(self, manager, template_dict):
        """Test a superseded version can become active again."""
        first = manager.create("lpa", "1.0.0", template_dict, activate=True)
        manager.create("lpa", "1.1.0", template_dict, activate=True)

        manager.activate(first.id)
        assert manager.check_scope("lpa").active_ids == [first.id]

    def test_scopes_are_independent(self, manager, template_dict):
        """Test activating a fund version leaves the global one active."""
        global_record = manager.create("lpa", "1.0.0", template_dict, activate=True)
        fund_record = manager.create("lpa", "1.0.0", template_dict, fund_id="fund-1", activate=True)

        assert manager.check_scope("lpa").active_ids == [global_record.id]
        assert manager.check_scope("lpa", "fund-1").active_ids == [fund_record.id]

    def test_missing_template_writes_nothing(self, manager, store):
        """Test activating an unknown id raises before any write."""
        with mock.patch.object(store, "deactivate_scope") as deactivate, \
                mock.patch.object(store, "set_active") as set_active:
            with pytest.raises(TemplateNotFoundError) as exc_info:
                manager.activate("missing")

        assert exc_info.value.template_id == "missing"
        deactivate.assert_not_called()
        set_active.assert_not_called()

    def test_failure_between_writes(self, manager, store, template_dict):
        """Test a failed second write leaves no active row until retried."""
        first = manager.create("lpa", "1.0.0", template_dict, activate=True)
        second = manager.create("lpa", "1.1.0", template_dict)

        with mock.patch.object(store, "set_active", side_effect=DatabaseError("connection lost")):
            with pytest.raises(DatabaseError):
                manager.activate(second.id)
        assert not manager.check_scope("lpa").has_active

        manager.activate(second.id)
        assert manager.check_scope("lpa").active_ids == [second.id]
        assert not manager.get(first.id).is_active


class TestResolveActive:
    """Tests for resolve_active()."""

    def test_fund_scope_shadows_global(self, manager, template_dict):
        """Test a fund's own active template wins over the global one."""
        manager.create("lpa", "1.0.0", template_dict, activate=True)
        fund_record = manager.create("lpa", "1.0.1", template_dict, fund_id="fund-1", activate=True)
        assert manager.resolve_active("lpa", fund_id="fund-1").id == fund_record.id

    def test_falls_back_to_global(self, manager, template_dict):
        """Test funds without their own template use the global one."""
        global_record = manager.create("lpa", "1.0.0", template_dict, activate=True)
        manager.create("lpa", "1.0.1", template_dict, fund_id="fund-1")
        assert manager.resolve_active("lpa", fund_id="fund-1").id == global_record.id
        assert manager.resolve_active("lpa", fund_id="fund-2").id == global_record.id

    def test_no_active_template(self, manager, template_dict):
        """Test drafts alone do not resolve."""
        manager.create("lpa", "1.0.0", template_dict)
        with pytest.raises(TemplateNotFoundError) as exc_info:
            manager.resolve_active("lpa")
        assert exc_info.value.doc_type == "lpa"

    def test_load_external(self, manager, template_dict):
        """Test known appendix references map to a stored document type."""
        consent = copy.deepcopy(template_dict)
        consent["doc_type"] = "lpa_consent_form"
        record = manager.create("lpa_consent_form", "1.0.0", consent, activate=True)
        assert manager.load_external("lpa-consent-form-template", fund_id="fund-1").id == record.id


class TestScopeRepair:
    """Tests for violation detection and reconciliation."""

    def _insert_active(self, store, template_content, version, activated_at):
        record = TemplateRecord(
            id=new_template_id(),
            doc_type="lpa",
            version=version,
            content=template_content,
            is_active=True,
            created_at=activated_at,
            activated_at=activated_at,
        )
        return store.insert(record)

    def test_find_and_reconcile(self, manager, store, template_content):
        """Test a scope with two active rows keeps the latest activation."""
        older = self._insert_active(store, template_content, "1.0.0", datetime(2026, 1, 1))
        newer = self._insert_active(store, template_content, "1.1.0", datetime(2026, 2, 1))

        violations = manager.find_violations()
        assert len(violations) == 1
        assert set(violations[0].active_ids) == {older.id, newer.id}

        check = manager.reconcile_scope("lpa")
        assert check.ok
        assert check.active_ids == [newer.id]
        assert manager.find_violations() == []

    def test_reconcile_healthy_scope(self, manager, template_dict):
        """Test reconciling a healthy scope changes nothing."""
        record = manager.create("lpa", "1.0.0", template_dict, activate=True)
        assert manager.reconcile_scope("lpa").active_ids == [record.id]


class TestRevisions:
    """Tests for create_revision() and diff_versions()."""

    def test_revision_version_and_description(self, manager, template_dict):
        """Test an article edit yields the next major version with a description."""
        base = manager.create("lpa", "1.0.0", template_dict, activate=True)
        edited = copy.deepcopy(template_dict)
        edited["sections"][0]["children"][0]["text"] = "이 조합은 ${fundName}이라 칭한다."

        revision = manager.create_revision(base.id, edited, activate=True)

        assert revision.version == "2.0.0"
        assert revision.description.splitlines() == [
            "변경 사항 1건 (수정 1건)",
            "- [수정] 제1조 - 내용",
        ]
        assert manager.resolve_active("lpa").id == revision.id

    def test_revision_without_changes(self, manager, template_dict):
        """Test an unchanged revision is rejected."""
        base = manager.create("lpa", "1.0.0", template_dict)
        with pytest.raises(ValidationError):
            manager.create_revision(base.id, copy.deepcopy(template_dict))

    def test_diff_versions(self, manager, template_dict):
        """Test stored versions can be compared by id."""
        first = manager.create("lpa", "1.0.0", template_dict)
        edited = copy.deepcopy(template_dict)
        edited["sections"][2]["text"] = "이 규약은 즉시 시행한다."
        second = manager.create("lpa", "1.0.1", edited)

        diff = manager.diff_versions(first.id, second.id)
        assert diff.from_version == "1.0.0"
        assert diff.to_version == "1.0.1"
        assert [c.display_path for c in diff.changes] == ["부칙 - 내용"]
