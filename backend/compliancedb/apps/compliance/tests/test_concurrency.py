from __future__ import annotations

import pytest
from sqlalchemy import text

from compliancedb.apps.audit import services as audit_services
from compliancedb.apps.compliance import services
from compliancedb.apps.compliance.enums import AuditType, ComplianceStatus, PractitionerRole
from compliancedb.apps.compliance.errors import ConcurrencyConflict
from compliancedb.apps.compliance.store import ComplianceStore

CPR = "it-basic-cpr-aed-certification"


def test_stale_user_version_raises_conflict(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    store = ComplianceStore(db_session)
    loaded = store.get_user(user.id)

    # Another writer bumps the row behind this session's back.
    db_session.execute(text("UPDATE users SET version = version + 1 WHERE id = :id"), {"id": user.id})

    with pytest.raises(ConcurrencyConflict):
        store.update_user(loaded, full_name="Renamed")
    store.rollback()


def test_conflict_is_retried_and_rederived(db_session, provisioned_user, monkeypatch):
    user = provisioned_user(PractitionerRole.IT)
    original = ComplianceStore.update_user
    calls = {"n": 0}

    def _flaky(self, target, **fields):
        calls["n"] += 1
        if calls["n"] == 1:
            raise ConcurrencyConflict("simulated concurrent update")
        return original(self, target, **fields)

    monkeypatch.setattr(ComplianceStore, "update_user", _flaky)
    result = services.transition_requirement(db_session, user_id=user.id, requirement_id=CPR, new_status="approved")
    monkeypatch.undo()

    assert result.success is True
    assert calls["n"] == 2
    assert result.data["old_status"] == "pending"
    record = ComplianceStore(db_session).get_compliance_record(user.id, CPR)
    assert record.compliance_status == ComplianceStatus.COMPLIANT
    entries = audit_services.list_audit_entries(
        db_session, user_id=user.id, audit_types=[AuditType.REQUIREMENT_STATUS_CHANGE]
    )
    assert len(entries) == 1


def test_exhausted_retries_return_conflict_and_leave_no_effects(db_session, provisioned_user, monkeypatch):
    user = provisioned_user(PractitionerRole.IT)
    calls = {"n": 0}

    def _always_conflict(self, target, **fields):
        calls["n"] += 1
        raise ConcurrencyConflict("simulated concurrent update")

    monkeypatch.setattr(ComplianceStore, "update_user", _always_conflict)
    result = services.transition_requirement(db_session, user_id=user.id, requirement_id=CPR, new_status="approved")
    monkeypatch.undo()

    assert result.success is False
    assert result.error.code == "concurrency_conflict"
    assert calls["n"] == services.CONFLICT_RETRIES + 1
    record = ComplianceStore(db_session).get_compliance_record(user.id, CPR)
    assert record.compliance_status == ComplianceStatus.PENDING
    assert audit_services.list_audit_entries(
        db_session, user_id=user.id, audit_types=[AuditType.REQUIREMENT_STATUS_CHANGE]
    ) == []
