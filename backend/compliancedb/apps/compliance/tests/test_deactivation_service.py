from __future__ import annotations

from compliancedb.apps.audit import services as audit_services
from compliancedb.apps.compliance import services
from compliancedb.apps.compliance.enums import AuditType, ComplianceStatus, PractitionerRole
from compliancedb.apps.compliance.schemas import OperationMetadata
from compliancedb.apps.compliance.store import ComplianceStore


def test_deactivation_supersedes_records_without_deleting(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IC)
    services.transition_requirement(
        db_session, user_id=user.id, requirement_id="ic-basic-teaching-hours-log", new_status="approved"
    )
    store = ComplianceStore(db_session)
    count_before = len(store.list_compliance_records(user.id))

    result = services.deactivate_user(
        db_session,
        user_id=user.id,
        reason="Left the program",
        metadata=OperationMetadata(performed_by="admin-1"),
    )

    assert result.success is True
    assert result.data["record_count"] == count_before
    assert len(result.data["records_retired"]) == count_before
    assert user.is_active is False
    assert user.deactivation_reason == "Left the program"
    assert user.deactivated_at is not None

    records = store.list_compliance_records(user.id)
    assert len(records) == count_before
    for record in records:
        assert record.compliance_status == ComplianceStatus.NOT_APPLICABLE
        assert record.notes == "User deactivated: Left the program"

    entries = audit_services.list_audit_entries(db_session, user_id=user.id, audit_types=[AuditType.USER_DEACTIVATION])
    assert len(entries) == 1
    assert entries[0].new_value == {"is_active": False, "reason": "Left the program"}
    assert entries[0].payload["records_retired"] == count_before

    assignment = store.get_tier_assignment(user.id)
    assert assignment.completion_percentage == 0.0
    assert assignment.advancement_eligible is False


def test_second_deactivation_is_noop(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    services.deactivate_user(db_session, user_id=user.id, reason="left")

    result = services.deactivate_user(db_session, user_id=user.id, reason="left again")

    assert result.success is True
    assert result.data["changed"] is False
    assert result.message == "User is already deactivated"
    assert user.deactivation_reason == "left"
    entries = audit_services.list_audit_entries(db_session, user_id=user.id, audit_types=[AuditType.USER_DEACTIVATION])
    assert len(entries) == 1


def test_blank_reason_is_rejected(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    result = services.deactivate_user(db_session, user_id=user.id, reason="   ")
    assert result.success is False
    assert result.error.code == "validation_error"
    assert user.is_active is True


def test_deactivated_user_is_reprovisioned_by_tier_switch(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    services.deactivate_user(db_session, user_id=user.id, reason="on leave")

    # Same tier still reprovisions: an inactive user never takes the fast path.
    result = services.switch_tier(db_session, user_id=user.id, new_tier="basic")

    assert result.success is True
    assert result.data["reactivated"] is True
    assert result.data["tier_changed"] is False
    assert user.is_active is True
    assert user.deactivated_at is None
    active = ComplianceStore(db_session).list_compliance_records(user.id, active_only=True)
    assert len(active) == 3
    assert all(r.compliance_status == ComplianceStatus.PENDING for r in active)


def test_initialize_reactivates_deactivated_user(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.AP)
    services.deactivate_user(db_session, user_id=user.id, reason="suspended")

    result = services.initialize_user(db_session, user_id=user.id)

    assert result.success is True
    assert result.data["new_tier"] == "robust"
    assert user.is_active is True


def test_initialize_twice_is_noop(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.AP)
    result = services.initialize_user(db_session, user_id=user.id)
    assert result.success is True
    assert result.data == {"changed": False, "role": "AP", "tier": "robust"}


def test_tier_info_for_deactivated_user_blocks_advancement(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    services.deactivate_user(db_session, user_id=user.id, reason="left")

    result = services.get_tier_info(db_session, user_id=user.id)

    assert result.data["is_active"] is False
    assert result.data["can_advance_tier"] is False
    assert result.data["advancement_blocked_reason"] == "User is deactivated"
    assert result.data["requirements_count"] == 0
