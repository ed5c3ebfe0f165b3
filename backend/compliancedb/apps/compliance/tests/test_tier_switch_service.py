from __future__ import annotations

from compliancedb.apps.audit import services as audit_services
from compliancedb.apps.compliance import catalog, services
from compliancedb.apps.compliance.enums import (
    AuditType,
    ComplianceStatus,
    ComplianceTier,
    NotificationType,
    PractitionerRole,
)
from compliancedb.apps.compliance.schemas import OperationMetadata
from compliancedb.apps.compliance.store import ComplianceStore
from compliancedb.apps.notifications import service as notification_service


def _active_ids(db_session, user):
    return {r.requirement_id for r in ComplianceStore(db_session).list_compliance_records(user.id, active_only=True)}


def _template_ids(role, tier):
    return set(catalog.get_requirement_template(role, tier).requirement_ids)


def test_switch_to_robust_reconciles_requirements(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IP)

    result = services.switch_tier(
        db_session,
        user_id=user.id,
        new_tier="robust",
        metadata=OperationMetadata(performed_by="admin-1", reason="manual review"),
    )

    assert result.success is True
    assert result.data["old_tier"] == "basic"
    assert result.data["new_tier"] == "robust"
    assert result.data["tier_changed"] is True
    assert user.compliance_tier == ComplianceTier.ROBUST
    assert _active_ids(db_session, user) == _template_ids(PractitionerRole.IP, ComplianceTier.ROBUST)

    tier_entries = audit_services.list_audit_entries(db_session, user_id=user.id, audit_types=[AuditType.TIER_CHANGE])
    assert len(tier_entries) == 1
    assert tier_entries[0].old_value == {"tier": "basic"}
    assert tier_entries[0].new_value == {"tier": "robust", "reason": "manual review"}
    assert tier_entries[0].performed_by == "admin-1"

    types = [n.notification_type for n in notification_service.list_notifications(db_session, user_id=user.id)]
    assert types == [NotificationType.TIER_CHANGE]

    assignment = ComplianceStore(db_session).get_tier_assignment(user.id)
    assert assignment.tier == ComplianceTier.ROBUST
    assert assignment.assigned_by == "admin-1"
    assert assignment.completion_percentage == 0.0


def test_switch_to_same_tier_is_idempotent(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    records_before = len(ComplianceStore(db_session).list_compliance_records(user.id))
    version_before = user.version
    audit_before = len(audit_services.list_audit_entries(db_session, user_id=user.id))

    result = services.switch_tier(db_session, user_id=user.id, new_tier=ComplianceTier.BASIC)

    assert result.success is True
    assert result.data["changed"] is False
    assert result.message == "User is already at the basic tier"
    assert user.version == version_before
    assert len(ComplianceStore(db_session).list_compliance_records(user.id)) == records_before
    assert len(audit_services.list_audit_entries(db_session, user_id=user.id)) == audit_before


def test_switch_back_reactivates_superseded_records(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    services.transition_requirement(
        db_session, user_id=user.id, requirement_id="it-basic-cpr-aed-certification", new_status="approved"
    )

    services.switch_tier(db_session, user_id=user.id, new_tier="robust")
    result = services.switch_tier(db_session, user_id=user.id, new_tier="basic")

    assert result.success is True
    basic_ids = _template_ids(PractitionerRole.IT, ComplianceTier.BASIC)
    assert set(result.data["requirements"]["reactivated"]) == basic_ids
    assert _active_ids(db_session, user) == basic_ids

    # Records are re-provisioned, not duplicated.
    all_records = ComplianceStore(db_session).list_compliance_records(user.id)
    assert len(all_records) == len(basic_ids) + len(_template_ids(PractitionerRole.IT, ComplianceTier.ROBUST))
    cpr = ComplianceStore(db_session).get_compliance_record(user.id, "it-basic-cpr-aed-certification")
    assert cpr.compliance_status == ComplianceStatus.PENDING
    assert cpr.reviewed_at is None


def test_unknown_tier_is_validation_error(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    result = services.switch_tier(db_session, user_id=user.id, new_tier="platinum")
    assert result.success is False
    assert result.error.code == "validation_error"
    assert result.error.detail[0]["field"] == "tier"


def test_active_set_matches_template_after_any_switch_sequence(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IC)
    for tier in ["robust", "basic", "basic", "robust", "robust", "basic"]:
        services.switch_tier(db_session, user_id=user.id, new_tier=tier)
        assert _active_ids(db_session, user) == _template_ids(PractitionerRole.IC, ComplianceTier(tier))

    requirement_ids = [r.requirement_id for r in ComplianceStore(db_session).list_compliance_records(user.id)]
    assert len(requirement_ids) == len(set(requirement_ids))


def test_advance_tier_requires_eligibility(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)

    result = services.advance_tier(db_session, user_id=user.id)

    assert result.success is True
    assert result.data["changed"] is False
    assert result.message == "You need 90% completion to advance to robust"
    assert user.compliance_tier == ComplianceTier.BASIC


def test_advance_tier_moves_eligible_user_to_robust(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)
    for requirement_id in sorted(_template_ids(PractitionerRole.IT, ComplianceTier.BASIC)):
        services.transition_requirement(db_session, user_id=user.id, requirement_id=requirement_id, new_status="approved")

    result = services.advance_tier(db_session, user_id=user.id)

    assert result.success is True
    assert result.message == "Advanced to robust"
    assert result.data["new_tier"] == "robust"
    assert _active_ids(db_session, user) == _template_ids(PractitionerRole.IT, ComplianceTier.ROBUST)
    entries = audit_services.list_audit_entries(db_session, user_id=user.id, audit_types=[AuditType.TIER_CHANGE])
    assert entries[0].new_value["reason"] == "tier_advancement"

    # Robust is the top of the ladder.
    again = services.advance_tier(db_session, user_id=user.id)
    assert again.data["changed"] is False
    assert again.message == "You are at the highest tier level"
