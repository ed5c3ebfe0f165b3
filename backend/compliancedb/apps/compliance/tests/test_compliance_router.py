from __future__ import annotations

import pytest
from fastapi import HTTPException

from compliancedb.apps.compliance import router as compliance_router
from compliancedb.apps.compliance import schemas
from compliancedb.apps.compliance.enums import ComplianceTier, PractitionerRole

CPR = "it-basic-cpr-aed-certification"


def test_template_lookup_lists_requirements(make_user):
    viewer = make_user(PractitionerRole.IT)

    template = compliance_router.get_template(PractitionerRole.AP, ComplianceTier.ROBUST, current_user=viewer)

    assert template.template_name == "Authorized Provider - Robust"
    assert len(template.requirements) == 7
    assert template.requirements[0].validation_rules.file_types == [".pdf", ".docx"]
    assert template.total_points == 170


def test_practitioner_submits_through_validation_but_cannot_approve(db_session, provisioned_user):
    user = provisioned_user(PractitionerRole.IT)

    started = compliance_router.transition_requirement(
        user.id, CPR, schemas.StatusTransitionRequest(status="in_progress"), db=db_session, current_user=user
    )
    assert started.success is True

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.transition_requirement(
            user.id, CPR, schemas.StatusTransitionRequest(status="submitted"), db=db_session, current_user=user
        )
    assert exc_info.value.status_code == 403

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.submit_requirement(user.id, CPR, schemas.SubmissionRequest(), db=db_session, current_user=user)
    assert exc_info.value.status_code == 422
    assert exc_info.value.detail["code"] == "submission_rejected"

    submitted = compliance_router.submit_requirement(
        user.id,
        CPR,
        schemas.SubmissionRequest(fields={"expiry_date": "2027-05-01"}, files=[{"name": "card.pdf", "size": 2048}]),
        db=db_session,
        current_user=user,
    )
    assert submitted.success is True

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.transition_requirement(
            user.id, CPR, schemas.StatusTransitionRequest(status="approved"), db=db_session, current_user=user
        )
    assert exc_info.value.status_code == 403


def test_admin_approves_and_unknown_status_maps_to_422(db_session, provisioned_user, make_user):
    admin = make_user(PractitionerRole.AP, is_admin=True)
    user = provisioned_user(PractitionerRole.IT)

    approved = compliance_router.transition_requirement(
        user.id, CPR, schemas.StatusTransitionRequest(status="approved", score=95), db=db_session, current_user=admin
    )
    assert approved.data["compliance_status"] == "compliant"

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.transition_requirement(
            user.id, CPR, schemas.StatusTransitionRequest(status="done"), db=db_session, current_user=admin
        )
    assert exc_info.value.status_code == 422
    assert exc_info.value.detail["code"] == "invalid_status"


def test_other_practitioner_cannot_read_records(db_session, provisioned_user):
    owner = provisioned_user(PractitionerRole.IT)
    stranger = provisioned_user(PractitionerRole.IP)

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.list_requirements(owner.id, include_inactive=False, db=db_session, current_user=stranger)
    assert exc_info.value.status_code == 403

    own = compliance_router.list_requirements(owner.id, include_inactive=False, db=db_session, current_user=owner)
    assert {r.requirement_id for r in own} == {
        "it-basic-cpr-aed-certification",
        "it-basic-water-safety-training",
        "it-basic-background-check",
    }


def test_unknown_user_maps_to_404(db_session, make_user):
    admin = make_user(PractitionerRole.AP, is_admin=True)

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.get_tier_info("missing-user", db=db_session, current_user=admin)
    assert exc_info.value.status_code == 404

    with pytest.raises(HTTPException) as exc_info:
        compliance_router.list_requirements("missing-user", include_inactive=False, db=db_session, current_user=admin)
    assert exc_info.value.status_code == 404


def test_admin_role_change_and_deactivation(db_session, provisioned_user, make_user):
    admin = make_user(PractitionerRole.AP, is_admin=True)
    user = provisioned_user(PractitionerRole.IT)

    changed = compliance_router.change_role(
        user.id,
        schemas.RoleChangeRequest(old_role="IT", new_role="AP", reason="promotion"),
        db=db_session,
        current_user=admin,
    )
    assert changed.data["tier_changed"] is True

    deactivated = compliance_router.deactivate_user(
        user.id, schemas.DeactivateRequest(reason="retired"), db=db_session, current_user=admin
    )
    assert deactivated.data["record_count"] == len(deactivated.data["records_retired"]) + 3

    records = compliance_router.list_requirements(user.id, include_inactive=True, db=db_session, current_user=admin)
    assert len(records) == 10
    assert {r.compliance_status.value for r in records} == {"not_applicable"}
