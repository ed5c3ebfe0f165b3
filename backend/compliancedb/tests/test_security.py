from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException

from compliancedb import security
from compliancedb.apps.compliance.enums import PractitionerRole


def test_token_resolves_to_user(db_session, make_user):
    user = make_user(PractitionerRole.IT)
    token = security.create_access_token(data={"sub": user.id})

    assert security.get_current_user(token=token, db=db_session) is user


def test_expired_or_foreign_token_is_rejected(db_session, make_user):
    user = make_user(PractitionerRole.IT)
    expired = security.create_access_token(data={"sub": user.id}, expires_delta=timedelta(minutes=-1))

    with pytest.raises(HTTPException) as exc_info:
        security.get_current_user(token=expired, db=db_session)
    assert exc_info.value.status_code == 401

    unknown = security.create_access_token(data={"sub": "nobody"})
    with pytest.raises(HTTPException):
        security.get_current_user(token=unknown, db=db_session)


def test_inactive_user_is_blocked(make_user):
    user = make_user(PractitionerRole.IT, deactivation_reason="left")
    user.is_active = False
    with pytest.raises(HTTPException) as exc_info:
        security.get_current_active_user(current_user=user)
    assert exc_info.value.status_code == 400


def test_admin_and_self_checks(make_user):
    admin = make_user(PractitionerRole.AP, is_admin=True)
    practitioner = make_user(PractitionerRole.IT)

    assert security.require_admin(current_user=admin) is admin
    with pytest.raises(HTTPException) as exc_info:
        security.require_admin(current_user=practitioner)
    assert exc_info.value.status_code == 403

    security.ensure_self_or_admin(practitioner, practitioner.id)
    security.ensure_self_or_admin(admin, practitioner.id)
    with pytest.raises(HTTPException):
        security.ensure_self_or_admin(practitioner, admin.id)
