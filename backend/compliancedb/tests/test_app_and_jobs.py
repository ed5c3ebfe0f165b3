from __future__ import annotations

from sqlalchemy.orm import sessionmaker

from compliancedb import main
from compliancedb.apps.compliance import models as compliance_models
from compliancedb.apps.compliance.enums import PractitionerRole
from compliancedb.jobs import deadline_runner, side_effect_runner


def test_app_mounts_compliance_routes():
    paths = {route.path for route in main.app.routes}
    assert "/health" in paths
    assert "/compliance/users/{user_id}/requirements/{requirement_id}/status" in paths
    assert "/compliance/users/{user_id}/role" in paths
    assert "/compliance/audit/users/{user_id}" in paths
    assert "/notifications/me" in paths
    assert main.health() == {"status": "ok"}


def test_deadline_runner_reports_sweep(db_session, provisioned_user, monkeypatch):
    provisioned_user(PractitionerRole.IT)
    monkeypatch.setattr(
        deadline_runner, "WriteSessionLocal", sessionmaker(bind=db_session.get_bind(), expire_on_commit=False)
    )

    summary = deadline_runner.run()

    assert summary["success"] is True
    assert summary["data"]["escalated"] == 0


def test_side_effect_runner_with_empty_queue(db_session, monkeypatch):
    monkeypatch.setattr(
        side_effect_runner, "WriteSessionLocal", sessionmaker(bind=db_session.get_bind(), expire_on_commit=False)
    )

    assert side_effect_runner.run() == {"attempted": 0}
    assert db_session.query(compliance_models.SideEffectJob).count() == 0
