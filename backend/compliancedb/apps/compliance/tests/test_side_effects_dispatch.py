from __future__ import annotations

from datetime import datetime, timedelta, timezone

from compliancedb.apps.audit import services as audit_services
from compliancedb.apps.compliance import dispatcher, models, services
from compliancedb.apps.compliance.enums import AuditType, ComplianceStatus, NotificationType, PractitionerRole
from compliancedb.apps.compliance.schemas import OperationMetadata
from compliancedb.apps.compliance.store import ComplianceStore
from compliancedb.apps.notifications import models as notification_models
from compliancedb.apps.notifications import providers as notification_providers
from compliancedb.apps.notifications import service as notification_service

CPR = "it-basic-cpr-aed-certification"


class _FailingProvider(notification_providers.PushProvider):
    def send(self, **kwargs) -> None:
        raise notification_providers.PushDeliveryError("gateway down")


class _RecordingProvider(notification_providers.PushProvider):
    def __init__(self):
        self.sent = []

    def send(self, **kwargs) -> None:
        self.sent.append(kwargs)


def _jobs(db_session):
    return db_session.query(models.SideEffectJob).order_by(models.SideEffectJob.created_at.asc()).all()


def _later():
    return datetime.now(timezone.utc) + timedelta(seconds=1)


def test_audit_failure_after_commit_becomes_warning_and_queued_job(db_session, provisioned_user, monkeypatch):
    user = provisioned_user(PractitionerRole.IT)

    def _broken_append(*args, **kwargs):
        raise RuntimeError("audit table locked")

    monkeypatch.setattr(audit_services, "append_entry", _broken_append)
    result = services.transition_requirement(
        db_session,
        user_id=user.id,
        requirement_id=CPR,
        new_status="approved",
        metadata=OperationMetadata(performed_by="reviewer-1", correlation_id="cmp-audit-fail"),
    )
    monkeypatch.undo()

    assert result.success is True
    assert result.has_warnings is True
    assert [(w.channel, w.queued) for w in result.warnings] == [("audit", True)]
    assert "audit table locked" in result.warnings[0].message

    # Primary change is committed regardless.
    record = ComplianceStore(db_session).get_compliance_record(user.id, CPR)
    assert record.compliance_status == ComplianceStatus.COMPLIANT
    assert audit_services.list_audit_entries(
        db_session, user_id=user.id, audit_types=[AuditType.REQUIREMENT_STATUS_CHANGE]
    ) == []
    # The notification effect is independent and still went out.
    assert len(notification_service.list_notifications(db_session, user_id=user.id)) == 1

    jobs = _jobs(db_session)
    assert len(jobs) == 1
    assert jobs[0].channel == models.SideEffectChannel.AUDIT
    assert jobs[0].status == models.SideEffectJobStatus.PENDING
    assert jobs[0].correlation_id == "cmp-audit-fail"

    attempted = dispatcher.dispatch_due_side_effects(db_session, now=_later())

    assert attempted == 1
    job = _jobs(db_session)[0]
    assert job.status == models.SideEffectJobStatus.DONE
    assert job.attempt_count == 1
    entries = audit_services.list_audit_entries(
        db_session, user_id=user.id, audit_types=[AuditType.REQUIREMENT_STATUS_CHANGE]
    )
    assert len(entries) == 1
    assert entries[0].correlation_id == "cmp-audit-fail"
    assert entries[0].performed_by == "reviewer-1"
    assert entries[0].new_value == {"status": "approved", "score": None}


def test_notification_failure_is_queued_and_retried_with_backoff(db_session, provisioned_user, monkeypatch):
    user = provisioned_user(PractitionerRole.IT)
    monkeypatch.setattr(notification_providers, "get_push_provider", lambda: (_FailingProvider(), True))

    result = services.transition_requirement(db_session, user_id=user.id, requirement_id=CPR, new_status="submitted")

    assert result.success is True
    assert [(w.channel, w.queued) for w in result.warnings] == [("notification", True)]
    assert notification_service.list_notifications(db_session, user_id=user.id) == []

    now = _later()
    dispatcher.dispatch_due_side_effects(db_session, now=now)

    job = _jobs(db_session)[0]
    assert job.status == models.SideEffectJobStatus.FAILED
    assert job.attempt_count == 1
    assert "gateway down" in job.last_error
    assert job.next_attempt_at is not None

    # Not due yet: nothing is attempted.
    assert dispatcher.dispatch_due_side_effects(db_session, now=now) == 0

    recording = _RecordingProvider()
    monkeypatch.setattr(notification_providers, "get_push_provider", lambda: (recording, True))
    later = now + timedelta(seconds=dispatcher.BASE_BACKOFF_SEC + 1)
    assert dispatcher.dispatch_due_side_effects(db_session, now=later) == 1

    job = _jobs(db_session)[0]
    assert job.status == models.SideEffectJobStatus.DONE
    assert job.attempt_count == 2
    notifications = notification_service.list_notifications(db_session, user_id=user.id)
    assert len(notifications) == 1
    assert notifications[0].notification_type == NotificationType.REQUIREMENT_SUBMITTED
    assert notifications[0].delivery_status == notification_models.DeliveryStatus.SENT
    assert recording.sent[0]["notification_type"] == "requirement_submitted"


def test_job_moves_to_dead_letter_after_max_attempts(db_session, provisioned_user, monkeypatch):
    user = provisioned_user(PractitionerRole.IT)
    monkeypatch.setattr(notification_providers, "get_push_provider", lambda: (_FailingProvider(), True))
    services.transition_requirement(db_session, user_id=user.id, requirement_id=CPR, new_status="submitted")

    job = _jobs(db_session)[0]
    job.attempt_count = dispatcher.MAX_ATTEMPTS - 1
    db_session.commit()

    dispatcher.dispatch_due_side_effects(db_session, now=_later())

    job = _jobs(db_session)[0]
    assert job.status == models.SideEffectJobStatus.DEAD_LETTER
    assert job.attempt_count == dispatcher.MAX_ATTEMPTS
    assert job.next_attempt_at is None
    assert dispatcher.dispatch_due_side_effects(db_session, now=_later() + timedelta(days=1)) == 0


def test_unqueueable_failure_is_reported_as_not_queued(db_session, provisioned_user, monkeypatch):
    user = provisioned_user(PractitionerRole.IT)

    def _broken_append(*args, **kwargs):
        raise RuntimeError("audit table locked")

    def _broken_job(**kwargs):
        raise RuntimeError("outbox unavailable")

    monkeypatch.setattr(audit_services, "append_entry", _broken_append)
    monkeypatch.setattr(models, "SideEffectJob", _broken_job)
    result = services.transition_requirement(db_session, user_id=user.id, requirement_id=CPR, new_status="approved")
    monkeypatch.undo()

    assert result.success is True
    assert [(w.channel, w.queued) for w in result.warnings] == [("audit", False)]
    assert _jobs(db_session) == []


def test_compute_next_attempt_is_exponential():
    now = datetime(2026, 1, 1, tzinfo=timezone.utc)
    base = dispatcher.BASE_BACKOFF_SEC
    assert dispatcher._compute_next_attempt(now, 1) == now + timedelta(seconds=base)
    assert dispatcher._compute_next_attempt(now, 2) == now + timedelta(seconds=base * 2)
    assert dispatcher._compute_next_attempt(now, 4) == now + timedelta(seconds=base * 8)
