from __future__ import annotations

import logging
import os
import time
from datetime import datetime, timedelta, timezone
from typing import Optional

from sqlalchemy.orm import Session

from compliancedb.apps.audit import schemas as audit_schemas
from compliancedb.apps.audit import services as audit_services
from compliancedb.apps.notifications import service as notification_service
from compliancedb.apps.compliance.enums import NotificationType
from compliancedb.database import WriteSessionLocal

from . import models

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = int(os.getenv("SIDE_EFFECT_DISPATCH_LIMIT", "50"))
DEFAULT_INTERVAL_SEC = int(os.getenv("SIDE_EFFECT_DISPATCH_INTERVAL_SEC", "5"))
MAX_ATTEMPTS = int(os.getenv("SIDE_EFFECT_MAX_ATTEMPTS", "5"))
BASE_BACKOFF_SEC = int(os.getenv("SIDE_EFFECT_BACKOFF_SEC", "5"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _compute_next_attempt(now: datetime, attempt: int) -> datetime:
    backoff = BASE_BACKOFF_SEC * (2 ** max(attempt - 1, 0))
    return now + timedelta(seconds=backoff)


def _replay(db: Session, job: models.SideEffectJob) -> None:
    payload = job.payload_json or {}
    if job.channel == models.SideEffectChannel.AUDIT:
        audit_services.append_entry(
            db,
            user_id=payload["user_id"],
            payload=audit_schemas.parse_audit_payload(payload["payload"]),
            performed_by=payload.get("performed_by"),
            notes=payload.get("notes"),
            correlation_id=job.correlation_id,
        )
    elif job.channel == models.SideEffectChannel.NOTIFICATION:
        notification_service.send_notification(
            db,
            user_id=payload["user_id"],
            notification_type=NotificationType(payload["notification_type"]),
            title=payload["title"],
            message=payload["message"],
            metadata=payload.get("metadata"),
            correlation_id=job.correlation_id,
            critical=True,
        )
    else:
        raise ValueError(f"Unknown side effect channel: {job.channel}")


def dispatch_due_side_effects(db: Session, *, now: Optional[datetime] = None, limit: int = DEFAULT_LIMIT) -> int:
    """
    Replay queued audit/notification effects that are due.

    Each job commits on its own so one poisoned payload cannot hold back the
    rest. Returns the number of jobs attempted.
    """
    now = now or _utcnow()
    job_ids = [
        row.id
        for row in db.query(models.SideEffectJob.id)
        .filter(
            models.SideEffectJob.status.in_(
                [models.SideEffectJobStatus.PENDING, models.SideEffectJobStatus.FAILED]
            ),
            models.SideEffectJob.next_attempt_at <= now,
        )
        .order_by(models.SideEffectJob.next_attempt_at.asc())
        .limit(limit)
        .all()
    ]

    for job_id in job_ids:
        job = db.get(models.SideEffectJob, job_id)
        attempt = job.attempt_count + 1
        try:
            _replay(db, job)
        except Exception as exc:
            db.rollback()
            job = db.get(models.SideEffectJob, job_id)
            job.attempt_count = attempt
            job.last_error = str(exc)[:500]
            if attempt >= MAX_ATTEMPTS:
                job.status = models.SideEffectJobStatus.DEAD_LETTER
                job.next_attempt_at = None
                logger.error(
                    "Side effect moved to dead letter",
                    extra={"job_id": job_id, "channel": job.channel.value, "attempt": attempt},
                )
            else:
                job.status = models.SideEffectJobStatus.FAILED
                job.next_attempt_at = _compute_next_attempt(now, attempt)
            db.commit()
            continue

        job.status = models.SideEffectJobStatus.DONE
        job.attempt_count = attempt
        job.last_error = None
        job.next_attempt_at = None
        job.completed_at = now
        db.commit()

    return len(job_ids)


def run_dispatch_loop() -> None:
    while True:
        db = WriteSessionLocal()
        try:
            dispatched = dispatch_due_side_effects(db)
        except Exception:
            logger.exception("Side effect dispatch pass failed")
            db.rollback()
            dispatched = 0
        finally:
            db.close()
        time.sleep(DEFAULT_INTERVAL_SEC if dispatched == 0 else 0)


if __name__ == "__main__":
    run_dispatch_loop()
