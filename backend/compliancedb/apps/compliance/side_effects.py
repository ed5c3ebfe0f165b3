from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from compliancedb.apps.audit import schemas as audit_schemas
from compliancedb.apps.audit import services as audit_services
from compliancedb.apps.notifications import service as notification_service

from . import models
from .enums import NotificationType
from .errors import SideEffectWarning

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SideEffects:
    """
    Audit and notification effects of one orchestration, run after its
    primary commit.

    Each effect commits on its own. A failing effect is rolled back, queued
    on side_effect_jobs for the dispatcher, and reported as a
    SideEffectWarning; it never fails the orchestration.
    """

    def __init__(self, db: Session, *, correlation_id: Optional[str] = None) -> None:
        self.db = db
        self.correlation_id = correlation_id
        self.warnings: List[SideEffectWarning] = []

    def audit(
        self,
        *,
        user_id: str,
        payload: audit_schemas.AuditPayload,
        performed_by: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        try:
            audit_services.log_entry(
                self.db,
                user_id=user_id,
                payload=payload,
                performed_by=performed_by,
                notes=notes,
                correlation_id=self.correlation_id,
                critical=True,
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            self._defer(
                models.SideEffectChannel.AUDIT,
                user_id=user_id,
                payload={
                    "user_id": user_id,
                    "payload": payload.model_dump(mode="json"),
                    "performed_by": performed_by,
                    "notes": notes,
                },
                error=exc,
            )

    def notify(
        self,
        *,
        user_id: str,
        notification_type: NotificationType,
        title: str,
        message: str,
        metadata: Optional[dict] = None,
    ) -> None:
        try:
            notification_service.send_notification(
                self.db,
                user_id=user_id,
                notification_type=notification_type,
                title=title,
                message=message,
                metadata=metadata,
                correlation_id=self.correlation_id,
                critical=True,
            )
            self.db.commit()
        except Exception as exc:
            self.db.rollback()
            self._defer(
                models.SideEffectChannel.NOTIFICATION,
                user_id=user_id,
                payload={
                    "user_id": user_id,
                    "notification_type": NotificationType(notification_type).value,
                    "title": title,
                    "message": message,
                    "metadata": metadata or {},
                },
                error=exc,
            )

    def _defer(self, channel: models.SideEffectChannel, *, user_id: str, payload: dict, error: Exception) -> None:
        logger.warning(
            "Side effect failed after commit; queueing for retry",
            extra={
                "channel": channel.value,
                "user_id": user_id,
                "correlation_id": self.correlation_id,
                "error": str(error),
            },
        )
        try:
            job = models.SideEffectJob(
                channel=channel,
                user_id=user_id,
                payload_json=payload,
                correlation_id=self.correlation_id,
                status=models.SideEffectJobStatus.PENDING,
                attempt_count=0,
                next_attempt_at=_utcnow(),
                last_error=str(error)[:500],
            )
            self.db.add(job)
            self.db.commit()
            queued = True
        except Exception:
            self.db.rollback()
            logger.exception(
                "Could not queue failed side effect",
                extra={"channel": channel.value, "user_id": user_id, "correlation_id": self.correlation_id},
            )
            queued = False
        self.warnings.append(SideEffectWarning(channel=channel.value, message=str(error), queued=queued))
