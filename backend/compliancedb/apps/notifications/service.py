from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from compliancedb.apps.compliance.enums import ComplianceTier, NotificationType, RequirementWorkflowStatus

from . import models, providers

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# MESSAGE TEXTS
# ---------------------------------------------------------------------------

_REQUIREMENT_OUTCOMES = {
    RequirementWorkflowStatus.SUBMITTED: (
        NotificationType.REQUIREMENT_SUBMITTED,
        "Requirement Submitted",
        "Your {name} has been submitted for review.",
    ),
    RequirementWorkflowStatus.APPROVED: (
        NotificationType.REQUIREMENT_APPROVED,
        "Requirement Approved",
        "Your {name} has been approved.",
    ),
    RequirementWorkflowStatus.REVISION_REQUIRED: (
        NotificationType.REVISION_REQUIRED,
        "Revision Required",
        "Your {name} requires revision.",
    ),
    RequirementWorkflowStatus.REJECTED: (
        NotificationType.REQUIREMENT_REJECTED,
        "Requirement Rejected",
        "Your {name} has been rejected.",
    ),
}


def requirement_outcome_message(
    status: RequirementWorkflowStatus, requirement_name: str
) -> Tuple[NotificationType, str, str]:
    notification_type, title, template = _REQUIREMENT_OUTCOMES.get(
        RequirementWorkflowStatus(status),
        (NotificationType.REQUIREMENT_UPDATED, "Requirement Updated", "Your {name} has been updated."),
    )
    return notification_type, title, template.format(name=requirement_name)


def advancement_message(next_tier: ComplianceTier) -> Tuple[NotificationType, str, str]:
    return (
        NotificationType.TIER_ADVANCEMENT_ELIGIBLE,
        "Tier Advancement Available",
        f"You are now eligible to advance to {ComplianceTier(next_tier).value}!",
    )


def tier_change_message(
    old_tier: Optional[ComplianceTier], new_tier: ComplianceTier
) -> Tuple[NotificationType, str, str]:
    old_label = ComplianceTier(old_tier).value if old_tier else "none"
    return (
        NotificationType.TIER_CHANGE,
        "Compliance Tier Changed",
        f"Your compliance tier has been changed from {old_label} to {ComplianceTier(new_tier).value}.",
    )


def deadline_message(level: str, requirement_name: str, days_remaining: int) -> Tuple[NotificationType, str, str]:
    if days_remaining <= 0:
        text = f"Your {requirement_name} is overdue."
    elif days_remaining == 1:
        text = f"Your {requirement_name} is due tomorrow."
    else:
        text = f"Your {requirement_name} is due in {days_remaining} days."
    return NotificationType.DEADLINE_REMINDER, f"Deadline Reminder ({level})", text


# ---------------------------------------------------------------------------
# DELIVERY
# ---------------------------------------------------------------------------


def send_notification(
    db: Session,
    *,
    user_id: str,
    notification_type: NotificationType,
    title: str,
    message: str,
    metadata: Optional[dict] = None,
    correlation_id: Optional[str] = None,
    critical: bool = False,
) -> models.Notification:
    """
    Persist the notification, then hand it to the configured push provider.

    No provider configured -> SKIPPED_NO_PROVIDER (the row is still readable
    in-app). Provider failure -> FAILED; re-raised when critical.
    """
    notification = models.Notification(
        user_id=user_id,
        notification_type=notification_type,
        title=title,
        message=message,
        metadata_json=metadata or {},
        correlation_id=correlation_id,
        delivery_status=models.DeliveryStatus.QUEUED,
    )
    db.add(notification)
    db.flush()

    provider, configured = providers.get_push_provider()
    if not configured:
        notification.delivery_status = models.DeliveryStatus.SKIPPED_NO_PROVIDER
        notification.error = "No provider configured"
        db.flush()
        return notification

    try:
        provider.send(
            user_id=user_id,
            notification_type=NotificationType(notification_type).value,
            title=title,
            message=message,
            metadata=metadata or {},
            correlation_id=correlation_id,
        )
        notification.delivery_status = models.DeliveryStatus.SENT
        notification.sent_at = _utcnow()
    except Exception as exc:
        notification.delivery_status = models.DeliveryStatus.FAILED
        notification.error = str(exc)
        logger.warning(
            "Push delivery failed",
            extra={"user_id": user_id, "notification_type": str(notification_type), "critical": critical},
        )
        if critical:
            raise
    db.flush()
    return notification


def list_notifications(
    db: Session,
    *,
    user_id: str,
    unread_only: bool = False,
    limit: int = 100,
) -> List[models.Notification]:
    query = db.query(models.Notification).filter(models.Notification.user_id == user_id)
    if unread_only:
        query = query.filter(models.Notification.read_at.is_(None))
    return query.order_by(models.Notification.created_at.desc()).limit(limit).all()


def mark_read(db: Session, *, notification_id: str, user_id: str) -> Optional[models.Notification]:
    notification = (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id, models.Notification.user_id == user_id)
        .first()
    )
    if notification is None:
        return None
    if notification.read_at is None:
        notification.read_at = _utcnow()
        db.commit()
    return notification
