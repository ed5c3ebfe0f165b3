from __future__ import annotations

from datetime import datetime, timezone
import enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Index, JSON, String, Text

from compliancedb.database import Base, enum_values
from compliancedb.apps.compliance.enums import NotificationType
from compliancedb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DeliveryStatus(str, enum.Enum):
    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    SKIPPED_NO_PROVIDER = "skipped_no_provider"


class Notification(Base):
    """
    User-facing message. Write-once apart from read_at.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_created", "user_id", "created_at"),
        Index("ix_notifications_user_unread", "user_id", "read_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    notification_type = Column(
        SAEnum(NotificationType, name="notification_type_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    metadata_json = Column("metadata", JSON, nullable=True)
    correlation_id = Column(String(64), nullable=True, index=True)

    delivery_status = Column(
        SAEnum(DeliveryStatus, name="notification_delivery_status_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=DeliveryStatus.QUEUED,
        index=True,
    )
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Notification id={self.id} user={self.user_id} type={self.notification_type}>"
