from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Enum as SAEnum, ForeignKey, Index, JSON, String, Text, desc

from compliancedb.database import Base, enum_values
from compliancedb.apps.compliance.enums import AuditType
from compliancedb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ComplianceAuditLog(Base):
    """
    Append-only trail of every compliance orchestration decision.
    Rows are never updated or deleted.
    """

    __tablename__ = "compliance_audit_log"
    __table_args__ = (
        Index("ix_compliance_audit_user_type", "user_id", "audit_type"),
        Index("ix_compliance_audit_user_time_desc", "user_id", desc("created_at")),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7, index=True)
    audit_type = Column(
        SAEnum(AuditType, name="audit_type_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    performed_by = Column(String(64), nullable=False, default="system")
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    notes = Column(Text, nullable=True)
    payload = Column(JSON, nullable=False)
    correlation_id = Column(String(64), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def __repr__(self) -> str:
        return f"<ComplianceAuditLog id={self.id} type={self.audit_type} user={self.user_id}>"
