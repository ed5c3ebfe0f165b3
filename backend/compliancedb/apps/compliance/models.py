from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)

from compliancedb.database import Base, enum_values
from compliancedb.utils.identifiers import generate_uuid7

from .enums import (
    ComplianceStatus,
    ComplianceTier,
    DeadlineLevel,
    PractitionerRole,
    RequirementWorkflowStatus,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SideEffectChannel(str, enum.Enum):
    AUDIT = "audit"
    NOTIFICATION = "notification"


class SideEffectJobStatus(str, enum.Enum):
    PENDING = "pending"
    FAILED = "failed"
    DONE = "done"
    DEAD_LETTER = "dead_letter"


class UserComplianceRecord(Base):
    """
    One row per (user, requirement). Never hard-deleted: dropped requirements
    are superseded with compliance_status = not_applicable.

    Definition fields (name, mandatory, points) are copied from the catalog
    when the record is provisioned.
    """

    __tablename__ = "user_compliance_records"
    __table_args__ = (
        UniqueConstraint("user_id", "requirement_id", name="uq_compliance_records_user_requirement"),
        Index("ix_compliance_records_user_status", "user_id", "compliance_status"),
        Index("ix_compliance_records_due", "compliance_status", "due_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    requirement_id = Column(String(128), nullable=False, index=True)
    requirement_name = Column(String(255), nullable=False)
    role = Column(
        SAEnum(PractitionerRole, name="practitioner_role_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    tier = Column(
        SAEnum(ComplianceTier, name="compliance_tier_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    is_mandatory = Column(Boolean, nullable=False, default=True)
    point_value = Column(Integer, nullable=False, default=0)

    workflow_status = Column(
        SAEnum(
            RequirementWorkflowStatus,
            name="requirement_workflow_status_enum",
            native_enum=False,
            values_callable=enum_values,
        ),
        nullable=False,
        default=RequirementWorkflowStatus.PENDING,
    )
    compliance_status = Column(
        SAEnum(ComplianceStatus, name="compliance_status_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=ComplianceStatus.PENDING,
        index=True,
    )
    score = Column(Float, nullable=True)
    notes = Column(Text, nullable=True)
    submission_data = Column(JSON, nullable=True)

    due_at = Column(DateTime(timezone=True), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)
    last_escalation_level = Column(
        SAEnum(DeadlineLevel, name="deadline_level_enum", native_enum=False, values_callable=enum_values),
        nullable=True,
    )

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_active(self) -> bool:
        return self.compliance_status != ComplianceStatus.NOT_APPLICABLE

    def __repr__(self) -> str:
        return (
            f"<UserComplianceRecord user={self.user_id} requirement={self.requirement_id} "
            f"status={self.workflow_status}/{self.compliance_status}>"
        )


class TierAssignment(Base):
    """
    Current tier per user plus the cached completion percentage.

    completion_percentage is derived: it is refreshed from the active records
    whenever an orchestration commits.
    """

    __tablename__ = "tier_assignments"

    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    tier = Column(
        SAEnum(ComplianceTier, name="compliance_tier_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
    )
    completion_percentage = Column(Float, nullable=False, default=0.0)
    advancement_eligible = Column(Boolean, nullable=False, default=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    assigned_by = Column(String(64), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<TierAssignment user={self.user_id} tier={self.tier} completion={self.completion_percentage}>"


class SideEffectJob(Base):
    """
    Retry queue for audit appends and notification sends that failed after
    the primary state change committed.
    """

    __tablename__ = "side_effect_jobs"
    __table_args__ = (
        Index("ix_side_effect_jobs_status_next", "status", "next_attempt_at"),
        Index("ix_side_effect_jobs_created_at", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    channel = Column(
        SAEnum(SideEffectChannel, name="side_effect_channel_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    user_id = Column(String(36), nullable=True, index=True)
    payload_json = Column(JSON, nullable=False)
    correlation_id = Column(String(64), nullable=True, index=True)
    status = Column(
        SAEnum(SideEffectJobStatus, name="side_effect_job_status_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        default=SideEffectJobStatus.PENDING,
        index=True,
    )
    attempt_count = Column(Integer, nullable=False, default=0)
    next_attempt_at = Column(DateTime(timezone=True), nullable=True)
    last_error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<SideEffectJob id={self.id} channel={self.channel} status={self.status}>"
