# backend/compliancedb/apps/accounts/models.py

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    String,
)

from compliancedb.database import Base, enum_values
from compliancedb.apps.compliance.enums import ComplianceTier, PractitionerRole
from compliancedb.utils.identifiers import generate_uuid7


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(Base):
    """
    Practitioner account.

    Role and compliance tier are only mutated through the compliance
    orchestrators. Users are never deleted; deactivation clears is_active
    and stamps deactivated_at.

    `version` is the optimistic-concurrency token. Every orchestration that
    touches a user's requirement set or tier bumps it, so concurrent
    per-user writes collide here.
    """

    __tablename__ = "users"
    __table_args__ = (
        Index("idx_users_role_tier", "role", "compliance_tier"),
        Index("idx_users_active", "is_active"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid7)
    email = Column(String(255), nullable=False, unique=True, index=True)
    full_name = Column(String(255), nullable=False)

    role = Column(
        SAEnum(PractitionerRole, name="practitioner_role_enum", native_enum=False, values_callable=enum_values),
        nullable=False,
        index=True,
    )
    # NULL until the user has been provisioned through initialize_user.
    compliance_tier = Column(
        SAEnum(ComplianceTier, name="compliance_tier_enum", native_enum=False, values_callable=enum_values),
        nullable=True,
    )

    is_active = Column(Boolean, nullable=False, default=True)
    is_admin = Column(Boolean, nullable=False, default=False)
    deactivated_at = Column(DateTime(timezone=True), nullable=True)
    deactivation_reason = Column(String(255), nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self) -> str:
        return f"<User id={self.id} role={self.role} tier={self.compliance_tier}>"
