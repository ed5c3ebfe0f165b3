from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from compliancedb.apps.compliance.enums import (
    AuditType,
    ComplianceTier,
    DeadlineLevel,
    PractitionerRole,
    RequirementWorkflowStatus,
)


# ---------------------------------------------------------------------------
# TYPED AUDIT PAYLOADS
# ---------------------------------------------------------------------------
#
# One payload class per audit_type, tagged by the AuditType value. Each knows how
# to project itself onto the old_value / new_value columns of the log row.


class _AuditPayloadBase(BaseModel):
    def old_value(self) -> Optional[dict]:
        return None

    def new_value(self) -> Optional[dict]:
        return None


class RequirementStatusChanged(_AuditPayloadBase):
    audit_type: Literal["requirement_status_change"] = "requirement_status_change"
    requirement_id: str
    requirement_name: str
    old_status: Optional[RequirementWorkflowStatus] = None
    new_status: RequirementWorkflowStatus
    score: Optional[float] = None
    completion_percentage: float

    def old_value(self) -> Optional[dict]:
        return {"status": self.old_status.value if self.old_status else None}

    def new_value(self) -> Optional[dict]:
        return {"status": self.new_status.value, "score": self.score}


class TierChanged(_AuditPayloadBase):
    audit_type: Literal["tier_change"] = "tier_change"
    old_tier: Optional[ComplianceTier] = None
    new_tier: ComplianceTier
    reason: Optional[str] = None
    added: List[str] = Field(default_factory=list)
    retired: List[str] = Field(default_factory=list)

    def old_value(self) -> Optional[dict]:
        return {"tier": self.old_tier.value if self.old_tier else None}

    def new_value(self) -> Optional[dict]:
        return {"tier": self.new_tier.value, "reason": self.reason}


class RoleChanged(_AuditPayloadBase):
    audit_type: Literal["role_change"] = "role_change"
    old_role: PractitionerRole
    new_role: PractitionerRole
    old_tier: Optional[ComplianceTier] = None
    new_tier: ComplianceTier
    tier_changed: bool

    def old_value(self) -> Optional[dict]:
        return {"role": self.old_role.value, "tier": self.old_tier.value if self.old_tier else None}

    def new_value(self) -> Optional[dict]:
        return {"role": self.new_role.value, "tier": self.new_tier.value}


class UserDeactivated(_AuditPayloadBase):
    audit_type: Literal["user_deactivation"] = "user_deactivation"
    reason: str
    records_retired: int

    def old_value(self) -> Optional[dict]:
        return {"is_active": True}

    def new_value(self) -> Optional[dict]:
        return {"is_active": False, "reason": self.reason}


class UserInitialized(_AuditPayloadBase):
    audit_type: Literal["user_initialization"] = "user_initialization"
    role: PractitionerRole
    tier: ComplianceTier
    requirements_provisioned: int

    def new_value(self) -> Optional[dict]:
        return {"role": self.role.value, "tier": self.tier.value}


class DeadlineEscalated(_AuditPayloadBase):
    audit_type: Literal["deadline_escalation"] = "deadline_escalation"
    requirement_id: str
    requirement_name: str
    old_level: Optional[DeadlineLevel] = None
    new_level: DeadlineLevel
    days_remaining: int

    def old_value(self) -> Optional[dict]:
        return {"level": self.old_level.value if self.old_level else None}

    def new_value(self) -> Optional[dict]:
        return {"level": self.new_level.value, "days_remaining": self.days_remaining}


AuditPayload = Annotated[
    Union[
        RequirementStatusChanged,
        TierChanged,
        RoleChanged,
        UserDeactivated,
        UserInitialized,
        DeadlineEscalated,
    ],
    Field(discriminator="audit_type"),
]

audit_payload_adapter: TypeAdapter = TypeAdapter(AuditPayload)


def parse_audit_payload(data: dict) -> AuditPayload:
    return audit_payload_adapter.validate_python(data)


# ---------------------------------------------------------------------------
# READ MODELS
# ---------------------------------------------------------------------------


class AuditEntryRead(BaseModel):
    id: str
    audit_type: AuditType
    user_id: str
    performed_by: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    notes: Optional[str] = None
    payload: dict
    correlation_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True
