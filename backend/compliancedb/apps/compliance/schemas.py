from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from .enums import (
    ComplianceStatus,
    ComplianceTier,
    DeadlineLevel,
    PractitionerRole,
    RequirementType,
    RequirementWorkflowStatus,
    SubmissionKind,
)
from .errors import ComplianceError, SideEffectWarning


# ---------------------------------------------------------------------------
# OPERATION ENVELOPE
# ---------------------------------------------------------------------------


class OperationMetadata(BaseModel):
    performed_by: Optional[str] = None
    reason: Optional[str] = None
    score: Optional[float] = None
    notes: Optional[str] = None
    correlation_id: Optional[str] = None


class OperationError(BaseModel):
    code: str
    message: str
    detail: List[Dict[str, Any]] = Field(default_factory=list)

    @classmethod
    def from_exception(cls, exc: ComplianceError) -> "OperationError":
        return cls(code=exc.code, message=exc.message, detail=exc.detail)


class SideEffectWarningRead(BaseModel):
    channel: str
    message: str
    queued: bool

    @classmethod
    def from_warning(cls, warning: SideEffectWarning) -> "SideEffectWarningRead":
        return cls(channel=warning.channel, message=warning.message, queued=warning.queued)


class OperationResult(BaseModel):
    success: bool
    data: Optional[Dict[str, Any]] = None
    error: Optional[OperationError] = None
    message: Optional[str] = None
    warnings: List[SideEffectWarningRead] = Field(default_factory=list)

    @computed_field
    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)


# ---------------------------------------------------------------------------
# REQUEST BODIES
# ---------------------------------------------------------------------------


class StatusTransitionRequest(BaseModel):
    # Plain str so unknown values reach the engine and fail as invalid_status.
    status: str
    score: Optional[float] = None
    notes: Optional[str] = None


class SubmissionRequest(BaseModel):
    fields: Dict[str, Any] = Field(default_factory=dict)
    files: List[Dict[str, Any]] = Field(default_factory=list)
    score: Optional[float] = None
    url: Optional[str] = None
    notes: Optional[str] = None


class TierSwitchRequest(BaseModel):
    tier: ComplianceTier
    reason: Optional[str] = None


class RoleChangeRequest(BaseModel):
    old_role: PractitionerRole
    new_role: PractitionerRole
    reason: Optional[str] = None


class DeactivateRequest(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


# ---------------------------------------------------------------------------
# READ MODELS
# ---------------------------------------------------------------------------


class ValidationRulesRead(BaseModel):
    file_types: List[str] = Field(default_factory=list)
    max_file_size: Optional[int] = None
    required_fields: List[str] = Field(default_factory=list)
    min_score: Optional[float] = None

    class Config:
        from_attributes = True


class RequirementDefinitionRead(BaseModel):
    requirement_id: str
    name: str
    description: str
    category: str
    requirement_type: RequirementType
    submission_kind: SubmissionKind
    mandatory: bool
    point_value: int
    due_days_from_assignment: int
    display_order: int
    validation_rules: ValidationRulesRead

    class Config:
        from_attributes = True


class RequirementTemplateRead(BaseModel):
    role: PractitionerRole
    tier: ComplianceTier
    template_name: str
    description: str
    total_points: int
    requirements: List[RequirementDefinitionRead]


class ComplianceRecordRead(BaseModel):
    id: str
    user_id: str
    requirement_id: str
    requirement_name: str
    role: PractitionerRole
    tier: ComplianceTier
    is_mandatory: bool
    point_value: int
    workflow_status: RequirementWorkflowStatus
    compliance_status: ComplianceStatus
    score: Optional[float] = None
    notes: Optional[str] = None
    submission_data: Optional[dict] = None
    due_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    last_escalation_level: Optional[DeadlineLevel] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
