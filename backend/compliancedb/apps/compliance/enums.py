# backend/compliancedb/apps/compliance/enums.py
from __future__ import annotations

import enum


class PractitionerRole(str, enum.Enum):
    IT = "IT"   # Instructor Trainee
    IP = "IP"   # Instructor Provisional
    IC = "IC"   # Instructor Certified
    AP = "AP"   # Authorized Provider


class ComplianceTier(str, enum.Enum):
    BASIC = "basic"
    ROBUST = "robust"


class RequirementWorkflowStatus(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REVISION_REQUIRED = "revision_required"
    REJECTED = "rejected"


class ComplianceStatus(str, enum.Enum):
    COMPLIANT = "compliant"
    NON_COMPLIANT = "non_compliant"
    WARNING = "warning"
    PENDING = "pending"
    NOT_APPLICABLE = "not_applicable"


class RequirementType(str, enum.Enum):
    DOCUMENT = "document"
    TRAINING = "training"
    CERTIFICATION = "certification"
    ASSESSMENT = "assessment"


class SubmissionKind(str, enum.Enum):
    FILE_UPLOAD = "file_upload"
    FORM = "form"
    EXTERNAL_LINK = "external_link"
    CHECKBOX = "checkbox"


class AuditType(str, enum.Enum):
    REQUIREMENT_STATUS_CHANGE = "requirement_status_change"
    TIER_CHANGE = "tier_change"
    ROLE_CHANGE = "role_change"
    USER_DEACTIVATION = "user_deactivation"
    USER_INITIALIZATION = "user_initialization"
    DEADLINE_ESCALATION = "deadline_escalation"


class NotificationType(str, enum.Enum):
    REQUIREMENT_SUBMITTED = "requirement_submitted"
    REQUIREMENT_APPROVED = "requirement_approved"
    REVISION_REQUIRED = "revision_required"
    REQUIREMENT_REJECTED = "requirement_rejected"
    REQUIREMENT_UPDATED = "requirement_updated"
    TIER_ADVANCEMENT_ELIGIBLE = "tier_advancement_eligible"
    TIER_CHANGE = "tier_change"
    DEADLINE_REMINDER = "deadline_reminder"


class DeadlineLevel(str, enum.Enum):
    WARNING = "warning"
    URGENT = "urgent"
    OVERDUE = "overdue"


# Ordering used by the deadline sweep to detect escalation.
DEADLINE_SEVERITY = {
    DeadlineLevel.WARNING: 1,
    DeadlineLevel.URGENT: 2,
    DeadlineLevel.OVERDUE: 3,
}
