from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional


class ComplianceError(Exception):
    """Base for every engine failure that surfaces in an OperationResult."""

    code = "compliance_error"

    def __init__(self, message: str, *, detail: Optional[List[Dict[str, Any]]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail or []


class ValidationError(ComplianceError):
    """Malformed input; raised before any write."""

    code = "validation_error"


class InvalidStatus(ValidationError):
    code = "invalid_status"


class UnknownTemplate(ValidationError):
    code = "unknown_template"


class UserNotFound(ValidationError):
    code = "user_not_found"


class RequirementNotAssigned(ValidationError):
    code = "requirement_not_assigned"


class SubmissionRejected(ValidationError):
    code = "submission_rejected"


class PersistenceError(ComplianceError):
    """The primary store write failed; nothing happened."""

    code = "persistence_error"


class ConcurrencyConflict(PersistenceError):
    code = "concurrency_conflict"


class PolicyError(ComplianceError):
    """Request is a no-op under policy (already deactivated, highest tier, ...)."""

    code = "policy_noop"

    def __init__(
        self,
        message: str,
        *,
        detail: Optional[List[Dict[str, Any]]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message, detail=detail)
        self.data = data or {}


@dataclass(frozen=True)
class SideEffectWarning:
    channel: str
    message: str
    queued: bool

    def as_text(self) -> str:
        suffix = "queued for retry" if self.queued else "not queued"
        return f"{self.channel}: {self.message} ({suffix})"
