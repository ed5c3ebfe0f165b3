# backend/compliancedb/apps/compliance/services.py
"""
Compliance orchestrations.

Every public operation follows the same shape:

1. Derive and write the primary state change through ComplianceStore and
   commit it in one transaction. Optimistic version conflicts roll back and
   re-derive up to CONFLICT_RETRIES times.
2. After the commit, run audit and notification effects through
   SideEffects. Failures there become warnings on the result and queued
   retry jobs; they never undo the committed change.
3. Return an OperationResult. Domain failures are returned, not raised.
"""

from __future__ import annotations

import logging
import math
import os
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from sqlalchemy.orm import Session

from compliancedb.apps.accounts.models import User
from compliancedb.apps.audit import schemas as audit_schemas
from compliancedb.apps.notifications import service as notification_service
from compliancedb.utils.identifiers import generate_correlation_id

from . import catalog
from .enums import (
    DEADLINE_SEVERITY,
    ComplianceStatus,
    ComplianceTier,
    DeadlineLevel,
    PractitionerRole,
    RequirementWorkflowStatus,
)
from .errors import (
    ComplianceError,
    ConcurrencyConflict,
    PolicyError,
    RequirementNotAssigned,
    SubmissionRejected,
    ValidationError,
)
from .evaluator import TierAdvancementDecision, evaluate_tier_advancement
from .mapper import parse_workflow_status
from .policy import DEADLINE_WARNING_DAYS, DEFAULT_POLICY, TierPolicy
from .reconcile import ReconcileResult, reconcile_requirement_set
from .schemas import OperationError, OperationMetadata, OperationResult, SideEffectWarningRead
from .side_effects import SideEffects
from .store import ComplianceStore, as_utc
from .summary import ComplianceSummary, summarize
from .validation import submission_score, validate_submission

logger = logging.getLogger(__name__)

CONFLICT_RETRIES = int(os.getenv("COMPLIANCE_CONFLICT_RETRIES", "2"))

T = TypeVar("T")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# RESULT HELPERS
# ---------------------------------------------------------------------------


def _success(data: Dict[str, Any], *, message: Optional[str] = None, effects: Optional[SideEffects] = None) -> OperationResult:
    warnings = [SideEffectWarningRead.from_warning(w) for w in (effects.warnings if effects else [])]
    return OperationResult(success=True, data=data, message=message, warnings=warnings)


def _failure(exc: ComplianceError) -> OperationResult:
    return OperationResult(success=False, error=OperationError.from_exception(exc), message=exc.message)


def _noop(exc: PolicyError) -> OperationResult:
    return OperationResult(success=True, data={"changed": False, **exc.data}, message=exc.message)


def _effects(metadata: OperationMetadata, db: Session) -> SideEffects:
    return SideEffects(db, correlation_id=metadata.correlation_id or generate_correlation_id())


def _parse_tier(value: Union[str, ComplianceTier]) -> ComplianceTier:
    try:
        return ComplianceTier(value)
    except ValueError:
        raise ValidationError(
            f"Unknown compliance tier: {value!r}",
            detail=[{"field": "tier", "value": value, "allowed": [t.value for t in ComplianceTier]}],
        )


def _parse_role(value: Union[str, PractitionerRole], field_name: str = "role") -> PractitionerRole:
    try:
        return PractitionerRole(value)
    except ValueError:
        raise ValidationError(
            f"Unknown practitioner role: {value!r}",
            detail=[{"field": field_name, "value": value, "allowed": [r.value for r in PractitionerRole]}],
        )


def _require_initialized(user: User) -> ComplianceTier:
    if user.compliance_tier is None:
        raise ValidationError(
            "User has not been initialized for compliance tracking",
            detail=[{"field": "user_id", "value": user.id}],
        )
    return ComplianceTier(user.compliance_tier)


def _commit_with_retry(db: Session, operation: str, user_id: Optional[str], apply: Callable[[ComplianceStore], T]) -> T:
    attempt = 0
    while True:
        store = ComplianceStore(db)
        try:
            outcome = apply(store)
            store.commit()
            return outcome
        except ConcurrencyConflict:
            store.rollback()
            if attempt >= CONFLICT_RETRIES:
                logger.warning(
                    "Concurrency conflict retries exhausted",
                    extra={"operation": operation, "user_id": user_id, "attempt": attempt},
                )
                raise
            attempt += 1
            logger.warning(
                "Concurrency conflict; re-deriving",
                extra={"operation": operation, "user_id": user_id, "attempt": attempt},
            )
        except Exception:
            store.rollback()
            raise


# ---------------------------------------------------------------------------
# SHARED CORE
# ---------------------------------------------------------------------------


@dataclass
class TierProvisioning:
    user_id: str
    role: PractitionerRole
    old_tier: Optional[ComplianceTier]
    new_tier: ComplianceTier
    reactivated: bool
    reconcile: ReconcileResult
    summary: ComplianceSummary
    decision: TierAdvancementDecision

    @property
    def tier_changed(self) -> bool:
        return self.old_tier != self.new_tier


def _refresh_assignment(
    store: ComplianceStore,
    user: User,
    *,
    policy: TierPolicy,
    assigned_by: Optional[str],
    now: datetime,
) -> Tuple[ComplianceSummary, TierAdvancementDecision]:
    tier = ComplianceTier(user.compliance_tier)
    summary = summarize(store.list_compliance_records(user.id, active_only=True))
    decision = evaluate_tier_advancement(tier, summary.exact_completion, policy)
    store.save_tier_assignment(
        user.id,
        tier=tier,
        completion_percentage=summary.completion_percentage,
        advancement_eligible=decision.eligible and bool(user.is_active),
        assigned_by=assigned_by,
        now=now,
    )
    return summary, decision


def _provision_tier(
    store: ComplianceStore,
    user: User,
    *,
    role: PractitionerRole,
    tier: ComplianceTier,
    metadata: OperationMetadata,
    policy: TierPolicy,
    now: datetime,
) -> TierProvisioning:
    """
    Put the user on (role, tier): persist both, reactivate if deactivated,
    reconcile the requirement set and refresh the tier assignment.
    """
    catalog.get_requirement_template(role, tier)
    old_tier = ComplianceTier(user.compliance_tier) if user.compliance_tier is not None else None
    reactivated = not user.is_active

    store.update_user(
        user,
        role=role,
        compliance_tier=tier,
        is_active=True,
        deactivated_at=None,
        deactivation_reason=None,
    )
    reconcile = reconcile_requirement_set(store, user.id, role, tier, now=now)
    summary, decision = _refresh_assignment(store, user, policy=policy, assigned_by=metadata.performed_by, now=now)
    return TierProvisioning(
        user_id=user.id,
        role=role,
        old_tier=old_tier,
        new_tier=tier,
        reactivated=reactivated,
        reconcile=reconcile,
        summary=summary,
        decision=decision,
    )


def _emit_tier_effects(
    effects: SideEffects,
    provisioning: TierProvisioning,
    metadata: OperationMetadata,
    *,
    reason: str,
) -> None:
    effects.audit(
        user_id=provisioning.user_id,
        payload=audit_schemas.TierChanged(
            old_tier=provisioning.old_tier,
            new_tier=provisioning.new_tier,
            reason=metadata.reason or reason,
            added=provisioning.reconcile.added + provisioning.reconcile.reactivated,
            retired=provisioning.reconcile.retired,
        ),
        performed_by=metadata.performed_by,
        notes=metadata.notes,
    )
    if provisioning.tier_changed:
        notification_type, title, message = notification_service.tier_change_message(
            provisioning.old_tier, provisioning.new_tier
        )
        effects.notify(
            user_id=provisioning.user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            metadata={
                "old_tier": provisioning.old_tier.value if provisioning.old_tier else None,
                "new_tier": provisioning.new_tier.value,
            },
        )


def _provisioning_data(provisioning: TierProvisioning) -> Dict[str, Any]:
    return {
        "changed": True,
        "user_id": provisioning.user_id,
        "role": provisioning.role.value,
        "old_tier": provisioning.old_tier.value if provisioning.old_tier else None,
        "new_tier": provisioning.new_tier.value,
        "tier_changed": provisioning.tier_changed,
        "reactivated": provisioning.reactivated,
        "requirements": provisioning.reconcile.as_dict(),
        "summary": provisioning.summary.as_dict(),
        "advancement": provisioning.decision.as_dict(),
    }


# ---------------------------------------------------------------------------
# REQUIREMENT STATUS TRANSITION
# ---------------------------------------------------------------------------


@dataclass
class _TransitionOutcome:
    user_id: str
    requirement_id: str
    requirement_name: str
    old_status: Optional[RequirementWorkflowStatus]
    new_status: RequirementWorkflowStatus
    compliance_status: ComplianceStatus
    summary: ComplianceSummary
    decision: TierAdvancementDecision
    newly_eligible: bool


def _apply_transition(
    store: ComplianceStore,
    *,
    user_id: str,
    requirement_id: str,
    status: RequirementWorkflowStatus,
    metadata: OperationMetadata,
    submission_data: Optional[dict],
    policy: TierPolicy,
    now: datetime,
) -> _TransitionOutcome:
    user = store.get_user(user_id)
    if not user.is_active:
        raise PolicyError("User is deactivated; requirement status unchanged", data={"user_id": user_id})
    tier = _require_initialized(user)
    role = PractitionerRole(user.role)

    template = catalog.get_requirement_template(role, tier)
    definition = next((d for d in template.requirements if d.requirement_id == requirement_id), None)
    if definition is None:
        raise RequirementNotAssigned(
            f"Requirement {requirement_id} is not part of the {role.value}/{tier.value} template",
            detail=[{"field": "requirement_id", "value": requirement_id}],
        )

    before = summarize(store.list_compliance_records(user.id, active_only=True))
    was_eligible = evaluate_tier_advancement(tier, before.exact_completion, policy).eligible

    existing = store.get_compliance_record(user.id, requirement_id)
    old_status = RequirementWorkflowStatus(existing.workflow_status) if existing is not None else None

    record = store.upsert_compliance_record(
        user.id,
        definition,
        role=role,
        tier=tier,
        workflow_status=status,
        score=metadata.score,
        notes=metadata.notes,
        submission_data=submission_data,
        now=now,
    )
    store.update_user(user)
    summary, decision = _refresh_assignment(store, user, policy=policy, assigned_by=metadata.performed_by, now=now)

    return _TransitionOutcome(
        user_id=user.id,
        requirement_id=requirement_id,
        requirement_name=definition.name,
        old_status=old_status,
        new_status=status,
        compliance_status=ComplianceStatus(record.compliance_status),
        summary=summary,
        decision=decision,
        newly_eligible=decision.eligible and not was_eligible,
    )


def _finish_transition(db: Session, outcome: _TransitionOutcome, metadata: OperationMetadata) -> OperationResult:
    effects = _effects(metadata, db)
    effects.audit(
        user_id=outcome.user_id,
        payload=audit_schemas.RequirementStatusChanged(
            requirement_id=outcome.requirement_id,
            requirement_name=outcome.requirement_name,
            old_status=outcome.old_status,
            new_status=outcome.new_status,
            score=metadata.score,
            completion_percentage=outcome.summary.completion_percentage,
        ),
        performed_by=metadata.performed_by,
        notes=metadata.notes,
    )

    notification_type, title, message = notification_service.requirement_outcome_message(
        outcome.new_status, outcome.requirement_name
    )
    effects.notify(
        user_id=outcome.user_id,
        notification_type=notification_type,
        title=title,
        message=message,
        metadata={"requirement_id": outcome.requirement_id, "status": outcome.new_status.value},
    )

    if outcome.newly_eligible and outcome.decision.next_tier is not None:
        notification_type, title, message = notification_service.advancement_message(outcome.decision.next_tier)
        effects.notify(
            user_id=outcome.user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            metadata={
                "next_tier": outcome.decision.next_tier.value,
                "completion_percentage": outcome.summary.completion_percentage,
            },
        )

    logger.info(
        "Requirement status transitioned",
        extra={
            "user_id": outcome.user_id,
            "requirement_id": outcome.requirement_id,
            "new_status": outcome.new_status.value,
            "warnings": len(effects.warnings),
        },
    )
    return _success(
        {
            "changed": True,
            "user_id": outcome.user_id,
            "requirement_id": outcome.requirement_id,
            "old_status": outcome.old_status.value if outcome.old_status else None,
            "new_status": outcome.new_status.value,
            "compliance_status": outcome.compliance_status.value,
            "summary": outcome.summary.as_dict(),
            "advancement": outcome.decision.as_dict(),
        },
        message=outcome.decision.message if outcome.newly_eligible else None,
        effects=effects,
    )


def transition_requirement(
    db: Session,
    *,
    user_id: str,
    requirement_id: str,
    new_status: Union[str, RequirementWorkflowStatus],
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    """
    Move one requirement to any workflow status.

    There is no guard on the source status: reviewers may revert records.
    """
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        status = parse_workflow_status(new_status)
        outcome = _commit_with_retry(
            db,
            "transition_requirement",
            user_id,
            lambda store: _apply_transition(
                store,
                user_id=user_id,
                requirement_id=requirement_id,
                status=status,
                metadata=metadata,
                submission_data=None,
                policy=policy,
                now=now,
            ),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)
    return _finish_transition(db, outcome, metadata)


def submit_requirement(
    db: Session,
    *,
    user_id: str,
    requirement_id: str,
    submission: Mapping[str, Any],
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    """Validate a submission against the requirement's rules, then move it to submitted."""
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        definition = catalog.get_requirement(requirement_id)
        if definition is None:
            raise RequirementNotAssigned(
                f"Unknown requirement {requirement_id}",
                detail=[{"field": "requirement_id", "value": requirement_id}],
            )
        problems = validate_submission(definition, submission)
        if problems:
            raise SubmissionRejected(
                "Submission failed validation",
                detail=[{"field": "submission", "message": problem} for problem in problems],
            )
        score = metadata.score if metadata.score is not None else submission_score(submission)
        metadata = metadata.model_copy(update={"score": score, "notes": metadata.notes or submission.get("notes")})
        outcome = _commit_with_retry(
            db,
            "submit_requirement",
            user_id,
            lambda store: _apply_transition(
                store,
                user_id=user_id,
                requirement_id=requirement_id,
                status=RequirementWorkflowStatus.SUBMITTED,
                metadata=metadata,
                submission_data=dict(submission),
                policy=policy,
                now=now,
            ),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)
    return _finish_transition(db, outcome, metadata)


# ---------------------------------------------------------------------------
# TIER SWITCH / ADVANCEMENT
# ---------------------------------------------------------------------------


def _apply_tier_switch(
    store: ComplianceStore,
    *,
    user_id: str,
    new_tier: ComplianceTier,
    metadata: OperationMetadata,
    policy: TierPolicy,
    now: datetime,
) -> Union[TierProvisioning, Dict[str, Any]]:
    user = store.get_user(user_id)
    if user.is_active and user.compliance_tier is not None and ComplianceTier(user.compliance_tier) == new_tier:
        # Fast path: recompute and report, no writes.
        summary = summarize(store.list_compliance_records(user.id, active_only=True))
        decision = evaluate_tier_advancement(new_tier, summary.exact_completion, policy)
        return {
            "changed": False,
            "user_id": user.id,
            "role": PractitionerRole(user.role).value,
            "old_tier": new_tier.value,
            "new_tier": new_tier.value,
            "tier_changed": False,
            "summary": summary.as_dict(),
            "advancement": decision.as_dict(),
        }
    return _provision_tier(
        store,
        user,
        role=PractitionerRole(user.role),
        tier=new_tier,
        metadata=metadata,
        policy=policy,
        now=now,
    )


def switch_tier(
    db: Session,
    *,
    user_id: str,
    new_tier: Union[str, ComplianceTier],
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    """
    Put the user on a tier and reconcile their requirements to its template.

    Same tier on an active user is a no-op. A deactivated user is
    reactivated and reprovisioned.
    """
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        tier = _parse_tier(new_tier)
        outcome = _commit_with_retry(
            db,
            "switch_tier",
            user_id,
            lambda store: _apply_tier_switch(
                store, user_id=user_id, new_tier=tier, metadata=metadata, policy=policy, now=now
            ),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)

    if isinstance(outcome, dict):
        return _success(outcome, message=f"User is already at the {tier.value} tier")

    effects = _effects(metadata, db)
    _emit_tier_effects(effects, outcome, metadata, reason="manual")
    logger.info(
        "Compliance tier switched",
        extra={
            "user_id": user_id,
            "old_tier": outcome.old_tier.value if outcome.old_tier else None,
            "new_tier": outcome.new_tier.value,
            "warnings": len(effects.warnings),
        },
    )
    return _success(_provisioning_data(outcome), effects=effects)


def _apply_advancement(
    store: ComplianceStore,
    *,
    user_id: str,
    metadata: OperationMetadata,
    policy: TierPolicy,
    now: datetime,
) -> TierProvisioning:
    user = store.get_user(user_id)
    if not user.is_active:
        raise PolicyError("User is deactivated; tier unchanged", data={"user_id": user_id})
    tier = _require_initialized(user)
    summary = summarize(store.list_compliance_records(user.id, active_only=True))
    decision = evaluate_tier_advancement(tier, summary.exact_completion, policy)
    if not decision.eligible or decision.next_tier is None:
        raise PolicyError(decision.message, data={"advancement": decision.as_dict()})
    return _provision_tier(
        store,
        user,
        role=PractitionerRole(user.role),
        tier=decision.next_tier,
        metadata=metadata,
        policy=policy,
        now=now,
    )


def advance_tier(
    db: Session,
    *,
    user_id: str,
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        outcome = _commit_with_retry(
            db,
            "advance_tier",
            user_id,
            lambda store: _apply_advancement(store, user_id=user_id, metadata=metadata, policy=policy, now=now),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)

    effects = _effects(metadata, db)
    _emit_tier_effects(effects, outcome, metadata, reason="tier_advancement")
    logger.info(
        "Compliance tier advanced",
        extra={"user_id": user_id, "new_tier": outcome.new_tier.value, "warnings": len(effects.warnings)},
    )
    return _success(
        _provisioning_data(outcome),
        message=f"Advanced to {outcome.new_tier.value}",
        effects=effects,
    )


# ---------------------------------------------------------------------------
# ROLE CHANGE
# ---------------------------------------------------------------------------


@dataclass
class _RoleChangeOutcome:
    user_id: str
    old_role: PractitionerRole
    new_role: PractitionerRole
    old_tier: Optional[ComplianceTier]
    new_tier: ComplianceTier
    reconcile: ReconcileResult
    summary: ComplianceSummary
    decision: TierAdvancementDecision
    provisioning: Optional[TierProvisioning] = None
    delegated: bool = False

    @property
    def tier_changed(self) -> bool:
        # Reported whenever the default tiers of the two roles differ, even if
        # the user already sat at the new default.
        return self.delegated

    @property
    def tier_moved(self) -> bool:
        return self.old_tier != self.new_tier


def _apply_role_change(
    store: ComplianceStore,
    *,
    user_id: str,
    new_role: PractitionerRole,
    old_role: PractitionerRole,
    metadata: OperationMetadata,
    policy: TierPolicy,
    now: datetime,
) -> _RoleChangeOutcome:
    user = store.get_user(user_id)
    current_role = PractitionerRole(user.role)
    if current_role != old_role:
        raise ValidationError(
            f"User role is {current_role.value}, not {old_role.value}",
            detail=[{"field": "old_role", "value": old_role.value, "current": current_role.value}],
        )
    if new_role == old_role and user.is_active:
        raise PolicyError(f"User already has role {new_role.value}", data={"role": new_role.value, "tier_changed": False})

    old_tier = ComplianceTier(user.compliance_tier) if user.compliance_tier is not None else None
    default_changed = policy.default_tier(old_role) != policy.default_tier(new_role)
    target_tier = policy.default_tier(new_role) if default_changed or old_tier is None else old_tier

    if default_changed or old_tier is None or not user.is_active:
        provisioning = _provision_tier(
            store, user, role=new_role, tier=target_tier, metadata=metadata, policy=policy, now=now
        )
        return _RoleChangeOutcome(
            user_id=user.id,
            old_role=old_role,
            new_role=new_role,
            old_tier=old_tier,
            new_tier=target_tier,
            reconcile=provisioning.reconcile,
            summary=provisioning.summary,
            decision=provisioning.decision,
            provisioning=provisioning,
            delegated=default_changed,
        )

    catalog.get_requirement_template(new_role, target_tier)
    store.update_user(user, role=new_role)
    reconcile = reconcile_requirement_set(store, user.id, new_role, target_tier, now=now)
    summary, decision = _refresh_assignment(store, user, policy=policy, assigned_by=metadata.performed_by, now=now)
    return _RoleChangeOutcome(
        user_id=user.id,
        old_role=old_role,
        new_role=new_role,
        old_tier=old_tier,
        new_tier=target_tier,
        reconcile=reconcile,
        summary=summary,
        decision=decision,
    )


def change_role(
    db: Session,
    *,
    user_id: str,
    new_role: Union[str, PractitionerRole],
    old_role: Union[str, PractitionerRole],
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    """
    Change a user's role.

    When the two roles have different default tiers the user moves to the
    new role's default tier through the tier provisioning core; otherwise the
    requirement set is reconciled for the new role at the current tier.
    A role_change audit entry is written on both paths.
    """
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        parsed_new = _parse_role(new_role, "new_role")
        parsed_old = _parse_role(old_role, "old_role")
        outcome = _commit_with_retry(
            db,
            "change_role",
            user_id,
            lambda store: _apply_role_change(
                store,
                user_id=user_id,
                new_role=parsed_new,
                old_role=parsed_old,
                metadata=metadata,
                policy=policy,
                now=now,
            ),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)

    effects = _effects(metadata, db)
    effects.audit(
        user_id=outcome.user_id,
        payload=audit_schemas.RoleChanged(
            old_role=outcome.old_role,
            new_role=outcome.new_role,
            old_tier=outcome.old_tier,
            new_tier=outcome.new_tier,
            tier_changed=outcome.tier_changed,
        ),
        performed_by=metadata.performed_by,
        notes=metadata.reason or metadata.notes,
    )
    if outcome.provisioning is not None and outcome.tier_moved:
        _emit_tier_effects(effects, outcome.provisioning, metadata, reason="role_change")

    logger.info(
        "Practitioner role changed",
        extra={
            "user_id": user_id,
            "old_role": outcome.old_role.value,
            "new_role": outcome.new_role.value,
            "tier_changed": outcome.tier_changed,
            "warnings": len(effects.warnings),
        },
    )
    return _success(
        {
            "changed": True,
            "user_id": outcome.user_id,
            "old_role": outcome.old_role.value,
            "new_role": outcome.new_role.value,
            "old_tier": outcome.old_tier.value if outcome.old_tier else None,
            "new_tier": outcome.new_tier.value,
            "tier_changed": outcome.tier_changed,
            "requirements": outcome.reconcile.as_dict(),
            "summary": outcome.summary.as_dict(),
            "advancement": outcome.decision.as_dict(),
        },
        effects=effects,
    )


# ---------------------------------------------------------------------------
# DEACTIVATION / INITIALIZATION
# ---------------------------------------------------------------------------


@dataclass
class _DeactivationOutcome:
    user_id: str
    reason: str
    retired: List[str] = field(default_factory=list)
    record_count: int = 0


def _apply_deactivation(
    store: ComplianceStore,
    *,
    user_id: str,
    reason: str,
    metadata: OperationMetadata,
    policy: TierPolicy,
    now: datetime,
) -> _DeactivationOutcome:
    user = store.get_user(user_id)
    if not user.is_active:
        raise PolicyError(
            "User is already deactivated",
            data={"user_id": user_id, "deactivated_at": user.deactivated_at.isoformat() if user.deactivated_at else None},
        )

    active_ids = [record.requirement_id for record in store.list_compliance_records(user.id, active_only=True)]
    store.set_records_not_applicable(user.id, active_ids, note=f"User deactivated: {reason}")
    store.update_user(user, is_active=False, deactivated_at=now, deactivation_reason=reason[:255])
    if user.compliance_tier is not None:
        _refresh_assignment(store, user, policy=policy, assigned_by=metadata.performed_by, now=now)

    return _DeactivationOutcome(
        user_id=user.id,
        reason=reason,
        retired=active_ids,
        record_count=len(store.list_compliance_records(user.id)),
    )


def deactivate_user(
    db: Session,
    *,
    user_id: str,
    reason: str,
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    """
    Retire every active record (not_applicable, nothing deleted) and mark the
    user inactive. Reactivation happens only through switch_tier,
    change_role or initialize_user.
    """
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        if not reason or not reason.strip():
            raise ValidationError("A deactivation reason is required", detail=[{"field": "reason"}])
        outcome = _commit_with_retry(
            db,
            "deactivate_user",
            user_id,
            lambda store: _apply_deactivation(
                store, user_id=user_id, reason=reason.strip(), metadata=metadata, policy=policy, now=now
            ),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)

    effects = _effects(metadata, db)
    effects.audit(
        user_id=outcome.user_id,
        payload=audit_schemas.UserDeactivated(reason=outcome.reason, records_retired=len(outcome.retired)),
        performed_by=metadata.performed_by,
        notes=metadata.notes,
    )
    logger.info(
        "User deactivated",
        extra={"user_id": user_id, "records_retired": len(outcome.retired), "warnings": len(effects.warnings)},
    )
    return _success(
        {
            "changed": True,
            "user_id": outcome.user_id,
            "reason": outcome.reason,
            "records_retired": outcome.retired,
            "record_count": outcome.record_count,
        },
        effects=effects,
    )


def _apply_initialization(
    store: ComplianceStore,
    *,
    user_id: str,
    metadata: OperationMetadata,
    policy: TierPolicy,
    now: datetime,
) -> TierProvisioning:
    user = store.get_user(user_id)
    if user.is_active and user.compliance_tier is not None:
        raise PolicyError(
            "User is already initialized",
            data={"role": PractitionerRole(user.role).value, "tier": ComplianceTier(user.compliance_tier).value},
        )
    role = PractitionerRole(user.role)
    return _provision_tier(
        store,
        user,
        role=role,
        tier=policy.default_tier(role),
        metadata=metadata,
        policy=policy,
        now=now,
    )


def initialize_user(
    db: Session,
    *,
    user_id: str,
    metadata: Optional[OperationMetadata] = None,
    policy: TierPolicy = DEFAULT_POLICY,
) -> OperationResult:
    """Provision a new (or deactivated) user at their role's default tier."""
    metadata = metadata or OperationMetadata()
    now = _utcnow()
    try:
        outcome = _commit_with_retry(
            db,
            "initialize_user",
            user_id,
            lambda store: _apply_initialization(store, user_id=user_id, metadata=metadata, policy=policy, now=now),
        )
    except PolicyError as exc:
        return _noop(exc)
    except ComplianceError as exc:
        return _failure(exc)

    effects = _effects(metadata, db)
    effects.audit(
        user_id=outcome.user_id,
        payload=audit_schemas.UserInitialized(
            role=outcome.role,
            tier=outcome.new_tier,
            requirements_provisioned=len(outcome.reconcile.added) + len(outcome.reconcile.reactivated),
        ),
        performed_by=metadata.performed_by,
        notes=metadata.notes,
    )
    logger.info(
        "User initialized for compliance",
        extra={"user_id": user_id, "tier": outcome.new_tier.value, "warnings": len(effects.warnings)},
    )
    return _success(_provisioning_data(outcome), effects=effects)


# ---------------------------------------------------------------------------
# READ PROJECTIONS
# ---------------------------------------------------------------------------


def list_user_records(db: Session, *, user_id: str, include_inactive: bool = False) -> list:
    store = ComplianceStore(db)
    store.get_user(user_id)
    return store.list_compliance_records(user_id, active_only=not include_inactive)


def get_tier_info(db: Session, *, user_id: str, policy: TierPolicy = DEFAULT_POLICY) -> OperationResult:
    store = ComplianceStore(db)
    try:
        user = store.get_user(user_id)
        tier = _require_initialized(user)
        role = PractitionerRole(user.role)
        template = catalog.get_requirement_template(role, tier)
        records = store.list_compliance_records(user.id, active_only=True)
    except ComplianceError as exc:
        return _failure(exc)

    summary = summarize(records)
    decision = evaluate_tier_advancement(tier, summary.exact_completion, policy)

    outstanding = [r for r in records if ComplianceStatus(r.compliance_status) != ComplianceStatus.COMPLIANT]
    next_requirement = None
    if outstanding:
        upcoming = min(outstanding, key=lambda r: (r.due_at is None, as_utc(r.due_at) or datetime.min.replace(tzinfo=timezone.utc)))
        next_requirement = {
            "requirement_id": upcoming.requirement_id,
            "name": upcoming.requirement_name,
            "due_at": as_utc(upcoming.due_at).isoformat() if upcoming.due_at else None,
            "workflow_status": RequirementWorkflowStatus(upcoming.workflow_status).value,
        }

    can_advance = bool(user.is_active) and decision.eligible
    if not user.is_active:
        blocked_reason = "User is deactivated"
    elif not decision.eligible:
        blocked_reason = decision.message
    else:
        blocked_reason = None

    return _success(
        {
            "user_id": user.id,
            "role": role.value,
            "tier": tier.value,
            "is_active": bool(user.is_active),
            "template_name": template.template_name,
            "template_description": template.description,
            "requirements_count": summary.total,
            "completed_count": summary.compliant,
            "completion_percentage": summary.completion_percentage,
            "earned_points": summary.earned_points,
            "total_points": summary.total_points,
            "summary": summary.as_dict(),
            "next_requirement": next_requirement,
            "next_tier": decision.next_tier.value if decision.next_tier else None,
            "can_advance_tier": can_advance,
            "advancement_blocked_reason": blocked_reason,
            "advancement": decision.as_dict(),
        }
    )


# ---------------------------------------------------------------------------
# DEADLINE SWEEP
# ---------------------------------------------------------------------------


def classify_deadline(
    due_at: datetime,
    now: datetime,
    warning_days: int = DEADLINE_WARNING_DAYS,
) -> Tuple[Optional[DeadlineLevel], int]:
    days_remaining = math.ceil((as_utc(due_at) - as_utc(now)).total_seconds() / 86400)
    if days_remaining <= 0:
        return DeadlineLevel.OVERDUE, days_remaining
    if days_remaining <= 1:
        return DeadlineLevel.URGENT, days_remaining
    if days_remaining <= warning_days:
        return DeadlineLevel.WARNING, days_remaining
    return None, days_remaining


@dataclass
class _Escalation:
    user_id: str
    requirement_id: str
    requirement_name: str
    old_level: Optional[DeadlineLevel]
    new_level: DeadlineLevel
    days_remaining: int


def _apply_sweep(store: ComplianceStore, *, now: datetime, warning_days: int) -> Tuple[int, List[_Escalation]]:
    records = store.list_due_records(before=now + timedelta(days=warning_days))
    escalations: List[_Escalation] = []
    for record in records:
        level, days_remaining = classify_deadline(record.due_at, now, warning_days)
        if level is None:
            continue
        previous = DeadlineLevel(record.last_escalation_level) if record.last_escalation_level else None
        if previous is not None and DEADLINE_SEVERITY[level] <= DEADLINE_SEVERITY[previous]:
            continue
        store.set_escalation_level(record, level)
        escalations.append(
            _Escalation(
                user_id=record.user_id,
                requirement_id=record.requirement_id,
                requirement_name=record.requirement_name,
                old_level=previous,
                new_level=level,
                days_remaining=days_remaining,
            )
        )
    return len(records), escalations


def run_deadline_sweep(
    db: Session,
    *,
    now: Optional[datetime] = None,
    warning_days: int = DEADLINE_WARNING_DAYS,
) -> OperationResult:
    """
    Escalate approaching and overdue deadlines. A record notifies once per
    level, so repeated sweeps are idempotent.
    """
    now = as_utc(now) if now else _utcnow()
    try:
        scanned, escalations = _commit_with_retry(
            db, "run_deadline_sweep", None, lambda store: _apply_sweep(store, now=now, warning_days=warning_days)
        )
    except ComplianceError as exc:
        return _failure(exc)

    effects = SideEffects(db, correlation_id=generate_correlation_id("sweep"))
    for escalation in escalations:
        notification_type, title, message = notification_service.deadline_message(
            escalation.new_level.value, escalation.requirement_name, escalation.days_remaining
        )
        effects.notify(
            user_id=escalation.user_id,
            notification_type=notification_type,
            title=title,
            message=message,
            metadata={
                "requirement_id": escalation.requirement_id,
                "level": escalation.new_level.value,
                "days_remaining": escalation.days_remaining,
            },
        )
        effects.audit(
            user_id=escalation.user_id,
            payload=audit_schemas.DeadlineEscalated(
                requirement_id=escalation.requirement_id,
                requirement_name=escalation.requirement_name,
                old_level=escalation.old_level,
                new_level=escalation.new_level,
                days_remaining=escalation.days_remaining,
            ),
        )

    logger.info(
        "Deadline sweep complete",
        extra={"scanned": scanned, "escalated": len(escalations), "warnings": len(effects.warnings)},
    )
    return _success(
        {
            "scanned": scanned,
            "escalated": len(escalations),
            "escalations": [
                {
                    "user_id": e.user_id,
                    "requirement_id": e.requirement_id,
                    "level": e.new_level.value,
                    "days_remaining": e.days_remaining,
                }
                for e in escalations
            ],
        },
        effects=effects,
    )
