from __future__ import annotations

from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from compliancedb.apps.accounts.models import User
from compliancedb.database import get_db, get_read_db
from compliancedb.security import ensure_self_or_admin, get_current_active_user, require_admin

from . import catalog, schemas, services
from .enums import ComplianceTier, PractitionerRole, RequirementWorkflowStatus
from .errors import ComplianceError

router = APIRouter(prefix="/compliance", tags=["compliance"])

# Statuses a practitioner may set on their own records. Submitting goes through
# /submit so the validation rules run; review outcomes are admin-only.
SELF_SERVICE_STATUSES = {
    RequirementWorkflowStatus.PENDING.value,
    RequirementWorkflowStatus.IN_PROGRESS.value,
}

_ERROR_STATUS = {
    "user_not_found": status.HTTP_404_NOT_FOUND,
    "concurrency_conflict": status.HTTP_409_CONFLICT,
    "persistence_error": status.HTTP_503_SERVICE_UNAVAILABLE,
}


def _unwrap(result: schemas.OperationResult) -> schemas.OperationResult:
    if result.success:
        return result
    code = result.error.code if result.error else "validation_error"
    raise HTTPException(
        status_code=_ERROR_STATUS.get(code, status.HTTP_422_UNPROCESSABLE_ENTITY),
        detail=result.error.model_dump() if result.error else result.message,
    )


def _metadata(current_user: User, **fields) -> schemas.OperationMetadata:
    return schemas.OperationMetadata(performed_by=current_user.id, **fields)


@router.get("/templates/{role}/{tier}", response_model=schemas.RequirementTemplateRead)
def get_template(
    role: PractitionerRole,
    tier: ComplianceTier,
    current_user: User = Depends(get_current_active_user),
):
    try:
        template = catalog.get_requirement_template(role, tier)
    except ComplianceError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    return schemas.RequirementTemplateRead(
        role=template.role,
        tier=template.tier,
        template_name=template.template_name,
        description=template.description,
        total_points=catalog.total_points(role, tier),
        requirements=[schemas.RequirementDefinitionRead.model_validate(asdict(req)) for req in template.requirements],
    )


@router.get("/users/{user_id}/tier", response_model=schemas.OperationResult)
def get_tier_info(
    user_id: str,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    ensure_self_or_admin(current_user, user_id)
    return _unwrap(services.get_tier_info(db, user_id=user_id))


@router.get("/users/{user_id}/requirements", response_model=List[schemas.ComplianceRecordRead])
def list_requirements(
    user_id: str,
    include_inactive: bool = False,
    db: Session = Depends(get_read_db),
    current_user: User = Depends(get_current_active_user),
):
    ensure_self_or_admin(current_user, user_id)
    try:
        return services.list_user_records(db, user_id=user_id, include_inactive=include_inactive)
    except ComplianceError as exc:
        raise HTTPException(
            status_code=_ERROR_STATUS.get(exc.code, status.HTTP_422_UNPROCESSABLE_ENTITY),
            detail=exc.message,
        )


@router.post("/users/{user_id}/requirements/{requirement_id}/status", response_model=schemas.OperationResult)
def transition_requirement(
    user_id: str,
    requirement_id: str,
    payload: schemas.StatusTransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    ensure_self_or_admin(current_user, user_id)
    if not current_user.is_admin and payload.status not in SELF_SERVICE_STATUSES:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only administrators may set this status; submit evidence through /submit",
        )
    return _unwrap(
        services.transition_requirement(
            db,
            user_id=user_id,
            requirement_id=requirement_id,
            new_status=payload.status,
            metadata=_metadata(current_user, score=payload.score, notes=payload.notes),
        )
    )


@router.post("/users/{user_id}/requirements/{requirement_id}/submit", response_model=schemas.OperationResult)
def submit_requirement(
    user_id: str,
    requirement_id: str,
    payload: schemas.SubmissionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    ensure_self_or_admin(current_user, user_id)
    return _unwrap(
        services.submit_requirement(
            db,
            user_id=user_id,
            requirement_id=requirement_id,
            submission=payload.model_dump(exclude_none=True),
            metadata=_metadata(current_user),
        )
    )


@router.post("/users/{user_id}/initialize", response_model=schemas.OperationResult)
def initialize_user(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return _unwrap(services.initialize_user(db, user_id=user_id, metadata=_metadata(current_user)))


@router.post("/users/{user_id}/tier", response_model=schemas.OperationResult)
def switch_tier(
    user_id: str,
    payload: schemas.TierSwitchRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return _unwrap(
        services.switch_tier(
            db,
            user_id=user_id,
            new_tier=payload.tier,
            metadata=_metadata(current_user, reason=payload.reason),
        )
    )


@router.post("/users/{user_id}/tier/advance", response_model=schemas.OperationResult)
def advance_tier(
    user_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    ensure_self_or_admin(current_user, user_id)
    return _unwrap(services.advance_tier(db, user_id=user_id, metadata=_metadata(current_user)))


@router.post("/users/{user_id}/role", response_model=schemas.OperationResult)
def change_role(
    user_id: str,
    payload: schemas.RoleChangeRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return _unwrap(
        services.change_role(
            db,
            user_id=user_id,
            new_role=payload.new_role,
            old_role=payload.old_role,
            metadata=_metadata(current_user, reason=payload.reason),
        )
    )


@router.post("/users/{user_id}/deactivate", response_model=schemas.OperationResult)
def deactivate_user(
    user_id: str,
    payload: schemas.DeactivateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    return _unwrap(
        services.deactivate_user(
            db,
            user_id=user_id,
            reason=payload.reason,
            metadata=_metadata(current_user, reason=payload.reason),
        )
    )
