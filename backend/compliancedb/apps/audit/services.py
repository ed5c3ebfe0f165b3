from __future__ import annotations

from datetime import datetime
import logging
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from compliancedb.apps.compliance.enums import AuditType

from . import models, schemas

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = "system"


def append_entry(
    db: Session,
    *,
    user_id: str,
    payload: schemas.AuditPayload,
    performed_by: Optional[str] = None,
    notes: Optional[str] = None,
    correlation_id: Optional[str] = None,
) -> models.ComplianceAuditLog:
    entry = models.ComplianceAuditLog(
        audit_type=AuditType(payload.audit_type),
        user_id=user_id,
        performed_by=performed_by or SYSTEM_ACTOR,
        old_value=payload.old_value(),
        new_value=payload.new_value(),
        notes=notes,
        payload=payload.model_dump(mode="json"),
        correlation_id=correlation_id,
    )
    db.add(entry)
    db.flush()
    return entry


def log_entry(
    db: Session,
    *,
    user_id: str,
    payload: schemas.AuditPayload,
    performed_by: Optional[str] = None,
    notes: Optional[str] = None,
    correlation_id: Optional[str] = None,
    critical: bool = False,
) -> Optional[models.ComplianceAuditLog]:
    """
    Best-effort audit append.
    - critical=True re-raises so the caller can queue the entry for retry.
    - Otherwise log a warning and continue.
    """
    try:
        return append_entry(
            db,
            user_id=user_id,
            payload=payload,
            performed_by=performed_by,
            notes=notes,
            correlation_id=correlation_id,
        )
    except Exception:
        logger.warning(
            "Failed to append compliance audit entry",
            extra={
                "user_id": user_id,
                "audit_type": payload.audit_type,
                "correlation_id": correlation_id,
                "critical": critical,
            },
        )
        if critical:
            raise
        return None


def list_audit_entries(
    db: Session,
    *,
    user_id: str,
    audit_types: Optional[Iterable[AuditType]] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 200,
) -> List[models.ComplianceAuditLog]:
    query = db.query(models.ComplianceAuditLog).filter(models.ComplianceAuditLog.user_id == user_id)
    types = list(audit_types or [])
    if types:
        query = query.filter(models.ComplianceAuditLog.audit_type.in_(types))
    if start:
        query = query.filter(models.ComplianceAuditLog.created_at >= start)
    if end:
        query = query.filter(models.ComplianceAuditLog.created_at <= end)
    return (
        query.order_by(models.ComplianceAuditLog.created_at.desc(), models.ComplianceAuditLog.id.desc())
        .limit(limit)
        .all()
    )
