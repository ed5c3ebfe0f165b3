from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from compliancedb.security import get_user_by_id, require_admin
from compliancedb.apps.accounts.models import User
from compliancedb.apps.compliance.enums import AuditType
from compliancedb.database import get_read_db

from . import schemas, services


router = APIRouter(
    prefix="/compliance/audit",
    tags=["audit"],
)


@router.get("/users/{user_id}", response_model=List[schemas.AuditEntryRead])
def list_user_audit_entries(
    user_id: str,
    audit_type: Optional[List[AuditType]] = Query(None),
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = Query(200, ge=1, le=1000),
    db: Session = Depends(get_read_db),
    current_user: User = Depends(require_admin),
):
    if get_user_by_id(db, user_id) is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return services.list_audit_entries(
        db,
        user_id=user_id,
        audit_types=audit_type,
        start=start,
        end=end,
        limit=limit,
    )
