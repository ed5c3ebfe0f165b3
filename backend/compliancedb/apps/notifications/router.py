from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from compliancedb.security import get_current_active_user
from compliancedb.apps.accounts.models import User
from compliancedb.database import get_db

from . import schemas, service


router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)


@router.get("/me", response_model=List[schemas.NotificationRead])
def list_my_notifications(
    unread_only: bool = False,
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    return service.list_notifications(db, user_id=current_user.id, unread_only=unread_only, limit=limit)


@router.post("/{notification_id}/read", response_model=schemas.NotificationRead)
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
):
    notification = service.mark_read(db, notification_id=notification_id, user_id=current_user.id)
    if notification is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found")
    return notification
