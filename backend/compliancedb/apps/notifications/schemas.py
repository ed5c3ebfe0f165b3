from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from compliancedb.apps.compliance.enums import NotificationType

from .models import DeliveryStatus


class NotificationRead(BaseModel):
    id: str
    user_id: str
    notification_type: NotificationType
    title: str
    message: str
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_json")
    correlation_id: Optional[str] = None
    delivery_status: DeliveryStatus
    created_at: datetime
    sent_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    class Config:
        from_attributes = True
