from pydantic import BaseModel
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import NotificationType, RecipientRole


class NotificationResponse(BaseModel):
    id: UUID
    recipient_id: UUID
    recipient_role: RecipientRole
    type: NotificationType
    title: str
    message: str
    related_id: Optional[UUID]
    is_read: bool
    created_at: datetime

    class Config:
        from_attributes = True
