"""
Notification schemas.
"""

from pydantic import BaseModel
from datetime import datetime
from typing import Optional
from fleet_backend.app.models.notification import NotificationType, SenderRole, RecipientRole


class NotificationResponse(BaseModel):
    id: int
    type: NotificationType
    title: str
    message: str
    sender_id: int
    sender_role: SenderRole
    recipient_role: RecipientRole
    recipient_id: Optional[int]
    route_id: Optional[int]
    is_read: bool
    created_at: datetime
    read_at: Optional[datetime]

    class Config:
        from_attributes = True
