from datetime import datetime

from pydantic import BaseModel

from app.models.notification import NotificationType


class NotificationOut(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    title: str
    message: str
    notification_type: NotificationType
    is_read: bool
    created_at: datetime


class NotificationSummary(BaseModel):
    unread: int
    marked: int = 0
