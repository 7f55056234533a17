from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from ticketops.models.notification import (
    NotificationType, NotificationChannel, NotificationCategory, DeliveryStatus,
)


class NotificationCreate(BaseModel):
    # Broadcast when omitted
    user_id: Optional[str] = None
    title: str = Field(..., min_length=1, max_length=255)
    message: str = Field(..., min_length=1)
    type: NotificationType = NotificationType.INFO
    link: Optional[str] = None
    expires_at: Optional[datetime] = None


class NotificationResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    title: str
    message: str
    type: NotificationType
    link: Optional[str] = None
    is_read: bool
    is_broadcast: bool
    created_at: datetime
    expires_at: Optional[datetime] = None


class NotificationList(BaseModel):
    items: List[NotificationResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
    unread_count: int


class NotificationLogResponse(BaseModel):
    id: str
    recipient: str
    subject: str
    content: Optional[str] = None
    channel: NotificationChannel
    category: NotificationCategory
    related_ticket_id: Optional[str] = None
    status: DeliveryStatus
    error: Optional[str] = None
    sent_at: datetime

    class Config:
        from_attributes = True
