from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime
from uuid import UUID


class SubscriptionKeys(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class PushSubscribeRequest(BaseModel):
    """Browser PushSubscription as serialised by the service worker"""
    endpoint: str = Field(..., min_length=1, max_length=1024)
    keys: SubscriptionKeys
    user_agent: Optional[str] = Field(None, max_length=512)


class UnsubscribeRequest(BaseModel):
    endpoint: str = Field(..., min_length=1, max_length=1024)


class PushSubscriptionResponse(BaseModel):
    id: UUID
    endpoint: str
    user_agent: Optional[str]
    is_active: bool
    last_used: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class VapidKeyResponse(BaseModel):
    public_key: Optional[str]


class DeliveryResult(BaseModel):
    sent: int
    failed: int


class NotificationResponse(BaseModel):
    id: UUID
    notification_type: str
    title: str
    message: str
    channel: str
    delivery_status: str
    is_read: bool
    read_at: Optional[datetime]
    sent_at: Optional[datetime]
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationList(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    page_size: int


class UnreadCount(BaseModel):
    unread: int
