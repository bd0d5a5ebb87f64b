# claimease/models/notification.py
from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

from claimease.core.constants import NotificationType, NotificationPriority, NotificationStatus
from claimease.models.base import BaseEntity, generate_id


class RelatedEntities(BaseModel):
    policy_id: Optional[str] = None
    claim_id: Optional[str] = None
    payment_id: Optional[str] = None


class Notification(BaseEntity):
    notification_id: str = Field(default_factory=lambda: generate_id("ntf"))
    recipient_id: str
    type: NotificationType = NotificationType.GENERAL
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    related: RelatedEntities = Field(default_factory=RelatedEntities)
    is_read: bool = False
    read_at: Optional[datetime] = None
    status: NotificationStatus = NotificationStatus.SENT
    sender_id: Optional[str] = None


class NotificationCreate(BaseModel):
    title: str = "Test Notification"
    message: str = "This is a test notification from ClaimEase."
    type: str = NotificationType.GENERAL.value
    priority: str = NotificationPriority.MEDIUM.value


class MarkReadRequest(BaseModel):
    notification_ids: List[str]


class PreferencesUpdate(BaseModel):
    email: Optional[bool] = None
    sms: Optional[bool] = None
    push: Optional[bool] = None
    in_app: Optional[bool] = None
