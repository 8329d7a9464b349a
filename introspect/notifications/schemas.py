"""
Notification Schemas - Pydantic models for sending and tracking notifications.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from ..core.security import ensure_utc
from .models import DeliveryStatus, NotificationPriority, NotificationType


class NotificationCreate(BaseModel):
    """
    Send Request Schema

    Fields:
    - type: sms or email
    - recipient: Phone number or email address
    - subject: Email subject, ignored for SMS (optional)
    - message: Message body
    - priority: urgent or routine
    - diagnostic_id: Diagnostic the message is about (optional)
    """
    type: NotificationType
    recipient: str
    subject: Optional[str] = None
    message: str
    priority: NotificationPriority = NotificationPriority.ROUTINE
    diagnostic_id: Optional[str] = None


class StatusUpdateRequest(BaseModel):
    """
    External retry driver report.

    Fields:
    - status: sent or failed
    - error_message: Delivery error, used when status is failed
    - attempt: Retry count observed before the reported attempt; makes failure reports replay-safe
    """
    status: DeliveryStatus
    error_message: Optional[str] = None
    attempt: Optional[int] = Field(None, ge=0)


class NotificationResponse(BaseModel):
    """Notification as returned by the API."""
    id: str
    user_id: Optional[str] = None
    diagnostic_id: Optional[str] = None
    type: NotificationType
    recipient: str
    subject: Optional[str] = None
    message: str
    priority: NotificationPriority
    status: DeliveryStatus
    sent_at: Optional[datetime] = None
    error_message: Optional[str] = None
    retry_count: int
    created_at: datetime

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True

    @field_validator("sent_at", "created_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class UrgentCountResponse(BaseModel):
    """Urgent messages sent to one recipient within the rolling window."""
    recipient: str
    window_hours: int
    count: int
    limit: int
    remaining: int
