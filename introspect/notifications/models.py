"""
Notification Model - one requested SMS/email delivery and its outcome.
"""
import enum

from sqlalchemy import Column, String, Integer, DateTime, Enum, ForeignKey, Text

from ..core.security import utcnow
from ..database import Base, generate_uuid


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class NotificationType(str, enum.Enum):
    SMS = "sms"
    EMAIL = "email"


class NotificationPriority(str, enum.Enum):
    URGENT = "urgent"
    ROUTINE = "routine"


class DeliveryStatus(str, enum.Enum):
    """
    Delivery status of an intent.

    PENDING -> SENT (terminal) or PENDING -> FAILED; FAILED may be retried
    into SENT or FAILED again. SENT never changes.
    """
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class Notification(Base):
    """
    Notification Model - an intent to deliver one message

    Fields:
    - user_id: Identity that requested the delivery (null for system alerts)
    - diagnostic_id: Diagnostic the message is about (optional)
    - type / recipient / subject / message: What to send and where
    - status: Delivery status, see DeliveryStatus
    - sent_at: Set once, when the message is delivered
    - error_message: Last delivery error
    - retry_count: Number of failed delivery attempts, only ever incremented
    - delivery_lock / locked_at: Lease held by the attempt currently in flight
    """
    __tablename__ = "notifications"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    diagnostic_id = Column(String(36), ForeignKey("diagnostics.id"), nullable=True, index=True)
    type = Column(Enum(NotificationType, values_callable=_enum_values), nullable=False)
    recipient = Column(String, nullable=False, index=True)
    subject = Column(String, nullable=True)
    message = Column(Text, nullable=False)
    priority = Column(Enum(NotificationPriority, values_callable=_enum_values),
                      nullable=False, default=NotificationPriority.ROUTINE)
    status = Column(Enum(DeliveryStatus, values_callable=_enum_values),
                    nullable=False, default=DeliveryStatus.PENDING, index=True)
    sent_at = Column(DateTime(timezone=True), nullable=True)
    error_message = Column(Text, nullable=True)
    retry_count = Column(Integer, nullable=False, default=0)
    delivery_lock = Column(String(36), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', status='{self.status}', retries={self.retry_count})>"
