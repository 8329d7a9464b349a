"""
Notification Dispatcher - turns send requests into delivery attempts.

The dispatcher keeps the bookkeeping contract of an intent:

- ``retry_count`` starts at 0 and grows by exactly one per failed attempt,
- a ``sent`` intent is terminal and is never sent again,
- attempts on the same intent are serialized by a short lease on the row,
- the transport call is bounded by a timeout that counts as a failed attempt.

Scheduling re-attempts is left to an external driver, which uses
``redeliver``, ``mark_delivered`` and ``mark_failed``.
"""
import asyncio
import logging
import uuid
from datetime import datetime, timedelta
from functools import lru_cache
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..core.security import utcnow
from ..diagnostics.repository import find_diagnostic
from ..exceptions import ConflictException, ResourceNotFoundException, ValidationFailedException
from . import repository
from .models import DeliveryStatus, Notification, NotificationType
from .schemas import NotificationCreate
from .senders import EmailSender, SendResult, SmsSender, build_email_sender, build_sms_sender

# Set up logging
logger = logging.getLogger(__name__)

DEFAULT_EMAIL_SUBJECT = "Introspect Alert"
URGENT_WINDOW = timedelta(hours=24)
MAX_PAGE_SIZE = 100


class NotificationDispatcher:
    """Delivers notification intents through SMS and email senders."""

    def __init__(
        self,
        sms_sender: SmsSender,
        email_sender: EmailSender,
        timeout_seconds: float = 10.0,
        lock_timeout_seconds: float = 60.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.sms_sender = sms_sender
        self.email_sender = email_sender
        self.timeout_seconds = timeout_seconds
        self.lock_timeout = timedelta(seconds=lock_timeout_seconds)
        self._clock = clock

    # Queries

    def get_notification(self, db: Session, notification_id: str) -> Notification:
        notification = repository.find_notification(db, notification_id)
        if not notification:
            raise ResourceNotFoundException("Notification not found")
        return notification

    def list_notifications(
        self,
        db: Session,
        type: Optional[NotificationType] = None,
        status: Optional[DeliveryStatus] = None,
        limit: Optional[int] = None,
    ) -> List[Notification]:
        return repository.list_notifications(db, type=type, status=status, limit=min(limit or 20, MAX_PAGE_SIZE))

    def count_recent_urgent(
        self,
        db: Session,
        recipient: str,
        window: timedelta = URGENT_WINDOW,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Count urgent intents addressed to a recipient within a rolling window.

        The rate policy itself belongs to the caller; this is the figure it needs.
        """
        since = (now or self._clock()) - window
        return repository.count_urgent_since(db, recipient, since)

    # Delivery

    async def send(self, db: Session, data: NotificationCreate, requested_by: Optional[str] = None) -> Notification:
        """
        Create an intent and make the first delivery attempt.

        Args:
            db: Database session
            data: What to send and where
            requested_by: Identity requesting the delivery, None for system alerts

        Returns:
            Notification: The intent after the attempt, either sent or failed

        Raises:
            ValidationFailedException: If recipient or message is blank
            ResourceNotFoundException: If the linked diagnostic does not exist
        """
        recipient = (data.recipient or "").strip()
        message = (data.message or "").strip()
        if not recipient:
            raise ValidationFailedException("Recipient is required")
        if not message:
            raise ValidationFailedException("Message is required")

        if data.diagnostic_id and not find_diagnostic(db, data.diagnostic_id):
            raise ResourceNotFoundException("Diagnostic not found")

        try:
            notification = repository.create_notification(
                db,
                user_id=requested_by,
                diagnostic_id=data.diagnostic_id,
                type=data.type,
                recipient=recipient,
                subject=data.subject,
                message=message,
                priority=data.priority,
                status=DeliveryStatus.PENDING,
                retry_count=0,
                created_at=self._clock(),
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(notification)
        logger.info(f"Notification {notification.id} created: {data.type.value} ({data.priority.value})")
        return await self._attempt(db, notification)

    async def redeliver(self, db: Session, notification_id: str) -> Notification:
        """
        Make another delivery attempt for an unsent intent.

        Raises:
            ResourceNotFoundException: If the intent does not exist
            ConflictException: If it was already sent or an attempt is in flight
        """
        notification = self.get_notification(db, notification_id)
        if notification.status == DeliveryStatus.SENT:
            raise ConflictException("Notification has already been sent")
        return await self._attempt(db, notification)

    async def _attempt(self, db: Session, notification: Notification) -> Notification:
        lock_id = str(uuid.uuid4())
        now = self._clock()
        try:
            claimed = repository.claim_for_delivery(db, notification.id, lock_id, now, now - self.lock_timeout)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        if not claimed:
            db.refresh(notification)
            if notification.status == DeliveryStatus.SENT:
                raise ConflictException("Notification has already been sent")
            raise ConflictException("A delivery attempt is already in progress")

        result = await self._deliver(notification)

        try:
            if result.success:
                recorded = repository.record_delivery_success(db, notification.id, lock_id, self._clock())
            else:
                recorded = repository.record_delivery_failure(db, notification.id, lock_id, result.error or "Delivery failed")
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        if not recorded:
            logger.warning(f"Notification {notification.id} changed while attempt {lock_id} was in flight")
        elif result.success:
            logger.info(f"Notification {notification.id} sent to {notification.recipient}")
        else:
            logger.warning(f"Notification {notification.id} delivery failed: {result.error}")

        db.refresh(notification)
        return notification

    async def _deliver(self, notification: Notification) -> SendResult:
        if notification.type == NotificationType.SMS:
            call = self.sms_sender.send_sms(notification.recipient, notification.message)
        else:
            call = self.email_sender.send_email(
                notification.recipient,
                notification.subject or DEFAULT_EMAIL_SUBJECT,
                notification.message,
            )

        try:
            return await asyncio.wait_for(call, timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            return SendResult(success=False, error=f"Delivery timed out after {self.timeout_seconds:g}s")
        except Exception as e:
            logger.error(f"Sender raised while delivering {notification.id}: {str(e)}")
            return SendResult(success=False, error=str(e) or e.__class__.__name__)

    # Status transitions for external retry drivers

    def mark_delivered(self, db: Session, notification_id: str) -> Notification:
        """
        Record that an intent was delivered out of band.

        Idempotent: an intent that is already sent is returned unchanged, with its original ``sent_at``.
        """
        notification = self.get_notification(db, notification_id)
        if notification.status == DeliveryStatus.SENT:
            return notification

        try:
            applied = repository.mark_sent(db, notification_id, self._clock())
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(notification)
        if applied:
            logger.info(f"Notification {notification_id} marked delivered")
        return notification

    def mark_failed(self, db: Session, notification_id: str, error: str, attempt: Optional[int] = None) -> Notification:
        """
        Record a failed delivery attempt made out of band.

        Args:
            db: Database session
            notification_id: Intent the attempt was for
            error: Delivery error
            attempt: Retry count the driver observed before its attempt. When
                given, a replayed report for the same attempt is a no-op.

        Raises:
            ResourceNotFoundException: If the intent does not exist
            ConflictException: If the intent was sent, or ``attempt`` is stale
        """
        notification = self.get_notification(db, notification_id)
        if notification.status == DeliveryStatus.SENT:
            raise ConflictException("Notification has already been sent")

        try:
            applied = repository.mark_failed(db, notification_id, error or "Delivery failed", expected_retry_count=attempt)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        db.refresh(notification)
        if applied:
            logger.warning(f"Notification {notification_id} marked failed (retry {notification.retry_count}): {error}")
            return notification

        if notification.status == DeliveryStatus.SENT:
            raise ConflictException("Notification has already been sent")
        if attempt is not None and notification.status == DeliveryStatus.FAILED and notification.retry_count == attempt + 1:
            # Replay of a failure that was already recorded
            return notification
        raise ConflictException(
            f"Notification retry count is {notification.retry_count}, report was for attempt {attempt}"
        )


@lru_cache()
def get_dispatcher() -> NotificationDispatcher:
    """Process-wide dispatcher built from settings."""
    return NotificationDispatcher(
        sms_sender=build_sms_sender(settings),
        email_sender=build_email_sender(settings),
        timeout_seconds=settings.sender_timeout_seconds,
        lock_timeout_seconds=settings.delivery_lock_seconds,
    )
