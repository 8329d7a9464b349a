"""
Notification store. Callers own the transaction.

Every status write is a single conditional UPDATE, never a read-modify-write,
and none of them matches a row that is already ``sent``.
"""
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from .models import DeliveryStatus, Notification, NotificationPriority, NotificationType


def create_notification(db: Session, **fields: Any) -> Notification:
    notification = Notification(**fields)
    db.add(notification)
    db.flush()
    return notification


def find_notification(db: Session, notification_id: str) -> Optional[Notification]:
    return db.query(Notification).filter(Notification.id == notification_id).first()


def list_notifications(
    db: Session,
    type: Optional[NotificationType] = None,
    status: Optional[DeliveryStatus] = None,
    limit: int = 20,
) -> List[Notification]:
    query = db.query(Notification)
    if type:
        query = query.filter(Notification.type == type)
    if status:
        query = query.filter(Notification.status == status)
    return query.order_by(Notification.created_at.desc()).limit(limit).all()


def _not_sent(notification_id: str):
    return (Notification.id == notification_id, Notification.status != DeliveryStatus.SENT)


def claim_for_delivery(db: Session, notification_id: str, lock_id: str, now: datetime, stale_before: datetime) -> bool:
    """
    Take the delivery lease on an intent.

    A lease older than ``stale_before`` belongs to an attempt that never
    reported back and may be taken over.
    """
    updated = (
        db.query(Notification)
        .filter(
            *_not_sent(notification_id),
            or_(Notification.delivery_lock.is_(None), Notification.locked_at < stale_before),
        )
        .update({Notification.delivery_lock: lock_id, Notification.locked_at: now}, synchronize_session=False)
    )
    return updated == 1


def record_delivery_success(db: Session, notification_id: str, lock_id: str, sent_at: datetime) -> bool:
    updated = (
        db.query(Notification)
        .filter(*_not_sent(notification_id), Notification.delivery_lock == lock_id)
        .update(
            {
                Notification.status: DeliveryStatus.SENT,
                Notification.sent_at: sent_at,
                Notification.error_message: None,
                Notification.delivery_lock: None,
                Notification.locked_at: None,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def record_delivery_failure(db: Session, notification_id: str, lock_id: str, error: str) -> bool:
    updated = (
        db.query(Notification)
        .filter(*_not_sent(notification_id), Notification.delivery_lock == lock_id)
        .update(
            {
                Notification.status: DeliveryStatus.FAILED,
                Notification.error_message: error,
                Notification.retry_count: Notification.retry_count + 1,
                Notification.delivery_lock: None,
                Notification.locked_at: None,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def mark_sent(db: Session, notification_id: str, sent_at: datetime) -> bool:
    updated = (
        db.query(Notification)
        .filter(*_not_sent(notification_id))
        .update(
            {
                Notification.status: DeliveryStatus.SENT,
                Notification.sent_at: sent_at,
                Notification.error_message: None,
                Notification.delivery_lock: None,
                Notification.locked_at: None,
            },
            synchronize_session=False,
        )
    )
    return updated == 1


def mark_failed(db: Session, notification_id: str, error: str, expected_retry_count: Optional[int] = None) -> bool:
    query = db.query(Notification).filter(*_not_sent(notification_id))
    if expected_retry_count is not None:
        query = query.filter(Notification.retry_count == expected_retry_count)
    updated = query.update(
        {
            Notification.status: DeliveryStatus.FAILED,
            Notification.error_message: error,
            Notification.retry_count: Notification.retry_count + 1,
        },
        synchronize_session=False,
    )
    return updated == 1


def count_urgent_since(db: Session, recipient: str, since: datetime) -> int:
    return (
        db.query(Notification)
        .filter(
            Notification.recipient == recipient,
            Notification.priority == NotificationPriority.URGENT,
            Notification.created_at >= since,
        )
        .count()
    )
