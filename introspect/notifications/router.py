"""
Notification routes - send, track and retry SMS/email alerts.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ..auth.dependencies import get_active_claims, require_roles
from ..config import settings
from ..core.permissions import RETRY_DRIVER_ROLES
from ..core.security import TokenClaims
from ..database import get_db
from ..exceptions import RateLimitedException, ValidationFailedException, success_body
from .dispatcher import MAX_PAGE_SIZE, URGENT_WINDOW, NotificationDispatcher, get_dispatcher
from .models import DeliveryStatus, Notification, NotificationPriority, NotificationType
from .schemas import NotificationCreate, NotificationResponse, StatusUpdateRequest, UrgentCountResponse

# Set up logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notifications", tags=["Notifications"])


def _notification_data(notification: Notification):
    return NotificationResponse.model_validate(notification).model_dump(mode="json")


@router.post("/send", status_code=status.HTTP_201_CREATED, summary="Send Notification")
async def send_notification_route(
    data: NotificationCreate,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Send an SMS or email and record the outcome.

    A delivery failure is not an error here: the returned intent is ``failed``
    with the transport error, and can be retried later.
    """
    if data.priority == NotificationPriority.URGENT:
        limit = settings.urgent_notifications_per_day
        if dispatcher.count_recent_urgent(db, data.recipient.strip()) >= limit:
            logger.warning(f"Urgent notification to {data.recipient} rejected: daily limit of {limit} reached")
            raise RateLimitedException(f"Urgent notification limit of {limit} per day reached for this recipient")

    notification = await dispatcher.send(db, data, requested_by=claims.id)
    return success_body(_notification_data(notification))


@router.get("/history", summary="List Notifications")
async def notification_history_route(
    type: Optional[NotificationType] = Query(None),
    delivery_status: Optional[DeliveryStatus] = Query(None, alias="status"),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notifications = dispatcher.list_notifications(db, type=type, status=delivery_status, limit=limit)
    return success_body([_notification_data(notification) for notification in notifications])


@router.get("/urgent-count", summary="Urgent Notifications In The Last Day")
async def urgent_count_route(
    recipient: str = Query(..., min_length=1),
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    count = dispatcher.count_recent_urgent(db, recipient.strip())
    limit = settings.urgent_notifications_per_day
    response = UrgentCountResponse(
        recipient=recipient.strip(),
        window_hours=int(URGENT_WINDOW.total_seconds() // 3600),
        count=count,
        limit=limit,
        remaining=max(limit - count, 0),
    )
    return success_body(response.model_dump())


@router.put("/{notification_id}/status", summary="Report Delivery Outcome")
async def update_status_route(
    notification_id: str,
    update: StatusUpdateRequest,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Record the outcome of a delivery made outside this service.

    Reporting ``sent`` twice is harmless. Reporting ``failed`` with ``attempt``
    makes a replayed report harmless too.
    """
    if update.status == DeliveryStatus.SENT:
        notification = dispatcher.mark_delivered(db, notification_id)
    elif update.status == DeliveryStatus.FAILED:
        notification = dispatcher.mark_failed(
            db, notification_id, update.error_message or "Delivery failed", attempt=update.attempt
        )
    else:
        raise ValidationFailedException("Status must be 'sent' or 'failed'")
    return success_body(_notification_data(notification))


@router.post("/{notification_id}/retry", summary="Retry Delivery")
async def retry_notification_route(
    notification_id: str,
    claims: TokenClaims = Depends(require_roles(RETRY_DRIVER_ROLES)),
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    notification = await dispatcher.redeliver(db, notification_id)
    return success_body(_notification_data(notification))
