"""
Result alerts - tell the submitting health worker when a positive result is verified.
"""
import logging
from typing import Callable

from sqlalchemy.orm import Session

from ..auth.repository import find_user_by_id
from ..core.events import DiagnosticResultAvailable, EventBus
from ..diagnostics.models import DiagnosticResult, ReviewStatus
from ..exceptions import AppException
from .dispatcher import NotificationDispatcher
from .models import NotificationPriority, NotificationType
from .schemas import NotificationCreate

# Set up logging
logger = logging.getLogger(__name__)

ALERT_SUBJECT = "Introspect Alert: Positive result verified"


def build_result_alert(event: DiagnosticResultAvailable, phone_number: str, email: str) -> NotificationCreate:
    message = (
        f"A positive malaria result for subject {event.subject_id} has been verified. "
        f"Diagnostic {event.diagnostic_id}. Please follow up with treatment."
    )
    if phone_number:
        return NotificationCreate(
            type=NotificationType.SMS,
            recipient=phone_number,
            message=message,
            priority=NotificationPriority.URGENT,
            diagnostic_id=event.diagnostic_id,
        )
    return NotificationCreate(
        type=NotificationType.EMAIL,
        recipient=email,
        subject=ALERT_SUBJECT,
        message=message,
        priority=NotificationPriority.URGENT,
        diagnostic_id=event.diagnostic_id,
    )


def register_result_alerts(
    bus: EventBus,
    session_factory: Callable[[], Session],
    dispatcher: NotificationDispatcher,
):
    """
    Subscribe the result alert handler to the bus.

    Args:
        bus: Bus the diagnostic lifecycle publishes on
        session_factory: Opens a fresh session per event
        dispatcher: Dispatcher used for delivery

    Returns:
        The subscribed handler, so callers can unsubscribe it
    """

    async def alert_on_verified_positive(event: DiagnosticResultAvailable) -> None:
        if event.review_status != ReviewStatus.VERIFIED.value or event.result != DiagnosticResult.POSITIVE.value:
            return

        db = session_factory()
        try:
            submitter = find_user_by_id(db, event.submitted_by_id)
            if not submitter:
                logger.warning(f"Result alert skipped: submitter of {event.diagnostic_id} not found")
                return

            data = build_result_alert(event, submitter.phone_number, submitter.email)
            notification = await dispatcher.send(db, data)
            logger.info(f"Result alert {notification.id} for {event.diagnostic_id}: {notification.status.value}")
        except AppException as e:
            logger.warning(f"Result alert for {event.diagnostic_id} not sent: {e.code} - {e.detail}")
        finally:
            db.close()

    bus.subscribe(DiagnosticResultAvailable, alert_on_verified_positive)
    return alert_on_verified_positive
