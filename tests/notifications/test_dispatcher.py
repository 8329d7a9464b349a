"""
Tests for notification delivery bookkeeping.
"""
import asyncio
from datetime import timedelta

import pytest

from introspect.config import Settings
from introspect.core.security import ensure_utc, utcnow
from introspect.exceptions import ConflictException, ErrorCode, ResourceNotFoundException, ValidationFailedException
from introspect.notifications import repository
from introspect.notifications.dispatcher import NotificationDispatcher
from introspect.notifications.models import DeliveryStatus, NotificationPriority, NotificationType
from introspect.notifications.schemas import NotificationCreate
from introspect.notifications.senders import EmailSender, SendResult, SmsSender, build_sms_sender


def _sms(recipient="+254700000001", priority=NotificationPriority.URGENT, **fields):
    return NotificationCreate(type=NotificationType.SMS, recipient=recipient, message="Positive result", priority=priority, **fields)


def _send(dispatcher, db, data):
    return asyncio.run(dispatcher.send(db, data))


def test_unconfigured_sms_is_a_successful_no_op(db):
    dispatcher = NotificationDispatcher(SmsSender(), EmailSender())

    notification = _send(dispatcher, db, _sms())

    assert notification.status == DeliveryStatus.SENT
    assert notification.retry_count == 0
    assert notification.sent_at is not None
    assert notification.delivery_lock is None


def test_successful_send_through_sender(db, dispatcher, sms_sender):
    notification = _send(dispatcher, db, _sms())

    assert notification.status == DeliveryStatus.SENT
    assert sms_sender.sent == [{"recipient": "+254700000001", "message": "Positive result"}]


def test_email_uses_subject(db, dispatcher, email_sender):
    data = NotificationCreate(type=NotificationType.EMAIL, recipient="nurse@example.com", subject="Result", message="Body")
    notification = _send(dispatcher, db, data)

    assert notification.status == DeliveryStatus.SENT
    assert email_sender.sent[0]["subject"] == "Result"


def test_blank_recipient_or_message_rejected(db, dispatcher, sms_sender):
    with pytest.raises(ValidationFailedException) as exc:
        _send(dispatcher, db, _sms(recipient="   "))
    assert exc.value.code == ErrorCode.VALIDATION_ERROR

    with pytest.raises(ValidationFailedException):
        _send(dispatcher, db, NotificationCreate(type=NotificationType.SMS, recipient="+254700000001", message=" "))

    assert sms_sender.sent == []
    assert repository.list_notifications(db) == []


def test_unknown_diagnostic_rejected(db, dispatcher):
    with pytest.raises(ResourceNotFoundException):
        _send(dispatcher, db, _sms(diagnostic_id="missing"))


def test_failed_attempts_increment_retry_count_by_one(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="carrier rejected"), RuntimeError("socket closed")]

    notification = _send(dispatcher, db, _sms())
    assert notification.status == DeliveryStatus.FAILED
    assert notification.retry_count == 1
    assert notification.error_message == "carrier rejected"

    notification = asyncio.run(dispatcher.redeliver(db, notification.id))
    assert notification.status == DeliveryStatus.FAILED
    assert notification.retry_count == 2
    assert notification.error_message == "socket closed"

    notification = asyncio.run(dispatcher.redeliver(db, notification.id))
    assert notification.status == DeliveryStatus.SENT
    assert notification.retry_count == 2
    assert notification.error_message is None


def test_sender_timeout_is_a_failed_attempt(db, dispatcher, sms_sender):
    sms_sender.delay = 1.0

    notification = _send(dispatcher, db, _sms())

    assert notification.status == DeliveryStatus.FAILED
    assert notification.retry_count == 1
    assert "timed out" in notification.error_message
    assert notification.delivery_lock is None


def test_sent_intent_rejects_further_transitions(db, dispatcher):
    notification = _send(dispatcher, db, _sms())
    assert notification.status == DeliveryStatus.SENT

    with pytest.raises(ConflictException):
        asyncio.run(dispatcher.redeliver(db, notification.id))
    with pytest.raises(ConflictException):
        dispatcher.mark_failed(db, notification.id, "late failure report")

    db.refresh(notification)
    assert notification.status == DeliveryStatus.SENT
    assert notification.retry_count == 0


def test_mark_delivered_is_idempotent(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    notification = _send(dispatcher, db, _sms())

    first = dispatcher.mark_delivered(db, notification.id)
    sent_at = first.sent_at
    assert first.status == DeliveryStatus.SENT

    second = dispatcher.mark_delivered(db, notification.id)
    db.refresh(second)
    assert second.status == DeliveryStatus.SENT
    assert second.sent_at == sent_at
    assert second.retry_count == 1


def test_mark_failed_replay_does_not_double_increment(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    notification = _send(dispatcher, db, _sms())
    assert notification.retry_count == 1

    updated = dispatcher.mark_failed(db, notification.id, "driver attempt failed", attempt=1)
    assert updated.retry_count == 2

    replayed = dispatcher.mark_failed(db, notification.id, "driver attempt failed", attempt=1)
    assert replayed.retry_count == 2

    with pytest.raises(ConflictException):
        dispatcher.mark_failed(db, notification.id, "stale report", attempt=0)


def test_mark_failed_without_attempt_always_increments(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    notification = _send(dispatcher, db, _sms())

    dispatcher.mark_failed(db, notification.id, "again")
    notification = dispatcher.mark_failed(db, notification.id, "and again")
    assert notification.retry_count == 3


def test_unknown_notification(db, dispatcher):
    with pytest.raises(ResourceNotFoundException):
        dispatcher.mark_delivered(db, "missing")
    with pytest.raises(ResourceNotFoundException):
        dispatcher.mark_failed(db, "missing", "error")
    with pytest.raises(ResourceNotFoundException):
        asyncio.run(dispatcher.redeliver(db, "missing"))


def test_attempt_in_flight_blocks_a_second_attempt(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    notification = _send(dispatcher, db, _sms())

    now = utcnow()
    assert repository.claim_for_delivery(db, notification.id, "other-worker", now, now - timedelta(seconds=60))
    db.commit()

    with pytest.raises(ConflictException):
        asyncio.run(dispatcher.redeliver(db, notification.id))


def test_stale_lease_can_be_taken_over(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    notification = _send(dispatcher, db, _sms())

    crashed_at = utcnow() - timedelta(minutes=10)
    repository.claim_for_delivery(db, notification.id, "crashed-worker", crashed_at, crashed_at - timedelta(seconds=60))
    db.commit()

    notification = asyncio.run(dispatcher.redeliver(db, notification.id))
    assert notification.status == DeliveryStatus.SENT


def test_urgent_count_respects_window_and_recipient(db, sms_sender, email_sender):
    base = utcnow()
    clock = {"now": base - timedelta(hours=30)}
    dispatcher = NotificationDispatcher(sms_sender, email_sender, clock=lambda: clock["now"])

    _send(dispatcher, db, _sms())

    clock["now"] = base - timedelta(hours=2)
    _send(dispatcher, db, _sms())
    _send(dispatcher, db, _sms())
    _send(dispatcher, db, _sms(priority=NotificationPriority.ROUTINE))
    _send(dispatcher, db, _sms(recipient="+254700000099"))

    clock["now"] = base
    assert dispatcher.count_recent_urgent(db, "+254700000001") == 2
    assert dispatcher.count_recent_urgent(db, "+254700000099") == 1
    assert dispatcher.count_recent_urgent(db, "+254700000001", window=timedelta(hours=48)) == 3
    assert dispatcher.count_recent_urgent(db, "+254700000001", now=base + timedelta(hours=23)) == 0


def test_list_notifications_filters(db, dispatcher, sms_sender):
    sms_sender.outcomes = [SendResult(success=False, error="busy")]
    _send(dispatcher, db, _sms())
    _send(dispatcher, db, _sms())

    assert len(dispatcher.list_notifications(db)) == 2
    assert len(dispatcher.list_notifications(db, status=DeliveryStatus.FAILED)) == 1
    assert len(dispatcher.list_notifications(db, type=NotificationType.EMAIL)) == 0


def test_created_at_is_recorded(db, dispatcher):
    before = utcnow()
    notification = _send(dispatcher, db, _sms())
    assert ensure_utc(notification.created_at) >= before - timedelta(seconds=1)


def test_sms_sender_built_from_settings():
    base = dict(database_url="sqlite://", secret_key="secret", sender_timeout_seconds=3.0)

    unconfigured = build_sms_sender(Settings(**base, twilio_account_sid=None, twilio_auth_token=None, twilio_phone_number=None))
    assert unconfigured.configured is False
    assert unconfigured.timeout_seconds == 3.0

    configured = build_sms_sender(Settings(
        **base, twilio_account_sid="AC123", twilio_auth_token="token", twilio_phone_number="+15550000000",
    ))
    assert configured.configured is True
    assert configured.account_sid == "AC123"
    assert configured.from_number == "+15550000000"
