"""
Tests for the password reset flow.
"""
import asyncio
from datetime import timedelta

import pytest

from introspect.auth import repository
from introspect.auth.exceptions import InvalidTokenException, TokenExpiredException
from introspect.auth.models import PasswordResetToken
from introspect.auth.service import RESET_REQUESTED_MESSAGE, request_password_reset, reset_password
from introspect.config import settings
from introspect.core.security import ensure_utc, utcnow, verify_password
from introspect.exceptions import ErrorCode, ValidationFailedException


def test_unregistered_email_gets_generic_response(db, email_sender):
    result = asyncio.run(request_password_reset(db, "nobody@example.com", email_sender))

    assert result == {"message": RESET_REQUESTED_MESSAGE}
    assert db.query(PasswordResetToken).count() == 0
    assert email_sender.sent == []


def test_inactive_account_gets_generic_response(db, email_sender, make_user):
    user, _ = make_user(email="gone@example.com", is_active=False)

    result = asyncio.run(request_password_reset(db, user.email, email_sender))

    assert result == {"message": RESET_REQUESTED_MESSAGE}
    assert db.query(PasswordResetToken).count() == 0


def test_reset_link_is_emailed_and_token_stored_hashed(db, email_sender, field_worker):
    user, _ = field_worker

    result = asyncio.run(request_password_reset(db, user.email, email_sender))

    assert result["message"] == RESET_REQUESTED_MESSAGE
    raw_token = result["reset_token"]
    stored = db.query(PasswordResetToken).one()
    assert stored.token_hash != raw_token
    assert stored.used_at is None
    assert len(email_sender.sent) == 1
    assert email_sender.sent[0]["recipient"] == user.email
    assert f"token={raw_token}" in email_sender.sent[0]["message"]


def test_reset_token_is_consumed_exactly_once(db, email_sender, field_worker):
    user, _ = field_worker
    raw_token = asyncio.run(request_password_reset(db, user.email, email_sender))["reset_token"]

    with pytest.raises(ValidationFailedException) as exc:
        asyncio.run(reset_password(db, raw_token, "short"))
    assert exc.value.code == ErrorCode.VALIDATION_ERROR

    result = asyncio.run(reset_password(db, raw_token, "NewPassword456!"))
    assert result == {"message": "Password successfully reset"}
    db.refresh(user)
    assert verify_password("NewPassword456!", user.password_hash)

    with pytest.raises(InvalidTokenException) as exc:
        asyncio.run(reset_password(db, raw_token, "AnotherPassword789!"))
    assert exc.value.code == ErrorCode.INVALID_TOKEN
    db.refresh(user)
    assert verify_password("NewPassword456!", user.password_hash)


def test_expired_token_is_rejected(db, field_worker):
    user, _ = field_worker
    repository.create_reset_token(db, user.id, "expired-token", utcnow() - timedelta(minutes=1))
    db.commit()

    with pytest.raises(TokenExpiredException) as exc:
        asyncio.run(reset_password(db, "expired-token", "NewPassword456!"))
    assert exc.value.code == ErrorCode.TOKEN_EXPIRED


def test_unknown_token_is_rejected(db):
    with pytest.raises(InvalidTokenException):
        asyncio.run(reset_password(db, "never-issued", "NewPassword456!"))


def test_mark_used_is_compare_and_set(db, field_worker):
    user, _ = field_worker
    record = repository.create_reset_token(db, user.id, "raw", utcnow() + timedelta(minutes=30))
    db.commit()

    assert repository.mark_reset_token_used(db, record.id) is True
    assert repository.mark_reset_token_used(db, record.id) is False


def test_reset_token_expires_after_configured_lifetime(db, email_sender, field_worker):
    user, _ = field_worker
    lifetime = timedelta(minutes=settings.reset_token_expire_minutes)

    before = utcnow()
    asyncio.run(request_password_reset(db, user.email, email_sender))
    after = utcnow()

    expires_at = ensure_utc(db.query(PasswordResetToken).one().expires_at)
    assert before + lifetime <= expires_at <= after + lifetime
