"""
Identity and reset-token stores.

Functions here only stage changes on the session; the calling service owns
the transaction and decides when to commit or roll back.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from ..core.security import hash_token, utcnow
from .models import PasswordResetToken, User

PROFILE_FIELDS = ("full_name", "phone_number", "facility_name", "district")


# Identity store

def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == email.lower()).first()


def find_user_by_id(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def create_user(db: Session, **fields: Any) -> User:
    """Stage a new identity. Email uniqueness is enforced by the table."""
    fields["email"] = fields["email"].lower()
    user = User(**fields)
    db.add(user)
    db.flush()
    return user


def update_user_secret(db: Session, user_id: str, password_hash: str) -> int:
    return (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.password_hash: password_hash, User.updated_at: utcnow()}, synchronize_session=False)
    )


def set_user_active(db: Session, user_id: str, active: bool) -> int:
    return (
        db.query(User)
        .filter(User.id == user_id)
        .update({User.is_active: active, User.updated_at: utcnow()}, synchronize_session=False)
    )


def update_user_profile(db: Session, user: User, changes: Dict[str, Any]) -> User:
    for field, value in changes.items():
        if field in PROFILE_FIELDS:
            setattr(user, field, value)
    user.updated_at = utcnow()
    db.flush()
    return user


def touch_last_login(db: Session, user_id: str) -> None:
    db.query(User).filter(User.id == user_id).update({User.last_login_at: utcnow()}, synchronize_session=False)


# Reset-token store

def create_reset_token(db: Session, user_id: str, raw_token: str, expires_at: datetime) -> PasswordResetToken:
    record = PasswordResetToken(user_id=user_id, token_hash=hash_token(raw_token), expires_at=expires_at)
    db.add(record)
    db.flush()
    return record


def find_reset_token(db: Session, raw_token: str) -> Optional[PasswordResetToken]:
    return db.query(PasswordResetToken).filter(PasswordResetToken.token_hash == hash_token(raw_token)).first()


def mark_reset_token_used(db: Session, token_id: str, used_at: Optional[datetime] = None) -> bool:
    """
    Atomically consume a reset token.

    Returns:
        bool: True if this call set ``used_at``; False if it was already set
    """
    updated = (
        db.query(PasswordResetToken)
        .filter(PasswordResetToken.id == token_id, PasswordResetToken.used_at.is_(None))
        .update({PasswordResetToken.used_at: used_at or utcnow()}, synchronize_session=False)
    )
    return updated == 1
