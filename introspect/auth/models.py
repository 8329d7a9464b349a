"""
Identity models - users and their password reset tokens.
"""
import enum

from sqlalchemy import Column, String, Boolean, DateTime, Enum, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from ..database import Base, generate_uuid


class UserRole(str, enum.Enum):
    """
    Enumeration for user roles.

    Roles:
    - FIELD_WORKER: Health workers who collect samples and submit diagnostics
    - ADMIN: Reviewers who verify diagnostics and manage accounts
    - SUPER_ADMIN: System administrators, the only role that may create privileged accounts

    There is no hierarchy between roles; every operation lists the roles it allows.
    """
    FIELD_WORKER = "field_worker"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class User(Base):
    """
    User Model - an identity that can authenticate against the API

    Fields:
    - id: UUID primary key
    - email: Unique email address for login and communication
    - password_hash: bcrypt digest, never the raw password
    - role: Fixed at creation
    - is_active: Tokens of an inactive identity are rejected on every authenticated request
    - phone_number: Used for SMS alerts (optional)
    - facility_name / district: Where the field worker operates (optional)
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    email = Column(String, unique=True, index=True, nullable=False)
    password_hash = Column(String, nullable=False)
    full_name = Column(String, nullable=False)
    role = Column(Enum(UserRole, values_callable=lambda e: [m.value for m in e]),
                  nullable=False, default=UserRole.FIELD_WORKER)
    phone_number = Column(String, nullable=True)
    facility_name = Column(String, nullable=True)
    district = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reset_tokens = relationship("PasswordResetToken", back_populates="user")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"


class PasswordResetToken(Base):
    """
    Single-use password recovery token.

    Only the SHA-256 hash of the token string is stored. ``used_at`` is set
    exactly once and never cleared.
    """
    __tablename__ = "password_reset_tokens"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), unique=True, index=True, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    user = relationship("User", back_populates="reset_tokens")

    def __repr__(self):
        return f"<PasswordResetToken(id={self.id}, user_id={self.user_id}, used={self.used_at is not None})>"
