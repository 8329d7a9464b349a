"""
User Schemas - Pydantic models for identity data validation and serialization.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from ..core.security import ensure_utc
from .models import UserRole

MIN_PASSWORD_LENGTH = 8


class UserBase(BaseModel):
    """
    Base User Schema - Contains fields common to all user-related schemas

    Fields:
    - email: User's email address
    - full_name: User's full name
    """
    email: EmailStr
    full_name: str = Field(..., min_length=2, description="Full name is required")


class RegisterRequest(UserBase):
    """
    Registration Schema - Used for field worker self-registration

    Extends UserBase with:
    - password: Plain text password (hashed before storage)
    - phone_number: Used for SMS result alerts (optional)
    - facility_name: Health facility the worker reports from (optional)
    - district: District the worker operates in (optional)
    """
    password: str = Field(..., min_length=MIN_PASSWORD_LENGTH, description="Password must be at least 8 characters")
    phone_number: Optional[str] = None
    facility_name: Optional[str] = None
    district: Optional[str] = None


class CreateUserRequest(RegisterRequest):
    """
    Administrative user creation - the only way to create admin or super admin accounts.
    """
    role: UserRole = UserRole.FIELD_WORKER


class LoginRequest(BaseModel):
    """
    Login Schema - Used for authentication

    Fields:
    - email: User's email address
    - password: User's plain text password
    """
    email: EmailStr
    password: str = Field(..., min_length=1, description="Password is required")


class ForgotPasswordRequest(BaseModel):
    """Forgot password request - only the email address is needed."""
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    """
    Password Reset Completion Schema

    Fields:
    - token: Reset token received by email
    - new_password: New plain text password (length checked by the service)
    """
    token: str = Field(..., min_length=1, description="Reset token is required")
    new_password: str


class UpdateProfileRequest(BaseModel):
    """Editable profile fields. Email and role are not editable."""
    full_name: Optional[str] = Field(None, min_length=2)
    phone_number: Optional[str] = None
    facility_name: Optional[str] = None
    district: Optional[str] = None


class SetActiveRequest(BaseModel):
    """Activate or deactivate an account."""
    is_active: bool


class UserResponse(BaseModel):
    """
    User Response Schema - identity as returned by the API, never includes the password hash.
    """
    id: str
    email: EmailStr
    full_name: str
    role: UserRole
    phone_number: Optional[str] = None
    facility_name: Optional[str] = None
    district: Optional[str] = None
    is_active: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        """Configuration for Pydantic model to enable ORM mode"""
        from_attributes = True

    @field_validator("last_login_at", "created_at")
    @classmethod
    def as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None


class AuthResponse(BaseModel):
    """Identity plus a freshly issued session token."""
    user: UserResponse
    token: str
    token_type: str = "bearer"
