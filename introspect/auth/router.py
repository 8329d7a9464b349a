"""
Authentication and account routes.
"""
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..core.permissions import USER_CREATOR_ROLES
from ..core.security import TokenClaims, TokenService, get_token_service
from ..database import get_db
from ..exceptions import success_body
from ..notifications.dispatcher import NotificationDispatcher, get_dispatcher
from . import service
from .dependencies import get_active_claims, get_current_active_user, require_roles
from .models import User
from .schemas import (
    CreateUserRequest,
    ForgotPasswordRequest,
    LoginRequest,
    RegisterRequest,
    ResetPasswordRequest,
    SetActiveRequest,
    UpdateProfileRequest,
    UserResponse,
)

# Set up logging
logger = logging.getLogger(__name__)

# Create API routers
router = APIRouter(prefix="/api/auth", tags=["Authentication"])
users_router = APIRouter(prefix="/api/users", tags=["Users"])


def _user_data(user: User):
    return UserResponse.model_validate(user).model_dump(mode="json")


# ============================================================================
# AUTHENTICATION ROUTES
# ============================================================================

@router.post("/register", status_code=status.HTTP_201_CREATED, summary="Field Worker Self-Registration")
async def register_route(
    user_data: RegisterRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
):
    """
    Register a field worker account and return a session token.

    Privileged accounts cannot be created here; see POST /api/users.
    """
    result = await service.register_user(db, user_data, token_service)
    return success_body(result)


@router.post("/login", summary="User Login")
async def login_route(
    credentials: LoginRequest,
    db: Session = Depends(get_db),
    token_service: TokenService = Depends(get_token_service),
):
    """
    Authenticate a user and return a session token.

    Unknown email and wrong password get the same response.
    """
    result = await service.login_user(db, credentials.email, credentials.password, token_service)
    return success_body(result)


@router.post("/forgot-password", summary="Request Password Reset")
async def forgot_password_route(
    request_data: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Email a password reset link.

    Always responds with the same message, whether or not the email is registered.
    """
    result = await service.request_password_reset(db, request_data.email, dispatcher.email_sender)
    return success_body(result)


@router.post("/reset-password", summary="Reset Password")
async def reset_password_route(
    reset_data: ResetPasswordRequest,
    db: Session = Depends(get_db),
):
    """Set a new password using a single-use reset token."""
    result = await service.reset_password(db, reset_data.token, reset_data.new_password)
    return success_body(result)


# ============================================================================
# ACCOUNT ROUTES
# ============================================================================

@users_router.get("/profile", summary="Get Own Profile")
async def get_profile_route(current_user: User = Depends(get_current_active_user)):
    return success_body(_user_data(current_user))


@users_router.put("/profile", summary="Update Own Profile")
async def update_profile_route(
    changes: UpdateProfileRequest,
    current_user: User = Depends(get_current_active_user),
    db: Session = Depends(get_db),
):
    user = service.update_profile(db, current_user, changes)
    return success_body(_user_data(user))


@users_router.delete("/account", summary="Deactivate Own Account")
async def deactivate_account_route(
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    """
    Deactivate the caller's account.

    Diagnostic records submitted by the account are kept; the account can no
    longer authenticate.
    """
    service.deactivate_account(db, claims)
    return success_body({"message": "Account deactivated"})


@users_router.post("", status_code=status.HTTP_201_CREATED, summary="Create User (Super Admin)")
async def create_user_route(
    user_data: CreateUserRequest,
    claims: TokenClaims = Depends(require_roles(USER_CREATOR_ROLES)),
    db: Session = Depends(get_db),
):
    """Create an account with any role. Super admin only."""
    user = await service.create_user(db, user_data, claims)
    return success_body(_user_data(user))


@users_router.put("/{user_id}/active", summary="Activate or Deactivate User")
async def set_user_active_route(
    user_id: str,
    request_data: SetActiveRequest,
    claims: TokenClaims = Depends(get_active_claims),
    db: Session = Depends(get_db),
):
    """Admins and super admins manage any account; anyone may deactivate their own."""
    user = service.set_user_active(db, claims, user_id, request_data.is_active)
    return success_body(_user_data(user))
