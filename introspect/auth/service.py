"""
Authentication service layer for business logic.
"""
import logging
from typing import Any, Dict

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..core.permissions import ACCOUNT_MANAGER_ROLES, USER_CREATOR_ROLES, authorize
from ..core.security import (
    TokenClaims,
    TokenService,
    ensure_utc,
    generate_secure_reset_token,
    get_token_expiry_time,
    hash_password,
    is_token_expired,
    utcnow,
    verify_password,
)
from ..exceptions import ResourceNotFoundException, ValidationFailedException
from ..notifications.senders import EmailSender
from . import repository
from .exceptions import (
    EmailAlreadyExistsException,
    InactiveAccountException,
    InvalidCredentialsException,
    InvalidTokenException,
    TokenExpiredException,
)
from .models import User, UserRole
from .schemas import (
    MIN_PASSWORD_LENGTH,
    AuthResponse,
    CreateUserRequest,
    RegisterRequest,
    UpdateProfileRequest,
    UserResponse,
)

# Set up logging
logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If an account exists with that email, password reset instructions have been sent"


def _auth_payload(user: User, token_service: TokenService) -> Dict[str, Any]:
    return AuthResponse(user=UserResponse.model_validate(user), token=token_service.issue(user)).model_dump(mode="json")


def _create_identity(db: Session, data: RegisterRequest, role: UserRole) -> User:
    if repository.find_user_by_email(db, data.email):
        logger.warning(f"Registration failed: Email {data.email} already registered")
        raise EmailAlreadyExistsException()

    try:
        user = repository.create_user(
            db,
            email=data.email,
            full_name=data.full_name,
            password_hash=hash_password(data.password),
            role=role,
            phone_number=data.phone_number,
            facility_name=data.facility_name,
            district=data.district,
        )
        db.commit()
    except IntegrityError:
        # Lost a race against a concurrent registration of the same email
        db.rollback()
        logger.warning(f"Registration failed: Email {data.email} registered concurrently")
        raise EmailAlreadyExistsException()
    except SQLAlchemyError:
        db.rollback()
        raise

    db.refresh(user)
    logger.info(f"Account created: {user.id} ({role.value})")
    return user


async def register_user(db: Session, data: RegisterRequest, token_service: TokenService) -> Dict[str, Any]:
    """
    Register a new field worker.

    Args:
        db: Database session
        data: Registration payload
        token_service: Service issuing the session token

    Returns:
        Dict with the created user and a session token

    Raises:
        EmailAlreadyExistsException: If email already exists
    """
    logger.info(f"Registration attempt for email: {data.email}")
    user = _create_identity(db, data, UserRole.FIELD_WORKER)
    return _auth_payload(user, token_service)


async def create_user(db: Session, data: CreateUserRequest, creator: TokenClaims) -> User:
    """
    Create an identity with an explicit role.

    Args:
        db: Database session
        data: Creation payload including the role
        creator: Claims of the calling super admin

    Returns:
        User: The created identity

    Raises:
        RoleDeniedException: If the caller is not a super admin
        EmailAlreadyExistsException: If email already exists
    """
    authorize(creator, USER_CREATOR_ROLES)
    logger.info(f"User {creator.id} creating {data.role.value} account for {data.email}")
    return _create_identity(db, data, data.role)


async def login_user(db: Session, email: str, password: str, token_service: TokenService) -> Dict[str, Any]:
    """
    Authenticate a user and generate a session token.

    Args:
        db: Database session
        email: User's email address
        password: User's password
        token_service: Service issuing the session token

    Returns:
        Dict with the user and a session token

    Raises:
        InvalidCredentialsException: If email is unknown or the password is wrong
        InactiveAccountException: If the account has been deactivated
    """
    user = repository.find_user_by_email(db, email)

    # Same response for unknown email and wrong password
    if not user or not verify_password(password, user.password_hash):
        logger.warning(f"Login failed: Invalid credentials for {email}")
        raise InvalidCredentialsException()

    if not user.is_active:
        logger.warning(f"Login failed: Account {user.id} is deactivated")
        raise InactiveAccountException()

    try:
        repository.touch_last_login(db, user.id)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user)

    logger.info(f"Login successful: User {user.id}")
    return _auth_payload(user, token_service)


async def request_password_reset(db: Session, email: str, email_sender: EmailSender) -> Dict[str, Any]:
    """
    Initiate password reset process.

    The response is identical whether or not the email is registered.

    Args:
        db: Database session
        email: Email address to send reset instructions to
        email_sender: Transport used to deliver the reset link

    Returns:
        Dict with a generic confirmation message
    """
    response: Dict[str, Any] = {"message": RESET_REQUESTED_MESSAGE}

    user = repository.find_user_by_email(db, email)
    if not user or not user.is_active:
        logger.info("Password reset requested for an unknown or inactive account")
        return response

    raw_token = generate_secure_reset_token()
    expires_at = get_token_expiry_time(settings.reset_token_expire_minutes)
    try:
        repository.create_reset_token(db, user.id, raw_token, expires_at)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    logger.info(f"Password reset token issued for user {user.id}")

    reset_url = f"{settings.frontend_url}/reset-password?token={raw_token}"
    result = await email_sender.send_email(
        user.email,
        "Introspect - Password Reset Request",
        f"Hello {user.full_name},\n\n"
        f"Use the link below to reset your password. It expires at "
        f"{expires_at.strftime('%H:%M UTC on %B %d, %Y')}.\n\n{reset_url}\n\n"
        f"If you did not request a password reset, ignore this email.",
    )
    if not result.success:
        logger.error(f"Failed to send password reset email to user {user.id}: {result.error}")

    if settings.is_development:
        response["reset_token"] = raw_token
    return response


async def reset_password(db: Session, token: str, new_password: str) -> Dict[str, Any]:
    """
    Reset a user's password using a reset token.

    Args:
        db: Database session
        token: Token received via email
        new_password: New password

    Returns:
        Dict with password reset success message

    Raises:
        ValidationFailedException: If the new password is too short
        InvalidTokenException: If the token is unknown or already used
        TokenExpiredException: If the token has expired
    """
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationFailedException(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    record = repository.find_reset_token(db, token)
    if not record or record.used_at is not None:
        logger.warning("Password reset failed: unknown or used token")
        raise InvalidTokenException()

    now = utcnow()
    if is_token_expired(record.expires_at, now):
        logger.warning(f"Password reset failed: token {record.id} expired at {ensure_utc(record.expires_at).isoformat()}")
        raise TokenExpiredException()

    try:
        # Compare-and-set on used_at: concurrent consumers of one token get a single winner
        if not repository.mark_reset_token_used(db, record.id, now):
            db.rollback()
            logger.warning(f"Password reset failed: token {record.id} consumed concurrently")
            raise InvalidTokenException()
        if repository.update_user_secret(db, record.user_id, hash_password(new_password)) != 1:
            db.rollback()
            raise InvalidTokenException()
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"Password reset successful for user {record.user_id}")
    return {"message": "Password successfully reset"}


def get_profile(db: Session, user_id: str) -> User:
    user = repository.find_user_by_id(db, user_id)
    if not user:
        raise ResourceNotFoundException("User not found")
    return user


def update_profile(db: Session, user: User, changes: UpdateProfileRequest) -> User:
    try:
        repository.update_user_profile(db, user, changes.model_dump(exclude_unset=True, exclude_none=True))
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user)
    return user


def set_user_active(db: Session, actor: TokenClaims, user_id: str, active: bool) -> User:
    """
    Activate or deactivate an identity.

    Deactivation takes effect on the next authenticated request: outstanding
    tokens stay cryptographically valid but the active check rejects them.

    Raises:
        RoleDeniedException: If the actor is not an account manager, unless deactivating themselves
        ResourceNotFoundException: If the user does not exist
    """
    is_self_deactivation = actor.id == user_id and not active
    if not is_self_deactivation:
        authorize(actor, ACCOUNT_MANAGER_ROLES)

    try:
        if repository.set_user_active(db, user_id, active) != 1:
            db.rollback()
            raise ResourceNotFoundException("User not found")
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info(f"User {actor.id} set account {user_id} active={active}")
    return get_profile(db, user_id)


def deactivate_account(db: Session, actor: TokenClaims) -> User:
    """Deactivate the caller's own account. Records are kept."""
    return set_user_active(db, actor, actor.id, False)


def bootstrap_admin_if_needed(db: Session) -> bool:
    """
    Create the first super admin from environment variables.

    Returns:
        bool: True if a super admin was created
    """
    if db.query(User).filter(User.role == UserRole.SUPER_ADMIN).count() > 0:
        return False

    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        logger.warning("No super admin exists and bootstrap credentials are not configured")
        return False

    if repository.find_user_by_email(db, settings.bootstrap_admin_email):
        logger.warning(f"Bootstrap failed: Email {settings.bootstrap_admin_email} already exists")
        return False

    try:
        repository.create_user(
            db,
            email=settings.bootstrap_admin_email,
            full_name=settings.bootstrap_admin_name,
            password_hash=hash_password(settings.bootstrap_admin_password),
            role=UserRole.SUPER_ADMIN,
        )
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Bootstrap super admin creation failed: {str(e)}")
        return False

    logger.info(f"Bootstrap super admin created: {settings.bootstrap_admin_email}")
    return True
