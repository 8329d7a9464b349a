"""
Core security utilities for authentication and password handling.
"""
import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Callable, Dict, Optional

from jose import jwt, JWTError
from passlib.context import CryptContext

from ..config import settings
from ..auth.models import UserRole

# Set up logging
logger = logging.getLogger(__name__)

# Password hashing context, bcrypt cost fixed at 10 rounds
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=10)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a stored timestamp to aware UTC.

    SQLite hands back naive datetimes even for timezone-aware columns;
    everything this service writes is UTC so naive values are tagged as such.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def hash_password(password: str) -> str:
    """
    Hash a password using bcrypt.

    Args:
        password: Plain text password

    Returns:
        str: Salted bcrypt digest
    """
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Verify a password against a hash.

    Args:
        plain_password: Plain text password
        hashed_password: Hashed password to compare against

    Returns:
        bool: True if password matches hash, False on mismatch or a malformed digest
    """
    if not plain_password or not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except (ValueError, TypeError):
        logger.warning("Password verification against a malformed digest")
        return False


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, verified payload of a session token."""
    id: str
    role: UserRole
    email: Optional[str]
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """
    Issues and validates signed session tokens.

    Tokens are stateless: validity depends only on the signature and ``exp``.
    ``validate`` does not know whether the identity is still active; callers
    that have store access must re-check that before trusting the claims.
    """

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        lifetime: timedelta = timedelta(hours=24),
        clock: Callable[[], datetime] = utcnow,
    ):
        if not secret_key:
            raise ValueError("Token signing secret must not be empty")
        self._secret_key = secret_key
        self._algorithm = algorithm
        self.lifetime = lifetime
        self._clock = clock

    def issue(self, user) -> str:
        """
        Create a signed token for a user.

        Args:
            user: Identity with ``id``, ``email`` and ``role`` attributes

        Returns:
            str: Encoded JWT token
        """
        issued_at = self._clock()
        role = user.role.value if hasattr(user.role, "value") else str(user.role)
        to_encode: Dict[str, Any] = {
            "id": str(user.id),
            "email": user.email,
            "role": role,
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.lifetime).timestamp()),
        }
        return jwt.encode(to_encode, self._secret_key, algorithm=self._algorithm)

    def validate(self, token: str) -> Optional[TokenClaims]:
        """
        Verify and decode a token.

        Args:
            token: JWT token string

        Returns:
            TokenClaims if valid, None if malformed, badly signed or expired
        """
        if not token:
            return None
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError as e:
            logger.debug(f"Token rejected: {str(e)}")
            return None

        try:
            return TokenClaims(
                id=str(payload["id"]),
                role=UserRole(payload["role"]),
                email=payload.get("email"),
                issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
                expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
            )
        except (KeyError, ValueError, TypeError):
            logger.warning("Token rejected: payload is missing required claims")
            return None


@lru_cache()
def get_token_service() -> TokenService:
    """Process-wide token service built from settings."""
    return TokenService(
        secret_key=settings.secret_key,
        algorithm=settings.algorithm,
        lifetime=timedelta(hours=settings.access_token_expire_hours),
    )


def generate_secure_reset_token() -> str:
    """
    Generate a secure token for password reset.

    Returns:
        str: Secure random token
    """
    return secrets.token_urlsafe(32)


def hash_token(token: str) -> str:
    """
    Hash a token for secure storage.

    Args:
        token: Token to hash

    Returns:
        str: Hashed token
    """
    return hashlib.sha256(token.encode()).hexdigest()


def is_token_expired(expiry_time: datetime, now: Optional[datetime] = None) -> bool:
    """
    Check if a token has expired.

    Args:
        expiry_time: Token expiration time
        now: Reference time, defaults to the current time

    Returns:
        bool: True if token has expired
    """
    return ensure_utc(now or utcnow()) > ensure_utc(expiry_time)


def get_token_expiry_time(minutes: int = 60) -> datetime:
    """
    Get token expiration time.

    Args:
        minutes: Minutes until expiration

    Returns:
        datetime: Expiration time
    """
    return utcnow() + timedelta(minutes=minutes)
