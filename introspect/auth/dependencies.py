"""
FastAPI dependencies for authentication and authorization.
"""
from typing import Iterable, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..core.permissions import authenticate, authorize
from ..core.security import TokenClaims, TokenService, get_token_service
from ..database import get_db
from . import repository
from .exceptions import InactiveAccountException, UnauthorizedException
from .models import User, UserRole


def get_current_claims(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    token_service: TokenService = Depends(get_token_service),
) -> TokenClaims:
    """
    Verify the bearer token of the request.

    Raises:
        UnauthorizedException: If the token is missing or invalid
    """
    return authenticate(authorization, token_service)


def get_current_active_user(
    claims: TokenClaims = Depends(get_current_claims),
    db: Session = Depends(get_db),
) -> User:
    """
    Load the identity behind the token and check it is still active.

    Raises:
        UnauthorizedException: If the identity no longer exists or was deactivated
    """
    user = repository.find_user_by_id(db, claims.id)
    if not user:
        raise UnauthorizedException("User not found")
    if not user.is_active:
        raise InactiveAccountException()
    return user


def get_active_claims(
    claims: TokenClaims = Depends(get_current_claims),
    current_user: User = Depends(get_current_active_user),
) -> TokenClaims:
    """Claims of an authenticated identity that is still active."""
    return claims


def require_roles(allowed_roles: Iterable[UserRole]):
    """
    Dependency factory to require specific roles.

    Args:
        allowed_roles: Roles that are allowed access

    Returns:
        Function that checks the caller's role and returns its claims
    """
    roles = frozenset(allowed_roles)

    def role_checker(claims: TokenClaims = Depends(get_active_claims)) -> TokenClaims:
        return authorize(claims, roles)
    return role_checker
