"""
Core permissions utilities for role-based access control.

Role checks are exact-set membership. There is no implicit hierarchy: an
operation open to both admins and super admins lists both roles.
"""
from typing import FrozenSet, Iterable, Optional

from ..auth.exceptions import RoleDeniedException, UnauthorizedException
from ..auth.models import UserRole
from .security import TokenClaims, TokenService

BEARER_PREFIX = "Bearer "

# Role sets per operation
REVIEWER_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})
ACCOUNT_MANAGER_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})
RETRY_DRIVER_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.SUPER_ADMIN})
USER_CREATOR_ROLES: FrozenSet[UserRole] = frozenset({UserRole.SUPER_ADMIN})


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """
    Pull the token out of an Authorization header.

    Args:
        authorization: Raw header value

    Returns:
        The token, or None if the header is missing or not a bearer header
    """
    if not authorization or not authorization.startswith(BEARER_PREFIX):
        return None
    token = authorization[len(BEARER_PREFIX):].strip()
    return token or None


def authenticate(authorization: Optional[str], token_service: TokenService) -> TokenClaims:
    """
    Turn a raw Authorization header into verified claims.

    Args:
        authorization: Raw header value
        token_service: Service used to validate the token

    Returns:
        TokenClaims: Verified claims

    Raises:
        UnauthorizedException: If the header is missing, ill-formed or the token is invalid
    """
    token = extract_bearer_token(authorization)
    if token is None:
        raise UnauthorizedException("Authorization token required")

    claims = token_service.validate(token)
    if claims is None:
        raise UnauthorizedException("Invalid or expired token")
    return claims


def authorize(claims: TokenClaims, required_roles: Iterable[UserRole]) -> TokenClaims:
    """
    Check verified claims against the roles an operation allows.

    Args:
        claims: Verified token claims
        required_roles: Roles allowed to perform the operation

    Returns:
        TokenClaims: The same claims, for chaining

    Raises:
        RoleDeniedException: If the role is not in the allowed set
    """
    roles = set(required_roles)
    if claims.role not in roles:
        raise RoleDeniedException([role.value for role in roles], claims.role.value)
    return claims
