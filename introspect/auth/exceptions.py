"""
Authentication-specific exceptions.
"""
from typing import Iterable

from fastapi import status

from ..exceptions import AppException, ConflictException, ErrorCode


class AuthException(AppException):
    """Base class for authentication exceptions."""
    def __init__(self, status_code: int, code: str, detail: str):
        super().__init__(status_code=status_code, code=code, detail=detail)


class UnauthorizedException(AuthException):
    """Exception raised when a request carries no usable credentials."""
    def __init__(self, detail: str = "Authorization token required"):
        super().__init__(status.HTTP_401_UNAUTHORIZED, ErrorCode.UNAUTHORIZED, detail)


class InvalidCredentialsException(UnauthorizedException):
    """Exception raised when credentials are invalid."""
    def __init__(self, detail: str = "Invalid email or password"):
        super().__init__(detail=detail)


class InactiveAccountException(UnauthorizedException):
    """Exception raised when a deactivated identity tries to act."""
    def __init__(self, detail: str = "Account has been deactivated"):
        super().__init__(detail=detail)


class RoleDeniedException(AuthException):
    """Exception raised when user doesn't have required role."""
    def __init__(self, required_roles: Iterable[str], user_role: str):
        detail = f"Access denied. Required roles: {sorted(required_roles)}. Your role: {user_role}"
        super().__init__(status.HTTP_403_FORBIDDEN, ErrorCode.FORBIDDEN, detail)


class InvalidTokenException(AuthException):
    """Exception raised when a reset token is unknown or already used."""
    def __init__(self, detail: str = "Invalid or expired reset token"):
        super().__init__(status.HTTP_400_BAD_REQUEST, ErrorCode.INVALID_TOKEN, detail)


class TokenExpiredException(AuthException):
    """Exception raised when a reset token has expired."""
    def __init__(self, detail: str = "Reset token has expired"):
        super().__init__(status.HTTP_400_BAD_REQUEST, ErrorCode.TOKEN_EXPIRED, detail)


class EmailAlreadyExistsException(ConflictException):
    """Exception raised when email already exists."""
    def __init__(self, detail: str = "User with this email already exists"):
        super().__init__(detail=detail)
