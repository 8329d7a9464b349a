"""
Global exception handlers and custom exception classes.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

# Set up logging
logger = logging.getLogger(__name__)


class ErrorCode:
    """Error kinds surfaced at the API boundary."""
    UNAUTHORIZED = "UNAUTHORIZED"
    FORBIDDEN = "FORBIDDEN"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    CONFLICT = "CONFLICT"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"


class AppException(Exception):
    """
    Base exception class for application-specific exceptions.

    Every expected failure of a service operation is one of these, so callers
    can branch on ``code`` without parsing messages.
    """
    def __init__(self, status_code: int, code: str, detail: str):
        super().__init__(detail)
        self.status_code = status_code
        self.code = code
        self.detail = detail


class ValidationFailedException(AppException):
    """Exception raised when input fails a business validation rule."""
    def __init__(self, detail: str = "Invalid request data"):
        super().__init__(status.HTTP_422_UNPROCESSABLE_ENTITY, ErrorCode.VALIDATION_ERROR, detail)


class ResourceNotFoundException(AppException):
    """Exception raised when a requested record does not exist."""
    def __init__(self, detail: str = "Resource not found"):
        super().__init__(status.HTTP_404_NOT_FOUND, ErrorCode.NOT_FOUND, detail)


class ConflictException(AppException):
    """Exception raised when a state transition lost against the stored state."""
    def __init__(self, detail: str = "Resource state has changed"):
        super().__init__(status.HTTP_409_CONFLICT, ErrorCode.CONFLICT, detail)


class RateLimitedException(AppException):
    """Exception raised when a caller-side rate policy rejects a request."""
    def __init__(self, detail: str = "Rate limit exceeded"):
        super().__init__(status.HTTP_429_TOO_MANY_REQUESTS, ErrorCode.RATE_LIMITED, detail)


class ServerErrorException(AppException):
    """Exception raised when a backing service is unavailable."""
    def __init__(self, detail: str = "Internal server error"):
        super().__init__(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.SERVER_ERROR, detail)


def error_body(code: str, message: str, **extra: Any) -> Dict[str, Any]:
    """Build the standard error envelope."""
    error = {"code": code, "message": message}
    error.update(extra)
    return {
        "success": False,
        "error": error,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def success_body(data: Any) -> Dict[str, Any]:
    """Build the standard success envelope."""
    return {
        "success": True,
        "data": data,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


async def app_exception_handler(request: Request, exc: AppException):
    """
    Handler for application-specific exceptions.

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Standardized error response
    """
    logger.warning(f"Application error on {request.url.path}: {exc.code} - {exc.detail}")
    headers = {"WWW-Authenticate": "Bearer"} if exc.code == ErrorCode.UNAUTHORIZED else None
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.code, exc.detail),
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Handler for request validation exceptions.

    Args:
        request: The request that caused the exception
        exc: The validation exception instance

    Returns:
        JSONResponse: Standardized error response with validation details
    """
    logger.error(f"Validation error: {exc.errors()}")
    errors = [
        {"loc": list(err.get("loc", [])), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(ErrorCode.VALIDATION_ERROR, "Invalid request data", details=errors),
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError):
    """
    Handler for storage failures that escaped a service.

    Args:
        request: The request that caused the exception
        exc: The database exception instance

    Returns:
        JSONResponse: Generic server error response
    """
    logger.error(f"Database error on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.SERVER_ERROR, "Storage is unavailable"),
    )


HTTP_ERROR_CODES = {
    status.HTTP_401_UNAUTHORIZED: ErrorCode.UNAUTHORIZED,
    status.HTTP_403_FORBIDDEN: ErrorCode.FORBIDDEN,
    status.HTTP_404_NOT_FOUND: ErrorCode.NOT_FOUND,
    status.HTTP_409_CONFLICT: ErrorCode.CONFLICT,
    status.HTTP_422_UNPROCESSABLE_ENTITY: ErrorCode.VALIDATION_ERROR,
    status.HTTP_429_TOO_MANY_REQUESTS: ErrorCode.RATE_LIMITED,
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """
    Handler for framework HTTP errors such as unknown routes or methods.

    Args:
        request: The request that caused the exception
        exc: The HTTP exception instance

    Returns:
        JSONResponse: Standardized error response with the original status code
    """
    code = HTTP_ERROR_CODES.get(exc.status_code)
    if code is None:
        code = ErrorCode.SERVER_ERROR if exc.status_code >= 500 else ErrorCode.VALIDATION_ERROR
    logger.warning(f"HTTP error on {request.url.path}: {exc.status_code} - {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    """
    Handler for exceptions no other handler claimed.

    Args:
        request: The request that caused the exception
        exc: The exception instance

    Returns:
        JSONResponse: Generic server error response
    """
    logger.exception(f"Unhandled error on {request.url.path}: {str(exc)}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(ErrorCode.SERVER_ERROR, "Internal server error"),
    )


# Register exception handlers with FastAPI app
def register_exception_handlers(app):
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
