"""Application-specific exceptions for consistent error handling.

The engine raises :class:`EngineError` subclasses; the API layer renders them
with the same envelope as :class:`AppError`.
"""

from typing import Any

from fastapi import HTTPException, status


class EngineError(Exception):
    """Base class for practice engine failures with a stable error code."""

    code = "ENGINE_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    retryable = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(EngineError):
    """Unknown topic/item id or malformed configuration. Rejected, never retried."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class StorageError(EngineError):
    """Cache or persistent store unavailable, or a write lost an optimistic race."""

    code = "STORAGE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    retryable = True


class UpstreamTimeout(EngineError):
    """External generator or item source unreachable, erroring, or too slow."""

    code = "UPSTREAM_TIMEOUT"
    status_code = status.HTTP_504_GATEWAY_TIMEOUT
    retryable = True


class AppError(HTTPException):
    """Application error with standardized error code."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        details: dict[str, Any] | list[Any] | None = None,
    ):
        """Initialize application error."""
        super().__init__(
            status_code=status_code,
            detail={
                "code": code,
                "message": message,
                "details": details,
            },
        )
        self.code = code
        self.message = message
        self.details = details


def raise_app_error(
    status_code: int,
    code: str,
    message: str,
    details: dict[str, Any] | list[Any] | None = None,
) -> None:
    """Raise an application error with standardized format."""
    raise AppError(status_code=status_code, code=code, message=message, details=details)
