"""Custom exceptions for API error handling."""

from typing import Any

from fastapi import HTTPException, status

from app.core.activities.errors import (
    ActivityError,
    ActivityNotFoundError,
    ActivityValidationError,
    AlreadyCompletedError,
    InvalidTransitionError,
)


class APIException(HTTPException):
    """Custom exception for API errors with standard format.

    Example:
        raise APIException(
            code="ACTIVITY_NOT_FOUND",
            message="Activity not found",
            status_code=status.HTTP_404_NOT_FOUND
        )
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = status.HTTP_400_BAD_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize API exception.

        Args:
            code: Error code (e.g., 'AUTH_INVALID_TOKEN', 'ACTIVITY_NOT_FOUND').
            message: Human-readable error message.
            status_code: HTTP status code (default: 400).
            details: Optional additional error details.
        """
        super().__init__(
            status_code=status_code,
            detail={"error": {"code": code, "message": message, "details": details}},
        )
        self.code = code
        self.message = message
        self.details = details


ACTIVITY_ERROR_STATUS: dict[type[ActivityError], int] = {
    ActivityNotFoundError: status.HTTP_404_NOT_FOUND,
    InvalidTransitionError: status.HTTP_409_CONFLICT,
    AlreadyCompletedError: status.HTTP_409_CONFLICT,
    ActivityValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
}


def api_exception_from_activity_error(exc: ActivityError) -> APIException:
    """Translate a domain error into the standard API error.

    Args:
        exc: Error raised by the activity lifecycle.

    Returns:
        APIException carrying the error's code, message and details.
    """
    status_code = ACTIVITY_ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
    return APIException(
        code=exc.code,
        message=exc.message,
        status_code=status_code,
        details=exc.details,
    )


def raise_unauthorized(
    code: str = "AUTH_UNAUTHORIZED", message: str = "Unauthorized"
) -> None:
    """Raise 401 Unauthorized exception.

    Args:
        code: Error code (default: 'AUTH_UNAUTHORIZED').
        message: Error message (default: 'Unauthorized').

    Raises:
        APIException: 401 Unauthorized error.
    """
    raise APIException(
        code=code, message=message, status_code=status.HTTP_401_UNAUTHORIZED
    )


def raise_forbidden(
    code: str = "AUTH_INSUFFICIENT_PERMISSIONS",
    message: str = "Insufficient permissions",
    details: dict[str, Any] | None = None,
) -> None:
    """Raise 403 Forbidden exception.

    Args:
        code: Error code (default: 'AUTH_INSUFFICIENT_PERMISSIONS').
        message: Error message (default: 'Insufficient permissions').
        details: Optional error details.

    Raises:
        APIException: 403 Forbidden error.
    """
    raise APIException(
        code=code,
        message=message,
        status_code=status.HTTP_403_FORBIDDEN,
        details=details,
    )
