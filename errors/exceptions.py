"""
Exception classes for the fleet backend.

AppException carries an error code, a client-facing message, the HTTP
status and optional structured details. The factory functions below are
what the rest of the code raises.
"""

from typing import Any, Optional

from errors.codes import ErrorCode, get_default_status_code


class AppException(Exception):
    """
    Base exception class for all application-specific errors.

    Attributes:
        error_code: A standardized error code from the ErrorCode enum
        message: A human-readable error message, safe to show to clients
        status_code: The HTTP status code to return
        details: Optional additional context (e.g., field-level violations)

    Example:
        raise AppException(
            error_code=ErrorCode.VALIDATION_ERROR,
            message="Vehicle validation failed",
            details={"violations": [{"field": "km", "message": "must be non-negative"}]}
        )
    """

    def __init__(
        self,
        error_code: ErrorCode,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.status_code = status_code or get_default_status_code(error_code)
        self.details = details
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """
        Convert the exception to a dictionary for JSON serialization.

        Returns:
            Dictionary containing error, error_code, and details
        """
        result = {
            "error": self.message,
            "error_code": self.error_code.value,
        }
        if self.details is not None:
            result["details"] = self.details
        return result

    def __repr__(self) -> str:
        return (
            f"AppException(error_code={self.error_code.value!r}, "
            f"message={self.message!r}, status_code={self.status_code}, "
            f"details={self.details!r})"
        )


def validation_error(
    message: str,
    violations: Optional[list[dict[str, str]]] = None
) -> AppException:
    """Create a validation error carrying the violated fields."""
    return AppException(
        error_code=ErrorCode.VALIDATION_ERROR,
        message=message,
        details={"violations": violations or []}
    )


def invalid_request(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an invalid request exception."""
    return AppException(
        error_code=ErrorCode.INVALID_REQUEST,
        message=message,
        details=details
    )


def resource_not_found(
    message: str,
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a resource not found exception."""
    return AppException(
        error_code=ErrorCode.RESOURCE_NOT_FOUND,
        message=message,
        details=details
    )


def unauthorized(
    message: str = "Authentication required",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create an unauthorized exception."""
    return AppException(
        error_code=ErrorCode.UNAUTHORIZED,
        message=message,
        details=details
    )


def store_unavailable(
    message: str = "Vehicle store unavailable",
    details: Optional[dict[str, Any]] = None
) -> AppException:
    """Create a store unavailable exception."""
    return AppException(
        error_code=ErrorCode.STORE_UNAVAILABLE,
        message=message,
        details=details
    )
