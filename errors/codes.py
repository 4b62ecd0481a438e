"""
Error code catalog for the fleet backend.

Every error the API returns carries one of these codes. Each code has a
default HTTP status used when an exception does not specify its own.
"""

from enum import Enum


class ErrorCode(str, Enum):
    """
    Enumeration of all error codes used in the application.

    - Client errors (4xx): invalid payloads, unknown records, credentials
    - Store errors (5xx): the document store could not be reached
    - Internal errors (5xx): anything unexpected
    """

    # Client errors (4xx)
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Vehicle payload violates the schema (HTTP 400)"""

    INVALID_REQUEST = "INVALID_REQUEST"
    """Malformed request structure (HTTP 400)"""

    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    """No record with the given identifier (HTTP 404)"""

    UNAUTHORIZED = "UNAUTHORIZED"
    """Missing or invalid credential (HTTP 401)"""

    RATE_LIMITED = "RATE_LIMITED"
    """Too many requests (HTTP 429)"""

    # Store errors (5xx)
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    """Document store unreachable or failing; the caller may retry (HTTP 500)"""

    # Internal errors (5xx)
    INTERNAL_ERROR = "INTERNAL_ERROR"
    """Unexpected server error (HTTP 500)"""


ERROR_CODE_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.INVALID_REQUEST: 400,
    ErrorCode.RESOURCE_NOT_FOUND: 404,
    ErrorCode.UNAUTHORIZED: 401,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.STORE_UNAVAILABLE: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}


def get_default_status_code(error_code: ErrorCode) -> int:
    """
    Get the default HTTP status code for an error code.

    Args:
        error_code: The error code to look up

    Returns:
        The default HTTP status code for the error code
    """
    return ERROR_CODE_STATUS_MAP.get(error_code, 500)
