"""
Error handling module for the fleet backend.

This module provides structured error handling with:
- ErrorCode enum for standardized error codes
- AppException class and factories for application-specific exceptions
- Exception handlers that render every failure as JSON with an ``error`` field
"""

from errors.codes import ErrorCode
from errors.exceptions import AppException
from errors.handlers import (
    ErrorResponse,
    handle_app_exception,
    handle_request_validation_error,
    handle_unexpected_exception,
    register_exception_handlers,
)

__all__ = [
    "ErrorCode",
    "AppException",
    "ErrorResponse",
    "handle_app_exception",
    "handle_request_validation_error",
    "handle_unexpected_exception",
    "register_exception_handlers",
]
