"""
Exception handlers for the fleet backend.

Every failure leaves the API as a JSON body with an ``error`` message, an
``error_code`` from the catalog, optional ``details`` and the
``request_id`` of the failing request. Unexpected exceptions are logged
with their stack trace and answered with a generic message only.
"""

import logging
import traceback
import uuid
from typing import Any, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from errors.codes import ErrorCode
from errors.exceptions import AppException, invalid_request

logger = logging.getLogger(__name__)


class ErrorResponse(BaseModel):
    """
    Structured error response model.

    All error responses from the API follow this format so clients can
    rely on the ``error`` field and branch on ``error_code``.
    """
    error: str
    error_code: str
    details: Optional[dict[str, Any]] = None
    request_id: str


def get_request_id(request: Request) -> str:
    """
    Get the request ID set by RequestIDMiddleware, or generate a new one.

    Args:
        request: The FastAPI request object

    Returns:
        The request ID string
    """
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return str(uuid.uuid4())


def format_violations(errors: list[dict[str, Any]]) -> list[dict[str, str]]:
    """
    Flatten pydantic error entries into ``{field, message}`` pairs.

    The request body prefix FastAPI adds to locations is dropped, so a
    violation on ``drivers`` reads ``drivers`` whether it came from the
    request parser or from merged-record validation.
    """
    violations = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part != "body"]
        violations.append({
            "field": ".".join(loc) or "body",
            "message": error.get("msg", "Invalid value"),
        })
    return violations


async def handle_app_exception(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle known application exceptions and convert to a structured response.

    Args:
        request: The FastAPI request object
        exc: The AppException that was raised

    Returns:
        JSONResponse with structured error format
    """
    request_id = get_request_id(request)

    logger.warning(
        "Application error occurred",
        extra={"extra_data": {
            "error_code": exc.error_code.value,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "details": exc.details,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    error_response = ErrorResponse(
        error=exc.message,
        error_code=exc.error_code.value,
        details=exc.details,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=error_response.model_dump(exclude_none=True),
    )


async def handle_request_validation_error(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Render FastAPI request parsing failures in the VALIDATION_ERROR shape.

    A body that is not JSON at all is an INVALID_REQUEST instead.
    """
    errors = exc.errors()
    malformed = next((error for error in errors if error.get("type") == "json_invalid"), None)
    if malformed is not None:
        reason = (malformed.get("ctx") or {}).get("error", "Invalid JSON")
        return await handle_app_exception(
            request,
            invalid_request("Request body is not valid JSON", details={"reason": str(reason)}),
        )

    request_id = get_request_id(request)
    violations = format_violations(errors)

    logger.info(
        "Request payload rejected",
        extra={"extra_data": {
            "request_id": request_id,
            "path": request.url.path,
            "violations": violations,
        }}
    )

    error_response = ErrorResponse(
        error="Invalid request payload",
        error_code=ErrorCode.VALIDATION_ERROR.value,
        details={"violations": violations},
        request_id=request_id,
    )
    return JSONResponse(status_code=400, content=error_response.model_dump(exclude_none=True))


async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions without exposing internal details.

    The full stack trace goes to the log; the client only sees a generic
    message and the request id to quote when reporting the problem.

    Args:
        request: The FastAPI request object
        exc: The unexpected exception that was raised

    Returns:
        JSONResponse with a generic 500 error
    """
    request_id = get_request_id(request)

    logger.error(
        "Unexpected error occurred",
        extra={"extra_data": {
            "error_code": ErrorCode.INTERNAL_ERROR.value,
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "exception_message": str(exc),
            "stack_trace": traceback.format_exc(),
        }},
        exc_info=True,
    )

    error_response = ErrorResponse(
        error="An unexpected error occurred. Please try again later.",
        error_code=ErrorCode.INTERNAL_ERROR.value,
        details=None,
        request_id=request_id,
    )

    return JSONResponse(
        status_code=500,
        content=error_response.model_dump(exclude_none=True),
    )


def register_exception_handlers(app) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(AppException, handle_app_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    # Terminal stage for anything the routes did not translate
    app.add_exception_handler(Exception, handle_unexpected_exception)

    logger.info("Exception handlers registered successfully")
