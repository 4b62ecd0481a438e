"""
Rate limiting for the HTTP API.

Built on slowapi: every HTTP route shares a per-IP budget of
``rate_limit_requests_per_minute``. Each application gets its own Limiter
with in-memory storage, so separately created apps never share counters.
WebSocket traffic is not rate limited.
"""

import json
import logging

from fastapi import FastAPI, Request, Response
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address

from errors.codes import ErrorCode

logger = logging.getLogger(__name__)


def get_client_ip(request: Request) -> str:
    """
    Extract the client IP address from the request.

    Forwarding headers set by a load balancer or proxy win over the
    direct peer address.

    Args:
        request: The incoming FastAPI request

    Returns:
        The client's IP address as a string
    """
    # X-Forwarded-For may hold a chain; the first entry is the original client
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def get_api_rate_limit_string(requests_per_minute: int) -> str:
    """
    Generate a rate limit string for slowapi.

    Args:
        requests_per_minute: Number of requests allowed per minute

    Returns:
        Rate limit string in slowapi format (e.g., "100/minute")
    """
    return f"{requests_per_minute}/minute"


def create_rate_limiter(requests_per_minute: int = 100, enabled: bool = True) -> Limiter:
    """Create a limiter applying ``requests_per_minute`` to every route by default."""
    return Limiter(
        key_func=get_client_ip,
        default_limits=[get_api_rate_limit_string(requests_per_minute)],
        enabled=enabled,
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    """
    Render a rate limit rejection in the application's error format.

    SlowAPIMiddleware calls this handler directly, without awaiting it,
    so it has to stay a plain function.
    """
    request_id = getattr(request.state, "request_id", "unknown")
    retry_after = 60

    response_body = {
        "error": "Too many requests. Please slow down.",
        "error_code": ErrorCode.RATE_LIMITED.value,
        "details": {
            "limit": str(exc.detail) if hasattr(exc, "detail") else "Rate limit exceeded",
            "retry_after_seconds": retry_after,
        },
        "request_id": request_id,
    }

    logger.warning(
        f"Rate limit exceeded for IP {get_client_ip(request)}",
        extra={"extra_data": {
            "request_id": request_id,
            "path": request.url.path,
            "method": request.method,
        }}
    )

    return Response(
        content=json.dumps(response_body),
        status_code=429,
        media_type="application/json",
        headers={
            "Retry-After": str(retry_after),
            "X-Request-ID": request_id,
        },
    )


def setup_rate_limiting(
    app: FastAPI,
    requests_per_minute: int = 100,
    enabled: bool = True
) -> Limiter:
    """
    Configure rate limiting for a FastAPI application.

    Installs a fresh limiter on ``app.state``, the slowapi middleware that
    enforces its default limit, and the 429 handler.

    Args:
        app: The FastAPI application instance
        requests_per_minute: Maximum requests per minute per client IP
        enabled: Whether rate limiting is enforced

    Returns:
        The limiter attached to the application
    """
    limiter = create_rate_limiter(requests_per_minute, enabled)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    if enabled:
        logger.info(f"Rate limiting configured: API={requests_per_minute}/min")
    else:
        logger.info("Rate limiting is disabled")

    return limiter
