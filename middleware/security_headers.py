"""
Security headers for API responses.

The service only returns JSON, so the Content-Security-Policy forbids
loading anything at all and framing is denied outright.
"""

import logging
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


DEFAULT_CSP_DIRECTIVES = {
    "default-src": "'none'",
    "frame-ancestors": "'none'",
    "base-uri": "'none'",
    "form-action": "'none'",
}


def build_csp_header(directives: Optional[dict[str, str]] = None) -> str:
    """
    Build a Content-Security-Policy header string from directives.

    Args:
        directives: Dictionary of CSP directives. If None, uses defaults.

    Returns:
        CSP header string in the format "directive1 value1; directive2 value2"
    """
    if directives is None:
        directives = DEFAULT_CSP_DIRECTIVES

    return "; ".join(f"{key} {value}" for key, value in directives.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every HTTP response.

    - X-Content-Type-Options: nosniff
    - X-Frame-Options: DENY
    - Referrer-Policy: no-referrer
    - Content-Security-Policy built from DEFAULT_CSP_DIRECTIVES unless overridden
    """

    def __init__(
        self,
        app: ASGIApp,
        x_frame_options: str = "DENY",
        referrer_policy: str = "no-referrer",
        csp_directives: Optional[dict[str, str]] = None,
    ):
        super().__init__(app)
        self.headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": x_frame_options,
            "Referrer-Policy": referrer_policy,
            "Content-Security-Policy": build_csp_header(csp_directives),
        }

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            response.headers[name] = value
        return response


def setup_security_headers(app, csp_directives: Optional[dict[str, str]] = None) -> None:
    """
    Add SecurityHeadersMiddleware to a FastAPI application.

    Args:
        app: The FastAPI application instance
        csp_directives: Optional CSP directives replacing the defaults
    """
    app.add_middleware(SecurityHeadersMiddleware, csp_directives=csp_directives)
    logger.info("Security headers configured")
