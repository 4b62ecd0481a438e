"""
Middleware components for the fleet backend.

Request correlation, security headers and rate limiting.
"""

from middleware.request_id import RequestIDMiddleware, request_id_var
from middleware.rate_limiter import (
    create_rate_limiter,
    get_client_ip,
    rate_limit_exceeded_handler,
    setup_rate_limiting,
)
from middleware.security_headers import (
    DEFAULT_CSP_DIRECTIVES,
    SecurityHeadersMiddleware,
    build_csp_header,
    setup_security_headers,
)

__all__ = [
    "RequestIDMiddleware",
    "request_id_var",
    "create_rate_limiter",
    "get_client_ip",
    "rate_limit_exceeded_handler",
    "setup_rate_limiting",
    "SecurityHeadersMiddleware",
    "setup_security_headers",
    "build_csp_header",
    "DEFAULT_CSP_DIRECTIVES",
]
