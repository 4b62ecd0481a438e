"""
Request ID middleware for request correlation.

Every HTTP request gets an id, taken from the incoming ``X-Request-ID``
header or freshly generated. It is stored on ``request.state`` for the
error handlers, in a context variable for the JSON log formatter, and
echoed back on the response.
"""

import uuid
from contextvars import ContextVar
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

# Readable from anywhere in the request's task, including log formatters
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware that attaches a correlation id to each request.

    WebSocket upgrades bypass BaseHTTPMiddleware, so subscriber sessions
    log without a request id.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Response]
    ) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        request.state.request_id = request_id
        token = request_id_var.set(request_id)

        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            request_id_var.reset(token)
