"""
Correlation ID tracking for HTTP requests and WebSocket connections.

HTTP requests get their ID from the X-Correlation-ID header (or a fresh
one); WebSocket connections set it from their connection id so every log
line produced while handling that connection can be grouped.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

CORRELATION_ID_LENGTH = 8

correlation_id: ContextVar[str] = ContextVar("correlation_id", default="")


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add correlation IDs to HTTP requests.

    The ID is taken from the X-Correlation-ID header or generated, limited
    to 8 characters, stored in ``request.state.request_id`` and in the
    context variable, and echoed back in the response headers.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        cid = request.headers.get("X-Correlation-ID", str(uuid.uuid4()))
        cid = cid[:CORRELATION_ID_LENGTH]

        request.state.request_id = cid
        correlation_id.set(cid)

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


def set_correlation_id(value: str) -> None:
    """Bind a correlation ID to the current context (used by WebSocket consumers)."""
    correlation_id.set(value[:CORRELATION_ID_LENGTH])


def get_correlation_id() -> str:
    """
    Get the correlation ID of the current request or connection.

    Returns:
        Correlation ID or empty string outside of a request context.
    """
    return correlation_id.get()
