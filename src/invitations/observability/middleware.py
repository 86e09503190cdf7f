"""Request ID middleware for HTTP request tracing.

Every response carries an ``X-Request-ID`` header (echoed from the client or
generated here) and the ID is bound into structlog contextvars so all log
entries for the request share one ``request_id`` field.  The caller id header,
when present, is bound as well.
"""

from __future__ import annotations

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Attach a unique request ID to every HTTP request/response cycle."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        """Bind ``request_id`` (and ``caller_id`` if sent) for the request.

        Args:
            request: The incoming HTTP request.
            call_next: The next middleware or route handler.

        Returns:
            The HTTP response with ``X-Request-ID`` header set.
        """
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        context = {"request_id": request_id, "service": "invitation-engine"}
        caller_id = request.headers.get("X-Caller-ID")
        if caller_id:
            context["caller_id"] = caller_id
        structlog.contextvars.bind_contextvars(**context)
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response
