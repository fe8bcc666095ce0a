"""Request-scoped middleware for API requests."""

import logging
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Tags every request with an ID.

    A well-formed incoming X-Request-ID is reused so callers can correlate
    their logs; otherwise a new one is generated. The ID is echoed back in
    the X-Request-ID response header and in the envelope's meta.
    """

    async def dispatch(self, request: Request, call_next):
        incoming = request.headers.get("X-Request-ID", "")
        request_id = incoming if incoming and len(incoming) <= 64 and incoming.isprintable() else str(uuid4())
        request.state.request_id = request_id
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        logger.debug(f"{request.method} {request.url.path} -> {response.status_code} ({request_id})")
        return response
