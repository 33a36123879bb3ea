"""Request context middleware for structured logging."""

import uuid

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

BLOCK_ID_HEADER = "X-Block-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Generates a request_id per host invocation, binds it (and the calling
    block's id, when the host sends one) to structlog context vars, and adds
    X-Request-ID to the response headers."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        block_id = request.headers.get(BLOCK_ID_HEADER)
        if block_id:
            structlog.contextvars.bind_contextvars(block_id=block_id)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        structlog.contextvars.clear_contextvars()
        return response
