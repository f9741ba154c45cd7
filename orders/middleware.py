"""Middleware that assigns and propagates a request identifier.

Every incoming HTTP request receives a request identifier. It is read from
the incoming ``X-Request-ID`` header when provided by the client, or
generated server-side (UUIDv4) otherwise. The id is stored on
``request.state`` and in a context variable so code running downstream (log
filters, the cart HTTP client) can access it without passing it around.
The response carries the same id in its ``X-Request-ID`` header.

An upload size guard is provided as well.
"""

import contextvars
import logging
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

from . import settings

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")

logger = logging.getLogger("orders.http")


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Set a per-request identifier and log every handled request."""

    HEADER = "X-Request-ID"

    async def dispatch(self, request: Request, call_next):
        rid = request.headers.get(self.HEADER) or str(uuid.uuid4())
        request.state.request_id = rid
        token = REQUEST_ID_CTX.set(rid)
        try:
            response = await call_next(request)
            logger.info(
                "request handled",
                extra={"path": request.url.path, "method": request.method, "status": response.status_code},
            )
        finally:
            REQUEST_ID_CTX.reset(token)
        response.headers[self.HEADER] = rid
        return response


class UploadSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject upload bodies announced as larger than ``API_MAX_BYTES``."""

    PATH_PREFIX = "/order/upload"

    async def dispatch(self, request: Request, call_next):
        if request.url.path.startswith(self.PATH_PREFIX):
            clen = request.headers.get("content-length")
            limit = getattr(settings, "API_MAX_BYTES", 1024 * 1024)
            if clen and clen.isdigit() and int(clen) > limit:
                return JSONResponse({"detail": "PAYLOAD_TOO_LARGE"}, status_code=413)
        return await call_next(request)
