"""Request context middleware using ContextVar.

Takes the request id from the X-Request-ID header (or generates one) and
binds it for the lifetime of the request, so downstream code such as the
event handlers logs with it without explicit parameter passing. The id is
echoed back on the response.
"""

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.logging_setup import bind_request_id, reset_request_id

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id and log one line per request.

    Priority:
    1. X-Request-ID header (explicit, e.g. from a proxy)
    2. Freshly generated hex uuid
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex

        token = bind_request_id(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = request_id
            logger.info(
                "%s %s -> %d (%.1f ms)",
                request.method,
                request.url.path,
                response.status_code,
                (time.perf_counter() - start) * 1000,
            )
            return response
        finally:
            reset_request_id(token)
