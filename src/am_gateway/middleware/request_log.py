"""Request logging middleware.

Every request gets a request_id on request.state (stamped on ApiResponse and
echoed as X-Request-ID). A well-formed X-Request-ID from the reverse proxy is
kept so proxy and API logs correlate; anything else is replaced.

Log format:
    INFO [POST] /api/v1/auctions/abc/bid → 200 (23ms) req_a1b2c3d4e5f6 203.0.113.7
Server errors are logged at WARNING.
"""

import logging
import re
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger("am.request")

_INBOUND_ID = re.compile(r"^[A-Za-z0-9_.-]{8,64}$")


def resolve_request_id(inbound: str | None) -> str:
    if inbound and _INBOUND_ID.match(inbound):
        return inbound
    return f"req_{uuid.uuid4().hex[:12]}"


class RequestLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.request_id = resolve_request_id(request.headers.get("x-request-id"))

        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        response.headers["X-Request-ID"] = request.state.request_id
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        logger.log(
            level,
            "[%s] %s → %d (%.0fms) %s %s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            request.state.request_id,
            request.client.host if request.client else "-",
        )
        return response
