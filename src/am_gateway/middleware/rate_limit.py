"""Fixed-window rate limiting for auth and payment endpoints.

Counting uses Redis INCR + EXPIRE:
    key = "ratelimit:{client_ip}:{group}:{minute}"
    count = INCR key; on first hit EXPIRE key 60
    count > RATE_LIMIT_PER_MINUTE -> 429 (RateLimitError, code 9001)

Exceptions raised inside BaseHTTPMiddleware bypass the app's exception
handlers, so the 429 envelope is rendered here directly.
"""

import logging
import time

from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from config.settings import settings
from src.am_common.errors import RateLimitError
from src.am_common.redis_client import get_redis
from src.am_common.response import error_response

logger = logging.getLogger(__name__)

_LIMITED_PREFIXES = ("/api/v1/auth", "/api/v1/payments")
_WINDOW_SECONDS = 60


def _client_ip(request: Request) -> str:
    """Real client IP behind a reverse proxy (first X-Forwarded-For hop)."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def _group_for(path: str) -> str | None:
    for prefix in _LIMITED_PREFIXES:
        if path.startswith(prefix):
            return prefix.rsplit("/", 1)[-1]
    return None


class RateLimitMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        group = _group_for(request.url.path)
        if not settings.RATE_LIMIT_ENABLED or group is None:
            return await call_next(request)

        window = int(time.time() // _WINDOW_SECONDS)
        key = f"ratelimit:{_client_ip(request)}:{group}:{window}"
        try:
            redis = await get_redis()
            count = await redis.incr(key)
            if count == 1:
                await redis.expire(key, _WINDOW_SECONDS)
        except RedisError:
            # Fail open: an unavailable limiter must not take the API down.
            logger.warning("Rate limiter unavailable, allowing %s", request.url.path, exc_info=True)
            return await call_next(request)

        if count > settings.RATE_LIMIT_PER_MINUTE:
            err = RateLimitError()
            body = error_response(err.code, err.message)
            return JSONResponse(
                status_code=err.http_status,
                content=body.model_dump(),
                headers={"Retry-After": str(_WINDOW_SECONDS - int(time.time()) % _WINDOW_SECONDS)},
            )
        return await call_next(request)
