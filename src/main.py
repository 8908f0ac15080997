"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text

from config.settings import settings
from src.am_admin.api.router import router as admin_router
from src.am_auction.api.router import router as auction_router
from src.am_catalog.api.router import purchases_router, wishlist_router
from src.am_catalog.api.router import router as catalog_router
from src.am_common.database import engine
from src.am_common.errors import AppError, InternalError, ValidationFailedError
from src.am_common.redis_client import close_redis, get_redis
from src.am_common.response import error_response
from src.am_gateway.api.router import router as auth_router
from src.am_gateway.api.router import users_router
from src.am_gateway.middleware.rate_limit import RateLimitMiddleware
from src.am_gateway.middleware.request_log import RequestLogMiddleware
from src.am_payment.api.router import router as payment_router

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify DB (+ Redis when rate limiting). Shutdown: dispose."""
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))
    if settings.RATE_LIMIT_ENABLED:
        redis = await get_redis()
        await redis.ping()
    logger.info("%s started", settings.APP_NAME)
    yield
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)

# Added last = outermost: request_id exists before the limiter runs.
app.add_middleware(RateLimitMiddleware)
app.add_middleware(RequestLogMiddleware)


def _envelope(
    request: Request, status_code: int, code: int, message: str, data: object = None
) -> JSONResponse:
    resp = error_response(code, message, data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    return JSONResponse(status_code=status_code, content=resp.model_dump())


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    data = {"errors": exc.errors} if isinstance(exc, ValidationFailedError) else None
    return _envelope(request, exc.http_status, exc.code, exc.message, data)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = [
        {
            "field": ".".join(str(part) for part in err["loc"] if part != "body"),
            "message": err["msg"],
        }
        for err in exc.errors()
    ]
    failure = ValidationFailedError(errors)
    return _envelope(request, failure.http_status, failure.code, failure.message, {"errors": errors})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    failure = InternalError()
    return _envelope(request, failure.http_status, failure.code, failure.message)


app.include_router(auth_router, prefix="/api/v1")
app.include_router(users_router, prefix="/api/v1")
app.include_router(purchases_router, prefix="/api/v1")
app.include_router(wishlist_router, prefix="/api/v1")
app.include_router(catalog_router, prefix="/api/v1")
app.include_router(auction_router, prefix="/api/v1")
app.include_router(payment_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
