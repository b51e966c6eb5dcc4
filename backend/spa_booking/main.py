# backend/spa_booking/main.py

import logging

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from . import models  # noqa: F401  registers tables on Base.metadata
from .api import api_booking, api_payout, api_reports, api_timeline
from .core.config import settings
from .core.observability import setup_logging, setup_tracer
from .database import Base, engine
from .utils.errors import BookingEngineError, RateLimited
from .utils.redis_cache import close_redis_client
from .utils.status_logger import register_status_listeners

setup_logging()
logger = logging.getLogger(__name__)

# Alembic owns the schema in deployed environments; this keeps local SQLite usable
Base.metadata.create_all(bind=engine)
register_status_listeners()

app = FastAPI(title="Spa Booking Engine", default_response_class=ORJSONResponse)
setup_tracer(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.CORS_ALLOW_ALL else settings.CORS_ORIGINS,
    allow_credentials=not settings.CORS_ALLOW_ALL,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)


@app.get("/healthz", tags=["health"])
async def healthz():
    return {"status": "ok"}


@app.exception_handler(BookingEngineError)
async def booking_engine_exception_handler(request: Request, exc: BookingEngineError):
    """Map domain errors to ``{"detail": {"reason", "message", ...}}``."""
    level = logging.WARNING if exc.status_code >= 400 else logging.INFO
    logger.log(level, "%s at %s: %s", exc.reason, request.url.path, exc.message)
    headers = {}
    if isinstance(exc, RateLimited):
        headers["Retry-After"] = str(exc.retry_after)
    return ORJSONResponse(
        status_code=exc.status_code,
        content={"detail": jsonable_encoder(exc.to_detail())},
        headers=headers or None,
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors with details and log them for debugging."""
    errors = jsonable_encoder(exc.errors())
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


api_prefix = settings.API_V1_STR  # usually "/api/v1"

app.include_router(api_booking.router, prefix=f"{api_prefix}/bookings", tags=["bookings"])
app.include_router(api_timeline.router, prefix=f"{api_prefix}/timeline", tags=["timeline"])
app.include_router(api_payout.router, prefix=f"{api_prefix}/payouts", tags=["payouts"])
app.include_router(api_reports.router, prefix=f"{api_prefix}/reports", tags=["reports"])


@app.on_event("shutdown")
def shutdown_redis_client() -> None:
    """Close the Redis connection pool on shutdown."""
    close_redis_client()
