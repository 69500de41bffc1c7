import asyncio
import contextlib
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text

from inbox.auth.routes import auth
from inbox.core import redis as redis_module
from inbox.core.config import settings
from inbox.core.exceptions import register_exception_handlers
from inbox.core.log_config import RequestLoggingMiddleware, setup_logging
from inbox.core.rate_limit import limiter
from inbox.db.session import SessionLocal
from inbox.messaging.routes import debug as debug_routes
from inbox.messaging.routes import messages as messages_routes
from inbox.realtime import routes as realtime_routes
from inbox.realtime.feed import change_feed
from inbox.web.gate import SessionGateMiddleware
from inbox.web.routes import views

setup_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("connecting_to_redis")
    redis_module.redis_client = Redis.from_url(
        settings.REDIS_URL, decode_responses=True, encoding="utf-8"
    )

    bridge: asyncio.Task | None = None
    try:
        await redis_module.redis_client.ping()
        logger.info("redis_connected")
        bridge = asyncio.create_task(change_feed.run_redis_bridge())
    except Exception as e:
        logger.error("redis_connection_failed", error=str(e))

    yield

    if bridge is not None:
        bridge.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await bridge

    logger.info("closing_redis")
    if redis_module.redis_client:
        await redis_module.redis_client.aclose()
    logger.info("redis_closed")


app = FastAPI(
    title=settings.PROJECT_NAME,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Inbox backend: authentication, conversations, messages and a realtime feed",
    version="1.0.0",
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]
register_exception_handlers(app, debug=settings.DEBUG)

app.add_middleware(SessionGateMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["authentication"])
app.include_router(messages_routes.router, prefix=settings.API_V1_PREFIX, tags=["messages"])
app.include_router(realtime_routes.router, prefix=settings.API_V1_PREFIX, tags=["realtime"])
if settings.DEBUG:
    app.include_router(
        debug_routes.router, prefix=f"{settings.API_V1_PREFIX}/debug", tags=["debug"]
    )

app.include_router(views.router)


@app.get("/api")
async def root() -> dict[str, str]:
    return {"message": settings.PROJECT_NAME, "version": "1.0.0", "status": "running"}


@app.get("/health")
async def health_check() -> dict[str, str]:
    redis_status = "unknown"
    db_status = "unknown"

    try:
        if redis_module.redis_client:
            await redis_module.redis_client.ping()
            redis_status = "healthy"
    except Exception:
        redis_status = "unhealthy"

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
            db_status = "healthy"
        finally:
            db.close()
    except Exception:
        db_status = "unhealthy"

    all_healthy = redis_status == "healthy" and db_status == "healthy"
    overall = "healthy" if all_healthy else "degraded"

    return {
        "status": overall,
        "redis": redis_status,
        "database": db_status,
        "realtime_subscribers": str(change_feed.subscriber_count()),
    }
