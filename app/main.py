"""AquaGrowth API: app factory wiring, lifespan and router registration."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from redis.asyncio import Redis
from sqlalchemy import text

from app.config import get_settings
from app.database import engine
from app.middleware.logging import RequestLoggingMiddleware, configure_structured_logging
from app.routes import analytics, growth

API_VERSION = "0.1.0"

logger = structlog.get_logger("aquagrowth")


async def _check_database() -> None:
    async with engine.connect() as connection:
        await connection.execute(text("SELECT 1"))


async def _connect_redis(redis_url: str) -> Redis | None:
    """Open the analysis cache connection; the service runs uncached without it."""
    redis = Redis.from_url(redis_url, decode_responses=True)
    try:
        await redis.ping()
    except Exception as exc:
        logger.warning("redis_unavailable", redis_url=redis_url, error=str(exc))
        await redis.aclose()
        return None
    return redis


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup: logging, database check, optional redis cache.

    The database must be reachable; redis is optional and ``app.state.redis``
    stays ``None`` when it is disabled or down.
    """
    settings = get_settings()
    configure_structured_logging(settings)
    logger.info(
        "aquagrowth_starting",
        log_level=settings.log_level,
        t_quantile_strategy=settings.t_quantile_strategy.value,
        cache_ttl_seconds=settings.growth_analysis_cache_ttl_seconds,
    )

    try:
        await _check_database()
    except Exception as exc:
        logger.exception("database_unreachable", error=str(exc))
        raise

    app.state.redis = await _connect_redis(settings.redis_url) if settings.connect_redis_on_startup else None

    yield

    logger.info("aquagrowth_shutting_down")
    if app.state.redis is not None:
        await app.state.redis.aclose()
    await engine.dispose()


app = FastAPI(
    title="AquaGrowth API",
    description=(
        "Growth & feed-conversion analytics for aquaculture batches: sample "
        "statistics, growth comparison, FCR trends, performance rating and "
        "harvest projections."
    ),
    version=API_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", tags=["system"])
async def health_check(request: Request) -> dict[str, str]:
    """Liveness plus whether the analysis cache is connected."""
    cache = "connected" if getattr(request.app.state, "redis", None) is not None else "disabled"
    return {
        "status": "ok",
        "service": "aquagrowth",
        "version": API_VERSION,
        "analysis_cache": cache,
    }


app.include_router(growth.router, prefix="/api/v1")
app.include_router(analytics.router, prefix="/api/v1")
