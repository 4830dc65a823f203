"""
Fund Settlement API — application entry-point.

Initializes the FastAPI application, registers middleware, exception handlers
and routers, and manages the lifecycle (table creation on startup, pool
disposal on shutdown).
"""

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from sqlalchemy import text
from sqlmodel import SQLModel

import settlement.models  # noqa: F401  (populates SQLModel.metadata)
from settlement.api.v1.api import api_router
from settlement.core.config import settings
from settlement.core.exceptions import add_exception_handlers
from settlement.core.logging import setup_logging
from settlement.core.resilience import all_breaker_statuses
from settlement.db.session import AsyncSessionLocal, engine
from settlement.middleware import RequestIDMiddleware, RequestTimingMiddleware
from settlement.services.platform_config import config_provider

setup_logging()
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup: create tables, retrying with exponential back-off while the
    database comes up.  If it never does, the app starts degraded and the
    health check reports ``database: false``.

    Shutdown: dispose of the connection pool.
    """
    max_retries = 5
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info("Connecting to database (attempt %d/%d)", attempt, max_retries)
            async with engine.begin() as conn:
                await conn.run_sync(SQLModel.metadata.create_all)
            logger.info("Database tables ready")
            break
        except Exception as exc:
            if attempt < max_retries:
                logger.warning(
                    "Database connection failed (attempt %d/%d): %s; retrying in %ds",
                    attempt,
                    max_retries,
                    exc,
                    retry_delay,
                )
                await asyncio.sleep(retry_delay)
                retry_delay *= 2
            else:
                logger.error(
                    "Could not connect to database after %d attempts; starting in "
                    "DEGRADED mode. Last error: %s",
                    max_retries,
                    exc,
                )

    yield

    logger.info("Shutting down, disposing connection pool")
    await engine.dispose()


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=VERSION,
    description=(
        "Back-office settlement API: withdrawals, wallet payouts, profit "
        "distribution, investor onboarding and duplicate consolidation."
    ),
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    lifespan=lifespan,
)


# ── Middleware (last added = outermost) ──
app.add_middleware(GZipMiddleware, minimum_size=500)
app.add_middleware(RequestTimingMiddleware)
# Outside the timing middleware so its log line carries the request ID.
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

add_exception_handlers(app)

app.include_router(api_router, prefix=settings.API_V1_STR)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Liveness / readiness probe.

    Runs ``SELECT 1`` against the database and reports every circuit breaker
    plus the age of the cached platform configuration snapshot.
    """
    db_healthy = True
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        db_healthy = False

    snapshot = config_provider.snapshot
    return {
        "status": "ok" if db_healthy else "degraded",
        "version": VERSION,
        "database": db_healthy,
        "circuit_breakers": all_breaker_statuses(),
        "platform_config_age_s": round(snapshot.age(), 1) if snapshot else None,
    }
