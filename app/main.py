"""
FastAPI application: YouTube analytics summary backend.
"""

import asyncio
import contextlib
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from app.config import settings
from app.db.pool import db_pool
from app.features.youtube_analytics import (
    refresh_orchestrator,
    start_auto_refresh_scheduler,
    youtube_oauth_router,
    youtube_router,
)
from app.features.youtube_analytics.clients import (
    youtube_analytics_client,
    youtube_data_client,
    youtube_reporting_client,
)
from app.infrastructure.observability.logging import get_logger, log_request, setup_logging
from app.middleware import CORSMiddleware, RequestContextMiddleware
from app.routes import health
from app.services.infrastructure.encryption_service import validate_encryption_config
from app.services.redis_client import fast_redis

# Setup logging before creating the app
setup_logging(log_level=settings.LOG_LEVEL)
logger = get_logger(__name__)

SHUTDOWN_DRAIN_SECONDS = 10


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle application startup and shutdown with proper resource management."""
    logger.info("Application starting", environment=settings.environment, debug=settings.debug)

    startup_tasks = []

    try:
        logger.info("Initializing database pool")
        await db_pool.initialize()
        startup_tasks.append("database_pool")

        logger.info("Initializing Redis connection")
        await fast_redis.initialize()
        startup_tasks.append("redis")

        if not validate_encryption_config():
            logger.warning("Token encryption is not configured; OAuth connects will fail")

        logger.info("All services initialized successfully", services=startup_tasks)

    except Exception as e:
        logger.error("Failed to initialize services", error=str(e), completed_tasks=startup_tasks)

        if "redis" in startup_tasks:
            try:
                await fast_redis.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up Redis", error=str(cleanup_error))

        if "database_pool" in startup_tasks:
            try:
                await db_pool.close()
            except Exception as cleanup_error:
                logger.error("Error cleaning up database pool", error=str(cleanup_error))

        raise

    sweep_task = None
    if settings.AUTO_REFRESH_SWEEP_ENABLED:
        sweep_task = asyncio.create_task(start_auto_refresh_scheduler(), name="youtube-auto-refresh")

    yield

    logger.info("Application shutting down")

    if sweep_task is not None:
        sweep_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await sweep_task

    # Let in-flight refresh jobs finish writing before the pool goes away
    await refresh_orchestrator.wait_for_background_tasks(timeout=SHUTDOWN_DRAIN_SECONDS)

    shutdown_errors = []

    for client in (
        youtube_data_client,
        youtube_reporting_client,
        youtube_analytics_client,
    ):
        try:
            await client.close()
        except Exception as e:
            shutdown_errors.append(f"{type(client).__name__}: {e}")

    try:
        logger.info("Closing Redis connection")
        await fast_redis.close()
    except Exception as e:
        logger.error("Error closing Redis", error=str(e))
        shutdown_errors.append(f"Redis: {e}")

    try:
        logger.info("Closing database pool")
        await db_pool.close()
    except Exception as e:
        logger.error("Error closing database pool", error=str(e))
        shutdown_errors.append(f"Database: {e}")

    if shutdown_errors:
        logger.warning("Some services had shutdown errors", errors=shutdown_errors)
    else:
        logger.info("All services closed successfully")


app = FastAPI(
    title="YouTube Analytics",
    description="Merged YouTube performance summaries for connected channels",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(youtube_router)
app.include_router(youtube_oauth_router)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log HTTP requests with timing."""
    start_time = time.time()
    response = await call_next(request)
    process_time = (time.time() - start_time) * 1000

    log_request(
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(process_time, 2),
    )
    return response


# Last added runs first: request context wraps CORS and the request log
app.add_middleware(CORSMiddleware, allowed_origins=settings.allowed_origins())
app.add_middleware(RequestContextMiddleware)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
