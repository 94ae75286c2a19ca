"""
Generic background worker runner.

Reads the desired job name from CLI args or the WORKER_JOB environment
variable, opens the shared resources and delegates to the job.
"""

import asyncio
import os
import sys
from collections.abc import Awaitable, Callable

from app.config import settings
from app.db.pool import db_pool
from app.features.youtube_analytics.jobs import (
    run_auto_refresh_sweep,
    run_user_refresh,
    start_auto_refresh_scheduler,
)
from app.features.youtube_analytics.services.refresh_orchestrator import refresh_orchestrator
from app.infrastructure.observability.logging import get_logger, setup_logging
from app.services.redis_client import fast_redis

logger = get_logger(__name__)

JobCoroutine = Callable[[], Awaitable[object]]

JOB_REGISTRY: dict[str, JobCoroutine] = {
    "youtube_auto_refresh": start_auto_refresh_scheduler,
    "youtube_auto_refresh_once": run_auto_refresh_sweep,
    "youtube_refresh_user": run_user_refresh,
}


def _resolve_job_name() -> str:
    """Pick the target job from CLI args or WORKER_JOB env variable."""
    if len(sys.argv) > 1:
        return sys.argv[1].strip().lower()
    return os.getenv("WORKER_JOB", "youtube_auto_refresh").strip().lower()


async def init_resources() -> None:
    await db_pool.initialize()
    await fast_redis.initialize()


async def close_resources() -> None:
    # Detached refresh runs started by the sweep must finish before the pool closes
    await refresh_orchestrator.wait_for_background_tasks()
    await fast_redis.close()
    await db_pool.close()


async def run_worker(job_name: str | None = None) -> None:
    """Run the requested background job."""
    name = (job_name or _resolve_job_name()).strip().lower()
    if name not in JOB_REGISTRY:
        raise ValueError(
            f"Unknown worker job '{name}'. "
            f"Available jobs: {', '.join(sorted(JOB_REGISTRY.keys()))}"
        )

    logger.info("Starting background worker", job=name)
    await init_resources()
    try:
        await JOB_REGISTRY[name]()
    finally:
        await close_resources()


def main() -> None:
    """CLI entrypoint."""
    setup_logging(log_level=settings.LOG_LEVEL)
    job_name = _resolve_job_name()
    asyncio.run(run_worker(job_name))


if __name__ == "__main__":
    main()
