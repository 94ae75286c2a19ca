"""
Hourly auto-refresh sweep.

Every user with at least one connected channel goes through the same
staleness rule as the summary read path, so a fresh cache or a recent job
means nothing is enqueued.
"""

import asyncio

from app.config import settings
from app.features.youtube_analytics.repository import ConnectionRepository, SummaryCacheRepository
from app.features.youtube_analytics.services.summary_cache_service import (
    SummaryCacheService,
    summary_cache_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

ERROR_BACKOFF_SECONDS = 60


async def run_auto_refresh_sweep(
    service: SummaryCacheService | None = None,
    connections=ConnectionRepository,
    cache=SummaryCacheRepository,
) -> dict[str, int]:
    """
    One sweep over all connected users.

    Returns:
        counts of users seen, queued and failed
    """
    service = service or summary_cache_service
    user_ids = await connections.list_connected_user_ids()
    metrics = {"users": len(user_ids), "queued": 0, "failed": 0}

    for user_id in user_ids:
        try:
            cached = await cache.get(user_id)
            result = await service.maybe_queue_auto_refresh(
                user_id,
                has_connections=True,
                generated_at=cached.generated_at if cached else None,
            )
        except Exception as e:
            metrics["failed"] += 1
            logger.warning(
                "Auto refresh sweep failed for user",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            continue
        if result.get("queued"):
            metrics["queued"] += 1

    logger.info("Auto refresh sweep completed", **metrics)
    return metrics


async def start_auto_refresh_scheduler() -> None:
    """Run the sweep forever at AUTO_REFRESH_SWEEP_MINUTES intervals."""
    interval_s = settings.AUTO_REFRESH_SWEEP_MINUTES * 60
    logger.info(
        "Starting YouTube auto refresh scheduler",
        interval_minutes=settings.AUTO_REFRESH_SWEEP_MINUTES,
    )

    while True:
        try:
            await run_auto_refresh_sweep()
            await asyncio.sleep(interval_s)
        except asyncio.CancelledError:
            logger.info("YouTube auto refresh scheduler stopped")
            raise
        except Exception as e:
            logger.error(
                "Error in YouTube auto refresh scheduler",
                error=str(e),
                error_type=type(e).__name__,
            )
            await asyncio.sleep(ERROR_BACKOFF_SECONDS)
