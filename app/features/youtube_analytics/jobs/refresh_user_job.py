"""
One-off refresh for a single user.

Enqueues a manual refresh through the orchestrator (so an active job is
reused) and blocks until the job row reaches succeeded or failed. The user
comes from the argument or YOUTUBE_REFRESH_USER_ID.
"""

import os
from typing import Any

from app.config import settings
from app.features.youtube_analytics.domain import RefreshTrigger
from app.features.youtube_analytics.repository import RefreshJobRepository
from app.features.youtube_analytics.services.poller import RefreshJobPoller, store_status_fetcher
from app.features.youtube_analytics.services.refresh_orchestrator import (
    EnqueueOptions,
    RefreshOrchestrator,
    refresh_orchestrator,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

USER_ID_ENV = "YOUTUBE_REFRESH_USER_ID"


async def run_user_refresh(
    user_id: str | None = None,
    orchestrator: RefreshOrchestrator | None = None,
    jobs=RefreshJobRepository,
    poller: RefreshJobPoller | None = None,
) -> dict[str, Any]:
    """
    Refresh one user's summary and wait for the outcome.

    Returns:
        the finished job in its API shape

    Raises:
        ValueError: no user id given
        RefreshTimeoutError: the job did not finish in time
    """
    user_id = (user_id or os.getenv(USER_ID_ENV, "")).strip()
    if not user_id:
        raise ValueError(f"A user id is required ({USER_ID_ENV})")

    orchestrator = orchestrator or refresh_orchestrator
    result = await orchestrator.enqueue(user_id, EnqueueOptions(trigger=RefreshTrigger.MANUAL))
    logger.info(
        "Waiting for refresh job",
        user_id=user_id,
        job_id=result.job_id,
        deduped=result.deduped,
    )

    poller = poller or RefreshJobPoller(
        store_status_fetcher(jobs, user_id),
        interval_s=settings.REFRESH_POLL_INTERVAL_SECONDS,
        timeout_s=settings.REFRESH_POLL_TIMEOUT_SECONDS,
    )
    job = await poller.wait(result.job_id)

    if job["status"] == "failed":
        logger.warning(
            "Refresh job failed",
            user_id=user_id,
            job_id=result.job_id,
            error=job.get("errorMessage"),
        )
    else:
        logger.info(
            "Refresh job finished",
            user_id=user_id,
            job_id=result.job_id,
            channels_processed=job.get("channelsProcessed"),
        )
    return job
