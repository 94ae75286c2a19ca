"""
Summary cache read path and staleness trigger.

Reads never wait on a refresh: a stale or missing summary only enqueues an
auto refresh (deduplicated, cooldown-gated) and returns what is cached.
"""

from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.youtube_analytics.domain import RefreshTrigger, Summary
from app.features.youtube_analytics.repository import (
    ConnectionRepository,
    SummaryCacheRepository,
)
from app.features.youtube_analytics.services.refresh_orchestrator import (
    EnqueueOptions,
    RefreshOrchestrator,
    refresh_orchestrator,
    utcnow,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def is_stale(generated_at: datetime | None, now: datetime, stale_after: timedelta) -> bool:
    if generated_at is None:
        return True
    return now - generated_at >= stale_after


class SummaryCacheService:
    def __init__(
        self,
        orchestrator: RefreshOrchestrator | None = None,
        cache=SummaryCacheRepository,
        connections=ConnectionRepository,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.orchestrator = orchestrator or refresh_orchestrator
        self.cache = cache
        self.connections = connections
        self.clock = clock

    @property
    def stale_after(self) -> timedelta:
        return timedelta(hours=settings.SUMMARY_STALE_AFTER_HOURS)

    @property
    def auto_refresh_options(self) -> EnqueueOptions:
        return EnqueueOptions(
            trigger=RefreshTrigger.AUTO,
            reuse_running=True,
            min_interval=timedelta(minutes=settings.AUTO_REFRESH_COOLDOWN_MINUTES),
        )

    async def maybe_queue_auto_refresh(
        self,
        user_id: str,
        *,
        has_connections: bool,
        generated_at: datetime | None,
    ) -> dict[str, Any]:
        """
        Returns:
            {"queued": True, "jobId", "status"} or {"queued": False}
        """
        if not user_id or not has_connections:
            return {"queued": False}
        if not is_stale(generated_at, self.clock(), self.stale_after):
            return {"queued": False}

        try:
            result = await self.orchestrator.enqueue(user_id, self.auto_refresh_options)
        except Exception as e:
            logger.warning(
                "Auto refresh enqueue failed",
                user_id=user_id,
                error=str(e),
                error_type=type(e).__name__,
            )
            return {"queued": False}

        logger.info(
            "Auto refresh queued",
            user_id=user_id,
            job_id=result.job_id,
            deduped=result.deduped,
        )
        return {"queued": True, "jobId": result.job_id, "status": result.status.value}

    async def _has_connections(self, user_id: str) -> bool:
        try:
            return await self.connections.count_for_user(user_id) > 0
        except DatabaseError as e:
            logger.warning("Connection count failed", user_id=user_id, error=str(e))
            return False

    async def read_summary(self, user_id: str) -> dict[str, Any]:
        """
        Cached summary plus cacheStatus, generatedAt and autoRefresh.

        Raises:
            DatabaseError: the cache itself could not be read
        """
        cached = await self.cache.get(user_id)
        generated_at = cached.generated_at if cached else None
        auto_refresh = await self.maybe_queue_auto_refresh(
            user_id,
            has_connections=await self._has_connections(user_id),
            generated_at=generated_at,
        )

        if not cached or not cached.summary:
            return {
                **Summary.normalize_payload(None),
                "cacheStatus": "empty",
                "generatedAt": None,
                "autoRefresh": auto_refresh,
            }

        return {
            **Summary.normalize_payload(cached.summary),
            "cacheStatus": "ready",
            "generatedAt": generated_at.isoformat() if generated_at else None,
            "autoRefresh": auto_refresh,
        }


summary_cache_service = SummaryCacheService()
