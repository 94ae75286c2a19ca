"""
Refresh Job Orchestrator.

A refresh job moves queued -> running -> succeeded | failed and never leaves
a terminal state. Enqueueing is cheap: it either hands back the user's
latest job (dedup / cooldown) or inserts a queued row and starts the run as
a detached asyncio task.
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.youtube_analytics.domain import (
    EnqueueResult,
    RefreshJob,
    RefreshJobStatus,
    RefreshTrigger,
    Summary,
)
from app.features.youtube_analytics.errors import InvalidJobTransition, RefreshJobError
from app.features.youtube_analytics.repository import (
    ConnectionRepository,
    RefreshJobRepository,
    SummaryCacheRepository,
)
from app.features.youtube_analytics.services.summary_builder import SummaryBuilder, summary_builder
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

NO_CONNECTIONS_MESSAGE = "No connected channels."
LOAD_CONNECTIONS_FAILED = "Unable to load connected YouTube channels."

START_ATTEMPTS = 3
START_RETRY_DELAY_SECONDS = 0.5

ALLOWED_TRANSITIONS: dict[RefreshJobStatus, frozenset[RefreshJobStatus]] = {
    RefreshJobStatus.QUEUED: frozenset({RefreshJobStatus.RUNNING}),
    RefreshJobStatus.RUNNING: frozenset({RefreshJobStatus.SUCCEEDED, RefreshJobStatus.FAILED}),
    RefreshJobStatus.SUCCEEDED: frozenset(),
    RefreshJobStatus.FAILED: frozenset(),
}


def utcnow() -> datetime:
    return datetime.now(UTC)


def validate_transition(job_id: str, current: RefreshJobStatus, target: RefreshJobStatus) -> None:
    if target not in ALLOWED_TRANSITIONS[current]:
        raise InvalidJobTransition(job_id, current.value, target.value)


@dataclass(frozen=True, slots=True)
class EnqueueOptions:
    trigger: RefreshTrigger = RefreshTrigger.MANUAL
    reuse_running: bool = True
    min_interval: timedelta = timedelta(0)
    # Active jobs older than this are treated as abandoned
    lease: timedelta = field(
        default_factory=lambda: timedelta(minutes=settings.REFRESH_JOB_LEASE_MINUTES)
    )


def decide_enqueue(
    latest: RefreshJob | None, options: EnqueueOptions, now: datetime
) -> RefreshJob | None:
    """
    The job to hand back instead of creating one, or None to create.

    An active job is reused when reuse_running is set and it is still within
    its lease; any job requested within min_interval is reused even if it
    already finished.
    """
    if latest is None:
        return None
    if options.reuse_running and latest.status.is_active:
        if not latest.requested_at or now - latest.requested_at < options.lease:
            return latest
        logger.warning(
            "Ignoring abandoned refresh job",
            job_id=latest.id,
            status=latest.status.value,
            requested_at=latest.requested_at.isoformat(),
        )
    if options.min_interval > timedelta(0) and latest.requested_at:
        if now - latest.requested_at < options.min_interval:
            return latest
    return None


class RefreshJobStore(Protocol):
    async def latest_for_user(self, user_id: str) -> RefreshJob | None: ...

    async def get(self, user_id: str, job_id: str) -> RefreshJob | None: ...

    async def create(
        self, user_id: str, trigger: RefreshTrigger, requested_at: datetime
    ) -> RefreshJob: ...

    async def transition(
        self,
        job_id: str,
        expected: RefreshJobStatus,
        target: RefreshJobStatus,
        **fields: Any,
    ) -> bool: ...

    async def set_progress(self, job_id: str, **fields: Any) -> None: ...


class RefreshOrchestrator:
    def __init__(
        self,
        jobs: RefreshJobStore = RefreshJobRepository,
        connections=ConnectionRepository,
        cache=SummaryCacheRepository,
        builder: SummaryBuilder | None = None,
        clock: Callable[[], datetime] = utcnow,
        start_retry_delay: float = START_RETRY_DELAY_SECONDS,
    ):
        self.jobs = jobs
        self.connections = connections
        self.cache = cache
        self.builder = builder or summary_builder
        self.clock = clock
        self.start_retry_delay = start_retry_delay
        # Strong references so detached runs are not garbage-collected mid-flight
        self._tasks: set[asyncio.Task] = set()

    async def enqueue(self, user_id: str, options: EnqueueOptions | None = None) -> EnqueueResult:
        options = options or EnqueueOptions()
        latest = await self.jobs.latest_for_user(user_id)
        existing = decide_enqueue(latest, options, self.clock())
        if existing is not None:
            logger.info(
                "Refresh job deduplicated",
                user_id=user_id,
                job_id=existing.id,
                status=existing.status.value,
                trigger=options.trigger.value,
            )
            return EnqueueResult(job_id=existing.id, status=existing.status, deduped=True)

        job = await self.jobs.create(user_id, options.trigger, self.clock())
        self._start(job)
        return EnqueueResult(job_id=job.id, status=job.status, deduped=False)

    def _start(self, job: RefreshJob) -> asyncio.Task:
        task = asyncio.create_task(self.run(job), name=f"youtube-refresh-{job.id}")
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def active_tasks(self) -> int:
        return len(self._tasks)

    async def wait_for_background_tasks(self, timeout: float | None = None) -> None:
        """Wait for detached runs; used on shutdown and in tests."""
        if self._tasks:
            await asyncio.wait(set(self._tasks), timeout=timeout)

    async def _transition(
        self,
        job_id: str,
        current: RefreshJobStatus,
        target: RefreshJobStatus,
        **fields: Any,
    ) -> None:
        validate_transition(job_id, current, target)
        if not await self.jobs.transition(job_id, current, target, **fields):
            raise InvalidJobTransition(job_id, current.value, target.value)

    async def _mark_running(self, job: RefreshJob) -> bool:
        """
        queued -> running, retrying transient database errors.

        Returns:
            False when the job cannot start; a job left queued is skipped by
            dedup once its lease runs out
        """
        for attempt in range(1, START_ATTEMPTS + 1):
            try:
                await self._transition(
                    job.id,
                    RefreshJobStatus.QUEUED,
                    RefreshJobStatus.RUNNING,
                    started_at=self.clock(),
                    error_message=None,
                )
                return True
            except InvalidJobTransition as e:
                logger.warning("Refresh job could not start", job_id=job.id, error=str(e))
                return False
            except DatabaseError as e:
                if attempt >= START_ATTEMPTS:
                    logger.error(
                        "Refresh job could not start",
                        job_id=job.id,
                        attempts=attempt,
                        error=str(e),
                    )
                    return False
                logger.warning(
                    "Refresh job start failed, retrying",
                    job_id=job.id,
                    attempt=attempt,
                    error=str(e),
                )
                await asyncio.sleep(self.start_retry_delay * attempt)
        return False

    async def run(self, job: RefreshJob) -> None:
        """
        Execute one refresh job. Never raises; every failure after the job
        reached `running` is recorded on the job row.
        """
        if not await self._mark_running(job):
            return

        logger.info("Refresh job started", user_id=job.user_id, job_id=job.id)
        try:
            await self._execute(job)
        except Exception as e:
            logger.error(
                "Refresh job failed",
                user_id=job.user_id,
                job_id=job.id,
                error=str(e),
                error_type=type(e).__name__,
            )
            await self._mark_failed(job.id, str(e) or type(e).__name__)

    async def _execute(self, job: RefreshJob) -> None:
        try:
            connections = await self.connections.list_for_user(job.user_id)
        except DatabaseError as e:
            raise RefreshJobError(LOAD_CONNECTIONS_FAILED) from e

        total = len(connections)
        await self.jobs.set_progress(job.id, channels_total=total, channels_processed=0)

        if not connections:
            await self.cache.upsert(job.user_id, Summary().to_payload(), self.clock(), job.id)
            await self._transition(
                job.id,
                RefreshJobStatus.RUNNING,
                RefreshJobStatus.SUCCEEDED,
                finished_at=self.clock(),
                meta={"message": NO_CONNECTIONS_MESSAGE},
            )
            logger.info("Refresh job finished without channels", job_id=job.id)
            return

        summary = await self.builder.build_summary(connections)
        await self.cache.upsert(job.user_id, summary.to_payload(), self.clock(), job.id)
        await self._transition(
            job.id,
            RefreshJobStatus.RUNNING,
            RefreshJobStatus.SUCCEEDED,
            finished_at=self.clock(),
            channels_processed=total,
            meta={
                "channels": len(summary.channels),
                "timeSeriesPoints": len(summary.time_series),
                "topPosts": len(summary.top_posts),
            },
        )
        logger.info(
            "Refresh job succeeded",
            user_id=job.user_id,
            job_id=job.id,
            channels_total=total,
            channels=len(summary.channels),
        )

    async def _mark_failed(self, job_id: str, message: str) -> None:
        try:
            await self._transition(
                job_id,
                RefreshJobStatus.RUNNING,
                RefreshJobStatus.FAILED,
                finished_at=self.clock(),
                error_message=message,
            )
        except (InvalidJobTransition, DatabaseError) as e:
            logger.error("Failed to record refresh job failure", job_id=job_id, error=str(e))


refresh_orchestrator = RefreshOrchestrator()
