"""
Poller for refresh jobs.

Blocks until a queued job finishes, either over the public HTTP endpoint or
straight against the job store (the worker's single-user refresh job).
Clock, sleep and interval are injectable so waiting is testable without real
time passing.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from app.features.youtube_analytics.errors import RefreshJobError, RefreshTimeoutError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TERMINAL_STATUSES = {"succeeded", "failed"}

StatusFetcher = Callable[[str], Awaitable[dict[str, Any]]]


class RefreshJobPoller:
    def __init__(
        self,
        fetch_status: StatusFetcher,
        interval_s: float = 2.0,
        timeout_s: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.fetch_status = fetch_status
        self.interval_s = interval_s
        self.timeout_s = timeout_s
        self.clock = clock
        self.sleep = sleep

    async def wait(
        self,
        job_id: str,
        on_progress: Callable[[dict[str, Any]], None] | None = None,
    ) -> dict[str, Any]:
        """
        Poll until the job is succeeded or failed and return its last status.

        Raises:
            RefreshTimeoutError: timeout_s elapsed first
        """
        deadline = self.clock() + self.timeout_s
        while True:
            job = await self.fetch_status(job_id)
            if on_progress is not None:
                on_progress(job)
            if job.get("status") in TERMINAL_STATUSES:
                return job
            if self.clock() + self.interval_s > deadline:
                logger.warning("Refresh job polling timed out", job_id=job_id, status=job.get("status"))
                raise RefreshTimeoutError(job_id, self.timeout_s)
            await self.sleep(self.interval_s)


def store_status_fetcher(jobs, user_id: str) -> StatusFetcher:
    """Status fetcher that reads the job row directly; same shape as the API response."""

    async def fetch(job_id: str) -> dict[str, Any]:
        job = await jobs.get(user_id, job_id)
        if job is None:
            raise RefreshJobError(f"Refresh job {job_id} not found")
        return job.to_api()

    return fetch


def http_status_fetcher(client: httpx.AsyncClient) -> StatusFetcher:
    """Status fetcher for GET /api/youtube/refresh/{job_id} on an authenticated client."""

    async def fetch(job_id: str) -> dict[str, Any]:
        response = await client.get(f"/api/youtube/refresh/{job_id}")
        response.raise_for_status()
        return response.json()

    return fetch
