"""
Unit tests for the refresh job poller.
"""

import httpx
import pytest

from app.features.youtube_analytics.domain import RefreshJobStatus
from app.features.youtube_analytics.errors import RefreshJobError, RefreshTimeoutError
from app.features.youtube_analytics.services.poller import (
    RefreshJobPoller,
    http_status_fetcher,
    store_status_fetcher,
)
from tests.fakes import USER_ID, FixedClock, InMemoryJobStore, make_job


class FakeTime:
    """Monotonic clock that only moves when the poller sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def _statuses(*statuses):
    remaining = list(statuses)

    async def fetch(job_id):
        status = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        return {"id": job_id, "status": status}

    return fetch


@pytest.mark.asyncio
async def test_wait_returns_terminal_status():
    fake_time = FakeTime()
    seen = []
    poller = RefreshJobPoller(
        _statuses("queued", "running", "succeeded"),
        interval_s=2,
        timeout_s=60,
        clock=fake_time.clock,
        sleep=fake_time.sleep,
    )

    job = await poller.wait("job-1", on_progress=lambda status: seen.append(status["status"]))

    assert job["status"] == "succeeded"
    assert seen == ["queued", "running", "succeeded"]
    assert fake_time.sleeps == [2, 2]


@pytest.mark.asyncio
async def test_failed_is_terminal_too():
    fake_time = FakeTime()
    poller = RefreshJobPoller(
        _statuses("failed"), clock=fake_time.clock, sleep=fake_time.sleep
    )
    assert (await poller.wait("job-1"))["status"] == "failed"
    assert fake_time.sleeps == []


@pytest.mark.asyncio
async def test_wait_times_out():
    fake_time = FakeTime()
    poller = RefreshJobPoller(
        _statuses("running"),
        interval_s=2,
        timeout_s=5,
        clock=fake_time.clock,
        sleep=fake_time.sleep,
    )

    with pytest.raises(RefreshTimeoutError) as exc_info:
        await poller.wait("job-1")

    assert exc_info.value.job_id == "job-1"
    # 0 -> 2 -> 4, and another 2s would pass the 5s deadline
    assert fake_time.sleeps == [2, 2]


@pytest.mark.asyncio
async def test_http_status_fetcher_reads_job_endpoint():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/youtube/refresh/job-1"
        return httpx.Response(200, json={"id": "job-1", "status": "running"})

    async with httpx.AsyncClient(
        transport=httpx.MockTransport(handler), base_url="http://testserver"
    ) as client:
        fetch = http_status_fetcher(client)
        assert (await fetch("job-1"))["status"] == "running"


@pytest.mark.asyncio
async def test_store_fetcher_reads_owned_job():
    job_store = InMemoryJobStore()
    job = job_store.add(make_job(RefreshJobStatus.RUNNING, FixedClock()()))
    fetch = store_status_fetcher(job_store, USER_ID)

    status = await fetch(job.id)

    assert status["id"] == job.id
    assert status["status"] == "running"
    with pytest.raises(RefreshJobError):
        await store_status_fetcher(job_store, "someone-else")(job.id)
