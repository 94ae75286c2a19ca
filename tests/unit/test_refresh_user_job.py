"""
Single-user refresh job: enqueue through the orchestrator, wait on the job row.
"""

import asyncio

import pytest

from app.features.youtube_analytics.domain import RefreshJobStatus, Summary
from app.features.youtube_analytics.errors import RefreshTimeoutError
from app.features.youtube_analytics.jobs import run_user_refresh
from app.features.youtube_analytics.services.poller import RefreshJobPoller, store_status_fetcher
from app.features.youtube_analytics.services.refresh_orchestrator import RefreshOrchestrator
from tests.fakes import (
    USER_ID,
    FakeConnectionStore,
    FakeSummaryCache,
    FixedClock,
    InMemoryJobStore,
    make_connection,
    make_job,
)


class StaticBuilder:
    def __init__(self, error=None):
        self.error = error

    async def build_summary(self, connections):
        if self.error:
            raise self.error
        return Summary()


class LoopTime:
    """Monotonic clock that moves on sleep and lets detached runs progress."""

    def __init__(self):
        self.now = 0.0

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


def _setup(connections=None, builder=None, timeout_s=30):
    job_store = InMemoryJobStore()
    orchestrator = RefreshOrchestrator(
        jobs=job_store,
        connections=FakeConnectionStore(connections),
        cache=FakeSummaryCache(),
        builder=builder or StaticBuilder(),
        clock=FixedClock(),
        start_retry_delay=0,
    )
    loop_time = LoopTime()
    poller = RefreshJobPoller(
        store_status_fetcher(job_store, USER_ID),
        interval_s=1,
        timeout_s=timeout_s,
        clock=loop_time.clock,
        sleep=loop_time.sleep,
    )
    return job_store, orchestrator, poller


@pytest.mark.asyncio
async def test_refresh_waits_for_success():
    job_store, orchestrator, poller = _setup([make_connection("UC1")])

    job = await run_user_refresh(USER_ID, orchestrator=orchestrator, jobs=job_store, poller=poller)

    assert job["status"] == "succeeded"
    assert job["channelsTotal"] == 1
    stored = await job_store.get(USER_ID, job["id"])
    assert stored.status == RefreshJobStatus.SUCCEEDED
    assert stored.meta["trigger"] == "manual"


@pytest.mark.asyncio
async def test_refresh_returns_failed_job():
    job_store, orchestrator, poller = _setup(
        [make_connection("UC1")], builder=StaticBuilder(error=RuntimeError("boom"))
    )

    job = await run_user_refresh(USER_ID, orchestrator=orchestrator, jobs=job_store, poller=poller)

    assert job["status"] == "failed"
    assert job["errorMessage"] == "boom"


@pytest.mark.asyncio
async def test_refresh_waits_on_active_job(monkeypatch):
    job_store, orchestrator, poller = _setup(timeout_s=3)
    active = job_store.add(make_job(RefreshJobStatus.RUNNING, FixedClock()()))
    monkeypatch.setenv("YOUTUBE_REFRESH_USER_ID", f" {USER_ID} ")

    with pytest.raises(RefreshTimeoutError):
        await run_user_refresh(orchestrator=orchestrator, jobs=job_store, poller=poller)

    assert list(job_store.jobs) == [active.id]


@pytest.mark.asyncio
async def test_refresh_requires_user_id(monkeypatch):
    monkeypatch.delenv("YOUTUBE_REFRESH_USER_ID", raising=False)
    job_store, orchestrator, poller = _setup()

    with pytest.raises(ValueError):
        await run_user_refresh(orchestrator=orchestrator, jobs=job_store, poller=poller)

    assert job_store.jobs == {}
