"""
Unit tests for the cached summary read path and its staleness trigger.
"""

from datetime import timedelta

import pytest

from app.db.helpers import DatabaseError
from app.features.youtube_analytics.domain import EnqueueResult, RefreshJobStatus, RefreshTrigger
from app.features.youtube_analytics.services.summary_cache_service import (
    SummaryCacheService,
    is_stale,
)
from tests.fakes import (
    USER_ID,
    FakeConnectionStore,
    FakeSummaryCache,
    FixedClock,
    make_connection,
)


class FakeOrchestrator:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def enqueue(self, user_id, options=None):
        self.calls.append((user_id, options))
        if self.error:
            raise self.error
        return EnqueueResult(job_id="job-1", status=RefreshJobStatus.QUEUED, deduped=False)


class FailingCount(FakeConnectionStore):
    async def count_for_user(self, user_id):
        raise DatabaseError("down", operation="fetch_one")


def _service(orchestrator=None, cache=None, connections=None, clock=None):
    return SummaryCacheService(
        orchestrator=orchestrator or FakeOrchestrator(),
        cache=cache or FakeSummaryCache(),
        connections=connections or FakeConnectionStore([make_connection()]),
        clock=clock or FixedClock(),
    )


def test_is_stale():
    now = FixedClock()()
    assert is_stale(None, now, timedelta(hours=24))
    assert is_stale(now - timedelta(hours=24), now, timedelta(hours=24))
    assert not is_stale(now - timedelta(hours=23), now, timedelta(hours=24))


@pytest.mark.asyncio
async def test_stale_summary_is_returned_and_auto_refresh_queued():
    clock = FixedClock()
    cache = FakeSummaryCache()
    generated_at = clock() - timedelta(hours=25)
    await cache.upsert(
        USER_ID,
        {"channels": [{"id": "UC1", "name": "One"}], "topPosts": "broken"},
        generated_at,
        "job-0",
    )
    orchestrator = FakeOrchestrator()
    service = _service(orchestrator, cache, clock=clock)

    body = await service.read_summary(USER_ID)

    assert body["channels"] == [{"id": "UC1", "name": "One"}]
    assert body["topPosts"] == []
    assert body["timeSeries"] == []
    assert body["cacheStatus"] == "ready"
    assert body["generatedAt"] == generated_at.isoformat()
    assert body["autoRefresh"] == {"queued": True, "jobId": "job-1", "status": "queued"}

    [(user_id, options)] = orchestrator.calls
    assert user_id == USER_ID
    assert options.trigger == RefreshTrigger.AUTO
    assert options.reuse_running is True
    assert options.min_interval == timedelta(minutes=10)


@pytest.mark.asyncio
async def test_fresh_summary_does_not_queue():
    clock = FixedClock()
    cache = FakeSummaryCache()
    await cache.upsert(USER_ID, {"channels": []}, clock() - timedelta(hours=1), "job-0")
    orchestrator = FakeOrchestrator()

    body = await _service(orchestrator, cache, clock=clock).read_summary(USER_ID)

    assert body["autoRefresh"] == {"queued": False}
    assert orchestrator.calls == []


@pytest.mark.asyncio
async def test_missing_summary_reads_empty_and_queues():
    body = await _service().read_summary(USER_ID)

    assert body["cacheStatus"] == "empty"
    assert body["generatedAt"] is None
    assert body["channels"] == []
    assert body["ageDistribution"] == []
    assert body["autoRefresh"]["queued"] is True


@pytest.mark.asyncio
async def test_no_connections_never_queues():
    orchestrator = FakeOrchestrator()
    service = _service(orchestrator, connections=FakeConnectionStore())

    body = await service.read_summary(USER_ID)

    assert body["cacheStatus"] == "empty"
    assert body["autoRefresh"] == {"queued": False}
    assert orchestrator.calls == []


@pytest.mark.asyncio
async def test_enqueue_failure_reads_as_not_queued():
    service = _service(FakeOrchestrator(error=DatabaseError("down")))
    body = await service.read_summary(USER_ID)
    assert body["autoRefresh"] == {"queued": False}


@pytest.mark.asyncio
async def test_connection_count_failure_reads_as_not_queued():
    service = _service(connections=FailingCount())
    body = await service.read_summary(USER_ID)
    assert body["autoRefresh"] == {"queued": False}
