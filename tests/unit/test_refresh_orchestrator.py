"""
Unit tests for the refresh job orchestrator.
"""

from datetime import timedelta

import pytest

from app.db.helpers import DatabaseError
from app.features.youtube_analytics.domain import (
    ChannelSummary,
    RefreshJobStatus,
    RefreshTrigger,
    ReportingSummary,
    Summary,
)
from app.features.youtube_analytics.errors import InvalidJobTransition, YouTubeApiError
from app.features.youtube_analytics.pipeline.snapshot_service import SnapshotFetcher
from app.features.youtube_analytics.services.refresh_orchestrator import (
    LOAD_CONNECTIONS_FAILED,
    NO_CONNECTIONS_MESSAGE,
    EnqueueOptions,
    RefreshOrchestrator,
    decide_enqueue,
    validate_transition,
)
from app.features.youtube_analytics.services.summary_builder import SummaryBuilder
from tests.fakes import (
    USER_ID,
    FakeConnectionStore,
    FakeSummaryCache,
    FixedClock,
    InMemoryJobStore,
    make_connection,
    make_job,
)

COOLDOWN = EnqueueOptions(
    trigger=RefreshTrigger.AUTO, reuse_running=True, min_interval=timedelta(minutes=10)
)


class FakeBuilder:
    def __init__(self, summary=None, error=None):
        self.summary = summary or Summary()
        self.error = error
        self.calls = []

    async def build_summary(self, connections):
        self.calls.append(list(connections))
        if self.error:
            raise self.error
        return self.summary


def _orchestrator(job_store=None, connections=None, cache=None, builder=None, clock=None):
    return RefreshOrchestrator(
        jobs=job_store or InMemoryJobStore(),
        connections=connections or FakeConnectionStore(),
        cache=cache or FakeSummaryCache(),
        builder=builder or FakeBuilder(),
        clock=clock or FixedClock(),
        start_retry_delay=0,
    )


# =================================================================
# Enqueue decisions
# =================================================================


def test_decide_enqueue_without_history_creates():
    assert decide_enqueue(None, EnqueueOptions(), FixedClock()()) is None


def test_decide_enqueue_reuses_active_job():
    now = FixedClock()()
    running = make_job(RefreshJobStatus.RUNNING, now - timedelta(minutes=20))

    assert decide_enqueue(running, EnqueueOptions(), now) is running
    assert decide_enqueue(running, EnqueueOptions(reuse_running=False), now) is None


def test_decide_enqueue_ignores_active_job_past_its_lease():
    now = FixedClock()()
    stuck_queued = make_job(RefreshJobStatus.QUEUED, now - timedelta(minutes=31))
    stuck_running = make_job(RefreshJobStatus.RUNNING, now - timedelta(hours=2))

    assert decide_enqueue(stuck_queued, EnqueueOptions(), now) is None
    assert decide_enqueue(stuck_running, COOLDOWN, now) is None
    assert decide_enqueue(stuck_queued, EnqueueOptions(lease=timedelta(hours=1)), now) is stuck_queued


def test_decide_enqueue_cooldown_applies_to_finished_jobs():
    now = FixedClock()()
    recent = make_job(RefreshJobStatus.FAILED, now - timedelta(minutes=5))
    older = make_job(RefreshJobStatus.SUCCEEDED, now - timedelta(minutes=11))

    assert decide_enqueue(recent, COOLDOWN, now) is recent
    assert decide_enqueue(older, COOLDOWN, now) is None
    assert decide_enqueue(recent, EnqueueOptions(), now) is None


def test_terminal_states_allow_no_transitions():
    validate_transition("job-1", RefreshJobStatus.QUEUED, RefreshJobStatus.RUNNING)
    validate_transition("job-1", RefreshJobStatus.RUNNING, RefreshJobStatus.FAILED)

    with pytest.raises(InvalidJobTransition):
        validate_transition("job-1", RefreshJobStatus.SUCCEEDED, RefreshJobStatus.RUNNING)
    with pytest.raises(InvalidJobTransition):
        validate_transition("job-1", RefreshJobStatus.FAILED, RefreshJobStatus.SUCCEEDED)
    with pytest.raises(InvalidJobTransition):
        validate_transition("job-1", RefreshJobStatus.QUEUED, RefreshJobStatus.SUCCEEDED)
    with pytest.raises(InvalidJobTransition):
        validate_transition("job-1", RefreshJobStatus.QUEUED, RefreshJobStatus.FAILED)


# =================================================================
# Enqueue
# =================================================================


@pytest.mark.asyncio
async def test_enqueue_creates_job_and_runs_it_to_success():
    job_store = InMemoryJobStore()
    cache = FakeSummaryCache()
    summary = Summary(channels=[ChannelSummary(id="UC1", name="One")])
    connections = FakeConnectionStore([make_connection("UC1"), make_connection("UC2")])
    orchestrator = _orchestrator(job_store, connections, cache, FakeBuilder(summary))

    result = await orchestrator.enqueue(USER_ID)
    await orchestrator.wait_for_background_tasks()

    assert result.deduped is False
    assert result.status == RefreshJobStatus.QUEUED
    job = job_store.jobs[result.job_id]
    assert job.status == RefreshJobStatus.SUCCEEDED
    assert job.channels_total == 2
    assert job.channels_processed == 2
    assert job.started_at is not None
    assert job.finished_at is not None
    assert job.meta == {"trigger": "manual", "channels": 1, "timeSeriesPoints": 0, "topPosts": 0}

    cached = cache.rows[USER_ID]
    assert cached.refresh_job_id == result.job_id
    assert cached.summary["channels"][0]["id"] == "UC1"
    assert orchestrator.active_tasks == 0


@pytest.mark.asyncio
async def test_enqueue_returns_running_job_instead_of_creating():
    job_store = InMemoryJobStore()
    clock = FixedClock()
    running = job_store.add(make_job(RefreshJobStatus.RUNNING, clock() - timedelta(minutes=1)))
    orchestrator = _orchestrator(job_store, clock=clock)

    first = await orchestrator.enqueue(USER_ID)
    second = await orchestrator.enqueue(USER_ID)

    assert first.job_id == second.job_id == running.id
    assert first.deduped and second.deduped
    assert first.status == RefreshJobStatus.RUNNING
    assert len(job_store.jobs) == 1
    assert orchestrator.active_tasks == 0


@pytest.mark.asyncio
async def test_auto_enqueue_respects_cooldown():
    job_store = InMemoryJobStore()
    clock = FixedClock()
    finished = job_store.add(make_job(RefreshJobStatus.SUCCEEDED, clock() - timedelta(minutes=3)))
    orchestrator = _orchestrator(job_store, clock=clock)

    result = await orchestrator.enqueue(USER_ID, COOLDOWN)

    assert result.deduped is True
    assert result.job_id == finished.id
    assert result.status == RefreshJobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_manual_enqueue_after_finished_job_creates_new_one():
    job_store = InMemoryJobStore()
    clock = FixedClock()
    job_store.add(make_job(RefreshJobStatus.SUCCEEDED, clock() - timedelta(minutes=3)))
    orchestrator = _orchestrator(job_store, clock=clock)

    result = await orchestrator.enqueue(USER_ID, EnqueueOptions(trigger=RefreshTrigger.MANUAL))
    await orchestrator.wait_for_background_tasks()

    assert result.deduped is False
    assert len(job_store.jobs) == 2


# =================================================================
# Run
# =================================================================


@pytest.mark.asyncio
async def test_run_without_connections_caches_empty_summary():
    job_store = InMemoryJobStore()
    cache = FakeSummaryCache()
    builder = FakeBuilder()
    orchestrator = _orchestrator(job_store, cache=cache, builder=builder)
    job = job_store.add(make_job(RefreshJobStatus.QUEUED, FixedClock()()))

    await orchestrator.run(job)

    finished = job_store.jobs[job.id]
    assert finished.status == RefreshJobStatus.SUCCEEDED
    assert finished.channels_total == 0
    assert finished.meta["message"] == NO_CONNECTIONS_MESSAGE
    assert cache.rows[USER_ID].summary["channels"] == []
    assert builder.calls == []


@pytest.mark.asyncio
async def test_run_records_connection_load_failure():
    job_store = InMemoryJobStore()
    connections = FakeConnectionStore([make_connection("UC1")])
    connections.fail_list = True
    orchestrator = _orchestrator(job_store, connections)
    job = job_store.add(make_job(RefreshJobStatus.QUEUED, FixedClock()()))

    await orchestrator.run(job)

    failed = job_store.jobs[job.id]
    assert failed.status == RefreshJobStatus.FAILED
    assert failed.error_message == LOAD_CONNECTIONS_FAILED
    assert failed.finished_at is not None


@pytest.mark.asyncio
async def test_run_records_builder_failure_and_keeps_cache():
    job_store = InMemoryJobStore()
    cache = FakeSummaryCache()
    connections = FakeConnectionStore([make_connection("UC1")])
    builder = FakeBuilder(error=RuntimeError("boom"))
    orchestrator = _orchestrator(job_store, connections, cache, builder)
    job = job_store.add(make_job(RefreshJobStatus.QUEUED, FixedClock()()))

    await orchestrator.run(job)

    assert job_store.jobs[job.id].status == RefreshJobStatus.FAILED
    assert job_store.jobs[job.id].error_message == "boom"
    assert cache.rows == {}


@pytest.mark.asyncio
async def test_run_skips_job_that_already_left_queued():
    job_store = InMemoryJobStore()
    builder = FakeBuilder()
    orchestrator = _orchestrator(job_store, FakeConnectionStore([make_connection()]), builder=builder)
    job = job_store.add(make_job(RefreshJobStatus.SUCCEEDED, FixedClock()()))

    await orchestrator.run(job)

    assert job_store.jobs[job.id].status == RefreshJobStatus.SUCCEEDED
    assert builder.calls == []


class FlakyStartStore(InMemoryJobStore):
    """Fails the queued -> running write a set number of times."""

    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    async def transition(self, job_id, expected, target, **fields):
        if target == RefreshJobStatus.RUNNING and self.failures > 0:
            self.failures -= 1
            raise DatabaseError("connection reset", operation="execute")
        return await super().transition(job_id, expected, target, **fields)


@pytest.mark.asyncio
async def test_transient_start_failure_is_retried():
    job_store = FlakyStartStore(failures=1)
    connections = FakeConnectionStore([make_connection("UC1")])
    orchestrator = _orchestrator(job_store, connections)

    first = await orchestrator.enqueue(USER_ID)
    await orchestrator.wait_for_background_tasks()
    second = await orchestrator.enqueue(USER_ID)
    await orchestrator.wait_for_background_tasks()

    assert job_store.jobs[first.job_id].status == RefreshJobStatus.SUCCEEDED
    assert not second.deduped
    assert second.job_id != first.job_id


@pytest.mark.asyncio
async def test_job_that_never_started_stops_blocking_after_its_lease():
    job_store = FlakyStartStore(failures=10)
    clock = FixedClock()
    orchestrator = _orchestrator(job_store, FakeConnectionStore([make_connection()]), clock=clock)

    first = await orchestrator.enqueue(USER_ID)
    await orchestrator.wait_for_background_tasks()
    assert job_store.jobs[first.job_id].status == RefreshJobStatus.QUEUED

    assert (await orchestrator.enqueue(USER_ID)).deduped is True

    clock.now += timedelta(minutes=31)
    job_store.failures = 0
    later = await orchestrator.enqueue(USER_ID)
    await orchestrator.wait_for_background_tasks()

    assert later.deduped is False
    assert job_store.jobs[later.job_id].status == RefreshJobStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_guarded_transition_raises_when_store_rejects():
    job_store = InMemoryJobStore()
    orchestrator = _orchestrator(job_store)
    job = job_store.add(make_job(RefreshJobStatus.FAILED, FixedClock()()))

    with pytest.raises(InvalidJobTransition):
        await orchestrator._transition(job.id, RefreshJobStatus.RUNNING, RefreshJobStatus.SUCCEEDED)


class _StaticTokens:
    async def ensure_valid_access_token(self, connection):
        return connection.access_token, connection


class _ChannelOnlyDataClient:
    async def get_channel(self, access_token, channel_id=None):
        if channel_id == "UC2":
            raise YouTubeApiError("Forbidden", status_code=403)
        return {"id": channel_id, "title": f"Title {channel_id}", "statistics": {"viewCount": "10"}}

    async def search_video_ids(self, access_token, channel_id, order, max_results):
        return []

    async def get_videos(self, access_token, video_ids):
        return []


class _EmptyReporting:
    async def build_reporting_summary(self, connections):
        return ReportingSummary()


class _BrokenAnalytics:
    async def build_analytics_summary(self, connections):
        raise YouTubeApiError("quotaExceeded", status_code=403)


@pytest.mark.asyncio
async def test_one_failing_channel_of_three_still_succeeds():
    job_store = InMemoryJobStore()
    cache = FakeSummaryCache()
    connections = FakeConnectionStore(
        [make_connection("UC1"), make_connection("UC2"), make_connection("UC3")]
    )
    builder = SummaryBuilder(
        token_manager=_StaticTokens(),
        snapshot=SnapshotFetcher(_ChannelOnlyDataClient()),
        reporting=_EmptyReporting(),
        analytics=_BrokenAnalytics(),
    )
    orchestrator = _orchestrator(job_store, connections, cache, builder)

    result = await orchestrator.enqueue(USER_ID)
    await orchestrator.wait_for_background_tasks()

    job = job_store.jobs[result.job_id]
    assert job.status == RefreshJobStatus.SUCCEEDED
    assert job.channels_total == 3
    assert job.channels_processed == 3
    assert job.meta["channels"] == 2
    assert [channel["id"] for channel in cache.rows[USER_ID].summary["channels"]] == ["UC1", "UC3"]
