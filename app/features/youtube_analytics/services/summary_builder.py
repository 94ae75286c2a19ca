"""
Builds the merged Summary for a set of connections.

Tokens are resolved once per connection, then the snapshot, reporting and
analytics sources run one after another. A source that blows up contributes
nothing; the merge falls through to the next source for every field.
"""

from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from app.features.youtube_analytics.domain import (
    AnalyticsSummary,
    AuthorizedConnection,
    Connection,
    ReportingSummary,
    SnapshotSummary,
    Summary,
)
from app.features.youtube_analytics.pipeline.aggregation import merge_summary
from app.features.youtube_analytics.pipeline.analytics_service import (
    AnalyticsRangeResolver,
    analytics_range_resolver,
)
from app.features.youtube_analytics.pipeline.reporting_service import (
    ReportingJobManager,
    reporting_job_manager,
)
from app.features.youtube_analytics.pipeline.snapshot_service import (
    SnapshotFetcher,
    snapshot_fetcher,
)
from app.features.youtube_analytics.repository import ConnectionTokenStore
from app.features.youtube_analytics.services.token_manager import TokenLifecycleManager
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class SummaryBuilder:
    def __init__(
        self,
        token_manager: TokenLifecycleManager | None = None,
        snapshot: SnapshotFetcher | None = None,
        reporting: ReportingJobManager | None = None,
        analytics: AnalyticsRangeResolver | None = None,
    ):
        self.token_manager = token_manager or TokenLifecycleManager(ConnectionTokenStore())
        self.snapshot = snapshot or snapshot_fetcher
        self.reporting = reporting or reporting_job_manager
        self.analytics = analytics or analytics_range_resolver

    async def authorize(self, connections: Sequence[Connection]) -> list[AuthorizedConnection]:
        """Connections with a usable access token; the rest are dropped."""
        authorized = []
        for connection in connections:
            access_token, current = await self.token_manager.ensure_valid_access_token(connection)
            if not access_token:
                logger.warning(
                    "Skipping YouTube connection without access token",
                    user_id=connection.user_id,
                    channel_id=connection.channel_id,
                )
                continue
            authorized.append(AuthorizedConnection(connection=current, access_token=access_token))
        return authorized

    async def _run_source(
        self,
        source: str,
        build: Callable[[], Awaitable[T]],
        empty: Callable[[], T],
    ) -> T:
        try:
            return await build()
        except Exception as e:
            logger.warning(
                "YouTube summary source failed",
                source=source,
                error=str(e),
                error_type=type(e).__name__,
            )
            return empty()

    async def build_summary(self, connections: Sequence[Connection]) -> Summary:
        authorized = await self.authorize(connections)

        snapshot = await self._run_source(
            "snapshot",
            lambda: self.snapshot.build_snapshot_summary(authorized),
            SnapshotSummary,
        )
        reporting = await self._run_source(
            "reporting",
            lambda: self.reporting.build_reporting_summary(authorized),
            ReportingSummary,
        )
        analytics = await self._run_source(
            "analytics",
            lambda: self.analytics.build_analytics_summary(authorized),
            AnalyticsSummary,
        )
        return merge_summary(snapshot, reporting, analytics)

    async def build_reporting_summary(self, connections: Sequence[Connection]) -> ReportingSummary:
        authorized = await self.authorize(connections)
        return await self.reporting.build_reporting_summary(authorized)

    async def init_reporting_jobs(self, connections: Sequence[Connection]) -> list[dict]:
        """Ensure reporting jobs for every connection; one entry per channel."""
        results = []
        for authorized in await self.authorize(connections):
            records = await self.reporting.ensure_jobs(
                authorized.connection, authorized.access_token
            )
            results.append(
                {
                    "channelId": authorized.channel_id,
                    "jobs": {
                        key.value: {
                            "jobId": record.job_id,
                            "name": record.name,
                            "reportTypeId": record.report_type_id,
                        }
                        for key, record in records.items()
                    },
                }
            )
        return results


summary_builder = SummaryBuilder()
