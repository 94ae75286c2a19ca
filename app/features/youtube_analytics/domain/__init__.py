"""Domain exports for the YouTube analytics feature."""

from .models import (
    DEFAULT_CHANNEL_NAME,
    PLATFORM_YOUTUBE,
    UNTITLED_VIDEO,
    AnalyticsSummary,
    AuthorizedConnection,
    CachedSummary,
    ChannelSummary,
    Connection,
    DistributionEntry,
    EnqueueResult,
    ParsedReport,
    RefreshJob,
    RefreshJobStatus,
    RefreshTrigger,
    ReportingJobRecord,
    ReportingSummary,
    ReportKey,
    SnapshotSummary,
    Summary,
    TimeSeriesPoint,
    TopPost,
)

__all__ = [
    "DEFAULT_CHANNEL_NAME",
    "PLATFORM_YOUTUBE",
    "UNTITLED_VIDEO",
    "AnalyticsSummary",
    "AuthorizedConnection",
    "CachedSummary",
    "ChannelSummary",
    "Connection",
    "DistributionEntry",
    "EnqueueResult",
    "ParsedReport",
    "RefreshJob",
    "RefreshJobStatus",
    "RefreshTrigger",
    "ReportingJobRecord",
    "ReportingSummary",
    "ReportKey",
    "SnapshotSummary",
    "Summary",
    "TimeSeriesPoint",
    "TopPost",
]
