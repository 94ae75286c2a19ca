from app.features.youtube_analytics.repository.connection_repository import (
    ConnectionRepository,
    ConnectionTokenStore,
)
from app.features.youtube_analytics.repository.refresh_job_repository import RefreshJobRepository
from app.features.youtube_analytics.repository.reporting_repository import (
    ParsedReportRepository,
    ReportingJobRepository,
)
from app.features.youtube_analytics.repository.summary_cache_repository import (
    SummaryCacheRepository,
)

__all__ = [
    "ConnectionRepository",
    "ConnectionTokenStore",
    "ParsedReportRepository",
    "RefreshJobRepository",
    "ReportingJobRepository",
    "SummaryCacheRepository",
]
