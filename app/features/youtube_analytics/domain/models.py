"""
Domain models for the YouTube analytics feature.

Persistence rows are plain dataclasses shared by repositories and services.
The Summary served to the dashboard is a pydantic model so it can be
validated when read back from the cache and serialised with camelCase keys.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

PLATFORM_YOUTUBE = "YouTube"
DEFAULT_CHANNEL_NAME = "YouTube Channel"
UNTITLED_VIDEO = "Untitled video"


class RefreshJobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RefreshJobStatus.SUCCEEDED, RefreshJobStatus.FAILED)

    @property
    def is_active(self) -> bool:
        return self in (RefreshJobStatus.QUEUED, RefreshJobStatus.RUNNING)


class RefreshTrigger(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class ReportKey(str, Enum):
    """The four Reporting API exports kept per channel."""

    CHANNEL_DAILY = "channel_daily"
    VIDEO_DAILY = "video_daily"
    DEMOGRAPHICS = "demographics"
    GEO = "geo"


@dataclass(slots=True)
class Connection:
    """A user's linked YouTube channel with its OAuth tokens (decrypted)."""

    user_id: str
    channel_id: str
    channel_name: str
    access_token: str | None
    refresh_token: str | None = None
    expires_at: int = 0  # epoch millis, 0 = unknown
    connected_at: datetime | None = None


@dataclass(slots=True)
class AuthorizedConnection:
    """A connection paired with the access token resolved for the current run."""

    connection: Connection
    access_token: str

    @property
    def channel_id(self) -> str:
        return self.connection.channel_id


@dataclass(slots=True)
class RefreshJob:
    """Represents a youtube_refresh_jobs row."""

    id: str
    user_id: str
    status: RefreshJobStatus
    requested_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None
    error_message: str | None = None
    channels_total: int = 0
    channels_processed: int = 0
    meta: dict[str, Any] = field(default_factory=dict)

    def to_api(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "requestedAt": _iso(self.requested_at),
            "startedAt": _iso(self.started_at),
            "finishedAt": _iso(self.finished_at),
            "channelsTotal": self.channels_total,
            "channelsProcessed": self.channels_processed,
            "errorMessage": self.error_message or "",
            "meta": self.meta or {},
        }


@dataclass(slots=True)
class ReportingJobRecord:
    """Reporting API job created (or adopted) for one channel and report key."""

    channel_id: str
    report_key: ReportKey
    job_id: str
    name: str
    report_type_id: str


@dataclass(slots=True)
class ParsedReport:
    """Parsed rows of one downloaded export, cached per reporting job id."""

    report_id: str
    created_at: str
    data: list[dict[str, Any]]


@dataclass(slots=True)
class CachedSummary:
    user_id: str
    summary: dict[str, Any] | None
    generated_at: datetime | None
    refresh_job_id: str | None = None


@dataclass(slots=True)
class EnqueueResult:
    job_id: str
    status: RefreshJobStatus
    deduped: bool


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# =================================================================
# Summary payload
# =================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChannelSummary(_CamelModel):
    id: str
    name: str
    platform: str = PLATFORM_YOUTUBE
    views: float = 0
    engagement_rate: float = 0
    followers: float = 0
    status: str = "Connected"
    followers_delta_30d: float | None = Field(default=None, alias="followersDelta30d")


class TopPost(_CamelModel):
    id: str
    title: str = UNTITLED_VIDEO
    platform: str = PLATFORM_YOUTUBE
    views: float = 0
    engagement_rate: float = 0


class TimeSeriesPoint(_CamelModel):
    date: str
    views: float = 0
    engagements: float = 0
    posts: int = 0

    def is_nonzero(self) -> bool:
        return self.views > 0 or self.engagements > 0 or self.posts > 0


class DistributionEntry(_CamelModel):
    label: str
    value: int = Field(ge=0)


class Summary(_CamelModel):
    channels: list[ChannelSummary] = Field(default_factory=list)
    top_posts: list[TopPost] = Field(default_factory=list)
    time_series: list[TimeSeriesPoint] = Field(default_factory=list)
    age_distribution: list[DistributionEntry] = Field(default_factory=list)
    gender_distribution: list[DistributionEntry] = Field(default_factory=list)
    top_geos: list[DistributionEntry] = Field(default_factory=list)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def normalize_payload(cls, payload: Any) -> dict[str, list[Any]]:
        """Cached payload keyed by camelCase section; non-list sections become []."""
        source = payload if isinstance(payload, dict) else {}
        sections = {}
        for name, info in cls.model_fields.items():
            key = info.alias or name
            value = source.get(key)
            sections[key] = value if isinstance(value, list) else []
        return sections


class ReportingSummary(_CamelModel):
    """Reporting-only view, also used as one input of the merged Summary."""

    time_series: list[TimeSeriesPoint] = Field(default_factory=list)
    top_posts: list[TopPost] = Field(default_factory=list)
    age_distribution: list[DistributionEntry] = Field(default_factory=list)
    gender_distribution: list[DistributionEntry] = Field(default_factory=list)
    top_geos: list[DistributionEntry] = Field(default_factory=list)
    channel_follower_deltas: dict[str, float] = Field(default_factory=dict)


class AnalyticsSummary(_CamelModel):
    time_series: list[TimeSeriesPoint] = Field(default_factory=list)
    age_distribution: list[DistributionEntry] = Field(default_factory=list)
    gender_distribution: list[DistributionEntry] = Field(default_factory=list)
    top_geos: list[DistributionEntry] = Field(default_factory=list)


class SnapshotSummary(_CamelModel):
    channels: list[ChannelSummary] = Field(default_factory=list)
    top_posts: list[TopPost] = Field(default_factory=list)
    time_series: list[TimeSeriesPoint] = Field(default_factory=list)
