"""
Reporting Job Manager.

Keeps one Reporting API job per (channel, report key), picks the newest
export that actually contains rows, and folds the parsed exports of every
connection into a ReportingSummary.

Report-type resolution per key:
    1. the configured id, if the account's catalog offers it
    2. the ordered fallback ids
    3. the first catalog id starting with the normalized prefix
Geo additionally retries the whole chain against the province report family.
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.youtube_analytics.clients import (
    YouTubeDataClient,
    YouTubeReportingClient,
    youtube_data_client,
    youtube_reporting_client,
)
from app.features.youtube_analytics.domain import (
    UNTITLED_VIDEO,
    AuthorizedConnection,
    Connection,
    ParsedReport,
    ReportingJobRecord,
    ReportingSummary,
    ReportKey,
    TopPost,
)
from app.features.youtube_analytics.errors import YouTubeApiError
from app.features.youtube_analytics.pipeline.aggregation import (
    TOP_GEOS,
    SeriesBuckets,
    build_percent_list,
    compute_follower_deltas,
    engagement_rate,
)
from app.features.youtube_analytics.pipeline.csv_parser import (
    normalize_header_key,
    parse_reporting_csv,
)
from app.features.youtube_analytics.pipeline.labels import (
    normalize_age_label,
    normalize_gender_label,
    resolve_country_label,
)
from app.features.youtube_analytics.pipeline.report_parsers import REPORT_PARSERS, ReportParser
from app.features.youtube_analytics.repository import (
    ParsedReportRepository,
    ReportingJobRepository,
)
from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import fast_redis

logger = get_logger(__name__)

REPORT_TYPE_CACHE_KEY = "youtube:reporting:report_types"
REPORT_TYPE_CACHE_TTL = 6 * 60 * 60  # 6 hours
MAX_REPORTS_SCANNED = 12
TOP_POSTS_LIMIT = 10


@dataclass(frozen=True, slots=True)
class ReportTypeRule:
    preferred_id: str
    fallback_ids: tuple[str, ...]
    prefix: str


@dataclass(frozen=True, slots=True)
class ReportTypeSpec:
    key: ReportKey
    job_suffix: str
    rules: tuple[ReportTypeRule, ...]


def build_report_type_specs() -> list[ReportTypeSpec]:
    """Resolution rules for the four report keys, using the configured ids."""
    return [
        ReportTypeSpec(
            key=ReportKey.CHANNEL_DAILY,
            job_suffix="channel-daily",
            rules=(
                ReportTypeRule(
                    settings.YOUTUBE_REPORT_CHANNEL_DAILY,
                    ("channel_basic_a3", "channel_basic_a2"),
                    "channel_basic_",
                ),
            ),
        ),
        ReportTypeSpec(
            key=ReportKey.VIDEO_DAILY,
            job_suffix="video-daily",
            rules=(
                ReportTypeRule(
                    settings.YOUTUBE_REPORT_VIDEO_DAILY,
                    ("video_basic_a3", "video_basic_a2"),
                    "video_basic_",
                ),
            ),
        ),
        ReportTypeSpec(
            key=ReportKey.DEMOGRAPHICS,
            job_suffix="demographics",
            rules=(
                ReportTypeRule(
                    settings.YOUTUBE_REPORT_DEMOGRAPHICS,
                    ("channel_demographics_a1",),
                    "channel_demographics_",
                ),
            ),
        ),
        ReportTypeSpec(
            key=ReportKey.GEO,
            job_suffix="geo",
            rules=(
                ReportTypeRule(
                    settings.YOUTUBE_REPORT_GEO,
                    ("channel_geography_a1",),
                    "channel_geography_",
                ),
                ReportTypeRule("", ("channel_province_a3",), "channel_province_"),
            ),
        ),
    ]


def resolve_report_type_id(available_ids: Sequence[str], rule: ReportTypeRule) -> str:
    """Pick a report type id from the catalog, or "" when nothing fits."""
    if not available_ids:
        return ""
    if rule.preferred_id and rule.preferred_id in available_ids:
        return rule.preferred_id
    for fallback_id in rule.fallback_ids:
        if fallback_id in available_ids:
            return fallback_id
    prefix = normalize_header_key(rule.prefix)
    for type_id in available_ids:
        if normalize_header_key(type_id).startswith(prefix):
            return type_id
    return ""


def build_job_name(channel_id: str, spec: ReportTypeSpec) -> str:
    return f"{settings.YOUTUBE_REPORT_NAME_PREFIX}-{channel_id}-{spec.job_suffix}"


def _report_timestamp(report: dict[str, Any]) -> float:
    value = report.get("createTime") or report.get("startTime")
    if not isinstance(value, str) or not value:
        return 0.0
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp()
    except ValueError:
        return 0.0


def order_reports(reports: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Newest first by createTime, falling back to startTime."""
    return sorted(reports, key=_report_timestamp, reverse=True)


class ReportingJobManager:
    def __init__(
        self,
        reporting_client: YouTubeReportingClient | None = None,
        data_client: YouTubeDataClient | None = None,
        job_records=ReportingJobRepository,
        parsed_reports=ParsedReportRepository,
        cache=None,
    ):
        self.reporting_client = reporting_client or youtube_reporting_client
        self.data_client = data_client or youtube_data_client
        self.job_records = job_records
        self.parsed_reports = parsed_reports
        self.cache = cache or fast_redis

    # =================================================================
    # Report types and jobs
    # =================================================================

    async def get_report_type_ids(self, access_token: str) -> list[str]:
        cached = await self.cache.get_json(REPORT_TYPE_CACHE_KEY)
        if isinstance(cached, list) and cached:
            return [type_id for type_id in cached if isinstance(type_id, str)]

        report_types = await self.reporting_client.list_report_types(access_token)
        type_ids = [
            item["id"].strip()
            for item in report_types
            if isinstance(item.get("id"), str) and item["id"].strip()
        ]
        # An empty catalog is usually a transient or permission problem; don't pin it
        if type_ids:
            await self.cache.set_json(REPORT_TYPE_CACHE_KEY, type_ids, ttl_s=REPORT_TYPE_CACHE_TTL)
        return type_ids

    async def ensure_jobs(
        self, connection: Connection, access_token: str
    ) -> dict[ReportKey, ReportingJobRecord]:
        """
        Stored record, else an existing API job (by name and type, then by type),
        else a newly created job. Keys whose report type is unavailable are skipped.
        """
        records = await self.job_records.get_for_channel(connection.channel_id)
        available_ids = await self.get_report_type_ids(access_token)
        remote_jobs: list[dict[str, Any]] | None = None

        for spec in build_report_type_specs():
            type_id = ""
            for rule in spec.rules:
                type_id = resolve_report_type_id(available_ids, rule)
                if type_id:
                    break
            if not type_id:
                logger.debug(
                    "Report type unavailable",
                    channel_id=connection.channel_id,
                    report_key=spec.key.value,
                )
                continue

            existing = records.get(spec.key)
            if existing and existing.job_id:
                continue

            name = build_job_name(connection.channel_id, spec)
            if remote_jobs is None:
                remote_jobs = await self.reporting_client.list_jobs(access_token)

            matched = next(
                (
                    job
                    for job in remote_jobs
                    if job.get("reportTypeId") == type_id and job.get("name") == name
                ),
                None,
            ) or next((job for job in remote_jobs if job.get("reportTypeId") == type_id), None)

            job = matched or await self.reporting_client.create_job(access_token, type_id, name)
            if not job.get("id"):
                continue

            record = ReportingJobRecord(
                channel_id=connection.channel_id,
                report_key=spec.key,
                job_id=job["id"],
                name=job.get("name") or name,
                report_type_id=type_id,
            )
            await self.job_records.save(record)
            records[spec.key] = record
            logger.info(
                "Reporting job ready",
                channel_id=connection.channel_id,
                report_key=spec.key.value,
                job_id=record.job_id,
                adopted=matched is not None,
            )

        return records

    # =================================================================
    # Report selection
    # =================================================================

    async def get_report_data(
        self, access_token: str, job_id: str, parser: ReportParser
    ) -> ParsedReport | None:
        """
        Newest export of a job that parses to at least one row.

        The cached parse is reused only while it is the newest listed export.
        A newer export is downloaded; the scan stops at the cached id since
        everything older was already considered. When every scanned export is
        empty the most recent one is cached instead.
        """
        reports = order_reports(await self.reporting_client.list_reports(access_token, job_id))
        if not reports:
            return None

        cached = await self.parsed_reports.get(job_id)
        if cached and reports[0].get("id") == cached.report_id:
            return cached

        fallback_empty: ParsedReport | None = None
        for report in reports[:MAX_REPORTS_SCANNED]:
            if cached and report.get("id") == cached.report_id:
                if cached.data or fallback_empty is None:
                    return cached
                break
            if not report.get("downloadUrl") or not report.get("id"):
                continue

            content = await self.reporting_client.download_report(
                access_token, report["downloadUrl"]
            )
            headers, rows = parse_reporting_csv(content)
            parsed = ParsedReport(
                report_id=report["id"],
                created_at=report.get("createTime") or report.get("startTime") or "",
                data=parser(headers, rows),
            )
            if parsed.data:
                await self.parsed_reports.put(job_id, parsed)
                return parsed
            if fallback_empty is None:
                fallback_empty = parsed

        if fallback_empty is not None:
            logger.debug("All scanned exports empty", job_id=job_id, report_id=fallback_empty.report_id)
            await self.parsed_reports.put(job_id, fallback_empty)
        return fallback_empty

    # =================================================================
    # Summary
    # =================================================================

    async def collect_rows(
        self, authorized: AuthorizedConnection
    ) -> dict[ReportKey, list[dict[str, Any]]]:
        """Parsed rows per report key for one connection, tagged with channel_id."""
        rows: dict[ReportKey, list[dict[str, Any]]] = defaultdict(list)
        jobs = await self.ensure_jobs(authorized.connection, authorized.access_token)

        for key, parser in REPORT_PARSERS.items():
            record = jobs.get(key)
            if not record:
                continue
            report = await self.get_report_data(authorized.access_token, record.job_id, parser)
            if report and report.data:
                rows[key].extend({**row, "channel_id": authorized.channel_id} for row in report.data)
        return rows

    async def build_reporting_summary(
        self, connections: Sequence[AuthorizedConnection]
    ) -> ReportingSummary:
        rows: dict[ReportKey, list[dict[str, Any]]] = defaultdict(list)
        for authorized in connections:
            try:
                for key, values in (await self.collect_rows(authorized)).items():
                    rows[key].extend(values)
            except (YouTubeApiError, DatabaseError) as e:
                logger.warning(
                    "Reporting data unavailable for channel",
                    channel_id=authorized.channel_id,
                    error=str(e),
                    error_type=type(e).__name__,
                )

        channel_rows = rows[ReportKey.CHANNEL_DAILY]
        video_rows = rows[ReportKey.VIDEO_DAILY]

        buckets = SeriesBuckets()
        for row in channel_rows or video_rows:
            buckets.add(row["day"], views=row["views"], engagements=row["likes"] + row["comments"])
        for row in video_rows:
            buckets.add(row["day"], posts=1)

        return ReportingSummary(
            time_series=buckets.build(),
            top_posts=await self._build_top_posts(video_rows, connections),
            age_distribution=self._distribution(
                rows[ReportKey.DEMOGRAPHICS], "age_group", normalize_age_label
            ),
            gender_distribution=self._distribution(
                rows[ReportKey.DEMOGRAPHICS], "gender", normalize_gender_label
            ),
            top_geos=self._distribution(
                rows[ReportKey.GEO], "country", resolve_country_label, limit=TOP_GEOS
            ),
            channel_follower_deltas=compute_follower_deltas(channel_rows),
        )

    @staticmethod
    def _distribution(rows, label_field, normalize, limit=None):
        totals: dict[str, float] = defaultdict(float)
        for row in rows:
            label = normalize(row.get(label_field))
            if label:
                totals[label] += row.get("views") or row.get("viewer_percentage") or 0
        return build_percent_list(totals, empty_when_zero_total=False, limit=limit)

    async def _build_top_posts(
        self,
        video_rows: list[dict[str, Any]],
        connections: Sequence[AuthorizedConnection],
    ) -> list[TopPost]:
        totals: dict[str, dict[str, Any]] = {}
        for row in video_rows:
            entry = totals.setdefault(
                row["video_id"], {"views": 0.0, "engagements": 0.0, "channel_id": row["channel_id"]}
            )
            entry["views"] += row["views"]
            entry["engagements"] += row["likes"] + row["comments"]

        ranked = sorted(totals.items(), key=lambda item: item[1]["views"], reverse=True)
        ranked = ranked[:TOP_POSTS_LIMIT]
        titles = await self._fetch_titles(ranked, connections)

        return [
            TopPost(
                id=video_id,
                title=titles.get(video_id) or UNTITLED_VIDEO,
                views=info["views"],
                engagement_rate=engagement_rate(info["views"], info["engagements"]),
            )
            for video_id, info in ranked
        ]

    async def _fetch_titles(self, ranked, connections) -> dict[str, str]:
        ids_by_channel: dict[str, list[str]] = defaultdict(list)
        for video_id, info in ranked:
            ids_by_channel[info["channel_id"]].append(video_id)

        tokens = {authorized.channel_id: authorized.access_token for authorized in connections}
        titles: dict[str, str] = {}
        for channel_id, video_ids in ids_by_channel.items():
            token = tokens.get(channel_id)
            if not token:
                continue
            try:
                videos = await self.data_client.get_videos(token, video_ids)
            except YouTubeApiError as e:
                logger.warning("Video title lookup failed", channel_id=channel_id, error=str(e))
                continue
            for video in videos:
                if video["id"]:
                    titles[video["id"]] = video["title"] or UNTITLED_VIDEO
        return titles


reporting_job_manager = ReportingJobManager()
