"""
Analytics Range Resolver.

Queries the YouTube Analytics API per connection for total views, a daily
series and audience breakdowns. Audience queries walk the 365/90/28-day
windows and an ordered list of candidate queries until one returns rows.
"""

from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import date, timedelta
from typing import Any

from app.features.youtube_analytics.clients import YouTubeAnalyticsClient, youtube_analytics_client
from app.features.youtube_analytics.domain import AnalyticsSummary, AuthorizedConnection
from app.features.youtube_analytics.errors import YouTubeApiError
from app.features.youtube_analytics.pipeline.aggregation import (
    TOP_GEOS,
    SeriesBuckets,
    build_percent_list,
)
from app.features.youtube_analytics.pipeline.labels import (
    normalize_age_label,
    normalize_gender_label,
    resolve_country_label,
    to_number,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TOTALS_WINDOW_DAYS = 365
AUDIENCE_WINDOWS_DAYS = (365, 90, 28)
MINE = "channel==MINE"

AGE_GENDER_CANDIDATES = [{"metrics": "viewerPercentage", "dimensions": "ageGroup,gender"}]
AGE_CANDIDATES = [{"metrics": "viewerPercentage", "dimensions": "ageGroup"}]
GENDER_CANDIDATES = [{"metrics": "viewerPercentage", "dimensions": "gender"}]
GEO_CANDIDATES = [
    {"metrics": "views", "dimensions": "country", "sort": "-views"},
    {"metrics": "views", "dimensions": "country"},
    {
        "metrics": "estimatedMinutesWatched",
        "dimensions": "country",
        "sort": "-estimatedMinutesWatched",
    },
    {"metrics": "estimatedMinutesWatched", "dimensions": "country"},
]


def build_date_range(days: int, today: date | None = None) -> dict[str, str]:
    """Inclusive window of `days` days ending today."""
    end = today or date.today()
    start = end - timedelta(days=max(0, days - 1))
    return {"startDate": start.isoformat(), "endDate": end.isoformat()}


def audience_magnitude(row: dict[str, Any], total_views: float) -> float:
    """
    Weight of one audience row: viewerPercentage scaled to views when the
    total is known, else the percent itself; then watch minutes; then views.
    """
    if "viewerPercentage" in row:
        percent = to_number(row["viewerPercentage"])
        return percent / 100 * total_views if total_views else percent
    if "estimatedMinutesWatched" in row:
        return to_number(row["estimatedMinutesWatched"])
    return to_number(row.get("views"))


class AnalyticsRangeResolver:
    def __init__(
        self,
        client: YouTubeAnalyticsClient | None = None,
        today: Callable[[], date] = date.today,
    ):
        self.client = client or youtube_analytics_client
        self.today = today

    async def _query(
        self, authorized: AuthorizedConnection, params: dict[str, str], window: dict[str, str]
    ) -> list[dict[str, Any]] | None:
        """
        Rows for one query, scoped to the channel id first and to MINE on failure.

        Returns:
            None when both attempts failed; [] is a successful empty result
        """
        channel_id = authorized.channel_id
        preferred = f"channel=={channel_id}" if channel_id else MINE
        attempts = [preferred] if preferred == MINE else [preferred, MINE]

        for ids in attempts:
            try:
                return await self.client.query(
                    authorized.access_token, {**window, **params, "ids": ids}
                )
            except YouTubeApiError as e:
                logger.debug(
                    "Analytics query failed",
                    channel_id=channel_id,
                    ids=ids,
                    metrics=params.get("metrics"),
                    dimensions=params.get("dimensions"),
                    status_code=e.status_code,
                    error=str(e),
                )
        return None

    async def _first_rows(
        self,
        authorized: AuthorizedConnection,
        candidates: list[dict[str, str]],
        windows: list[dict[str, str]],
    ) -> list[dict[str, Any]]:
        for window in windows:
            for candidate in candidates:
                rows = await self._query(authorized, candidate, window)
                if rows:
                    return rows
        return []

    async def build_analytics_summary(
        self, connections: Sequence[AuthorizedConnection]
    ) -> AnalyticsSummary:
        today = self.today()
        totals_window = build_date_range(TOTALS_WINDOW_DAYS, today)
        audience_windows = [build_date_range(days, today) for days in AUDIENCE_WINDOWS_DAYS]

        buckets = SeriesBuckets()
        ages: dict[str, float] = defaultdict(float)
        genders: dict[str, float] = defaultdict(float)
        geos: dict[str, float] = defaultdict(float)

        for authorized in connections:
            total_rows = await self._query(authorized, {"metrics": "views"}, totals_window) or []
            total_views = to_number(total_rows[0].get("views")) if total_rows else 0.0

            daily_rows = await self._query(
                authorized,
                {"metrics": "views,likes,comments", "dimensions": "day", "sort": "day"},
                totals_window,
            )
            for row in daily_rows or []:
                if not row.get("day"):
                    continue
                buckets.add(
                    str(row["day"]),
                    views=to_number(row.get("views")),
                    engagements=to_number(row.get("likes")) + to_number(row.get("comments")),
                )

            rows_found = 0
            demographic_rows = await self._first_rows(
                authorized, AGE_GENDER_CANDIDATES, audience_windows
            )
            if demographic_rows:
                rows_found += self._accumulate(
                    demographic_rows, "ageGroup", normalize_age_label, ages, total_views
                )
                rows_found += self._accumulate(
                    demographic_rows, "gender", normalize_gender_label, genders, total_views
                )
            else:
                age_rows = await self._first_rows(authorized, AGE_CANDIDATES, audience_windows)
                rows_found += self._accumulate(
                    age_rows, "ageGroup", normalize_age_label, ages, total_views
                )
                gender_rows = await self._first_rows(authorized, GENDER_CANDIDATES, audience_windows)
                rows_found += self._accumulate(
                    gender_rows, "gender", normalize_gender_label, genders, total_views
                )

            geo_rows = await self._first_rows(authorized, GEO_CANDIDATES, audience_windows)
            rows_found += self._accumulate(
                geo_rows, "country", resolve_country_label, geos, total_views
            )

            if not rows_found:
                logger.info(
                    "Audience rows unavailable for channel",
                    channel_id=authorized.channel_id,
                    start_date=totals_window["startDate"],
                    end_date=totals_window["endDate"],
                )

        return AnalyticsSummary(
            time_series=buckets.build(),
            age_distribution=build_percent_list(ages),
            gender_distribution=build_percent_list(genders),
            top_geos=build_percent_list(geos, limit=TOP_GEOS),
        )

    @staticmethod
    def _accumulate(rows, field, normalize, totals, total_views) -> int:
        counted = 0
        for row in rows:
            label = normalize(row.get(field))
            if not label:
                continue
            totals[label] += audience_magnitude(row, total_views)
            counted += 1
        return counted


analytics_range_resolver = AnalyticsRangeResolver()
