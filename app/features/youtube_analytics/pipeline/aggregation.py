"""
Aggregation engine.

Each source (analytics, reporting, snapshot) produces a partial summary.
The merged Summary picks every field from an ordered list of
(source, filter) producers; the first producer yielding a non-empty list wins.
"""

from collections import defaultdict
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import timedelta
from typing import Any, TypeVar

from app.features.youtube_analytics.domain import (
    AnalyticsSummary,
    ChannelSummary,
    DistributionEntry,
    ReportingSummary,
    SnapshotSummary,
    Summary,
    TimeSeriesPoint,
)
from app.features.youtube_analytics.pipeline.labels import (
    format_date_label,
    iso_day,
    parse_day,
    round_half_up,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

SERIES_POINTS = 8
TOP_GEOS = 5
FOLLOWER_DELTA_WINDOW = timedelta(days=30)


def first_non_empty(
    producers: Iterable[tuple[str, Callable[[], Sequence[T]]]],
) -> tuple[str | None, list[T]]:
    """Run producers in order and return (name, value) of the first non-empty one."""
    for name, produce in producers:
        value = produce()
        if value:
            return name, list(value)
    return None, []


def nonzero_only(series: Sequence[TimeSeriesPoint]) -> list[TimeSeriesPoint]:
    """The series itself if any point carries activity, else []."""
    return list(series) if any(point.is_nonzero() for point in series) else []


def as_is(values: Sequence[T]) -> list[T]:
    return list(values)


# field -> ordered (source, filter) producers
FIELD_PRECEDENCE: dict[str, list[tuple[str, Callable[[Sequence[Any]], list[Any]]]]] = {
    "time_series": [
        ("analytics", nonzero_only),
        ("reporting", nonzero_only),
        ("snapshot", nonzero_only),
        ("analytics", as_is),
        ("reporting", as_is),
        ("snapshot", as_is),
    ],
    "top_posts": [("reporting", as_is), ("snapshot", as_is)],
    "age_distribution": [("analytics", as_is), ("reporting", as_is)],
    "gender_distribution": [("analytics", as_is), ("reporting", as_is)],
    "top_geos": [("analytics", as_is), ("reporting", as_is)],
}


def merge_summary(
    snapshot: SnapshotSummary,
    reporting: ReportingSummary,
    analytics: AnalyticsSummary,
) -> Summary:
    sources = {"snapshot": snapshot, "reporting": reporting, "analytics": analytics}
    merged: dict[str, list[Any]] = {}

    for field_name, precedence in FIELD_PRECEDENCE.items():
        producers = [
            (source_name, _producer(sources[source_name], field_name, pick))
            for source_name, pick in precedence
        ]
        chosen, value = first_non_empty(producers)
        merged[field_name] = value
        logger.debug("Summary field resolved", field=field_name, source=chosen, items=len(value))

    channels = [
        _with_follower_delta(channel, reporting.channel_follower_deltas) for channel in snapshot.channels
    ]
    return Summary(channels=channels, **merged)


def _producer(source: Any, field_name: str, pick: Callable[[Sequence[Any]], list[Any]]):
    return lambda: pick(getattr(source, field_name))


def _with_follower_delta(channel: ChannelSummary, deltas: Mapping[str, float]) -> ChannelSummary:
    delta = deltas.get(channel.id)
    if delta is None:
        return channel
    return channel.model_copy(update={"followers_delta_30d": delta})


class SeriesBuckets:
    """Per-day accumulator for views, engagements and post counts."""

    def __init__(self):
        self._points: dict[str, dict[str, float]] = defaultdict(
            lambda: {"views": 0.0, "engagements": 0.0, "posts": 0}
        )

    def add(self, day: str | None, views: float = 0, engagements: float = 0, posts: int = 0) -> None:
        if not day:
            return
        point = self._points[iso_day(day)]
        point["views"] += views
        point["engagements"] += engagements
        point["posts"] += posts

    def __len__(self) -> int:
        return len(self._points)

    def build(self) -> list[TimeSeriesPoint]:
        """
        Ordered by date, zero-activity days dropped unless every day is zero,
        last 8 points kept and labelled "Mon D".
        """
        ordered = [
            TimeSeriesPoint(
                date=day,
                views=values["views"],
                engagements=values["engagements"],
                posts=int(values["posts"]),
            )
            for day, values in sorted(self._points.items())
        ]
        kept = [point for point in ordered if point.is_nonzero()] or ordered
        return [
            point.model_copy(update={"date": format_date_label(point.date)})
            for point in kept[-SERIES_POINTS:]
        ]


def build_percent_list(
    totals: Mapping[str, float],
    *,
    empty_when_zero_total: bool = True,
    limit: int | None = None,
) -> list[DistributionEntry]:
    """
    Turn per-label magnitudes into whole-number percentages, largest first.

    Negative magnitudes count as 0. When the total is 0 the list is empty,
    or (empty_when_zero_total=False) carries the rounded raw values.
    """
    cleaned = {label: max(0.0, float(value)) for label, value in totals.items() if label}
    total = sum(cleaned.values())
    if not total and empty_when_zero_total:
        return []

    entries = [
        DistributionEntry(
            label=label,
            value=round_half_up(value / total * 100) if total else round_half_up(value),
        )
        for label, value in cleaned.items()
    ]
    entries.sort(key=lambda entry: entry.value, reverse=True)
    return entries[:limit] if limit is not None else entries


def engagement_rate(views: float, engagements: float) -> float:
    return engagements / views * 100 if views else 0.0


def compute_follower_deltas(channel_rows: Iterable[Mapping[str, Any]]) -> dict[str, float]:
    """
    Net subscribers (gained - lost) per channel over the 30 days ending at the
    latest dated row. Empty when no row carries subscriber columns.
    """
    rows = list(channel_rows)
    has_metrics = any(
        row.get("subscribers_gained") is not None or row.get("subscribers_lost") is not None
        for row in rows
    )
    if not rows or not has_metrics:
        return {}

    dated = [(parse_day(row.get("day")), row) for row in rows]
    days = [day for day, _ in dated if day is not None]
    if not days:
        return {}

    cutoff = max(days) - FOLLOWER_DELTA_WINDOW
    deltas: dict[str, float] = {}
    for day, row in dated:
        channel_id = row.get("channel_id")
        if day is None or day < cutoff or not channel_id:
            continue
        net = (row.get("subscribers_gained") or 0) - (row.get("subscribers_lost") or 0)
        deltas[channel_id] = deltas.get(channel_id, 0) + net
    return deltas
