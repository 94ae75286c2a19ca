"""
Row parsers for the four Reporting API exports.

Each parser takes the (headers, rows) pair from parse_reporting_csv and
returns typed dict rows. A parser returns [] when its required columns are
missing, so an export of the wrong shape reads as "no data".
"""

from collections.abc import Callable
from typing import Any

from app.features.youtube_analytics.domain import ReportKey
from app.features.youtube_analytics.pipeline.csv_parser import find_header_index
from app.features.youtube_analytics.pipeline.labels import to_number

ReportParser = Callable[[list[str], list[list[str]]], list[dict[str, Any]]]

DAY_COLUMNS = ["day", "date"]
VIEWER_PERCENTAGE_COLUMNS = ["viewerPercentage", "viewer_percentage"]
SUBSCRIBERS_GAINED_COLUMNS = [
    "subscribersGained",
    "subscribers_gained",
    "subscribersGainedFromChannel",
]
SUBSCRIBERS_LOST_COLUMNS = [
    "subscribersLost",
    "subscribers_lost",
    "subscribersLostFromChannel",
]
GEO_COLUMNS = [
    "country",
    "countryCode",
    "country_code",
    "province",
    "provinceCode",
    "province_code",
]


def _cell(row: list[str], index: int) -> str:
    if index < 0 or index >= len(row):
        return ""
    return row[index].strip()


def _number(row: list[str], index: int) -> float:
    return to_number(_cell(row, index)) if index >= 0 else 0.0


def parse_video_rows(headers: list[str], rows: list[list[str]]) -> list[dict[str, Any]]:
    day_index = find_header_index(headers, DAY_COLUMNS)
    video_index = find_header_index(headers, ["video", "videoId", "video_id"])
    views_index = find_header_index(headers, ["views"])
    if day_index < 0 or video_index < 0 or views_index < 0:
        return []
    likes_index = find_header_index(headers, ["likes"])
    comments_index = find_header_index(headers, ["comments"])

    parsed = []
    for row in rows:
        day = _cell(row, day_index)
        video_id = _cell(row, video_index)
        if not day or not video_id:
            continue
        parsed.append(
            {
                "day": day,
                "video_id": video_id,
                "views": _number(row, views_index),
                "likes": _number(row, likes_index),
                "comments": _number(row, comments_index),
            }
        )
    return parsed


def parse_channel_rows(headers: list[str], rows: list[list[str]]) -> list[dict[str, Any]]:
    """
    Channel daily totals. Subscriber columns are None (not 0) when the export
    does not carry them, so callers can tell "no metric" from "no change".
    """
    day_index = find_header_index(headers, DAY_COLUMNS)
    views_index = find_header_index(headers, ["views"])
    if day_index < 0 or views_index < 0:
        return []
    likes_index = find_header_index(headers, ["likes"])
    comments_index = find_header_index(headers, ["comments"])
    gained_index = find_header_index(headers, SUBSCRIBERS_GAINED_COLUMNS)
    lost_index = find_header_index(headers, SUBSCRIBERS_LOST_COLUMNS)

    parsed = []
    for row in rows:
        day = _cell(row, day_index)
        if not day:
            continue
        parsed.append(
            {
                "day": day,
                "views": _number(row, views_index),
                "likes": _number(row, likes_index),
                "comments": _number(row, comments_index),
                "subscribers_gained": _number(row, gained_index) if gained_index >= 0 else None,
                "subscribers_lost": _number(row, lost_index) if lost_index >= 0 else None,
            }
        )
    return parsed


def parse_demographics_rows(headers: list[str], rows: list[list[str]]) -> list[dict[str, Any]]:
    age_index = find_header_index(headers, ["ageGroup", "age_group"])
    gender_index = find_header_index(headers, ["gender"])
    if age_index < 0 and gender_index < 0:
        return []
    percent_index = find_header_index(headers, VIEWER_PERCENTAGE_COLUMNS)
    views_index = find_header_index(headers, ["views"])

    parsed = []
    for row in rows:
        age_group = _cell(row, age_index)
        gender = _cell(row, gender_index)
        if not age_group and not gender:
            continue
        parsed.append(
            {
                "age_group": age_group,
                "gender": gender,
                "viewer_percentage": _number(row, percent_index),
                "views": _number(row, views_index),
            }
        )
    return parsed


def parse_geo_rows(headers: list[str], rows: list[list[str]]) -> list[dict[str, Any]]:
    country_index = find_header_index(headers, GEO_COLUMNS)
    if country_index < 0:
        return []
    percent_index = find_header_index(headers, VIEWER_PERCENTAGE_COLUMNS)
    views_index = find_header_index(headers, ["views"])

    parsed = []
    for row in rows:
        country = _cell(row, country_index)
        if not country:
            continue
        parsed.append(
            {
                "country": country,
                "viewer_percentage": _number(row, percent_index),
                "views": _number(row, views_index),
            }
        )
    return parsed


REPORT_PARSERS: dict[ReportKey, ReportParser] = {
    ReportKey.CHANNEL_DAILY: parse_channel_rows,
    ReportKey.VIDEO_DAILY: parse_video_rows,
    ReportKey.DEMOGRAPHICS: parse_demographics_rows,
    ReportKey.GEO: parse_geo_rows,
}
