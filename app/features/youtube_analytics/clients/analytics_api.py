"""
YouTube Analytics API v2 client (reports.query).
"""

from typing import Any

from app.features.youtube_analytics.clients.base import GoogleApiClient

ANALYTICS_API_URL = "https://youtubeanalytics.googleapis.com/v2/reports"


def rows_from_payload(payload: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Zip columnHeaders names onto each row."""
    if not isinstance(payload, dict):
        return []
    headers = payload.get("columnHeaders") or []
    rows = payload.get("rows") or []
    if not headers or not rows:
        return []

    names = [header.get("name") if isinstance(header, dict) else None for header in headers]
    return [
        {name: value for name, value in zip(names, row) if name}
        for row in rows
        if isinstance(row, list)
    ]


class YouTubeAnalyticsClient(GoogleApiClient):
    service_name = "youtube_analytics"

    async def query(self, access_token: str, params: dict[str, str]) -> list[dict[str, Any]]:
        """
        Run one reports.query call and return its rows as dicts.

        Raises:
            YouTubeApiError: the API rejected the query
        """
        payload = await self._get_json(ANALYTICS_API_URL, access_token, "reports.query", params)
        return rows_from_payload(payload)


youtube_analytics_client = YouTubeAnalyticsClient()
