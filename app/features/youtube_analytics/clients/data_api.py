"""
YouTube Data API v3 client: channel statistics, video search and details.
"""

from typing import Any

from app.features.youtube_analytics.clients.base import GoogleApiClient
from app.features.youtube_analytics.errors import YouTubeApiError
from app.features.youtube_analytics.pipeline.labels import to_number

DATA_API_BASE_URL = "https://www.googleapis.com/youtube/v3"
USERINFO_URL = "https://www.googleapis.com/oauth2/v3/userinfo"
MAX_VIDEO_IDS_PER_REQUEST = 50


class YouTubeDataClient(GoogleApiClient):
    service_name = "youtube_data"

    async def get_channel(self, access_token: str, channel_id: str | None = None) -> dict[str, Any]:
        """
        Channel snippet + statistics; the token owner's channel when no id is given.

        Returns:
            {"id", "title", "statistics"}

        Raises:
            YouTubeApiError: API failure or no channel behind the account
        """
        params = {"part": "snippet,statistics", "maxResults": "1"}
        if channel_id:
            params["id"] = channel_id
        else:
            params["mine"] = "true"

        payload = await self._get_json(
            f"{DATA_API_BASE_URL}/channels", access_token, "channels.list", params
        )
        items = payload.get("items") or []
        if not items:
            raise YouTubeApiError(
                "No YouTube channel was found for this Google account.", reason="channel_not_found"
            )

        channel = items[0]
        return {
            "id": channel.get("id") or "",
            "title": ((channel.get("snippet") or {}).get("title") or "").strip(),
            "statistics": channel.get("statistics") or {},
        }

    async def search_video_ids(
        self, access_token: str, channel_id: str, order: str, max_results: int
    ) -> list[str]:
        if not channel_id:
            return []
        params = {
            "part": "snippet",
            "channelId": channel_id,
            "order": order,
            "maxResults": str(max_results),
            "type": "video",
        }
        payload = await self._get_json(
            f"{DATA_API_BASE_URL}/search", access_token, "search.list", params
        )
        video_ids = []
        for item in payload.get("items") or []:
            video_id = (item.get("id") or {}).get("videoId")
            if isinstance(video_id, str) and video_id:
                video_ids.append(video_id)
        return video_ids

    async def get_videos(self, access_token: str, video_ids: list[str]) -> list[dict[str, Any]]:
        """Snippet + statistics for up to 50 videos, flattened."""
        ids = video_ids[:MAX_VIDEO_IDS_PER_REQUEST]
        if not ids:
            return []
        params = {"part": "snippet,statistics", "id": ",".join(ids)}
        payload = await self._get_json(
            f"{DATA_API_BASE_URL}/videos", access_token, "videos.list", params
        )

        videos = []
        for item in payload.get("items") or []:
            snippet = item.get("snippet") or {}
            statistics = item.get("statistics") or {}
            videos.append(
                {
                    "id": item.get("id") if isinstance(item.get("id"), str) else "",
                    "title": (snippet.get("title") or "").strip(),
                    "published_at": snippet.get("publishedAt") or "",
                    "views": to_number(statistics.get("viewCount")),
                    "likes": to_number(statistics.get("likeCount")),
                    "comments": to_number(statistics.get("commentCount")),
                }
            )
        return videos

    async def get_profile_name(self, access_token: str) -> str:
        """Google account display name, used when a channel has no title."""
        payload = await self._get_json(USERINFO_URL, access_token, "userinfo")
        name = payload.get("name")
        return name.strip() if isinstance(name, str) else ""


youtube_data_client = YouTubeDataClient()
