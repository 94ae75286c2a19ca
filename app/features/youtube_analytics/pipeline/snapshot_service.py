"""
Snapshot Fetcher: low-latency Data API totals per connected channel.
"""

from collections.abc import Sequence

from app.features.youtube_analytics.clients import YouTubeDataClient, youtube_data_client
from app.features.youtube_analytics.domain import (
    DEFAULT_CHANNEL_NAME,
    UNTITLED_VIDEO,
    AuthorizedConnection,
    ChannelSummary,
    SnapshotSummary,
    TopPost,
)
from app.features.youtube_analytics.errors import YouTubeApiError
from app.features.youtube_analytics.pipeline.aggregation import SeriesBuckets, engagement_rate
from app.features.youtube_analytics.pipeline.labels import to_number
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

TOP_VIDEOS_PER_CHANNEL = 6
RECENT_VIDEOS_PER_CHANNEL = 8
TOP_POSTS_LIMIT = 10


def _video_engagements(video: dict) -> float:
    return video["likes"] + video["comments"]


class SnapshotFetcher:
    def __init__(self, client: YouTubeDataClient | None = None):
        self.client = client or youtube_data_client

    async def _fetch_videos(self, token: str, channel_id: str, order: str, limit: int) -> list[dict]:
        """Video details for one search ordering; API failures read as no videos."""
        try:
            video_ids = await self.client.search_video_ids(token, channel_id, order, limit)
            return await self.client.get_videos(token, video_ids)
        except YouTubeApiError as e:
            logger.warning(
                "Video lookup failed", channel_id=channel_id, order=order, error=str(e)
            )
            return []

    async def _fetch_channel(self, authorized: AuthorizedConnection):
        token = authorized.access_token
        channel = await self.client.get_channel(token, authorized.channel_id or None)

        top_videos = await self._fetch_videos(
            token, channel["id"], "viewCount", TOP_VIDEOS_PER_CHANNEL
        )
        recent_videos = await self._fetch_videos(
            token, channel["id"], "date", RECENT_VIDEOS_PER_CHANNEL
        )
        return channel, top_videos, recent_videos

    async def build_snapshot_summary(
        self, connections: Sequence[AuthorizedConnection]
    ) -> SnapshotSummary:
        channels: list[ChannelSummary] = []
        all_top_videos: list[dict] = []
        buckets = SeriesBuckets()

        for authorized in connections:
            try:
                channel, top_videos, recent_videos = await self._fetch_channel(authorized)
            except YouTubeApiError as e:
                logger.warning(
                    "Snapshot unavailable for channel",
                    channel_id=authorized.channel_id,
                    status_code=e.status_code,
                    error=str(e),
                )
                continue
            if not channel["id"]:
                continue

            statistics = channel["statistics"]
            channel_views = to_number(statistics.get("viewCount"))
            largest_video = max(
                (video["views"] for video in top_videos + recent_videos), default=0.0
            )
            hidden = statistics.get("hiddenSubscriberCount") is True
            top_views = sum(video["views"] for video in top_videos)
            top_engagements = sum(_video_engagements(video) for video in top_videos)

            channels.append(
                ChannelSummary(
                    id=channel["id"],
                    name=channel["title"]
                    or authorized.connection.channel_name
                    or DEFAULT_CHANNEL_NAME,
                    views=channel_views if channel_views > 0 else largest_video,
                    engagement_rate=engagement_rate(top_views, top_engagements),
                    followers=0 if hidden else to_number(statistics.get("subscriberCount")),
                )
            )
            all_top_videos.extend(top_videos)

            for video in recent_videos:
                published = video["published_at"][:10]
                buckets.add(
                    published,
                    views=video["views"],
                    engagements=_video_engagements(video),
                    posts=1,
                )

        ranked = sorted(
            (video for video in all_top_videos if video["id"]),
            key=lambda video: video["views"],
            reverse=True,
        )
        top_posts = [
            TopPost(
                id=video["id"],
                title=video["title"] or UNTITLED_VIDEO,
                views=video["views"],
                engagement_rate=engagement_rate(video["views"], _video_engagements(video)),
            )
            for video in ranked[:TOP_POSTS_LIMIT]
        ]

        return SnapshotSummary(channels=channels, top_posts=top_posts, time_series=buckets.build())


snapshot_fetcher = SnapshotFetcher()
