"""
Unit tests for the Data API snapshot fetcher.
"""

import pytest

from app.features.youtube_analytics.domain import AuthorizedConnection
from app.features.youtube_analytics.errors import YouTubeApiError
from app.features.youtube_analytics.pipeline.snapshot_service import SnapshotFetcher
from tests.fakes import make_connection


def _video(video_id, views, likes=0, comments=0, published_at="2024-03-01T10:00:00Z", title=""):
    return {
        "id": video_id,
        "title": title,
        "published_at": published_at,
        "views": float(views),
        "likes": float(likes),
        "comments": float(comments),
    }


VIDEOS = {
    "v1": _video("v1", 100, likes=5, comments=5, title="Big one"),
    "v2": _video("v2", 50, published_at="2024-03-02T08:00:00Z"),
    "v3": _video("v3", 20, likes=2, published_at="2024-03-05T08:00:00Z", title="Newest"),
}


class FakeDataClient:
    def __init__(self, channels, search=None, failing_search=(), videos=None):
        self.channels = channels
        self.search = search or {}
        self.failing_search = set(failing_search)
        self.videos = videos or VIDEOS

    async def get_channel(self, access_token, channel_id=None):
        channel = self.channels.get(channel_id)
        if channel is None:
            raise YouTubeApiError("channel_not_found", status_code=404)
        return channel

    async def search_video_ids(self, access_token, channel_id, order, max_results):
        if channel_id in self.failing_search:
            raise YouTubeApiError("quotaExceeded", status_code=403)
        return self.search.get((channel_id, order), [])[:max_results]

    async def get_videos(self, access_token, video_ids):
        return [self.videos[video_id] for video_id in video_ids]


def _authorized(channel_id):
    return AuthorizedConnection(connection=make_connection(channel_id), access_token="tok")


@pytest.mark.asyncio
async def test_snapshot_summary_across_channels():
    client = FakeDataClient(
        channels={
            "UC1": {
                "id": "UC1",
                "title": "",
                "statistics": {
                    "viewCount": "0",
                    "subscriberCount": "500",
                    "hiddenSubscriberCount": True,
                },
            },
            "UC3": {
                "id": "UC3",
                "title": "Third",
                "statistics": {"viewCount": "900", "subscriberCount": "12"},
            },
        },
        search={
            ("UC1", "viewCount"): ["v1", "v2"],
            ("UC1", "date"): ["v3", "v2"],
        },
        failing_search={"UC3"},
    )
    fetcher = SnapshotFetcher(client)

    summary = await fetcher.build_snapshot_summary(
        [_authorized("UC1"), _authorized("UC2"), _authorized("UC3")]
    )

    first, third = summary.channels
    assert first.name == "Channel UC1"
    # viewCount 0 falls back to the largest video seen
    assert first.views == 100
    assert first.followers == 0
    assert first.engagement_rate == pytest.approx(10 / 150 * 100)

    assert third.name == "Third"
    assert third.views == 900
    assert third.followers == 12
    assert third.engagement_rate == 0

    assert [(post.id, post.title) for post in summary.top_posts] == [
        ("v1", "Big one"),
        ("v2", "Untitled video"),
    ]
    assert [(p.date, p.views, p.engagements, p.posts) for p in summary.time_series] == [
        ("Mar 2", 50, 0, 1),
        ("Mar 5", 20, 2, 1),
    ]


@pytest.mark.asyncio
async def test_top_posts_ranked_across_channels_and_capped_at_ten():
    videos = {
        f"{channel}-{i}": _video(f"{channel}-{i}", i * 10 + offset)
        for offset, channel in enumerate(["a", "b"])
        for i in range(8)
    }
    client = FakeDataClient(
        channels={
            "UCa": {"id": "UCa", "title": "A", "statistics": {}},
            "UCb": {"id": "UCb", "title": "B", "statistics": {}},
        },
        search={
            ("UCa", "viewCount"): [f"a-{i}" for i in range(7, -1, -1)],
            ("UCb", "viewCount"): [f"b-{i}" for i in range(7, -1, -1)],
        },
        videos=videos,
    )

    summary = await SnapshotFetcher(client).build_snapshot_summary(
        [_authorized("UCa"), _authorized("UCb")]
    )

    # six searched per channel, twelve ranked, ten kept
    assert len(summary.top_posts) == 10
    assert [post.id for post in summary.top_posts[:4]] == ["b-7", "a-7", "b-6", "a-6"]
    assert summary.top_posts[-1].id == "a-3"


@pytest.mark.asyncio
async def test_no_connections_gives_empty_snapshot():
    summary = await SnapshotFetcher(FakeDataClient(channels={})).build_snapshot_summary([])
    assert summary.channels == []
    assert summary.top_posts == []
    assert summary.time_series == []
