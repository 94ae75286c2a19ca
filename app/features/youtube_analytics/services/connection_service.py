"""
Connected YouTube channels: listing, disconnecting and the OAuth connect step.
"""

from app.features.youtube_analytics.clients import (
    GoogleOAuthClient,
    TokenResponse,
    YouTubeDataClient,
    google_oauth_client,
    youtube_data_client,
)
from app.features.youtube_analytics.domain import DEFAULT_CHANNEL_NAME, Connection
from app.features.youtube_analytics.errors import YouTubeApiError
from app.features.youtube_analytics.repository import (
    ConnectionRepository,
    SummaryCacheRepository,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def normalize_channel_name(value: str | None) -> str:
    return (value or "").strip().lower()


class YouTubeConnectionError(Exception):
    """Connecting a channel failed; the message is shown to the user."""


class ConnectionService:
    def __init__(
        self,
        connections=ConnectionRepository,
        cache=SummaryCacheRepository,
        oauth_client: GoogleOAuthClient | None = None,
        data_client: YouTubeDataClient | None = None,
    ):
        self.connections = connections
        self.cache = cache
        self.oauth_client = oauth_client or google_oauth_client
        self.data_client = data_client or youtube_data_client

    async def list_connections(self, user_id: str) -> dict:
        channels = await self.connections.list_channels(user_id)
        return {
            "count": len(channels),
            "connections": [
                {
                    "channelId": channel["channel_id"],
                    "channelName": channel["channel_name"] or DEFAULT_CHANNEL_NAME,
                }
                for channel in channels
            ],
        }

    async def disconnect(self, user_id: str, channel_names: list[str] | None = None) -> dict:
        """
        Remove the named channels (case-insensitive, trimmed) or, with no
        names, every channel. The cached summary is always invalidated.
        """
        names = [name for name in channel_names or [] if isinstance(name, str) and name.strip()]

        if not names:
            deleted = await self.connections.delete_all(user_id)
            await self.cache.delete(user_id)
            logger.info("YouTube channels disconnected", user_id=user_id, deleted=deleted)
            return {"ok": True, "remaining": 0}

        blocked = {normalize_channel_name(name) for name in names}
        channels = await self.connections.list_channels(user_id)
        to_delete = [
            channel["channel_id"]
            for channel in channels
            if normalize_channel_name(channel["channel_name"]) in blocked
        ]
        if to_delete:
            await self.connections.delete_channels(user_id, to_delete)
        await self.cache.delete(user_id)

        remaining = len(channels) - len(to_delete)
        logger.info(
            "YouTube channels disconnected",
            user_id=user_id,
            deleted=len(to_delete),
            remaining=remaining,
        )
        return {"ok": True, "remaining": remaining}

    async def connect(self, user_id: str, authorization_code: str) -> Connection:
        """
        Exchange the code, load the channel behind the account and save it.

        Raises:
            GoogleOAuthError: code exchange failed
            YouTubeConnectionError: no usable channel behind the account
        """
        tokens: TokenResponse = await self.oauth_client.exchange_code_for_tokens(authorization_code)

        try:
            channel = await self.data_client.get_channel(tokens.access_token)
        except YouTubeApiError as e:
            logger.error("YouTube connect failed while loading channel", user_id=user_id, error=str(e))
            raise YouTubeConnectionError(
                str(e) or "Unable to load YouTube channel details."
            ) from e
        if not channel["id"]:
            raise YouTubeConnectionError("Unable to load YouTube channel details.")

        display_name = channel["title"] or await self._profile_name(tokens.access_token)
        connection = Connection(
            user_id=user_id,
            channel_id=channel["id"],
            channel_name=display_name or DEFAULT_CHANNEL_NAME,
            access_token=tokens.access_token,
            # None keeps the stored refresh token and connected_at (see upsert)
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            connected_at=None,
        )
        await self.connections.upsert(connection)

        logger.info(
            "YouTube channel connected",
            user_id=user_id,
            channel_id=connection.channel_id,
            has_refresh_token=bool(tokens.refresh_token),
        )
        return connection

    async def _profile_name(self, access_token: str) -> str:
        try:
            return await self.data_client.get_profile_name(access_token)
        except YouTubeApiError as e:
            logger.debug("Google profile lookup failed", error=str(e))
            return ""


connection_service = ConnectionService()
