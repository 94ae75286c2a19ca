"""
Token Lifecycle Manager.

Keeps each connection's access token usable. A refresh is attempted when the
token is missing or expires within the buffer; a failed refresh never raises,
the caller simply gets the old (possibly expired) token back and the API call
that follows will fail for that connection only.
"""

import time
from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

from app.config import settings
from app.db.helpers import DatabaseError
from app.features.youtube_analytics.clients import (
    GoogleOAuthClient,
    GoogleOAuthError,
    google_oauth_client,
)
from app.features.youtube_analytics.domain import Connection
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class TokenStore(Protocol):
    async def persist(self, connection: Connection) -> None: ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class TokenLifecycleManager:
    def __init__(
        self,
        store: TokenStore,
        oauth_client: GoogleOAuthClient | None = None,
        clock: Callable[[], int] = _now_ms,
        buffer_seconds: int | None = None,
    ):
        self.store = store
        self.oauth_client = oauth_client or google_oauth_client
        self.clock = clock
        self.buffer_ms = (
            buffer_seconds if buffer_seconds is not None else settings.TOKEN_REFRESH_BUFFER_SECONDS
        ) * 1000

    def needs_refresh(self, connection: Connection) -> bool:
        if not connection.access_token:
            return True
        return bool(connection.expires_at) and self.clock() >= connection.expires_at - self.buffer_ms

    async def ensure_valid_access_token(
        self, connection: Connection
    ) -> tuple[str | None, Connection]:
        """
        Returns:
            (access_token, connection); the connection is a refreshed copy
            when a refresh happened, else the one passed in
        """
        if not self.needs_refresh(connection):
            return connection.access_token, connection

        if not connection.refresh_token:
            logger.warning(
                "Access token expired and no refresh token stored",
                user_id=connection.user_id,
                channel_id=connection.channel_id,
            )
            return connection.access_token, connection

        try:
            token_response = await self.oauth_client.refresh_access_token(connection.refresh_token)
        except GoogleOAuthError as e:
            logger.warning(
                "YouTube token refresh failed",
                user_id=connection.user_id,
                channel_id=connection.channel_id,
                error_code=e.error_code,
                error=str(e),
            )
            return connection.access_token, connection

        refreshed = replace(
            connection,
            access_token=token_response.access_token,
            refresh_token=token_response.refresh_token or connection.refresh_token,
            expires_at=token_response.expires_at,
        )
        try:
            await self.store.persist(refreshed)
        except DatabaseError as e:
            # The new token is still good for this run; the next run refreshes again
            logger.error(
                "Failed to persist refreshed YouTube token",
                user_id=connection.user_id,
                channel_id=connection.channel_id,
                error=str(e),
            )

        logger.info(
            "YouTube token refreshed",
            user_id=connection.user_id,
            channel_id=connection.channel_id,
            expires_at=refreshed.expires_at,
        )
        return refreshed.access_token, refreshed
