"""
OAuth state for the YouTube connect flow.

The state handed to Google maps back to the user who started the flow, so
the callback (a plain browser redirect without our auth header) knows whom
to attach the channel to. States are single use.
"""

import secrets

from app.infrastructure.observability.logging import get_logger
from app.services.redis_client import fast_redis

logger = get_logger(__name__)

STATE_TTL_SECONDS = 900  # 15 minutes
STATE_KEY_PREFIX = "youtube_oauth_state"
STATE_LENGTH = 32  # bytes


class OAuthStateError(Exception):
    """State could not be stored."""


class OAuthStateService:
    def __init__(self, redis=None):
        self.redis = redis or fast_redis

    def _redis_key(self, state: str) -> str:
        return f"{STATE_KEY_PREFIX}:{state}"

    async def generate_state(self, user_id: str) -> str:
        state = secrets.token_urlsafe(STATE_LENGTH)
        stored = await self.redis.set_with_ttl(self._redis_key(state), user_id, STATE_TTL_SECONDS)
        if not stored:
            logger.error("Failed to store OAuth state", user_id=user_id)
            raise OAuthStateError("Unable to start the YouTube connection flow.")

        logger.info("OAuth state generated", user_id=user_id, ttl_seconds=STATE_TTL_SECONDS)
        return state

    async def consume_state(self, state: str) -> str | None:
        """User id the state was issued for, or None if unknown/expired/used."""
        if not state:
            return None
        user_id = await self.redis.pop(self._redis_key(state))
        if not user_id:
            logger.warning("OAuth state not found", state_preview=state[:8] + "...")
            return None
        return user_id


oauth_state_service = OAuthStateService()
