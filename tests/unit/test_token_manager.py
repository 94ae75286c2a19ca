"""
Unit tests for the token lifecycle manager.
"""

from unittest.mock import AsyncMock

import pytest

from app.db.helpers import DatabaseError
from app.features.youtube_analytics.clients import GoogleOAuthError, TokenResponse
from app.features.youtube_analytics.services.token_manager import TokenLifecycleManager
from tests.fakes import FakeTokenStore, make_connection

NOW_MS = 1_700_000_000_000


def _manager(oauth_client, store=None):
    return TokenLifecycleManager(
        store or FakeTokenStore(),
        oauth_client=oauth_client,
        clock=lambda: NOW_MS,
        buffer_seconds=60,
    )


@pytest.mark.asyncio
async def test_fresh_token_is_returned_without_refresh():
    oauth = AsyncMock()
    manager = _manager(oauth)
    connection = make_connection(expires_at=NOW_MS + 10 * 60 * 1000)

    token, current = await manager.ensure_valid_access_token(connection)

    assert token == "token-UC1"
    assert current is connection
    oauth.refresh_access_token.assert_not_called()


@pytest.mark.asyncio
async def test_token_inside_buffer_is_refreshed_and_persisted():
    oauth = AsyncMock()
    oauth.refresh_access_token.return_value = TokenResponse(
        {"access_token": "new-token", "expires_in": 3600}, now_ms=NOW_MS
    )
    store = FakeTokenStore()
    manager = _manager(oauth, store)
    connection = make_connection(expires_at=NOW_MS + 10_000)

    token, current = await manager.ensure_valid_access_token(connection)

    assert token == "new-token"
    assert current.expires_at == NOW_MS + 3600 * 1000
    # Google omitted refresh_token; the stored one is kept
    assert current.refresh_token == "refresh-UC1"
    assert store.persisted == [current]
    oauth.refresh_access_token.assert_awaited_once_with("refresh-UC1")


@pytest.mark.asyncio
async def test_unknown_expiry_is_not_refreshed():
    oauth = AsyncMock()
    manager = _manager(oauth)

    token, _ = await manager.ensure_valid_access_token(make_connection(expires_at=0))

    assert token == "token-UC1"
    oauth.refresh_access_token.assert_not_called()


@pytest.mark.asyncio
async def test_refresh_failure_returns_old_token():
    oauth = AsyncMock()
    oauth.refresh_access_token.side_effect = GoogleOAuthError("revoked", error_code="invalid_grant")
    store = FakeTokenStore()
    manager = _manager(oauth, store)
    connection = make_connection(expires_at=NOW_MS - 1)

    token, current = await manager.ensure_valid_access_token(connection)

    assert token == "token-UC1"
    assert current is connection
    assert store.persisted == []


@pytest.mark.asyncio
async def test_missing_refresh_token_returns_old_token():
    oauth = AsyncMock()
    manager = _manager(oauth)
    connection = make_connection(expires_at=NOW_MS - 1, refresh_token=None)

    token, _ = await manager.ensure_valid_access_token(connection)

    assert token == "token-UC1"
    oauth.refresh_access_token.assert_not_called()


@pytest.mark.asyncio
async def test_missing_access_token_triggers_refresh():
    oauth = AsyncMock()
    oauth.refresh_access_token.return_value = TokenResponse(
        {"access_token": "new-token", "refresh_token": "rotated", "expires_in": 3600},
        now_ms=NOW_MS,
    )
    manager = _manager(oauth)

    token, current = await manager.ensure_valid_access_token(
        make_connection(access_token=None, expires_at=0)
    )

    assert token == "new-token"
    assert current.refresh_token == "rotated"


@pytest.mark.asyncio
async def test_persist_failure_still_returns_new_token():
    oauth = AsyncMock()
    oauth.refresh_access_token.return_value = TokenResponse(
        {"access_token": "new-token", "expires_in": 3600}, now_ms=NOW_MS
    )
    store = AsyncMock()
    store.persist.side_effect = DatabaseError("down", operation="execute_query")
    manager = _manager(oauth, store)

    token, _ = await manager.ensure_valid_access_token(make_connection(expires_at=NOW_MS))

    assert token == "new-token"
