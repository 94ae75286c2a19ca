"""
Persistence for youtube_connections.

Tokens are Fernet-encrypted on the way in and decrypted on the way out; the
rest of the feature only ever sees plaintext Connection objects.
"""

from datetime import UTC, datetime

from app.db.helpers import execute_query, fetch_all, fetch_one, with_db_retry
from app.features.youtube_analytics.domain import DEFAULT_CHANNEL_NAME, Connection
from app.infrastructure.observability.logging import get_logger
from app.services.infrastructure.encryption_service import (
    EncryptionError,
    decrypt_oauth_tokens,
    encrypt_oauth_tokens,
)

logger = get_logger(__name__)


def millis_to_datetime(value: int) -> datetime | None:
    return datetime.fromtimestamp(value / 1000, tz=UTC) if value else None


def datetime_to_millis(value: datetime | None) -> int:
    return int(value.timestamp() * 1000) if value else 0


class ConnectionRepository:
    SELECT_COLUMNS = """
        user_id, channel_id, channel_name, access_token_encrypted,
        refresh_token_encrypted, token_expires_at, connected_at
    """

    @classmethod
    def _row_to_connection(cls, row: dict | None) -> Connection | None:
        if not row:
            return None

        try:
            access_token, refresh_token = decrypt_oauth_tokens(
                row.get("access_token_encrypted"), row.get("refresh_token_encrypted")
            )
        except EncryptionError as e:
            # Unreadable ciphertext behaves like a missing token; the user must reconnect
            logger.error(
                "Failed to decrypt YouTube tokens",
                user_id=str(row["user_id"]),
                channel_id=row["channel_id"],
                error=str(e),
            )
            access_token, refresh_token = None, None

        return Connection(
            user_id=str(row["user_id"]),
            channel_id=row["channel_id"],
            channel_name=row.get("channel_name") or DEFAULT_CHANNEL_NAME,
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=datetime_to_millis(row.get("token_expires_at")),
            connected_at=row.get("connected_at"),
        )

    @classmethod
    @with_db_retry()
    async def list_for_user(cls, user_id: str) -> list[Connection]:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM youtube_connections
            WHERE user_id = %s
            ORDER BY connected_at ASC
        """
        rows = await fetch_all(query, (user_id,))
        return [cls._row_to_connection(row) for row in rows]

    @classmethod
    async def list_channels(cls, user_id: str) -> list[dict[str, str]]:
        """Channel ids and names only; tokens stay encrypted."""
        query = """
            SELECT channel_id, channel_name
            FROM youtube_connections
            WHERE user_id = %s
            ORDER BY connected_at ASC
        """
        rows = await fetch_all(query, (user_id,))
        return [
            {
                "channel_id": row["channel_id"],
                "channel_name": row.get("channel_name") or DEFAULT_CHANNEL_NAME,
            }
            for row in rows
        ]

    @classmethod
    async def get(cls, user_id: str, channel_id: str) -> Connection | None:
        query = f"""
            SELECT {cls.SELECT_COLUMNS}
            FROM youtube_connections
            WHERE user_id = %s AND channel_id = %s
        """
        return cls._row_to_connection(await fetch_one(query, (user_id, channel_id)))

    @classmethod
    async def upsert(cls, connection: Connection) -> None:
        """Insert or replace a connection; connected_at is kept from the first insert."""
        access_encrypted, refresh_encrypted = encrypt_oauth_tokens(
            connection.access_token, connection.refresh_token
        )
        query = """
            INSERT INTO youtube_connections (
                user_id, channel_id, channel_name, access_token_encrypted,
                refresh_token_encrypted, token_expires_at, connected_at, updated_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, COALESCE(%s, NOW()), NOW())
            ON CONFLICT (user_id, channel_id)
            DO UPDATE SET
                channel_name = EXCLUDED.channel_name,
                access_token_encrypted = EXCLUDED.access_token_encrypted,
                refresh_token_encrypted = COALESCE(
                    EXCLUDED.refresh_token_encrypted,
                    youtube_connections.refresh_token_encrypted
                ),
                token_expires_at = EXCLUDED.token_expires_at,
                updated_at = NOW()
        """
        await execute_query(
            query,
            (
                connection.user_id,
                connection.channel_id,
                connection.channel_name,
                access_encrypted,
                refresh_encrypted,
                millis_to_datetime(connection.expires_at),
                connection.connected_at,
            ),
        )
        logger.info(
            "YouTube connection saved",
            user_id=connection.user_id,
            channel_id=connection.channel_id,
            has_refresh_token=bool(connection.refresh_token),
        )

    @classmethod
    async def count_for_user(cls, user_id: str) -> int:
        row = await fetch_one(
            "SELECT COUNT(*) AS total FROM youtube_connections WHERE user_id = %s", (user_id,)
        )
        return int(row["total"]) if row else 0

    @classmethod
    async def update_tokens(cls, connection: Connection) -> None:
        access_encrypted, refresh_encrypted = encrypt_oauth_tokens(
            connection.access_token, connection.refresh_token
        )
        query = """
            UPDATE youtube_connections
            SET access_token_encrypted = %s,
                refresh_token_encrypted = COALESCE(%s, refresh_token_encrypted),
                token_expires_at = %s,
                updated_at = NOW()
            WHERE user_id = %s AND channel_id = %s
        """
        await execute_query(
            query,
            (
                access_encrypted,
                refresh_encrypted,
                millis_to_datetime(connection.expires_at),
                connection.user_id,
                connection.channel_id,
            ),
        )

    @classmethod
    async def delete_all(cls, user_id: str) -> int:
        query = "DELETE FROM youtube_connections WHERE user_id = %s"
        return await execute_query(query, (user_id,))

    @classmethod
    async def delete_channels(cls, user_id: str, channel_ids: list[str]) -> int:
        if not channel_ids:
            return 0
        query = "DELETE FROM youtube_connections WHERE user_id = %s AND channel_id = ANY(%s)"
        return await execute_query(query, (user_id, channel_ids))

    @classmethod
    @with_db_retry()
    async def list_connected_user_ids(cls) -> list[str]:
        rows = await fetch_all("SELECT DISTINCT user_id FROM youtube_connections")
        return [str(row["user_id"]) for row in rows if row.get("user_id")]


class ConnectionTokenStore:
    """Writes refreshed tokens back to youtube_connections."""

    async def persist(self, connection: Connection) -> None:
        await ConnectionRepository.update_tokens(connection)
