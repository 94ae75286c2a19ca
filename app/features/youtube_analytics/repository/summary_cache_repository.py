"""Persistence for youtube_cached_summaries (one row per user)."""

from datetime import datetime
from typing import Any

from app.db.helpers import as_jsonb, execute_query, fetch_one, with_db_retry
from app.features.youtube_analytics.domain import CachedSummary


class SummaryCacheRepository:
    @classmethod
    @with_db_retry()
    async def get(cls, user_id: str) -> CachedSummary | None:
        query = """
            SELECT user_id, summary_json, generated_at, refresh_job_id
            FROM youtube_cached_summaries
            WHERE user_id = %s
        """
        row = await fetch_one(query, (user_id,))
        if not row:
            return None
        return CachedSummary(
            user_id=str(row["user_id"]),
            summary=row.get("summary_json"),
            generated_at=row.get("generated_at"),
            refresh_job_id=str(row["refresh_job_id"]) if row.get("refresh_job_id") else None,
        )

    @classmethod
    async def upsert(
        cls,
        user_id: str,
        summary: dict[str, Any],
        generated_at: datetime,
        refresh_job_id: str | None,
    ) -> None:
        query = """
            INSERT INTO youtube_cached_summaries (user_id, summary_json, generated_at, refresh_job_id)
            VALUES (%s, %s, %s, %s)
            ON CONFLICT (user_id)
            DO UPDATE SET
                summary_json = EXCLUDED.summary_json,
                generated_at = EXCLUDED.generated_at,
                refresh_job_id = EXCLUDED.refresh_job_id
        """
        await execute_query(query, (user_id, as_jsonb(summary), generated_at, refresh_job_id))

    @classmethod
    async def delete(cls, user_id: str) -> int:
        return await execute_query(
            "DELETE FROM youtube_cached_summaries WHERE user_id = %s", (user_id,)
        )
