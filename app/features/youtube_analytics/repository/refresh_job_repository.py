"""
Postgres store for youtube_refresh_jobs.

Status changes go through transition(), whose UPDATE is guarded by the
expected current status, so a job that already reached a terminal state
can never be moved again even when two writers race.
"""

import uuid
from datetime import datetime
from typing import Any

from psycopg import sql

from app.db.helpers import as_jsonb, execute_query, fetch_one, with_db_retry
from app.features.youtube_analytics.domain import RefreshJob, RefreshJobStatus, RefreshTrigger
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

JOB_COLUMNS = """
    id, user_id, status, requested_at, started_at, finished_at,
    error_message, channels_total, channels_processed, meta
"""

# Columns transition() and set_progress() may write
UPDATABLE_FIELDS = {
    "started_at",
    "finished_at",
    "error_message",
    "channels_total",
    "channels_processed",
    "meta",
}


def _row_to_job(row: dict | None) -> RefreshJob | None:
    if not row:
        return None
    return RefreshJob(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        status=RefreshJobStatus(row["status"]),
        requested_at=row["requested_at"],
        started_at=row.get("started_at"),
        finished_at=row.get("finished_at"),
        error_message=row.get("error_message"),
        channels_total=row.get("channels_total") or 0,
        channels_processed=row.get("channels_processed") or 0,
        meta=row.get("meta") or {},
    )


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


def _set_clause(fields: dict[str, Any]) -> tuple[list[sql.Composable], list[Any]]:
    unknown = set(fields) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update refresh job fields: {sorted(unknown)}")

    assignments: list[sql.Composable] = []
    params: list[Any] = []
    for name, value in fields.items():
        if name == "meta":
            # meta is merged, never replaced, so the trigger survives completion
            assignments.append(sql.SQL("meta = COALESCE(meta, '{}'::jsonb) || %s"))
            params.append(as_jsonb(value or {}))
        else:
            assignments.append(sql.SQL("{} = %s").format(sql.Identifier(name)))
            params.append(value)
    return assignments, params


class RefreshJobRepository:
    """RefreshJobStore backed by Postgres."""

    @classmethod
    @with_db_retry()
    async def latest_for_user(cls, user_id: str) -> RefreshJob | None:
        query = f"""
            SELECT {JOB_COLUMNS}
            FROM youtube_refresh_jobs
            WHERE user_id = %s
            ORDER BY requested_at DESC
            LIMIT 1
        """
        return _row_to_job(await fetch_one(query, (user_id,)))

    @classmethod
    async def get(cls, user_id: str, job_id: str) -> RefreshJob | None:
        """A job owned by user_id; None for unknown or malformed ids."""
        if not _is_uuid(job_id):
            return None
        query = f"""
            SELECT {JOB_COLUMNS}
            FROM youtube_refresh_jobs
            WHERE id = %s AND user_id = %s
        """
        return _row_to_job(await fetch_one(query, (job_id, user_id)))

    @classmethod
    async def create(
        cls, user_id: str, trigger: RefreshTrigger, requested_at: datetime
    ) -> RefreshJob:
        query = f"""
            INSERT INTO youtube_refresh_jobs (user_id, status, requested_at, meta)
            VALUES (%s, %s, %s, %s)
            RETURNING {JOB_COLUMNS}
        """
        row = await fetch_one(
            query,
            (
                user_id,
                RefreshJobStatus.QUEUED.value,
                requested_at,
                as_jsonb({"trigger": trigger.value}),
            ),
        )
        job = _row_to_job(row)
        logger.info("Refresh job created", user_id=user_id, job_id=job.id, trigger=trigger.value)
        return job

    @classmethod
    async def transition(
        cls,
        job_id: str,
        expected: RefreshJobStatus,
        target: RefreshJobStatus,
        **fields: Any,
    ) -> bool:
        """
        Move a job from `expected` to `target`, writing extra columns.

        Returns:
            False when the job was not in `expected` (nothing written)
        """
        assignments, params = _set_clause(fields)
        assignments.insert(0, sql.SQL("status = %s"))
        params.insert(0, target.value)

        query = sql.SQL("UPDATE youtube_refresh_jobs SET {} WHERE id = %s AND status = %s").format(
            sql.SQL(", ").join(assignments)
        )
        updated = await execute_query(query, (*params, job_id, expected.value))
        return updated > 0

    @classmethod
    async def set_progress(cls, job_id: str, **fields: Any) -> None:
        """Update counters on a running job."""
        assignments, params = _set_clause(fields)
        if not assignments:
            return
        query = sql.SQL("UPDATE youtube_refresh_jobs SET {} WHERE id = %s AND status = %s").format(
            sql.SQL(", ").join(assignments)
        )
        await execute_query(query, (*params, job_id, RefreshJobStatus.RUNNING.value))
