import psycopg
import pytest
from psycopg import sql

from app.db.helpers import DatabaseError, _preview, with_db_retry


def test_preview_accepts_composed_queries():
    query = sql.SQL("UPDATE youtube_refresh_jobs SET {} WHERE id = %s").format(
        sql.Identifier("status")
    )

    assert "youtube_refresh_jobs" in _preview(query)
    assert _preview("SELECT 1\n   FROM   t") == "SELECT 1 FROM t"


@pytest.mark.asyncio
async def test_retry_on_operational_error_then_succeed():
    calls = []

    @with_db_retry(max_retries=2, base_delay=0)
    async def flaky():
        calls.append(1)
        if len(calls) < 2:
            raise psycopg.OperationalError("connection reset")
        return "ok"

    assert await flaky() == "ok"
    assert len(calls) == 2


@pytest.mark.asyncio
async def test_operational_error_gives_up_after_retries():
    @with_db_retry(max_retries=1, base_delay=0)
    async def down():
        raise psycopg.OperationalError("server closed the connection")

    with pytest.raises(DatabaseError) as exc_info:
        await down()

    assert exc_info.value.recoverable is False
    assert exc_info.value.operation == "down"


@pytest.mark.asyncio
async def test_query_errors_are_not_retried():
    calls = []

    @with_db_retry(max_retries=3, base_delay=0)
    async def bad_query():
        calls.append(1)
        raise DatabaseError("syntax error", operation="fetch_one")

    with pytest.raises(DatabaseError):
        await bad_query()

    assert len(calls) == 1
