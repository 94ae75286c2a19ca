"""
Reporting API bookkeeping: the job created per (channel, report key) and the
last parsed export per job.
"""

from app.db.helpers import as_jsonb, execute_query, fetch_all, fetch_one
from app.features.youtube_analytics.domain import ParsedReport, ReportingJobRecord, ReportKey
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


class ReportingJobRepository:
    @classmethod
    async def get_for_channel(cls, channel_id: str) -> dict[ReportKey, ReportingJobRecord]:
        query = """
            SELECT channel_id, report_key, job_id, name, report_type_id
            FROM youtube_reporting_jobs
            WHERE channel_id = %s
        """
        records: dict[ReportKey, ReportingJobRecord] = {}
        for row in await fetch_all(query, (channel_id,)):
            try:
                key = ReportKey(row["report_key"])
            except ValueError:
                logger.warning("Unknown report key in store", report_key=row["report_key"])
                continue
            records[key] = ReportingJobRecord(
                channel_id=row["channel_id"],
                report_key=key,
                job_id=row["job_id"],
                name=row.get("name") or "",
                report_type_id=row.get("report_type_id") or "",
            )
        return records

    @classmethod
    async def save(cls, record: ReportingJobRecord) -> None:
        query = """
            INSERT INTO youtube_reporting_jobs (channel_id, report_key, job_id, name, report_type_id, updated_at)
            VALUES (%s, %s, %s, %s, %s, NOW())
            ON CONFLICT (channel_id, report_key)
            DO UPDATE SET
                job_id = EXCLUDED.job_id,
                name = EXCLUDED.name,
                report_type_id = EXCLUDED.report_type_id,
                updated_at = NOW()
        """
        await execute_query(
            query,
            (
                record.channel_id,
                record.report_key.value,
                record.job_id,
                record.name,
                record.report_type_id,
            ),
        )


class ParsedReportRepository:
    @classmethod
    async def get(cls, job_id: str) -> ParsedReport | None:
        query = """
            SELECT report_id, report_created_at, data
            FROM youtube_parsed_reports
            WHERE job_id = %s
        """
        row = await fetch_one(query, (job_id,))
        if not row:
            return None
        data = row.get("data")
        return ParsedReport(
            report_id=row["report_id"],
            created_at=row.get("report_created_at") or "",
            data=data if isinstance(data, list) else [],
        )

    @classmethod
    async def put(cls, job_id: str, report: ParsedReport) -> None:
        query = """
            INSERT INTO youtube_parsed_reports (job_id, report_id, report_created_at, data, updated_at)
            VALUES (%s, %s, %s, %s, NOW())
            ON CONFLICT (job_id)
            DO UPDATE SET
                report_id = EXCLUDED.report_id,
                report_created_at = EXCLUDED.report_created_at,
                data = EXCLUDED.data,
                updated_at = NOW()
        """
        await execute_query(
            query, (job_id, report.report_id, report.created_at, as_jsonb(report.data))
        )
