"""
YouTube Reporting API v1 client.

List endpoints follow nextPageToken for at most MAX_PAGES pages.
"""

from typing import Any

from app.features.youtube_analytics.clients.base import GoogleApiClient
from app.features.youtube_analytics.errors import YouTubeApiError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REPORTING_API_BASE_URL = "https://youtubereporting.googleapis.com/v1"
MAX_PAGES = 20


class YouTubeReportingClient(GoogleApiClient):
    service_name = "youtube_reporting"

    async def _list_paginated(
        self, access_token: str, path: str, items_key: str, operation: str
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page_token = ""
        for _ in range(MAX_PAGES):
            params = {"pageToken": page_token} if page_token else None
            payload = await self._get_json(
                f"{REPORTING_API_BASE_URL}/{path}", access_token, operation, params
            )
            batch = payload.get(items_key)
            if isinstance(batch, list):
                items.extend(item for item in batch if isinstance(item, dict))
            page_token = payload.get("nextPageToken") or ""
            if not isinstance(page_token, str) or not page_token:
                break
        return items

    async def list_report_types(self, access_token: str) -> list[dict[str, Any]]:
        return await self._list_paginated(
            access_token, "reportTypes", "reportTypes", "reportTypes.list"
        )

    async def list_jobs(self, access_token: str) -> list[dict[str, Any]]:
        return await self._list_paginated(access_token, "jobs", "jobs", "jobs.list")

    async def create_job(self, access_token: str, report_type_id: str, name: str) -> dict[str, Any]:
        response = await self._request_with_retry(
            "POST",
            f"{REPORTING_API_BASE_URL}/jobs",
            json={"reportTypeId": report_type_id, "name": name},
            headers=self._get_auth_headers(access_token),
        )
        job = self._handle_api_response(response, "jobs.create")
        logger.info(
            "Reporting job created",
            report_type_id=report_type_id,
            job_name=name,
            job_id=job.get("id"),
        )
        return job

    async def list_reports(self, access_token: str, job_id: str) -> list[dict[str, Any]]:
        return await self._list_paginated(
            access_token, f"jobs/{job_id}/reports", "reports", "reports.list"
        )

    async def download_report(self, access_token: str, download_url: str) -> str:
        """Raw CSV body of one export."""
        if not download_url:
            return ""
        response = await self._request_with_retry(
            "GET",
            download_url,
            headers={"Authorization": f"Bearer {access_token}"},
            follow_redirects=True,
        )
        if not response.is_success:
            raise YouTubeApiError(
                f"Report download failed with status {response.status_code}",
                status_code=response.status_code,
                reason="download_failed",
            )
        return response.text


youtube_reporting_client = YouTubeReportingClient()
