"""
Shared plumbing for the Google API clients.

One pooled httpx.AsyncClient per API client, retry with backoff on transient
statuses and network errors, and uniform error extraction from Google's
JSON error envelope.
"""

import asyncio
from typing import Any

import httpx

from app.features.youtube_analytics.errors import YouTubeApiError
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

REQUEST_TIMEOUT = 30  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


def extract_google_error(payload: Any, status_code: int) -> tuple[str, str | None]:
    """Return (message, reason) from a Google error body."""
    error = payload.get("error") if isinstance(payload, dict) else None
    message = ""
    reason = None

    if isinstance(error, dict):
        message = str(error.get("message") or "").strip()
        errors = error.get("errors")
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            reason = str(errors[0].get("reason") or "").strip() or None
    elif isinstance(error, str):
        reason = error
        message = str(payload.get("error_description") or "").strip()

    if message and reason:
        return f"{message} ({reason})", reason
    if message:
        return message, reason
    if reason:
        return reason, reason
    return f"YouTube API request failed with status {status_code}.", None


class GoogleApiClient:
    """Base class; subclasses set `service_name` and call the helpers below."""

    service_name = "google"

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        max_retries: int = MAX_RETRIES,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self._client = client
        self.max_retries = max_retries
        self.backoff_factor = backoff_factor

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(REQUEST_TIMEOUT),
                limits=httpx.Limits(max_keepalive_connections=10, max_connections=20),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request_with_retry(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request with retry and backoff."""
        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self.client.request(method, url, **kwargs)
                if response.status_code in RETRY_STATUS_CODES and attempt < self.max_retries:
                    backoff = self.backoff_factor * (2 ** (attempt - 1))
                    logger.debug(
                        "Google API retrying request",
                        service=self.service_name,
                        attempt=attempt,
                        status_code=response.status_code,
                        backoff_seconds=backoff,
                    )
                    await asyncio.sleep(backoff)
                    continue
                return response
            except httpx.RequestError as e:
                if attempt >= self.max_retries:
                    raise YouTubeApiError(
                        f"Unable to reach {self.service_name} API: {e}", reason="network_error"
                    ) from e
                backoff = self.backoff_factor * (2 ** (attempt - 1))
                logger.debug(
                    "Google API request error, retrying",
                    service=self.service_name,
                    attempt=attempt,
                    error=str(e),
                    backoff_seconds=backoff,
                )
                await asyncio.sleep(backoff)
        raise RuntimeError(f"{self.service_name} API retry loop exhausted")

    def _get_auth_headers(self, access_token: str) -> dict:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Parse a JSON response or raise YouTubeApiError.

        Raises:
            YouTubeApiError: non-2xx status or unparseable body
        """
        if response.is_success:
            try:
                return response.json() if response.content else {}
            except ValueError as e:
                raise YouTubeApiError(
                    f"Invalid {self.service_name} {operation} response", status_code=response.status_code
                ) from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        message, reason = extract_google_error(payload, response.status_code)
        logger.warning(
            f"{self.service_name} {operation} failed",
            status_code=response.status_code,
            reason=reason,
            error=message,
        )
        raise YouTubeApiError(
            message,
            status_code=response.status_code,
            reason=reason,
            response_data=payload if isinstance(payload, dict) else {},
        )

    async def _get_json(
        self, url: str, access_token: str, operation: str, params: dict | None = None
    ) -> dict:
        response = await self._request_with_retry(
            "GET", url, params=params, headers=self._get_auth_headers(access_token)
        )
        return self._handle_api_response(response, operation)
