"""
Google OAuth client for the YouTube connect flow.

Builds the consent URL (offline access, forced consent so Google always
returns a refresh token), exchanges authorization codes and refreshes
access tokens.
"""

import asyncio
import time
from urllib.parse import urlencode

import httpx

from app.config import settings
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

GOOGLE_OAUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

REQUEST_TIMEOUT = 10  # seconds
MAX_RETRIES = 3
BACKOFF_FACTOR = 2
RETRY_STATUS_CODES = {429, 500, 502, 503, 504}


class GoogleOAuthError(Exception):
    """Custom exception for Google OAuth-related errors."""

    def __init__(
        self, message: str, error_code: str | None = None, response_data: dict | None = None
    ):
        super().__init__(message)
        self.error_code = error_code
        self.response_data = response_data or {}


class TokenResponse:
    """Structured representation of an OAuth token response."""

    def __init__(self, data: dict, now_ms: int | None = None):
        self.access_token = data.get("access_token")
        self.refresh_token = data.get("refresh_token")
        self.token_type = data.get("token_type", "Bearer")
        self.expires_in = data.get("expires_in")
        self.scope = data.get("scope", "")

        issued_ms = now_ms if now_ms is not None else int(time.time() * 1000)
        try:
            expires_in_s = int(self.expires_in or 0)
        except (TypeError, ValueError):
            expires_in_s = 0
        # epoch millis, 0 when Google did not say
        self.expires_at = issued_ms + expires_in_s * 1000 if expires_in_s > 0 else 0

    def is_valid(self) -> bool:
        return bool(self.access_token)


class GoogleOAuthClient:
    def __init__(
        self,
        client_id: str | None = None,
        client_secret: str | None = None,
        redirect_uri: str | None = None,
        scope: str | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_factor: float = BACKOFF_FACTOR,
    ):
        self.client_id = client_id if client_id is not None else settings.YOUTUBE_CLIENT_ID
        self.client_secret = (
            client_secret if client_secret is not None else settings.YOUTUBE_CLIENT_SECRET
        )
        self.redirect_uri = redirect_uri or settings.youtube_redirect_uri()
        self.scope = scope or settings.YOUTUBE_SCOPE
        self._transport = transport
        self.backoff_factor = backoff_factor

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def _require_config(self) -> None:
        if not self.client_id:
            raise GoogleOAuthError("YOUTUBE_CLIENT_ID not configured", error_code="not_configured")
        if not self.client_secret:
            raise GoogleOAuthError(
                "YOUTUBE_CLIENT_SECRET not configured", error_code="not_configured"
            )

    async def _post_with_retry(self, url: str, data: dict, operation: str) -> httpx.Response:
        """
        POST a form with retry/backoff on transient statuses and network errors.
        """
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT, transport=self._transport) as client:
            for attempt in range(1, MAX_RETRIES + 1):
                try:
                    response = await client.post(url, data=data, headers=headers)
                    if response.status_code in RETRY_STATUS_CODES and attempt < MAX_RETRIES:
                        wait_time = self.backoff_factor**attempt
                        logger.warning(
                            "Google OAuth transient status",
                            operation=operation,
                            status_code=response.status_code,
                            attempt=attempt,
                            wait_time=wait_time,
                        )
                        await asyncio.sleep(wait_time)
                        continue
                    return response

                except httpx.RequestError as exc:
                    if attempt == MAX_RETRIES:
                        raise
                    wait_time = self.backoff_factor**attempt
                    logger.warning(
                        "Google OAuth request error, retrying",
                        operation=operation,
                        attempt=attempt,
                        wait_time=wait_time,
                        error=str(exc),
                        error_type=type(exc).__name__,
                    )
                    await asyncio.sleep(wait_time)

        raise GoogleOAuthError(f"{operation} failed: retries exhausted")

    def generate_oauth_url(self, state: str) -> str:
        self._require_config()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": self.scope,
            "state": state,
            "include_granted_scopes": "true",
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{GOOGLE_OAUTH_BASE_URL}?{urlencode(params)}"

    async def exchange_code_for_tokens(self, authorization_code: str) -> TokenResponse:
        """
        Raises:
            GoogleOAuthError: Google rejected the code or could not be reached
        """
        self._require_config()
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "code": authorization_code,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
        }
        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data, "code_exchange")
        except httpx.RequestError as e:
            logger.error("Network error during token exchange", error=str(e))
            raise GoogleOAuthError(f"Network error during token exchange: {e}") from e
        return self._handle_token_response(response, "code_exchange")

    async def refresh_access_token(self, refresh_token: str) -> TokenResponse:
        """
        Refresh an access token. Google usually omits refresh_token on
        refresh, in which case the one passed in is kept.
        """
        self._require_config()
        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            response = await self._post_with_retry(GOOGLE_TOKEN_URL, data, "token_refresh")
        except httpx.RequestError as e:
            logger.error("Network error during token refresh", error=str(e))
            raise GoogleOAuthError(f"Network error during token refresh: {e}") from e

        token_response = self._handle_token_response(response, "token_refresh")
        if not token_response.refresh_token:
            token_response.refresh_token = refresh_token
        return token_response

    def _handle_token_response(self, response: httpx.Response, operation: str) -> TokenResponse:
        if not response.is_success:
            try:
                error_data = response.json()
            except ValueError:
                logger.error(
                    f"Google {operation} failed with non-JSON response",
                    status_code=response.status_code,
                )
                raise GoogleOAuthError(
                    f"Google OAuth service error (HTTP {response.status_code})"
                ) from None

            error_code = error_data.get("error", "unknown_error")
            logger.error(
                f"Google {operation} failed",
                status_code=response.status_code,
                error_code=error_code,
                error_description=error_data.get("error_description"),
            )
            raise GoogleOAuthError(
                self._map_google_error(error_code, error_data.get("error_description")),
                error_code=error_code,
                response_data=error_data,
            )

        try:
            token_response = TokenResponse(response.json())
        except ValueError as e:
            raise GoogleOAuthError(f"Failed to parse Google response: {e}") from e

        if not token_response.is_valid():
            raise GoogleOAuthError("Invalid token response from Google", error_code="no_access_token")

        logger.info(
            f"Google {operation} successful",
            expires_in=token_response.expires_in,
            has_refresh_token=bool(token_response.refresh_token),
        )
        return token_response

    def _map_google_error(self, error_code: str, description: str | None = None) -> str:
        error_messages = {
            "access_denied": "YouTube access was denied. Please grant the requested permissions.",
            "invalid_grant": "Authorization expired or was revoked. Please reconnect YouTube.",
            "invalid_client": "YouTube connection is misconfigured. Please contact support.",
        }
        return error_messages.get(error_code, description or "YouTube token exchange failed.")


google_oauth_client = GoogleOAuthClient()
