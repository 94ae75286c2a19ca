"""
YouTube connect flow.

GET /oauth/youtube sends the signed-in user to Google's consent screen.
GET /oauth/youtube/callback is hit by the browser coming back from Google;
it carries no session header, so the user is recovered from the state.
Both end in a redirect to the dashboard settings page.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from app.config import settings
from app.features.youtube_analytics.api.dependencies import (
    get_connection_service,
    get_current_user_id,
    get_oauth_state_service,
)
from app.features.youtube_analytics.clients import GoogleOAuthError, google_oauth_client
from app.features.youtube_analytics.services.connection_service import (
    ConnectionService,
    YouTubeConnectionError,
)
from app.features.youtube_analytics.services.oauth_state_service import (
    OAuthStateError,
    OAuthStateService,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/oauth/youtube", tags=["youtube-oauth"])

SETTINGS_PATH = "/settings"


def build_app_redirect(status: str, message: str | None = None, **extra: str | None) -> str:
    params = {"status": status, "provider": "youtube"}
    if message:
        params["message"] = message
    params.update({key: value for key, value in extra.items() if value})
    return f"{settings.APP_BASE_URL.rstrip('/')}{SETTINGS_PATH}?{urlencode(params)}"


def _redirect(status: str, message: str | None = None, **extra: str | None) -> RedirectResponse:
    return RedirectResponse(build_app_redirect(status, message, **extra), status_code=302)


@router.get("")
async def start_youtube_oauth(
    user_id: str = Depends(get_current_user_id),
    states: OAuthStateService = Depends(get_oauth_state_service),
):
    if not google_oauth_client.is_configured():
        return _redirect("error", "YouTube OAuth not configured.")

    try:
        state = await states.generate_state(user_id)
    except OAuthStateError as e:
        return _redirect("error", str(e))

    logger.info("Starting YouTube OAuth", user_id=user_id)
    return RedirectResponse(google_oauth_client.generate_oauth_url(state), status_code=302)


@router.get("/callback")
async def youtube_oauth_callback(
    code: str | None = Query(default=None),
    state: str | None = Query(default=None),
    error: str | None = Query(default=None),
    error_description: str | None = Query(default=None),
    states: OAuthStateService = Depends(get_oauth_state_service),
    service: ConnectionService = Depends(get_connection_service),
):
    if error:
        logger.warning("YouTube OAuth denied", error=error)
        return _redirect("error", error_description or "YouTube connection failed.")

    user_id = await states.consume_state(state or "")
    if not user_id:
        return _redirect("error", "YouTube connection state mismatch.")

    if not code:
        return _redirect("error", "Missing authorization code.")

    try:
        connection = await service.connect(user_id, code)
    except GoogleOAuthError as e:
        logger.error(
            "YouTube token exchange failed", user_id=user_id, error_code=e.error_code, error=str(e)
        )
        return _redirect("error", str(e) or "YouTube token exchange failed.")
    except YouTubeConnectionError as e:
        return _redirect("error", str(e))
    except Exception as e:
        logger.error(
            "YouTube connection failed",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return _redirect("error", "Unable to save YouTube connection.")

    return _redirect("success", youtube_channel_name=connection.channel_name)
