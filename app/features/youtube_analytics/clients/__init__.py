"""HTTP clients for Google OAuth and the three YouTube APIs."""

from .analytics_api import YouTubeAnalyticsClient, youtube_analytics_client
from .data_api import YouTubeDataClient, youtube_data_client
from .google_oauth import GoogleOAuthClient, GoogleOAuthError, TokenResponse, google_oauth_client
from .reporting_api import YouTubeReportingClient, youtube_reporting_client

__all__ = [
    "GoogleOAuthClient",
    "GoogleOAuthError",
    "TokenResponse",
    "YouTubeAnalyticsClient",
    "YouTubeDataClient",
    "YouTubeReportingClient",
    "google_oauth_client",
    "youtube_analytics_client",
    "youtube_data_client",
    "youtube_reporting_client",
]
