from pathlib import Path
from urllib.parse import urlparse

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Supabase settings
    SUPABASE_URL: str
    SUPABASE_JWKS_URL: str | None = None
    SUPABASE_DB_URL: str
    SUPABASE_JWT_AUDIENCE: str = "authenticated"

    # Redis settings
    UPSTASH_REDIS_REST_URL: str
    UPSTASH_REDIS_REST_TOKEN: str

    # YouTube OAuth settings
    YOUTUBE_CLIENT_ID: str | None = None
    YOUTUBE_CLIENT_SECRET: str | None = None
    YOUTUBE_REDIRECT_URI: str | None = None
    YOUTUBE_SCOPE: str = (
        "https://www.googleapis.com/auth/youtube.readonly "
        "https://www.googleapis.com/auth/yt-analytics.readonly"
    )

    ENCRYPTION_KEY: str | None = None

    # Dashboard that receives OAuth redirects and issues browser requests
    APP_BASE_URL: str = "http://localhost:5173"
    CORS_ALLOWED_ORIGINS: list[str] = []
    TRUST_X_FORWARDED_FOR: bool = False
    TRUSTED_PROXY_IPS: list[str] = []

    # =================================================================
    # REPORTING API - preferred report type ids
    # =================================================================
    YOUTUBE_REPORT_CHANNEL_DAILY: str = "channel_basic_a2"
    YOUTUBE_REPORT_VIDEO_DAILY: str = "video_basic_a2"
    YOUTUBE_REPORT_DEMOGRAPHICS: str = "channel_demographics_a1"
    YOUTUBE_REPORT_GEO: str = "channel_geography_a1"
    YOUTUBE_REPORT_NAME_PREFIX: str = "fixated"

    # =================================================================
    # REFRESH SETTINGS
    # =================================================================
    SUMMARY_STALE_AFTER_HOURS: int = 24
    AUTO_REFRESH_COOLDOWN_MINUTES: int = 10
    AUTO_REFRESH_SWEEP_MINUTES: int = 60
    AUTO_REFRESH_SWEEP_ENABLED: bool = True
    REFRESH_JOB_LEASE_MINUTES: int = 30
    REFRESH_POLL_INTERVAL_SECONDS: float = 2.0
    REFRESH_POLL_TIMEOUT_SECONDS: float = 300.0
    TOKEN_REFRESH_BUFFER_SECONDS: int = 60

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # derive sensible defaults if not provided
    def jwks_url(self) -> str:
        if self.SUPABASE_JWKS_URL:
            return self.SUPABASE_JWKS_URL
        base = self.SUPABASE_URL.rstrip("/")
        return f"{base}/auth/v1/.well-known/jwks.json"

    def project_ref(self) -> str | None:
        """
        Extract the Supabase project ref from SUPABASE_URL host, e.g.
        https://ykvceus...supabase.co -> ykvceus...
        """
        try:
            host = urlparse(self.SUPABASE_URL).hostname or ""
            return host.split(".")[0]
        except Exception:
            return None

    def youtube_redirect_uri(self) -> str:
        """Get YouTube OAuth redirect URI with fallback."""
        if self.YOUTUBE_REDIRECT_URI:
            return self.YOUTUBE_REDIRECT_URI
        return "http://localhost:8000/oauth/youtube/callback"

    def allowed_origins(self) -> list[str]:
        """CORS origins; the dashboard base URL is always allowed."""
        origins = [origin.rstrip("/") for origin in self.CORS_ALLOWED_ORIGINS if origin]
        base = self.APP_BASE_URL.rstrip("/")
        if base and base not in origins:
            origins.append(base)
        return origins

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config


settings = Settings()
