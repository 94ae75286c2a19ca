"""
YouTube analytics feature package.

Vertical slice for connecting YouTube channels and serving the merged
performance summary: domain models, repositories, API clients, the source
pipeline, refresh services, the sweep job and the HTTP routers.
"""

# Re-export the primary building blocks for easy access.
from .api.oauth_router import router as youtube_oauth_router  # noqa: F401
from .api.router import router as youtube_router  # noqa: F401
from .jobs.auto_refresh_job import start_auto_refresh_scheduler  # noqa: F401
from .services.refresh_orchestrator import refresh_orchestrator  # noqa: F401
