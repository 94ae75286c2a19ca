from .oauth_router import router as youtube_oauth_router
from .router import router as youtube_router

__all__ = ["youtube_oauth_router", "youtube_router"]
