"""
FastAPI providers for the feature's services.

Routes depend on these instead of importing singletons directly so tests can
swap them through app.dependency_overrides.
"""

from fastapi import Depends, HTTPException, status

from app.auth.verify import auth_dependency
from app.features.youtube_analytics.repository import ConnectionRepository, RefreshJobRepository
from app.features.youtube_analytics.services.connection_service import (
    ConnectionService,
    connection_service,
)
from app.features.youtube_analytics.services.oauth_state_service import (
    OAuthStateService,
    oauth_state_service,
)
from app.features.youtube_analytics.services.refresh_orchestrator import (
    RefreshJobStore,
    RefreshOrchestrator,
    refresh_orchestrator,
)
from app.features.youtube_analytics.services.summary_builder import SummaryBuilder, summary_builder
from app.features.youtube_analytics.services.summary_cache_service import (
    SummaryCacheService,
    summary_cache_service,
)
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)


def get_current_user_id(claims: dict = Depends(auth_dependency)) -> str:
    user_id = claims.get("sub")
    if not user_id:
        logger.error("No user ID in JWT claims")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token: missing user ID"
        )
    return user_id


def get_connection_service() -> ConnectionService:
    return connection_service


def get_connection_store():
    return ConnectionRepository


def get_refresh_orchestrator() -> RefreshOrchestrator:
    return refresh_orchestrator


def get_refresh_job_store() -> RefreshJobStore:
    return RefreshJobRepository


def get_summary_cache_service() -> SummaryCacheService:
    return summary_cache_service


def get_summary_builder() -> SummaryBuilder:
    return summary_builder


def get_oauth_state_service() -> OAuthStateService:
    return oauth_state_service
