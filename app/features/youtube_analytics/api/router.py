"""
YouTube analytics API routes.

All endpoints require a Supabase session (Bearer header or cookie). Refresh
work never happens inside a request: POST /refresh only enqueues.
"""

from fastapi import APIRouter, Depends, HTTPException, status

from app.db.helpers import DatabaseError
from app.features.youtube_analytics.api.dependencies import (
    get_connection_service,
    get_connection_store,
    get_current_user_id,
    get_refresh_job_store,
    get_refresh_orchestrator,
    get_summary_builder,
    get_summary_cache_service,
)
from app.features.youtube_analytics.api.schemas import (
    DisconnectRequest,
    DisconnectResponse,
    RefreshEnqueuedResponse,
)
from app.features.youtube_analytics.domain import RefreshTrigger
from app.features.youtube_analytics.services.connection_service import ConnectionService
from app.features.youtube_analytics.services.refresh_orchestrator import (
    EnqueueOptions,
    RefreshJobStore,
    RefreshOrchestrator,
)
from app.features.youtube_analytics.services.summary_builder import SummaryBuilder
from app.features.youtube_analytics.services.summary_cache_service import SummaryCacheService
from app.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

router = APIRouter(prefix="/api/youtube", tags=["youtube"])


def _server_error(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


@router.get("/connections")
async def list_connections(
    user_id: str = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
):
    try:
        return await service.list_connections(user_id)
    except DatabaseError as e:
        logger.error("Failed to list YouTube connections", user_id=user_id, error=str(e))
        raise _server_error("Unable to load YouTube connections") from None


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect(
    payload: DisconnectRequest | None = None,
    user_id: str = Depends(get_current_user_id),
    service: ConnectionService = Depends(get_connection_service),
):
    channel_names = payload.channel_names if payload else None
    try:
        result = await service.disconnect(user_id, channel_names)
    except DatabaseError as e:
        logger.error("Failed to disconnect YouTube channels", user_id=user_id, error=str(e))
        raise _server_error("Unable to disconnect YouTube channels") from None
    return DisconnectResponse(**result)


@router.post(
    "/refresh",
    response_model=RefreshEnqueuedResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_refresh(
    user_id: str = Depends(get_current_user_id),
    orchestrator: RefreshOrchestrator = Depends(get_refresh_orchestrator),
):
    options = EnqueueOptions(trigger=RefreshTrigger.MANUAL, reuse_running=True)
    try:
        result = await orchestrator.enqueue(user_id, options)
    except DatabaseError as e:
        logger.error("Failed to enqueue YouTube refresh", user_id=user_id, error=str(e))
        raise _server_error("Unable to start YouTube refresh") from None

    logger.info(
        "YouTube refresh requested",
        user_id=user_id,
        job_id=result.job_id,
        deduped=result.deduped,
    )
    return RefreshEnqueuedResponse(
        job_id=result.job_id, status=result.status.value, deduped=result.deduped
    )


@router.get("/refresh/{job_id}")
async def get_refresh_job(
    job_id: str,
    user_id: str = Depends(get_current_user_id),
    jobs: RefreshJobStore = Depends(get_refresh_job_store),
):
    job_id = job_id.strip()
    if not job_id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing job id")

    try:
        job = await jobs.get(user_id, job_id)
    except DatabaseError as e:
        logger.error("Failed to load refresh job", user_id=user_id, job_id=job_id, error=str(e))
        raise _server_error("Unable to load refresh job") from None

    if job is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Refresh job not found")
    return job.to_api()


@router.get("/summary")
async def get_summary(
    user_id: str = Depends(get_current_user_id),
    service: SummaryCacheService = Depends(get_summary_cache_service),
):
    try:
        return await service.read_summary(user_id)
    except DatabaseError as e:
        logger.error("Failed to read cached YouTube summary", user_id=user_id, error=str(e))
        raise _server_error("Unable to read YouTube summary") from None


@router.post("/reporting/init")
async def init_reporting(
    user_id: str = Depends(get_current_user_id),
    connections=Depends(get_connection_store),
    builder: SummaryBuilder = Depends(get_summary_builder),
):
    try:
        user_connections = await connections.list_for_user(user_id)
        jobs = await builder.init_reporting_jobs(user_connections)
    except Exception as e:
        logger.error(
            "Failed to initialise reporting jobs",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise _server_error("Unable to initialise YouTube reporting jobs") from None
    return {"ok": True, "jobs": jobs}


@router.get("/reporting/summary")
async def reporting_summary(
    user_id: str = Depends(get_current_user_id),
    connections=Depends(get_connection_store),
    builder: SummaryBuilder = Depends(get_summary_builder),
):
    try:
        user_connections = await connections.list_for_user(user_id)
        summary = await builder.build_reporting_summary(user_connections)
    except Exception as e:
        logger.error(
            "Failed to build reporting summary",
            user_id=user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        raise _server_error("Unable to build YouTube reporting summary") from None
    return summary.model_dump(by_alias=True)
