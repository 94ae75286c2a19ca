"""
Liveness and readiness endpoints.
"""

import time

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from app.db.pool import db_health_check
from app.services.redis_client import fast_redis

router = APIRouter()

SERVICE_NAME = "youtube-analytics"


@router.get("/healthz")
async def healthz():
    """Basic health check - always returns 200 if app is running."""
    return {"status": "ok", "service": SERVICE_NAME}


@router.get("/readyz")
async def readyz():
    """
    Readiness: Redis answers PING and the database pool serves a query.
    Returns 503 when either dependency is down.
    """
    checks = {}

    t0 = time.time()
    try:
        redis_ok = await fast_redis.ping()
        checks["redis"] = {"ok": bool(redis_ok), "latency_ms": round((time.time() - t0) * 1000, 1)}
    except Exception as e:
        checks["redis"] = {"ok": False, "error": f"{type(e).__name__}: {e}"}

    t0 = time.time()
    db_health = await db_health_check()
    checks["database"] = {
        "ok": bool(db_health.get("healthy")),
        "latency_ms": round((time.time() - t0) * 1000, 1),
    }
    if db_health.get("pool_stats"):
        checks["database"].update(db_health["pool_stats"])
    if not db_health.get("healthy"):
        checks["database"]["error"] = db_health.get("error", "Database unhealthy")

    overall_ok = all(check["ok"] for check in checks.values())
    body = {"status": "ready" if overall_ok else "not_ready", "checks": checks}
    return JSONResponse(status_code=200 if overall_ok else 503, content=body)
