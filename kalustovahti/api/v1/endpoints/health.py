"""
Health Check Endpoints
Service, database and live session status
"""

import time
from typing import Any, Dict

from fastapi import APIRouter
import structlog

from kalustovahti.core.config import settings
from kalustovahti.core.database import check_database_health
from kalustovahti.core.websocket import permission_sessions
from kalustovahti.schemas.base import HealthCheck, HealthStatus

logger = structlog.get_logger()
router = APIRouter()


@router.get("/", response_model=HealthCheck)
async def health_check() -> HealthCheck:
    checks: Dict[str, Any] = {}
    overall_status = HealthStatus.HEALTHY

    started = time.perf_counter()
    db_healthy = await check_database_health()
    checks["database"] = {
        "status": "healthy" if db_healthy else "unhealthy",
        "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if not db_healthy:
        overall_status = HealthStatus.UNHEALTHY

    checks["permission_sessions"] = {
        "status": "healthy",
        "open": permission_sessions.session_count,
    }

    return HealthCheck(
        status=overall_status,
        service="kalustovahti-api",
        version=settings.VERSION,
        checks=checks,
    )


@router.get("/ready")
async def readiness_check() -> Dict[str, Any]:
    """Readiness probe: ready once the database answers"""
    if await check_database_health():
        return {"status": "ready", "timestamp": time.time()}
    return {"status": "not ready", "reason": "database unavailable", "timestamp": time.time()}


@router.get("/live")
async def liveness_check() -> Dict[str, Any]:
    return {"status": "alive", "timestamp": time.time()}
