"""Admin API endpoints - health, metrics, system info."""

from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from planner.common.config import get_settings
from planner.common.health import HealthChecker, HealthStatus

router = APIRouter(prefix="/admin", tags=["admin"])

_health_checker: HealthChecker | None = None


def get_health_checker() -> HealthChecker:
    """Get or create health checker singleton."""
    global _health_checker
    if _health_checker is None:
        settings = get_settings()
        _health_checker = HealthChecker(
            service_name="planner-api",
            version=settings.app_version,
        )
    return _health_checker


@router.get("/health")
async def health() -> dict[str, Any]:
    """Detailed health status of all components."""
    result = await get_health_checker().readiness()
    return result.to_dict()


@router.get("/health/live")
async def liveness() -> dict[str, str]:
    """Liveness probe. Returns 200 if the process is alive."""
    return {"status": "ok"}


@router.get("/health/ready", response_model=None)
async def readiness() -> dict[str, Any] | JSONResponse:
    """Readiness probe. Returns 503 when the database is unreachable."""
    result = await get_health_checker().readiness()

    if result.status == HealthStatus.UNHEALTHY:
        return JSONResponse(status_code=503, content=result.to_dict())

    return result.to_dict()


@router.get("/metrics")
async def metrics() -> Response:
    """Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )


@router.get("/info")
async def info() -> dict[str, Any]:
    settings = get_settings()
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "environment": settings.environment,
        "timestamp": datetime.now(UTC).isoformat(),
        "features": {
            "auth_enabled": settings.auth.enabled,
            "snapshot_format_version": settings.backup.format_version,
        },
    }
