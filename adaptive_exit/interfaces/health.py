"""
Health check router.

Liveness check for the exit service. Reports the version and whether
the OI poller is running; never touches Redis.
"""

from fastapi import APIRouter, Depends

from adaptive_exit.core.config import settings
from adaptive_exit.interfaces.exits.dependencies import get_oi_scheduler
from adaptive_exit.interfaces.exits.schemas import HealthResponse
from adaptive_exit.realtime.scheduler import OiRefreshScheduler

router = APIRouter(tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns application health status and version.",
)
def health_check(
    scheduler: OiRefreshScheduler = Depends(get_oi_scheduler),
) -> HealthResponse:
    """Return current application health status."""
    return HealthResponse(
        status="ok", version=settings.version, oi_poller_running=scheduler.is_running
    )
