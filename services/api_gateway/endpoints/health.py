"""
Health and stats endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, Request

from services.api_gateway.models import HealthResponse, StatsResponse
from services.metrics_service.monitor import Monitor

router = APIRouter(tags=["system"])


def _monitor(request: Request) -> Monitor:
    return request.app.state.monitor


@router.get("/health", response_model=HealthResponse)
async def health(request: Request) -> HealthResponse:
    """Liveness probe. Degraded once the scheduler has stopped."""
    monitor = _monitor(request)
    scheduler_state = monitor.scheduler.state.value
    return HealthResponse(
        status="healthy" if monitor.scheduler.running else "degraded",
        project=monitor.project_name,
        scheduler=scheduler_state,
        active_connections=monitor.counters.active_connections,
    )


@router.get("/stats", response_model=StatsResponse, response_model_by_alias=True)
async def stats(request: Request) -> StatsResponse:
    """Current snapshot, computed on demand."""
    monitor = _monitor(request)
    return StatsResponse(
        project=monitor.project_name,
        samples=len(monitor.buffer),
        snapshot=monitor.snapshot(),
    )
