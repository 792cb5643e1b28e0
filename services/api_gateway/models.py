"""
Response models for the collector's own endpoints.

The snapshot itself is already a Pydantic model; these wrap it with
process status so probes and dashboards get one stable shape.
"""

from __future__ import annotations

from pydantic import BaseModel

from services.metrics_service.models import Snapshot


class HealthResponse(BaseModel):
    """Liveness response."""

    status: str
    project: str
    scheduler: str
    active_connections: int


class StatsResponse(BaseModel):
    """Current snapshot plus the sample window size it was computed from."""

    project: str
    samples: int
    snapshot: Snapshot
