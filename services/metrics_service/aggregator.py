"""
Snapshot computation — turns raw counters and samples into rates and averages.

Architecture decisions:
  1. Everything is recomputed from the current counters on each call.
     No running averages to drift or reset; the only windowed statistic
     is the buffer mean.
  2. Counters are read as one locked copy and the buffer mean under its
     own lock. The two reads are not atomic together, so a snapshot taken
     under load may pair a request count with a window that already
     holds one more sample. Acceptable for monitoring.
  3. Zero-traffic defaults: error rate 0, success rate 100. "No requests
     yet" must not look like "every request failed".
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Union

from services.metrics_service.counters import Counters, CountersView
from services.metrics_service.models import (
    BuildInfo,
    IntegrationStatus,
    MetricsRecord,
    PageCounts,
    ResourceUsage,
    Snapshot,
)
from services.metrics_service.sample_buffer import SampleBuffer


def _round2(value: float) -> float:
    return round(value, 2)


def compute_snapshot(
    counters: Union[Counters, CountersView],
    buffer: SampleBuffer,
    start_time: float,
    now: float,
) -> Snapshot:
    """
    Compute a fresh Snapshot.

    start_time and now are epoch milliseconds. `counters` may be the live
    Counters (a view is taken here) or a view the caller already holds.
    """
    view = counters.view() if isinstance(counters, Counters) else counters
    response_time_avg = buffer.mean()

    uptime = now - start_time
    requests = view.request_count

    request_rate = requests / (uptime / 1000) if uptime > 0 else 0.0
    error_rate = (view.error_count / requests) * 100 if requests > 0 else 0.0
    success_rate = (view.success_count / requests) * 100 if requests > 0 else 100.0

    return Snapshot(
        request_count=view.request_count,
        error_count=view.error_count,
        success_count=view.success_count,
        active_connections=view.active_connections,
        pages=PageCounts(**view.pages),
        routes=view.routes,
        response_time_avg=response_time_avg,
        request_rate=request_rate,
        error_rate=error_rate,
        success_rate=success_rate,
        uptime=uptime,
        timestamp=now,
    )


def build_record(
    snapshot: Snapshot,
    *,
    project_name: str,
    resources: ResourceUsage,
    build_info: BuildInfo,
    active: bool,
) -> MetricsRecord:
    """Project a snapshot into the persisted document, rounding to 2 decimals."""
    return MetricsRecord(
        project_name=project_name,
        response_time=_round2(snapshot.response_time_avg),
        cpu_usage=_round2(resources.cpu_usage),
        memory_usage=_round2(resources.memory_usage),
        request_count=snapshot.request_count,
        error_count=snapshot.error_count,
        success_count=snapshot.success_count,
        active_connections=snapshot.active_connections,
        timestamp=int(snapshot.timestamp),
        uptime=_round2(snapshot.uptime),
        pages=snapshot.pages,
        routes=snapshot.routes,
        build_info=BuildInfo(
            last_build=build_info.last_build,
            build_time=_round2(build_info.build_time),
            is_production=build_info.is_production,
        ),
        request_rate=_round2(snapshot.request_rate),
        error_rate=_round2(snapshot.error_rate),
        success_rate=_round2(snapshot.success_rate),
        last_updated=datetime.fromtimestamp(snapshot.timestamp / 1000, tz=timezone.utc),
        integration=IntegrationStatus(active=active),
    )
