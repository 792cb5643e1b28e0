"""
In-process request telemetry — record, aggregate, persist.
"""

from services.metrics_service.classifier import PageType, classify
from services.metrics_service.counters import Counters, CountersView, OVERFLOW_ROUTE
from services.metrics_service.aggregator import build_record, compute_snapshot
from services.metrics_service.models import MetricsRecord, Snapshot
from services.metrics_service.monitor import Monitor, create_monitor
from services.metrics_service.recorder import Kind, Recorder
from services.metrics_service.sample_buffer import SampleBuffer
from services.metrics_service.scheduler import Scheduler, SchedulerState

__all__ = [
    "Counters",
    "CountersView",
    "Kind",
    "MetricsRecord",
    "Monitor",
    "OVERFLOW_ROUTE",
    "PageType",
    "Recorder",
    "SampleBuffer",
    "Scheduler",
    "SchedulerState",
    "Snapshot",
    "build_record",
    "classify",
    "compute_snapshot",
    "create_monitor",
]
