"""
Monitor — one owned collector instance: state, probes, persistence, timer.

Architecture decisions:
  1. No module-level singleton. The host creates a Monitor and passes it
     where requests are handled (the FastAPI app keeps it on app.state).
     Tests build as many isolated monitors as they like.
  2. flush() is the whole cycle: probe → snapshot → record → persist →
     present. The Scheduler only decides *when* it runs.
  3. flush() holds a lock, so a cycle and an explicit flush from another
     thread never interleave their writes.
  4. Probes degrade rather than fail: build info and the manifest's
     project name fall back to the last good reading, resource usage to
     the tracker's last values.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from configs.settings import Settings, get_settings
from services.metrics_service.aggregator import build_record, compute_snapshot
from services.metrics_service.counters import Counters
from services.metrics_service.models import BuildInfo, MetricsRecord, Snapshot
from services.metrics_service.persister import JsonFilePersister
from services.metrics_service.probes import (
    BuildInspector,
    ManifestReader,
    ResourceTracker,
    build_info_from,
)
from services.metrics_service.recorder import Recorder
from services.metrics_service.sample_buffer import SampleBuffer
from services.metrics_service.scheduler import Scheduler
from utils.logger import get_logger
from utils.timing import now_ms, timed

_log = get_logger(__name__)


class Monitor:
    """Owns the accumulator for one host process and drives its persistence."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        persister: Optional[Any] = None,
        resources: Optional[ResourceTracker] = None,
        build_inspector: Optional[BuildInspector] = None,
        manifest: Optional[ManifestReader] = None,
        clock: Callable[[], float] = now_ms,
    ) -> None:
        self._settings = settings or get_settings()
        self._clock = clock
        self._start_time = clock()

        self._buffer = SampleBuffer(self._settings.sample_window)
        self._counters = Counters(self._settings.max_routes)
        self._recorder = Recorder(
            self._counters,
            self._buffer,
            verbose=self._settings.enable_console_output,
        )

        self._persister = persister or JsonFilePersister(self._settings.metrics_file)
        self._resources = resources or ResourceTracker()
        self._build_inspector = build_inspector or BuildInspector(self._settings.build_artifact_path)
        self._build_info = BuildInfo(is_production=self._settings.is_production)
        if manifest is None and self._settings.project_manifest:
            manifest = ManifestReader(self._settings.project_manifest)
        self._manifest = manifest
        self._project_name = self._settings.project_name

        self._flush_lock = threading.Lock()
        self._last_record: Optional[MetricsRecord] = None
        self._scheduler = Scheduler(self.flush, self._settings.update_interval)

        _log.info(
            "monitor_initialized",
            project=self._settings.project_name,
            metrics_file=self._settings.metrics_file,
        )

    # ── Accessors ───────────────────────────────────────────

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def recorder(self) -> Recorder:
        return self._recorder

    @property
    def counters(self) -> Counters:
        return self._counters

    @property
    def buffer(self) -> SampleBuffer:
        return self._buffer

    @property
    def scheduler(self) -> Scheduler:
        return self._scheduler

    @property
    def project_name(self) -> str:
        """Name reported in records: the host manifest's, else settings."""
        return self._project_name

    @property
    def last_record(self) -> Optional[MetricsRecord]:
        """The most recently persisted record, if any."""
        return self._last_record

    # ── Snapshot / cycle ────────────────────────────────────

    def snapshot(self) -> Snapshot:
        """On-demand snapshot; no probing, no persistence."""
        return compute_snapshot(self._counters, self._buffer, self._start_time, self._clock())

    def collect(self) -> MetricsRecord:
        """Probe the host and build the record for the current state."""
        resources = self._resources.collect()
        now = self._clock()
        self._build_info = self._collect_build_info(now)
        self._project_name = self._collect_project_name()
        snapshot = compute_snapshot(self._counters, self._buffer, self._start_time, now)
        return build_record(
            snapshot,
            project_name=self._project_name,
            resources=resources,
            build_info=self._build_info,
            active=self._scheduler.running,
        )

    def _collect_build_info(self, now: float) -> BuildInfo:
        try:
            artifact = self._build_inspector.inspect()
        except Exception as e:
            _log.warning("build_probe_failed", path=str(self._build_inspector.path), error=str(e))
            return self._build_info
        return build_info_from(artifact, now, self._settings.is_production)

    def _collect_project_name(self) -> str:
        if self._manifest is None:
            return self._project_name
        try:
            name = self._manifest.project_name()
        except Exception as e:
            _log.warning("manifest_probe_failed", path=str(self._manifest.path), error=str(e))
            return self._project_name
        return name or self._settings.project_name

    def flush(self) -> MetricsRecord:
        """Collect, persist and (optionally) present one record."""
        with self._flush_lock:
            with timed("metrics_flush"):
                record = self.collect()
                self._persister.write(record.to_document())
            self._last_record = record
            if self._settings.enable_console_output:
                self._present(record)
            return record

    def _present(self, record: MetricsRecord) -> None:
        _log.info(
            "metrics_summary",
            project=record.project_name,
            requests=record.request_count,
            active=record.active_connections,
            avg_response_ms=record.response_time,
            cpu_pct=round(record.cpu_usage, 1),
            memory_mb=round(record.memory_usage, 1),
            success_rate=record.success_rate,
            uptime_min=int(record.uptime // 60000),
            pages=record.pages.model_dump(),
        )

    # ── Lifecycle ───────────────────────────────────────────

    async def start(self) -> None:
        await self._scheduler.start()
        _log.info("monitor_started", project=self._settings.project_name)

    async def stop(self) -> None:
        await self._scheduler.stop()
        _log.info(
            "monitor_stopped",
            project=self._settings.project_name,
            requests=self._counters.request_count,
        )

    async def __aenter__(self) -> "Monitor":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()


def create_monitor(**overrides: Any) -> Monitor:
    """
    Build a Monitor from env-derived settings with keyword overrides:
        monitor = create_monitor(project_name="shop", update_interval=1000)
    """
    return Monitor(Settings(**overrides))
