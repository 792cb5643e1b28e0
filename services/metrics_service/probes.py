"""
Host probes — process CPU/memory, build-artifact freshness, host manifest.

Architecture decisions:
  1. psutil for process stats. It works the same on Linux, macOS and
     Windows, and cpu_times() gives cumulative user/system seconds.
  2. CPU percent is derived from the CPU-time delta over the wall-clock
     delta between two probes, clamped to [0, 100]. No synthetic values:
     an idle process reports ~0%.
  3. Probing never raises into the flush cycle. A failed probe logs a
     warning and the last known values are reported again.
  4. The host manifest is read fresh each cycle, so renaming the project
     in pyproject.toml shows up without a restart.
"""

from __future__ import annotations

import os
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

import psutil

try:
    import tomllib
except ImportError:
    import tomli as tomllib  # type: ignore[import-not-found]

from services.metrics_service.models import BuildInfo, ResourceUsage
from utils.logger import get_logger

_log = get_logger(__name__)

_BYTES_PER_MB = 1024 * 1024


@dataclass(frozen=True)
class ResourceSample:
    """Raw probe reading: RSS bytes and cumulative CPU seconds."""

    memory_bytes: int
    cpu_time_user: float
    cpu_time_system: float


class ResourceProbe:
    """Reads the current process through psutil."""

    def __init__(self, process: Optional[psutil.Process] = None) -> None:
        self._process = process or psutil.Process(os.getpid())

    def sample(self) -> ResourceSample:
        mem = self._process.memory_info()
        cpu = self._process.cpu_times()
        return ResourceSample(
            memory_bytes=mem.rss,
            cpu_time_user=cpu.user,
            cpu_time_system=cpu.system,
        )


class ResourceTracker:
    """Turns successive ResourceSamples into a ResourceUsage."""

    def __init__(
        self,
        probe: Optional[ResourceProbe] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._probe = probe or ResourceProbe()
        self._clock = clock
        self._last = ResourceUsage()
        self._baseline: Optional[Tuple[float, ResourceSample]] = None
        try:
            self._baseline = (self._clock(), self._probe.sample())
        except Exception as e:
            _log.warning("resource_probe_failed", error=str(e), phase="baseline")

    @property
    def last(self) -> ResourceUsage:
        return self._last

    def collect(self) -> ResourceUsage:
        try:
            sample = self._probe.sample()
        except Exception as e:
            _log.warning("resource_probe_failed", error=str(e))
            return self._last

        now = self._clock()
        cpu_usage = self._last.cpu_usage
        if self._baseline is not None:
            then, previous = self._baseline
            wall = now - then
            if wall > 0:
                used = (sample.cpu_time_user - previous.cpu_time_user) + (
                    sample.cpu_time_system - previous.cpu_time_system
                )
                cpu_usage = min(100.0, max(0.0, used / wall * 100))

        self._baseline = (now, sample)
        self._last = ResourceUsage(
            cpu_usage=cpu_usage,
            memory_usage=sample.memory_bytes / _BYTES_PER_MB,
        )
        return self._last


# ── Build artifact ──────────────────────────────────────────

@dataclass(frozen=True)
class BuildArtifact:
    exists: bool
    last_modified: Optional[float] = None  # epoch seconds


class BuildInspector:
    """Reports whether the build artifact exists and when it last changed."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def inspect(self) -> BuildArtifact:
        try:
            st = self._path.stat()
        except FileNotFoundError:
            return BuildArtifact(exists=False)
        return BuildArtifact(exists=True, last_modified=st.st_mtime)


def build_info_from(artifact: BuildArtifact, now_ms: float, is_production: bool) -> BuildInfo:
    """Derive BuildInfo; build_time is ms since the artifact changed, 0 when absent."""
    if not artifact.exists or artifact.last_modified is None:
        return BuildInfo(is_production=is_production)
    return BuildInfo(
        last_build=datetime.fromtimestamp(artifact.last_modified, tz=timezone.utc),
        build_time=max(0.0, now_ms - artifact.last_modified * 1000),
        is_production=is_production,
    )


# ── Host manifest ───────────────────────────────────────────

class ManifestReader:
    """Reads the host project's name from its pyproject.toml."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def project_name(self) -> Optional[str]:
        """[project].name, else [tool.poetry].name; None when absent."""
        try:
            with open(self._path, "rb") as f:
                data = tomllib.load(f)
        except FileNotFoundError:
            return None

        name = data.get("project", {}).get("name")
        if not name:
            name = data.get("tool", {}).get("poetry", {}).get("name")
        return name if isinstance(name, str) and name else None
