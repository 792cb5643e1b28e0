"""
Periodic flush driver with drain-on-stop.

Architecture decisions:
  1. One asyncio task per scheduler, living in the host's event loop.
     The flush callable does blocking file I/O, so each cycle runs it in
     a worker thread via run_in_executor. The event loop never blocks.
  2. The timer waits on an asyncio.Event with a timeout instead of
     sleeping. stop() sets the event: an idle timer wakes immediately,
     a running cycle finishes first. Nothing is cancelled mid-write, so
     a stale cycle can never land after the final flush.
  3. stop() is a drain: pending start → loop ends → one final flush →
     state STOPPED. A stop() issued during the initial flush waits for it
     and the loop is never armed. STOPPED is terminal. Build a new
     scheduler to resume.
  4. Cycle errors are logged and swallowed. One bad probe or full disk
     must not end periodic collection.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Optional

from utils.logger import get_logger

_log = get_logger(__name__)


class SchedulerState(str, Enum):
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"


class Scheduler:
    """Calls `flush` every `interval_ms` until stopped, then once more."""

    def __init__(self, flush: Callable[[], Any], interval_ms: int = 5000) -> None:
        if interval_ms <= 0:
            raise ValueError(f"interval_ms must be positive, got {interval_ms}")
        self._flush = flush
        self._interval = interval_ms / 1000
        self._state = SchedulerState.CREATED
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._starting: Optional[asyncio.Future] = None
        self._drain: Optional[asyncio.Future] = None
        self._cycles = 0

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def cycles(self) -> int:
        """Completed periodic cycles (initial and final flushes excluded)."""
        return self._cycles

    # ── Lifecycle ───────────────────────────────────────────

    async def start(self) -> None:
        """Flush once, then arm the periodic timer. Concurrent callers share one start."""
        if self._state is SchedulerState.STOPPED or self._drain is not None:
            raise RuntimeError("scheduler is stopped; create a new instance to resume")
        if self._starting is None:
            self._stop_event = asyncio.Event()
            self._state = SchedulerState.RUNNING
            self._starting = asyncio.ensure_future(self._flush_and_arm())
        await asyncio.shield(self._starting)

    async def _flush_and_arm(self) -> None:
        await self._run_flush("initial")
        # stop() may have been requested during the initial flush.
        if self._stop_event.is_set():
            return
        self._task = asyncio.create_task(self._run_loop())
        _log.info("scheduler_started", interval_ms=int(self._interval * 1000))

    async def stop(self) -> None:
        """Drain: let any in-flight cycle finish, flush once more, then stop."""
        if self._state is SchedulerState.STOPPED:
            return
        if self._drain is None:
            self._drain = asyncio.ensure_future(self._drain_and_flush())
        await asyncio.shield(self._drain)

    async def _drain_and_flush(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()
        if self._starting is not None:
            await self._starting
        if self._task is not None:
            await self._task
        await self._run_flush("final")
        self._state = SchedulerState.STOPPED
        _log.info("scheduler_stopped", cycles=self._cycles)

    async def __aenter__(self) -> "Scheduler":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # ── Loop ────────────────────────────────────────────────

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                await self._run_flush("periodic")
                self._cycles += 1

    async def _run_flush(self, phase: str) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._flush)
        except Exception as e:
            _log.error("metrics_cycle_failed", phase=phase, error=str(e))
