"""
Precision timing for request instrumentation.

We use time.perf_counter_ns() (monotonic, nanosecond) for durations and
time.time() only for wall-clock stamps (uptime, persisted timestamps).
Durations must never go negative when NTP adjusts the clock.
"""

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Generator, Optional

from utils.logger import get_logger

_log = get_logger(__name__)


@contextmanager
def timed(label: str) -> Generator[dict, None, None]:
    """
    Context manager that measures elapsed time in milliseconds.

    Usage:
        with timed("metrics_flush") as t:
            persist(record)
        print(t["ms"])  # e.g. 0.82

    The dict is populated *after* the block finishes.
    """
    result: dict = {}
    start = time.perf_counter_ns()
    try:
        yield result
    finally:
        elapsed_ns = time.perf_counter_ns() - start
        result["ns"] = elapsed_ns
        result["ms"] = elapsed_ns / 1_000_000
        _log.debug(label, latency_ms=round(result["ms"], 3))


def now_ms() -> float:
    """Wall-clock time as epoch milliseconds."""
    return time.time() * 1000.0


class Stopwatch:
    """
    Started on construction, read in milliseconds.

    Usage:
        sw = Stopwatch()
        do_work()
        elapsed = sw.stop()   # e.g. 4.32

    stop() freezes the reading; later calls return the same value, so
    the bookkeeping in a finally block can read it safely more than once.
    """

    __slots__ = ("_start_ns", "_elapsed_ns")

    def __init__(self) -> None:
        self._start_ns = time.perf_counter_ns()
        self._elapsed_ns: Optional[int] = None

    def stop(self) -> float:
        if self._elapsed_ns is None:
            self._elapsed_ns = time.perf_counter_ns() - self._start_ns
        return self._elapsed_ns / 1_000_000

    @property
    def elapsed_ms(self) -> float:
        if self._elapsed_ns is not None:
            return self._elapsed_ns / 1_000_000
        return (time.perf_counter_ns() - self._start_ns) / 1_000_000
