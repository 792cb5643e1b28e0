"""
Bounded rolling window of request durations.

Architecture decisions:
  1. collections.deque(maxlen=N). Appending to a full deque drops the
     oldest entry, so memory is fixed at N floats regardless of traffic.
  2. A lock guards push and read. deque.append alone is atomic in CPython,
     but mean() iterates, and iterating a deque while another thread
     mutates it raises RuntimeError.
  3. Only the mean is derived here. Percentiles are not part of the
     persisted record.
"""

from __future__ import annotations

import math
import threading
from collections import deque
from typing import List

DEFAULT_CAPACITY = 1000


class SampleBuffer:
    """Thread-safe FIFO of the last `capacity` durations (ms)."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._samples: deque = deque(maxlen=capacity)
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._samples.maxlen

    def push(self, duration_ms: float) -> None:
        """Append one sample, evicting the oldest once full."""
        value = float(duration_ms)
        if math.isnan(value) or value < 0:
            raise ValueError(f"duration must be a non-negative number, got {duration_ms!r}")
        with self._lock:
            self._samples.append(value)

    def mean(self) -> float:
        """Arithmetic mean of the current window, 0.0 when empty."""
        with self._lock:
            n = len(self._samples)
            if n == 0:
                return 0.0
            return math.fsum(self._samples) / n

    def values(self) -> List[float]:
        """Copy of the window, oldest first."""
        with self._lock:
            return list(self._samples)

    def __len__(self) -> int:
        return len(self._samples)
