"""
Monotonic request tallies plus the live in-flight gauge.

Architecture decisions:
  1. One lock for all counters. A completed request touches four of them
     (requests, success/error, page type, route) and they must move
     together, otherwise concurrent increments could be lost.
  2. Readers get a CountersView: a frozen copy taken under the lock.
     The aggregator never sees a half-applied request.
  3. RouteTally is bounded. Route strings come from the host (URLs,
     event names) and are unbounded in principle, so after `max_routes`
     distinct keys new routes fold into OVERFLOW_ROUTE.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Dict

from services.metrics_service.classifier import PageType

DEFAULT_MAX_ROUTES = 1000
OVERFLOW_ROUTE = "__other__"


class RouteTally:
    """
    Route → visit count with a cap on distinct keys.

    Not synchronized on its own; Counters holds its lock around every call.
    """

    def __init__(self, max_routes: int = DEFAULT_MAX_ROUTES) -> None:
        if max_routes <= 0:
            raise ValueError(f"max_routes must be positive, got {max_routes}")
        self._counts: Dict[str, int] = {}
        self._max_routes = max_routes

    def increment(self, route: str) -> str:
        """Count one visit and return the key it was counted under."""
        if route not in self._counts and len(self._counts) >= self._max_routes:
            route = OVERFLOW_ROUTE
        self._counts[route] = self._counts.get(route, 0) + 1
        return route

    def as_dict(self) -> Dict[str, int]:
        return dict(self._counts)

    def __len__(self) -> int:
        return len(self._counts)


@dataclass(frozen=True)
class CountersView:
    """Point-in-time copy of Counters."""

    request_count: int = 0
    error_count: int = 0
    success_count: int = 0
    active_connections: int = 0
    pages: Dict[str, int] = field(default_factory=lambda: {p.value: 0 for p in PageType})
    routes: Dict[str, int] = field(default_factory=dict)


class Counters:
    """Thread-safe request, outcome, page and route tallies."""

    def __init__(self, max_routes: int = DEFAULT_MAX_ROUTES) -> None:
        self._lock = threading.Lock()
        self._request_count = 0
        self._error_count = 0
        self._success_count = 0
        self._active_connections = 0
        self._pages: Dict[PageType, int] = {p: 0 for p in PageType}
        self._routes = RouteTally(max_routes)

    # ── In-flight gauge ─────────────────────────────────────

    def enter(self) -> None:
        with self._lock:
            self._active_connections += 1

    def exit(self) -> None:
        with self._lock:
            self._active_connections = max(0, self._active_connections - 1)

    # ── Tallies ─────────────────────────────────────────────

    def record_request(self, route: str, page: PageType, success: bool) -> None:
        """Count one completed request with its outcome."""
        with self._lock:
            self._request_count += 1
            if success:
                self._success_count += 1
            else:
                self._error_count += 1
            self._pages[page] += 1
            self._routes.increment(route)

    def record_page_view(self, route: str, page: PageType) -> None:
        with self._lock:
            self._pages[page] += 1
            self._routes.increment(route)

    def record_route(self, route: str) -> None:
        with self._lock:
            self._routes.increment(route)

    # ── Reads ───────────────────────────────────────────────

    @property
    def active_connections(self) -> int:
        return self._active_connections

    @property
    def request_count(self) -> int:
        return self._request_count

    def view(self) -> CountersView:
        with self._lock:
            return CountersView(
                request_count=self._request_count,
                error_count=self._error_count,
                success_count=self._success_count,
                active_connections=self._active_connections,
                pages={p.value: n for p, n in self._pages.items()},
                routes=self._routes.as_dict(),
            )
