"""
Recorder — the public instrumentation surface.

Architecture decisions:
  1. One scoped primitive, track(), does all bookkeeping. observe(),
     observe_async() and the instrument() decorator are thin wrappers,
     so sync and async units of work share the same exit path.
  2. The gauge decrement and the outcome are recorded in `finally`.
     Exceptions (including asyncio.CancelledError) count as failures and
     propagate unchanged; the host's error semantics are untouched.
  3. A unit of work can also fail without raising: an HTTP handler that
     returns a 500 sets `call.status_code` and is counted as an error.
  4. No I/O on this path. Logging is debug-level and only for the
     low-volume event and page-view calls.
"""

from __future__ import annotations

import functools
import inspect
from contextlib import contextmanager
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Iterator, Optional, TypeVar, Union

from services.metrics_service.classifier import PageType, classify
from services.metrics_service.counters import Counters
from services.metrics_service.sample_buffer import SampleBuffer
from utils.logger import get_logger
from utils.timing import Stopwatch

_log = get_logger(__name__)

T = TypeVar("T")


class Kind(str, Enum):
    API = "api"
    PAGE = "page"
    CUSTOM = "custom"


class InFlight:
    """Handle for one tracked unit of work."""

    __slots__ = ("route", "kind", "status_code", "_stopwatch")

    def __init__(self, route: str, kind: Kind) -> None:
        self.route = route
        self.kind = kind
        self.status_code: Optional[int] = None
        self._stopwatch = Stopwatch()

    @property
    def failed(self) -> bool:
        return self.status_code is not None and self.status_code >= 400

    @property
    def elapsed_ms(self) -> float:
        return self._stopwatch.elapsed_ms


class Recorder:
    """Feeds Counters and SampleBuffer from instrumented units of work."""

    def __init__(
        self,
        counters: Counters,
        buffer: SampleBuffer,
        *,
        verbose: bool = False,
    ) -> None:
        self._counters = counters
        self._buffer = buffer
        self._verbose = verbose

    # ── Scoped tracking ─────────────────────────────────────

    @contextmanager
    def track(self, route: str, kind: Union[Kind, str] = Kind.API) -> Iterator[InFlight]:
        """
        Track the enclosed block as one request.

        Usage:
            with recorder.track("/api/users") as call:
                response = handler()
                call.status_code = response.status_code
        """
        call = InFlight(route, Kind(kind))
        self._counters.enter()
        success = False
        try:
            yield call
            success = not call.failed
        finally:
            try:
                self._complete(call, success)
            finally:
                self._counters.exit()

    def _complete(self, call: InFlight, success: bool) -> None:
        self._buffer.push(call._stopwatch.stop())
        page = PageType.API if call.kind is Kind.API else classify(call.route)
        self._counters.record_request(call.route, page, success)

    # ── Wrappers ────────────────────────────────────────────

    def observe(
        self,
        unit: Callable[..., T],
        route: str,
        kind: Union[Kind, str] = Kind.API,
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """Call `unit(*args, **kwargs)` under track() and return its result."""
        with self.track(route, kind):
            return unit(*args, **kwargs)

    async def observe_async(
        self,
        unit: Union[Awaitable[T], Callable[..., Awaitable[T]]],
        route: str,
        kind: Union[Kind, str] = Kind.API,
        *args: Any,
        **kwargs: Any,
    ) -> T:
        """
        Await a coroutine under track(). A coroutine function is called
        with `*args, **kwargs` first.
        """
        with self.track(route, kind):
            awaitable = unit(*args, **kwargs) if callable(unit) else unit
            return await awaitable

    def instrument(
        self,
        route: Optional[str] = None,
        kind: Union[Kind, str] = Kind.API,
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """
        Decorator form. Works on plain and async functions:

            @recorder.instrument("/api/orders")
            async def list_orders(request): ...
        """
        kind = Kind(kind)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            name = route or func.__qualname__

            if inspect.iscoroutinefunction(func):
                @functools.wraps(func)
                async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                    with self.track(name, kind):
                        return await func(*args, **kwargs)

                return async_wrapper

            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                with self.track(name, kind):
                    return func(*args, **kwargs)

            return wrapper

        return decorator

    # ── Unpaired events ─────────────────────────────────────

    def observe_event(
        self,
        name: str,
        duration_ms: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Record a named occurrence. A duration, when given, joins the sample
        window; request and outcome counts are not touched.
        """
        if duration_ms is not None:
            self._buffer.push(duration_ms)
        self._counters.record_route(name)
        if self._verbose:
            _log.info("custom_event_tracked", name=name, duration_ms=duration_ms, metadata=metadata or {})

    def track_page_view(self, page: str) -> PageType:
        """Count a page view by category and route, without timing."""
        page_type = classify(page)
        self._counters.record_page_view(page, page_type)
        if self._verbose:
            _log.info("page_view_tracked", page=page, page_type=page_type.value)
        return page_type
