"""
Request instrumentation middleware.

Architecture decisions:
  1. A Starlette BaseHTTPMiddleware wraps every request in
     Recorder.track(), so host routes need no code changes.
  2. Outcome follows the response: status >= 400 is an error, an
     exception escaping the app is an error and is re-raised unchanged.
  3. /api/* paths are recorded as kind "api"; everything else as "page",
     which the classifier splits into home and other.
  4. Paths in `exclude` (the collector's own probes by default) are not
     counted, so health checks don't inflate request rates.
"""

from __future__ import annotations

from typing import Callable, Iterable, Optional, Set

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from services.metrics_service.recorder import Kind, Recorder

DEFAULT_EXCLUDED_PATHS: Set[str] = {
    "/health",
    "/stats",
    "/docs",
    "/openapi.json",
    "/favicon.ico",
}


def request_kind(path: str) -> Kind:
    return Kind.API if path.startswith("/api/") else Kind.PAGE


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record timing and outcome of every HTTP request."""

    def __init__(
        self,
        app,
        recorder: Recorder,
        exclude: Optional[Iterable[str]] = None,
    ) -> None:
        super().__init__(app)
        self._recorder = recorder
        self._exclude = set(DEFAULT_EXCLUDED_PATHS if exclude is None else exclude)

    async def dispatch(self, request: Request, call_next: Callable):
        path = request.url.path or "unknown"
        if path in self._exclude:
            return await call_next(request)

        with self._recorder.track(path, request_kind(path)) as call:
            response = await call_next(request)
            call.status_code = response.status_code
        return response
