"""
FastAPI integration — an instrumented app with the collector wired in.

Architecture decisions:
  1. App factory, not a module-level app. Each app owns exactly one
     Monitor, stored on app.state and reached through the request.
     Nothing about the collector is process-global.
  2. The lifespan hook is the shutdown contract: on exit it awaits
     Monitor.stop(), which drains the running cycle and writes the final
     record before the server process is allowed to finish.
  3. MetricsMiddleware is added by the factory, so host routes included
     via `routers` are instrumented with zero code changes.
  4. ORJSONResponse as default response class, as in the rest of the
     stack.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Iterable, Optional

from fastapi import APIRouter, FastAPI
from fastapi.responses import ORJSONResponse

from configs.settings import get_settings
from services.api_gateway.endpoints import health_router
from services.api_gateway.middleware import MetricsMiddleware
from services.metrics_service.monitor import Monitor
from utils.logger import get_logger, setup_logging

_log = get_logger(__name__)


def create_app(
    monitor: Optional[Monitor] = None,
    *,
    routers: Iterable[APIRouter] = (),
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build an app whose requests are recorded by `monitor`.

    Host routes can be passed as routers or added to the returned app
    afterwards; the middleware sees them either way.
    """
    monitor = monitor or Monitor(get_settings())
    cfg = monitor.settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging(level=cfg.log_level, json_output=cfg.log_json, project=cfg.project_name)
        _log.info("startup_begin", project=cfg.project_name)
        await monitor.start()
        _log.info("startup_complete")

        yield  # ← Application runs here

        _log.info("shutdown_begin")
        await monitor.stop()
        _log.info("shutdown_complete")

    app = FastAPI(
        title=cfg.project_name,
        description="Host application instrumented by the request telemetry collector",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        redoc_url=None,
    )
    app.state.monitor = monitor
    app.add_middleware(MetricsMiddleware, recorder=monitor.recorder)
    app.include_router(health_router)
    for router in routers:
        app.include_router(router)
    return app


# ── Entry point for `uvicorn` ──────────────────────────────

def start_server(host: str = "0.0.0.0", port: int = 8000) -> None:
    """Serve a bare instrumented app (health + stats only)."""
    import uvicorn
    uvicorn.run(
        "services.api_gateway.app:create_app",
        factory=True,
        host=host,
        port=port,
        workers=1,  # One process: counters are in-process state
        log_level="info",
        access_log=False,  # The middleware already records every request
    )


if __name__ == "__main__":
    start_server()
