"""
Structured logging for the collector and its host app.

Architecture decisions:
  1. structlog everywhere, bridged into stdlib logging, so uvicorn and
     starlette records go through the same handler and renderer as the
     collector's own events (metrics_summary, metrics_write_failed, ...).
  2. Console rendering for local dev, JSON when MONITOR_LOG_JSON is set,
     so the host can ship collector events to its log aggregator.
  3. Every line is tagged with the monitored project's name. A host that
     embeds several monitors still binds `project` explicitly per event.
  4. uvicorn's access log is quieted: MetricsMiddleware already counts
     every request, and one line per request is noise on the hot path.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping, Optional

import structlog


class ProjectTagger:
    """structlog processor: adds `project` unless the event already has one."""

    def __init__(self, project: str) -> None:
        self.project = project

    def __call__(
        self, logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
    ) -> MutableMapping[str, Any]:
        event_dict.setdefault("project", self.project)
        return event_dict


def setup_logging(
    *,
    level: str = "INFO",
    json_output: bool = False,
    project: Optional[str] = None,
) -> None:
    """
    Call once at process startup, before the monitor starts. Routes stdlib
    logging and structlog through one stderr handler.
    """
    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if project:
        shared_processors.append(ProjectTagger(project))
    shared_processors += [
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Named logger for a collector module: `_log = get_logger(__name__)`."""
    return structlog.get_logger(name)
