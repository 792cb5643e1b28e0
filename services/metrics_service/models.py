"""
Snapshot and persisted-record models.

Why Pydantic models instead of raw dicts?
  - Snapshots are frozen: once computed, nobody can mutate them.
  - camelCase aliases give the on-disk key names without hand-written
    mapping code; Python code keeps snake_case attributes.
  - model_dump(mode="json") handles datetimes for the persister.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

INTEGRATION_VERSION = "2.0"


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class PageCounts(_CamelModel):
    home: int = 0
    api: int = 0
    other: int = 0


class Snapshot(_CamelModel):
    """Immutable point-in-time view of the counters plus derived statistics."""

    request_count: int = Field(ge=0)
    error_count: int = Field(ge=0)
    success_count: int = Field(ge=0)
    active_connections: int = Field(ge=0)
    pages: PageCounts
    routes: Dict[str, int]

    response_time_avg: float = Field(description="Mean of the sample window, ms")
    request_rate: float = Field(description="Requests per second since start")
    error_rate: float = Field(description="Percent of requests that failed")
    success_rate: float = Field(description="Percent of requests that succeeded")
    uptime: float = Field(description="Milliseconds since the monitor started")
    timestamp: float = Field(description="Epoch milliseconds at computation")


class BuildInfo(_CamelModel):
    last_build: Optional[datetime] = None
    build_time: float = Field(default=0.0, description="Milliseconds since the last build")
    is_production: bool = False


class ResourceUsage(_CamelModel):
    cpu_usage: float = Field(default=0.0, description="Process CPU percent")
    memory_usage: float = Field(default=0.0, description="Resident set size, MB")


class IntegrationStatus(_CamelModel):
    ready: bool = True
    active: bool = False
    version: str = INTEGRATION_VERSION


class MetricsRecord(_CamelModel):
    """The document written to metrics_file each cycle."""

    project_name: str
    response_time: float
    cpu_usage: float
    memory_usage: float
    request_count: int
    error_count: int
    success_count: int
    active_connections: int
    timestamp: int
    uptime: float
    pages: PageCounts
    routes: Dict[str, int]
    build_info: BuildInfo
    request_rate: float
    error_rate: float
    success_rate: float
    last_updated: datetime
    integration: IntegrationStatus

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict with camelCase keys."""
        return self.model_dump(mode="json", by_alias=True)
