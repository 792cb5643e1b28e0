"""
Centralized configuration — loaded once at process startup.

Why a single settings module?
  - The collector and the host app read the same env vars.
  - Pydantic validates types at construction so we fail fast on bad config.
  - Every option can be overridden independently, either as a keyword
    argument (Settings(update_interval=1000)) or as a MONITOR_* env var.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Immutable, validated collector settings from environment."""

    # ── Output ──────────────────────────────────────────────
    metrics_file: str = Field(
        default="./telemetry-metrics.json",
        description="Path of the JSON document rewritten every cycle",
    )
    update_interval: int = Field(default=5000, gt=0, description="Flush period in milliseconds")
    enable_console_output: bool = Field(default=True, description="Log a summary after each flush")
    project_name: str = Field(default="Existing-App")

    # ── Aggregation bounds ──────────────────────────────────
    sample_window: int = Field(default=1000, gt=0, description="Timing samples kept for the rolling mean")
    max_routes: int = Field(default=1000, gt=0, description="Distinct routes tallied before overflow bucketing")

    # ── Build info ──────────────────────────────────────────
    build_artifact_path: str = Field(default="./build", description="File or directory whose mtime marks the last build")
    app_env: str = Field(default="development")
    project_manifest: Optional[str] = Field(
        default=None,
        description="Host pyproject.toml; when set, its project name replaces project_name",
    )

    # ── Logging ─────────────────────────────────────────────
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False, description="Render logs as JSON instead of console text")

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    class Config:
        env_prefix = "MONITOR_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Singleton accessor — parsed once and cached for the process lifetime.
    Monitors built without explicit settings use this:
        from configs.settings import get_settings
        cfg = get_settings()
    """
    return Settings()
