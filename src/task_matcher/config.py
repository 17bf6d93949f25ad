"""Configuration for the task matcher."""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import MatchingWeights, TieBreak


class MatcherSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TASK_MATCHER_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app_env: Literal["development", "production", "test"] = "development"
    log_level: str = "INFO"
    store_backend: Literal["memory", "sqlite"] = "memory"
    sqlite_path: Path = Path("./tasks.db")
    telemetry_enabled: bool = True
    trace_log_path: Path = Path("logs/task-matcher-traces.jsonl")
    trace_db_path: Optional[Path] = None
    tie_break: TieBreak = TieBreak.RECENTLY_UPDATED
    default_max_results: int = Field(default=10, ge=1)
    default_min_confidence: float = Field(default=0.3, ge=0.0, le=1.0)
    weights: MatchingWeights = Field(default_factory=MatchingWeights)


@lru_cache(maxsize=1)
def get_settings() -> MatcherSettings:
    return MatcherSettings()
