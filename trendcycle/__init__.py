"""
Public API for the trend lifecycle pipeline.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from trendcycle.models import Category, PersistedDocument, RunResult, TrendItem
from trendcycle.pipeline import TrendPipeline, resolve_timezone
from trendcycle.retention import RetentionStore
from trendcycle.settings import TrendSettings, load_settings
from trendcycle.status import build_status

__all__ = [
    "Category",
    "PersistedDocument",
    "RunResult",
    "TrendItem",
    "TrendPipeline",
    "TrendSettings",
    "load_settings",
    "run_once",
    "get_pipeline_status",
]


def run_once(now: Optional[datetime] = None, settings: Optional[TrendSettings] = None) -> RunResult:
    """
    Build the pipeline from settings/config files and run a single cycle.
    """
    return TrendPipeline.from_settings(settings or load_settings()).run(now=now)


def get_pipeline_status(settings: Optional[TrendSettings] = None) -> Dict[str, Any]:
    """Structured status payload for the persisted document."""
    settings = settings or load_settings()
    document = RetentionStore(settings.db_path).load()
    return build_status(document, settings, tz=resolve_timezone(settings.timezone))
