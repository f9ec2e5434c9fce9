"""
Status helpers for the trend pipeline.

The output is a plain JSON-able payload describing the persisted document and
the effective configuration. Source health lives on a running
:class:`~trendcycle.pipeline.TrendPipeline` (``get_health``) and is not
persisted, so it is not part of this payload.
"""
from __future__ import annotations

from datetime import datetime, timezone, tzinfo
from typing import Any, Dict, Optional

from trendcycle.models import PersistedDocument
from trendcycle.settings import TrendSettings


def build_status(
    document: PersistedDocument,
    settings: TrendSettings,
    *,
    tz: Optional[tzinfo] = None,
) -> Dict[str, Any]:
    last_update = document.last_update
    return {
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "document": {
            "path": str(settings.db_path),
            "current_count": len(document.current),
            "graveyard_count": len(document.graveyard),
            "tags": list(document.tags),
            "archive_list": list(document.archive_list),
            "last_update": last_update.isoformat() if last_update else None,
            "last_update_local": last_update.astimezone(tz).strftime("%Y-%m-%d %H:%M %Z") if last_update and tz else None,
        },
        "current": [
            {
                "title": item.title,
                "slug": item.slug,
                "category": item.category.value,
                "heat": item.heat,
                "duration_minutes": item.duration_minutes,
            }
            for item in document.current
        ],
        "config": {
            "output_dir": str(settings.output_dir),
            "max_current": settings.max_current,
            "max_graveyard": settings.max_graveyard,
            "ranking": settings.ranking.value,
            "timezone": settings.timezone,
        },
    }
