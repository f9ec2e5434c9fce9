"""
Core data structures shared by the trend lifecycle engine.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional


class Category(str, Enum):
    HOT = "hot"
    NEW = "new"
    NOTABLE = "notable"
    ARCHIVE = "archive"


# Lower value ranks first.
CATEGORY_PRIORITY = {
    Category.HOT: 0,
    Category.NEW: 1,
    Category.NOTABLE: 2,
    Category.ARCHIVE: 3,
}


class Ranking(str, Enum):
    HEAT = "heat"
    CATEGORY = "category"
    RECENCY = "recency"
    SOURCE = "source"


@dataclass
class TrendItem:
    """
    One ingested headline. ``title`` doubles as the identity key across runs.
    """

    title: str
    description: str = ""
    source: str = ""
    genre: str = "GENERAL"
    category: Category = Category.NEW
    suppressed: bool = False
    slug: str = ""
    heat: int = 0
    first_seen: Optional[datetime] = None
    duration_minutes: int = 0
    image: str = ""
    link: str = ""


@dataclass
class GraveyardEntry:
    title: str
    evicted_at: Optional[datetime] = None
    slug: str = ""
    duration_minutes: int = 0


@dataclass
class PersistedDocument:
    current: List[TrendItem] = field(default_factory=list)
    graveyard: List[GraveyardEntry] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    archive_list: List[str] = field(default_factory=list)
    last_update: Optional[datetime] = None


@dataclass
class HealthStatus:
    name: str
    healthy: bool
    last_error: Optional[str] = None
    last_success: Optional[datetime] = None
    items_last_fetch: int = 0
    latency_ms: Optional[float] = None


@dataclass
class IngestionResult:
    candidates: List[TrendItem]
    suppressed: List[TrendItem]
    health: List[HealthStatus]


@dataclass
class MergeResult:
    current: List[TrendItem]
    fallen: List[TrendItem]


@dataclass
class PublishReport:
    written: List[str] = field(default_factory=list)
    unchanged: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)


@dataclass
class RunResult:
    document: PersistedDocument
    ingestion: IngestionResult
    evicted: List[GraveyardEntry]
    publish: PublishReport
    generated_at: datetime
