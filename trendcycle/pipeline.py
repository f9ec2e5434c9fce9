"""
High-level orchestration of one batch run.

load previous document -> collect feeds -> merge -> graveyard -> atomic save
-> publish artifacts. Nothing is written when every feed source failed.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from trendcycle.adapters.base import FeedSource, build_sources
from trendcycle.aggregator import IngestionAggregator
from trendcycle.classifier import Classifier, Policy
from trendcycle.config_loader import load_policy, load_source_entries
from trendcycle.lifecycle import merge
from trendcycle.models import HealthStatus, RunResult
from trendcycle.publisher import ArtifactPublisher, PageTemplate
from trendcycle.rasterizer import Rasterizer, VibeCardRasterizer
from trendcycle.retention import RetentionStore, build_document
from trendcycle.settings import TrendSettings, load_settings

logger = logging.getLogger(__name__)


def resolve_timezone(name: str) -> tzinfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown timezone '%s'; using UTC", name)
        return timezone.utc


class TrendPipeline:
    def __init__(
        self,
        settings: TrendSettings,
        sources: Sequence[FeedSource],
        policy: Policy,
        template: PageTemplate,
        rasterizer: Rasterizer,
    ) -> None:
        self.settings = settings
        self.classifier = Classifier(policy)
        self.aggregator = IngestionAggregator(sources, self.classifier, max_description=settings.max_description)
        self.store = RetentionStore(settings.db_path)
        self.tz = resolve_timezone(settings.timezone)
        self.publisher = ArtifactPublisher(
            settings.output_dir,
            template,
            rasterizer,
            image_base_url=settings.image_base_url,
            tz=self.tz,
        )
        self._health: Dict[str, HealthStatus] = {}

    @classmethod
    def from_settings(cls, settings: Optional[TrendSettings] = None) -> "TrendPipeline":
        """Wire the pipeline from YAML config, the page template and the default rasterizer."""
        settings = settings or load_settings()
        sources = build_sources(load_source_entries(settings.sources_path), timeout=settings.http_timeout)
        template = PageTemplate.from_path(settings.template_path, data_source_ref=settings.data_source_url)
        return cls(settings, sources, load_policy(settings.policy_path), template, VibeCardRasterizer())

    def date_key(self, now: datetime) -> str:
        return now.astimezone(self.tz).strftime("%Y%m%d")

    def document_name(self) -> str:
        """Path of the persisted document as seen from the output root."""
        db_path = Path(self.settings.db_path)
        try:
            return db_path.resolve().relative_to(Path(self.settings.output_dir).resolve()).as_posix()
        except ValueError:
            logger.warning(
                "Document %s is outside output dir %s; pages will fetch '%s' from the site root",
                db_path,
                self.settings.output_dir,
                db_path.name,
            )
            return db_path.name

    def run(self, now: Optional[datetime] = None) -> RunResult:
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        settings = self.settings

        previous = self.store.load()
        ingestion = self.aggregator.collect(now)
        for status in ingestion.health:
            self._health[status.name] = status

        merged = merge(
            ingestion.candidates,
            previous.current,
            now=now,
            limit=settings.max_current,
            ranking=settings.ranking,
            classifier=self.classifier,
        )
        current = [replace(item, image=self.publisher.image_ref(item.slug)) for item in merged.current]
        document = build_document(
            current,
            merged.fallen,
            previous,
            now=now,
            date_key=self.date_key(now),
            max_graveyard=settings.max_graveyard,
            max_tags=settings.max_tags,
            max_archive_days=settings.max_archive_days,
        )
        self.store.save(document)

        fallen_titles = {item.title for item in merged.fallen}
        evicted = [entry for entry in document.graveyard if entry.evicted_at == now and entry.title in fallen_titles]
        publish = self.publisher.publish(document.current, now=now, document_name=self.document_name())

        logger.info("Build complete: %s trends, %s evicted", len(document.current), len(evicted))
        return RunResult(
            document=document,
            ingestion=ingestion,
            evicted=evicted,
            publish=publish,
            generated_at=now,
        )

    def get_health(self) -> List[HealthStatus]:
        return list(self._health.values())
