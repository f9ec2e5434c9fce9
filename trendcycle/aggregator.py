"""
Polls every feed source, cleans and classifies entries, and deduplicates by title.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set, Tuple

from crawler.schemas.models import RawFeedRecord

from trendcycle.adapters.base import FeedSource
from trendcycle.classifier import Classifier
from trendcycle.errors import AllSourcesFailed, SourceUnavailable
from trendcycle.identity import slugify
from trendcycle.models import HealthStatus, IngestionResult, TrendItem
from trendcycle.normalizer import FallbackPolicy, clean_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_DESCRIPTION = 200


def _timed_fetch(source: FeedSource) -> Tuple[List[RawFeedRecord], float]:
    start = time.time()
    records = source.fetch()
    return list(records or []), (time.time() - start) * 1000


class IngestionAggregator:
    def __init__(
        self,
        sources: Sequence[FeedSource],
        classifier: Classifier,
        *,
        max_description: int = DEFAULT_MAX_DESCRIPTION,
        fallback: Optional[FallbackPolicy] = None,
        max_workers: Optional[int] = None,
    ) -> None:
        self.sources = list(sources)
        self.classifier = classifier
        self.max_description = max_description
        self.fallback = fallback or FallbackPolicy()
        self.max_workers = max_workers

    def collect(self, now: datetime) -> IngestionResult:
        """
        Fetch all sources concurrently, then process them in configured order.

        Processing order (not completion order) decides which source wins a
        duplicate title. Raises ``AllSourcesFailed`` when no source answered.
        """
        fetched = self._fetch_all()

        candidates: List[TrendItem] = []
        suppressed: List[TrendItem] = []
        health: List[HealthStatus] = []
        failures: Dict[str, str] = {}
        seen: Set[str] = set()
        suppressed_seen: Set[str] = set()

        for source, outcome in zip(self.sources, fetched):
            name = getattr(source, "name", repr(source))
            records, latency_ms, error = outcome
            if error is not None:
                failures[name] = error
                health.append(HealthStatus(name=name, healthy=False, last_error=error, latency_ms=latency_ms))
                continue

            accepted = 0
            for record in records:
                item = self._build_item(record, source)
                if item is None:
                    continue
                if item.suppressed:
                    if item.title not in suppressed_seen:
                        suppressed_seen.add(item.title)
                        suppressed.append(item)
                    continue
                if item.title in seen:
                    continue
                seen.add(item.title)
                candidates.append(item)
                accepted += 1

            health.append(
                HealthStatus(
                    name=name,
                    healthy=True,
                    last_success=now,
                    items_last_fetch=len(records),
                    latency_ms=latency_ms,
                )
            )
            logger.info("Fetched %s records from %s (%s accepted)", len(records), name, accepted)

        if len(failures) == len(self.sources):
            raise AllSourcesFailed(failures)
        if suppressed:
            logger.info("Suppressed %s items by policy", len(suppressed))
        return IngestionResult(candidates=candidates, suppressed=suppressed, health=health)

    def _fetch_all(self) -> List[Tuple[List[RawFeedRecord], Optional[float], Optional[str]]]:
        if not self.sources:
            return []
        workers = self.max_workers or min(8, max(1, len(self.sources)))
        outcomes: List[Tuple[List[RawFeedRecord], Optional[float], Optional[str]]] = []
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(_timed_fetch, source) for source in self.sources]
            for source, future in zip(self.sources, futures):
                name = getattr(source, "name", repr(source))
                try:
                    records, latency_ms = future.result()
                except SourceUnavailable as exc:
                    logger.warning("Source %s unavailable: %s", name, exc.reason)
                    outcomes.append(([], None, exc.reason))
                    continue
                except Exception as exc:
                    logger.exception("Source %s failed unexpectedly", name)
                    outcomes.append(([], None, str(exc) or exc.__class__.__name__))
                    continue
                outcomes.append((records, latency_ms, None))
        return outcomes

    def _build_item(self, record: RawFeedRecord, source: FeedSource) -> Optional[TrendItem]:
        title = clean_text(record.title)
        if not title:
            return None
        description = self.fallback.apply(clean_text(record.description, max_length=self.max_description))
        result = self.classifier.classify(title, description, record.heat)
        return TrendItem(
            title=title,
            description=description,
            source=getattr(source, "name", ""),
            genre=getattr(source, "genre", "GENERAL"),
            category=result.category,
            suppressed=result.suppressed,
            slug=slugify(title),
            heat=self.classifier.effective_heat(record.heat),
            link=record.link or "",
        )
