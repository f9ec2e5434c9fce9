"""
Matches this run's candidates against the previous current set.

Identity is the exact cleaned title. A matched item keeps its ``first_seen``;
its duration is recomputed from it every run and never goes negative.
"""
from __future__ import annotations

import logging
import math
from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Union

from trendcycle.classifier import Classifier
from trendcycle.identity import normalized_key, unique_slug
from trendcycle.models import CATEGORY_PRIORITY, MergeResult, Ranking, TrendItem

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def elapsed_minutes(first_seen: Optional[datetime], now: datetime) -> int:
    if first_seen is None:
        return 0
    seconds = (now - first_seen).total_seconds()
    return max(0, math.floor(seconds / 60))


def _ensure_ranking(value: Union[Ranking, str]) -> Ranking:
    if isinstance(value, Ranking):
        return value
    try:
        return Ranking(str(value).strip().lower())
    except ValueError:
        logger.warning("Unknown ranking policy '%s', defaulting to heat", value)
        return Ranking.HEAT


def rank(items: Sequence[TrendItem], ranking: Union[Ranking, str] = Ranking.HEAT) -> List[TrendItem]:
    """Stable sort of ``items`` by the chosen policy; ties keep ingestion order."""
    policy = _ensure_ranking(ranking)
    if policy is Ranking.SOURCE:
        return list(items)
    if policy is Ranking.HEAT:
        return sorted(items, key=lambda item: -item.heat)
    if policy is Ranking.CATEGORY:
        return sorted(items, key=lambda item: (CATEGORY_PRIORITY[item.category], -item.heat))
    return sorted(items, key=lambda item: item.first_seen or _EPOCH, reverse=True)


def merge(
    candidates: Sequence[TrendItem],
    previous: Sequence[TrendItem],
    *,
    now: datetime,
    limit: int,
    ranking: Union[Ranking, str] = Ranking.HEAT,
    classifier: Optional[Classifier] = None,
) -> MergeResult:
    previous_by_key: Dict[str, TrendItem] = {}
    for item in previous:
        previous_by_key.setdefault(normalized_key(item.title), item)

    merged: List[TrendItem] = []
    seen = set()
    for candidate in candidates:
        key = normalized_key(candidate.title)
        if key in seen:
            continue
        seen.add(key)
        prior = previous_by_key.get(key)
        first_seen = prior.first_seen if prior is not None and prior.first_seen is not None else now
        duration = elapsed_minutes(first_seen, now)
        category = candidate.category
        if classifier is not None:
            category = classifier.categorize(candidate.title, candidate.description, candidate.heat, duration)
        slug = prior.slug if prior is not None and prior.slug else candidate.slug
        merged.append(
            replace(candidate, first_seen=first_seen, duration_minutes=duration, category=category, slug=slug)
        )

    current = rank(merged, ranking)[: max(limit, 0)]
    taken = set()
    for index, item in enumerate(current):
        slug = unique_slug(item.slug, item.title, taken)
        taken.add(slug)
        if slug != item.slug:
            current[index] = replace(item, slug=slug)

    kept = {normalized_key(item.title) for item in current}
    fallen: List[TrendItem] = []
    fallen_keys = set()
    for item in previous:
        key = normalized_key(item.title)
        if key in kept or key in fallen_keys:
            continue
        fallen_keys.add(key)
        fallen.append(replace(item, duration_minutes=elapsed_minutes(item.first_seen, now)))

    logger.info(
        "Merged %s candidates against %s previous: %s current, %s fallen",
        len(candidates),
        len(previous),
        len(current),
        len(fallen),
    )
    return MergeResult(current=current, fallen=fallen)
