"""
Shared helpers for RSS ingestion.
"""
from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import List, Optional

import feedparser

from crawler.schemas.models import RawFeedRecord

logger = logging.getLogger(__name__)

_TRAFFIC_RE = re.compile(r"(\d+(?:\.\d+)?)\s*([kKmM万億]?)")
_MULTIPLIERS = {"": 1, "k": 1_000, "m": 1_000_000, "万": 10_000, "億": 100_000_000}

# feedparser flattens namespaced tags; Google Trends uses ht:approx_traffic.
TRAFFIC_KEYS = ("ht_approx_traffic", "approx_traffic", "traffic")


def parse_traffic(raw: Optional[str]) -> Optional[int]:
    """
    Turn traffic strings such as ``"20,000+"``, ``"2K+"`` or ``"5万+"`` into ints.
    """
    if raw is None:
        return None
    text = str(raw).replace(",", "").strip()
    match = _TRAFFIC_RE.search(text)
    if not match:
        return None
    number, suffix = match.groups()
    return int(float(number) * _MULTIPLIERS.get(suffix.lower(), 1))


def parse_feed_entries(feed_content: bytes, source: str, limit: Optional[int] = None) -> List[RawFeedRecord]:
    feed = feedparser.parse(feed_content)
    if getattr(feed, "bozo", False) and not getattr(feed, "entries", None):
        logger.warning("Feed %s could not be parsed: %s", source, getattr(feed, "bozo_exception", "unknown error"))
    items: List[RawFeedRecord] = []
    for entry in getattr(feed, "entries", []):
        summary = entry.get("summary") or entry.get("description") or ""
        heat = None
        for key in TRAFFIC_KEYS:
            if entry.get(key):
                heat = entry.get(key)
                break
        items.append(
            RawFeedRecord(
                source=source,
                title=entry.get("title", ""),
                description=summary,
                heat=parse_traffic(heat),
                link=entry.get("link") or None,
                published_at=_parse_datetime(entry.get("published_parsed")),
            )
        )
        if limit is not None and len(items) >= limit:
            break
    return items


def _parse_datetime(struct_time) -> Optional[datetime]:
    if not struct_time:
        return None
    return datetime(*struct_time[:6], tzinfo=timezone.utc)
