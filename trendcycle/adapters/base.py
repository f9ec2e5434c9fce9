"""
Feed source protocol + factory for pluggable headline feeds.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from crawler.schemas.models import RawFeedRecord

logger = logging.getLogger(__name__)


class FeedSource(Protocol):
    name: str
    genre: str

    def fetch(self) -> List[RawFeedRecord]:
        """Return raw records or raise ``SourceUnavailable``."""
        ...


def build_sources(entries: Iterable[Mapping[str, Any]], *, timeout: Optional[float] = None) -> List[FeedSource]:
    """
    Build adapters from ``sources.yaml`` style entries.

    Each entry needs a ``name`` and either a ``url`` (plain RSS/Atom) or a
    ``google_news`` block. Unusable entries are logged and skipped.
    """
    from trendcycle.adapters.google_news import GoogleNewsRssSource
    from trendcycle.adapters.rss import RssFeedSource

    sources: List[FeedSource] = []
    for entry in entries or []:
        if not isinstance(entry, Mapping):
            logger.warning("Ignoring malformed source entry: %r", entry)
            continue
        name = str(entry.get("name") or "").strip()
        genre = str(entry.get("genre") or "GENERAL").strip().upper()
        options: Dict[str, Any] = {"name": name, "genre": genre}
        if timeout is not None:
            options["timeout"] = timeout
        try:
            if entry.get("limit") is not None:
                options["limit"] = int(entry["limit"])
            if isinstance(entry.get("google_news"), Mapping):
                google = dict(entry["google_news"])
                sources.append(GoogleNewsRssSource(**google, **options))
            elif entry.get("url"):
                sources.append(RssFeedSource(url=str(entry["url"]), **options))
            else:
                logger.warning("Source %s has neither url nor google_news; skipping.", name or "<unnamed>")
        except (TypeError, ValueError) as exc:
            logger.warning("Failed to configure source %s: %s", name or "<unnamed>", exc)
    if not sources:
        logger.warning("No feed sources configured")
    return sources
