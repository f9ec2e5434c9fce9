"""
Adapter that fetches and parses a single RSS/Atom feed using the crawler helpers.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from crawler.infra.http import HttpFetcher
from crawler.ingesters.rss_base import parse_feed_entries
from crawler.schemas.models import RawFeedRecord

from trendcycle.errors import SourceUnavailable

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 14


class RssFeedSource:
    def __init__(
        self,
        url: str,
        name: str = "",
        genre: str = "GENERAL",
        limit: int = DEFAULT_LIMIT,
        timeout: float = 15,
        user_agent: Optional[str] = None,
        fetcher: Optional[HttpFetcher] = None,
    ) -> None:
        if not url or not url.strip():
            raise ValueError("RssFeedSource requires a feed url.")
        self.url = url.strip()
        self.name = name or self.url
        self.genre = genre
        self.limit = limit
        self.fetcher = fetcher or HttpFetcher(
            user_agent=user_agent or "Mozilla/5.0 (TrendCycle Feed Reader)",
            timeout=timeout,
        )

    def fetch(self) -> List[RawFeedRecord]:
        response = self.fetcher.fetch(self.url)
        if response is None:
            raise SourceUnavailable(self.name, self.fetcher.last_error or "no response")
        records = parse_feed_entries(response.content, self.name, limit=self.limit)
        logger.debug("%s returned %s records", self.name, len(records))
        return records
