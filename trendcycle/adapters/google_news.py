"""
Adapter dedicated to Google News RSS (top stories or a search query).
"""
from __future__ import annotations

from typing import Dict, Optional
from urllib.parse import urlencode

from trendcycle.adapters.rss import DEFAULT_LIMIT, RssFeedSource


class GoogleNewsRssSource(RssFeedSource):
    """
    Builds the Google News RSS URL for a locale and delegates to ``RssFeedSource``.
    """

    top_stories_url = "https://news.google.com/rss"
    search_url = "https://news.google.com/rss/search"

    def __init__(
        self,
        query: Optional[str] = None,
        name: str = "",
        genre: str = "GENERAL",
        hl: str = "ja",
        gl: str = "JP",
        ceid: str = "JP:ja",
        limit: int = DEFAULT_LIMIT,
        timeout: float = 15,
        query_params: Optional[Dict[str, str]] = None,
    ) -> None:
        self.query = (query or "").strip() or None
        self.hl = hl
        self.gl = gl
        self.ceid = ceid
        self.query_params = query_params or {}
        display = name or (f"GoogleNews-{self.query}" if self.query else f"GoogleNews-{gl}")
        super().__init__(
            url=self._build_feed_url(),
            name=display,
            genre=genre,
            limit=limit,
            timeout=timeout,
        )

    def _build_feed_url(self) -> str:
        params: Dict[str, str] = {"hl": self.hl, "gl": self.gl, "ceid": self.ceid}
        params.update(self.query_params)
        if self.query:
            return f"{self.search_url}?{urlencode({'q': self.query, **params})}"
        return f"{self.top_stories_url}?{urlencode(params)}"
