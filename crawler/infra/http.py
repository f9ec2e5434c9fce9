"""
Reusable HTTP fetching utilities with polite defaults (timeouts, retries, throttling).
"""
from __future__ import annotations

import logging
import threading
import time
from typing import Dict, Optional

import requests

logger = logging.getLogger(__name__)


class HttpFetcher:
    """
    Thin wrapper over requests.Session with bounded timeouts, retries and per-domain throttling.
    """

    def __init__(
        self,
        user_agent: str = "Mozilla/5.0 (TrendCycle Feed Reader)",
        min_delay: float = 0.5,
        max_retries: int = 2,
        timeout: float = 15,
        backoff: float = 1.0,
    ) -> None:
        self.session = requests.Session()
        self.session.headers.update(
            {
                "User-Agent": user_agent,
                "Accept": "application/rss+xml,application/atom+xml,application/xml;q=0.9,*/*;q=0.8",
                "Accept-Language": "ja,en-US;q=0.8",
            }
        )
        self.min_delay = min_delay
        self.max_retries = max(1, max_retries)
        self.timeout = timeout
        self.backoff = backoff
        self.last_error: Optional[str] = None
        self._last_hit: Dict[str, float] = {}
        self._lock = threading.RLock()

    def fetch(self, url: str) -> Optional[requests.Response]:
        """
        Fetch ``url``. Returns None when the request ultimately fails; the reason is kept in ``last_error``.
        """
        self.last_error = None
        for attempt in range(self.max_retries):
            self._respect_delay(url)
            try:
                response = self.session.get(url, timeout=self.timeout)
                if response.status_code >= 400:
                    raise requests.HTTPError(f"HTTP {response.status_code}")
                return response
            except requests.RequestException as exc:
                self.last_error = str(exc)
                logger.debug("Fetch attempt %s/%s failed for %s: %s", attempt + 1, self.max_retries, url, exc)
                if attempt + 1 < self.max_retries:
                    time.sleep(min(30.0, self.backoff * (2 ** attempt)))
        logger.warning("Giving up on %s: %s", url, self.last_error)
        return None

    def _respect_delay(self, url: str) -> None:
        domain = self._extract_domain(url)
        with self._lock:
            last = self._last_hit.get(domain)
            now = time.time()
            if last and now - last < self.min_delay:
                time.sleep(self.min_delay - (now - last))
            self._last_hit[domain] = time.time()

    @staticmethod
    def _extract_domain(url: str) -> str:
        return url.split("/")[2] if "://" in url else url
