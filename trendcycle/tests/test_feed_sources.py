import unittest
from unittest.mock import MagicMock, patch

import requests

from crawler.infra.http import HttpFetcher
from crawler.ingesters.rss_base import parse_feed_entries, parse_traffic
from trendcycle.adapters.base import build_sources
from trendcycle.adapters.google_news import GoogleNewsRssSource
from trendcycle.adapters.rss import RssFeedSource
from trendcycle.errors import SourceUnavailable

SAMPLE_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:ht="https://trends.google.com/trending/rss">
  <channel>
    <title>Daily trends</title>
    <link>https://trends.google.com/</link>
    <item>
      <title>新作ゲーム発表</title>
      <link>https://example.com/game</link>
      <pubDate>Mon, 25 Nov 2024 12:00:00 GMT</pubDate>
      <description>&lt;p&gt;大型タイトルの続編が登場&lt;/p&gt;</description>
      <ht:approx_traffic>20,000+</ht:approx_traffic>
    </item>
    <item>
      <title>桜の開花予想</title>
      <link>https://example.com/sakura</link>
      <description>今年は早め</description>
    </item>
    <item>
      <title>Third headline</title>
      <link>https://example.com/third</link>
    </item>
  </channel>
</rss>
""".encode("utf-8")


class TrafficParsingTests(unittest.TestCase):
    def test_parses_common_formats(self):
        self.assertEqual(parse_traffic("20,000+"), 20000)
        self.assertEqual(parse_traffic("2K+"), 2000)
        self.assertEqual(parse_traffic("5万+"), 50000)
        self.assertEqual(parse_traffic("1.5M"), 1500000)

    def test_unparseable_is_none(self):
        self.assertIsNone(parse_traffic(None))
        self.assertIsNone(parse_traffic("lots"))


class FeedEntryTests(unittest.TestCase):
    def test_parses_entries_with_traffic(self):
        records = parse_feed_entries(SAMPLE_FEED, "Trends")
        self.assertEqual(len(records), 3)
        first = records[0]
        self.assertEqual(first.source, "Trends")
        self.assertEqual(first.title, "新作ゲーム発表")
        self.assertEqual(first.heat, 20000)
        self.assertEqual(first.link, "https://example.com/game")
        self.assertIsNotNone(first.published_at)
        self.assertIsNone(records[1].heat)

    def test_respects_limit(self):
        self.assertEqual(len(parse_feed_entries(SAMPLE_FEED, "Trends", limit=2)), 2)

    def test_garbage_yields_no_records(self):
        self.assertEqual(parse_feed_entries(b"not a feed", "Broken"), [])


class RssFeedSourceTests(unittest.TestCase):
    @patch("trendcycle.adapters.rss.HttpFetcher.fetch")
    def test_fetch_returns_records(self, mock_fetch):
        response = MagicMock()
        response.content = SAMPLE_FEED
        mock_fetch.return_value = response

        source = RssFeedSource(url="https://example.com/feed", name="Example", limit=14)
        records = source.fetch()

        self.assertEqual(len(records), 3)
        self.assertEqual(records[0].source, "Example")

    @patch("trendcycle.adapters.rss.HttpFetcher.fetch", return_value=None)
    def test_failed_fetch_raises_source_unavailable(self, _mock_fetch):
        source = RssFeedSource(url="https://example.com/feed", name="Example")
        with self.assertRaises(SourceUnavailable) as ctx:
            source.fetch()
        self.assertEqual(ctx.exception.source, "Example")

    def test_requires_url(self):
        with self.assertRaises(ValueError):
            RssFeedSource(url=" ")


class GoogleNewsSourceTests(unittest.TestCase):
    def test_top_stories_url(self):
        source = GoogleNewsRssSource()
        self.assertTrue(source.url.startswith("https://news.google.com/rss?"))
        self.assertIn("hl=ja", source.url)
        self.assertIn("gl=JP", source.url)
        self.assertEqual(source.name, "GoogleNews-JP")

    def test_search_url(self):
        source = GoogleNewsRssSource(query="tokyo", name="Tokyo")
        self.assertTrue(source.url.startswith("https://news.google.com/rss/search?q=tokyo"))
        self.assertEqual(source.name, "Tokyo")


class BuildSourcesTests(unittest.TestCase):
    def test_builds_valid_entries_and_skips_bad_ones(self):
        entries = [
            {"name": "Google News", "google_news": {"hl": "ja", "gl": "JP", "ceid": "JP:ja"}},
            {"name": "Gizmodo JP", "url": "https://www.gizmodo.jp/index.xml", "genre": "sub_culture"},
            {"name": "No target"},
            "junk",
            {"name": "Bad limit", "url": "https://example.com/feed", "limit": "many"},
        ]
        sources = build_sources(entries, timeout=5)

        self.assertEqual([source.name for source in sources], ["Google News", "Gizmodo JP"])
        self.assertIsInstance(sources[0], GoogleNewsRssSource)
        self.assertEqual(sources[1].genre, "SUB_CULTURE")
        self.assertEqual(sources[1].fetcher.timeout, 5)

    def test_empty_config_yields_no_sources(self):
        self.assertEqual(build_sources([]), [])


class HttpFetcherTests(unittest.TestCase):
    @patch("crawler.infra.http.time.sleep")
    def test_gives_up_after_retries(self, _sleep):
        fetcher = HttpFetcher(max_retries=2, min_delay=0)
        with patch.object(fetcher.session, "get", side_effect=requests.ConnectionError("boom")) as mock_get:
            self.assertIsNone(fetcher.fetch("https://example.com/feed"))
        self.assertEqual(mock_get.call_count, 2)
        self.assertIn("boom", fetcher.last_error)

    def test_http_error_status_is_a_failure(self):
        fetcher = HttpFetcher(max_retries=1, min_delay=0)
        response = MagicMock(status_code=503)
        with patch.object(fetcher.session, "get", return_value=response):
            self.assertIsNone(fetcher.fetch("https://example.com/feed"))
        self.assertEqual(fetcher.last_error, "HTTP 503")

    def test_success_returns_response(self):
        fetcher = HttpFetcher(min_delay=0)
        response = MagicMock(status_code=200)
        with patch.object(fetcher.session, "get", return_value=response):
            self.assertIs(fetcher.fetch("https://example.com/feed"), response)
        self.assertIsNone(fetcher.last_error)


if __name__ == "__main__":
    unittest.main()
