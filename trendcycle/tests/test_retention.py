import json
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import patch

from trendcycle.models import Category, GraveyardEntry, PersistedDocument, TrendItem
from trendcycle.retention import (
    RetentionStore,
    build_document,
    document_from_dict,
    extract_tags,
    update_archive_list,
    update_graveyard,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class GraveyardTests(unittest.TestCase):
    def test_prepends_fallen_items(self):
        graveyard = [GraveyardEntry(title="Old", evicted_at=NOW - timedelta(hours=1))]
        result = update_graveyard([TrendItem(title="New", slug="new")], graveyard, now=NOW, limit=10)

        self.assertEqual([entry.title for entry in result], ["New", "Old"])
        self.assertEqual(result[0].evicted_at, NOW)
        self.assertEqual(result[0].slug, "new")

    def test_reevicted_title_keeps_newest_entry(self):
        graveyard = [GraveyardEntry(title="A", evicted_at=NOW - timedelta(days=1))]
        result = update_graveyard([TrendItem(title="A")], graveyard, now=NOW, limit=10)

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].evicted_at, NOW)

    def test_bounded(self):
        graveyard = [GraveyardEntry(title=f"old-{i}") for i in range(10)]
        fallen = [TrendItem(title=f"new-{i}") for i in range(3)]
        result = update_graveyard(fallen, graveyard, now=NOW, limit=5)

        self.assertEqual(len(result), 5)
        self.assertEqual([entry.title for entry in result[:3]], ["new-0", "new-1", "new-2"])


class DocumentPartsTests(unittest.TestCase):
    def test_tags_use_first_word(self):
        current = [
            TrendItem(title="東京　タワーが点灯"),
            TrendItem(title="Apple event today"),
            TrendItem(title="東京 マラソン"),
            TrendItem(title="Single"),
        ]
        self.assertEqual(extract_tags(current), ["東京", "Apple", "Single"])
        self.assertEqual(extract_tags(current, limit=2), ["東京", "Apple"])

    def test_archive_list_newest_first_and_unique(self):
        self.assertEqual(update_archive_list("20240502", ["20240501", "20240502"]), ["20240502", "20240501"])
        self.assertEqual(update_archive_list("20240503", ["20240502", "20240501"], limit=2), ["20240503", "20240502"])

    def test_build_document(self):
        previous = PersistedDocument(archive_list=["20240430"])
        document = build_document(
            [TrendItem(title="Now trending")],
            [TrendItem(title="Gone")],
            previous,
            now=NOW,
            date_key="20240501",
        )
        self.assertEqual(document.last_update, NOW)
        self.assertEqual(document.tags, ["Now"])
        self.assertEqual(document.archive_list, ["20240501", "20240430"])
        self.assertEqual([entry.title for entry in document.graveyard], ["Gone"])


class RetentionStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "db" / "trends_db.json"
        self.store = RetentionStore(self.path)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _document(self) -> PersistedDocument:
        return PersistedDocument(
            current=[
                TrendItem(
                    title="新作ゲーム",
                    description="説明",
                    source="Google News",
                    category=Category.HOT,
                    slug="新作ゲーム",
                    heat=20000,
                    first_seen=NOW - timedelta(minutes=30),
                    duration_minutes=30,
                    image="images/新作ゲーム.png",
                )
            ],
            graveyard=[GraveyardEntry(title="Old", evicted_at=NOW, slug="old", duration_minutes=90)],
            tags=["新作ゲーム"],
            archive_list=["20240501"],
            last_update=NOW,
        )

    def test_missing_file_is_empty_document(self):
        document = self.store.load()
        self.assertEqual(document.current, [])
        self.assertEqual(document.graveyard, [])
        self.assertIsNone(document.last_update)

    def test_save_then_load(self):
        self.store.save(self._document())
        loaded = self.store.load()

        self.assertEqual(loaded, self._document())
        raw = json.loads(self.path.read_text(encoding="utf-8"))
        self.assertEqual(sorted(raw), ["archiveList", "current", "graveyard", "lastUpdate", "tags"])
        self.assertIn("firstSeen", raw["current"][0])
        self.assertIn("evictedAt", raw["graveyard"][0])

    def test_corrupt_file_degrades_to_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text("{not json", encoding="utf-8")
        with self.assertLogs("trendcycle.retention", level="WARNING"):
            document = self.store.load()
        self.assertEqual(document, PersistedDocument())

    def test_wrong_shape_degrades_to_empty(self):
        self.path.parent.mkdir(parents=True)
        self.path.write_text(json.dumps({"current": "oops"}), encoding="utf-8")
        with self.assertLogs("trendcycle.retention", level="WARNING"):
            self.assertEqual(self.store.load(), PersistedDocument())

    def test_failed_replace_keeps_previous_file(self):
        self.store.save(self._document())
        before = self.path.read_bytes()

        with patch("trendcycle.retention.os.replace", side_effect=OSError("disk full")):
            with self.assertRaises(OSError):
                self.store.save(PersistedDocument())

        self.assertEqual(self.path.read_bytes(), before)
        leftovers = [p.name for p in self.path.parent.iterdir() if p.name.endswith(".tmp")]
        self.assertEqual(leftovers, [])

    def test_reads_legacy_keys(self):
        blob = {
            "current": [{"title": "Legacy", "desc": "old description", "aiImage": "images/legacy.png"}, {"title": ""}],
            "graveyard": [{"title": "Gone", "evictedAt": "2024-05-01T03:00:00Z"}, "junk"],
            "lastUpdate": "not a date",
        }
        document = document_from_dict(blob)

        self.assertEqual(len(document.current), 1)
        self.assertEqual(document.current[0].description, "old description")
        self.assertEqual(document.current[0].image, "images/legacy.png")
        self.assertEqual(document.current[0].category, Category.NOTABLE)
        self.assertEqual(document.graveyard[0].evicted_at, datetime(2024, 5, 1, 3, 0, tzinfo=timezone.utc))
        self.assertIsNone(document.last_update)

    def test_non_list_tags_and_archive_list_are_ignored(self):
        blob = {
            "current": [],
            "graveyard": [],
            "tags": "桜",
            "archiveList": "20240501",
        }
        document = document_from_dict(blob)
        self.assertEqual(document.tags, [])
        self.assertEqual(document.archive_list, [])

        document = document_from_dict({"tags": ["桜", 3], "archiveList": ["20240501", None]})
        self.assertEqual(document.tags, ["桜"])
        self.assertEqual(document.archive_list, ["20240501"])


if __name__ == "__main__":
    unittest.main()
