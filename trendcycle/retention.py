"""
Graveyard bookkeeping and the on-disk document lifecycle.

Each run loads the previous document (or an empty default), computes a new
document in memory and replaces the file in one ``os.replace`` so readers
never see a half-written state.
"""
from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Sequence

from crawler.pipelines.dedupe import dedupe_by_key

from trendcycle.errors import MalformedState
from trendcycle.models import Category, GraveyardEntry, PersistedDocument, TrendItem

logger = logging.getLogger(__name__)

DEFAULT_MAX_GRAVEYARD = 30
DEFAULT_MAX_TAGS = 18
DEFAULT_MAX_ARCHIVE_DAYS = 30

_TAG_SPLIT_RE = re.compile(r"[ 　]")


def atomic_write(path: Path, data: bytes) -> None:
    """Write ``data`` to a temp file beside ``path`` and swap it in with ``os.replace``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.remove(tmp)
        except OSError:
            pass
        raise


def update_graveyard(
    fallen: Iterable[TrendItem],
    graveyard: Sequence[GraveyardEntry],
    *,
    now: datetime,
    limit: int = DEFAULT_MAX_GRAVEYARD,
) -> List[GraveyardEntry]:
    """Prepend evicted items, keep the newest entry per title, cap at ``limit``."""
    evicted = [
        GraveyardEntry(
            title=item.title,
            evicted_at=now,
            slug=item.slug,
            duration_minutes=item.duration_minutes,
        )
        for item in fallen
    ]
    result = dedupe_by_key([*evicted, *graveyard], key_fn=lambda entry: entry.title)
    return result[: max(limit, 0)]


def extract_tags(current: Sequence[TrendItem], limit: int = DEFAULT_MAX_TAGS) -> List[str]:
    """First word of each current title, unique, in rank order."""
    tags: List[str] = []
    for item in current:
        head = _TAG_SPLIT_RE.split(item.title.strip(), maxsplit=1)[0]
        if head and head not in tags:
            tags.append(head)
        if len(tags) >= limit:
            break
    return tags


def update_archive_list(date_key: str, archive_list: Sequence[str], limit: int = DEFAULT_MAX_ARCHIVE_DAYS) -> List[str]:
    keys = dedupe_by_key((key for key in [date_key, *archive_list] if key), key_fn=lambda key: key)
    return keys[: max(limit, 0)]


def build_document(
    current: Sequence[TrendItem],
    fallen: Sequence[TrendItem],
    previous: PersistedDocument,
    *,
    now: datetime,
    date_key: Optional[str] = None,
    max_graveyard: int = DEFAULT_MAX_GRAVEYARD,
    max_tags: int = DEFAULT_MAX_TAGS,
    max_archive_days: int = DEFAULT_MAX_ARCHIVE_DAYS,
) -> PersistedDocument:
    archive_list = list(previous.archive_list)
    if date_key:
        archive_list = update_archive_list(date_key, archive_list, max_archive_days)
    return PersistedDocument(
        current=list(current),
        graveyard=update_graveyard(fallen, previous.graveyard, now=now, limit=max_graveyard),
        tags=extract_tags(current, max_tags),
        archive_list=archive_list,
        last_update=now,
    )


class RetentionStore:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> PersistedDocument:
        """Read the previous document; anything unreadable starts a fresh history."""
        if not self.path.exists():
            logger.info("No document at %s; starting from an empty state", self.path)
            return PersistedDocument()
        try:
            try:
                blob = json.loads(self.path.read_text(encoding="utf-8"))
            except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
                raise MalformedState(self.path, str(exc)) from exc
            return document_from_dict(blob, source=self.path)
        except MalformedState as exc:
            logger.warning("%s; starting from an empty state", exc)
            return PersistedDocument()

    def save(self, document: PersistedDocument) -> Path:
        payload = json.dumps(document_to_dict(document), ensure_ascii=False, indent=2) + "\n"
        atomic_write(self.path, payload.encode("utf-8"))
        logger.info("Wrote %s (%s current, %s in graveyard)", self.path, len(document.current), len(document.graveyard))
        return self.path


def document_to_dict(document: PersistedDocument) -> Dict[str, Any]:
    return {
        "current": [_item_to_dict(item) for item in document.current],
        "graveyard": [_entry_to_dict(entry) for entry in document.graveyard],
        "tags": list(document.tags),
        "archiveList": list(document.archive_list),
        "lastUpdate": _format_datetime(document.last_update),
    }


def document_from_dict(blob: Any, source: object = "<memory>") -> PersistedDocument:
    if not isinstance(blob, dict):
        raise MalformedState(source, f"expected an object, got {type(blob).__name__}")
    current_raw = blob.get("current") or []
    graveyard_raw = blob.get("graveyard") or []
    if not isinstance(current_raw, list) or not isinstance(graveyard_raw, list):
        raise MalformedState(source, "current/graveyard must be lists")

    current = [item for item in (_dict_to_item(raw) for raw in current_raw) if item is not None]
    graveyard = [entry for entry in (_dict_to_entry(raw) for raw in graveyard_raw) if entry is not None]
    return PersistedDocument(
        current=current,
        graveyard=graveyard,
        tags=_string_list(blob.get("tags")),
        archive_list=_string_list(blob.get("archiveList")),
        last_update=_parse_datetime(blob.get("lastUpdate")),
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [entry for entry in value if isinstance(entry, str)]


def _format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_int(value: Any, default: int = 0) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return default


def _coerce_category(value: Any) -> Category:
    try:
        return Category(value)
    except (TypeError, ValueError):
        return Category.NOTABLE


def _item_to_dict(item: TrendItem) -> Dict[str, Any]:
    return {
        "title": item.title,
        "description": item.description,
        "source": item.source,
        "genre": item.genre,
        "category": item.category.value,
        "suppressed": item.suppressed,
        "slug": item.slug,
        "heat": item.heat,
        "firstSeen": _format_datetime(item.first_seen),
        "durationMinutes": item.duration_minutes,
        "image": item.image,
        "link": item.link,
    }


def _dict_to_item(data: Any) -> Optional[TrendItem]:
    if not isinstance(data, dict):
        return None
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        return None
    return TrendItem(
        title=title,
        # ``desc`` is the key used by documents written before the rename.
        description=str(data.get("description") or data.get("desc") or ""),
        source=str(data.get("source") or ""),
        genre=str(data.get("genre") or "GENERAL"),
        category=_coerce_category(data.get("category", Category.NOTABLE.value)),
        suppressed=bool(data.get("suppressed", False)),
        slug=str(data.get("slug") or ""),
        heat=_coerce_int(data.get("heat")),
        first_seen=_parse_datetime(data.get("firstSeen")),
        duration_minutes=_coerce_int(data.get("durationMinutes")),
        image=str(data.get("image") or data.get("aiImage") or ""),
        link=str(data.get("link") or ""),
    )


def _entry_to_dict(entry: GraveyardEntry) -> Dict[str, Any]:
    return {
        "title": entry.title,
        "evictedAt": _format_datetime(entry.evicted_at),
        "slug": entry.slug,
        "durationMinutes": entry.duration_minutes,
    }


def _dict_to_entry(data: Any) -> Optional[GraveyardEntry]:
    if not isinstance(data, dict):
        return None
    title = data.get("title")
    if not isinstance(title, str) or not title.strip():
        return None
    return GraveyardEntry(
        title=title,
        evicted_at=_parse_datetime(data.get("evictedAt")),
        slug=str(data.get("slug") or ""),
        duration_minutes=_coerce_int(data.get("durationMinutes")),
    )
