"""
Slug and matching-key derivation for headline titles.

Titles have no stable upstream identifier, so the cleaned title string itself
is the matching key (exact equality, no fuzzy matching). Punctuation variants
of the same headline are therefore distinct items.
"""
from __future__ import annotations

import hashlib
import itertools
import re
import time
from dataclasses import dataclass
from typing import Callable, Container, Optional

SLUG_MAX_LENGTH = 60
SLUG_MAX_WORDS = 5

_UNSAFE_RE = re.compile(r"[^\w\s]", re.UNICODE)
_fallback_counter = itertools.count()


@dataclass(frozen=True)
class IdentityKey:
    slug: str
    key: str


def normalized_key(title: str) -> str:
    return title or ""


def _fallback_token(clock: Callable[[], float]) -> str:
    return f"t{int(clock() * 1000)}{next(_fallback_counter)}"


def slugify(
    title: str,
    *,
    max_length: int = SLUG_MAX_LENGTH,
    clock: Optional[Callable[[], float]] = None,
) -> str:
    """
    Filesystem and URL safe slug for ``title``.

    Word characters (including CJK) survive; everything else is dropped, the
    first five words are joined with ``-`` and lowercased. A title with no word
    characters gets a time based token instead of an empty slug.
    """
    words = _UNSAFE_RE.sub("", title or "").split()
    slug = "-".join(words[:SLUG_MAX_WORDS]).lower()
    slug = slug[:max_length].strip("-_")
    if slug:
        return slug
    return _fallback_token(clock or time.time)


def build_identity(
    title: str,
    *,
    max_length: int = SLUG_MAX_LENGTH,
    clock: Optional[Callable[[], float]] = None,
) -> IdentityKey:
    return IdentityKey(slug=slugify(title, max_length=max_length, clock=clock), key=normalized_key(title))


def unique_slug(slug: str, title: str, taken: Container[str]) -> str:
    """Suffix ``slug`` with a short title hash when another title already owns it."""
    if slug not in taken:
        return slug
    digest = hashlib.sha1(title.encode("utf-8")).hexdigest()[:8]
    return f"{slug}-{digest}"
