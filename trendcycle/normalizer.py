"""
Plain-text cleanup for feed titles and descriptions.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from bs4 import BeautifulSoup

ELLIPSIS = "…"

# Publisher names and feed footers. Everything from the first marker on is dropped.
DEFAULT_BOILERPLATE: Sequence[str] = (
    "日本経済新聞",
    "Reuters",
    "AFPBB",
    "CNN",
    "WSJ",
    "Yahoo",
    "ロイター",
    "時事通信",
    "Continue reading",
    "Read more",
    "続きを読む",
    "Copyright",
    "©",
)

_WHITESPACE_RE = re.compile(r"\s+")
_TRAILING_SEPARATORS = " -|–—:：、"


@dataclass(frozen=True)
class FallbackPolicy:
    """Canned description used when cleaning leaves almost nothing behind."""

    min_length: int = 5
    text: str = "Details are still coming in."

    def apply(self, text: str) -> str:
        if len(text) >= self.min_length:
            return text
        return self.text


def strip_markup(raw: str) -> str:
    if not raw:
        return ""
    if "<" not in raw and "&" not in raw:
        return raw
    soup = BeautifulSoup(raw, "lxml")
    return soup.get_text(" ")


def cut_boilerplate(text: str, markers: Iterable[str] = DEFAULT_BOILERPLATE) -> str:
    cut = len(text)
    for marker in markers:
        if not marker:
            continue
        idx = text.find(marker)
        if idx != -1 and idx < cut:
            cut = idx
    if cut == len(text):
        return text
    return text[:cut].rstrip(_TRAILING_SEPARATORS + "\t\n")


def truncate(text: str, max_length: Optional[int]) -> str:
    if max_length is None or max_length <= 0 or len(text) <= max_length:
        return text
    return text[: max(max_length - 1, 0)].rstrip() + ELLIPSIS


def clean_text(
    raw: Optional[str],
    *,
    max_length: Optional[int] = None,
    boilerplate: Iterable[str] = DEFAULT_BOILERPLATE,
) -> str:
    """
    Return display-ready plain text for ``raw``.

    Markup and entities are removed, feed boilerplate is cut, whitespace is
    collapsed and the result is capped at ``max_length`` characters. The empty
    string means "unusable"; callers reject it.
    """
    if not raw:
        return ""
    text = strip_markup(str(raw))
    text = _WHITESPACE_RE.sub(" ", text).strip()
    text = cut_boilerplate(text, boilerplate)
    text = _WHITESPACE_RE.sub(" ", text).strip()
    return truncate(text, max_length)
