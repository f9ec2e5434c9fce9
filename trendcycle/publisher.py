"""
Writes the static artifacts for the current set: one image and one page per
trend, a dated snapshot page and the root snapshot page.

Templates are authored for the site root. Pages published into ``archive/``
get every relative ``href``/``src`` re-expressed against their real location
by :func:`resolve_relative`, which is kept free of I/O so it can be tested on
its own. Marker values are root-relative too and are resolved exactly once,
in the same pass that substitutes them.
"""
from __future__ import annotations

import html
import logging
import posixpath
import re
from datetime import datetime, timezone, tzinfo
from pathlib import Path
from typing import Dict, Optional, Sequence

from trendcycle.errors import ArtifactWriteFailure
from trendcycle.models import PublishReport, TrendItem
from trendcycle.rasterizer import CARD_SIZE, Rasterizer
from trendcycle.retention import atomic_write

logger = logging.getLogger(__name__)

IMAGES_DIR = "images"
ARCHIVE_DIR = "archive"
ROOT_PAGE = "index.html"

EXTERNAL_PREFIXES = ("http://", "https://", "//", "/", "#", "data:", "mailto:", "tel:", "javascript:")
MARKERS = ("TITLE", "DESCRIPTION", "IMAGE", "SLUG", "DATA_SOURCE", "UPDATED")
# Markers whose values are site paths.
PATH_MARKERS = ("IMAGE", "DATA_SOURCE")

_MARKER = r"\{\{(" + "|".join(MARKERS) + r")\}\}"
_LINK_ATTR = r"""((?i:\b(?:href|src|data-src))\s*=\s*)(["'])(.*?)\2"""
_MARKER_RE = re.compile(_MARKER)
_LINK_ATTR_RE = re.compile(_LINK_ATTR)
_TOKEN_RE = re.compile(_LINK_ATTR + "|" + _MARKER)
_SUFFIX_RE = re.compile(r"[?#]")


def resolve_relative(base_publish_dir: str, raw_link: str) -> str:
    """
    Re-express a root-relative ``raw_link`` for a page living in ``base_publish_dir``.

    ``images/a.png`` seen from ``archive`` becomes ``../images/a.png`` while
    ``archive/b.html`` becomes ``b.html``. External links, links that already
    climb with ``../`` and unrendered markers come back unchanged.
    """
    link = raw_link.strip()
    base = posixpath.normpath((base_publish_dir or "").replace("\\", "/").strip("/") or ".")
    if base == "." or not link or "{{" in link:
        return raw_link
    if link.lower().startswith(EXTERNAL_PREFIXES):
        return raw_link

    match = _SUFFIX_RE.search(link)
    path, suffix = (link[: match.start()], link[match.start():]) if match else (link, "")
    # Already relative to the page, or pure query string.
    if not path or path.startswith("../"):
        return raw_link

    target = posixpath.normpath(path)
    if target.startswith(".."):
        return raw_link
    relative = posixpath.relpath(target, base)
    if path.endswith("/") and not relative.endswith("/"):
        relative += "/"
    return relative + suffix


def rewrite_links(text: str, base_publish_dir: str) -> str:
    """Apply :func:`resolve_relative` to every href, src and data-src value."""

    def _swap(match: "re.Match[str]") -> str:
        prefix, quote, value = match.groups()
        return f"{prefix}{quote}{resolve_relative(base_publish_dir, value)}{quote}"

    return _LINK_ATTR_RE.sub(_swap, text)


def _expand(value: str, values: Dict[str, str]) -> str:
    return _MARKER_RE.sub(lambda match: values[match.group(1)], value)


class PageTemplate:
    def __init__(self, text: str, data_source_ref: Optional[str] = None) -> None:
        self.text = text
        self.data_source_ref = data_source_ref or None

    @classmethod
    def from_path(cls, path: Path, data_source_ref: Optional[str] = None) -> "PageTemplate":
        return cls(Path(path).read_text(encoding="utf-8"), data_source_ref=data_source_ref)

    def render(
        self,
        *,
        title: str,
        description: str,
        image: str,
        slug: str,
        data_source: str,
        updated: str,
        base_publish_dir: str = "",
    ) -> str:
        """
        Substitute every marker in one pass; text values are HTML-escaped.

        ``image`` and ``data_source`` are root-relative. For a page living in
        ``base_publish_dir`` each link attribute is expanded and then resolved
        once, and path markers outside attributes are resolved on their own.
        A remote data-source URL configured as ``data_source_ref`` is treated
        as a ``{{DATA_SOURCE}}`` marker wherever it appears verbatim.
        """
        text = self.text
        if self.data_source_ref:
            text = text.replace(self.data_source_ref, "{{DATA_SOURCE}}")
        values: Dict[str, str] = {
            "TITLE": html.escape(title),
            "DESCRIPTION": html.escape(description),
            "IMAGE": html.escape(image),
            "SLUG": html.escape(slug),
            "DATA_SOURCE": html.escape(data_source),
            "UPDATED": html.escape(updated),
        }

        def _swap(match: "re.Match[str]") -> str:
            prefix, quote, link, marker = match.groups()
            if marker is not None:
                if marker in PATH_MARKERS:
                    return resolve_relative(base_publish_dir, values[marker])
                return values[marker]
            return f"{prefix}{quote}{resolve_relative(base_publish_dir, _expand(link, values))}{quote}"

        return _TOKEN_RE.sub(_swap, text)


class ArtifactPublisher:
    def __init__(
        self,
        output_dir: Path,
        template: PageTemplate,
        rasterizer: Rasterizer,
        *,
        image_base_url: str = "",
        tz: Optional[tzinfo] = None,
        root_page: str = ROOT_PAGE,
        image_size: tuple = CARD_SIZE,
    ) -> None:
        self.output_dir = Path(output_dir)
        self.template = template
        self.rasterizer = rasterizer
        self.image_base_url = (image_base_url or "").rstrip("/")
        self.tz = tz or timezone.utc
        self.root_page = root_page
        self.image_size = image_size

    def image_ref(self, slug: str) -> str:
        """Reference stored on the item: site-relative, or absolute when a public base URL is set."""
        relative = f"{IMAGES_DIR}/{slug}.png"
        if self.image_base_url:
            return f"{self.image_base_url}/{relative}"
        return relative

    def publish(
        self,
        current: Sequence[TrendItem],
        *,
        now: datetime,
        document_name: str = "trends_db.json",
    ) -> PublishReport:
        report = PublishReport()
        local_now = now.astimezone(self.tz)
        updated = local_now.strftime("%Y-%m-%d %H:%M %Z").strip()

        for item in current:
            try:
                self._publish_item(item, report, updated=updated, document_name=document_name)
            except ArtifactWriteFailure as exc:
                logger.error("Skipping artifacts for %s: %s", exc.slug, exc.reason)
                report.failed.append(exc.slug)

        date_key = local_now.strftime("%Y%m%d")
        headline = " / ".join(item.title for item in current[:5])
        cover = current[0].image if current else ""
        snapshots = (
            (f"{ARCHIVE_DIR}/{date_key}.html", ARCHIVE_DIR, f"Trend snapshot {date_key}"),
            (self.root_page, "", "Trend snapshot"),
        )
        for relative, base, title in snapshots:
            page = self._render_page(
                base,
                title=title,
                description=headline,
                image=cover,
                slug=date_key,
                document_name=document_name,
                updated=updated,
            )
            try:
                self._write(relative, page.encode("utf-8"), report)
            except OSError as exc:
                logger.error("Could not write snapshot %s: %s", relative, exc)
                report.failed.append(relative)

        logger.info(
            "Published artifacts: %s written, %s unchanged, %s failed",
            len(report.written),
            len(report.unchanged),
            len(report.failed),
        )
        return report

    def _publish_item(self, item: TrendItem, report: PublishReport, *, updated: str, document_name: str) -> None:
        if not item.slug:
            raise ArtifactWriteFailure(item.title, "item has no slug")
        width, height = self.image_size
        try:
            image = self.rasterizer.render(item.title, item.slug, width=width, height=height)
        except Exception as exc:
            raise ArtifactWriteFailure(item.slug, f"render failed: {exc}") from exc

        page = self._render_page(
            ARCHIVE_DIR,
            title=item.title,
            description=item.description,
            image=item.image or self.image_ref(item.slug),
            slug=item.slug,
            document_name=document_name,
            updated=updated,
        )
        try:
            self._write(f"{IMAGES_DIR}/{item.slug}.png", image, report)
            self._write(f"{ARCHIVE_DIR}/{item.slug}.html", page.encode("utf-8"), report)
        except OSError as exc:
            raise ArtifactWriteFailure(item.slug, str(exc)) from exc

    def _render_page(self, base: str, *, document_name: str, **values: str) -> str:
        return self.template.render(data_source=document_name, base_publish_dir=base, **values)

    def _write(self, relative: str, data: bytes, report: PublishReport) -> None:
        path = self.output_dir / relative
        if path.exists() and path.read_bytes() == data:
            report.unchanged.append(relative)
            return
        atomic_write(path, data)
        report.written.append(relative)
