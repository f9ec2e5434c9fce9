"""
Centralised settings for the trend pipeline (env-first, code-light).

Every value can be overridden through a ``TRENDS_*`` environment variable or
a ``.env`` file next to the working directory.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from trendcycle.models import Ranking

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parent.parent


@dataclass
class TrendSettings:
    output_dir: Path
    db_path: Path
    template_path: Path
    sources_path: Path
    policy_path: Path
    max_current: int = 10
    max_graveyard: int = 30
    max_tags: int = 18
    max_archive_days: int = 30
    ranking: Ranking = Ranking.HEAT
    http_timeout: int = 15
    max_description: int = 200
    image_base_url: str = ""
    data_source_url: str = ""
    timezone: str = "Asia/Tokyo"


def _int_from_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
        return value if value > 0 else default
    except ValueError:
        logger.warning("Invalid int value for %s=%s; using default %s", key, raw, default)
        return default


def _path_from_env(key: str, default: Path) -> Path:
    raw = os.getenv(key)
    return Path(raw).expanduser() if raw and raw.strip() else default


def _parse_ranking(raw: str | None) -> Ranking:
    if not raw:
        return Ranking.HEAT
    try:
        return Ranking(raw.strip().lower())
    except ValueError:
        logger.warning("Unknown ranking '%s' in TRENDS_RANKING; using heat.", raw)
        return Ranking.HEAT


def load_settings(dotenv_path: str | None = None) -> TrendSettings:
    load_dotenv(dotenv_path or os.getenv("TRENDS_DOTENV", ".env"))
    output_dir = _path_from_env("TRENDS_OUTPUT_DIR", Path("public"))
    return TrendSettings(
        output_dir=output_dir,
        db_path=_path_from_env("TRENDS_DB_PATH", output_dir / "trends_db.json"),
        template_path=_path_from_env("TRENDS_TEMPLATE_PATH", PROJECT_ROOT / "templates" / "index.html"),
        sources_path=_path_from_env("TRENDS_SOURCES_PATH", PROJECT_ROOT / "config" / "sources.yaml"),
        policy_path=_path_from_env("TRENDS_POLICY_PATH", PROJECT_ROOT / "config" / "policy.yaml"),
        max_current=_int_from_env("TRENDS_MAX_CURRENT", 10),
        max_graveyard=_int_from_env("TRENDS_MAX_GRAVEYARD", 30),
        max_tags=_int_from_env("TRENDS_MAX_TAGS", 18),
        max_archive_days=_int_from_env("TRENDS_MAX_ARCHIVE_DAYS", 30),
        ranking=_parse_ranking(os.getenv("TRENDS_RANKING")),
        http_timeout=_int_from_env("TRENDS_HTTP_TIMEOUT", 15),
        max_description=_int_from_env("TRENDS_MAX_DESCRIPTION", 200),
        image_base_url=os.getenv("TRENDS_IMAGE_BASE_URL", "").strip(),
        data_source_url=os.getenv("TRENDS_DATA_SOURCE_URL", "").strip(),
        timezone=os.getenv("TRENDS_TIMEZONE", "").strip() or "Asia/Tokyo",
    )
