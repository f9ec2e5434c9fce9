"""
Command line entry points for the trend pipeline.
"""
from __future__ import annotations

import json
import logging
import sys
from datetime import datetime

import click

from crawler.schedulers.aps import run_scheduler
from trendcycle.adapters.rss import RssFeedSource
from trendcycle.errors import AllSourcesFailed, SourceUnavailable
from trendcycle.normalizer import clean_text
from trendcycle.pipeline import TrendPipeline, resolve_timezone
from trendcycle.retention import RetentionStore
from trendcycle.settings import load_settings
from trendcycle.status import build_status

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _parse_now(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as exc:
        raise click.BadParameter(f"not an ISO timestamp: {value}") from exc


@click.group()
@click.option(
    "--log-level",
    envvar="TRENDS_LOG_LEVEL",
    default="INFO",
    show_default=True,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
)
def cli(log_level: str):
    logging.basicConfig(level=getattr(logging, log_level.upper()), format=LOG_FORMAT)


@cli.command()
@click.option("--now", "now_text", default=None, help="Override the run clock (ISO 8601).")
def run(now_text: str | None):
    """Run one ingest/merge/publish cycle."""
    now = _parse_now(now_text)
    pipeline = TrendPipeline.from_settings(load_settings())
    try:
        result = pipeline.run(now=now)
    except AllSourcesFailed as exc:
        logger.error("Run aborted: %s", exc)
        sys.exit(1)
    click.echo(
        json.dumps(
            {
                "current": len(result.document.current),
                "evicted": len(result.evicted),
                "suppressed": len(result.ingestion.suppressed),
                "written": len(result.publish.written),
                "unchanged": len(result.publish.unchanged),
                "failed": result.publish.failed,
            },
            ensure_ascii=False,
        )
    )


@cli.command()
def status():
    """Print a JSON summary of the persisted document."""
    settings = load_settings()
    document = RetentionStore(settings.db_path).load()
    payload = build_status(document, settings, tz=resolve_timezone(settings.timezone))
    click.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@cli.command("fetch-once")
@click.option("--url", required=True, help="RSS/Atom feed to read.")
@click.option("--limit", default=5, show_default=True)
def fetch_once(url: str, limit: int):
    """Print the cleaned records of a single feed."""
    source = RssFeedSource(url=url, name="fetch-once", limit=limit, timeout=load_settings().http_timeout)
    try:
        records = source.fetch()
    except SourceUnavailable as exc:
        logger.error("Feed unavailable: %s", exc.reason)
        sys.exit(1)
    for record in records:
        payload = record.model_dump(mode="json")
        payload["title"] = clean_text(record.title)
        payload["description"] = clean_text(record.description, max_length=200)
        click.echo(json.dumps(payload, ensure_ascii=False))


@cli.command()
@click.option("--minute", default="0", show_default=True, help="Cron minute field for the hourly run.")
def schedule(minute: str):
    """Run the batch on an APScheduler cron trigger."""
    run_scheduler(minute=minute, settings=load_settings())


if __name__ == "__main__":  # pragma: no cover
    cli()
