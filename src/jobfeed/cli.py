# src/jobfeed/cli.py
"""
Command-line interface for the job feed.

This module provides CLI commands to:
- Run the full fetch -> dedupe -> freshness -> persist pipeline
- Inspect and fill the search cache / refresh queue
- Attach salary market analysis to a persisted batch
- Check the watchlists config and today's market-call quota
"""

from dotenv import load_dotenv
load_dotenv(override=True)  # automatically looks for a .env file in the project root

import datetime as dt
import json
import sys
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from jobfeed.config import Settings, load_settings, load_watchlists
from jobfeed.errors import ConfigError, PersistenceError
from jobfeed.feed import load_jobs_for_user
from jobfeed.io.batch import Batch, read_batch, write_batch
from jobfeed.io.cache_db import SearchCacheDB
from jobfeed.io.quota_db import SqliteQuotaStore
from jobfeed.io.seen_db import SeenIndexDB
from jobfeed.market.engine import MarketAnalysisEngine
from jobfeed.market.quota import local_day
from jobfeed.models import SearchOptions, UserInterests
from jobfeed.pipeline.filter import filter_jobs_for_user
from jobfeed.pipeline.normalize import utc_now
from jobfeed.pipeline.orchestrator import Orchestrator
from jobfeed.pipeline.ratelimit import TokenBucket
from jobfeed.pipeline.refresh import drain_refresh_queue
from jobfeed.pipeline.search_key import make_search_key
from jobfeed.providers.registry import build_providers, market_provider


LOG_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan> - <level>{message}</level>"

# Typer app instance for CLI commands
app = typer.Typer(help="Job feed: fetch, dedupe, cache and analyze job postings", add_completion=False)


def configure_logging(level: str = "INFO", log_file: Optional[Path] = None) -> None:
    logger.remove()
    logger.add(sys.stderr, format=LOG_FORMAT, level=level.upper())
    if log_file:
        logger.add(str(log_file), rotation="1 day", retention="30 days", level="DEBUG")


@app.callback()
def main(
    log_level: str = typer.Option("INFO", "--log-level", help="stderr log level"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Also log (DEBUG) to this file, rotated daily"),
):
    configure_logging(log_level, log_file)


def _fail(msg: str) -> None:
    typer.echo(msg, err=True)
    raise typer.Exit(code=1)


def _cache(settings: Settings) -> SearchCacheDB:
    return SearchCacheDB(settings.cache_db_path, ttl=dt.timedelta(hours=settings.cache_ttl_hours))


def _orchestrator(settings: Settings, *, output: Path, cache: Optional[SearchCacheDB]) -> Orchestrator:
    watchlists, regions = load_watchlists(settings.watchlists_path)
    providers = build_providers(settings)
    if not providers:
        raise ConfigError("No providers configured. Set ADZUNA_APP_ID and ADZUNA_APP_KEY env vars (in .env).")
    return Orchestrator(
        providers,
        watchlists,
        regions,
        output_path=output,
        options=SearchOptions(limit=settings.results_per_page, max_days_old=settings.max_days_old),
        cache=cache,
        seen_index=SeenIndexDB(settings.seen_db_path, retention_days=settings.seen_retention_days),
        limiter=TokenBucket(settings.requests_per_second),
        max_workers=settings.max_workers,
        retry_attempts=settings.retry_attempts,
        retry_base_delay=settings.retry_base_delay,
    )


@app.command()
def fetch(
    output: Optional[Path] = typer.Option(None, "--output", help="Batch JSON path (default: OUTPUT_PATH)"),
    no_cache: bool = typer.Option(False, "--no-cache", help="Don't write per-search results to the search cache"),
):
    """
    Watchlists x regions x providers -> dedupe -> freshness -> write the batch.
    Prints {"total", "path", ...} for the email/UI collaborators.
    """
    settings = load_settings()
    out = output or settings.output_path
    try:
        orch = _orchestrator(settings, output=out, cache=None if no_cache else _cache(settings))
        summary = orch.run()
    except (ConfigError, PersistenceError) as e:
        _fail(str(e))
    typer.echo(json.dumps(summary.to_dict(), indent=2))


@app.command()
def refresh(limit: Optional[int] = typer.Option(None, "--limit", help="Max queued searches to process")):
    """Drain pending refresh requests into the search cache."""
    settings = load_settings()
    cache = _cache(settings)
    try:
        orch = _orchestrator(settings, output=settings.output_path, cache=cache)
    except ConfigError as e:
        _fail(str(e))
    summary = drain_refresh_queue(cache, orch, limit=limit)
    typer.echo(json.dumps(summary.__dict__, indent=2))


@app.command()
def stale(
    roles: List[str] = typer.Argument(..., help="Role search terms"),
    location: List[str] = typer.Option(..., "--location", "-l", help="Location (repeatable)"),
):
    """List which (role, location) searches are missing or expired in the cache."""
    cache = _cache(load_settings())
    keys = [make_search_key(r, loc) for r in roles for loc in location]
    typer.echo(json.dumps([k.key for k in cache.get_stale_searches(keys)], indent=2))


@app.command("request-refresh")
def request_refresh(
    roles: List[str] = typer.Argument(..., help="Role search terms"),
    location: List[str] = typer.Option(..., "--location", "-l", help="Location (repeatable)"),
    requester: str = typer.Option(..., "--requester", help="Who is asking (user id)"),
    priority: int = typer.Option(1, "--priority"),
):
    """Queue (role, location) searches for the refresh worker."""
    cache = _cache(load_settings())
    keys = [make_search_key(r, loc) for r in roles for loc in location]
    n = cache.request_refresh(keys, requester, priority=priority)
    typer.echo(json.dumps({"queued": n, "keys": [k.key for k in keys]}, indent=2))


@app.command()
def feed(
    title: List[str] = typer.Option(..., "--title", "-t", help="Job title interest (repeatable)"),
    location: List[str] = typer.Option(..., "--location", "-l", help="Location interest (repeatable)"),
    requester: str = typer.Option("cli", "--requester"),
    limit: int = typer.Option(20, "--limit"),
):
    """What a user with these interests would see right now (never fetches)."""
    settings = load_settings()
    interests = UserInterests(job_titles=tuple(title), locations=tuple(location))
    jobs = load_jobs_for_user(interests, requester, _cache(settings), settings.output_path)
    jobs = filter_jobs_for_user(jobs, interests)
    typer.echo(json.dumps({
        "count": len(jobs),
        "jobs": [{"id": j.id, "title": j.title, "company": j.company, "location": j.location} for j in jobs[:limit]],
    }, indent=2))


@app.command()
def analyze(
    input_path: Optional[Path] = typer.Option(None, "--input", help="Batch to analyze (default: OUTPUT_PATH)"),
    output: Optional[Path] = typer.Option(None, "--output", help="Where to write (default: overwrite input)"),
):
    """Attach salary market analysis to the top salaried jobs of a batch."""
    settings = load_settings()
    src = input_path or settings.output_path
    batch = read_batch(src)
    if not batch.jobs:
        _fail(f"No jobs in {src}; run `fetch` first.")

    provider = market_provider(build_providers(settings))
    fetcher = None
    if provider is not None:
        def fetcher(title: str, location: str):
            return provider.search_raw(title, location, limit=settings.market_sample_size)
    engine = MarketAnalysisEngine(
        fetcher,
        SqliteQuotaStore(settings.quota_db_path),
        max_daily_calls=settings.market_max_daily_calls,
        ttl=dt.timedelta(hours=settings.cache_ttl_hours),
        min_samples=settings.market_min_samples,
        top_n=settings.market_top_n,
        batch_size=settings.market_batch_size,
    )
    enhanced = Batch(generated_at=batch.generated_at, jobs=engine.enhance_jobs(batch.jobs))
    try:
        path = write_batch(output or src, enhanced)
    except PersistenceError as e:
        _fail(str(e))
    analyzed = sum(1 for j in enhanced.jobs if j.salary_analysis is not None)
    typer.echo(json.dumps({"total": enhanced.total, "analyzed": analyzed, "path": str(path)}, indent=2))


@app.command()
def quota():
    """Show today's market-analysis call count."""
    settings = load_settings()
    store = SqliteQuotaStore(settings.quota_db_path)
    day = local_day(utc_now)
    typer.echo(json.dumps({
        "day": day,
        "calls": store.get(day),
        "limit": settings.market_max_daily_calls,
    }, indent=2))


@app.command("check-config")
def check_config(path: Optional[Path] = typer.Option(None, "--path", help="Watchlists JSON (default: WATCHLISTS_PATH)")):
    """Validate the watchlists/regions file."""
    settings = load_settings()
    try:
        watchlists, regions = load_watchlists(path or settings.watchlists_path)
    except ConfigError as e:
        _fail(f"Config error: {e}")
    typer.echo(f"Config OK. Watchlists: {', '.join(w.name for w in watchlists)}")
    typer.echo(f"Regions: {', '.join(r.name for r in regions)}")


if __name__ == "__main__":
    app()
