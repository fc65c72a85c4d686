# src/jobfeed/pipeline/refresh.py
"""
Background side of the search cache: drain pending RefreshRequests.

Read paths only enqueue; this is the one place that turns a queued key into
provider calls and a new cache entry.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence

from loguru import logger

from jobfeed.errors import AdapterFetchError
from jobfeed.io.cache_db import SearchCacheDB
from jobfeed.models import JobRecord, Region, RefreshRequest
from jobfeed.pipeline.dedupe import dedupe_jobs
from jobfeed.pipeline.filter import filter_remote, looks_remote
from jobfeed.pipeline.orchestrator import Orchestrator, sort_jobs
from jobfeed.pipeline.search_key import make_search_key, normalize_location


@dataclass
class RefreshSummary:
    processed: int = 0
    refreshed: int = 0
    failed: int = 0


def _region_for(req: RefreshRequest, regions: Sequence[Region] = ()) -> Region:
    """
    The configured region behind a queued key, so remote regions stay
    remote-filtered. Ad-hoc locations fall back to a text check.
    """
    key_location = req.search_key.partition("|")[2]
    for region in regions:
        if normalize_location(region.where) == key_location:
            return region
    location = req.location or key_location
    return Region(name=location, where=location, type="remote" if looks_remote(location) else "onsite")


def refresh_one(req: RefreshRequest, cache: SearchCacheDB, orchestrator: Orchestrator) -> bool:
    """
    Fetch one queued key from every provider. True when the cache was updated;
    any provider failure leaves the key pending, as a partial result would
    look fresh for a whole TTL.
    """
    region = _region_for(req, orchestrator.regions)
    role = req.search_term or req.search_key.partition("|")[0]
    jobs: List[JobRecord] = []
    failed: List[str] = []
    for provider in orchestrator.providers:
        try:
            jobs.extend(orchestrator.fetch_with_retry(provider, role, region))
        except AdapterFetchError as e:
            logger.bind(provider=provider.name, role=role, location=region.where).warning(
                "Refresh of {!r} via {} failed: {}", req.search_key, provider.name, e
            )
            failed.append(provider.name)
    if failed:
        return False
    if region.is_remote:
        jobs = filter_remote(jobs)
    cache.put(make_search_key(role, region.where), sort_jobs(dedupe_jobs(jobs)))
    cache.mark_refreshed(req.search_key)
    return True


def drain_refresh_queue(
    cache: SearchCacheDB,
    orchestrator: Orchestrator,
    limit: Optional[int] = None,
) -> RefreshSummary:
    """Process pending requests, highest priority first. Failed keys stay pending."""
    summary = RefreshSummary()
    for req in cache.pending_refreshes(limit):
        summary.processed += 1
        if refresh_one(req, cache, orchestrator):
            summary.refreshed += 1
        else:
            summary.failed += 1
    logger.info(
        "Refresh queue: processed={} refreshed={} failed={}",
        summary.processed, summary.refreshed, summary.failed,
    )
    return summary
