# src/jobfeed/feed.py
"""
Consumer read path: what a signed-in user sees.

Never blocks on a provider. Fresh cache entries for the user's searches are
returned right away, stale ones are queued for the refresh worker, and when
the cache has nothing yet we fall back to the static batch file.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path
from typing import List, Optional

from loguru import logger

from jobfeed.io.batch import read_batch
from jobfeed.io.cache_db import SearchCacheDB
from jobfeed.models import JobRecord, UserInterests
from jobfeed.pipeline.dedupe import dedupe_jobs
from jobfeed.pipeline.search_key import SearchKey, make_search_key


def search_keys_for(interests: UserInterests) -> List[SearchKey]:
    keys: dict = {}
    for title in interests.job_titles:
        for location in interests.locations:
            sk = make_search_key(title, location)
            keys.setdefault(sk.key, sk)
    return list(keys.values())


def load_jobs_static(batch_path: Path) -> List[JobRecord]:
    return dedupe_jobs(read_batch(batch_path).jobs)


def load_jobs_for_user(
    interests: Optional[UserInterests],
    requester: str,
    cache: Optional[SearchCacheDB],
    batch_path: Path,
) -> List[JobRecord]:
    if interests is None or cache is None:
        return load_jobs_static(batch_path)

    keys = search_keys_for(interests)
    try:
        entries = cache.get_many(keys)
    except sqlite3.Error as e:
        logger.error("Search cache unavailable ({}); serving static batch", e)
        return load_jobs_static(batch_path)

    cached: List[JobRecord] = []
    for sk in keys:
        entry = entries.get(sk.key)
        if entry is not None:
            cached.extend(entry.jobs)

    try:
        stale = cache.get_stale_searches(keys)
        if stale:
            cache.request_refresh(stale, requester)
            logger.info("Queued refresh of {} stale searches for {}", len(stale), requester)
    except sqlite3.Error as e:
        logger.warning("Could not queue refresh for {}: {}", requester, e)

    if cached:
        return dedupe_jobs(cached)
    return load_jobs_static(batch_path)
