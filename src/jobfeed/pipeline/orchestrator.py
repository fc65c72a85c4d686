# src/jobfeed/pipeline/orchestrator.py
"""
Drive the role x region x provider matrix and persist one batch.

Per cell: every provider is called with retry/backoff; a provider that still
fails contributes nothing and the run carries on. After the whole matrix:
dedupe -> freshness merge -> sort -> atomic write.
"""

from __future__ import annotations

import datetime as dt
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from jobfeed.errors import AdapterFetchError
from jobfeed.io.batch import Batch, read_batch, write_batch
from jobfeed.io.cache_db import SearchCacheDB
from jobfeed.io.seen_db import SeenIndexDB
from jobfeed.models import JobRecord, Region, SearchOptions, Watchlist
from jobfeed.pipeline.dedupe import dedupe_jobs
from jobfeed.pipeline.filter import filter_remote
from jobfeed.pipeline.freshness import merge_freshness, record_seen
from jobfeed.pipeline.normalize import iso_z, parse_iso, utc_now
from jobfeed.pipeline.ratelimit import TokenBucket
from jobfeed.pipeline.search_key import make_search_key
from jobfeed.providers.base import JobProvider


@dataclass(frozen=True)
class Cell:
    index: int
    role: str
    region: Region


@dataclass
class CellResult:
    jobs: List[JobRecord] = field(default_factory=list)
    failed_providers: List[str] = field(default_factory=list)


@dataclass
class RunSummary:
    generated_at: str
    path: Path
    cells: int
    failed_cells: int
    fetched: int
    total: int
    new: int

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at,
            "path": str(self.path),
            "cells": self.cells,
            "failed_cells": self.failed_cells,
            "fetched": self.fetched,
            "total": self.total,
            "new": self.new,
        }


def sort_jobs(jobs: Sequence[JobRecord]) -> List[JobRecord]:
    """Newest posting first; undated jobs last; ties by title then id."""

    def key(j: JobRecord) -> Tuple[float, str, str]:
        d = parse_iso(j.posted_date)
        ts = d.timestamp() if d else 0.0
        return (-ts, j.title.casefold(), j.id)

    return sorted(jobs, key=key)


class Orchestrator:
    def __init__(
        self,
        providers: Sequence[JobProvider],
        watchlists: Sequence[Watchlist],
        regions: Sequence[Region],
        *,
        output_path: Path,
        options: Optional[SearchOptions] = None,
        cache: Optional[SearchCacheDB] = None,
        seen_index: Optional[SeenIndexDB] = None,
        limiter: Optional[TokenBucket] = None,
        max_workers: int = 1,
        retry_attempts: int = 3,
        retry_base_delay: float = 0.5,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.providers = list(providers)
        self.watchlists = list(watchlists)
        self.regions = list(regions)
        self.output_path = Path(output_path)
        self.options = options or SearchOptions()
        self.cache = cache
        self.seen_index = seen_index
        self.limiter = limiter
        self.max_workers = max(1, max_workers)
        self.retry_attempts = max(1, retry_attempts)
        self.retry_base_delay = retry_base_delay
        self.clock = clock

    def cells(self) -> List[Cell]:
        out: List[Cell] = []
        for wl in self.watchlists:
            for region in self.regions:
                for syn in wl.synonyms:
                    out.append(Cell(index=len(out), role=syn, region=region))
        return out

    def fetch_with_retry(self, provider: JobProvider, role: str, region: Region) -> List[JobRecord]:
        """Raises AdapterFetchError once all attempts are used up."""
        retrying = Retrying(
            stop=stop_after_attempt(self.retry_attempts),
            wait=wait_exponential(multiplier=self.retry_base_delay, max=8),
            retry=retry_if_exception_type(AdapterFetchError),
            reraise=True,
            before_sleep=lambda rs: logger.debug(
                "{} attempt {} failed for {!r} @ {!r}: {}",
                provider.name, rs.attempt_number, role, region.where, rs.outcome.exception(),
            ),
        )
        for attempt in retrying:
            with attempt:
                if self.limiter is not None:
                    self.limiter.acquire()
                return provider.fetch(role, region.where, self.options, region=region.name)
        return []  # unreachable: reraise=True

    def run_cell(self, cell: Cell) -> CellResult:
        result = CellResult()
        for provider in self.providers:
            log = logger.bind(provider=provider.name, role=cell.role, location=cell.region.where)
            try:
                jobs = self.fetch_with_retry(provider, cell.role, cell.region)
            except AdapterFetchError as e:
                log.warning("{} failed for {!r} @ {!r} after {} attempts: {}",
                            provider.name, cell.role, cell.region.where, self.retry_attempts, e)
                result.failed_providers.append(provider.name)
                continue
            result.jobs.extend(jobs)

        if cell.region.is_remote:
            result.jobs = filter_remote(result.jobs)

        if self.cache is not None and not result.failed_providers:
            self.cache.put(make_search_key(cell.role, cell.region.where), result.jobs)
        return result

    def collect(self) -> Tuple[List[JobRecord], int, int]:
        """
        Run every cell. Returns (jobs in cell order, cell count, failed cell count).

        Workers write into a dict keyed by cell index under one lock, and the
        flattening happens afterwards in index order, so completion order never
        changes the output.
        """
        cells = self.cells()
        results: Dict[int, CellResult] = {}
        lock = threading.Lock()

        def work(cell: Cell) -> None:
            r = self.run_cell(cell)
            with lock:
                results[cell.index] = r

        if self.max_workers == 1:
            for c in cells:
                work(c)
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                # list() re-raises anything unexpected from a worker
                list(pool.map(work, cells))

        jobs: List[JobRecord] = []
        failed = 0
        for c in cells:
            r = results[c.index]
            jobs.extend(r.jobs)
            if r.failed_providers:
                failed += 1
        return jobs, len(cells), failed

    def run(self) -> RunSummary:
        logger.info("Starting run: {} providers, {} cells", len(self.providers), len(self.cells()))
        fetched, n_cells, failed = self.collect()

        now = self.clock()
        previous = read_batch(self.output_path)
        deduped = dedupe_jobs(fetched)
        merged = merge_freshness(deduped, previous, now, seen_index=self.seen_index)
        batch = Batch(generated_at=iso_z(now), jobs=sort_jobs(merged))
        write_batch(self.output_path, batch)
        record_seen(self.seen_index, batch.jobs, now)

        new = sum(1 for j in batch.jobs if j.first_seen_at == batch.generated_at)
        summary = RunSummary(
            generated_at=batch.generated_at,
            path=self.output_path,
            cells=n_cells,
            failed_cells=failed,
            fetched=len(fetched),
            total=batch.total,
            new=new,
        )
        logger.info(
            "Run done: fetched={} total={} new={} failed_cells={}/{}",
            summary.fetched, summary.total, summary.new, summary.failed_cells, summary.cells,
        )
        return summary
