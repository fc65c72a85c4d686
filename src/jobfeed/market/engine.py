# src/jobfeed/market/engine.py
"""
Salary market analysis under a daily call budget.

Comparison samples are cached in memory per normalized (role, location) for
24h. Fetching a new sample costs one call against a durable daily counter;
once the ceiling is hit we fall back to whatever sample we still hold (even an
expired one) and otherwise give up on that job for today.
"""

from __future__ import annotations

import datetime as dt
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Union

from loguru import logger

from jobfeed.errors import AdapterFetchError, QuotaExhausted
from jobfeed.market.quota import QuotaStore, local_day
from jobfeed.market.stats import calculate_analysis
from jobfeed.models import JobRecord, SalaryAnalysis
from jobfeed.pipeline.normalize import utc_now
from jobfeed.pipeline.search_key import make_search_key

SampleFetcher = Callable[[str, str], List[dict]]


@dataclass(frozen=True)
class MarketSample:
    data: List[dict]
    fetched_at: dt.datetime


def _salary_sort_value(job: JobRecord) -> float:
    return job.salary_max or job.salary_min or 0.0


class MarketAnalysisEngine:
    def __init__(
        self,
        fetcher: Optional[SampleFetcher],
        quota: QuotaStore,
        *,
        max_daily_calls: int = 50,
        ttl: dt.timedelta = dt.timedelta(hours=24),
        min_samples: int = 1,
        top_n: int = 15,
        batch_size: int = 3,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.fetcher = fetcher
        self.quota = quota
        self.max_daily_calls = max_daily_calls
        self.ttl = ttl
        self.min_samples = max(1, min_samples)
        self.top_n = top_n
        self.batch_size = max(1, batch_size)
        self.clock = clock
        self._samples: Dict[str, MarketSample] = {}
        self._lock = threading.Lock()
        self._key_locks: Dict[str, threading.Lock] = {}

        if fetcher is None:
            logger.warning("No market data source configured; salary analysis disabled")

    # ---- quota / samples -----------------------------------------------------

    @staticmethod
    def cache_key(title: str, location: str) -> str:
        return make_search_key(title, location).key

    def calls_today(self) -> int:
        return self.quota.get(local_day(self.clock))

    def _reserve_call(self) -> int:
        """Count the call before making it; raise once today's ceiling is passed."""
        day = local_day(self.clock)
        if self.quota.get(day) >= self.max_daily_calls:
            raise QuotaExhausted(day, self.max_daily_calls)
        count = self.quota.increment(day)
        if count > self.max_daily_calls:
            raise QuotaExhausted(day, self.max_daily_calls)
        return count

    def cached_sample(self, title: str, location: str) -> Optional[MarketSample]:
        with self._lock:
            return self._samples.get(self.cache_key(title, location))

    def _key_lock(self, key: str) -> threading.Lock:
        with self._lock:
            return self._key_locks.setdefault(key, threading.Lock())

    def get_market_sample(self, title: str, location: str) -> Optional[List[dict]]:
        """
        Comparison sample for (title, location), or None when we have nothing
        and may not (or could not) fetch. Concurrent callers for one key wait
        for a single fetch instead of each spending a call.
        """
        key = self.cache_key(title, location)
        with self._key_lock(key):
            return self._load_sample(title, location, key)

    def _load_sample(self, title: str, location: str, key: str) -> Optional[List[dict]]:
        now = self.clock()
        cached = self.cached_sample(title, location)
        if cached is not None and now - cached.fetched_at < self.ttl:
            logger.debug("Using cached market data for {!r} ({:.0f}h old)",
                         key, (now - cached.fetched_at).total_seconds() / 3600)
            return cached.data

        if self.fetcher is None:
            return cached.data if cached else None

        try:
            count = self._reserve_call()
        except QuotaExhausted as e:
            logger.warning("{}; {} for {!r}", e, "using stale sample" if cached else "skipping", key)
            return cached.data if cached else None

        logger.info("Fetching market data for {!r} (call {}/{})", key, count, self.max_daily_calls)
        try:
            data = self.fetcher(title, location)
        except AdapterFetchError as e:
            logger.warning("Market data fetch for {!r} failed: {}", key, e)
            return cached.data if cached else None

        with self._lock:
            self._samples[key] = MarketSample(data=list(data), fetched_at=now)
        return data

    # ---- analysis ------------------------------------------------------------

    def analyze_salary(
        self,
        job: JobRecord,
        comparison_pool: Optional[Sequence[Union[dict, JobRecord]]] = None,
    ) -> Optional[SalaryAnalysis]:
        """
        Compare one job's salary with the market. None when the job has no
        salary, no sample is available, or the sample is too small.
        """
        if not job.has_salary:
            return None

        if comparison_pool is not None:
            samples = [p.to_dict() if isinstance(p, JobRecord) else p for p in comparison_pool]
        else:
            samples = self.get_market_sample(job.title, job.location)
            if samples is None:
                return None

        if len(samples) < self.min_samples:
            return None
        return calculate_analysis(job, samples, self.clock())

    def _analyze_safe(self, job: JobRecord) -> Optional[SalaryAnalysis]:
        try:
            return self.analyze_salary(job)
        except Exception as e:
            logger.warning("Failed to analyze salary for {}: {}", job.id, e)
            return None

    def enhance_jobs(self, jobs: Iterable[JobRecord]) -> List[JobRecord]:
        """
        Attach `salary_analysis` to the top-N salaried jobs (highest first),
        `batch_size` at a time. Everything else passes through untouched, and
        the input order is preserved.
        """
        jobs = list(jobs)
        prioritized = sorted(
            (j for j in jobs if j.has_salary), key=_salary_sort_value, reverse=True
        )[: max(0, self.top_n)]

        results: Dict[str, SalaryAnalysis] = {}
        if prioritized:
            with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
                for i in range(0, len(prioritized), self.batch_size):
                    batch = prioritized[i:i + self.batch_size]
                    for job, analysis in zip(batch, pool.map(self._analyze_safe, batch)):
                        if analysis is not None:
                            results[job.id] = analysis

        logger.info("Salary analysis attached to {}/{} jobs ({} calls today)",
                    len(results), len(jobs), self.calls_today())
        return [replace(j, salary_analysis=results[j.id]) if j.id in results else j for j in jobs]
