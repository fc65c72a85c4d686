# src/jobfeed/providers/adzuna.py
from __future__ import annotations

import datetime as dt
from typing import Callable, List, Optional

import httpx

from jobfeed.clients.adzuna import adzuna_results
from jobfeed.errors import AdapterFetchError
from jobfeed.models import JobRecord, SearchContext, SearchOptions
from jobfeed.pipeline.normalize import SNIPPET_CHARS, iso_z, normalize_record, utc_now

REMOTE_ONLY_MARKERS = ("remote", "work from home", "telecommute", "distributed team")


def _is_remote_job(job: JobRecord) -> bool:
    text = f"{job.title} {job.description} {job.location}".lower()
    return any(m in text for m in REMOTE_ONLY_MARKERS)


class AdzunaProvider:
    """Adzuna adapter. Adzuna CA salaries are yearly CAD."""

    name = "adzuna"

    def __init__(
        self,
        app_id: str,
        app_key: str,
        *,
        country: str = "ca",
        max_days_old: Optional[int] = None,
        snippet_chars: int = SNIPPET_CHARS,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.app_id = app_id
        self.app_key = app_key
        self.country = country
        self.max_days_old = max_days_old
        self.snippet_chars = snippet_chars
        self.client = client
        self.clock = clock

    def search_raw(
        self,
        role: str,
        location: str,
        *,
        limit: int = 30,
        sort_by: Optional[str] = "salary",
    ) -> List[dict]:
        """Un-normalized results, used as a market comparison sample."""
        try:
            return adzuna_results(
                self.app_id,
                self.app_key,
                role,
                country=self.country,
                results_per_page=limit,
                where=location,
                sort_by=sort_by,
                client=self.client,
            )
        except AdapterFetchError as e:
            e.role, e.location = role, location
            raise

    def fetch(
        self,
        role: str,
        location: str,
        options: Optional[SearchOptions] = None,
        *,
        region: str = "",
    ) -> List[JobRecord]:
        if not role.strip() or not location.strip():
            raise ValueError("role and location must be non-empty")
        opts = options or SearchOptions()
        try:
            results = adzuna_results(
                self.app_id,
                self.app_key,
                role,
                country=self.country,
                page=opts.page,
                results_per_page=opts.limit,
                where=location,
                max_days_old=opts.max_days_old or self.max_days_old,
                salary_min=opts.salary_min,
                sort_by=opts.sort_by or "date",
                client=self.client,
            )
        except AdapterFetchError as e:
            e.role, e.location = role, location
            raise

        context = SearchContext(search_term=role, location=location, fetched_at=iso_z(self.clock()), region=region)
        jobs = [self.normalize(r, context) for r in results if isinstance(r, dict)]
        if opts.remote_only:
            jobs = [j for j in jobs if _is_remote_job(j)]
        return jobs

    def normalize(self, raw: dict, context: SearchContext) -> JobRecord:
        return normalize_record(
            raw,
            context,
            provider=self.name,
            salary_currency="CAD",
            salary_period="yearly",
            snippet_chars=self.snippet_chars,
        )
