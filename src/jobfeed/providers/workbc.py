# src/jobfeed/providers/workbc.py
from __future__ import annotations

import datetime as dt
from typing import Callable, List, Optional

import httpx

from jobfeed.clients.http import get_json
from jobfeed.errors import AdapterFetchError
from jobfeed.models import JobRecord, SearchContext, SearchOptions
from jobfeed.pipeline.filter import looks_remote
from jobfeed.pipeline.normalize import SNIPPET_CHARS, iso_z, normalize_record, utc_now


class WorkBCProvider:
    """
    WorkBC job board. The endpoint answers either {"results": [...]} or a bare
    list; records use `employer`/`city`/`jobUrl` style keys, which
    normalize_record already knows about.
    """

    name = "workbc"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        snippet_chars: int = SNIPPET_CHARS,
        client: Optional[httpx.Client] = None,
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.snippet_chars = snippet_chars
        self.client = client
        self.clock = clock

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
        params = {"keywords": role, "location": location, "page": str(opts.page), "pageSize": str(opts.limit)}
        try:
            data = get_json(
                self.base_url,
                params,
                headers={"apikey": self.api_key},
                client=self.client,
                provider=self.name,
            )
        except AdapterFetchError as e:
            e.role, e.location = role, location
            raise

        if isinstance(data, dict) and isinstance(data.get("results"), list):
            items = data["results"]
        elif isinstance(data, list):
            items = data
        else:
            raise AdapterFetchError("WorkBC response has no results", provider=self.name, role=role, location=location)

        context = SearchContext(search_term=role, location=location, fetched_at=iso_z(self.clock()), region=region)
        jobs = [self.normalize(r, context) for r in items if isinstance(r, dict)]
        if opts.salary_min:
            jobs = [j for j in jobs if (j.salary_max or j.salary_min or 0) >= opts.salary_min]
        if opts.remote_only:
            jobs = [j for j in jobs if looks_remote(f"{j.title} {j.description} {j.location}")]
        return jobs

    def normalize(self, raw: dict, context: SearchContext) -> JobRecord:
        return normalize_record(raw, context, provider=self.name, snippet_chars=self.snippet_chars)
