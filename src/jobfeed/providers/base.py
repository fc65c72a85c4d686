# src/jobfeed/providers/base.py
from __future__ import annotations

from typing import List, Optional, Protocol

from jobfeed.models import JobRecord, SearchContext, SearchOptions


class JobProvider(Protocol):
    """
    One external job-search API.

    fetch() does the outbound call and returns canonical records; it raises
    AdapterFetchError on any failure and leaves retrying to the caller.
    normalize() is pure and never raises on missing fields.
    """

    name: str

    def fetch(
        self,
        role: str,
        location: str,
        options: Optional[SearchOptions] = None,
        *,
        region: str = "",
    ) -> List[JobRecord]:
        ...

    def normalize(self, raw: dict, context: SearchContext) -> JobRecord:
        ...
