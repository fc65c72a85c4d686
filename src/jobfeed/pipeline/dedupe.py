# src/jobfeed/pipeline/dedupe.py
"""
Cross-provider identity for job postings.

Providers hand out unrelated opaque ids for the same real posting, so the only
usable merge signal is the (company, title, location) triple. The key is a
SHA-1 over a fixed UTF-8 encoding so it is stable across runs and languages.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import replace
from typing import Dict, Iterable, List, Tuple

from jobfeed.models import JobRecord

_WS = re.compile(r"\s+")


def normalize_key_text(s: str) -> str:
    """trim + lowercase + collapse internal whitespace."""
    return _WS.sub(" ", (s or "").strip().lower())


def canonical_id(company: str, title: str, location: str) -> str:
    key = "|".join(normalize_key_text(x) for x in (company, title, location))
    return hashlib.sha1(key.encode("utf-8")).hexdigest()


def is_low_confidence(job: JobRecord) -> bool:
    # Only location left in the key; merging on it would collapse unrelated postings.
    return not normalize_key_text(job.company) and not normalize_key_text(job.title)


def dedupe_key(job: JobRecord) -> str:
    if job.canonical_id and not is_low_confidence(job):
        return job.canonical_id
    return job.id


def merge_terms(*groups: Iterable[str]) -> Tuple[str, ...]:
    """Ordered union of search terms, first occurrence wins."""
    seen: Dict[str, None] = {}
    for g in groups:
        for t in g:
            if t:
                seen.setdefault(t, None)
    return tuple(seen)


def dedupe_jobs(jobs: Iterable[JobRecord]) -> List[JobRecord]:
    """
    Keep the first record per dedup key, in input order.

    Dropped duplicates are not an error; their `search_terms_matched` are folded
    into the survivor so the record remembers every search that produced it.
    """
    order: List[str] = []
    kept: Dict[str, JobRecord] = {}
    for j in jobs:
        key = dedupe_key(j)
        if not key:
            continue
        if key not in kept:
            order.append(key)
            kept[key] = j
            continue
        survivor = kept[key]
        terms = merge_terms(survivor.search_terms_matched, j.search_terms_matched)
        if terms != survivor.search_terms_matched:
            kept[key] = replace(survivor, search_terms_matched=terms)
    return [kept[k] for k in order]
