# src/jobfeed/pipeline/freshness.py
"""
Assign first_seen_at / last_seen_at to a freshly deduplicated batch.

first_seen_at is sticky: it is the earliest value we know of for the record,
from the previous batch or the long-lived seen index, and is never moved to a
later time. last_seen_at is simply "now" for everything in this run.

merge_freshness only reads the seen index; record_seen writes it, and the
caller runs it after the batch has been persisted.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import replace
from typing import Dict, Iterable, List, Optional

from jobfeed.io.batch import Batch
from jobfeed.io.seen_db import SeenIndexDB
from jobfeed.models import JobRecord
from jobfeed.pipeline.dedupe import is_low_confidence, merge_terms
from jobfeed.pipeline.normalize import iso_z, parse_iso


def previous_index(previous: Optional[Batch]) -> Dict[str, JobRecord]:
    """
    id -> previous record. Records written without a first_seen_at inherit the
    batch's generated_at.
    """
    if previous is None:
        return {}
    out: Dict[str, JobRecord] = {}
    for j in previous.jobs:
        if not j.id:
            continue
        if not j.first_seen_at and previous.generated_at:
            j = replace(j, first_seen_at=previous.generated_at)
        out[j.id] = j
    return out


def _earliest(candidates: Iterable[Optional[str]]) -> Optional[str]:
    best: Optional[dt.datetime] = None
    for s in candidates:
        d = parse_iso(s)
        if d is not None and (best is None or d < best):
            best = d
    return iso_z(best) if best else None


def merge_freshness(
    jobs: Iterable[JobRecord],
    previous: Optional[Batch],
    now: dt.datetime,
    seen_index: Optional[SeenIndexDB] = None,
) -> List[JobRecord]:
    jobs = list(jobs)
    now_s = iso_z(now)
    prev = previous_index(previous)

    by_id: Dict[str, str] = {}
    by_canonical: Dict[str, str] = {}
    if seen_index is not None:
        by_id = seen_index.first_seen_by_id(j.id for j in jobs)
        by_canonical = seen_index.first_seen_by_canonical(
            j.canonical_id for j in jobs if not is_low_confidence(j)
        )

    out: List[JobRecord] = []
    for j in jobs:
        old = prev.get(j.id)
        candidates = [
            old.first_seen_at if old else None,
            by_id.get(j.id),
            None if is_low_confidence(j) else by_canonical.get(j.canonical_id),
        ]
        first_seen = _earliest(candidates) or now_s
        terms = merge_terms(j.search_terms_matched, old.search_terms_matched if old else ())
        out.append(replace(j, first_seen_at=first_seen, last_seen_at=now_s, search_terms_matched=terms))

    return out


def record_seen(seen_index: Optional[SeenIndexDB], jobs: Iterable[JobRecord], now: dt.datetime) -> None:
    """Persist this run's stamps into the seen index; call once the batch is safely written."""
    if seen_index is None:
        return
    seen_index.record(jobs)
    seen_index.prune(now)
