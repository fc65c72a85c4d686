# src/jobfeed/pipeline/filter.py
from __future__ import annotations

from typing import Iterable, List

from jobfeed.models import JobRecord, UserInterests

REMOTE_MARKERS = ("remote", "work from home", "wfh", "anywhere in canada", "hybrid")


def looks_remote(text: str) -> bool:
    t = (text or "").lower()
    return any(m in t for m in REMOTE_MARKERS)


def filter_remote(jobs: Iterable[JobRecord]) -> List[JobRecord]:
    """
    Keep only jobs whose title + snippet mention remote work.
    Used for regions flagged `remote`, where the provider's `where` is too loose.
    """
    return [j for j in jobs if looks_remote(f"{j.title} {j.description}")]


def _title_match(job: JobRecord, titles: Iterable[str]) -> bool:
    jt = job.title.lower()
    for t in titles:
        t = t.lower()
        if t in jt or any(t in term.lower() for term in job.search_terms_matched):
            return True
    return False


def _location_match(job: JobRecord, interests: UserInterests) -> bool:
    pref = interests.remote_preference
    if pref == "any":
        return True
    if pref == "remote" and job.remote_type == "remote":
        return True
    if pref == "hybrid" and job.remote_type in {"remote", "hybrid"}:
        return True
    if pref == "onsite" and job.remote_type == "onsite":
        return True
    jl = job.location.lower()
    return any(loc.lower() in jl for loc in interests.locations)


def filter_jobs_for_user(jobs: Iterable[JobRecord], interests: UserInterests) -> List[JobRecord]:
    """Client-side filter of a batch against one user's saved interests."""
    out: List[JobRecord] = []
    for j in jobs:
        if not _title_match(j, interests.job_titles):
            continue
        if not _location_match(j, interests):
            continue
        if interests.salary_min and not (j.salary_min and j.salary_min >= interests.salary_min):
            continue
        if interests.job_types and (j.job_type or "full-time") not in interests.job_types:
            continue
        out.append(j)
    return out
