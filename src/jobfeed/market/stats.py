# src/jobfeed/market/stats.py
"""
Salary statistics over a market comparison sample.

Samples are raw provider dicts (Adzuna `results` items), so every accessor
tolerates missing or oddly-typed fields. A record without any salary is left
out of the salary maths but still counts towards demand and trend.
"""

from __future__ import annotations

import datetime as dt
import math
from typing import List, Optional, Sequence, Tuple

from jobfeed.models import JobRecord, SalaryAnalysis
from jobfeed.pipeline.normalize import first_present, parse_iso, to_salary

TREND_WINDOW = dt.timedelta(days=7)


def midpoint(lo: Optional[float], hi: Optional[float]) -> Optional[float]:
    """
    Typical salary for a range. Only a max -> 90% of it; only a min -> 110%
    of it; neither -> None.
    """
    if lo and hi:
        return (lo + hi) / 2
    if hi:
        return hi * 0.9
    if lo:
        return lo * 1.1
    return None


def job_midpoint(job: JobRecord) -> Optional[float]:
    return midpoint(job.salary_min, job.salary_max)


def sample_midpoint(raw: dict) -> Optional[float]:
    lo = to_salary(first_present(raw, ("salary_min", "salaryMin")))
    hi = to_salary(first_present(raw, ("salary_max", "salaryMax")))
    return midpoint(lo, hi)


def percentile_band(sorted_values: Sequence[float]) -> Tuple[float, float]:
    """25th/75th percentile by index floor(n*p) into the sorted list; no interpolation."""
    n = len(sorted_values)
    return sorted_values[math.floor(n * 0.25)], sorted_values[math.floor(n * 0.75)]


def market_position(job_salary: Optional[float], market_average: float) -> Optional[str]:
    if not job_salary or market_average <= 0:
        return None
    ratio = job_salary / market_average
    if ratio >= 1.3:
        return "excellent"
    if ratio >= 1.1:
        return "above"
    if ratio >= 0.9:
        return "average"
    return "below"


def demand_level(job_count: int) -> str:
    if job_count >= 100:
        return "very-high"
    if job_count >= 50:
        return "high"
    if job_count >= 20:
        return "medium"
    return "low"


def trend_direction(samples: Sequence[dict], now: dt.datetime) -> str:
    """Share of the sample posted in the last 7 days, as a proxy for momentum."""
    cutoff = now - TREND_WINDOW
    recent = 0
    for s in samples:
        created = parse_iso(first_present(s, ("created", "posted_date", "postedDate")))
        if created is not None and created > cutoff:
            recent += 1
    ratio = recent / max(len(samples), 1)
    if ratio >= 0.7:
        return "hot"
    if ratio >= 0.4:
        return "growing"
    if ratio >= 0.2:
        return "stable"
    return "declining"


def calculate_analysis(job: JobRecord, samples: Sequence[dict], now: dt.datetime) -> SalaryAnalysis:
    salaries: List[float] = sorted(m for m in (sample_midpoint(s) for s in samples) if m)
    if not salaries:
        return SalaryAnalysis(confidence=0.1)

    average = sum(salaries) / len(salaries)
    return SalaryAnalysis(
        average_salary=round(average),
        salary_range=percentile_band(salaries),
        market_position=market_position(job_midpoint(job), average),
        demand_level=demand_level(len(samples)),
        trend_direction=trend_direction(samples, now),
        confidence=min(0.9, len(salaries) / 20),
    )
