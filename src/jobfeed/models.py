# src/jobfeed/models.py
"""
Typed shapes for job data, before and after normalization.

Raw provider payloads are plain dicts described with `TypedDict` (no runtime
validation, a provider may omit anything). Everything past the adapter
boundary is a `JobRecord` dataclass with explicit optional fields.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, List, Optional, Tuple, TypedDict


class RawAdzunaJob(TypedDict, total=False):
    """
    One element of Adzuna's `results` array.

    `company` and `location` are normally objects with a `display_name`, but
    other providers hand us plain strings or nothing at all.
    """

    id: str
    title: str
    description: str
    company: Dict[str, Any]
    location: Dict[str, Any]
    redirect_url: str
    salary_min: float
    salary_max: float
    salary_is_predicted: str  # "1" if Adzuna estimated it
    created: str  # "2025-09-26T07:20:13Z"


@dataclass(frozen=True)
class Region:
    name: str
    where: str
    type: str = "onsite"  # remote|onsite

    @property
    def is_remote(self) -> bool:
        return self.type == "remote"


@dataclass(frozen=True)
class Watchlist:
    name: str
    synonyms: Tuple[str, ...]


@dataclass(frozen=True)
class SearchOptions:
    page: int = 1
    limit: int = 50
    salary_min: Optional[int] = None
    remote_only: bool = False
    max_days_old: Optional[int] = None
    sort_by: Optional[str] = None


@dataclass(frozen=True)
class SearchContext:
    search_term: str
    location: str
    fetched_at: str
    region: str = ""


@dataclass(frozen=True)
class SalaryAnalysis:
    average_salary: Optional[int] = None
    salary_range: Optional[Tuple[float, float]] = None
    market_position: Optional[str] = None  # below|average|above|excellent
    demand_level: Optional[str] = None  # low|medium|high|very-high
    trend_direction: Optional[str] = None  # declining|stable|growing|hot
    confidence: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        if self.average_salary is not None:
            out["averageSalary"] = self.average_salary
        if self.salary_range is not None:
            out["salaryRange"] = {"min": self.salary_range[0], "max": self.salary_range[1]}
        if self.market_position is not None:
            out["marketPosition"] = self.market_position
        if self.demand_level is not None:
            out["demandLevel"] = self.demand_level
        if self.trend_direction is not None:
            out["trendDirection"] = self.trend_direction
        if self.confidence is not None:
            out["confidence"] = self.confidence
        return out

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "SalaryAnalysis":
        rng = d.get("salaryRange")
        return cls(
            average_salary=d.get("averageSalary"),
            salary_range=(rng["min"], rng["max"]) if isinstance(rng, dict) else None,
            market_position=d.get("marketPosition"),
            demand_level=d.get("demandLevel"),
            trend_direction=d.get("trendDirection"),
            confidence=d.get("confidence"),
        )


@dataclass(frozen=True)
class JobRecord:
    """
    Canonical, provider-agnostic job posting.

    - `id` is "{provider}:{external_id}" and unique per provider.
    - `canonical_id` is the cross-provider dedup key (see pipeline.dedupe).
    - salary fields are None when unknown; never coerce them to 0.
    - `first_seen_at` is sticky once set, `last_seen_at` moves every run.
    """

    id: str
    external_id: str
    canonical_id: str
    provider: str
    title: str = ""
    company: str = ""
    location: str = ""
    description: str = ""
    url: str = ""
    salary_min: Optional[float] = None
    salary_max: Optional[float] = None
    salary_currency: Optional[str] = None
    salary_period: Optional[str] = None
    salary_is_predicted: bool = False
    posted_date: Optional[str] = None
    job_type: Optional[str] = None
    remote_type: Optional[str] = None
    seniority_level: Optional[str] = None
    region: str = ""
    first_seen_at: Optional[str] = None
    last_seen_at: Optional[str] = None
    search_terms_matched: Tuple[str, ...] = ()
    relevance_score: Optional[float] = None
    quality_score: Optional[float] = None
    salary_analysis: Optional[SalaryAnalysis] = None

    @property
    def has_salary(self) -> bool:
        return bool(self.salary_min) or bool(self.salary_max)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["search_terms_matched"] = list(self.search_terms_matched)
        d.pop("salary_analysis")
        if self.salary_analysis is not None:
            d["salaryAnalysis"] = self.salary_analysis.to_dict()
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "JobRecord":
        """Rebuild a record from JSON, ignoring keys we don't know about."""
        known = {f.name for f in fields(cls)}
        kwargs = {k: v for k, v in d.items() if k in known}
        kwargs["search_terms_matched"] = tuple(d.get("search_terms_matched") or ())
        kwargs["salary_is_predicted"] = bool(d.get("salary_is_predicted"))
        analysis = d.get("salaryAnalysis")
        kwargs["salary_analysis"] = SalaryAnalysis.from_dict(analysis) if isinstance(analysis, dict) else None
        for required in ("id", "external_id", "canonical_id", "provider"):
            kwargs.setdefault(required, "")
        return cls(**kwargs)


@dataclass(frozen=True)
class UserInterests:
    job_titles: Tuple[str, ...] = ()
    locations: Tuple[str, ...] = ()
    salary_min: Optional[float] = None
    job_types: Tuple[str, ...] = ()
    remote_preference: str = "any"  # remote|hybrid|onsite|any


@dataclass(frozen=True)
class CacheEntry:
    search_key: str
    search_term: str
    location: str
    jobs: List[JobRecord] = field(default_factory=list)
    fetched_at: str = ""
    expires_at: str = ""


@dataclass(frozen=True)
class RefreshRequest:
    search_key: str
    search_term: str
    location: str
    requested_by: Tuple[str, ...] = ()
    priority: int = 1
    status: str = "pending"
    requested_at: str = ""
