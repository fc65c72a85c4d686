# src/jobfeed/pipeline/normalize.py
"""
Convert raw provider payloads into canonical JobRecord objects.

Providers disagree on field names and shapes: company/location can be an
object with `display_name`, a plain string, or missing entirely. Everything
here resolves to "" or None instead of raising, so one odd record never takes
a whole batch down.
"""

from __future__ import annotations

import base64
import datetime as dt
from typing import Any, Iterable, Optional

from jobfeed.models import JobRecord, SearchContext
from jobfeed.pipeline.dedupe import canonical_id

SNIPPET_CHARS = 280


def display_text(v: Any) -> str:
    """Best-effort string for a field that may be a str, number, or nested object."""
    if v is None:
        return ""
    if isinstance(v, bool):
        return str(v).lower()
    if isinstance(v, (str, int, float)):
        return str(v).strip()
    if isinstance(v, dict):
        for key in ("display_name", "name", "label"):
            if key in v:
                return display_text(v[key])
    return ""


def first_present(raw: dict, keys: Iterable[str]) -> Any:
    for k in keys:
        v = raw.get(k)
        if v not in (None, "", {}):
            return v
    return None


def to_salary(v: Any) -> Optional[float]:
    # 0, "", garbage -> unknown
    if v is None or isinstance(v, bool):
        return None
    try:
        f = float(v)
    except (TypeError, ValueError):
        return None
    return f if f > 0 else None


def truncate(text: str, limit: int = SNIPPET_CHARS) -> str:
    return (text or "")[:limit]


def parse_iso(s: Optional[str]) -> Optional[dt.datetime]:
    if not s or not isinstance(s, str):
        return None
    try:
        d = dt.datetime.fromisoformat(s.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if d.tzinfo is None:
        d = d.replace(tzinfo=dt.timezone.utc)
    return d.astimezone(dt.timezone.utc)


def iso_z(d: dt.datetime) -> str:
    return d.astimezone(dt.timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def _posted_date(raw: dict) -> Optional[str]:
    created = first_present(raw, ("created", "date", "postedDate", "publishDate", "posted_date"))
    d = parse_iso(created if isinstance(created, str) else None)
    return iso_z(d) if d else None


def fallback_external_id(url: str, title: str) -> str:
    return base64.b64encode((url or title)[:128].encode("utf-8")).decode("ascii")


# ---- Heuristic classification (best-effort, not authoritative) -----------------

def infer_job_type(title: str, description: str) -> str:
    t, d = title.lower(), description.lower()
    if "intern" in t or "internship" in d:
        return "internship"
    if "contract" in t or "contractor" in d:
        return "contract"
    if "part time" in t or "part-time" in t or "part-time" in d:
        return "part-time"
    if "temporary" in t or "temp " in f"{t} ":
        return "temporary"
    return "full-time"


def infer_remote_type(title: str, description: str, location: str) -> str:
    text = f"{title} {description} {location}".lower()
    if "remote" in text or "work from home" in text:
        return "remote"
    if "hybrid" in text:
        return "hybrid"
    return "onsite"


def infer_seniority_level(title: str) -> str:
    t = f" {title.lower()} "
    if "senior" in t or "sr." in t or " sr " in t:
        return "senior"
    if "lead" in t or "principal" in t:
        return "lead"
    if "director" in t or " vp " in t or "chief" in t:
        return "executive"
    if "junior" in t or "jr." in t or " jr " in t or "entry" in t:
        return "entry"
    return "mid"


def relevance_score(title: str, search_term: str) -> float:
    t, term = title.lower(), search_term.lower().strip()
    if not term:
        return 0.0
    if term in t:
        return 1.0
    words = term.split()
    return sum(1 for w in words if w in t) / len(words)


def quality_score(raw: dict, company: str, description: str) -> float:
    score = 0.5
    if to_salary(raw.get("salary_min")) and to_salary(raw.get("salary_max")):
        score += 0.2
    if company:
        score += 0.1
    if len(description) > 100:
        score += 0.2
    return min(score, 1.0)


# ---- Public API ----------------------------------------------------------------

def normalize_record(
    raw: dict,
    context: SearchContext,
    *,
    provider: str,
    salary_currency: Optional[str] = None,
    salary_period: Optional[str] = None,
    snippet_chars: int = SNIPPET_CHARS,
) -> JobRecord:
    """
    Map one raw provider dict onto the canonical JobRecord.

    Field lookups try the common spellings used across providers
    (`salary_min`/`salaryMin`, `redirect_url`/`url`/`jobUrl`, ...).
    """
    title = display_text(raw.get("title"))
    description = display_text(raw.get("description"))
    company = display_text(first_present(raw, ("company", "employer", "company_name")))
    location = display_text(first_present(raw, ("location", "city"))) or context.location
    url = display_text(first_present(raw, ("redirect_url", "url", "jobUrl")))

    ext = display_text(raw.get("id")) or fallback_external_id(url, title)
    salary_min = to_salary(first_present(raw, ("salary_min", "salaryMin")))
    salary_max = to_salary(first_present(raw, ("salary_max", "salaryMax")))

    return JobRecord(
        id=f"{provider}:{ext}",
        external_id=ext,
        canonical_id=canonical_id(company, title, location),
        provider=provider,
        title=title,
        company=company,
        location=location,
        description=truncate(description, snippet_chars),
        url=url,
        salary_min=salary_min,
        salary_max=salary_max,
        salary_currency=salary_currency if (salary_min or salary_max) else None,
        salary_period=salary_period if (salary_min or salary_max) else None,
        salary_is_predicted=display_text(raw.get("salary_is_predicted")) in {"1", "true"},
        posted_date=_posted_date(raw),
        job_type=infer_job_type(title, description),
        remote_type=infer_remote_type(title, description, location),
        seniority_level=infer_seniority_level(title),
        region=context.region,
        first_seen_at=context.fetched_at,
        last_seen_at=context.fetched_at,
        search_terms_matched=(context.search_term,),
        relevance_score=relevance_score(title, context.search_term),
        quality_score=quality_score(raw, company, description),
    )
