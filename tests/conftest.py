"""
Shared fixtures for jobfeed tests.

Everything runs offline: providers are in-memory fakes or Adzuna behind an
httpx.MockTransport, and sqlite files live under tmp_path.
"""

import datetime as dt
from typing import Callable, Dict, List, Optional

import pytest

from jobfeed.errors import AdapterFetchError
from jobfeed.models import JobRecord, SearchContext, SearchOptions
from jobfeed.pipeline.dedupe import canonical_id
from jobfeed.pipeline.normalize import iso_z, normalize_record


UTC = dt.timezone.utc
T0 = dt.datetime(2025, 9, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Settable datetime clock."""

    def __init__(self, now: dt.datetime = T0):
        self.now = now

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + dt.timedelta(**kwargs)


class FakeProvider:
    """
    Provider double. `responses` maps role -> list of raw dicts, or an
    exception to raise; `fail_times` makes the first N calls fail.
    """

    def __init__(self, name: str = "fake", responses: Optional[Dict[str, object]] = None, fail_times: int = 0):
        self.name = name
        self.responses = responses or {}
        self.fail_times = fail_times
        self.calls: List[tuple] = []

    def fetch(self, role: str, location: str, options: Optional[SearchOptions] = None, *, region: str = "") -> List[JobRecord]:
        self.calls.append((role, location))
        if self.fail_times > 0:
            self.fail_times -= 1
            raise AdapterFetchError("boom", provider=self.name, role=role, location=location)
        resp = self.responses.get(role, [])
        if isinstance(resp, Exception):
            raise resp
        ctx = SearchContext(search_term=role, location=location, fetched_at=iso_z(T0), region=region)
        return [self.normalize(r, ctx) for r in resp]

    def normalize(self, raw: dict, context: SearchContext) -> JobRecord:
        return normalize_record(raw, context, provider=self.name)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_job() -> Callable[..., JobRecord]:
    def _make(
        ext: str = "1",
        *,
        provider: str = "adzuna",
        title: str = "Backend Developer",
        company: str = "Acme",
        location: str = "Toronto, ON",
        **kwargs,
    ) -> JobRecord:
        return JobRecord(
            id=f"{provider}:{ext}",
            external_id=ext,
            canonical_id=canonical_id(company, title, location),
            provider=provider,
            title=title,
            company=company,
            location=location,
            **kwargs,
        )

    return _make


@pytest.fixture
def fake_provider_cls():
    return FakeProvider


@pytest.fixture
def adzuna_raw() -> Callable[..., dict]:
    def _raw(ext: str = "100", **overrides) -> dict:
        raw = {
            "id": ext,
            "title": "Senior Python Developer",
            "description": "Build APIs. Remote friendly team. " * 5,
            "company": {"display_name": "Acme Corp"},
            "location": {"display_name": "Toronto, Ontario"},
            "redirect_url": f"https://adzuna.example/jobs/{ext}",
            "salary_min": 90000,
            "salary_max": 120000,
            "salary_is_predicted": "0",
            "created": "2025-08-30T07:20:13Z",
        }
        raw.update(overrides)
        return raw

    return _raw
