"""Tests for raw payload -> JobRecord mapping (jobfeed/pipeline/normalize.py)."""

import base64

from jobfeed.models import SearchContext
from jobfeed.pipeline.dedupe import canonical_id
from jobfeed.pipeline.normalize import (
    display_text,
    fallback_external_id,
    infer_job_type,
    infer_remote_type,
    infer_seniority_level,
    normalize_record,
    relevance_score,
    to_salary,
    truncate,
)

CTX = SearchContext(search_term="python developer", location="Toronto, ON", fetched_at="2025-09-01T12:00:00Z", region="Toronto")


# ============================================================
# Field helpers
# ============================================================


class TestHelpers:
    def test_display_text_shapes(self):
        assert display_text({"display_name": " Acme "}) == "Acme"
        assert display_text("plain") == "plain"
        assert display_text(None) == ""
        assert display_text(42) == "42"
        assert display_text(["x"]) == ""

    def test_to_salary_rejects_zero_and_garbage(self):
        assert to_salary(0) is None
        assert to_salary("") is None
        assert to_salary("abc") is None
        assert to_salary(-5) is None
        assert to_salary("85000") == 85000.0

    def test_truncate(self):
        assert truncate("x" * 500) == "x" * 280
        assert truncate(None) == ""

    def test_fallback_external_id_prefers_url(self):
        expected = base64.b64encode(b"https://x.example/1").decode("ascii")
        assert fallback_external_id("https://x.example/1", "Title") == expected
        assert fallback_external_id("", "Title") == base64.b64encode(b"Title").decode("ascii")


class TestHeuristics:
    def test_job_type(self):
        assert infer_job_type("Software Intern", "") == "internship"
        assert infer_job_type("Contract Developer", "") == "contract"
        assert infer_job_type("Developer", "this is a part-time role") == "part-time"
        assert infer_job_type("Developer", "") == "full-time"

    def test_remote_type(self):
        assert infer_remote_type("Dev", "fully remote", "") == "remote"
        assert infer_remote_type("Dev", "hybrid schedule", "") == "hybrid"
        assert infer_remote_type("Dev", "", "Toronto") == "onsite"

    def test_seniority(self):
        assert infer_seniority_level("Senior Dev") == "senior"
        assert infer_seniority_level("Lead Dev") == "lead"
        assert infer_seniority_level("Junior Dev") == "entry"
        assert infer_seniority_level("Dev") == "mid"

    def test_relevance(self):
        assert relevance_score("Senior Python Developer", "python developer") == 1.0
        assert relevance_score("Python Engineer", "python developer") == 0.5
        assert relevance_score("Anything", "") == 0.0


# ============================================================
# normalize_record
# ============================================================


class TestNormalizeRecord:
    def test_adzuna_shape(self, adzuna_raw):
        job = normalize_record(adzuna_raw("42"), CTX, provider="adzuna", salary_currency="CAD", salary_period="yearly")

        assert job.id == "adzuna:42"
        assert job.external_id == "42"
        assert job.company == "Acme Corp"
        assert job.location == "Toronto, Ontario"
        assert job.canonical_id == canonical_id("Acme Corp", "Senior Python Developer", "Toronto, Ontario")
        assert job.salary_min == 90000.0
        assert job.salary_currency == "CAD"
        assert job.salary_period == "yearly"
        assert job.posted_date == "2025-08-30T07:20:13Z"
        assert job.search_terms_matched == ("python developer",)
        assert job.region == "Toronto"
        assert len(job.description) <= 280
        assert job.seniority_level == "senior"

    def test_missing_fields_never_raise(self):
        job = normalize_record({"title": "Dev", "url": "https://x.example/9"}, CTX, provider="workbc")

        assert job.company == ""
        assert job.location == "Toronto, ON"  # falls back to the search location
        assert job.salary_min is None and job.salary_max is None
        assert job.salary_currency is None
        assert job.external_id == fallback_external_id("https://x.example/9", "Dev")
        assert job.posted_date is None

    def test_zero_salary_is_unknown(self, adzuna_raw):
        job = normalize_record(adzuna_raw(salary_min=0, salary_max=None), CTX, provider="adzuna", salary_currency="CAD")
        assert job.salary_min is None
        assert job.salary_max is None
        assert not job.has_salary
        assert job.salary_currency is None

    def test_string_company_and_predicted_flag(self, adzuna_raw):
        job = normalize_record(adzuna_raw(company="Plain Co", salary_is_predicted="1"), CTX, provider="adzuna")
        assert job.company == "Plain Co"
        assert job.salary_is_predicted is True
