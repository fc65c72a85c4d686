"""Tests for the consumer read path (jobfeed/feed.py) and per-user filtering."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from jobfeed.feed import load_jobs_for_user, search_keys_for
from jobfeed.io.batch import Batch, write_batch
from jobfeed.io.cache_db import SearchCacheDB
from jobfeed.models import UserInterests
from jobfeed.pipeline.filter import filter_jobs_for_user, filter_remote
from jobfeed.pipeline.search_key import make_search_key

INTERESTS = UserInterests(job_titles=("Backend Developer", "Data Engineer"), locations=("Toronto, ON",))


@pytest.fixture
def cache(tmp_path, clock):
    db = SearchCacheDB(tmp_path / "cache.sqlite3", clock=clock)
    yield db
    db.close()


@pytest.fixture
def static_batch(tmp_path, make_job):
    path = tmp_path / "jobs.json"
    write_batch(path, Batch(generated_at="2025-09-01T00:00:00Z", jobs=[make_job("s1"), make_job("s2", title="Static")]))
    return path


class TestLoadJobsForUser:
    def test_search_keys_deduplicate(self):
        interests = UserInterests(job_titles=("Backend Developer", "Senior backend engineer"), locations=("Toronto",))
        assert [k.key for k in search_keys_for(interests)] == ["backend dev|toronto"]

    def test_fresh_cache_served_and_stale_queued(self, cache, static_batch, make_job):
        cache.put(make_search_key("Backend Developer", "Toronto, ON"), [make_job("c1"), make_job("c2", provider="workbc")])

        jobs = load_jobs_for_user(INTERESTS, "alice", cache, static_batch)

        # c1 and c2 are the same posting from two providers
        assert [j.id for j in jobs] == ["adzuna:c1"]
        pending = cache.pending_refreshes()
        assert [r.search_key for r in pending] == [make_search_key("Data Engineer", "Toronto, ON").key]
        assert pending[0].requested_by == ("alice",)

    def test_falls_back_to_static_batch(self, cache, static_batch):
        jobs = load_jobs_for_user(INTERESTS, "bob", cache, static_batch)
        assert [j.id for j in jobs] == ["adzuna:s1", "adzuna:s2"]
        assert len(cache.pending_refreshes()) == 2

    def test_no_interests_or_cache(self, cache, static_batch):
        assert len(load_jobs_for_user(None, "x", cache, static_batch)) == 2
        assert len(load_jobs_for_user(INTERESTS, "x", None, static_batch)) == 2

    def test_broken_cache_degrades_to_static(self, static_batch):
        broken = MagicMock()
        broken.get_many.side_effect = sqlite3.OperationalError("database is locked")
        jobs = load_jobs_for_user(INTERESTS, "x", broken, static_batch)
        assert len(jobs) == 2

    def test_unreadable_static_batch_is_empty(self, cache, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("garbage", encoding="utf-8")
        assert load_jobs_for_user(INTERESTS, "x", cache, bad) == []


class TestFilters:
    def test_filter_for_user(self, make_job):
        jobs = [
            make_job("1", title="Senior Backend Developer", salary_min=100000.0, job_type="full-time", remote_type="remote"),
            make_job("2", title="Designer", salary_min=100000.0),
            make_job("3", title="Backend Developer", salary_min=50000.0),
            make_job("4", title="Backend Developer Contract", salary_min=120000.0, job_type="contract"),
            make_job("5", title="Backend Developer", location="Ottawa, ON", salary_min=120000.0, remote_type="onsite"),
        ]
        interests = UserInterests(
            job_titles=("backend developer",), locations=("Toronto",),
            salary_min=90000, job_types=("full-time",), remote_preference="remote",
        )
        assert [j.id for j in filter_jobs_for_user(jobs, interests)] == ["adzuna:1"]

    def test_title_matches_search_terms(self, make_job):
        job = make_job("1", title="Platform Engineer", search_terms_matched=("backend developer",))
        assert filter_jobs_for_user([job], UserInterests(job_titles=("backend developer",))) == [job]

    def test_filter_remote(self, make_job):
        jobs = [make_job("1", title="Dev (Hybrid)"), make_job("2", title="Dev", description="WFH ok"), make_job("3", title="Dev")]
        assert [j.id for j in filter_remote(jobs)] == ["adzuna:1", "adzuna:2"]
