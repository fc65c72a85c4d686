"""Tests for the search cache and refresh queue (jobfeed/io/cache_db.py)."""

import datetime as dt

import pytest

from jobfeed.io.cache_db import SearchCacheDB
from jobfeed.pipeline.search_key import make_search_key


@pytest.fixture
def cache(tmp_path, clock):
    db = SearchCacheDB(tmp_path / "cache.sqlite3", ttl=dt.timedelta(hours=24), clock=clock)
    yield db
    db.close()


class TestCacheTTL:
    def test_fresh_hit_within_ttl(self, cache, clock, make_job):
        key = make_search_key("Backend Developer", "Toronto, ON")
        cache.put(key, [make_job("1")])

        clock.advance(hours=23, minutes=59)
        jobs = cache.get(key)
        assert jobs is not None
        assert [j.id for j in jobs] == ["adzuna:1"]

    def test_expired_entry_reads_as_none(self, cache, clock, make_job):
        key = make_search_key("Backend Developer", "Toronto, ON")
        cache.put(key, [make_job("1")])

        clock.advance(hours=24)
        assert cache.get(key) is None
        # the raw entry is still there for whoever wants it
        assert cache.get_entry(key) is not None

    def test_miss(self, cache):
        assert cache.get("backend dev|toronto, on") is None

    def test_equivalent_searches_share_an_entry(self, cache, make_job):
        cache.put(make_search_key("Senior Backend Developer", "Toronto, ON, Canada"), [make_job("1")])
        assert cache.get(make_search_key("backend engineer", "toronto, on")) is not None

    def test_put_overwrites(self, cache, make_job):
        key = make_search_key("dev", "Toronto")
        cache.put(key, [make_job("1")])
        cache.put(key, [make_job("2", title="Other")])
        assert [j.id for j in cache.get(key)] == ["adzuna:2"]

    def test_jobs_round_trip_fields(self, cache, make_job):
        key = make_search_key("dev", "Toronto")
        job = make_job("1", salary_min=80000.0, search_terms_matched=("dev", "backend"))
        cache.put(key, [job])
        assert cache.get(key) == [job]

    def test_stale_searches(self, cache, clock, make_job):
        fresh = make_search_key("backend developer", "Toronto")
        old = make_search_key("data engineer", "Toronto")
        missing = make_search_key("designer", "Toronto")
        cache.put(old, [])
        clock.advance(hours=20)
        cache.put(fresh, [make_job("1")])
        clock.advance(hours=5)

        stale = cache.get_stale_searches([fresh, old, missing, old])
        assert [k.key for k in stale] == [old.key, missing.key]
        assert set(cache.get_many([fresh, old, missing])) == {fresh.key}

    def test_many_keys_are_queried_in_chunks(self, cache, monkeypatch, make_job):
        monkeypatch.setattr("jobfeed.io.cache_db.IN_CHUNK", 2)
        keys = [make_search_key(f"role {i}", "Toronto") for i in range(5)]
        for k in keys[:3]:
            cache.put(k, [make_job("1")])

        assert set(cache.get_many(keys)) == {k.key for k in keys[:3]}
        assert [k.key for k in cache.get_stale_searches(keys)] == [k.key for k in keys[3:]]

    def test_more_keys_than_sqlite_variable_limit(self, cache):
        keys = [make_search_key(f"role {i}", "Toronto") for i in range(40000)]
        assert cache.get_many(keys) == {}
        assert len(cache.get_stale_searches(keys)) == 40000

    def test_rejects_non_positive_ttl(self, tmp_path):
        with pytest.raises(ValueError):
            SearchCacheDB(tmp_path / "c.sqlite3", ttl=dt.timedelta(0))


class TestRefreshQueue:
    def test_request_is_idempotent_and_merges_requesters(self, cache):
        key = make_search_key("backend developer", "Toronto")
        cache.request_refresh([key], "alice")
        cache.request_refresh([key], "bob", priority=3)
        cache.request_refresh([key], "alice")

        pending = cache.pending_refreshes()
        assert len(pending) == 1
        req = pending[0]
        assert req.requested_by == ("alice", "bob")
        assert req.priority == 3
        assert req.search_term == "backend developer"
        assert req.location == "Toronto"

    def test_priority_order_and_limit(self, cache, clock):
        cache.request_refresh([make_search_key("a", "x")], "u")
        clock.advance(minutes=1)
        cache.request_refresh([make_search_key("b", "x")], "u", priority=5)
        clock.advance(minutes=1)
        cache.request_refresh([make_search_key("c", "x")], "u")

        assert [r.search_key for r in cache.pending_refreshes()] == ["b|x", "a|x", "c|x"]
        assert len(cache.pending_refreshes(limit=1)) == 1

    def test_mark_refreshed_then_request_again(self, cache):
        key = make_search_key("a", "x")
        cache.request_refresh([key], "u")
        cache.mark_refreshed(key)
        assert cache.pending_refreshes() == []
        assert cache.get_request(key).status == "done"

        cache.request_refresh([key], "v")
        req = cache.get_request(key)
        assert req.status == "pending"
        assert req.requested_by == ("u", "v")
