"""Tests for settings and watchlist validation (jobfeed/config.py)."""

import json
from pathlib import Path

import pytest

from jobfeed.config import load_settings, load_watchlists, parse_watchlists
from jobfeed.errors import ConfigError

VALID = {
    "watchlists": [{"name": "Backend", "synonyms": ["backend developer", " python developer "]}],
    "regions": [
        {"name": "Toronto", "where": "Toronto, ON"},
        {"name": "Remote", "where": "Canada", "type": "Remote"},
    ],
}


class TestParseWatchlists:
    def test_valid(self):
        watchlists, regions = parse_watchlists(VALID)
        assert watchlists[0].synonyms == ("backend developer", "python developer")
        assert regions[0].type == "onsite"
        assert regions[1].is_remote

    @pytest.mark.parametrize("doc", [
        [],
        {"regions": VALID["regions"]},
        {"watchlists": VALID["watchlists"], "regions": []},
        {"watchlists": [{"name": "x", "synonyms": []}], "regions": VALID["regions"]},
        {"watchlists": [{"name": "", "synonyms": ["a"]}], "regions": VALID["regions"]},
        {"watchlists": [{"name": "x", "synonyms": [3]}], "regions": VALID["regions"]},
        {"watchlists": VALID["watchlists"], "regions": [{"name": "x", "where": "y", "type": "moon"}]},
        {"watchlists": VALID["watchlists"], "regions": [{"name": "x"}]},
    ])
    def test_malformed(self, doc):
        with pytest.raises(ConfigError):
            parse_watchlists(doc)


class TestLoadWatchlists:
    def test_from_file(self, tmp_path):
        p = tmp_path / "w.json"
        p.write_text(json.dumps(VALID), encoding="utf-8")
        watchlists, regions = load_watchlists(p)
        assert [w.name for w in watchlists] == ["Backend"]
        assert len(regions) == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_watchlists(tmp_path / "missing.json")

    def test_bad_json(self, tmp_path):
        p = tmp_path / "w.json"
        p.write_text("{", encoding="utf-8")
        with pytest.raises(ConfigError):
            load_watchlists(p)

    def test_shipped_example_is_valid(self):
        root = Path(__file__).resolve().parent.parent
        watchlists, regions = load_watchlists(root / "config" / "watchlists.json")
        assert watchlists and regions


class TestLoadSettings:
    def test_defaults(self, monkeypatch):
        for name in ("ADZUNA_APP_ID", "ADZUNA_APP_KEY", "MAX_DAYS_OLD", "RETRY_ATTEMPTS", "STATE_DIR"):
            monkeypatch.delenv(name, raising=False)
        s = load_settings()
        assert not s.has_adzuna
        assert s.max_days_old is None
        assert s.retry_attempts == 3
        assert s.cache_db_path == Path("data") / "search_cache.sqlite3"

    def test_env_overrides_and_bad_numbers(self, monkeypatch, tmp_path):
        monkeypatch.setenv("ADZUNA_APP_ID", "id")
        monkeypatch.setenv("ADZUNA_APP_KEY", "key")
        monkeypatch.setenv("MAX_DAYS_OLD", "7")
        monkeypatch.setenv("RETRY_ATTEMPTS", "lots")
        monkeypatch.setenv("REQUESTS_PER_SECOND", "0.5")
        monkeypatch.setenv("STATE_DIR", str(tmp_path))
        s = load_settings()
        assert s.has_adzuna
        assert s.max_days_old == 7
        assert s.retry_attempts == 3
        assert s.requests_per_second == 0.5
        assert s.quota_db_path == tmp_path / "market_quota.sqlite3"
