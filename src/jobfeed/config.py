# src/jobfeed/config.py
"""
Settings and watchlist loading.

Settings come from the environment (the CLI calls `load_dotenv` first, so a
project-root `.env` works). Watchlists and regions live in a JSON file:

    {
      "watchlists": [{"name": "Backend", "synonyms": ["backend developer", ...]}],
      "regions": [{"name": "Toronto", "where": "Toronto, ON", "type": "onsite"}]
    }
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from jobfeed.errors import ConfigError
from jobfeed.models import Region, Watchlist

REGION_TYPES = {"remote", "onsite"}


@dataclass(frozen=True)
class Settings:
    adzuna_app_id: str = ""
    adzuna_app_key: str = ""
    adzuna_country: str = "ca"
    workbc_base_url: str = ""
    workbc_api_key: str = ""

    watchlists_path: Path = Path("config/watchlists.json")
    output_path: Path = Path("website/data/jobs.json")
    state_dir: Path = Path("data")

    cache_ttl_hours: int = 24
    results_per_page: int = 50
    max_days_old: Optional[int] = None
    requests_per_second: float = 3.0
    max_workers: int = 1
    retry_attempts: int = 3
    retry_base_delay: float = 0.5

    market_max_daily_calls: int = 50
    market_top_n: int = 15
    market_batch_size: int = 3
    market_min_samples: int = 1
    market_sample_size: int = 30

    seen_retention_days: int = 90
    snippet_chars: int = 280

    @property
    def cache_db_path(self) -> Path:
        return self.state_dir / "search_cache.sqlite3"

    @property
    def seen_db_path(self) -> Path:
        return self.state_dir / "seen_index.sqlite3"

    @property
    def quota_db_path(self) -> Path:
        return self.state_dir / "market_quota.sqlite3"

    @property
    def has_adzuna(self) -> bool:
        return bool(self.adzuna_app_id and self.adzuna_app_key)

    @property
    def has_workbc(self) -> bool:
        return bool(self.workbc_base_url and self.workbc_api_key)


def _env(name: str) -> str:
    return (os.getenv(name) or "").strip()


def _geti(name: str, default: int) -> int:
    v = _env(name)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _getf(name: str, default: float) -> float:
    v = _env(name)
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def load_settings() -> Settings:
    """Build Settings from os.environ. Unparseable numbers fall back to defaults."""
    d = Settings()
    max_days = _geti("MAX_DAYS_OLD", 0)
    return Settings(
        adzuna_app_id=_env("ADZUNA_APP_ID"),
        adzuna_app_key=_env("ADZUNA_APP_KEY"),
        adzuna_country=_env("ADZUNA_COUNTRY") or d.adzuna_country,
        workbc_base_url=_env("WORKBC_BASE_URL"),
        workbc_api_key=_env("WORKBC_API_KEY"),
        watchlists_path=Path(_env("WATCHLISTS_PATH") or d.watchlists_path),
        output_path=Path(_env("OUTPUT_PATH") or d.output_path),
        state_dir=Path(_env("STATE_DIR") or d.state_dir),
        cache_ttl_hours=_geti("CACHE_TTL_HOURS", d.cache_ttl_hours),
        results_per_page=_geti("RESULTS_PER_PAGE", d.results_per_page),
        max_days_old=max_days if max_days > 0 else None,
        requests_per_second=_getf("REQUESTS_PER_SECOND", d.requests_per_second),
        max_workers=max(1, _geti("MAX_WORKERS", d.max_workers)),
        retry_attempts=max(1, _geti("RETRY_ATTEMPTS", d.retry_attempts)),
        retry_base_delay=_getf("RETRY_BASE_DELAY", d.retry_base_delay),
        market_max_daily_calls=_geti("MARKET_MAX_DAILY_CALLS", d.market_max_daily_calls),
        market_top_n=_geti("MARKET_TOP_N", d.market_top_n),
        market_batch_size=max(1, _geti("MARKET_BATCH_SIZE", d.market_batch_size)),
        market_min_samples=_geti("MARKET_MIN_SAMPLES", d.market_min_samples),
        market_sample_size=_geti("MARKET_SAMPLE_SIZE", d.market_sample_size),
        seen_retention_days=_geti("SEEN_RETENTION_DAYS", d.seen_retention_days),
        snippet_chars=_geti("SNIPPET_CHARS", d.snippet_chars),
    )


def _require_str(obj: dict, key: str, where: str) -> str:
    v = obj.get(key)
    if not isinstance(v, str) or not v.strip():
        raise ConfigError(f"{where}: '{key}' must be a non-empty string")
    return v.strip()


def parse_watchlists(data: object) -> Tuple[List[Watchlist], List[Region]]:
    """Validate the decoded watchlists document."""
    if not isinstance(data, dict):
        raise ConfigError("watchlists config must be a JSON object")
    raw_lists = data.get("watchlists")
    raw_regions = data.get("regions")
    if not isinstance(raw_lists, list) or not raw_lists:
        raise ConfigError("config missing 'watchlists' (non-empty list)")
    if not isinstance(raw_regions, list) or not raw_regions:
        raise ConfigError("config missing 'regions' (non-empty list)")

    watchlists: List[Watchlist] = []
    for i, wl in enumerate(raw_lists):
        where = f"watchlists[{i}]"
        if not isinstance(wl, dict):
            raise ConfigError(f"{where}: expected an object")
        name = _require_str(wl, "name", where)
        synonyms = wl.get("synonyms")
        if not isinstance(synonyms, list) or not synonyms:
            raise ConfigError(f"{where}: 'synonyms' must be a non-empty list")
        cleaned = []
        for s in synonyms:
            if not isinstance(s, str) or not s.strip():
                raise ConfigError(f"{where}: synonyms must be non-empty strings")
            cleaned.append(s.strip())
        watchlists.append(Watchlist(name=name, synonyms=tuple(cleaned)))

    regions: List[Region] = []
    for i, r in enumerate(raw_regions):
        where = f"regions[{i}]"
        if not isinstance(r, dict):
            raise ConfigError(f"{where}: expected an object")
        rtype = str(r.get("type") or "onsite").strip().lower()
        if rtype not in REGION_TYPES:
            raise ConfigError(f"{where}: 'type' must be one of {sorted(REGION_TYPES)}")
        regions.append(Region(name=_require_str(r, "name", where), where=_require_str(r, "where", where), type=rtype))

    return watchlists, regions


def load_watchlists(path: Path) -> Tuple[List[Watchlist], List[Region]]:
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except FileNotFoundError as e:
        raise ConfigError(f"watchlists file not found: {path}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"watchlists file is not valid JSON: {path} ({e})") from e
    return parse_watchlists(data)
