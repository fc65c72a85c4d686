# src/jobfeed/io/cache_db.py
from __future__ import annotations

import datetime as dt
import json
import sqlite3
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from jobfeed.models import CacheEntry, JobRecord, RefreshRequest
from jobfeed.pipeline.normalize import iso_z, parse_iso, utc_now
from jobfeed.pipeline.search_key import SearchKey, parse_search_key


IN_CHUNK = 500

SCHEMA = """
CREATE TABLE IF NOT EXISTS job_cache (
  search_key TEXT PRIMARY KEY,
  search_term TEXT NOT NULL,
  location TEXT NOT NULL,
  jobs TEXT NOT NULL,
  fetched_at TEXT NOT NULL,
  expires_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_job_cache_expires_at
  ON job_cache(expires_at);

CREATE TABLE IF NOT EXISTS job_search_queue (
  search_key TEXT PRIMARY KEY,
  search_term TEXT NOT NULL,
  location TEXT NOT NULL,
  requested_by TEXT NOT NULL,
  priority INTEGER NOT NULL DEFAULT 1,
  status TEXT NOT NULL DEFAULT 'pending',
  requested_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_job_search_queue_status
  ON job_search_queue(status);
"""


def _as_key(k: SearchKey | str) -> SearchKey:
    return k if isinstance(k, SearchKey) else parse_search_key(k)


class SearchCacheDB:
    """
    Result sets keyed by normalized (role, location), plus the refresh queue.

    A miss or an expired entry is a normal outcome (get() returns None), not an
    exception. Read paths never fetch; they enqueue a RefreshRequest and a
    worker drains the queue later.
    """

    def __init__(
        self,
        path: str | Path,
        ttl: dt.timedelta = dt.timedelta(hours=24),
        clock: Callable[[], dt.datetime] = utc_now,
    ):
        if ttl <= dt.timedelta(0):
            raise ValueError("cache ttl must be positive")
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.ttl = ttl
        self.clock = clock
        self._lock = threading.Lock()
        self.conn = sqlite3.connect(str(path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        try:
            self.conn.execute("PRAGMA journal_mode=WAL;")
            self.conn.execute("PRAGMA synchronous=NORMAL;")
            self.conn.execute("PRAGMA busy_timeout=3000;")
        except sqlite3.DatabaseError:
            pass
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    # ---- cache ---------------------------------------------------------------

    def put(self, key: SearchKey | str, jobs: Iterable[JobRecord]) -> CacheEntry:
        """Overwrite the entry for `key` with a fresh TTL window."""
        sk = _as_key(key)
        now = self.clock()
        entry = CacheEntry(
            search_key=sk.key,
            search_term=sk.search_term,
            location=sk.location_display,
            jobs=list(jobs),
            fetched_at=iso_z(now),
            expires_at=iso_z(now + self.ttl),
        )
        payload = json.dumps([j.to_dict() for j in entry.jobs], ensure_ascii=False)
        with self._lock, self.conn:
            self.conn.execute(
                """
                INSERT INTO job_cache (search_key, search_term, location, jobs, fetched_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(search_key) DO UPDATE SET
                  search_term = excluded.search_term,
                  location = excluded.location,
                  jobs = excluded.jobs,
                  fetched_at = excluded.fetched_at,
                  expires_at = excluded.expires_at
                """,
                (entry.search_key, entry.search_term, entry.location, payload, entry.fetched_at, entry.expires_at),
            )
        logger.debug("Cached {} jobs under {!r} until {}", len(entry.jobs), entry.search_key, entry.expires_at)
        return entry

    def _row_to_entry(self, row: sqlite3.Row) -> CacheEntry:
        try:
            raw_jobs = json.loads(row["jobs"])
        except ValueError:
            raw_jobs = []
        return CacheEntry(
            search_key=row["search_key"],
            search_term=row["search_term"],
            location=row["location"],
            jobs=[JobRecord.from_dict(j) for j in raw_jobs if isinstance(j, dict)],
            fetched_at=row["fetched_at"],
            expires_at=row["expires_at"],
        )

    def _is_fresh(self, expires_at: str, now: dt.datetime) -> bool:
        exp = parse_iso(expires_at)
        return exp is not None and now < exp

    def get_entry(self, key: SearchKey | str) -> Optional[CacheEntry]:
        """Raw entry regardless of expiry (None only when never populated)."""
        sk = _as_key(key)
        with self._lock:
            row = self.conn.execute("SELECT * FROM job_cache WHERE search_key = ?", (sk.key,)).fetchone()
        return self._row_to_entry(row) if row else None

    def get(self, key: SearchKey | str) -> Optional[List[JobRecord]]:
        """Cached jobs when fresh; None signals a stale or missing entry."""
        entry = self.get_entry(key)
        if entry is None or not self._is_fresh(entry.expires_at, self.clock()):
            return None
        return entry.jobs

    def _select_in(self, columns: str, keys: List[str]) -> List[sqlite3.Row]:
        rows: List[sqlite3.Row] = []
        # stay well under SQLITE_MAX_VARIABLE_NUMBER
        for i in range(0, len(keys), IN_CHUNK):
            chunk = keys[i:i + IN_CHUNK]
            q = f"SELECT {columns} FROM job_cache WHERE search_key IN ({','.join('?' * len(chunk))})"
            with self._lock:
                rows.extend(self.conn.execute(q, chunk).fetchall())
        return rows

    def get_many(self, keys: Iterable[SearchKey | str]) -> Dict[str, CacheEntry]:
        """Fresh entries only, keyed by normalized search key."""
        norm = sorted({_as_key(k).key for k in keys})
        if not norm:
            return {}
        now = self.clock()
        return {
            row["search_key"]: self._row_to_entry(row)
            for row in self._select_in("*", norm)
            if self._is_fresh(row["expires_at"], now)
        }

    def get_stale_searches(self, keys: Iterable[SearchKey | str]) -> List[SearchKey]:
        """Requested keys that are absent or expired, in request order, without duplicates."""
        wanted: Dict[str, SearchKey] = {}
        for k in keys:
            sk = _as_key(k)
            wanted.setdefault(sk.key, sk)
        if not wanted:
            return []
        now = self.clock()
        rows = self._select_in("search_key, expires_at", list(wanted))
        fresh = {row["search_key"] for row in rows if self._is_fresh(row["expires_at"], now)}
        return [sk for k, sk in wanted.items() if k not in fresh]

    # ---- refresh queue -------------------------------------------------------

    def request_refresh(self, keys: Iterable[SearchKey | str], requester: str, priority: int = 1) -> int:
        """
        Upsert one pending request per key. Re-requesting merges the requester
        into the existing set instead of adding a second row.
        """
        now_s = iso_z(self.clock())
        count = 0
        with self._lock, self.conn:
            for k in keys:
                sk = _as_key(k)
                row = self.conn.execute(
                    "SELECT requested_by, priority FROM job_search_queue WHERE search_key = ?", (sk.key,)
                ).fetchone()
                if row is None:
                    self.conn.execute(
                        """
                        INSERT INTO job_search_queue
                          (search_key, search_term, location, requested_by, priority, status, requested_at)
                        VALUES (?, ?, ?, ?, ?, 'pending', ?)
                        """,
                        (sk.key, sk.search_term, sk.location_display, json.dumps([requester] if requester else []), priority, now_s),
                    )
                else:
                    requesters = json.loads(row["requested_by"] or "[]")
                    if requester and requester not in requesters:
                        requesters.append(requester)
                    self.conn.execute(
                        """
                        UPDATE job_search_queue
                        SET requested_by = ?, priority = ?, status = 'pending', requested_at = ?
                        WHERE search_key = ?
                        """,
                        (json.dumps(requesters), max(priority, row["priority"]), now_s, sk.key),
                    )
                count += 1
        return count

    def _row_to_request(self, row: sqlite3.Row) -> RefreshRequest:
        return RefreshRequest(
            search_key=row["search_key"],
            search_term=row["search_term"],
            location=row["location"],
            requested_by=tuple(json.loads(row["requested_by"] or "[]")),
            priority=row["priority"],
            status=row["status"],
            requested_at=row["requested_at"],
        )

    def get_request(self, key: SearchKey | str) -> Optional[RefreshRequest]:
        with self._lock:
            row = self.conn.execute(
                "SELECT * FROM job_search_queue WHERE search_key = ?", (_as_key(key).key,)
            ).fetchone()
        return self._row_to_request(row) if row else None

    def pending_refreshes(self, limit: Optional[int] = None) -> List[RefreshRequest]:
        q = "SELECT * FROM job_search_queue WHERE status = 'pending' ORDER BY priority DESC, requested_at ASC"
        params: tuple = ()
        if limit is not None:
            q += " LIMIT ?"
            params = (limit,)
        with self._lock:
            rows = self.conn.execute(q, params).fetchall()
        return [self._row_to_request(r) for r in rows]

    def mark_refreshed(self, key: SearchKey | str) -> None:
        with self._lock, self.conn:
            self.conn.execute(
                "UPDATE job_search_queue SET status = 'done' WHERE search_key = ?", (_as_key(key).key,)
            )

    def close(self) -> None:
        self.conn.close()
