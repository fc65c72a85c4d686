# src/jobfeed/io/seen_db.py
from __future__ import annotations

import datetime as dt
import sqlite3
from pathlib import Path
from typing import Dict, Iterable

from jobfeed.models import JobRecord


SCHEMA = """
CREATE TABLE IF NOT EXISTS seen_jobs (
  job_id TEXT PRIMARY KEY,
  canonical_id TEXT NOT NULL,
  first_seen_at TEXT NOT NULL,
  last_seen_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_seen_jobs_canonical_id
  ON seen_jobs(canonical_id);

CREATE INDEX IF NOT EXISTS ix_seen_jobs_last_seen_at
  ON seen_jobs(last_seen_at);
"""


class SeenIndexDB:
    """
    Long-lived first-seen index.

    The previous batch only remembers jobs that were in the last run, so a
    posting that drops out for a run or two would come back as "new". This
    table keeps `first_seen_at` per id and per canonical id until the job has
    been gone for `retention_days`.
    """

    def __init__(self, path: str | Path, retention_days: int = 90):
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self.retention_days = retention_days
        self.conn = sqlite3.connect(str(path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA busy_timeout=3000;")
        self.conn.executescript(SCHEMA)
        self.conn.commit()

    def first_seen_by_id(self, ids: Iterable[str]) -> Dict[str, str]:
        return self._lookup("job_id", ids)

    def first_seen_by_canonical(self, canonical_ids: Iterable[str]) -> Dict[str, str]:
        return self._lookup("canonical_id", canonical_ids)

    def _lookup(self, column: str, keys: Iterable[str]) -> Dict[str, str]:
        keys = sorted({k for k in keys if k})
        out: Dict[str, str] = {}
        # stay well under SQLITE_MAX_VARIABLE_NUMBER
        for i in range(0, len(keys), 500):
            chunk = keys[i:i + 500]
            q = (
                f"SELECT {column} AS k, MIN(first_seen_at) AS first_seen_at FROM seen_jobs "
                f"WHERE {column} IN ({','.join('?' * len(chunk))}) GROUP BY {column}"
            )
            for row in self.conn.execute(q, chunk):
                out[row["k"]] = row["first_seen_at"]
        return out

    def record(self, jobs: Iterable[JobRecord]) -> None:
        """Upsert jobs; first_seen_at only ever moves earlier."""
        with self.conn:
            self.conn.executemany(
                """
                INSERT INTO seen_jobs (job_id, canonical_id, first_seen_at, last_seen_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(job_id) DO UPDATE SET
                  canonical_id = excluded.canonical_id,
                  first_seen_at = MIN(seen_jobs.first_seen_at, excluded.first_seen_at),
                  last_seen_at = MAX(seen_jobs.last_seen_at, excluded.last_seen_at)
                """,
                [
                    (j.id, j.canonical_id, j.first_seen_at, j.last_seen_at)
                    for j in jobs
                    if j.id and j.first_seen_at and j.last_seen_at
                ],
            )

    def prune(self, now: dt.datetime) -> int:
        cutoff = (now - dt.timedelta(days=self.retention_days)).astimezone(dt.timezone.utc)
        cutoff_s = cutoff.isoformat(timespec="seconds").replace("+00:00", "Z")
        with self.conn:
            cur = self.conn.execute("DELETE FROM seen_jobs WHERE last_seen_at < ?", (cutoff_s,))
        return cur.rowcount

    def close(self) -> None:
        self.conn.close()
