# src/jobfeed/io/quota_db.py
from __future__ import annotations

import sqlite3
import threading
from pathlib import Path


SCHEMA = """
CREATE TABLE IF NOT EXISTS market_calls (
  day TEXT PRIMARY KEY,
  count INTEGER NOT NULL DEFAULT 0
);
"""


class SqliteQuotaStore:
    """
    Daily call counter that survives restarts.

    increment() is one BEGIN IMMEDIATE transaction, so two processes sharing
    the file can't lose an update between the read and the write.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        if str(path) != ":memory:":
            self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        # autocommit mode; transactions are opened explicitly below
        self.conn = sqlite3.connect(str(path), isolation_level=None, check_same_thread=False)
        self.conn.execute("PRAGMA busy_timeout=5000;")
        self.conn.executescript(SCHEMA)

    def increment(self, day: str) -> int:
        with self._lock:
            self.conn.execute("BEGIN IMMEDIATE")
            try:
                self.conn.execute(
                    """
                    INSERT INTO market_calls (day, count) VALUES (?, 1)
                    ON CONFLICT(day) DO UPDATE SET count = count + 1
                    """,
                    (day,),
                )
                row = self.conn.execute("SELECT count FROM market_calls WHERE day = ?", (day,)).fetchone()
                self.conn.execute("COMMIT")
            except sqlite3.Error:
                self.conn.execute("ROLLBACK")
                raise
        return int(row[0])

    def get(self, day: str) -> int:
        with self._lock:
            row = self.conn.execute("SELECT count FROM market_calls WHERE day = ?", (day,)).fetchone()
        return int(row[0]) if row else 0

    def close(self) -> None:
        self.conn.close()
