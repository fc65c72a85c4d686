# src/jobfeed/io/batch.py
"""
The persisted batch: one JSON document replaced wholesale on every run.

    {"generated_at": "...Z", "total": 123, "jobs": [JobRecord, ...]}

Readers (UI, email digest) must never see a half-written file, so writes go to
a temp file in the same directory and are swapped in with os.replace.
"""

from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

from jobfeed.errors import PersistenceError
from jobfeed.models import JobRecord


@dataclass
class Batch:
    generated_at: Optional[str] = None
    jobs: List[JobRecord] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.jobs)

    def to_dict(self) -> dict:
        return {
            "generated_at": self.generated_at,
            "total": self.total,
            "jobs": [j.to_dict() for j in self.jobs],
        }


def read_batch(path: Path) -> Batch:
    """
    Load a previous batch. Missing or unreadable files are a cold start
    (empty batch), never an error.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        return Batch()
    except (OSError, ValueError) as e:
        logger.warning("Previous batch {} unreadable ({}); treating as empty", path, e)
        return Batch()

    if not isinstance(data, dict) or not isinstance(data.get("jobs"), list):
        logger.warning("Previous batch {} has no 'jobs' list; treating as empty", path)
        return Batch()

    jobs: List[JobRecord] = []
    for raw in data["jobs"]:
        if not isinstance(raw, dict) or not raw.get("id"):
            continue
        try:
            jobs.append(JobRecord.from_dict(raw))
        except TypeError as e:
            logger.debug("Skipping malformed job in {}: {}", path, e)
    generated_at = data.get("generated_at")
    return Batch(generated_at=generated_at if isinstance(generated_at, str) else None, jobs=jobs)


def write_batch(path: Path, batch: Batch) -> Path:
    """Atomically replace `path` with `batch`. Raises PersistenceError."""
    path = Path(path)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(batch.to_dict(), f, indent=2, ensure_ascii=False)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except (OSError, TypeError, ValueError) as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PersistenceError(f"could not write batch to {path}: {e}") from e
    logger.info("Wrote {} with {} jobs", path, batch.total)
    return path
