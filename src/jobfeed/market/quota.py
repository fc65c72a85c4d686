# src/jobfeed/market/quota.py
from __future__ import annotations

import datetime as dt
from typing import Callable, Protocol


class QuotaStore(Protocol):
    """Durable per-day counter. increment() must be atomic and return the new count."""

    def increment(self, day: str) -> int:
        ...

    def get(self, day: str) -> int:
        ...


def local_day(clock: Callable[[], dt.datetime]) -> str:
    """Quota days roll over at local midnight."""
    return clock().astimezone().date().isoformat()
