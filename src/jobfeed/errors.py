# src/jobfeed/errors.py
"""
Exceptions raised by the ingestion pipeline.

Only ConfigError and PersistenceError are meant to stop a run; the others are
caught close to where they happen and turned into empty results or a
cached/None analysis.
"""

from __future__ import annotations
from typing import Optional


class JobFeedError(Exception):
    """Base class for everything this package raises on purpose."""


class AdapterFetchError(JobFeedError):
    """A single provider call failed (network, HTTP status, or unusable body)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "",
        role: str = "",
        location: str = "",
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.role = role
        self.location = location
        self.status_code = status_code

    def __str__(self) -> str:
        ctx = ", ".join(
            f"{k}={v!r}"
            for k, v in (("provider", self.provider), ("role", self.role), ("location", self.location))
            if v
        )
        base = super().__str__()
        return f"{base} ({ctx})" if ctx else base


class ConfigError(JobFeedError):
    """Malformed watchlist/region input or unusable settings."""


class QuotaExhausted(JobFeedError):
    """The daily market-analysis call ceiling has been reached."""

    def __init__(self, day: str, limit: int):
        super().__init__(f"daily market call limit reached ({limit}) for {day}")
        self.day = day
        self.limit = limit


class PersistenceError(JobFeedError):
    """The output batch could not be written."""
