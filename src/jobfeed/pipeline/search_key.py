# src/jobfeed/pipeline/search_key.py
"""
Normalized (role, location) keys shared by the search cache, the refresh
queue, and the market-sample cache.

"Senior Backend Developer" / "backend engineer" and "Toronto, ON, Canada" /
"toronto, on" land on the same key so overlapping searches share one entry.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_SENIORITY = re.compile(r"\b(senior|sr|junior|jr)\b\.?", re.I)
_ROLE_WORDS = re.compile(r"\b(developer|engineer|programmer)s?\b", re.I)
_COUNTRY = re.compile(r"\b(canada|ca)\b", re.I)
_WS = re.compile(r"\s+")


def _squash(s: str) -> str:
    s = _WS.sub(" ", s).strip()
    return s.strip(" ,;/-")


def normalize_role(role: str) -> str:
    r = (role or "").lower()
    r = _SENIORITY.sub(" ", r)
    r = _ROLE_WORDS.sub("dev", r)
    return _squash(r)


def normalize_location(location: str) -> str:
    loc = _COUNTRY.sub(" ", (location or "").lower())
    loc = re.sub(r"\s*,\s*(,\s*)*", ", ", loc)
    return _squash(loc)


@dataclass(frozen=True)
class SearchKey:
    role: str
    location: str
    search_term: str = ""
    location_display: str = ""

    @property
    def key(self) -> str:
        return f"{self.role}|{self.location}"

    def __str__(self) -> str:
        return self.key


def make_search_key(role: str, location: str) -> SearchKey:
    return SearchKey(
        role=normalize_role(role),
        location=normalize_location(location),
        search_term=(role or "").strip(),
        location_display=(location or "").strip(),
    )


def parse_search_key(key: str) -> SearchKey:
    """Inverse of SearchKey.key for "role|location" strings (already normalized or not)."""
    role, _, location = key.partition("|")
    return make_search_key(role, location)
