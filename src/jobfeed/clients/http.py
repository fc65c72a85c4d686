# src/jobfeed/clients/http.py
"""
The one place that turns an httpx GET into a JSON dict.

Every failure mode (network error, non-2xx, body that isn't JSON) comes out as
AdapterFetchError so callers have a single exception to retry on.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from jobfeed.errors import AdapterFetchError

DEFAULT_TIMEOUT = 20


def default_headers() -> Dict[str, str]:
    """Minimal, explicit headers. (Some APIs behave better when a UA is set.)"""
    return {"User-Agent": "jobfeed/0.1 (+https://example.com)"}


def get_json(
    url: str,
    params: Optional[Dict[str, str]] = None,
    *,
    headers: Optional[Dict[str, str]] = None,
    client: Optional[httpx.Client] = None,
    timeout: float = DEFAULT_TIMEOUT,
    provider: str = "",
) -> Any:
    """
    One HTTP GET. Pass `client` to reuse a connection pool (or a MockTransport
    in tests); otherwise a short-lived client is opened for the call.
    """
    merged = {**default_headers(), **(headers or {})}
    try:
        if client is None:
            with httpx.Client(timeout=timeout) as c:
                resp = c.get(url, params=params, headers=merged)
        else:
            resp = client.get(url, params=params, headers=merged)
        resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise AdapterFetchError(
            f"{provider or 'provider'} HTTP {e.response.status_code}",
            provider=provider,
            status_code=e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        raise AdapterFetchError(f"{provider or 'provider'} request failed: {e}", provider=provider) from e

    try:
        return resp.json()
    except ValueError as e:
        raise AdapterFetchError(f"{provider or 'provider'} returned malformed JSON", provider=provider) from e
