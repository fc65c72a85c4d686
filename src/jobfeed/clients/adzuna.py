# src/jobfeed/clients/adzuna.py

"""
Plain-function client for Adzuna's Jobs API.

- Keep all URL/param details here so providers never build Adzuna URLs.
- Return raw JSON from Adzuna; normalization lives in pipeline.normalize.
- No retries in here: the orchestrator decides how often a cell is retried.
"""

from __future__ import annotations
from typing import Dict, List, Optional

import httpx

from jobfeed.clients.http import get_json
from jobfeed.errors import AdapterFetchError


# ---- Internal helpers ---------------------------------------------------------

def _base_url(country: str, page: int) -> str:
    """
    Build the Adzuna search URL for a country + page number.
    Adzuna paginates with integer pages: /search/1, /search/2, ...
    """
    return f"https://api.adzuna.com/v1/api/jobs/{country}/search/{page}"


# ---- Public API ---------------------------------------------------------------

def adzuna_search(
    app_id: str,
    app_key: str,
    query: str,
    *,
    country: str = "ca",
    page: int = 1,
    results_per_page: int = 50,
    where: Optional[str] = None,
    max_days_old: Optional[int] = None,
    salary_min: Optional[int] = None,
    sort_by: Optional[str] = None,
    client: Optional[httpx.Client] = None,
) -> Dict:
    """
    Fetch ONE page of search results and return the raw JSON (dict).

    Raises AdapterFetchError on transport/HTTP/JSON failure, or when the body
    has no `results` array (Adzuna reports errors as 200s with a message
    sometimes).
    """
    url = _base_url(country=country, page=page)

    params: Dict[str, str] = {
        "app_id": app_id,
        "app_key": app_key,
        "what": query,
        "results_per_page": str(results_per_page),
        "content-type": "application/json",
    }
    if where:
        params["where"] = where
    if max_days_old:
        params["max_days_old"] = str(max_days_old)
    if salary_min:
        params["salary_min"] = str(salary_min)
    if sort_by:
        params["sort_by"] = sort_by

    data = get_json(url, params, client=client, provider="adzuna")
    if not isinstance(data, dict) or not isinstance(data.get("results"), list):
        message = data.get("message") if isinstance(data, dict) else None
        raise AdapterFetchError(f"Adzuna API error: {message or 'missing results'}", provider="adzuna")
    return data


def adzuna_results(
    app_id: str,
    app_key: str,
    query: str,
    **kwargs,
) -> List[Dict]:
    """Just the `results` list of one page."""
    return adzuna_search(app_id, app_key, query, **kwargs)["results"]
