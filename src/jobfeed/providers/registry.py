# src/jobfeed/providers/registry.py
from __future__ import annotations

from typing import List, Optional

import httpx
from loguru import logger

from jobfeed.config import Settings
from jobfeed.providers.adzuna import AdzunaProvider
from jobfeed.providers.base import JobProvider
from jobfeed.providers.workbc import WorkBCProvider


def build_providers(settings: Settings, client: Optional[httpx.Client] = None) -> List[JobProvider]:
    """
    The provider list for one process, in a fixed order (Adzuna first).
    Providers without credentials are skipped.
    """
    providers: List[JobProvider] = []
    if settings.has_adzuna:
        providers.append(
            AdzunaProvider(
                settings.adzuna_app_id,
                settings.adzuna_app_key,
                country=settings.adzuna_country,
                max_days_old=settings.max_days_old,
                snippet_chars=settings.snippet_chars,
                client=client,
            )
        )
    else:
        logger.warning("ADZUNA_APP_ID/ADZUNA_APP_KEY not set; Adzuna disabled")
    if settings.has_workbc:
        providers.append(
            WorkBCProvider(
                settings.workbc_base_url,
                settings.workbc_api_key,
                snippet_chars=settings.snippet_chars,
                client=client,
            )
        )
    return providers


def market_provider(providers: List[JobProvider]) -> Optional[AdzunaProvider]:
    """Market samples come from Adzuna's salary-sorted search."""
    for p in providers:
        if isinstance(p, AdzunaProvider):
            return p
    return None
