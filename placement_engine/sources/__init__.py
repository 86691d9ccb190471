from .base import JobSearchBase, canonical_url, parse_posted_at
from .jsearch import JSearchSource
from .serpapi import SerpApiSource

from placement_engine.config import Settings
from placement_engine.log import get_logger

log = get_logger(__name__)

__all__ = [
    "JobSearchBase", "JSearchSource", "SerpApiSource",
    "canonical_url", "get_provider", "parse_posted_at",
]


def get_provider(settings: Settings) -> JobSearchBase | None:
    """Pick the configured job-search provider; None when no key is present."""
    choice = settings.provider
    if not choice:
        if settings.serpapi_key:
            choice = "serpapi"
        elif settings.jsearch_key:
            choice = "jsearch"

    if choice == "serpapi" and settings.serpapi_key:
        log.debug("Job provider: SerpAPI (Google Jobs)")
        return SerpApiSource(settings.serpapi_key, settings.timeout)
    if choice == "jsearch" and settings.jsearch_key:
        log.debug("Job provider: JSearch")
        return JSearchSource(settings.jsearch_key, settings.timeout)

    log.warning("No job provider configured (SERPAPI_KEY / JSEARCH_API_KEY) — external search returns nothing")
    return None
