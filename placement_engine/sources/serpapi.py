"""SerpAPI Google Jobs search."""
from __future__ import annotations

import requests

from placement_engine.deadline import call_with_deadline
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger
from placement_engine.models import ExternalJob
from placement_engine.sources.base import JobSearchBase, parse_posted_at

log = get_logger(__name__)

SERPAPI_URL = "https://serpapi.com/search"


def _best_apply_link(hit: dict) -> str:
    for opts_key in ("apply_options", "related_links"):
        opts = hit.get(opts_key, [])
        if opts and isinstance(opts, list):
            for opt in opts:
                link = opt.get("link", "") if isinstance(opt, dict) else ""
                if link:
                    return link
    return hit.get("share_link", "") or hit.get("link", "")


class SerpApiSource(JobSearchBase):
    name = "google_jobs"

    def __init__(self, api_key: str, timeout: float) -> None:
        self.api_key = api_key
        self.timeout = timeout

    def _to_job(self, hit: dict, location: str | None) -> ExternalJob:
        ext = hit.get("detected_extensions") or {}
        return ExternalJob(
            external_url=_best_apply_link(hit),
            title=hit.get("title") or "Job Title",
            company=hit.get("company_name") or "Company",
            description=hit.get("description") or "",
            location=hit.get("location") or location or "Location not specified",
            source=self.name,
            posted_at=parse_posted_at(ext.get("posted_at")),
            job_type=hit.get("schedule_type") or ext.get("schedule_type") or "Full-time",
            salary_range=ext.get("salary") or hit.get("salary") or "",
            external_job_id=hit.get("job_id") or "",
            experience_level=ext.get("work_type") or hit.get("work_type") or "",
        )

    def search(self, query: str, location: str | None, limit: int) -> list[ExternalJob]:
        params = {
            "engine": "google_jobs",
            "q": query,
            "api_key": self.api_key,
        }
        if location:
            params["location"] = location

        def fetch() -> object:
            r = requests.get(SERPAPI_URL, params=params, timeout=self.timeout)
            r.raise_for_status()
            return r.json()

        try:
            data = call_with_deadline(fetch, self.timeout, f"SerpAPI query={query!r}")
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamUnavailable(f"SerpAPI query={query!r} failed: {exc}") from exc

        hits = data.get("jobs_results") if isinstance(data, dict) else None
        if not isinstance(hits, list):
            hits = []
        jobs = [self._to_job(hit, location) for hit in hits[:limit] if isinstance(hit, dict)]
        log.debug("SerpAPI query=%r returned %d jobs", query, len(jobs))
        return jobs
