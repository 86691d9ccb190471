"""JSearch API (RapidAPI) — aggregated job listings."""
from __future__ import annotations

import requests

from placement_engine.deadline import call_with_deadline
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger
from placement_engine.models import ExternalJob
from placement_engine.sources.base import JobSearchBase, parse_posted_at

log = get_logger(__name__)


def _salary(hit: dict) -> str:
    lo, hi = hit.get("job_min_salary"), hit.get("job_max_salary")
    if lo and hi:
        return f"{lo}-{hi}"
    return str(lo or hi or "")


def _experience(hit: dict) -> str:
    req = hit.get("job_required_experience")
    if not isinstance(req, dict):
        return ""
    if req.get("no_experience_required"):
        return "No experience required"
    months = req.get("required_experience_in_months")
    if months:
        return f"{months} months"
    return ""


class JSearchSource(JobSearchBase):
    BASE = "https://jsearch.p.rapidapi.com"
    name = "jsearch"

    def __init__(self, api_key: str, timeout: float) -> None:
        self.api_key = api_key
        self.timeout = timeout

    def _to_job(self, hit: dict, location: str | None) -> ExternalJob:
        where = ", ".join(p for p in (hit.get("job_city"), hit.get("job_country")) if p)
        return ExternalJob(
            external_url=hit.get("job_apply_link") or hit.get("job_google_link") or "",
            title=hit.get("job_title") or "Job Title",
            company=hit.get("employer_name") or "Company",
            description=hit.get("job_description") or "",
            location=where or location or "Location not specified",
            source=self.name,
            posted_at=parse_posted_at(
                hit.get("job_posted_at_datetime_utc") or hit.get("job_posted_at_timestamp")
            ),
            job_type=hit.get("job_employment_type") or "Full-time",
            salary_range=_salary(hit),
            external_job_id=hit.get("job_id") or "",
            experience_level=_experience(hit),
        )

    def search(self, query: str, location: str | None, limit: int) -> list[ExternalJob]:
        q = f"{query} in {location}" if location else query

        def fetch() -> object:
            r = requests.get(
                f"{self.BASE}/search",
                params={"query": q, "num_pages": "1"},
                headers={
                    "X-RapidAPI-Key": self.api_key,
                    "X-RapidAPI-Host": "jsearch.p.rapidapi.com",
                },
                timeout=self.timeout,
            )
            if r.status_code == 403:
                raise UpstreamUnavailable("JSearch 403: API key not subscribed")
            r.raise_for_status()
            return r.json()

        try:
            data = call_with_deadline(fetch, self.timeout, f"JSearch query={q!r}")
        except (requests.RequestException, ValueError) as exc:
            raise UpstreamUnavailable(f"JSearch query={q!r} failed: {exc}") from exc

        hits = data.get("data") if isinstance(data, dict) else None
        if not isinstance(hits, list):
            hits = []
        jobs = [self._to_job(hit, location) for hit in hits[:limit] if isinstance(hit, dict)]
        log.debug("JSearch query=%r returned %d jobs", q, len(jobs))
        return jobs
