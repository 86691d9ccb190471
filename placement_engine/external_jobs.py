"""
External job search: suggest queries → provider search → dedupe → score → rank → cache.

Per request, at most ``max_queries_per_request`` provider calls are made and
at most ``max_results_scored_per_request`` deduplicated results are scored,
however many raw results the provider hands back.
"""
from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from typing import Any, Iterable

from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger
from placement_engine.models import CandidateProfile, ExternalJob, MatchResult, ScoringBudget
from placement_engine.roles import RoleSuggester
from placement_engine.scorer import MatchScorer
from placement_engine.sources import JobSearchBase, canonical_url
from placement_engine.store import ExternalJobCache

log = get_logger(__name__)


@dataclass
class SearchOutcome:
    jobs: list[MatchResult]
    total: int
    suggested_roles: list[str]
    raw_results: int = 0
    queries_issued: int = 0
    cached: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "jobs": [_flatten(r) for r in self.jobs],
            "total": self.total,
            "suggested_roles": list(self.suggested_roles),
        }


def _flatten(result: MatchResult) -> dict[str, Any]:
    data = result.subject.to_dict()
    data.update(
        match_score=result.match_score,
        matched_skills=list(result.matched_skills),
        missing_skills=list(result.missing_skills),
    )
    return data


def dedupe_by_url(jobs: Iterable[ExternalJob]) -> list[ExternalJob]:
    """First occurrence wins; jobs without a usable URL are dropped."""
    seen: set[str] = set()
    unique: list[ExternalJob] = []
    for job in jobs:
        key = canonical_url(job.external_url)
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(job if key == job.external_url else replace(job, external_url=key))
    return unique


class ExternalJobAggregator:
    def __init__(
        self,
        provider: JobSearchBase | None,
        scorer: MatchScorer,
        roles: RoleSuggester,
        cache: ExternalJobCache,
        budget: ScoringBudget,
    ) -> None:
        self.provider = provider
        self.scorer = scorer
        self.roles = roles
        self.cache = cache
        self.budget = budget

    def build_queries(
        self, profile: CandidateProfile, explicit_query: str | None, auto_suggest: bool,
    ) -> list[str]:
        cap = self.budget.max_queries_per_request
        query = (explicit_query or "").strip()
        if query and not auto_suggest:
            return [query]
        return self.roles.suggest(profile, cap)[:cap]

    def _fetch(self, query: str, location: str | None) -> list[ExternalJob]:
        """One provider call; any failure yields an empty list."""
        if self.provider is None:
            return []
        try:
            jobs = self.provider.search(query, location, limit=self.budget.results_per_query)
        except UpstreamUnavailable as exc:
            log.warning("Provider query=%r unavailable: %s", query, exc)
            return []
        return jobs[: self.budget.results_per_query]

    def search(
        self,
        profile: CandidateProfile,
        explicit_query: str | None = None,
        location: str | None = None,
        limit: int | None = None,
        auto_suggest: bool = False,
    ) -> SearchOutcome:
        limit = self.budget.clamp_limit(limit)
        queries = self.build_queries(profile, explicit_query, auto_suggest)
        queries = queries[: self.budget.max_queries_per_request]
        location = (location or "").strip() or None

        # 1. Search in parallel, merged in query order
        with ThreadPoolExecutor(max_workers=max(1, min(len(queries), self.budget.max_workers))) as pool:
            batches = list(pool.map(lambda q: self._fetch(q, location), queries))
        raw = [job for batch in batches for job in batch]

        # 2. Dedupe, then cap before the expensive step
        unique = dedupe_by_url(raw)
        to_score = unique[: self.budget.max_results_scored_per_request]

        # 3. Score and rank; sorted() is stable so ties keep provider order
        scored = self.scorer.score_many(profile, to_score, self.budget.max_workers)
        ranked = sorted(scored, key=lambda r: -r.match_score)
        top = ranked[:limit]

        # 4. Cache
        cached = 0
        try:
            cached = self.cache.upsert(profile.candidate_id, top)
        except sqlite3.Error as exc:
            log.error("Could not cache external jobs for %s: %s", profile.candidate_id, exc)

        log.info(
            "External search for %s — queries=%d raw=%d unique=%d scored=%d returned=%d",
            profile.candidate_id, len(queries), len(raw), len(unique), len(scored), len(top),
        )
        return SearchOutcome(
            jobs=top,
            total=len(scored),
            suggested_roles=queries,
            raw_results=len(raw),
            queries_issued=len(queries) if self.provider is not None else 0,
            cached=cached,
        )
