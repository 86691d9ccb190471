"""
Engine entry points consumed by the portal.

    recompute_career_score: signals → stored career score
    get_recommended_jobs  : catalog → visibility → oracle scoring → ranked postings
    search_external_jobs  : role queries → provider → dedupe → scoring → cached ranking
    score_match           : one candidate × one posting or cached external job

Caller mistakes (missing ids, unknown subjects) raise ValidationError and
missing credentials raise ConfigurationError; oracle and provider failures
never surface here.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any

from placement_engine.career_score import CareerScoreAggregator
from placement_engine.config import Settings, load_settings
from placement_engine.exceptions import CandidateNotFound, ValidationError
from placement_engine.external_jobs import ExternalJobAggregator
from placement_engine.log import get_logger
from placement_engine.models import CandidateProfile, MatchResult
from placement_engine.oracle import Oracle
from placement_engine.recommender import RecommendationFilters, RecommendationOrchestrator
from placement_engine.roles import RoleSuggester
from placement_engine.scorer import MatchScorer
from placement_engine.sources import JobSearchBase, canonical_url, get_provider
from placement_engine.store import (
    CandidateStore,
    CareerScoreStore,
    Database,
    ExternalJobCache,
    PostingCatalog,
    ScoreInputStore,
)
from placement_engine.visibility import visible

log = get_logger(__name__)

SIGNALS: frozenset[str] = frozenset({"resume", "social", "skill_path", "application"})


def _require_id(value: Any, name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"Missing {name}")
    return str(value).strip()


class Engine:
    def __init__(
        self,
        settings: Settings,
        oracle: Oracle | None = None,
        provider: JobSearchBase | None = None,
        db: Database | None = None,
    ) -> None:
        self.settings = settings
        self.db = db or Database(settings.db_path)
        self.oracle = oracle or Oracle(settings)
        self.candidates = CandidateStore(self.db)
        self.catalog = PostingCatalog(self.db)
        self.cache = ExternalJobCache(self.db)

        self.aggregator = CareerScoreAggregator(
            ScoreInputStore(self.db), CareerScoreStore(self.db), settings.weights,
        )
        self.scorer = MatchScorer(self.oracle, settings.scoring)
        self.recommender = RecommendationOrchestrator(self.catalog, self.scorer, settings.budget)
        self.external = ExternalJobAggregator(
            provider if provider is not None else get_provider(settings),
            self.scorer,
            RoleSuggester(self.oracle, settings.scoring),
            self.cache,
            settings.budget,
        )

    def _profile(self, candidate_id: str) -> CandidateProfile:
        profile = self.candidates.load_profile(candidate_id)
        if profile is None:
            raise CandidateNotFound(f"Unknown candidate: {candidate_id}")
        return profile

    def recompute_career_score(self, candidate_id: str) -> dict[str, Any]:
        candidate_id = _require_id(candidate_id, "candidate_id")
        if not self.candidates.exists(candidate_id):
            raise CandidateNotFound(f"Unknown candidate: {candidate_id}")
        return self.aggregator.recompute(candidate_id).to_dict()

    def notify_signal_changed(self, candidate_id: str, signal: str) -> dict[str, Any]:
        """Call after a producer updates one of the four signals."""
        if signal not in SIGNALS:
            raise ValidationError(f"Unknown signal {signal!r}; expected one of {sorted(SIGNALS)}")
        log.debug("Signal %s changed for %s", signal, candidate_id)
        return self.recompute_career_score(candidate_id)

    def get_recommended_jobs(
        self, candidate_id: str, filters: dict[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        candidate_id = _require_id(candidate_id, "candidate_id")
        parsed = RecommendationFilters.from_dict(filters)
        self.settings.require_oracle()
        profile = self._profile(candidate_id)
        return [r.to_dict() for r in self.recommender.recommend(profile, parsed)]

    def search_external_jobs(
        self,
        candidate_id: str,
        query: str | None = None,
        location: str | None = None,
        limit: int | None = None,
        auto_suggest: bool = False,
    ) -> dict[str, Any]:
        candidate_id = _require_id(candidate_id, "candidate_id")
        if limit is not None:
            try:
                limit = int(limit)
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"limit must be an integer, got {limit!r}") from exc
        profile = self._profile(candidate_id)
        outcome = self.external.search(
            profile, explicit_query=query, location=location, limit=limit, auto_suggest=auto_suggest,
        )
        return outcome.to_dict()

    def score_match(self, candidate_id: str, subject_id: str) -> dict[str, Any]:
        """Score one posting id, or one external URL previously returned to this candidate."""
        candidate_id = _require_id(candidate_id, "candidate_id")
        subject_id = _require_id(subject_id, "subject_id")
        self.settings.require_oracle()
        profile = self._profile(candidate_id)

        posting = self.catalog.get(subject_id)
        if posting is not None:
            if not visible(profile, posting):
                raise ValidationError(f"Posting {subject_id} is not available to {candidate_id}")
            return self.scorer.score(profile, posting).to_dict()

        job = self.cache.get_job(candidate_id, canonical_url(subject_id))
        if job is None:
            raise ValidationError(f"Unknown subject: {subject_id}")
        result: MatchResult = self.scorer.score(profile, job)
        self.cache.upsert(candidate_id, [result])
        return result.to_dict()

    def get_feed(
        self,
        candidate_id: str,
        filters: dict[str, Any] | None = None,
        query: str | None = None,
        location: str | None = None,
        limit: int | None = None,
    ) -> dict[str, Any]:
        """Internal recommendations and external search side by side, run concurrently."""
        with ThreadPoolExecutor(max_workers=2) as pool:
            internal = pool.submit(self.get_recommended_jobs, candidate_id, filters)
            external = pool.submit(
                self.search_external_jobs, candidate_id, query, location, limit,
            )
            return {"recommended": internal.result(), "external": external.result()}


def build_engine(settings: Settings | None = None) -> Engine:
    return Engine(settings or load_settings())
