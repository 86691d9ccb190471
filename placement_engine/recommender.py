"""Rank visible internal postings for a candidate."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from placement_engine.exceptions import ValidationError
from placement_engine.log import get_logger
from placement_engine.models import CandidateProfile, JobPosting, MatchResult, ScoringBudget
from placement_engine.scorer import MatchScorer, normalize
from placement_engine.store import PostingCatalog
from placement_engine.visibility import filter_visible

log = get_logger(__name__)


@dataclass
class RecommendationFilters:
    role: str | None = None
    location: str | None = None
    skills: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: dict[str, Any] | None) -> RecommendationFilters | None:
        if not raw:
            return None
        if not isinstance(raw, dict):
            raise ValidationError("filters must be an object with role, location and/or skills")
        skills = raw.get("skills") or []
        if isinstance(skills, str):
            skills = skills.split(",")
        if not isinstance(skills, (list, tuple)):
            raise ValidationError("filters.skills must be a list of strings")
        return cls(
            role=(str(raw.get("role") or "").strip() or None),
            location=(str(raw.get("location") or "").strip() or None),
            skills=[str(s).strip() for s in skills if str(s).strip()],
        )

    def matches(self, posting: JobPosting) -> bool:
        if self.role and normalize(self.role) not in normalize(posting.title):
            return False
        if self.location and normalize(self.location) not in normalize(posting.location):
            return False
        if self.skills:
            required = {normalize(s) for s in posting.required_skills}
            if not all(normalize(s) in required for s in self.skills):
                return False
        return True


def _created_key(posting: JobPosting) -> float:
    return posting.created_at.timestamp() if posting.created_at else float("-inf")


def newest_first(postings: list[JobPosting]) -> list[JobPosting]:
    by_id = sorted(postings, key=lambda p: p.id)
    return sorted(by_id, key=_created_key, reverse=True)


class RecommendationOrchestrator:
    def __init__(self, catalog: PostingCatalog, scorer: MatchScorer, budget: ScoringBudget) -> None:
        self.catalog = catalog
        self.scorer = scorer
        self.budget = budget

    def candidates_for(
        self, profile: CandidateProfile, filters: RecommendationFilters | None = None,
    ) -> list[JobPosting]:
        """Visible postings, filtered, newest first, capped to the scoring budget."""
        catalog = self.catalog.all_postings()
        postings = filter_visible(profile, catalog)
        if filters is not None:
            postings = [p for p in postings if filters.matches(p)]
        ordered = newest_first(postings)
        capped = ordered[: self.budget.max_postings_scored_per_request]
        log.debug(
            "Catalog %d → visible/filtered %d → scoring %d for %s",
            len(catalog), len(postings), len(capped), profile.candidate_id,
        )
        return capped

    def recommend(
        self, profile: CandidateProfile, filters: RecommendationFilters | None = None,
    ) -> list[MatchResult]:
        postings = self.candidates_for(profile, filters)
        scored = self.scorer.score_many(profile, postings, self.budget.max_workers)
        # stable: equal scores stay newest first
        ranked = sorted(scored, key=lambda r: -r.match_score)
        top = ranked[: self.budget.max_recommendations]
        log.info(
            "Recommended %d of %d visible posting(s) for %s",
            len(top), len(postings), profile.candidate_id,
        )
        return top
