"""Data models for candidates, postings, external jobs and match results."""
from __future__ import annotations

import enum
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Union

from placement_engine.exceptions import ConfigurationError


class PostingStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    REJECTED = "rejected"
    CLOSED = "closed"


class PosterTrust(str, enum.Enum):
    VERIFIED = "verified"
    UNVERIFIED = "unverified"


@dataclass(frozen=True)
class CareerWeights:
    """The single weight vector used for every career score computation."""

    resume: float = 0.4
    social: float = 0.3
    skill_path: float = 0.2
    activity: float = 0.1
    version: str = "v1"

    def __post_init__(self) -> None:
        values = self.as_tuple()
        if any(w < 0 for w in values):
            raise ConfigurationError(f"Career weights must be non-negative, got {values}")
        if abs(sum(values) - 1.0) > 1e-6:
            raise ConfigurationError(f"Career weights must sum to 1, got {sum(values):.4f}")
        if not self.version:
            raise ConfigurationError("Career weights need a version label")

    def as_tuple(self) -> tuple[float, float, float, float]:
        return (self.resume, self.social, self.skill_path, self.activity)


@dataclass(frozen=True)
class ScoringBudget:
    """Caps on external fan-out for a single request."""

    max_queries_per_request: int = 3
    results_per_query: int = 10
    max_results_scored_per_request: int = 20
    default_external_limit: int = 15
    max_recommendations: int = 20
    max_postings_scored_per_request: int = 50
    max_workers: int = 5

    def __post_init__(self) -> None:
        for name, value in asdict(self).items():
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ConfigurationError(f"Budget field {name} must be a positive integer, got {value!r}")

    def clamp_limit(self, limit: int | None) -> int:
        """Clamp a client-requested result count into [1, scoring ceiling]."""
        if limit is None:
            limit = self.default_external_limit
        return max(1, min(int(limit), self.max_results_scored_per_request))


@dataclass
class CandidateSignals:
    candidate_id: str
    resume_score: int | None = None
    social_completeness: int | None = None
    skill_path_progress: int | None = None
    application_count: int = 0


@dataclass
class CareerScore:
    candidate_id: str
    value: int
    computed_at: datetime
    weights_version: str
    breakdown: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "career_score": self.value,
            "breakdown": dict(self.breakdown),
            "computed_at": self.computed_at.isoformat(),
            "weights_version": self.weights_version,
        }


@dataclass
class CandidateProfile:
    candidate_id: str
    tenant_id: str | None = None
    skills: list[str] = field(default_factory=list)
    experience_titles: list[str] = field(default_factory=list)
    target_roles: list[str] = field(default_factory=list)
    social_summary: str = ""


@dataclass
class JobPosting:
    id: str
    title: str
    company: str
    description: str = ""
    tenant_id: str | None = None
    status: PostingStatus = PostingStatus.PENDING
    poster_trust: PosterTrust = PosterTrust.UNVERIFIED
    required_skills: list[str] = field(default_factory=list)
    location: str = ""
    requirements: str = ""
    created_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["poster_trust"] = self.poster_trust.value
        data["created_at"] = self.created_at.isoformat() if self.created_at else None
        return data


@dataclass
class ExternalJob:
    external_url: str
    title: str = "Job Title"
    company: str = "Company"
    description: str = ""
    location: str = "Location not specified"
    source: str = "unknown"
    posted_at: str | None = None
    job_type: str = "Full-time"
    salary_range: str = ""
    external_job_id: str = ""
    experience_level: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


Subject = Union[JobPosting, ExternalJob]


@dataclass
class MatchResult:
    subject: Subject
    match_score: int
    matched_skills: list[str] = field(default_factory=list)
    missing_skills: list[str] = field(default_factory=list)
    explanation: str = ""
    improvement_tips: list[str] = field(default_factory=list)
    from_oracle: bool = False

    def to_dict(self) -> dict[str, Any]:
        key = "posting" if isinstance(self.subject, JobPosting) else "job"
        return {
            key: self.subject.to_dict(),
            "match_score": self.match_score,
            "matched_skills": list(self.matched_skills),
            "missing_skills": list(self.missing_skills),
            "explanation": self.explanation,
            "improvement_tips": list(self.improvement_tips),
        }
