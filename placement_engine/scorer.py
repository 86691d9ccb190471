"""Score one candidate against one posting or external job via the oracle."""
from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Sequence

from placement_engine.config import ScoringSettings
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger
from placement_engine.models import CandidateProfile, JobPosting, MatchResult, Subject
from placement_engine.oracle import Oracle

log = get_logger(__name__)

# Prompt budget: keep each request to a few hundred tokens.
MAX_PROMPT_SKILLS = 10
MAX_PROMPT_EXPERIENCE = 2
TITLE_CHARS = 50
COMPANY_CHARS = 50
DESCRIPTION_CHARS = 300
REQUIREMENTS_CHARS = 200
EXPLANATION_CHARS = 300
TIP_CHARS = 200


def normalize(s: str | None) -> str:
    return (s or "").lower().strip()


def _clean_skills(raw: Any, cap: int) -> list[str]:
    if not isinstance(raw, list):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, (str, int, float)) or isinstance(item, bool):
            continue
        skill = str(item).strip()
        key = normalize(skill)
        if not skill or key in seen:
            continue
        seen.add(key)
        out.append(skill)
        if len(out) >= cap:
            break
    return out


def _clean_tips(raw: Any, cap: int) -> list[str]:
    if not isinstance(raw, list):
        return []
    tips = [" ".join(t.split())[:TIP_CHARS] for t in raw if isinstance(t, str) and t.strip()]
    return tips[:cap]


def _clamp_score(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        raise UpstreamUnavailable("match_score missing")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise UpstreamUnavailable(f"match_score not numeric: {raw!r}") from exc
    if not math.isfinite(value):
        raise UpstreamUnavailable(f"match_score not finite: {raw!r}")
    return max(0, min(int(round(value)), 100))


def build_match_prompt(profile: CandidateProfile, subject: Subject, scoring: ScoringSettings) -> str:
    skills = ", ".join(profile.skills[:MAX_PROMPT_SKILLS]) or "none listed"
    experience = ", ".join(profile.experience_titles[:MAX_PROMPT_EXPERIENCE]) or "none listed"
    lines = [
        f'Job match score. JSON only: {{"match_score": <0-100>, '
        f'"matched_skills": [<{scoring.max_matched_skills} max>], '
        f'"missing_skills": [<{scoring.max_missing_skills} max>], '
        f'"explanation": "<one sentence>", '
        f'"improvement_tips": [<{scoring.max_improvement_tips} max>]}}',
        f"Candidate skills: {skills}",
        f"Experience: {experience}",
        f"Job: {subject.title[:TITLE_CHARS]} at {subject.company[:COMPANY_CHARS]}",
        f"Desc: {(subject.description or '')[:DESCRIPTION_CHARS]}",
    ]
    if isinstance(subject, JobPosting):
        if subject.requirements:
            lines.append(f"Req: {subject.requirements[:REQUIREMENTS_CHARS]}")
        if subject.required_skills:
            lines.append(f"Job skills: {', '.join(subject.required_skills[:MAX_PROMPT_SKILLS])}")
    return "\n".join(lines)


def _subject_label(subject: Subject) -> str:
    if isinstance(subject, JobPosting):
        return subject.id
    return subject.external_url


class MatchScorer:
    def __init__(self, oracle: Oracle, scoring: ScoringSettings) -> None:
        self.oracle = oracle
        self.scoring = scoring

    def fallback(self, subject: Subject) -> MatchResult:
        return MatchResult(subject=subject, match_score=self.scoring.default_score)

    def parse(self, subject: Subject, data: dict[str, Any]) -> MatchResult:
        """Validate an oracle payload; raises UpstreamUnavailable when unusable."""
        explanation = data.get("explanation")
        return MatchResult(
            subject=subject,
            match_score=_clamp_score(data.get("match_score")),
            matched_skills=_clean_skills(data.get("matched_skills"), self.scoring.max_matched_skills),
            missing_skills=_clean_skills(data.get("missing_skills"), self.scoring.max_missing_skills),
            explanation=explanation.strip()[:EXPLANATION_CHARS] if isinstance(explanation, str) else "",
            improvement_tips=_clean_tips(data.get("improvement_tips"), self.scoring.max_improvement_tips),
            from_oracle=True,
        )

    def score(self, profile: CandidateProfile, subject: Subject) -> MatchResult:
        """Never raises: any oracle problem yields the default score."""
        label = _subject_label(subject)
        try:
            prompt = build_match_prompt(profile, subject, self.scoring)
            data = self.oracle.complete_json(prompt, max_tokens=self.scoring.match_max_tokens)
            result = self.parse(subject, data)
        except UpstreamUnavailable as exc:
            log.warning("Match scoring fell back for %s: %s", label, exc)
            return self.fallback(subject)
        except Exception as exc:
            log.warning("Unexpected scoring error for %s (%s), using default", label, exc)
            return self.fallback(subject)
        log.debug("Scored %s → %d", label, result.match_score)
        return result

    def score_many(
        self, profile: CandidateProfile, subjects: Sequence[Subject], max_workers: int,
    ) -> list[MatchResult]:
        """Score in parallel; results come back in ``subjects`` order."""
        if not subjects:
            return []
        workers = max(1, min(max_workers, len(subjects)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(lambda s: self.score(profile, s), subjects))
