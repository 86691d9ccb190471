"""Derive search queries (job titles) from a candidate profile."""
from __future__ import annotations

from placement_engine.config import ScoringSettings
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.log import get_logger
from placement_engine.models import CandidateProfile
from placement_engine.oracle import Oracle
from placement_engine.scorer import normalize

log = get_logger(__name__)

DEFAULT_ROLE = "Software Engineer"
GENERIC_TITLE = "Developer"
SUGGESTION_COUNT = 5
SOCIAL_CHARS = 200
ROLE_CHARS = 80


def _unique_titles(raw: object, limit: int) -> list[str]:
    if not isinstance(raw, list):
        return []
    titles: list[str] = []
    seen: set[str] = set()
    for item in raw:
        if not isinstance(item, str):
            continue
        title = " ".join(item.split())[:ROLE_CHARS]
        if title and normalize(title) not in seen:
            seen.add(normalize(title))
            titles.append(title)
        if len(titles) >= limit:
            break
    return titles


def fallback_roles(profile: CandidateProfile, count: int) -> list[str]:
    """Top skills + a generic title, e.g. "Python Developer"."""
    roles = _unique_titles([f"{skill} {GENERIC_TITLE}" for skill in profile.skills], count)
    return roles or [DEFAULT_ROLE]


def build_roles_prompt(profile: CandidateProfile) -> str:
    return "\n".join([
        f'Suggest {SUGGESTION_COUNT} job titles. JSON only: '
        f'{{"suggested_roles": [<{SUGGESTION_COUNT} titles>]}}',
        f"Skills: {', '.join(profile.skills[:8])}",
        f"Experience: {', '.join(profile.experience_titles[:2])}",
        f"Profile: {profile.social_summary[:SOCIAL_CHARS]}",
        f"Target: {', '.join(profile.target_roles) or 'any'}",
    ])


class RoleSuggester:
    def __init__(self, oracle: Oracle, scoring: ScoringSettings) -> None:
        self.oracle = oracle
        self.scoring = scoring

    def suggest(self, profile: CandidateProfile, count: int) -> list[str]:
        try:
            data = self.oracle.complete_json(
                build_roles_prompt(profile), max_tokens=self.scoring.roles_max_tokens,
            )
        except UpstreamUnavailable as exc:
            log.warning("Role suggestion unavailable for %s (%s), using skills", profile.candidate_id, exc)
            return fallback_roles(profile, count)

        roles = _unique_titles(data.get("suggested_roles"), count)
        if not roles:
            log.info("Oracle suggested no roles for %s, using skills", profile.candidate_id)
            return fallback_roles(profile, count)
        log.debug("Suggested roles for %s: %s", profile.candidate_id, roles)
        return roles
