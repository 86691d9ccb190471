"""SQLite persistence for signals, postings, career scores and the external job cache.

The four signal tables (resume analyses, social profiles, skill paths,
applications) are owned by their producing subsystems; the engine reads them
through ``ScoreInputStore`` and only writes ``career_scores`` and
``external_jobs``. ``SignalWriter`` exists for the producers and for seeding.
"""
from __future__ import annotations

import json
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Iterator

from placement_engine.log import get_logger
from placement_engine.models import (
    CandidateProfile,
    CandidateSignals,
    CareerScore,
    ExternalJob,
    JobPosting,
    MatchResult,
    PosterTrust,
    PostingStatus,
)

log = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS candidates (
    candidate_id  TEXT PRIMARY KEY,
    tenant_id     TEXT,
    target_roles  TEXT NOT NULL DEFAULT '[]'
);
CREATE TABLE IF NOT EXISTS resume_analyses (
    candidate_id  TEXT PRIMARY KEY,
    ats_score     INTEGER,
    skills        TEXT NOT NULL DEFAULT '[]',
    experience    TEXT NOT NULL DEFAULT '[]',
    analyzed_at   TEXT
);
CREATE TABLE IF NOT EXISTS social_profiles (
    candidate_id        TEXT PRIMARY KEY,
    completeness_score  INTEGER,
    profile_text        TEXT NOT NULL DEFAULT '',
    analyzed_at         TEXT
);
CREATE TABLE IF NOT EXISTS skill_paths (
    candidate_id  TEXT PRIMARY KEY,
    progress      INTEGER,
    updated_at    TEXT
);
CREATE TABLE IF NOT EXISTS applications (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,
    candidate_id  TEXT NOT NULL,
    posting_id    TEXT,
    applied_at    TEXT
);
CREATE INDEX IF NOT EXISTS idx_applications_candidate ON applications (candidate_id);
CREATE TABLE IF NOT EXISTS job_postings (
    id               TEXT PRIMARY KEY,
    title            TEXT NOT NULL,
    company          TEXT NOT NULL,
    description      TEXT NOT NULL DEFAULT '',
    tenant_id        TEXT,
    status           TEXT NOT NULL,
    poster_trust     TEXT NOT NULL DEFAULT 'unverified',
    required_skills  TEXT NOT NULL DEFAULT '[]',
    location         TEXT NOT NULL DEFAULT '',
    requirements     TEXT NOT NULL DEFAULT '',
    created_at       TEXT
);
CREATE TABLE IF NOT EXISTS career_scores (
    candidate_id     TEXT PRIMARY KEY,
    value            INTEGER NOT NULL,
    computed_at      TEXT NOT NULL,
    weights_version  TEXT NOT NULL,
    breakdown        TEXT NOT NULL DEFAULT '{}'
);
CREATE TABLE IF NOT EXISTS external_jobs (
    id               INTEGER PRIMARY KEY AUTOINCREMENT,
    candidate_id     TEXT NOT NULL,
    external_url     TEXT NOT NULL,
    title            TEXT NOT NULL,
    company          TEXT NOT NULL,
    description      TEXT NOT NULL DEFAULT '',
    location         TEXT NOT NULL DEFAULT '',
    source           TEXT NOT NULL DEFAULT '',
    posted_at        TEXT,
    job_type         TEXT NOT NULL DEFAULT '',
    salary_range     TEXT NOT NULL DEFAULT '',
    external_job_id  TEXT NOT NULL DEFAULT '',
    experience_level TEXT NOT NULL DEFAULT '',
    match_score      INTEGER NOT NULL,
    matched_skills   TEXT NOT NULL DEFAULT '[]',
    missing_skills   TEXT NOT NULL DEFAULT '[]',
    updated_at       TEXT NOT NULL,
    UNIQUE (candidate_id, external_url)
);
"""

DESCRIPTION_EXCERPT = 1000


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _loads(raw: str | None, default: Any) -> Any:
    if not raw:
        return default
    try:
        return json.loads(raw)
    except ValueError:
        return default


def _parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw)
    except ValueError:
        return None


class Database:
    """Opens short-lived connections; one per call keeps threads independent."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(self.path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000;")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA)
        log.info("Schema ready → %s", self.path)


class ScoreInputStore:
    """Read-only view over the four career-score signal tables.

    A table that cannot be read yields a missing signal instead of an error.
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def _read(self, sql: str, candidate_id: str, label: str) -> Any:
        try:
            with self.db.connect() as conn:
                row = conn.execute(sql, (candidate_id,)).fetchone()
        except sqlite3.Error as exc:
            log.warning("Signal source %s unreachable for %s: %s", label, candidate_id, exc)
            return None
        return row[0] if row else None

    def read_signals(self, candidate_id: str) -> CandidateSignals:
        resume = self._read(
            "SELECT ats_score FROM resume_analyses WHERE candidate_id = ?", candidate_id, "resume",
        )
        social = self._read(
            "SELECT completeness_score FROM social_profiles WHERE candidate_id = ?", candidate_id, "social",
        )
        skill = self._read(
            "SELECT progress FROM skill_paths WHERE candidate_id = ?", candidate_id, "skill_path",
        )
        applications = self._read(
            "SELECT COUNT(*) FROM applications WHERE candidate_id = ?", candidate_id, "applications",
        )
        return CandidateSignals(
            candidate_id=candidate_id,
            resume_score=resume,
            social_completeness=social,
            skill_path_progress=skill,
            application_count=int(applications or 0),
        )


class CandidateStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def exists(self, candidate_id: str) -> bool:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM candidates WHERE candidate_id = ?", (candidate_id,)
            ).fetchone()
        return row is not None

    def load_profile(self, candidate_id: str) -> CandidateProfile | None:
        """Assemble the scoring view of a candidate from their profile, resume and social rows."""
        with self.db.connect() as conn:
            cand = conn.execute(
                "SELECT tenant_id, target_roles FROM candidates WHERE candidate_id = ?", (candidate_id,)
            ).fetchone()
            if cand is None:
                return None
            resume = conn.execute(
                "SELECT skills, experience FROM resume_analyses WHERE candidate_id = ?", (candidate_id,)
            ).fetchone()
            social = conn.execute(
                "SELECT profile_text FROM social_profiles WHERE candidate_id = ?", (candidate_id,)
            ).fetchone()

        skills = _loads(resume["skills"], []) if resume else []
        experience = _loads(resume["experience"], []) if resume else []
        titles: list[str] = []
        for entry in experience:
            if isinstance(entry, dict):
                title = entry.get("title") or entry.get("role")
            else:
                title = entry
            if title:
                titles.append(str(title))

        return CandidateProfile(
            candidate_id=candidate_id,
            tenant_id=cand["tenant_id"],
            skills=[str(s) for s in skills if s],
            experience_titles=titles,
            target_roles=[str(r) for r in _loads(cand["target_roles"], []) if r],
            social_summary=(social["profile_text"] if social else "") or "",
        )


def _row_to_posting(row: sqlite3.Row) -> JobPosting:
    return JobPosting(
        id=row["id"],
        title=row["title"],
        company=row["company"],
        description=row["description"] or "",
        tenant_id=row["tenant_id"],
        status=PostingStatus(row["status"]),
        poster_trust=PosterTrust(row["poster_trust"]),
        required_skills=_loads(row["required_skills"], []),
        location=row["location"] or "",
        requirements=row["requirements"] or "",
        created_at=_parse_ts(row["created_at"]),
    )


class PostingCatalog:
    def __init__(self, db: Database) -> None:
        self.db = db

    def all_postings(self) -> list[JobPosting]:
        with self.db.connect() as conn:
            rows = conn.execute("SELECT * FROM job_postings ORDER BY id").fetchall()
        return [_row_to_posting(r) for r in rows]

    def get(self, posting_id: str) -> JobPosting | None:
        with self.db.connect() as conn:
            row = conn.execute("SELECT * FROM job_postings WHERE id = ?", (posting_id,)).fetchone()
        return _row_to_posting(row) if row else None


class CareerScoreStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def get(self, candidate_id: str) -> CareerScore | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM career_scores WHERE candidate_id = ?", (candidate_id,)
            ).fetchone()
        if row is None:
            return None
        return CareerScore(
            candidate_id=row["candidate_id"],
            value=row["value"],
            computed_at=datetime.fromisoformat(row["computed_at"]),
            weights_version=row["weights_version"],
            breakdown=_loads(row["breakdown"], {}),
        )

    def save(self, score: CareerScore) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO career_scores (candidate_id, value, computed_at, weights_version, breakdown)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (candidate_id) DO UPDATE SET
                    value = excluded.value,
                    computed_at = excluded.computed_at,
                    weights_version = excluded.weights_version,
                    breakdown = excluded.breakdown
                """,
                (
                    score.candidate_id,
                    score.value,
                    score.computed_at.isoformat(),
                    score.weights_version,
                    json.dumps(score.breakdown),
                ),
            )


class ExternalJobCache:
    """Scored external results per candidate, unique on (candidate_id, external_url)."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def upsert(self, candidate_id: str, results: Iterable[MatchResult]) -> int:
        rows = []
        stamp = _now()
        for r in results:
            job = r.subject
            rows.append((
                candidate_id, job.external_url, job.title, job.company,
                job.description[:DESCRIPTION_EXCERPT], job.location, job.source,
                job.posted_at, job.job_type, job.salary_range, job.external_job_id, job.experience_level,
                r.match_score, json.dumps(r.matched_skills), json.dumps(r.missing_skills), stamp,
            ))
        if not rows:
            return 0
        with self.db.connect() as conn:
            conn.executemany(
                """
                INSERT INTO external_jobs (
                    candidate_id, external_url, title, company, description, location, source,
                    posted_at, job_type, salary_range, external_job_id, experience_level,
                    match_score, matched_skills, missing_skills, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (candidate_id, external_url) DO UPDATE SET
                    title = excluded.title,
                    company = excluded.company,
                    description = excluded.description,
                    location = excluded.location,
                    source = excluded.source,
                    posted_at = excluded.posted_at,
                    job_type = excluded.job_type,
                    salary_range = excluded.salary_range,
                    external_job_id = excluded.external_job_id,
                    experience_level = excluded.experience_level,
                    match_score = excluded.match_score,
                    matched_skills = excluded.matched_skills,
                    missing_skills = excluded.missing_skills,
                    updated_at = excluded.updated_at
                """,
                rows,
            )
        log.debug("Cached %d external job(s) for %s", len(rows), candidate_id)
        return len(rows)

    def get_job(self, candidate_id: str, external_url: str) -> ExternalJob | None:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT * FROM external_jobs WHERE candidate_id = ? AND external_url = ?",
                (candidate_id, external_url),
            ).fetchone()
        if row is None:
            return None
        return ExternalJob(
            external_url=row["external_url"],
            title=row["title"],
            company=row["company"],
            description=row["description"],
            location=row["location"],
            source=row["source"],
            posted_at=row["posted_at"],
            job_type=row["job_type"],
            salary_range=row["salary_range"],
            external_job_id=row["external_job_id"],
            experience_level=row["experience_level"],
        )

    def count(self, candidate_id: str) -> int:
        with self.db.connect() as conn:
            row = conn.execute(
                "SELECT COUNT(*) FROM external_jobs WHERE candidate_id = ?", (candidate_id,)
            ).fetchone()
        return int(row[0])


class SignalWriter:
    """Write side of the upstream tables, used by the producing subsystems."""

    def __init__(self, db: Database) -> None:
        self.db = db

    def upsert_candidate(
        self, candidate_id: str, tenant_id: str | None = None, target_roles: Iterable[str] = (),
    ) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO candidates (candidate_id, tenant_id, target_roles) VALUES (?, ?, ?)
                ON CONFLICT (candidate_id) DO UPDATE SET
                    tenant_id = excluded.tenant_id, target_roles = excluded.target_roles
                """,
                (candidate_id, tenant_id, json.dumps(list(target_roles))),
            )

    def record_resume_analysis(
        self,
        candidate_id: str,
        ats_score: int | None,
        skills: Iterable[str] = (),
        experience: Iterable[Any] = (),
    ) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO resume_analyses (candidate_id, ats_score, skills, experience, analyzed_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT (candidate_id) DO UPDATE SET
                    ats_score = excluded.ats_score, skills = excluded.skills,
                    experience = excluded.experience, analyzed_at = excluded.analyzed_at
                """,
                (candidate_id, ats_score, json.dumps(list(skills)), json.dumps(list(experience)), _now()),
            )

    def record_social_profile(
        self, candidate_id: str, completeness_score: int | None, profile_text: str = "",
    ) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO social_profiles (candidate_id, completeness_score, profile_text, analyzed_at)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (candidate_id) DO UPDATE SET
                    completeness_score = excluded.completeness_score,
                    profile_text = excluded.profile_text, analyzed_at = excluded.analyzed_at
                """,
                (candidate_id, completeness_score, profile_text, _now()),
            )

    def record_skill_path_progress(self, candidate_id: str, progress: int | None) -> None:
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO skill_paths (candidate_id, progress, updated_at) VALUES (?, ?, ?)
                ON CONFLICT (candidate_id) DO UPDATE SET
                    progress = excluded.progress, updated_at = excluded.updated_at
                """,
                (candidate_id, progress, _now()),
            )

    def record_application(self, candidate_id: str, posting_id: str | None = None) -> None:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO applications (candidate_id, posting_id, applied_at) VALUES (?, ?, ?)",
                (candidate_id, posting_id, _now()),
            )

    def upsert_posting(self, posting: JobPosting) -> None:
        created = posting.created_at or datetime.now(timezone.utc)
        with self.db.connect() as conn:
            conn.execute(
                """
                INSERT INTO job_postings (
                    id, title, company, description, tenant_id, status, poster_trust,
                    required_skills, location, requirements, created_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    title = excluded.title, company = excluded.company,
                    description = excluded.description, tenant_id = excluded.tenant_id,
                    status = excluded.status, poster_trust = excluded.poster_trust,
                    required_skills = excluded.required_skills, location = excluded.location,
                    requirements = excluded.requirements
                """,
                (
                    posting.id, posting.title, posting.company, posting.description,
                    posting.tenant_id, posting.status.value, posting.poster_trust.value,
                    json.dumps(list(posting.required_skills)), posting.location,
                    posting.requirements, created.isoformat(),
                ),
            )
