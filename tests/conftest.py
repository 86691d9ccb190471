"""Shared pytest fixtures for all tests."""

import os
import threading
from datetime import datetime, timedelta, timezone

os.environ.setdefault("ENGINE_LOG_TO_FILE", "false")

import pytest

from placement_engine.config import ScoringSettings, Settings
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.models import (
    ExternalJob,
    JobPosting,
    PosterTrust,
    PostingStatus,
    ScoringBudget,
)
from placement_engine.service import Engine
from placement_engine.sources.base import JobSearchBase
from placement_engine.store import Database, SignalWriter

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def title_from_prompt(prompt):
    """Pull the job title back out of a match prompt ("Job: <title> at <company>")."""
    for line in prompt.splitlines():
        if line.startswith("Job: "):
            return line[len("Job: "):].rsplit(" at ", 1)[0]
    return None


class FakeOracle:
    """Stand-in for the Groq oracle.

    ``responder(prompt)`` returns a dict payload, or an exception instance to raise.
    """

    configured = True

    def __init__(self, responder=None):
        self.responder = responder or (lambda prompt: {"match_score": 70})
        self.calls = []
        self._lock = threading.Lock()

    def complete_json(self, prompt, max_tokens):
        with self._lock:
            self.calls.append((prompt, max_tokens))
        result = self.responder(prompt)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def match_calls(self):
        return [p for p, _ in self.calls if not p.startswith("Suggest")]

    @property
    def role_calls(self):
        return [p for p, _ in self.calls if p.startswith("Suggest")]


class FakeProvider(JobSearchBase):
    """Job provider double keyed by query; ``failing`` queries raise UpstreamUnavailable."""

    name = "fake"

    def __init__(self, results=None, failing=(), honour_limit=True):
        self.results = results or {}
        self.failing = set(failing)
        self.honour_limit = honour_limit
        self.calls = []
        self._lock = threading.Lock()

    def search(self, query, location, limit):
        with self._lock:
            self.calls.append((query, location, limit))
        if query in self.failing:
            raise UpstreamUnavailable("provider down")
        jobs = list(self.results.get(query, []))
        return jobs[:limit] if self.honour_limit else jobs


def make_external_job(n, url=None, title=None):
    return ExternalJob(
        external_url=url or f"https://jobs.example.com/{n}",
        title=title or f"Role {n}",
        company=f"Company {n}",
        description=f"Description {n}",
        location="Remote",
        source="fake",
    )


def make_posting(posting_id, status=PostingStatus.APPROVED, tenant_id=None, minutes=0, **kwargs):
    kwargs.setdefault("title", f"Posting {posting_id}")
    kwargs.setdefault("company", "Initech")
    return JobPosting(
        id=posting_id,
        status=status,
        tenant_id=tenant_id,
        poster_trust=kwargs.pop("poster_trust", PosterTrust.VERIFIED),
        created_at=BASE_TIME + timedelta(minutes=minutes),
        **kwargs,
    )


@pytest.fixture
def db(tmp_path):
    database = Database(tmp_path / "engine.db")
    database.init_schema()
    return database


@pytest.fixture
def writer(db):
    return SignalWriter(db)


@pytest.fixture
def budget():
    return ScoringBudget()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        db_path=tmp_path / "engine.db",
        oracle_api_key="test-key",
        scoring=ScoringSettings(),
        budget=ScoringBudget(),
    )


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def engine(settings, db, fake_oracle, fake_provider):
    return Engine(settings, oracle=fake_oracle, provider=fake_provider, db=db)


@pytest.fixture
def student(writer):
    """Candidate stu-1 at tenant college-a with the full set of signals."""
    writer.upsert_candidate("stu-1", "college-a", ["Backend Engineer"])
    writer.record_resume_analysis(
        "stu-1", 80, ["Python", "SQL", "Docker"], [{"title": "Backend Intern"}, {"role": "TA"}],
    )
    writer.record_social_profile("stu-1", 60, "CS student")
    writer.record_skill_path_progress("stu-1", 40)
    for _ in range(5):
        writer.record_application("stu-1")
    return "stu-1"
