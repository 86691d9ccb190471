"""Tests for match scoring and the oracle client."""

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from conftest import FakeOracle, make_external_job, make_posting, title_from_prompt
from placement_engine.config import ScoringSettings, Settings
from placement_engine.exceptions import UpstreamUnavailable
from placement_engine.models import CandidateProfile
from placement_engine.oracle import Oracle
from placement_engine.scorer import MatchScorer, build_match_prompt


@pytest.fixture
def profile():
    return CandidateProfile(
        candidate_id="stu-1",
        tenant_id="college-a",
        skills=[f"skill{i}" for i in range(15)],
        experience_titles=["Backend Intern", "TA", "Barista"],
    )


def _scorer(responder, **scoring):
    return MatchScorer(FakeOracle(responder), ScoringSettings(**scoring))


class TestOraclePath:
    def test_parses_payload(self, profile):
        scorer = _scorer(lambda p: {
            "match_score": 82,
            "matched_skills": ["Python", "SQL"],
            "missing_skills": ["Kubernetes"],
            "explanation": " Strong backend fit. ",
            "improvement_tips": ["Learn Kubernetes basics", "  Ship a  REST API  project "],
        })
        result = scorer.score(profile, make_posting("p1"))
        assert result.match_score == 82
        assert result.matched_skills == ["Python", "SQL"]
        assert result.missing_skills == ["Kubernetes"]
        assert result.explanation == "Strong backend fit."
        assert result.improvement_tips == ["Learn Kubernetes basics", "Ship a REST API project"]
        assert result.to_dict()["improvement_tips"] == result.improvement_tips
        assert result.from_oracle is True

    @pytest.mark.parametrize("raw,expected", [(150, 100), (-5, 0), ("85", 85), (72.6, 73), (0, 0)])
    def test_score_clamped_into_range(self, profile, raw, expected):
        result = _scorer(lambda p: {"match_score": raw}).score(profile, make_posting("p1"))
        assert result.match_score == expected

    def test_skill_lists_are_capped_and_deduplicated(self, profile):
        scorer = _scorer(
            lambda p: {
                "match_score": 60,
                "matched_skills": ["Python", "python", "SQL", "", None, "Go", "Rust"],
                "missing_skills": ["A", "B", "C"],
            },
            max_matched_skills=3,
            max_missing_skills=2,
        )
        result = scorer.score(profile, make_posting("p1"))
        assert result.matched_skills == ["Python", "SQL", "Go"]
        assert result.missing_skills == ["A", "B"]

    def test_improvement_tips_are_capped_and_strings_only(self, profile):
        result = _scorer(
            lambda p: {"match_score": 60, "improvement_tips": ["a", 3, "", "b", "c", "d"]},
            max_improvement_tips=2,
        ).score(profile, make_posting("p1"))
        assert result.improvement_tips == ["a", "b"]

    def test_non_list_skills_become_empty(self, profile):
        result = _scorer(lambda p: {"match_score": 60, "matched_skills": "Python"}).score(
            profile, make_posting("p1")
        )
        assert result.matched_skills == []


class TestFallback:
    @pytest.mark.parametrize("response", [
        UpstreamUnavailable("timeout"),
        RuntimeError("boom"),
        {"matched_skills": ["Python"]},
        {"match_score": "high"},
        {"match_score": None},
        {"match_score": True},
        {"match_score": float("nan")},
        {"match_score": float("inf")},
    ])
    def test_failures_return_default(self, profile, response):
        result = _scorer(lambda p: response).score(profile, make_external_job(1))
        assert result.match_score == 50
        assert result.matched_skills == []
        assert result.missing_skills == []
        assert result.improvement_tips == []
        assert result.from_oracle is False

    def test_configured_default_is_used(self, profile):
        result = _scorer(lambda p: UpstreamUnavailable("down"), default_score=35).score(
            profile, make_posting("p1")
        )
        assert result.match_score == 35


class TestPrompt:
    def test_prompt_is_bounded(self, profile):
        posting = make_posting(
            "p1",
            title="T" * 120,
            description="d" * 5000,
            requirements="r" * 5000,
            required_skills=[f"req{i}" for i in range(30)],
        )
        prompt = build_match_prompt(profile, posting, ScoringSettings())
        assert "d" * 301 not in prompt
        assert "r" * 201 not in prompt
        assert "T" * 51 not in prompt
        assert "skill10" not in prompt
        assert "req10" not in prompt
        assert "Barista" not in prompt

    def test_external_job_prompt_has_no_requirements(self, profile):
        prompt = build_match_prompt(profile, make_external_job(1), ScoringSettings())
        assert "Req:" not in prompt
        assert "Job: Role 1 at Company 1" in prompt


class TestScoreMany:
    def test_preserves_input_order(self, profile):
        scores = {"Posting a": 10, "Posting b": 90, "Posting c": 40}
        scorer = _scorer(lambda p: {"match_score": scores[title_from_prompt(p)]})
        postings = [make_posting(x) for x in "abc"]
        results = scorer.score_many(profile, postings, max_workers=3)
        assert [r.subject.id for r in results] == ["a", "b", "c"]
        assert [r.match_score for r in results] == [10, 90, 40]

    def test_empty(self, profile):
        assert _scorer(lambda p: {"match_score": 1}).score_many(profile, [], max_workers=4) == []


def _completion(text):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=text))])


class TestOracleClient:
    def test_unconfigured_raises(self):
        oracle = Oracle(Settings(oracle_api_key=""))
        with pytest.raises(UpstreamUnavailable, match="not configured"):
            oracle.complete_json("prompt", max_tokens=10)

    def test_extracts_json_from_reply(self):
        client = MagicMock()
        client.chat.completions.create.return_value = _completion('Result: {"match_score": 64}')
        oracle = Oracle(Settings(oracle_api_key="k"), client=client)

        assert oracle.complete_json("prompt", max_tokens=99) == {"match_score": 64}
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["max_tokens"] == 99
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["timeout"] <= 10

    def test_client_error_becomes_upstream_unavailable(self):
        client = MagicMock()
        client.chat.completions.create.side_effect = TimeoutError("slow")
        oracle = Oracle(Settings(oracle_api_key="k"), client=client)
        with pytest.raises(UpstreamUnavailable):
            oracle.complete_json("prompt", max_tokens=10)

    def test_stalled_reply_is_cut_off_at_timeout(self):
        release = threading.Event()
        client = MagicMock()
        client.chat.completions.create.side_effect = lambda **kwargs: release.wait(5) and _completion("{}")
        oracle = Oracle(Settings(oracle_api_key="k", timeout=0.2), client=client)
        started = time.monotonic()
        try:
            with pytest.raises(UpstreamUnavailable, match="exceeded"):
                oracle.complete_json("prompt", max_tokens=10)
        finally:
            release.set()
        assert time.monotonic() - started < 2.0

    def test_non_json_reply_becomes_upstream_unavailable(self):
        client = MagicMock()
        client.chat.completions.create.return_value = _completion("no idea")
        oracle = Oracle(Settings(oracle_api_key="k"), client=client)
        with pytest.raises(UpstreamUnavailable, match="no JSON"):
            oracle.complete_json("prompt", max_tokens=10)

    @patch("openai.OpenAI")
    def test_builds_client_without_retries(self, mock_openai):
        mock_openai.return_value.chat.completions.create.return_value = _completion('{"ok": true}')
        oracle = Oracle(Settings(oracle_api_key="k", timeout=7.0))
        assert oracle.complete_json("prompt", max_tokens=10) == {"ok": True}
        kwargs = mock_openai.call_args.kwargs
        assert kwargs["max_retries"] == 0
        assert kwargs["timeout"] == 7.0
        assert kwargs["api_key"] == "k"
