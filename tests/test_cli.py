"""Tests for the run_engine command line."""

import json

import pytest

import run_engine
from placement_engine.config import PROJECT_ROOT

SAMPLE = PROJECT_ROOT / "config" / "sample_data.yaml"


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    for key in ("ENGINE_CONFIG", "GROQ_API_KEY", "SERPAPI_KEY", "JSEARCH_API_KEY",
                "JOB_PROVIDER", "EXTERNAL_TIMEOUT_SECONDS"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("ENGINE_DB_PATH", str(tmp_path / "cli.db"))


def _run(capsys, *argv):
    code = run_engine.run(list(argv))
    out = capsys.readouterr().out
    return code, (json.loads(out) if code == 0 else None)


@pytest.fixture
def seeded(capsys):
    code, counts = _run(capsys, "load-fixtures", str(SAMPLE))
    assert code == 0
    return counts


class TestCli:
    def test_init_db(self, capsys, tmp_path):
        code, data = _run(capsys, "init-db")
        assert code == 0
        assert data["database"] == str(tmp_path / "cli.db")
        assert (tmp_path / "cli.db").exists()

    def test_load_fixtures(self, seeded):
        assert seeded == {"candidates": 2, "postings": 3}

    def test_recompute(self, capsys, seeded):
        code, data = _run(capsys, "recompute", "stu-1")
        assert code == 0
        assert data["career_score"] == 63
        assert data["weights_version"] == "v1"

    def test_recompute_with_partial_signals(self, capsys, seeded):
        code, data = _run(capsys, "recompute", "alum-7")
        assert code == 0
        assert data["career_score"] == 29

    def test_verbose_keeps_stdout_json(self, capsys, seeded):
        code, data = _run(capsys, "-v", "recompute", "stu-1")
        assert code == 0
        assert data["career_score"] == 63

    def test_signal(self, capsys, seeded):
        code, data = _run(capsys, "signal", "stu-1", "resume")
        assert code == 0
        assert data["career_score"] == 63

    def test_unknown_candidate_exits_2(self, capsys, seeded):
        code, _ = _run(capsys, "recompute", "nobody")
        assert code == 2

    def test_recommend_without_oracle_key_exits_3(self, capsys, seeded):
        code, _ = _run(capsys, "recommend", "stu-1")
        assert code == 3

    def test_search_without_any_keys(self, capsys, seeded):
        code, data = _run(capsys, "search", "stu-1", "--limit", "5")
        assert code == 0
        assert data["jobs"] == []
        assert data["suggested_roles"] == ["Python Developer", "SQL Developer", "Django Developer"]

    def test_bad_signal_name(self, capsys):
        with pytest.raises(SystemExit) as exc:
            run_engine.run(["signal", "stu-1", "quiz"])
        assert exc.value.code == 2

    def test_missing_config_file_exits_3(self, capsys, tmp_path):
        code, _ = _run(capsys, "--config", str(tmp_path / "missing.yaml"), "init-db")
        assert code == 3
