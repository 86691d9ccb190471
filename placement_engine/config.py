"""Load engine configuration from config/engine.yaml and the environment."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from placement_engine.exceptions import ConfigurationError
from placement_engine.log import get_logger
from placement_engine.models import CareerWeights, ScoringBudget

log = get_logger(__name__)

load_dotenv()

PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = PROJECT_ROOT / "config"
CONFIG_PATH: Path = CONFIG_DIR / "engine.yaml"
DATA_DIR: Path = PROJECT_ROOT / "data"

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
MAX_EXTERNAL_TIMEOUT = 10.0


@dataclass(frozen=True)
class ScoringSettings:
    default_score: int = 50
    max_matched_skills: int = 5
    max_missing_skills: int = 5
    max_improvement_tips: int = 3
    match_max_tokens: int = 150
    roles_max_tokens: int = 150
    temperature: float = 0.3


@dataclass
class Settings:
    weights: CareerWeights = field(default_factory=CareerWeights)
    budget: ScoringBudget = field(default_factory=ScoringBudget)
    scoring: ScoringSettings = field(default_factory=ScoringSettings)
    db_path: Path = DATA_DIR / "engine.db"
    oracle_api_key: str = ""
    oracle_model: str = "llama-3.1-8b-instant"
    oracle_base_url: str = GROQ_BASE_URL
    provider: str = ""
    serpapi_key: str = ""
    jsearch_key: str = ""
    timeout: float = MAX_EXTERNAL_TIMEOUT

    def require_oracle(self) -> None:
        if not self.oracle_api_key:
            raise ConfigurationError("GROQ_API_KEY not configured — match scoring is unavailable")


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def load_config(path: Path | None = None) -> dict[str, Any]:
    """Read the YAML config. A missing default file means "all defaults"."""
    explicit = path is not None or bool(get_env("ENGINE_CONFIG"))
    path = path or Path(get_env("ENGINE_CONFIG") or CONFIG_PATH)
    if not path.exists():
        if explicit:
            raise ConfigurationError(f"Config file not found: {path}")
        log.debug("No config at %s — using built-in defaults", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Could not read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config {path} must be a mapping at the top level")
    return data


def _section(cls, raw: Any, name: str, **extra: Any):
    raw = raw or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(raw) - known)
    if unknown:
        log.warning("Ignoring unknown keys in '%s': %s", name, ", ".join(unknown))
    try:
        return cls(**{k: v for k, v in raw.items() if k in known}, **extra)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid '{name}' section: {exc}") from exc


def _timeout(raw: Any) -> float:
    value = get_env("EXTERNAL_TIMEOUT_SECONDS") or raw
    if value in (None, ""):
        return MAX_EXTERNAL_TIMEOUT
    try:
        timeout = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid external timeout: {value!r}") from exc
    if timeout <= 0:
        raise ConfigurationError("External timeout must be positive")
    return min(timeout, MAX_EXTERNAL_TIMEOUT)


def load_settings(path: Path | None = None) -> Settings:
    data = load_config(path)

    weights_raw = dict(data.get("weights") or {})
    if data.get("weights_version"):
        weights_raw.setdefault("version", str(data["weights_version"]))
    weights = _section(CareerWeights, weights_raw, "weights")
    budget = _section(ScoringBudget, data.get("budget"), "budget")
    scoring = _section(ScoringSettings, data.get("scoring"), "scoring")

    db_cfg = (data.get("database") or {}).get("path")
    db_path = Path(get_env("ENGINE_DB_PATH") or db_cfg or DATA_DIR / "engine.db")
    if not db_path.is_absolute():
        db_path = PROJECT_ROOT / db_path

    provider = get_env("JOB_PROVIDER", str(data.get("provider") or "")).lower()
    if provider not in ("", "serpapi", "jsearch"):
        raise ConfigurationError(f"Unknown job provider: {provider}")

    settings = Settings(
        weights=weights,
        budget=budget,
        scoring=scoring,
        db_path=db_path,
        oracle_api_key=get_env("GROQ_API_KEY"),
        oracle_model=get_env("GROQ_LLM_MODEL") or str(data.get("oracle_model") or "llama-3.1-8b-instant"),
        oracle_base_url=get_env("ORACLE_BASE_URL") or GROQ_BASE_URL,
        provider=provider,
        serpapi_key=get_env("SERPAPI_KEY"),
        jsearch_key=get_env("JSEARCH_API_KEY"),
        timeout=_timeout(data.get("timeout_seconds")),
    )
    log.debug(
        "Settings loaded: weights=%s (%s), db=%s, provider=%s",
        weights.as_tuple(), weights.version, db_path.name, provider or "auto",
    )
    return settings
