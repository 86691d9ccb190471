#!/usr/bin/env python3
"""Command-line entry point for the scoring and recommendation engine.

Usage:
    python run_engine.py init-db
    python run_engine.py load-fixtures config/sample_data.yaml
    python run_engine.py recompute stu-1
    python run_engine.py recommend stu-1 --role engineer --skills python,sql
    python run_engine.py search stu-1 --query "Data Analyst" --location Pune --limit 10
    python run_engine.py score stu-1 job-42
    python run_engine.py signal stu-1 resume
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

import yaml

from placement_engine.config import load_settings
from placement_engine.exceptions import ConfigurationError, ValidationError
from placement_engine.log import get_logger, setup_logging
from placement_engine.models import JobPosting, PosterTrust, PostingStatus
from placement_engine.service import SIGNALS, Engine
from placement_engine.store import SignalWriter

log = get_logger(__name__)


def load_fixtures(engine: Engine, path: Path) -> dict[str, int]:
    """Seed candidates, their signals and postings from a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    writer = SignalWriter(engine.db)
    candidates = data.get("candidates") or []
    for c in candidates:
        cid = c["candidate_id"]
        writer.upsert_candidate(cid, c.get("tenant_id"), c.get("target_roles") or [])
        resume = c.get("resume")
        if resume:
            writer.record_resume_analysis(
                cid, resume.get("ats_score"), resume.get("skills") or [], resume.get("experience") or [],
            )
        social = c.get("social")
        if social:
            writer.record_social_profile(cid, social.get("completeness_score"), social.get("profile_text") or "")
        if c.get("skill_path_progress") is not None:
            writer.record_skill_path_progress(cid, c["skill_path_progress"])
        for _ in range(int(c.get("applications") or 0)):
            writer.record_application(cid)

    postings = data.get("postings") or []
    for p in postings:
        writer.upsert_posting(JobPosting(
            id=str(p["id"]),
            title=p["title"],
            company=p["company"],
            description=p.get("description") or "",
            tenant_id=p.get("tenant_id"),
            status=PostingStatus(p.get("status", "pending")),
            poster_trust=PosterTrust(p.get("poster_trust", "unverified")),
            required_skills=p.get("required_skills") or [],
            location=p.get("location") or "",
            requirements=p.get("requirements") or "",
        ))
    return {"candidates": len(candidates), "postings": len(postings)}


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Placement scoring and recommendation engine")
    parser.add_argument("--config", type=Path, help="Path to engine YAML config")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG on the console")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the SQLite schema")

    p = sub.add_parser("load-fixtures", help="Seed candidates and postings from YAML")
    p.add_argument("path", type=Path)

    p = sub.add_parser("recompute", help="Recompute a candidate's career score")
    p.add_argument("candidate_id")

    p = sub.add_parser("signal", help="Recompute after an upstream signal change")
    p.add_argument("candidate_id")
    p.add_argument("signal", choices=sorted(SIGNALS))

    p = sub.add_parser("recommend", help="Ranked internal postings for a candidate")
    p.add_argument("candidate_id")
    p.add_argument("--role")
    p.add_argument("--location")
    p.add_argument("--skills", help="Comma-separated skills every posting must require")

    p = sub.add_parser("search", help="Search, score and cache external jobs")
    p.add_argument("candidate_id")
    p.add_argument("--query")
    p.add_argument("--location")
    p.add_argument("--limit", type=int)
    p.add_argument("--auto-suggest", action="store_true")

    p = sub.add_parser("score", help="Score one posting id or cached external URL")
    p.add_argument("candidate_id")
    p.add_argument("subject_id")
    return parser


def run(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.verbose:
        setup_logging("DEBUG")
    try:
        engine = Engine(load_settings(args.config))
        result: Any
        if args.command == "init-db":
            engine.db.init_schema()
            result = {"database": str(engine.db.path)}
        elif args.command == "load-fixtures":
            engine.db.init_schema()
            result = load_fixtures(engine, args.path)
        elif args.command == "recompute":
            result = engine.recompute_career_score(args.candidate_id)
        elif args.command == "signal":
            result = engine.notify_signal_changed(args.candidate_id, args.signal)
        elif args.command == "recommend":
            filters = {"role": args.role, "location": args.location, "skills": args.skills}
            result = engine.get_recommended_jobs(args.candidate_id, {k: v for k, v in filters.items() if v})
        elif args.command == "search":
            result = engine.search_external_jobs(
                args.candidate_id, args.query, args.location, args.limit, args.auto_suggest,
            )
        else:
            result = engine.score_match(args.candidate_id, args.subject_id)
    except ValidationError as exc:
        log.error("Invalid request: %s", exc)
        return 2
    except ConfigurationError as exc:
        log.error("Configuration error: %s", exc)
        return 3

    print(json.dumps(result, indent=2, default=str))
    return 0


if __name__ == "__main__":
    sys.exit(run())
