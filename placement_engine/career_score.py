"""Career score: one bounded 0–100 number from four independently-updated signals.

    activity   = min(application_count * 10, 100)
    score      = round_half_up(w_resume*resume + w_social*social + w_skill*skill_path + w_activity*activity)

Missing signals count as 0. The aggregator never subscribes to signal
changes; whoever mutates a signal calls ``recompute`` afterwards.
"""
from __future__ import annotations

import threading
import zlib
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Callable

from placement_engine.log import get_logger
from placement_engine.models import CandidateSignals, CareerScore, CareerWeights
from placement_engine.store import CareerScoreStore, ScoreInputStore

log = get_logger(__name__)

SCORE_MIN = 0
SCORE_MAX = 100
APPLICATION_POINTS = 10
LOCK_STRIPES = 64


def _bounded(value: Any) -> int:
    if value is None:
        return 0
    try:
        number = int(round(float(value)))
    except (TypeError, ValueError):
        log.warning("Ignoring non-numeric signal value %r", value)
        return 0
    return max(SCORE_MIN, min(number, SCORE_MAX))


def activity_signal(application_count: int) -> int:
    return min(max(int(application_count or 0), 0) * APPLICATION_POINTS, SCORE_MAX)


def signal_breakdown(signals: CandidateSignals) -> dict[str, int]:
    return {
        "resume": _bounded(signals.resume_score),
        "social": _bounded(signals.social_completeness),
        "skill_path": _bounded(signals.skill_path_progress),
        "activity": activity_signal(signals.application_count),
    }


def weighted_score(breakdown: dict[str, int], weights: CareerWeights) -> int:
    """Weighted sum, summed in decimal so exact halves round up."""
    raw = sum(
        Decimal(str(weight)) * breakdown[key]
        for key, weight in (
            ("resume", weights.resume),
            ("social", weights.social),
            ("skill_path", weights.skill_path),
            ("activity", weights.activity),
        )
    )
    value = int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return max(SCORE_MIN, min(value, SCORE_MAX))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CareerScoreAggregator:
    def __init__(
        self,
        inputs: ScoreInputStore,
        scores: CareerScoreStore,
        weights: CareerWeights,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.inputs = inputs
        self.scores = scores
        self.weights = weights
        self._clock = clock
        self._locks = tuple(threading.Lock() for _ in range(LOCK_STRIPES))

    def _lock_for(self, candidate_id: str) -> threading.Lock:
        """Fixed pool of locks; a candidate always maps to the same stripe."""
        return self._locks[zlib.crc32(candidate_id.encode("utf-8")) % LOCK_STRIPES]

    def compute(self, signals: CandidateSignals) -> tuple[int, dict[str, int]]:
        """Pure part of a recompute: no I/O, no timestamps."""
        breakdown = signal_breakdown(signals)
        return weighted_score(breakdown, self.weights), breakdown

    def recompute(self, candidate_id: str) -> CareerScore:
        with self._lock_for(candidate_id):
            signals = self.inputs.read_signals(candidate_id)
            value, breakdown = self.compute(signals)

            computed_at = self._clock()
            previous = self.scores.get(candidate_id)
            if previous is not None and computed_at <= previous.computed_at:
                computed_at = previous.computed_at + timedelta(microseconds=1)

            score = CareerScore(
                candidate_id=candidate_id,
                value=value,
                computed_at=computed_at,
                weights_version=self.weights.version,
                breakdown=breakdown,
            )
            self.scores.save(score)

        log.info(
            "Career score %s → %d (resume=%d social=%d skill_path=%d activity=%d, weights %s)",
            candidate_id, value, breakdown["resume"], breakdown["social"],
            breakdown["skill_path"], breakdown["activity"], self.weights.version,
        )
        return score
