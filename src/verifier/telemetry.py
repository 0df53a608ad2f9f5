from __future__ import annotations

import datetime as dt
import hashlib
import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GradingTelemetry:
    exercise_slug: str | None
    strategy: str
    was_correct: bool
    fallback_used: bool
    fallback_reason: str | None
    matched_alternative: str | None
    user_answer_hash: str
    timestamp: dt.datetime


def hash_answer(answer: str) -> str:
    """Anonymized, stable fingerprint of a learner answer."""
    return hashlib.sha256((answer or "").encode("utf-8")).hexdigest()[:16]


def create_telemetry_entry(
    *,
    exercise_slug: str | None,
    strategy: str,
    was_correct: bool,
    fallback_used: bool,
    fallback_reason: str | None,
    matched_alternative: str | None,
    user_answer: str,
) -> GradingTelemetry:
    return GradingTelemetry(
        exercise_slug=exercise_slug,
        strategy=strategy,
        was_correct=was_correct,
        fallback_used=fallback_used,
        fallback_reason=fallback_reason,
        matched_alternative=matched_alternative,
        user_answer_hash=hash_answer(user_answer),
        timestamp=dt.datetime.now(dt.timezone.utc),
    )


def log_grading_telemetry(entry: GradingTelemetry) -> None:
    logger.info(
        "grading_telemetry slug=%s strategy=%s correct=%s fallback=%s reason=%s alt=%s answer_hash=%s ts=%s",
        entry.exercise_slug,
        entry.strategy,
        entry.was_correct,
        entry.fallback_used,
        entry.fallback_reason,
        entry.matched_alternative is not None,
        entry.user_answer_hash,
        entry.timestamp.isoformat(),
    )
