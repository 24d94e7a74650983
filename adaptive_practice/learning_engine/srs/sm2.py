"""
SM-2 scheduling math - pure functions.

SuperMemo SM-2 (Wozniak, 1990) with one deviation: a failed review resets
the repetition count and reschedules after a short relearning step
(``SM2_MIN_INTERVAL_DAYS``) instead of one day, and costs ease.

Quality scale (0-5):
- 0-2: failed recall
- 3: recalled with serious difficulty
- 4: recalled after hesitation
- 5: perfect recall
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from adaptive_practice.learning_engine.config import (
    SM2_FAIL_EASE_PENALTY,
    SM2_FIRST_INTERVAL_DAYS,
    SM2_INITIAL_EASE,
    SM2_MAX_INTERVAL_DAYS,
    SM2_MIN_EASE,
    SM2_MIN_INTERVAL_DAYS,
    SM2_PASSING_QUALITY,
    SM2_SECOND_INTERVAL_DAYS,
)

MIN_QUALITY = 0
MAX_QUALITY = 5


@dataclass(frozen=True)
class SM2State:
    """Scheduling state of one item for one student."""

    repetition_count: int
    interval_days: float
    ease_factor: float
    due_at: datetime
    last_reviewed_at: datetime


def ease_after(ease_factor: float, quality: int) -> float:
    """SM-2 ease update, floored at the minimum ease."""
    if quality < SM2_PASSING_QUALITY.value:
        return max(SM2_MIN_EASE.value, ease_factor - SM2_FAIL_EASE_PENALTY.value)
    miss = MAX_QUALITY - quality
    return max(SM2_MIN_EASE.value, ease_factor + (0.1 - miss * (0.08 + miss * 0.02)))


def schedule(prev: SM2State | None, quality: int, now: datetime) -> SM2State:
    """
    Compute the next scheduling state after a review.

    Args:
        prev: Previous state, or None for an item seen for the first time
        quality: Recall quality 0-5
        now: Review time (timezone-aware)

    Returns:
        New SM2State with ``due_at = now + interval_days``

    Raises:
        ValueError: If quality is outside 0-5
    """
    if not (MIN_QUALITY <= quality <= MAX_QUALITY):
        raise ValueError(f"quality must be in [{MIN_QUALITY}, {MAX_QUALITY}], got {quality}")

    ease = prev.ease_factor if prev is not None else SM2_INITIAL_EASE.value
    repetitions = prev.repetition_count if prev is not None else 0
    previous_interval = prev.interval_days if prev is not None else 0.0

    new_ease = ease_after(ease, quality)

    if quality < SM2_PASSING_QUALITY.value:
        repetitions = 0
        interval = SM2_MIN_INTERVAL_DAYS.value
    else:
        repetitions += 1
        if repetitions == 1:
            interval = SM2_FIRST_INTERVAL_DAYS.value
        elif repetitions == 2:
            interval = SM2_SECOND_INTERVAL_DAYS.value
        else:
            interval = min(SM2_MAX_INTERVAL_DAYS.value, previous_interval * new_ease)

    return SM2State(
        repetition_count=repetitions,
        interval_days=interval,
        ease_factor=new_ease,
        due_at=now + timedelta(days=interval),
        last_reviewed_at=now,
    )
