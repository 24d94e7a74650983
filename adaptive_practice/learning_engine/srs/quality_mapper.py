"""
Quality mapper - converts practice attempts to SM-2 quality scores (0-5).

Mapping Rules:
- Incorrect answer -> 1
- Correct but slow -> 3
- Correct and fast -> 5
- Correct otherwise (or no timing) -> 4

Thresholds are read from ``learning_engine.config`` by default and can be
overridden per call so the policy stays out of the scheduler.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from adaptive_practice.learning_engine.config import (
    QUALITY_CORRECT_DEFAULT,
    QUALITY_FAST_ANSWER_MS,
    QUALITY_INCORRECT,
    QUALITY_SLOW_ANSWER_MS,
    TELEMETRY_MAX_DURATION_MS,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QualityPolicy:
    fast_answer_ms: int = QUALITY_FAST_ANSWER_MS.value
    slow_answer_ms: int = QUALITY_SLOW_ANSWER_MS.value

    def __post_init__(self):
        if self.fast_answer_ms > self.slow_answer_ms:
            raise ValueError("fast_answer_ms must not exceed slow_answer_ms")


DEFAULT_POLICY = QualityPolicy()


def map_attempt_to_quality(
    correct: bool,
    duration_ms: Optional[int] = None,
    policy: QualityPolicy = DEFAULT_POLICY,
) -> int:
    """
    Map a practice attempt to an SM-2 quality score.

    Args:
        correct: Whether the answer was correct
        duration_ms: Time spent on the item (milliseconds), if known
        policy: Speed thresholds

    Returns:
        Quality 1, 3, 4 or 5
    """
    if not correct:
        return QUALITY_INCORRECT.value

    if duration_ms is None:
        return QUALITY_CORRECT_DEFAULT.value

    if duration_ms > policy.slow_answer_ms:
        return 3

    if duration_ms < policy.fast_answer_ms:
        return 5

    return QUALITY_CORRECT_DEFAULT.value


def validate_duration(duration_ms: Optional[int]) -> Tuple[Optional[int], list[str]]:
    """
    Sanitize attempt duration before it is used for quality mapping.

    Negative or implausibly long durations are dropped (treated as unknown).

    Returns:
        Tuple of (cleaned_duration_ms, warnings)
    """
    warnings = []
    if duration_ms is None:
        return None, warnings
    if duration_ms < 0:
        warnings.append(f"Negative duration_ms: {duration_ms}")
        return None, warnings
    if duration_ms > TELEMETRY_MAX_DURATION_MS.value:
        warnings.append(f"Suspiciously long duration_ms: {duration_ms}")
        return None, warnings
    return duration_ms, warnings


def explain_quality(quality: int, duration_ms: Optional[int] = None) -> str:
    """Human-readable explanation of a quality score."""
    if quality < 3:
        return "Incorrect answer"
    if quality == 3:
        return f"Correct but slow ({duration_ms / 1000:.0f}s)" if duration_ms else "Correct but slow"
    if quality == 5:
        return f"Correct and fast ({duration_ms / 1000:.0f}s)" if duration_ms is not None else "Correct and fast"
    return "Correct answer"
