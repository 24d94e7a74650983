"""Constants for learning engine algorithms."""

from enum import Enum


class Strategy(str, Enum):
    """Next-item selection strategies."""

    MISTAKE_REPEAT = "MISTAKE_REPEAT"
    REVIEW_DUE = "REVIEW_DUE"
    WEAKNESS_REMEDIATION = "WEAKNESS_REMEDIATION"
    SKILL_ADVANCE = "SKILL_ADVANCE"


# Deterministic fallback order when weights tie at zero or a candidate cannot be served
STRATEGY_PRIORITY: tuple[Strategy, ...] = (
    Strategy.MISTAKE_REPEAT,
    Strategy.REVIEW_DUE,
    Strategy.WEAKNESS_REMEDIATION,
    Strategy.SKILL_ADVANCE,
)


class SelectionSource(str, Enum):
    """Where a served item came from: a strategy or a fallback tier."""

    MISTAKE_REPEAT = "MISTAKE_REPEAT"
    REVIEW_DUE = "REVIEW_DUE"
    WEAKNESS_REMEDIATION = "WEAKNESS_REMEDIATION"
    SKILL_ADVANCE = "SKILL_ADVANCE"
    POOL = "POOL"
    AI_GENERATED = "AI_GENERATED"


SOURCE_LABELS: dict[SelectionSource, str] = {
    SelectionSource.MISTAKE_REPEAT: "Mistake review",
    SelectionSource.REVIEW_DUE: "Scheduled review",
    SelectionSource.WEAKNESS_REMEDIATION: "Weak spot practice",
    SelectionSource.SKILL_ADVANCE: "New skill",
    SelectionSource.POOL: "Question bank",
    SelectionSource.AI_GENERATED: "AI generated",
}


class MasteryLevel(str, Enum):
    """Reporting bands for mastery probability."""

    MASTER = "Master"
    PROFICIENT = "Proficient"
    NOVICE = "Novice"


class Difficulty(str, Enum):
    """Difficulty tier requested from the content generator."""

    EASY = "Easy"
    MEDIUM = "Medium"
    HARD = "Hard"


class RecordStep(str, Enum):
    """Sub-steps of recording an answer, in execution order."""

    MASTERY = "mastery"
    LEDGER = "ledger"
    DRILL = "drill"
    REVIEW = "review"
    EVENT = "event"


EXHAUSTED_MESSAGE = "We're preparing your next question. Please try again in a moment."
