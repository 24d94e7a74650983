"""Typed contracts for learning engine inputs/outputs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from adaptive_practice.learning_engine.config import DEFAULT_STRATEGY_WEIGHTS
from adaptive_practice.learning_engine.constants import (
    SOURCE_LABELS,
    Difficulty,
    RecordStep,
    SelectionSource,
    Strategy,
)

# ============================================================================
# Strategy Weights
# ============================================================================


class StrategyWeights(BaseModel):
    """Per-student strategy weights. Non-negative integers summing to 100."""

    model_config = ConfigDict(frozen=True)

    mistake: int = Field(ge=0, le=100)
    weakness: int = Field(ge=0, le=100)
    review: int = Field(ge=0, le=100)
    advance: int = Field(ge=0, le=100)

    @model_validator(mode="after")
    def check_total(self) -> "StrategyWeights":
        total = self.mistake + self.weakness + self.review + self.advance
        if total != 100:
            raise ValueError(f"strategy weights must sum to 100, got {total}")
        return self

    @classmethod
    def default(cls) -> "StrategyWeights":
        return cls(**DEFAULT_STRATEGY_WEIGHTS.value)

    def for_strategy(self, strategy: Strategy) -> int:
        return {
            Strategy.MISTAKE_REPEAT: self.mistake,
            Strategy.WEAKNESS_REMEDIATION: self.weakness,
            Strategy.REVIEW_DUE: self.review,
            Strategy.SKILL_ADVANCE: self.advance,
        }[strategy]


# ============================================================================
# Selection internals
# ============================================================================


@dataclass(frozen=True)
class DueEntry:
    """A review schedule entry that is due."""

    item_id: int
    topic_id: int
    due_at: datetime


@dataclass
class SelectionSnapshot:
    """
    Read-only view of one student's state used for a single selection.

    Built once per ``select_next`` call; the selector never touches storage.
    """

    student_id: int
    weights: StrategyWeights
    now: datetime
    # topic_id -> current mastery (attempted topics only)
    mastery: dict[int, float] = field(default_factory=dict)
    # (topic_id, wrong count), highest first, ties by ascending id
    wrong_topics: list[tuple[int, int]] = field(default_factory=list)
    # topic_id -> most-missed item id in that topic
    top_wrong_item_by_topic: dict[int, int] = field(default_factory=dict)
    drill_topic_id: int | None = None
    due: list[DueEntry] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for logging."""
        return {
            "student_id": self.student_id,
            "weights": self.weights.model_dump(),
            "attempted_topics": len(self.mastery),
            "wrong_topics": self.wrong_topics[:5],
            "drill_topic_id": self.drill_topic_id,
            "due": len(self.due),
        }


@dataclass(frozen=True)
class Candidate:
    """At most one per strategy per selection."""

    strategy: Strategy
    topic_id: int
    item_id: int | None = None
    reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "strategy": self.strategy.value,
            "topic_id": self.topic_id,
            "item_id": self.item_id,
            "reason": self.reason,
        }


# ============================================================================
# Items
# ============================================================================


class ItemView(BaseModel):
    """An item as served to the learner."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    topic_id: int | None
    stem: str
    options: list[str]
    correct_answer: str | None = None
    rationale: str | None = None
    difficulty: float
    source: str


class GeneratedItem(BaseModel):
    """An item produced by the content generator or fetched from the item source."""

    stem: str = Field(min_length=1)
    options: list[str] = Field(default_factory=list)
    correct_answer: str | None = None
    rationale: str | None = None
    difficulty: float | None = Field(default=None, ge=0.0, le=1.0)


class GenerationContext(BaseModel):
    """What the content generator is told about the student's weakest topic."""

    student_id: int
    topic_id: int
    topic_name: str
    category: str
    mastery: float
    common_mistakes: str
    last_wrong_summary: str
    days_since_review: int | None = None
    difficulty: Difficulty


# ============================================================================
# Results
# ============================================================================


class Selection(BaseModel):
    """A served item and why it was chosen."""

    item: ItemView
    source: SelectionSource
    label: str
    topic_id: int | None
    reason: str = ""

    @classmethod
    def build(cls, item: ItemView, source: SelectionSource, reason: str = "") -> "Selection":
        return cls(
            item=item,
            source=source,
            label=SOURCE_LABELS[source],
            topic_id=item.topic_id,
            reason=reason,
        )


class NoCandidate(BaseModel):
    """No item could be produced this time. A result, not an error."""

    retryable: bool = True
    message: str


class StepResult(BaseModel):
    """Outcome of one ``record`` sub-step."""

    status: Literal["ok", "skipped"]
    attempts: int
    error: str | None = None


class RecordOutcome(BaseModel):
    """Result of recording one answer, with per-step status."""

    student_id: int
    item_id: int
    topic_id: int
    correct: bool
    quality: int
    p_mastery: float | None = None
    steps: dict[RecordStep, StepResult] = Field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return all(step.status == "ok" for step in self.steps.values())
