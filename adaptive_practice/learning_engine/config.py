"""
Learning Engine Configuration - Central Constants Registry.

All constants used by learning algorithms MUST be defined here with proper provenance.
No magic numbers allowed in algorithm implementations.

Each constant includes:
- value: The actual constant value
- source: Citation (paper, algorithm reference, product decision)
- notes: Rationale and context
- validated: Whether the value has been validated against source
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SourcedValue:
    """
    A constant value with documented provenance.

    All learning algorithm constants must use this type to enforce documentation.
    """

    value: Any
    source: str
    notes: str = ""
    validated: bool = False

    def __post_init__(self):
        if not self.source or self.source.strip() == "":
            raise ValueError(f"SourcedValue must have non-empty source. Got: {self.source}")


# =============================================================================
# BKT (Bayesian Knowledge Tracing) Constants
# =============================================================================

BKT_EPSILON = SourcedValue(
    value=1e-4,
    source="Corbett & Anderson (1995) BKT; clamp width is a product decision",
    notes="Posterior mastery is clamped into [eps, 1 - eps] so that a run of slips or guesses "
    "can always move the estimate again. 1e-4 keeps the clamp invisible at 4 decimal places.",
    validated=True,
)

BKT_MIN_PROB = SourcedValue(
    value=BKT_EPSILON.value,
    source="Derived from BKT_EPSILON",
    notes="Lower clamp for mastery probability.",
    validated=True,
)

BKT_MAX_PROB = SourcedValue(
    value=1.0 - BKT_EPSILON.value,
    source="Derived from BKT_EPSILON",
    notes="Upper clamp for mastery probability.",
    validated=True,
)

BKT_STABILITY_EPSILON = SourcedValue(
    value=1e-12,
    source="Standard numerical practice for probability computations",
    notes="Denominators below this are treated as zero and the prior is returned unchanged.",
    validated=True,
)

# =============================================================================
# SM-2 (Spaced Repetition) Constants
# =============================================================================

SM2_INITIAL_EASE = SourcedValue(
    value=2.5,
    source="SuperMemo SM-2 (Wozniak, 1990)",
    notes="Ease factor assigned to a newly scheduled item.",
    validated=True,
)

SM2_MIN_EASE = SourcedValue(
    value=1.3,
    source="SuperMemo SM-2 (Wozniak, 1990)",
    notes="Ease factor floor; items below this are reviewed too often to be useful.",
    validated=True,
)

SM2_FAIL_EASE_PENALTY = SourcedValue(
    value=0.2,
    source="Product decision; mirrors Anki's lapse penalty",
    notes="Ease is reduced by this amount on every failed review.",
    validated=False,
)

SM2_PASSING_QUALITY = SourcedValue(
    value=3,
    source="SuperMemo SM-2 (Wozniak, 1990)",
    notes="Quality scores at or above this count as a successful recall.",
    validated=True,
)

SM2_MIN_INTERVAL_DAYS = SourcedValue(
    value=10 / 1440,  # 10 minutes
    source="Product decision: relearning step equals the drill-mode window",
    notes="Interval after a failed review; a fraction of a day so the item resurfaces in the same session.",
    validated=False,
)

SM2_FIRST_INTERVAL_DAYS = SourcedValue(
    value=1.0,
    source="SuperMemo SM-2 (Wozniak, 1990)",
    notes="Interval after the first successful repetition.",
    validated=True,
)

SM2_SECOND_INTERVAL_DAYS = SourcedValue(
    value=6.0,
    source="SuperMemo SM-2 (Wozniak, 1990)",
    notes="Interval after the second successful repetition.",
    validated=True,
)

SM2_MAX_INTERVAL_DAYS = SourcedValue(
    value=36500.0,  # 100 years
    source="Anki maximum interval default",
    notes="Upper bound on any interval so repeated perfect reviews cannot overflow the due date.",
    validated=False,
)

# =============================================================================
# Quality Mapper Constants (attempt telemetry -> SM-2 quality)
# =============================================================================

QUALITY_FAST_ANSWER_MS = SourcedValue(
    value=15000,  # 15 seconds
    source="Temporary heuristic - TO BE CALIBRATED from actual data",
    notes="Correct answers faster than this map to quality 5 (perfect recall).",
    validated=False,
)

QUALITY_SLOW_ANSWER_MS = SourcedValue(
    value=90000,  # 90 seconds
    source="Temporary heuristic - TO BE CALIBRATED from actual data",
    notes="Correct answers slower than this map to quality 3 (recalled with difficulty).",
    validated=False,
)

QUALITY_INCORRECT = SourcedValue(
    value=1,
    source="SuperMemo SM-2 grade scale",
    notes="All incorrect answers map to 1 (incorrect, remembered once shown).",
    validated=True,
)

QUALITY_CORRECT_DEFAULT = SourcedValue(
    value=4,
    source="SuperMemo SM-2 grade scale",
    notes="Correct answer with no timing signal: correct after some hesitation.",
    validated=True,
)

TELEMETRY_MAX_DURATION_MS = SourcedValue(
    value=3600000,  # 1 hour
    source="Sanity check: questions should not take > 1 hour",
    notes="Durations above this are ignored for quality mapping.",
    validated=False,
)

# =============================================================================
# Strategy Selection Constants
# =============================================================================

READINESS_THRESHOLD = SourcedValue(
    value=0.6,
    source="Product decision: prerequisite must be more likely known than not, with margin",
    notes="A prerequisite at or above this mastery is 'ready'.",
    validated=False,
)

MASTERED_THRESHOLD = SourcedValue(
    value=0.95,
    source="Corbett & Anderson (1995) conventional BKT mastery criterion",
    notes="Topics at or above this mastery are no longer remediation candidates.",
    validated=True,
)

DRILL_WINDOW_SECONDS = SourcedValue(
    value=600,  # 10 minutes
    source="Product decision: drill mode lasts for one short practice burst",
    notes="Drill flag expiry after an incorrect answer.",
    validated=False,
)

DRILL_WEIGHT_BOOST = SourcedValue(
    value=2.0,
    source="Product decision",
    notes="Multiplier on the mistake-repeat weight while drill mode is active for its topic.",
    validated=False,
)

DEFAULT_STRATEGY_WEIGHTS = SourcedValue(
    value={"mistake": 30, "weakness": 30, "review": 20, "advance": 20},
    source="Product default for new learners",
    notes="Used when a student has not configured strategy weights.",
    validated=False,
)

# =============================================================================
# Generation & Reporting Constants
# =============================================================================

DIFFICULTY_EASY_BELOW = SourcedValue(
    value=0.4,
    source="Product decision",
    notes="Mastery below this asks the generator for an Easy item.",
    validated=False,
)

DIFFICULTY_HARD_FROM = SourcedValue(
    value=0.7,
    source="Product decision",
    notes="Mastery at or above this asks the generator for a Hard item.",
    validated=False,
)

DIFFICULTY_VALUES = SourcedValue(
    value={"Easy": 0.3, "Medium": 0.5, "Hard": 0.8},
    source="Item difficulty scale of the question bank",
    notes="Numeric difficulty stored on catalogued generated items.",
    validated=True,
)

MASTERY_LEVEL_MASTER = SourcedValue(
    value=0.8,
    source="Dashboard level bands",
    notes="Mastery at or above this is reported as 'Master'.",
    validated=False,
)

MASTERY_LEVEL_PROFICIENT = SourcedValue(
    value=0.5,
    source="Dashboard level bands",
    notes="Mastery at or above this (and below Master) is reported as 'Proficient'.",
    validated=False,
)

PREDICTION_BASE_CONFIDENCE = SourcedValue(
    value=0.3,
    source="Score prediction heuristic",
    notes="Confidence with zero practice history.",
    validated=False,
)

PREDICTION_CONFIDENCE_PER_EVENT = SourcedValue(
    value=0.01,
    source="Score prediction heuristic",
    notes="Confidence gained per recorded exercise event.",
    validated=False,
)

PREDICTION_MAX_CONFIDENCE = SourcedValue(
    value=0.95,
    source="Score prediction heuristic",
    notes="Confidence cap.",
    validated=False,
)
