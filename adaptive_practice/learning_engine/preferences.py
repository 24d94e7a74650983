"""Per-student strategy weight persistence."""

from sqlalchemy.orm import Session

from adaptive_practice.learning_engine.contracts import StrategyWeights
from adaptive_practice.models.preferences import StudentPreferences


def get_weights(db: Session, student_id: int) -> StrategyWeights:
    """Configured weights, or the defaults when the student has none."""
    prefs = db.get(StudentPreferences, student_id)
    if prefs is None:
        return StrategyWeights.default()
    return StrategyWeights(
        mistake=prefs.weight_mistake,
        weakness=prefs.weight_weakness,
        review=prefs.weight_review,
        advance=prefs.weight_advance,
    )


def set_weights(db: Session, student_id: int, weights: StrategyWeights) -> StrategyWeights:
    """Upsert weights. ``weights`` is already validated to sum to 100."""
    prefs = db.get(StudentPreferences, student_id)
    if prefs is None:
        prefs = StudentPreferences(student_id=student_id)
        db.add(prefs)
    prefs.weight_mistake = weights.mistake
    prefs.weight_weakness = weights.weakness
    prefs.weight_review = weights.review
    prefs.weight_advance = weights.advance
    db.commit()
    return weights
