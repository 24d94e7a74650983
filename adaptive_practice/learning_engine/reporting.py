"""Read-only mastery reporting for dashboards."""

from pydantic import BaseModel
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from adaptive_practice.learning_engine.bkt.service import count_topics, get_student_states
from adaptive_practice.learning_engine.config import (
    MASTERY_LEVEL_MASTER,
    MASTERY_LEVEL_PROFICIENT,
    PREDICTION_BASE_CONFIDENCE,
    PREDICTION_CONFIDENCE_PER_EVENT,
    PREDICTION_MAX_CONFIDENCE,
)
from adaptive_practice.learning_engine.constants import MasteryLevel
from adaptive_practice.models.event import ExerciseEvent
from adaptive_practice.models.topic import Topic


class TopicMastery(BaseModel):
    topic_id: int
    topic_name: str
    p_mastery: float
    n_attempts: int
    level: MasteryLevel


class ScorePrediction(BaseModel):
    student_id: int
    predicted_score: int
    confidence: float
    coverage: float
    practice_count: int


def mastery_level(p: float) -> MasteryLevel:
    if p >= MASTERY_LEVEL_MASTER.value:
        return MasteryLevel.MASTER
    if p >= MASTERY_LEVEL_PROFICIENT.value:
        return MasteryLevel.PROFICIENT
    return MasteryLevel.NOVICE


def mastery_overview(db: Session, student_id: int) -> list[TopicMastery]:
    """Mastery of every topic the student has attempted, by topic id."""
    states = get_student_states(db, student_id)
    if not states:
        return []
    names = dict(
        db.execute(select(Topic.id, Topic.name).where(Topic.id.in_([s.topic_id for s in states]))).all()
    )
    return [
        TopicMastery(
            topic_id=state.topic_id,
            topic_name=names.get(state.topic_id, ""),
            p_mastery=round(state.p_mastery, 4),
            n_attempts=state.n_attempts,
            level=mastery_level(state.p_mastery),
        )
        for state in states
    ]


def predict_score(db: Session, student_id: int) -> ScorePrediction:
    """
    Predicted score out of 100 with a confidence in [0, 0.95].

    predicted = mean mastery over attempted topics x 100
    confidence = min(0.95, 0.3 + 0.01 x events), scaled by (0.5 + 0.5 x coverage)
    """
    states = get_student_states(db, student_id)
    practice_count = db.execute(
        select(func.count()).select_from(ExerciseEvent).where(ExerciseEvent.student_id == student_id)
    ).scalar_one()

    predicted = 0.0
    if states:
        predicted = sum(s.p_mastery for s in states) / len(states) * 100

    confidence = min(
        PREDICTION_MAX_CONFIDENCE.value,
        PREDICTION_BASE_CONFIDENCE.value + practice_count * PREDICTION_CONFIDENCE_PER_EVENT.value,
    )
    coverage = 0.0
    total_topics = count_topics(db)
    if states and total_topics > 0:
        coverage = len(states) / total_topics
        confidence = min(PREDICTION_MAX_CONFIDENCE.value, confidence * (0.5 + 0.5 * coverage))

    return ScorePrediction(
        student_id=student_id,
        predicted_score=round(predicted),
        confidence=round(confidence, 2),
        coverage=round(coverage, 4),
        practice_count=practice_count,
    )
