"""
BKT Service Layer - Manages mastery state updates and persistence.

Handles:
- Topic registration with parameter validation
- Looking up topic parameters (no silent defaults for unknown topics)
- Creating/updating per-student mastery state
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from adaptive_practice.core.app_exceptions import ValidationError
from adaptive_practice.db.types import utcnow
from adaptive_practice.learning_engine.bkt.core import BKTParams, update_mastery, validate_bkt_params
from adaptive_practice.models.mastery import MasteryState
from adaptive_practice.models.topic import Topic, TopicPrerequisite

logger = logging.getLogger(__name__)


def params_for_topic(topic: Topic) -> BKTParams:
    return BKTParams(
        p_init=topic.p_init,
        p_transit=topic.p_transit,
        p_guess=topic.p_guess,
        p_slip=topic.p_slip,
    )


def register_topic(
    db: Session,
    topic_id: int,
    name: str,
    params: BKTParams,
    category: str = "math",
    prerequisite_ids: list[int] | None = None,
) -> Topic:
    """
    Create or replace a topic and its prerequisite edges.

    Raises:
        ValidationError: If the BKT parameters are not usable
    """
    is_valid, error = validate_bkt_params(params)
    if not is_valid:
        raise ValidationError(f"Invalid BKT parameters for topic {topic_id}: {error}")
    if prerequisite_ids and topic_id in prerequisite_ids:
        raise ValidationError(f"Topic {topic_id} cannot be its own prerequisite")

    topic = db.get(Topic, topic_id)
    if topic is None:
        topic = Topic(id=topic_id)
        db.add(topic)

    topic.name = name
    topic.category = category
    topic.p_init = params.p_init
    topic.p_transit = params.p_transit
    topic.p_guess = params.p_guess
    topic.p_slip = params.p_slip
    topic.prerequisites = [
        TopicPrerequisite(prerequisite_id=prereq_id) for prereq_id in sorted(set(prerequisite_ids or []))
    ]
    db.flush()
    return topic


def get_topic(db: Session, topic_id: int) -> Topic:
    """
    Fetch a topic.

    Raises:
        ValidationError: If the topic is unknown
    """
    topic = db.get(Topic, topic_id)
    if topic is None:
        raise ValidationError(f"Unknown topic {topic_id}", details={"topic_id": topic_id})
    return topic


def get_student_mastery(db: Session, student_id: int) -> dict[int, float]:
    """Current mastery for every topic the student has attempted."""
    rows = db.execute(
        select(MasteryState.topic_id, MasteryState.p_mastery).where(MasteryState.student_id == student_id)
    ).all()
    return {topic_id: p for topic_id, p in rows}


def get_student_states(db: Session, student_id: int) -> list[MasteryState]:
    result = db.execute(
        select(MasteryState).where(MasteryState.student_id == student_id).order_by(MasteryState.topic_id)
    )
    return list(result.scalars().all())


def count_topics(db: Session) -> int:
    return db.execute(select(func.count()).select_from(Topic)).scalar_one()


def update_from_attempt(
    db: Session,
    student_id: int,
    topic: Topic,
    correct: bool,
    now: datetime | None = None,
) -> tuple[float, dict]:
    """
    Apply one observation to the student's mastery state for ``topic``.

    The state is created lazily, seeded with the topic's ``p_init``. The write
    is flushed, not committed; the version column turns a concurrent
    overwrite into ``StaleDataError`` at flush time.

    Returns:
        Tuple of (new_mastery, metadata)
    """
    now = now or utcnow()
    params = params_for_topic(topic)

    state = db.get(MasteryState, (student_id, topic.id))
    if state is None:
        state = MasteryState(
            student_id=student_id,
            topic_id=topic.id,
            p_mastery=params.p_init,
            n_attempts=0,
            created_at=now,
            updated_at=now,
        )
        db.add(state)

    p_new, metadata = update_mastery(state.p_mastery, correct, params)

    state.p_mastery = p_new
    state.n_attempts += 1
    state.updated_at = now
    db.flush()

    logger.debug(
        f"Updated mastery for student {student_id}, topic {topic.id}: "
        f"{metadata['p_L_prior']:.4f} -> {p_new:.4f} ({metadata['observation']})"
    )
    return p_new, metadata
