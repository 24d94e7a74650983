"""
SRS Service Layer - persistence of SM-2 review schedules.

The due queue is the (student_id, due_at) index on ``review_schedules``: both
``due_items`` and ``upcoming`` are ordered range scans on it.
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from adaptive_practice.db.types import utcnow
from adaptive_practice.learning_engine.srs.sm2 import SM2State, schedule
from adaptive_practice.models.review import ReviewSchedule

logger = logging.getLogger(__name__)


def _to_state(entry: ReviewSchedule) -> SM2State:
    return SM2State(
        repetition_count=entry.repetition_count,
        interval_days=entry.interval_days,
        ease_factor=entry.ease_factor,
        due_at=entry.due_at,
        last_reviewed_at=entry.last_reviewed_at,
    )


def get_entry(db: Session, student_id: int, item_id: int) -> ReviewSchedule | None:
    return db.get(ReviewSchedule, (student_id, item_id))


def reschedule(
    db: Session,
    student_id: int,
    item_id: int,
    topic_id: int,
    quality: int,
    now: datetime | None = None,
) -> ReviewSchedule:
    """
    Apply one review to the (student, item) schedule, creating it if needed.

    Flushed, not committed. A concurrent overwrite surfaces as
    ``StaleDataError`` via the version column.
    """
    now = now or utcnow()
    entry = get_entry(db, student_id, item_id)
    new_state = schedule(_to_state(entry) if entry is not None else None, quality, now)

    if entry is None:
        entry = ReviewSchedule(student_id=student_id, item_id=item_id)
        db.add(entry)

    entry.topic_id = topic_id
    entry.repetition_count = new_state.repetition_count
    entry.interval_days = new_state.interval_days
    entry.ease_factor = new_state.ease_factor
    entry.due_at = new_state.due_at
    entry.last_reviewed_at = new_state.last_reviewed_at
    db.flush()

    logger.debug(
        f"Rescheduled item {item_id} for student {student_id}: q={quality}, "
        f"reps={entry.repetition_count}, interval={entry.interval_days:.3f}d, ease={entry.ease_factor:.2f}"
    )
    return entry


def due_items(db: Session, student_id: int, now: datetime | None = None, limit: int = 50) -> list[ReviewSchedule]:
    """Entries with ``due_at <= now``, earliest first (ties by item id)."""
    now = now or utcnow()
    result = db.execute(
        select(ReviewSchedule)
        .where(ReviewSchedule.student_id == student_id, ReviewSchedule.due_at <= now)
        .order_by(ReviewSchedule.due_at, ReviewSchedule.item_id)
        .limit(limit)
    )
    return list(result.scalars().all())


def upcoming(db: Session, student_id: int, limit: int = 50) -> list[ReviewSchedule]:
    """All entries for the student ordered by due time."""
    result = db.execute(
        select(ReviewSchedule)
        .where(ReviewSchedule.student_id == student_id)
        .order_by(ReviewSchedule.due_at, ReviewSchedule.item_id)
        .limit(limit)
    )
    return list(result.scalars().all())


def days_since_review(db: Session, student_id: int, topic_id: int, now: datetime | None = None) -> int | None:
    """Whole days since the student last reviewed any item of the topic, or None if never."""
    now = now or utcnow()
    last = db.execute(
        select(func.max(ReviewSchedule.last_reviewed_at)).where(
            ReviewSchedule.student_id == student_id, ReviewSchedule.topic_id == topic_id
        )
    ).scalar_one_or_none()
    if last is None:
        return None
    return max(0, (now - last).days)
