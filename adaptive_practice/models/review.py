"""Spaced-repetition schedule models."""

from datetime import datetime

from sqlalchemy import Float, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from adaptive_practice.db.base import Base
from adaptive_practice.db.types import UTCDateTime


class ReviewSchedule(Base):
    """
    SM-2 state for one (student, item) pair.

    The (student_id, due_at) index is the due queue: "what is due now" is a
    range scan on it, never a scan of the exercise history.
    """

    __tablename__ = "review_schedules"

    student_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    item_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int] = mapped_column(Integer, nullable=False)

    due_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    interval_days: Mapped[float] = mapped_column(Float, nullable=False)
    repetition_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ease_factor: Mapped[float] = mapped_column(Float, nullable=False, default=2.5)
    last_reviewed_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        Index("idx_review_student_due", "student_id", "due_at"),
        Index("idx_review_student_topic", "student_id", "topic_id"),
    )
