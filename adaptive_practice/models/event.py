"""Exercise event log (append-only)."""

from datetime import datetime

from sqlalchemy import Boolean, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from adaptive_practice.db.base import Base
from adaptive_practice.db.types import UTCDateTime, utcnow


class ExerciseEvent(Base):
    """One answered item. Rows are only ever inserted."""

    __tablename__ = "exercise_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    student_id: Mapped[int] = mapped_column(Integer, nullable=False)
    item_id: Mapped[int] = mapped_column(Integer, nullable=False)
    topic_id: Mapped[int] = mapped_column(Integer, nullable=False)
    correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    duration_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)
    quality: Mapped[int] = mapped_column(Integer, nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_events_student_time", "student_id", "occurred_at"),
        Index("idx_events_student_item", "student_id", "item_id"),
    )
