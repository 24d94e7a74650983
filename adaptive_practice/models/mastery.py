"""Per-student mastery state models."""

from datetime import datetime

from sqlalchemy import Float, ForeignKey, Index, Integer
from sqlalchemy.orm import Mapped, mapped_column

from adaptive_practice.db.base import Base
from adaptive_practice.db.types import UTCDateTime, utcnow


class MasteryState(Base):
    """
    Per-student per-topic mastery probability.

    Created lazily on the first observation (seeded with the topic's p_init),
    overwritten on every observation, never deleted. ``version`` guards against
    lost updates from concurrent writers.
    """

    __tablename__ = "mastery_states"

    student_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )
    p_mastery: Mapped[float] = mapped_column(Float, nullable=False)
    n_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (Index("idx_mastery_student_p", "student_id", "p_mastery"),)
