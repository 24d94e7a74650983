"""Per-student practice preferences."""

from datetime import datetime

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from adaptive_practice.db.base import Base
from adaptive_practice.db.types import UTCDateTime, utcnow


class StudentPreferences(Base):
    """Strategy weights for next-item selection (validated to sum to 100 before saving)."""

    __tablename__ = "student_preferences"

    student_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    weight_mistake: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_weakness: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_review: Mapped[int] = mapped_column(Integer, nullable=False)
    weight_advance: Mapped[int] = mapped_column(Integer, nullable=False)

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(), nullable=False, default=utcnow, onupdate=utcnow
    )
