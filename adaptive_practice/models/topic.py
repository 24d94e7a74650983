"""Topic (knowledge point) models."""

from datetime import datetime

from sqlalchemy import Float, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from adaptive_practice.db.base import Base
from adaptive_practice.db.types import UTCDateTime, utcnow


class Topic(Base):
    """
    A knowledge point with its BKT parameters.

    Parameters are externally fitted constants:
    - p_init: Prior probability of mastery
    - p_transit: Probability of learning per opportunity
    - p_guess: Probability of a correct answer without mastery
    - p_slip: Probability of a wrong answer despite mastery
    """

    __tablename__ = "topics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[str] = mapped_column(String(64), nullable=False, default="math")

    p_init: Mapped[float] = mapped_column(Float, nullable=False, comment="Prior probability of mastery")
    p_transit: Mapped[float] = mapped_column(Float, nullable=False, comment="Probability of learning")
    p_guess: Mapped[float] = mapped_column(Float, nullable=False, comment="Probability of guess")
    p_slip: Mapped[float] = mapped_column(Float, nullable=False, comment="Probability of slip")

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)

    prerequisites: Mapped[list["TopicPrerequisite"]] = relationship(
        back_populates="topic",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def prerequisite_ids(self) -> list[int]:
        return sorted(p.prerequisite_id for p in self.prerequisites)


class TopicPrerequisite(Base):
    """
    Prerequisite edge: ``prerequisite_id`` must be ready before ``topic_id``.

    ``prerequisite_id`` has no foreign key: curriculum imports may
    reference topics that are not loaded yet.
    """

    __tablename__ = "topic_prerequisites"

    topic_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), primary_key=True
    )
    prerequisite_id: Mapped[int] = mapped_column(Integer, primary_key=True)

    topic: Mapped[Topic] = relationship(back_populates="prerequisites")

    __table_args__ = (Index("idx_topic_prereq_prerequisite", "prerequisite_id"),)
