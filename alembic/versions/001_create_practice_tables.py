"""Create practice engine tables

Revision ID: 001_practice_tables
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_practice_tables"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Topics and prerequisite edges
    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("category", sa.String(64), nullable=False, server_default="math"),
        sa.Column("p_init", sa.Float(), nullable=False, comment="Prior probability of mastery"),
        sa.Column("p_transit", sa.Float(), nullable=False, comment="Probability of learning"),
        sa.Column("p_guess", sa.Float(), nullable=False, comment="Probability of guess"),
        sa.Column("p_slip", sa.Float(), nullable=False, comment="Probability of slip"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint("p_init > 0 AND p_init < 1", name="ck_topics_p_init_range"),
        sa.CheckConstraint("p_transit > 0 AND p_transit < 1", name="ck_topics_p_transit_range"),
        sa.CheckConstraint("p_guess > 0 AND p_guess < 1", name="ck_topics_p_guess_range"),
        sa.CheckConstraint("p_slip > 0 AND p_slip < 1", name="ck_topics_p_slip_range"),
    )

    op.create_table(
        "topic_prerequisites",
        sa.Column("topic_id", sa.Integer(), primary_key=True),
        sa.Column("prerequisite_id", sa.Integer(), primary_key=True),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="CASCADE"),
    )
    op.create_index("idx_topic_prereq_prerequisite", "topic_prerequisites", ["prerequisite_id"])

    # Items
    op.create_table(
        "items",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("topic_id", sa.Integer(), nullable=True),
        sa.Column("stem", sa.Text(), nullable=False),
        sa.Column("options", sa.JSON(), nullable=False),
        sa.Column("correct_answer", sa.String(255), nullable=True),
        sa.Column("rationale", sa.Text(), nullable=True),
        sa.Column("difficulty", sa.Float(), nullable=False, server_default="0.5"),
        sa.Column("source", sa.String(32), nullable=False, server_default="LOCAL"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="SET NULL"),
    )
    op.create_index("idx_items_topic", "items", ["topic_id", "id"])

    # Mastery state (optimistic version column)
    op.create_table(
        "mastery_states",
        sa.Column("student_id", sa.Integer(), primary_key=True),
        sa.Column("topic_id", sa.Integer(), primary_key=True),
        sa.Column("p_mastery", sa.Float(), nullable=False),
        sa.Column("n_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["topic_id"], ["topics.id"], ondelete="CASCADE"),
        sa.CheckConstraint("p_mastery > 0 AND p_mastery < 1", name="ck_mastery_p_range"),
    )
    op.create_index("idx_mastery_student_p", "mastery_states", ["student_id", "p_mastery"])

    # Review schedules (the due queue is the student/due_at index)
    op.create_table(
        "review_schedules",
        sa.Column("student_id", sa.Integer(), primary_key=True),
        sa.Column("item_id", sa.Integer(), primary_key=True),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.Column("due_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("interval_days", sa.Float(), nullable=False),
        sa.Column("repetition_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ease_factor", sa.Float(), nullable=False, server_default="2.5"),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.CheckConstraint("ease_factor >= 1.3", name="ck_review_ease_floor"),
    )
    op.create_index("idx_review_student_due", "review_schedules", ["student_id", "due_at"])
    op.create_index("idx_review_student_topic", "review_schedules", ["student_id", "topic_id"])

    # Exercise events (append-only)
    op.create_table(
        "exercise_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("item_id", sa.Integer(), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=False),
        sa.Column("correct", sa.Boolean(), nullable=False),
        sa.Column("duration_ms", sa.Integer(), nullable=True),
        sa.Column("quality", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("idx_events_student_time", "exercise_events", ["student_id", "occurred_at"])
    op.create_index("idx_events_student_item", "exercise_events", ["student_id", "item_id"])

    # Strategy weights
    op.create_table(
        "student_preferences",
        sa.Column("student_id", sa.Integer(), primary_key=True),
        sa.Column("weight_mistake", sa.Integer(), nullable=False),
        sa.Column("weight_weakness", sa.Integer(), nullable=False),
        sa.Column("weight_review", sa.Integer(), nullable=False),
        sa.Column("weight_advance", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "weight_mistake + weight_weakness + weight_review + weight_advance = 100",
            name="ck_preferences_weights_total",
        ),
    )


def downgrade() -> None:
    op.drop_table("student_preferences")
    op.drop_index("idx_events_student_item", table_name="exercise_events")
    op.drop_index("idx_events_student_time", table_name="exercise_events")
    op.drop_table("exercise_events")
    op.drop_index("idx_review_student_topic", table_name="review_schedules")
    op.drop_index("idx_review_student_due", table_name="review_schedules")
    op.drop_table("review_schedules")
    op.drop_index("idx_mastery_student_p", table_name="mastery_states")
    op.drop_table("mastery_states")
    op.drop_index("idx_items_topic", table_name="items")
    op.drop_table("items")
    op.drop_index("idx_topic_prereq_prerequisite", table_name="topic_prerequisites")
    op.drop_table("topic_prerequisites")
    op.drop_table("topics")
