"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


_GOAL_STATUSES = ("planning", "active", "on_track", "at_risk", "achieved", "abandoned")
_TASK_STATUSES = ("not_started", "in_progress", "blocked", "on_hold", "done", "cancelled")
_METRIC_DIRECTIONS = ("higher", "lower", "target")
_HABIT_FREQUENCIES = ("daily", "weekly", "monthly", "custom")


def upgrade() -> None:
    # --- ENUM types ---
    sa.Enum(*_GOAL_STATUSES, name="goal_status_enum").create(op.get_bind(), checkfirst=True)
    sa.Enum(*_TASK_STATUSES, name="task_status_enum").create(op.get_bind(), checkfirst=True)
    sa.Enum(*_METRIC_DIRECTIONS, name="metric_direction_enum").create(op.get_bind(), checkfirst=True)
    sa.Enum(*_HABIT_FREQUENCIES, name="habit_frequency_enum").create(op.get_bind(), checkfirst=True)

    # --- goals ---
    op.create_table(
        "goals",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("area", sa.String(64), nullable=True),
        sa.Column("priority", sa.String(16), nullable=True),
        sa.Column("status", sa.Enum(
            *_GOAL_STATUSES, name="goal_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column("success_criteria", sa.JSON(), nullable=False),
        sa.Column("progress_config", sa.JSON(), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- tasks ---
    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("title", sa.String(256), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.Enum(
            *_TASK_STATUSES, name="task_status_enum", create_type=False,
        ), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("completed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )

    # --- metrics + metric_logs ---
    op.create_table(
        "metrics",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("unit", sa.String(32), nullable=True),
        sa.Column("direction", sa.Enum(
            *_METRIC_DIRECTIONS, name="metric_direction_enum", create_type=False,
        ), nullable=False),
        sa.Column("target_value", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "metric_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("metric_id", sa.String(36), nullable=False),
        sa.Column("value", sa.Float(), nullable=False),
        sa.Column("logged_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["metric_id"], ["metrics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_metric_logs_id", "metric_logs", ["id"])
    op.create_index("ix_metric_logs_metric_id", "metric_logs", ["metric_id"])
    op.create_index("ix_metric_logs_logged_at", "metric_logs", ["logged_at"])

    # --- habits + habit_logs ---
    op.create_table(
        "habits",
        sa.Column("id", sa.String(36), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("frequency", sa.Enum(
            *_HABIT_FREQUENCIES, name="habit_frequency_enum", create_type=False,
        ), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "habit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("habit_id", sa.String(36), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False, server_default="1"),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_habit_logs_id", "habit_logs", ["id"])
    op.create_index("ix_habit_logs_habit_id", "habit_logs", ["habit_id"])
    op.create_index("ix_habit_logs_completed_at", "habit_logs", ["completed_at"])

    # --- goal membership links ---
    op.create_table(
        "task_goals",
        sa.Column("task_id", sa.String(36), nullable=False),
        sa.Column("goal_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["task_id"], ["tasks.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("task_id", "goal_id"),
    )
    op.create_index("ix_task_goals_goal_id", "task_goals", ["goal_id"])

    op.create_table(
        "goal_metrics",
        sa.Column("goal_id", sa.String(36), nullable=False),
        sa.Column("metric_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["metric_id"], ["metrics.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("goal_id", "metric_id"),
    )
    op.create_index("ix_goal_metrics_goal_id", "goal_metrics", ["goal_id"])

    op.create_table(
        "habit_goals",
        sa.Column("habit_id", sa.String(36), nullable=False),
        sa.Column("goal_id", sa.String(36), nullable=False),
        sa.ForeignKeyConstraint(["habit_id"], ["habits.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["goal_id"], ["goals.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("habit_id", "goal_id"),
    )
    op.create_index("ix_habit_goals_goal_id", "habit_goals", ["goal_id"])


def downgrade() -> None:
    op.drop_table("habit_goals")
    op.drop_table("goal_metrics")
    op.drop_table("task_goals")
    op.drop_table("habit_logs")
    op.drop_table("habits")
    op.drop_table("metric_logs")
    op.drop_table("metrics")
    op.drop_table("tasks")
    op.drop_table("goals")

    for name in (
        "habit_frequency_enum",
        "metric_direction_enum",
        "task_status_enum",
        "goal_status_enum",
    ):
        sa.Enum(name=name).drop(op.get_bind(), checkfirst=True)
