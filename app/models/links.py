"""
Many-to-many membership tables: a task, metric or habit may support
several goals at once.
"""
from sqlalchemy import Column, ForeignKey, String, Table

from app.db.base import Base


task_goals = Table(
    "task_goals",
    Base.metadata,
    Column("task_id", String(36), ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("goal_id", String(36), ForeignKey("goals.id", ondelete="CASCADE"), primary_key=True, index=True),
)

goal_metrics = Table(
    "goal_metrics",
    Base.metadata,
    Column("goal_id", String(36), ForeignKey("goals.id", ondelete="CASCADE"), primary_key=True, index=True),
    Column("metric_id", String(36), ForeignKey("metrics.id", ondelete="CASCADE"), primary_key=True),
)

habit_goals = Table(
    "habit_goals",
    Base.metadata,
    Column("habit_id", String(36), ForeignKey("habits.id", ondelete="CASCADE"), primary_key=True),
    Column("goal_id", String(36), ForeignKey("goals.id", ondelete="CASCADE"), primary_key=True, index=True),
)
