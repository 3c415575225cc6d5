"""
SQLAlchemy implementation of GoalRepository.

Reads only. Every method opens its own short-lived AsyncSession so the
loader can run reads for several goals concurrently without sharing a
session between tasks. Rows are converted to frozen snapshots before the
session closes.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.goal import Goal
from app.models.habit import Habit, HabitLog
from app.models.links import goal_metrics, habit_goals, task_goals
from app.models.metric import Metric, MetricLog
from app.models.task import Task
from app.services.snapshots import (
    GoalSnapshot,
    HabitLogSnapshot,
    HabitSnapshot,
    MetricLogSnapshot,
    MetricSnapshot,
    ProgressWeights,
    SuccessCriterion,
    TaskSnapshot,
    as_utc,
)

# Criteria stored by older clients as plain strings mark completion with a check.
_LEGACY_DONE_MARK = "✓"


# ---------------------------------------------------------------------------
# Row → snapshot helpers
# ---------------------------------------------------------------------------

def _parse_ts(raw: Any) -> Optional[datetime]:
    if raw is None or raw == "":
        return None
    if isinstance(raw, datetime):
        return as_utc(raw)
    try:
        return as_utc(datetime.fromisoformat(str(raw).replace("Z", "+00:00")))
    except ValueError:
        return None


def _criterion(raw: Any) -> SuccessCriterion:
    if isinstance(raw, str):
        return SuccessCriterion(text=raw, is_completed=_LEGACY_DONE_MARK in raw)
    return SuccessCriterion(
        text=str(raw.get("text", "")),
        is_completed=bool(raw.get("isCompleted", False)),
        completed_at=_parse_ts(raw.get("completedAt")),
    )


def goal_snapshot(goal: Goal) -> GoalSnapshot:
    return GoalSnapshot(
        id=goal.id,
        title=goal.title,
        status=goal.status,
        created_at=as_utc(goal.created_at),
        updated_at=as_utc(goal.updated_at),
        area=goal.area,
        priority=goal.priority,
        target_date=goal.target_date,
        success_criteria=tuple(_criterion(c) for c in goal.success_criteria or ()),
        progress_config=ProgressWeights.from_config(goal.progress_config),
        last_activity_at=as_utc(goal.last_activity_at),
        completed_date=as_utc(goal.completed_date),
    )


def _task_snapshot(task: Task) -> TaskSnapshot:
    return TaskSnapshot(
        id=task.id,
        status=task.status,
        updated_at=as_utc(task.updated_at),
        completed_date=as_utc(task.completed_date),
    )


def _metric_snapshot(metric: Metric) -> MetricSnapshot:
    return MetricSnapshot(
        id=metric.id,
        direction=metric.direction,
        target_value=metric.target_value,
    )


def _habit_snapshot(habit: Habit) -> HabitSnapshot:
    return HabitSnapshot(id=habit.id, frequency=habit.frequency)


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class SqlAlchemyGoalRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_goal_by_id(self, goal_id: str) -> Optional[GoalSnapshot]:
        async with self._session_factory() as session:
            goal = await session.get(Goal, goal_id)
            return goal_snapshot(goal) if goal is not None else None

    async def list_goals(self) -> list[GoalSnapshot]:
        async with self._session_factory() as session:
            result = await session.execute(select(Goal).order_by(Goal.created_at.desc()))
            return [goal_snapshot(g) for g in result.scalars().all()]

    async def get_tasks_by_goal(self, goal_id: str) -> list[TaskSnapshot]:
        stmt = (
            select(Task)
            .join(task_goals, task_goals.c.task_id == Task.id)
            .where(task_goals.c.goal_id == goal_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_task_snapshot(t) for t in result.scalars().all()]

    async def get_metrics_by_goal(self, goal_id: str) -> list[MetricSnapshot]:
        stmt = (
            select(Metric)
            .join(goal_metrics, goal_metrics.c.metric_id == Metric.id)
            .where(goal_metrics.c.goal_id == goal_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_metric_snapshot(m) for m in result.scalars().all()]

    async def get_habits_by_goal(self, goal_id: str) -> list[HabitSnapshot]:
        stmt = (
            select(Habit)
            .join(habit_goals, habit_goals.c.habit_id == Habit.id)
            .where(habit_goals.c.goal_id == goal_id)
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [_habit_snapshot(h) for h in result.scalars().all()]

    async def get_metric_logs(self, metric_id: str) -> list[MetricLogSnapshot]:
        """Newest first."""
        stmt = (
            select(MetricLog)
            .where(MetricLog.metric_id == metric_id)
            .order_by(MetricLog.logged_at.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                MetricLogSnapshot(value=log.value, logged_at=as_utc(log.logged_at))
                for log in result.scalars().all()
            ]

    async def get_habit_logs(self, habit_id: str) -> list[HabitLogSnapshot]:
        stmt = (
            select(HabitLog)
            .where(HabitLog.habit_id == habit_id)
            .order_by(HabitLog.completed_at.desc())
        )
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [
                HabitLogSnapshot(completed_at=as_utc(log.completed_at), amount=log.amount)
                for log in result.scalars().all()
            ]
