"""
Read-only records consumed by the goal engine.

The engine never sees ORM objects: the repository layer converts rows
into these frozen dataclasses, and tests build them directly.

All timestamps are timezone-aware UTC. `as_utc` normalizes naive values
(SQLite drops tzinfo on the way back out).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from typing import Optional

from app.models.goal import GoalStatus
from app.models.habit import HabitFrequency
from app.models.metric import MetricDirection
from app.models.task import TaskStatus


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def date_as_utc(value: Optional[date]) -> Optional[datetime]:
    """Calendar date → UTC midnight."""
    if value is None:
        return None
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Goal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SuccessCriterion:
    text: str
    is_completed: bool = False
    completed_at: Optional[datetime] = None


@dataclass(frozen=True)
class ProgressWeights:
    """Per-goal source weights. Need not sum to 100."""
    criteria: float = 40.0
    tasks: float = 30.0
    metrics: float = 20.0
    habits: float = 10.0

    @classmethod
    def from_config(cls, config: Optional[dict]) -> Optional["ProgressWeights"]:
        """Build from the stored camelCase JSON object; None when unset."""
        if not config:
            return None
        defaults = cls()
        return cls(
            criteria=float(config.get("criteriaWeight", defaults.criteria)),
            tasks=float(config.get("tasksWeight", defaults.tasks)),
            metrics=float(config.get("metricsWeight", defaults.metrics)),
            habits=float(config.get("habitsWeight", defaults.habits)),
        )

    def as_dict(self) -> dict[str, float]:
        # Negative weights carry no meaning; treat them as "ignore this source".
        return {
            "criteria": max(self.criteria, 0.0),
            "tasks": max(self.tasks, 0.0),
            "metrics": max(self.metrics, 0.0),
            "habits": max(self.habits, 0.0),
        }


DEFAULT_WEIGHTS = ProgressWeights()


@dataclass(frozen=True)
class GoalSnapshot:
    id: str
    title: str
    status: GoalStatus
    created_at: datetime
    updated_at: Optional[datetime] = None
    area: Optional[str] = None
    priority: Optional[str] = None
    target_date: Optional[date] = None
    success_criteria: tuple[SuccessCriterion, ...] = ()
    progress_config: Optional[ProgressWeights] = None
    last_activity_at: Optional[datetime] = None
    completed_date: Optional[datetime] = None

    @property
    def version_token(self) -> str:
        stamp = as_utc(self.updated_at)
        return f"{self.id}-{stamp.isoformat() if stamp else ''}"

    @property
    def weights(self) -> ProgressWeights:
        return self.progress_config or DEFAULT_WEIGHTS


# ---------------------------------------------------------------------------
# Linked entities
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskSnapshot:
    id: str
    status: TaskStatus
    updated_at: Optional[datetime] = None
    completed_date: Optional[datetime] = None


@dataclass(frozen=True)
class MetricLogSnapshot:
    value: float
    logged_at: datetime


@dataclass(frozen=True)
class MetricSnapshot:
    id: str
    direction: MetricDirection
    target_value: Optional[float] = None


@dataclass(frozen=True)
class HabitLogSnapshot:
    completed_at: datetime
    amount: int = 1


@dataclass(frozen=True)
class HabitSnapshot:
    id: str
    frequency: HabitFrequency
    logs: tuple[HabitLogSnapshot, ...] = field(default_factory=tuple)
