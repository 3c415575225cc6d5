"""
Goal progress service — four per-source calculators + weighted aggregator.

Sources
-------
  criteria — share of the goal's success criteria marked completed
  tasks    — share of linked tasks Done (Cancelled tasks leave scope)
  metrics  — mean normalized progress of linked metrics towards target
  habits   — mean logged/expected occurrences over a trailing window

A source with zero contributing items is *absent*: it shows 0 for
display but is excluded from the weighted denominator, so its weight is
redistributed over the sources that are present.

Every percentage is clamped to [0, 100] and rounded half-up to a whole
percent. Everything here is pure: same inputs → same output.

Public API
----------
calculate_criteria_progress(criteria)                 -> CriteriaProgress
calculate_task_progress(tasks)                        -> TaskProgress
calculate_metric_progress(metrics, metric_logs)       -> MetricProgress
calculate_habit_consistency(habits, now, window_days) -> HabitProgress
aggregate_progress(scores, weights)                   -> int
compute_goal_progress(goal, tasks, metrics, metric_logs, habits)
                                                      -> GoalProgressBreakdown
"""
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Mapping, Optional, Sequence

from app.models.habit import HabitFrequency
from app.models.metric import MetricDirection
from app.models.task import TaskStatus
from app.services.snapshots import (
    DEFAULT_WEIGHTS,
    GoalSnapshot,
    HabitSnapshot,
    MetricLogSnapshot,
    MetricSnapshot,
    ProgressWeights,
    SuccessCriterion,
    TaskSnapshot,
    as_utc,
)


HABIT_WINDOW_DAYS = 30
# Latest value within this fraction of target counts as "at target".
AT_TARGET_TOLERANCE = 0.1


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CriteriaProgress:
    percentage: int
    completed: int
    total: int

    @property
    def present(self) -> bool:
        return self.total > 0


@dataclass(frozen=True)
class TaskProgress:
    percentage: int
    completed: int
    total: int          # excludes cancelled tasks
    cancelled: int = 0

    @property
    def present(self) -> bool:
        return self.total > 0


@dataclass(frozen=True)
class MetricScore:
    metric_id: str
    current_value: float
    progress: float     # 0–100, unrounded
    at_target: bool


@dataclass(frozen=True)
class MetricProgress:
    percentage: int
    at_target: int
    total: int          # scorable metrics only
    scores: tuple[MetricScore, ...] = ()

    @property
    def present(self) -> bool:
        return self.total > 0


@dataclass(frozen=True)
class HabitScore:
    habit_id: str
    expected: int
    actual: int
    consistency: float  # 0–100, unrounded


@dataclass(frozen=True)
class HabitProgress:
    consistency: int
    streak_days: int
    total: int
    scores: tuple[HabitScore, ...] = ()

    @property
    def present(self) -> bool:
        return self.total > 0


@dataclass(frozen=True)
class GoalProgressBreakdown:
    overall: int
    criteria: CriteriaProgress
    tasks: TaskProgress
    metrics: MetricProgress
    habits: HabitProgress

    def sub_scores(self) -> dict[str, Optional[float]]:
        """Source name → percentage, or None for an absent source."""
        return {
            "criteria": self.criteria.percentage if self.criteria.present else None,
            "tasks": self.tasks.percentage if self.tasks.present else None,
            "metrics": self.metrics.percentage if self.metrics.present else None,
            "habits": self.habits.consistency if self.habits.present else None,
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def round_percent(value: float) -> int:
    """Clamp to [0, 100] and round half-up to a whole percent."""
    clamped = _clamp(value, 0.0, 100.0)
    return int(Decimal(str(clamped)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _ratio_percent(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_percent(part / whole * 100)


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


# ---------------------------------------------------------------------------
# Criteria
# ---------------------------------------------------------------------------

def calculate_criteria_progress(criteria: Sequence[SuccessCriterion]) -> CriteriaProgress:
    total = len(criteria)
    if total == 0:
        return CriteriaProgress(percentage=0, completed=0, total=0)
    completed = sum(1 for c in criteria if c.is_completed)
    return CriteriaProgress(
        percentage=_ratio_percent(completed, total),
        completed=completed,
        total=total,
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------

def calculate_task_progress(tasks: Sequence[TaskSnapshot]) -> TaskProgress:
    """Cancelled tasks are out of scope, not failures: dropped from both sides."""
    cancelled = sum(1 for t in tasks if t.status == TaskStatus.cancelled)
    in_scope = [t for t in tasks if t.status != TaskStatus.cancelled]
    completed = sum(1 for t in in_scope if t.status == TaskStatus.done)
    return TaskProgress(
        percentage=_ratio_percent(completed, len(in_scope)),
        completed=completed,
        total=len(in_scope),
        cancelled=cancelled,
    )


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------

def is_metric_at_target(value: float, metric: MetricSnapshot) -> bool:
    target = metric.target_value
    if target is None:
        return False
    if metric.direction == MetricDirection.higher:
        return value >= target * (1 - AT_TARGET_TOLERANCE)
    if metric.direction == MetricDirection.lower:
        return value <= target * (1 + AT_TARGET_TOLERANCE)
    return abs(value - target) <= abs(target) * AT_TARGET_TOLERANCE


def score_metric(
    metric: MetricSnapshot,
    logs: Sequence[MetricLogSnapshot],
) -> Optional[MetricScore]:
    """
    Normalized progress of one metric, or None when it cannot be scored
    (no target, or a Higher metric with a non-positive target).
    """
    target = metric.target_value
    if target is None:
        return None

    ordered = sorted(logs, key=lambda log: as_utc(log.logged_at))
    current = ordered[-1].value if ordered else 0.0
    baseline = ordered[0].value if ordered else current

    if metric.direction == MetricDirection.higher:
        if target <= 0:
            return None
        ratio = current / target
    elif metric.direction == MetricDirection.lower:
        if baseline == target or (ordered and baseline < target):
            # Started at or under target: nothing to close, only to hold.
            ratio = 1.0 if current <= target else 0.0
        else:
            ratio = (baseline - current) / (baseline - target)
    else:
        ratio = 1 - abs(current - target) / max(abs(target), 1.0)

    return MetricScore(
        metric_id=metric.id,
        current_value=current,
        progress=_clamp(ratio, 0.0, 1.0) * 100,
        at_target=bool(ordered) and is_metric_at_target(current, metric),
    )


def calculate_metric_progress(
    metrics: Sequence[MetricSnapshot],
    metric_logs: Mapping[str, Sequence[MetricLogSnapshot]],
) -> MetricProgress:
    scores = []
    for metric in metrics:
        score = score_metric(metric, metric_logs.get(metric.id, ()))
        if score is not None:
            scores.append(score)

    if not scores:
        return MetricProgress(percentage=0, at_target=0, total=0)
    return MetricProgress(
        percentage=round_percent(_mean([s.progress for s in scores])),
        at_target=sum(1 for s in scores if s.at_target),
        total=len(scores),
        scores=tuple(scores),
    )


# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------

def window_dates(now: datetime, window_days: int = HABIT_WINDOW_DAYS) -> list[date]:
    """The `window_days` calendar days ending on now's date, oldest first."""
    end = as_utc(now).date()
    size = max(window_days, 1)
    return [end - timedelta(days=i) for i in range(size - 1, -1, -1)]


def expected_occurrences(frequency: HabitFrequency, days: Sequence[date]) -> int:
    if frequency == HabitFrequency.daily:
        return len(days)
    if frequency == HabitFrequency.monthly:
        return len({(d.year, d.month) for d in days})
    # Weekly and Custom: one per ISO week touched by the window.
    return len({tuple(d.isocalendar())[:2] for d in days})


def current_streak(log_days: set[date], today: date) -> int:
    """Consecutive logged days ending today (or yesterday if today is still open)."""
    day = today if today in log_days else today - timedelta(days=1)
    streak = 0
    while day in log_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def calculate_habit_consistency(
    habits: Sequence[HabitSnapshot],
    now: Optional[datetime] = None,
    window_days: int = HABIT_WINDOW_DAYS,
) -> HabitProgress:
    if not habits:
        return HabitProgress(consistency=0, streak_days=0, total=0)

    now = now or _utcnow()
    days = window_dates(now, window_days)
    in_window = set(days)
    today = days[-1]

    scores = []
    streak = 0
    for habit in habits:
        log_days = [as_utc(log.completed_at).date() for log in habit.logs]
        expected = expected_occurrences(habit.frequency, days)
        # Each log counts once regardless of amount.
        actual = sum(1 for d in log_days if d in in_window)
        consistency = min(actual / expected, 1.0) * 100 if expected else 0.0
        scores.append(HabitScore(
            habit_id=habit.id,
            expected=expected,
            actual=actual,
            consistency=consistency,
        ))
        streak = max(streak, current_streak(set(log_days), today))

    return HabitProgress(
        consistency=round_percent(_mean([s.consistency for s in scores])),
        streak_days=streak,
        total=len(habits),
        scores=tuple(scores),
    )


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------

def aggregate_progress(
    scores: Mapping[str, Optional[float]],
    weights: Optional[ProgressWeights] = None,
) -> int:
    """
    Weighted mean over present sources:

        overall = Σ score_i·w_i / Σ w_i   (i where score_i is not None)

    Returns 0 when every source is absent or the present weights sum to 0.
    """
    weight_map = (weights or DEFAULT_WEIGHTS).as_dict()
    numerator = 0.0
    denominator = 0.0
    for source, score in scores.items():
        if score is None:
            continue
        weight = weight_map.get(source, 0.0)
        numerator += _clamp(score, 0.0, 100.0) * weight
        denominator += weight
    if denominator <= 0:
        return 0
    return round_percent(numerator / denominator)


def compute_goal_progress(
    goal: GoalSnapshot,
    tasks: Optional[Sequence[TaskSnapshot]] = None,
    metrics: Optional[Sequence[MetricSnapshot]] = None,
    metric_logs: Optional[Mapping[str, Sequence[MetricLogSnapshot]]] = None,
    habits: Optional[Sequence[HabitSnapshot]] = None,
    *,
    now: Optional[datetime] = None,
    habit_window_days: int = HABIT_WINDOW_DAYS,
) -> GoalProgressBreakdown:
    """
    Full breakdown for one goal. A `None` source (not loaded, or the read
    failed) is treated exactly like an empty one: absent.
    """
    criteria = calculate_criteria_progress(goal.success_criteria)
    task_progress = calculate_task_progress(tasks or ())
    metric_progress = calculate_metric_progress(metrics or (), metric_logs or {})
    habit_progress = calculate_habit_consistency(habits or (), now, habit_window_days)

    breakdown = GoalProgressBreakdown(
        overall=0,
        criteria=criteria,
        tasks=task_progress,
        metrics=metric_progress,
        habits=habit_progress,
    )
    return replace(breakdown, overall=aggregate_progress(breakdown.sub_scores(), goal.weights))
