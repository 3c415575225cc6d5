"""
Goal health service — momentum tracker, health classifier, quick filters.

Momentum
--------
  last_activity = latest of goal.last_activity_at, goal.created_at and every
  linked task update/completion, metric log and habit log.
  dormant  iff  floor((now - last_activity) / 1 day) > DORMANT_AFTER_DAYS

Health (evaluated top to bottom, first match wins)
------
  1. momentum dormant          → dormant   (overrides every other signal)
  2. goal Achieved             → None      (health only applies in flight)
  3. goal AtRisk               → at_risk
  4. target date set           → compare overall with time-elapsed expectation
                                 ≥ expected - healthy_tolerance  → healthy
                                 ≥ expected - at_risk_tolerance  → at_risk
                                 otherwise                       → behind
  5. no target date            → overall ≥ 50 ? healthy : at_risk

Nothing is persisted; every call re-evaluates from its inputs.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, Mapping, Optional, Sequence

from app.models.goal import GoalStatus
from app.services.goal_progress import GoalProgressBreakdown
from app.services.snapshots import (
    GoalSnapshot,
    HabitSnapshot,
    MetricLogSnapshot,
    TaskSnapshot,
    as_utc,
    date_as_utc,
)


class HealthStatus(str, enum.Enum):
    healthy = "healthy"
    at_risk = "at_risk"
    behind = "behind"
    dormant = "dormant"


class Momentum(str, enum.Enum):
    active = "active"
    dormant = "dormant"


class QuickFilter(str, enum.Enum):
    at_risk = "at_risk"
    dormant = "dormant"
    needs_attention = "needs_attention"
    due_this_week = "due_this_week"
    recently_completed = "recently_completed"


# Fixed policy, not user-configurable.
DORMANT_AFTER_DAYS = 7
NEEDS_ATTENTION_DAYS = 7
DUE_SOON_DAYS = 7
RECENTLY_COMPLETED_DAYS = 7
NO_DEADLINE_HEALTHY_THRESHOLD = 50


@dataclass(frozen=True)
class HealthPolicy:
    """Tolerance bands, in percentage points below the expected progress."""
    healthy_tolerance: float = 10.0
    at_risk_tolerance: float = 30.0


DEFAULT_POLICY = HealthPolicy()


@dataclass(frozen=True)
class GoalHealth:
    status: Optional[HealthStatus]      # None for achieved goals
    days_remaining: Optional[int]       # negative when overdue
    momentum: Momentum
    velocity_score: float               # overall progress points per day
    days_since_activity: int
    expected_progress: Optional[float]  # None without a target date


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


def _days_between(start: datetime, end: datetime) -> int:
    """floor((end - start) / 1 day); timedelta.days already floors."""
    return (end - start).days


# ---------------------------------------------------------------------------
# Momentum
# ---------------------------------------------------------------------------

def latest_linked_activity(
    tasks: Optional[Sequence[TaskSnapshot]] = None,
    metric_logs: Optional[Mapping[str, Sequence[MetricLogSnapshot]]] = None,
    habits: Optional[Sequence[HabitSnapshot]] = None,
) -> Optional[datetime]:
    """Most recent timestamp across a goal's linked tasks, metric logs and habit logs."""
    stamps: list[Optional[datetime]] = []
    for task in tasks or ():
        stamps.extend((task.updated_at, task.completed_date))
    for logs in (metric_logs or {}).values():
        stamps.extend(log.logged_at for log in logs)
    for habit in habits or ():
        stamps.extend(log.completed_at for log in habit.logs)
    return _latest(stamps)


def _latest(stamps: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [as_utc(s) for s in stamps if s is not None]
    return max(present) if present else None


def last_activity_at(
    goal: GoalSnapshot,
    linked_activity_at: Optional[datetime] = None,
) -> datetime:
    return _latest((goal.last_activity_at, goal.created_at, linked_activity_at))


def calculate_momentum(days_since_activity: int) -> Momentum:
    if days_since_activity > DORMANT_AFTER_DAYS:
        return Momentum.dormant
    return Momentum.active


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

def expected_progress(goal: GoalSnapshot, now: datetime) -> Optional[float]:
    """Share of the created→target span already elapsed, as 0–100."""
    target = date_as_utc(goal.target_date)
    if target is None:
        return None
    created = as_utc(goal.created_at)
    now = as_utc(now)
    span = (target - created).total_seconds()
    if span <= 0:
        return 100.0
    elapsed = (now - created).total_seconds()
    return max(0.0, min(1.0, elapsed / span)) * 100


def classify_health(
    goal: GoalSnapshot,
    overall: float,
    momentum: Momentum,
    now: datetime,
    policy: HealthPolicy = DEFAULT_POLICY,
) -> Optional[HealthStatus]:
    now = as_utc(now)
    if momentum == Momentum.dormant:
        return HealthStatus.dormant
    if goal.status == GoalStatus.achieved:
        return None
    if goal.status == GoalStatus.at_risk:
        return HealthStatus.at_risk

    expected = expected_progress(goal, now)
    if expected is None:
        if overall >= NO_DEADLINE_HEALTHY_THRESHOLD:
            return HealthStatus.healthy
        return HealthStatus.at_risk

    if overall >= expected - policy.healthy_tolerance:
        return HealthStatus.healthy
    if overall >= expected - policy.at_risk_tolerance:
        return HealthStatus.at_risk
    return HealthStatus.behind


def compute_goal_health(
    goal: GoalSnapshot,
    breakdown: GoalProgressBreakdown,
    *,
    linked_activity_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
    policy: HealthPolicy = DEFAULT_POLICY,
) -> GoalHealth:
    """
    Health for one goal from its breakdown plus time and activity signals.

    `linked_activity_at` is the latest linked-entity timestamp (see
    latest_linked_activity); without it momentum relies on the goal's own
    timestamps only.
    """
    now = as_utc(now) if now else _utcnow()
    created = as_utc(goal.created_at)

    days_since_activity = _days_between(last_activity_at(goal, linked_activity_at), now)
    momentum = calculate_momentum(days_since_activity)

    target = date_as_utc(goal.target_date)
    days_remaining = _days_between(now, target) if target is not None else None

    days_alive = max(_days_between(created, now), 1)

    return GoalHealth(
        status=classify_health(goal, breakdown.overall, momentum, now, policy),
        days_remaining=days_remaining,
        momentum=momentum,
        velocity_score=breakdown.overall / days_alive,
        days_since_activity=days_since_activity,
        expected_progress=expected_progress(goal, now),
    )


# ---------------------------------------------------------------------------
# Quick filters (list views)
# ---------------------------------------------------------------------------

def matches_quick_filter(
    quick_filter: QuickFilter,
    goal: GoalSnapshot,
    health: Optional[GoalHealth],
    now: Optional[datetime] = None,
) -> bool:
    """
    Goals without a computed health only match the filters that read
    goal fields alone (due_this_week, recently_completed, and at_risk by
    status).
    """
    now = as_utc(now) if now else _utcnow()

    if quick_filter == QuickFilter.at_risk:
        if goal.status == GoalStatus.at_risk:
            return True
        return health is not None and health.status == HealthStatus.at_risk

    if quick_filter == QuickFilter.dormant:
        return health is not None and health.momentum == Momentum.dormant

    if quick_filter == QuickFilter.needs_attention:
        if health is None:
            return False
        if health.status == HealthStatus.behind:
            return True
        return (
            goal.status == GoalStatus.active
            and health.days_since_activity > NEEDS_ATTENTION_DAYS
        )

    if quick_filter == QuickFilter.due_this_week:
        if goal.target_date is None:
            return False
        today = now.date()
        return today <= goal.target_date <= today + timedelta(days=DUE_SOON_DAYS)

    if quick_filter == QuickFilter.recently_completed:
        completed = as_utc(goal.completed_date)
        if completed is None:
            return False
        return completed >= now - timedelta(days=RECENTLY_COMPLETED_DAYS)

    return False
