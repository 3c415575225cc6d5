"""
Goal data loader — orchestrates reads and scoring for many goals.

For each goal: fetch linked tasks, metrics (+ their logs) and habits
(+ their logs) through an injected GoalRepository, run the pure progress
and health services, and store both results in process-local caches
keyed by goal id.

Guarantees
----------
  * At most one in-flight computation per goal id. Concurrent callers
    await the computation already running instead of starting another.
  * Bounded concurrency: load_many() works through ids in fixed-size
    batches (default 5), each batch gathered concurrently.
  * Version fencing: a goal whose "{id}-{updated_at}" token matches the
    last computed one is not recomputed (unless force=True).
  * No exception escapes load_goal_data(). Linked-entity read failures
    degrade that source to absent; a failure reading the goal itself
    leaves the cache at its previous value. A goal the repository no
    longer returns is dropped from every cache.

There is no cancellation: once started, a computation runs to completion
even if every caller goes away.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Mapping, Optional, Protocol, TypeVar

from app.services.goal_health import (
    DEFAULT_POLICY,
    GoalHealth,
    HealthPolicy,
    compute_goal_health,
    latest_linked_activity,
)
from app.services.goal_progress import (
    HABIT_WINDOW_DAYS,
    GoalProgressBreakdown,
    compute_goal_progress,
)
from app.services.snapshots import (
    GoalSnapshot,
    HabitLogSnapshot,
    HabitSnapshot,
    MetricLogSnapshot,
    MetricSnapshot,
    TaskSnapshot,
)

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5

T = TypeVar("T")


class GoalRepository(Protocol):
    """Read-only storage interface the loader depends on."""

    async def get_goal_by_id(self, goal_id: str) -> Optional[GoalSnapshot]: ...

    async def list_goals(self) -> list[GoalSnapshot]: ...

    async def get_tasks_by_goal(self, goal_id: str) -> list[TaskSnapshot]: ...

    async def get_metrics_by_goal(self, goal_id: str) -> list[MetricSnapshot]: ...

    async def get_habits_by_goal(self, goal_id: str) -> list[HabitSnapshot]: ...

    async def get_metric_logs(self, metric_id: str) -> list[MetricLogSnapshot]: ...

    async def get_habit_logs(self, habit_id: str) -> list[HabitLogSnapshot]: ...


@dataclass(frozen=True)
class LinkedCounts:
    tasks: int
    metrics: int
    habits: int


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


class GoalDataLoader:
    def __init__(
        self,
        repository: GoalRepository,
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        habit_window_days: int = HABIT_WINDOW_DAYS,
        policy: HealthPolicy = DEFAULT_POLICY,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.repository = repository
        self.batch_size = max(batch_size, 1)
        self.habit_window_days = habit_window_days
        self.policy = policy
        self.clock = clock

        # goal id → latest results; each write replaces a single entry.
        self.breakdowns: dict[str, GoalProgressBreakdown] = {}
        self.health: dict[str, GoalHealth] = {}
        self.goals: dict[str, GoalSnapshot] = {}
        self._versions: dict[str, str] = {}
        self._in_flight: dict[str, asyncio.Task] = {}

    # -----------------------------------------------------------------------
    # Cache access
    # -----------------------------------------------------------------------

    def get_breakdown(self, goal_id: str) -> Optional[GoalProgressBreakdown]:
        return self.breakdowns.get(goal_id)

    def get_health(self, goal_id: str) -> Optional[GoalHealth]:
        return self.health.get(goal_id)

    def is_loading(self, goal_id: str) -> bool:
        return goal_id in self._in_flight

    def invalidate(self, goal_id: str) -> None:
        """Forget the version token so the next load recomputes."""
        self._versions.pop(goal_id, None)

    def _forget(self, goal_id: str) -> None:
        for cache in (self.breakdowns, self.health, self.goals, self._versions):
            cache.pop(goal_id, None)

    # -----------------------------------------------------------------------
    # Orchestration
    # -----------------------------------------------------------------------

    async def load_goal_data(
        self,
        goal_id: str,
        goal: Optional[GoalSnapshot] = None,
        *,
        force: bool = False,
    ) -> None:
        """
        Compute and cache progress + health for one goal.

        Pass `goal` when the caller already holds the current record;
        otherwise it is read from the repository. A call for a goal that
        is already loading waits for that computation and returns.
        """
        in_flight = self._in_flight.get(goal_id)
        if in_flight is None:
            in_flight = asyncio.ensure_future(self._run(goal_id, goal, force))
            self._in_flight[goal_id] = in_flight
        else:
            logger.debug("Goal %s already loading; joining in-flight computation", goal_id)
        await asyncio.shield(in_flight)

    async def load_many(
        self,
        goal_ids: Iterable[str],
        goals: Optional[Mapping[str, GoalSnapshot]] = None,
        *,
        force: bool = False,
    ) -> None:
        """
        Warm many goals, at most `batch_size` at a time. `goals` may supply
        records the caller already holds, keyed by id.
        """
        known = goals or {}
        ids = list(dict.fromkeys(goal_ids))
        for start in range(0, len(ids), self.batch_size):
            batch = ids[start:start + self.batch_size]
            await asyncio.gather(
                *(self.load_goal_data(gid, known.get(gid), force=force) for gid in batch)
            )

    async def get_linked_counts(self, goal_id: str) -> LinkedCounts:
        tasks, metrics, habits = await asyncio.gather(
            self._read(self.repository.get_tasks_by_goal(goal_id), "tasks", goal_id),
            self._read(self.repository.get_metrics_by_goal(goal_id), "metrics", goal_id),
            self._read(self.repository.get_habits_by_goal(goal_id), "habits", goal_id),
        )
        return LinkedCounts(
            tasks=len(tasks or ()),
            metrics=len(metrics or ()),
            habits=len(habits or ()),
        )

    # -----------------------------------------------------------------------
    # Internal
    # -----------------------------------------------------------------------

    async def _run(self, goal_id: str, goal: Optional[GoalSnapshot], force: bool) -> None:
        try:
            await self._load(goal_id, goal, force)
        except Exception:
            logger.exception("Failed to load goal %s; keeping previous cache entry", goal_id)
        finally:
            self._in_flight.pop(goal_id, None)

    async def _load(self, goal_id: str, goal: Optional[GoalSnapshot], force: bool) -> None:
        if goal is None:
            goal = await self.repository.get_goal_by_id(goal_id)
            if goal is None:
                logger.warning("Goal %s not found; dropping cached results", goal_id)
                self._forget(goal_id)
                return

        token = goal.version_token
        if not force and self._versions.get(goal_id) == token and goal_id in self.breakdowns:
            logger.debug("Goal %s unchanged (%s); skipping recompute", goal_id, token)
            return

        tasks = await self._read(self.repository.get_tasks_by_goal(goal_id), "tasks", goal_id)
        metrics = await self._read(self.repository.get_metrics_by_goal(goal_id), "metrics", goal_id)
        metric_logs = await self._read_metric_logs(goal_id, metrics)
        readable_metrics = [m for m in metrics or () if m.id in metric_logs]
        habits = await self._read_habits(goal_id)

        now = self.clock()
        breakdown = compute_goal_progress(
            goal,
            tasks,
            readable_metrics,
            metric_logs,
            habits,
            now=now,
            habit_window_days=self.habit_window_days,
        )
        health = compute_goal_health(
            goal,
            breakdown,
            linked_activity_at=latest_linked_activity(tasks, metric_logs, habits),
            now=now,
            policy=self.policy,
        )

        self.goals[goal_id] = goal
        self.breakdowns[goal_id] = breakdown
        self.health[goal_id] = health
        self._versions[goal_id] = token
        logger.debug(
            "Goal %s computed: overall=%s health=%s",
            goal_id, breakdown.overall, health.status,
        )

    async def _read(self, call: Awaitable[T], source: str, goal_id: str) -> Optional[T]:
        """Await a repository read; a failure makes the source absent."""
        try:
            return await call
        except Exception:
            logger.warning("Reading %s for goal %s failed; treating as absent", source, goal_id, exc_info=True)
            return None

    async def _read_metric_logs(
        self,
        goal_id: str,
        metrics: Optional[list[MetricSnapshot]],
    ) -> dict[str, list[MetricLogSnapshot]]:
        """Logs per metric. A metric whose logs cannot be read is left out."""
        logs: dict[str, list[MetricLogSnapshot]] = {}
        for metric in metrics or ():
            result = await self._read(
                self.repository.get_metric_logs(metric.id), f"logs of metric {metric.id}", goal_id
            )
            if result is not None:
                logs[metric.id] = list(result)
        return logs

    async def _read_habits(self, goal_id: str) -> Optional[list[HabitSnapshot]]:
        habits = await self._read(self.repository.get_habits_by_goal(goal_id), "habits", goal_id)
        if habits is None:
            return None
        loaded = []
        for habit in habits:
            result = await self._read(
                self.repository.get_habit_logs(habit.id), f"logs of habit {habit.id}", goal_id
            )
            if result is not None:
                loaded.append(replace(habit, logs=tuple(result)))
        return loaded
