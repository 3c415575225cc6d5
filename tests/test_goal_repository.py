"""
Tests for SqlAlchemyGoalRepository against a real (SQLite) database, plus
one end-to-end pass of the loader over it.
"""
from datetime import timedelta, timezone

from sqlalchemy import insert

from app.models.goal import Goal, GoalStatus
from app.models.habit import Habit, HabitFrequency, HabitLog
from app.models.links import goal_metrics, habit_goals, task_goals
from app.models.metric import Metric, MetricDirection, MetricLog
from app.models.task import Task, TaskStatus
from app.services.goal_health import HealthStatus
from app.services.goal_loader import GoalDataLoader
from app.services.goal_repository import SqlAlchemyGoalRepository

from factories import NOW

# SQLite hands datetimes back naive; seed naive UTC values.
BASE = NOW.replace(tzinfo=None)


async def _seed(session_factory):
    async with session_factory() as session:
        session.add_all([
            Goal(
                id="g1",
                title="Run a marathon",
                status=GoalStatus.active,
                success_criteria=[
                    {"text": "Sign up", "isCompleted": True, "completedAt": "2026-06-01T08:00:00Z"},
                    {"text": "Finish a half", "isCompleted": False},
                ],
                progress_config={"criteriaWeight": 40, "tasksWeight": 30},
                created_at=BASE - timedelta(days=20),
                updated_at=BASE - timedelta(days=1),
                last_activity_at=BASE - timedelta(days=1),
            ),
            Goal(
                id="g2",
                title="Legacy goal",
                status=GoalStatus.planning,
                success_criteria=["✓ done thing", "open thing"],
                created_at=BASE - timedelta(days=5),
                updated_at=BASE - timedelta(days=5),
            ),
            Task(id="t1", title="Buy shoes", status=TaskStatus.done,
                 completed_date=BASE - timedelta(days=3), updated_at=BASE - timedelta(days=3)),
            Task(id="t2", title="Long run", status=TaskStatus.in_progress,
                 updated_at=BASE - timedelta(days=2)),
            Task(id="t3", title="Unrelated", status=TaskStatus.done, updated_at=BASE),
            Metric(id="m1", name="Weekly km", direction=MetricDirection.higher, target_value=100),
            Habit(id="h1", name="Stretch", frequency=HabitFrequency.daily),
        ])
        await session.flush()
        session.add_all([
            MetricLog(metric_id="m1", value=20, logged_at=BASE - timedelta(days=10)),
            MetricLog(metric_id="m1", value=60, logged_at=BASE - timedelta(days=4)),
            *[
                HabitLog(habit_id="h1", completed_at=BASE - timedelta(days=d))
                for d in range(10)
            ],
        ])
        await session.execute(insert(task_goals), [
            {"task_id": "t1", "goal_id": "g1"},
            {"task_id": "t2", "goal_id": "g1"},
        ])
        await session.execute(insert(goal_metrics), [{"goal_id": "g1", "metric_id": "m1"}])
        await session.execute(insert(habit_goals), [{"habit_id": "h1", "goal_id": "g1"}])
        await session.commit()


class TestRepositoryReads:
    async def test_goal_snapshot(self, session_factory):
        await _seed(session_factory)
        repo = SqlAlchemyGoalRepository(session_factory)
        goal = await repo.get_goal_by_id("g1")
        assert goal.title == "Run a marathon"
        assert goal.status == GoalStatus.active
        assert goal.created_at.tzinfo == timezone.utc
        assert [c.is_completed for c in goal.success_criteria] == [True, False]
        assert goal.success_criteria[0].completed_at.tzinfo is not None
        assert goal.weights.criteria == 40
        assert goal.weights.metrics == 20

    async def test_missing_goal(self, session_factory):
        repo = SqlAlchemyGoalRepository(session_factory)
        assert await repo.get_goal_by_id("nope") is None

    async def test_legacy_string_criteria(self, session_factory):
        await _seed(session_factory)
        goal = await SqlAlchemyGoalRepository(session_factory).get_goal_by_id("g2")
        assert [c.is_completed for c in goal.success_criteria] == [True, False]
        assert goal.progress_config is None

    async def test_list_goals_newest_first(self, session_factory):
        await _seed(session_factory)
        goals = await SqlAlchemyGoalRepository(session_factory).list_goals()
        assert [g.id for g in goals] == ["g2", "g1"]

    async def test_linked_entities(self, session_factory):
        await _seed(session_factory)
        repo = SqlAlchemyGoalRepository(session_factory)
        tasks = await repo.get_tasks_by_goal("g1")
        assert sorted(t.id for t in tasks) == ["t1", "t2"]
        metrics = await repo.get_metrics_by_goal("g1")
        assert [(m.id, m.direction, m.target_value) for m in metrics] == [
            ("m1", MetricDirection.higher, 100),
        ]
        habits = await repo.get_habits_by_goal("g1")
        assert [h.id for h in habits] == ["h1"]
        assert await repo.get_tasks_by_goal("g2") == []

    async def test_logs_newest_first(self, session_factory):
        await _seed(session_factory)
        repo = SqlAlchemyGoalRepository(session_factory)
        logs = await repo.get_metric_logs("m1")
        assert [log.value for log in logs] == [60, 20]
        assert logs[0].logged_at.tzinfo == timezone.utc
        habit_logs = await repo.get_habit_logs("h1")
        assert len(habit_logs) == 10
        assert habit_logs[0].completed_at > habit_logs[-1].completed_at


class TestLoaderOverDatabase:
    async def test_end_to_end(self, session_factory):
        await _seed(session_factory)
        loader = GoalDataLoader(SqlAlchemyGoalRepository(session_factory), clock=lambda: NOW)
        await loader.load_many(["g1", "g2"])

        breakdown = loader.get_breakdown("g1")
        assert breakdown.criteria.percentage == 50
        assert breakdown.tasks.percentage == 50
        assert breakdown.metrics.percentage == 60
        assert breakdown.habits.consistency == 33
        assert breakdown.habits.streak_days == 10
        # (50·40 + 50·30 + 60·20 + 33·10) / 100
        assert breakdown.overall == 50

        health = loader.get_health("g1")
        assert health.status == HealthStatus.healthy
        assert health.days_since_activity == 0

        assert loader.get_breakdown("g2").overall == 50

    async def test_linked_counts(self, session_factory):
        await _seed(session_factory)
        loader = GoalDataLoader(SqlAlchemyGoalRepository(session_factory), clock=lambda: NOW)
        counts = await loader.get_linked_counts("g1")
        assert (counts.tasks, counts.metrics, counts.habits) == (2, 1, 1)
