"""
Tests for GoalDataLoader: in-flight dedup, batching, version fencing and
failure isolation. All reads go through FakeGoalRepository.

Scenario E: two concurrent load_goal_data("g1") calls → exactly one
fetch cycle.
"""
import asyncio
from dataclasses import replace

from app.services.goal_health import HealthStatus, Momentum
from app.services.goal_loader import DEFAULT_BATCH_SIZE, GoalDataLoader

from factories import (
    NOW,
    days_ago,
    make_goal,
    make_habit,
    make_metric,
    make_tasks,
    metric_logs,
)


def _seed_full_goal(repo, goal_id="g1"):
    goal = repo.add_goal(make_goal(goal_id, criteria=[True, False]))
    repo.tasks[goal_id] = make_tasks(done=1, open_=1)
    repo.add_metric(goal_id, make_metric(f"{goal_id}-m", target=100), metric_logs(100))
    repo.add_habit(goal_id, make_habit(f"{goal_id}-h", logged_days_ago=list(range(30))))
    return goal


# ---------------------------------------------------------------------------
# In-flight dedup
# ---------------------------------------------------------------------------

class TestInFlight:
    async def test_scenario_e_concurrent_calls_share_one_fetch(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        await asyncio.gather(loader.load_goal_data("g1"), loader.load_goal_data("g1"))
        assert repo.calls["get_goal_by_id"] == 1
        assert repo.calls["get_tasks_by_goal"] == 1
        assert repo.calls["get_metrics_by_goal"] == 1
        assert repo.calls["get_habits_by_goal"] == 1
        assert loader.get_breakdown("g1") is not None

    async def test_loading_flag_cleared_after_completion(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        task = asyncio.ensure_future(loader.load_goal_data("g1"))
        await asyncio.sleep(0)
        assert loader.is_loading("g1")
        await task
        assert not loader.is_loading("g1")

    async def test_different_goals_load_independently(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        repo.add_goal(make_goal("g2"))
        await asyncio.gather(loader.load_goal_data("g1"), loader.load_goal_data("g2"))
        assert repo.calls["get_goal_by_id"] == 2


# ---------------------------------------------------------------------------
# Batching
# ---------------------------------------------------------------------------

class TestLoadMany:
    async def test_concurrency_bounded_by_batch_size(self, repo, loader):
        ids = [f"g{i}" for i in range(12)]
        for gid in ids:
            repo.add_goal(make_goal(gid))
        await loader.load_many(ids)
        assert repo.calls["get_goal_by_id"] == 12
        assert 1 < repo.max_goal_reads <= DEFAULT_BATCH_SIZE
        assert all(loader.get_breakdown(gid) is not None for gid in ids)

    async def test_custom_batch_size(self, repo):
        loader = GoalDataLoader(repo, batch_size=2, clock=lambda: NOW)
        ids = [f"g{i}" for i in range(6)]
        for gid in ids:
            repo.add_goal(make_goal(gid))
        await loader.load_many(ids)
        assert repo.max_goal_reads <= 2
        assert len(loader.breakdowns) == 6

    async def test_duplicate_ids_loaded_once(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        await loader.load_many(["g1", "g1", "g1"])
        assert repo.calls["get_goal_by_id"] == 1

    async def test_supplied_goals_skip_goal_reads(self, repo, loader):
        goals = {gid: repo.add_goal(make_goal(gid)) for gid in ("g1", "g2")}
        await loader.load_many(goals.keys(), goals)
        assert repo.calls["get_goal_by_id"] == 0
        assert repo.calls["get_tasks_by_goal"] == 2

    async def test_one_failure_does_not_stop_the_batch(self, repo, loader):
        for gid in ("g1", "g2", "g3"):
            repo.add_goal(make_goal(gid))
        repo.failures["get_goal_by_id"] = RuntimeError("db down")
        goals = {"g2": repo.goals["g2"]}
        await loader.load_many(["g1", "g2", "g3"], goals)
        assert loader.get_breakdown("g1") is None
        assert loader.get_breakdown("g2") is not None
        assert loader.get_breakdown("g3") is None


# ---------------------------------------------------------------------------
# Version fencing
# ---------------------------------------------------------------------------

class TestVersionFencing:
    async def test_unchanged_goal_not_recomputed(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        await loader.load_goal_data("g1")
        await loader.load_goal_data("g1")
        assert repo.calls["get_goal_by_id"] == 2
        assert repo.calls["get_tasks_by_goal"] == 1

    async def test_updated_goal_recomputed(self, repo, loader):
        goal = repo.add_goal(make_goal("g1", criteria=[False, False]))
        await loader.load_goal_data("g1")
        assert loader.get_breakdown("g1").overall == 0

        repo.add_goal(replace(
            goal,
            success_criteria=tuple(replace(c, is_completed=True) for c in goal.success_criteria),
            updated_at=days_ago(0),
        ))
        await loader.load_goal_data("g1")
        assert repo.calls["get_tasks_by_goal"] == 2
        assert loader.get_breakdown("g1").overall == 100

    async def test_force_recomputes(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        await loader.load_goal_data("g1")
        await loader.load_goal_data("g1", force=True)
        assert repo.calls["get_tasks_by_goal"] == 2

    async def test_invalidate_recomputes(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        await loader.load_goal_data("g1")
        loader.invalidate("g1")
        await loader.load_goal_data("g1")
        assert repo.calls["get_tasks_by_goal"] == 2

    async def test_linked_change_needs_force(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        await loader.load_goal_data("g1")
        repo.tasks["g1"] = make_tasks(done=2)
        await loader.load_goal_data("g1")
        assert loader.get_breakdown("g1").tasks.present is False
        await loader.load_goal_data("g1", force=True)
        assert loader.get_breakdown("g1").tasks.percentage == 100


# ---------------------------------------------------------------------------
# Failure isolation
# ---------------------------------------------------------------------------

class TestFailures:
    async def test_unknown_goal_leaves_cache_empty(self, repo, loader):
        await loader.load_goal_data("missing")
        assert loader.get_breakdown("missing") is None
        assert loader.get_health("missing") is None
        assert not loader.is_loading("missing")

    async def test_deleted_goal_dropped_from_cache(self, repo, loader):
        repo.add_goal(make_goal("g1", criteria=[True]))
        await loader.load_goal_data("g1")
        assert loader.get_breakdown("g1") is not None

        del repo.goals["g1"]
        await loader.load_goal_data("g1", force=True)

        assert loader.get_breakdown("g1") is None
        assert loader.get_health("g1") is None
        assert "g1" not in loader.goals
        assert "g1" not in loader._versions

    async def test_goal_read_failure_keeps_previous_entry(self, repo, loader):
        goal = repo.add_goal(make_goal("g1", criteria=[True, False]))
        await loader.load_goal_data("g1")
        before = loader.get_breakdown("g1")

        repo.add_goal(replace(goal, updated_at=days_ago(0)))
        repo.failures["get_goal_by_id"] = RuntimeError("db down")
        await loader.load_goal_data("g1")

        assert loader.get_breakdown("g1") is before
        assert not loader.is_loading("g1")

    async def test_in_flight_cleared_after_failure(self, repo, loader):
        repo.add_goal(make_goal("g1"))
        repo.failures["get_goal_by_id"] = RuntimeError("db down")
        await loader.load_goal_data("g1")
        assert not loader.is_loading("g1")

        del repo.failures["get_goal_by_id"]
        await loader.load_goal_data("g1")
        assert loader.get_breakdown("g1") is not None

    async def test_metrics_read_failure_makes_source_absent(self, repo, loader):
        _seed_full_goal(repo)
        repo.failures["get_metrics_by_goal"] = RuntimeError("timeout")
        await loader.load_goal_data("g1")
        breakdown = loader.get_breakdown("g1")
        assert breakdown.metrics.present is False
        # criteria 50 × 40, tasks 50 × 30, habits 100 × 10
        assert breakdown.overall == 56

    async def test_metric_log_failure_drops_metric(self, repo, loader):
        _seed_full_goal(repo)
        repo.failures["get_metric_logs"] = RuntimeError("timeout")
        await loader.load_goal_data("g1")
        assert loader.get_breakdown("g1").metrics.present is False

    async def test_habit_log_failure_drops_habit(self, repo, loader):
        _seed_full_goal(repo)
        repo.failures["get_habit_logs"] = RuntimeError("timeout")
        await loader.load_goal_data("g1")
        breakdown = loader.get_breakdown("g1")
        assert breakdown.habits.present is False
        assert breakdown.metrics.percentage == 100

    async def test_all_linked_reads_fail(self, repo, loader):
        _seed_full_goal(repo)
        for name in ("get_tasks_by_goal", "get_metrics_by_goal", "get_habits_by_goal"):
            repo.failures[name] = RuntimeError("timeout")
        await loader.load_goal_data("g1")
        assert loader.get_breakdown("g1").overall == 50


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

class TestResults:
    async def test_full_breakdown(self, repo, loader):
        _seed_full_goal(repo)
        await loader.load_goal_data("g1")
        breakdown = loader.get_breakdown("g1")
        assert breakdown.criteria.percentage == 50
        assert breakdown.tasks.percentage == 50
        assert breakdown.metrics.percentage == 100
        assert breakdown.habits.consistency == 100
        # (50·40 + 50·30 + 100·20 + 100·10) / 100
        assert breakdown.overall == 65
        assert loader.goals["g1"].id == "g1"

    async def test_linked_activity_feeds_momentum(self, repo, loader):
        repo.add_goal(make_goal("g1", created_days_ago=30, last_activity_days_ago=12))
        repo.tasks["g1"] = make_tasks(open_=1, touched_days_ago=2)
        await loader.load_goal_data("g1")
        health = loader.get_health("g1")
        assert health.momentum == Momentum.active
        assert health.days_since_activity == 2

    async def test_quiet_goal_is_dormant(self, repo, loader):
        repo.add_goal(make_goal("g1", created_days_ago=30, last_activity_days_ago=12))
        repo.tasks["g1"] = make_tasks(done=5, touched_days_ago=20)
        await loader.load_goal_data("g1")
        assert loader.get_health("g1").status == HealthStatus.dormant


class TestLinkedCounts:
    async def test_counts(self, repo, loader):
        _seed_full_goal(repo)
        repo.tasks["g1"] = make_tasks(done=1, open_=1, cancelled=1)
        counts = await loader.get_linked_counts("g1")
        assert (counts.tasks, counts.metrics, counts.habits) == (3, 1, 1)

    async def test_failed_source_counts_zero(self, repo, loader):
        _seed_full_goal(repo)
        repo.failures["get_habits_by_goal"] = RuntimeError("timeout")
        counts = await loader.get_linked_counts("g1")
        assert counts.habits == 0
        assert counts.tasks == 2
