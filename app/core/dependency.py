from functools import lru_cache

from app.core.config import settings
from app.db.base import SessionLocal
from app.services.goal_health import HealthPolicy
from app.services.goal_loader import GoalDataLoader
from app.services.goal_repository import SqlAlchemyGoalRepository


@lru_cache(maxsize=None)
def get_goal_loader() -> GoalDataLoader:
    """One loader per process: its caches and in-flight guard are shared by all requests."""
    return GoalDataLoader(
        SqlAlchemyGoalRepository(SessionLocal),
        batch_size=settings.GOAL_LOADER_BATCH_SIZE,
        habit_window_days=settings.HABIT_WINDOW_DAYS,
        policy=HealthPolicy(
            healthy_tolerance=settings.HEALTH_HEALTHY_TOLERANCE,
            at_risk_tolerance=settings.HEALTH_AT_RISK_TOLERANCE,
        ),
    )
