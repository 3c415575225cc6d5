"""
Goals router — progress & health read endpoints.

GET  /goals                      — goals with progress + health, quick-filterable
GET  /goals/{goal_id}/progress   — weighted progress breakdown
GET  /goals/{goal_id}/health     — health status, momentum, days remaining
GET  /goals/{goal_id}/linked-counts
POST /goals/warm                 — precompute a batch of goals
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.core.config import settings
from app.core.dependency import get_goal_loader
from app.core.errors import BatchTooLargeError, EmptyBatchError, GoalNotFoundError
from app.schemas.common import ErrorResponse
from app.schemas.goal import (
    CriteriaProgressResponse,
    GoalHealthResponse,
    GoalListResponse,
    GoalProgressResponse,
    GoalSummaryResponse,
    HabitProgressResponse,
    LinkedCountsResponse,
    MetricProgressResponse,
    MetricScoreResponse,
    TaskProgressResponse,
    WarmRequest,
    WarmResponse,
)
from app.services.goal_health import GoalHealth, QuickFilter, matches_quick_filter
from app.services.goal_loader import GoalDataLoader
from app.services.goal_progress import GoalProgressBreakdown
from app.services.snapshots import GoalSnapshot

router = APIRouter(prefix="/goals", tags=["goals"])


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

def _ev(v) -> Optional[str]:
    if v is None:
        return None
    return v.value if hasattr(v, "value") else str(v)


def _progress_to_response(goal_id: str, b: GoalProgressBreakdown) -> GoalProgressResponse:
    return GoalProgressResponse(
        goal_id=goal_id,
        overall=b.overall,
        criteria=CriteriaProgressResponse(
            percentage=b.criteria.percentage,
            completed=b.criteria.completed,
            total=b.criteria.total,
            present=b.criteria.present,
        ),
        tasks=TaskProgressResponse(
            percentage=b.tasks.percentage,
            completed=b.tasks.completed,
            total=b.tasks.total,
            cancelled=b.tasks.cancelled,
            present=b.tasks.present,
        ),
        metrics=MetricProgressResponse(
            percentage=b.metrics.percentage,
            at_target=b.metrics.at_target,
            total=b.metrics.total,
            present=b.metrics.present,
            scores=[
                MetricScoreResponse(
                    metric_id=s.metric_id,
                    current_value=s.current_value,
                    progress=round(s.progress, 2),
                    at_target=s.at_target,
                )
                for s in b.metrics.scores
            ],
        ),
        habits=HabitProgressResponse(
            consistency=b.habits.consistency,
            streak_days=b.habits.streak_days,
            total=b.habits.total,
            present=b.habits.present,
        ),
    )


def _health_to_response(goal_id: str, h: GoalHealth) -> GoalHealthResponse:
    return GoalHealthResponse(
        goal_id=goal_id,
        status=_ev(h.status),
        days_remaining=h.days_remaining,
        momentum=_ev(h.momentum),
        velocity_score=round(h.velocity_score, 4),
        days_since_activity=h.days_since_activity,
        expected_progress=(
            round(h.expected_progress, 2) if h.expected_progress is not None else None
        ),
    )


def _summary_to_response(goal: GoalSnapshot, loader: GoalDataLoader) -> GoalSummaryResponse:
    breakdown = loader.get_breakdown(goal.id)
    health = loader.get_health(goal.id)
    return GoalSummaryResponse(
        id=goal.id,
        title=goal.title,
        status=_ev(goal.status),
        area=goal.area,
        priority=goal.priority,
        target_date=goal.target_date,
        progress=_progress_to_response(goal.id, breakdown) if breakdown else None,
        health=_health_to_response(goal.id, health) if health else None,
    )


async def _load_or_404(loader: GoalDataLoader, goal_id: str, refresh: bool) -> None:
    await loader.load_goal_data(goal_id, force=refresh)
    if loader.get_breakdown(goal_id) is None:
        raise GoalNotFoundError(goal_id)


# ---------------------------------------------------------------------------
# GET /goals
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=GoalListResponse,
    summary="Goals with progress and health",
    responses={200: {"description": "Goals matching every requested quick filter."}},
)
async def list_goals(
    quick_filter: list[QuickFilter] = Query(
        default=[],
        description="Repeatable. A goal must match all given filters.",
        examples=["at_risk"],
    ),
    loader: GoalDataLoader = Depends(get_goal_loader),
):
    """
    Compute (or reuse cached) progress and health for every goal, in
    batches, then apply the quick filters used by the list views.
    """
    goals = await loader.repository.list_goals()
    await loader.load_many([g.id for g in goals], {g.id: g for g in goals})

    now = loader.clock()
    matching = [
        g for g in goals
        if all(matches_quick_filter(f, g, loader.get_health(g.id), now) for f in quick_filter)
    ]
    return GoalListResponse(
        total=len(matching),
        items=[_summary_to_response(g, loader) for g in matching],
    )


# ---------------------------------------------------------------------------
# GET /goals/{goal_id}/progress
# ---------------------------------------------------------------------------

@router.get(
    "/{goal_id}/progress",
    response_model=GoalProgressResponse,
    summary="Weighted progress breakdown for one goal",
    responses={
        200: {"description": "Overall percentage plus per-source breakdown."},
        404: {"model": ErrorResponse, "description": "Goal not found."},
    },
)
async def goal_progress(
    goal_id: str,
    refresh: bool = Query(default=False, description="Recompute even if the goal is unchanged."),
    loader: GoalDataLoader = Depends(get_goal_loader),
):
    await _load_or_404(loader, goal_id, refresh)
    return _progress_to_response(goal_id, loader.get_breakdown(goal_id))


# ---------------------------------------------------------------------------
# GET /goals/{goal_id}/health
# ---------------------------------------------------------------------------

@router.get(
    "/{goal_id}/health",
    response_model=GoalHealthResponse,
    summary="Health classification for one goal",
    responses={
        200: {"description": "Health status, momentum and days remaining."},
        404: {"model": ErrorResponse, "description": "Goal not found."},
    },
)
async def goal_health(
    goal_id: str,
    refresh: bool = Query(default=False, description="Recompute even if the goal is unchanged."),
    loader: GoalDataLoader = Depends(get_goal_loader),
):
    """
    `status` is null for achieved goals. `dormant` wins over every other
    signal once the goal has seen no activity for more than 7 days.
    """
    await _load_or_404(loader, goal_id, refresh)
    return _health_to_response(goal_id, loader.get_health(goal_id))


# ---------------------------------------------------------------------------
# GET /goals/{goal_id}/linked-counts
# ---------------------------------------------------------------------------

@router.get(
    "/{goal_id}/linked-counts",
    response_model=LinkedCountsResponse,
    summary="Number of tasks, metrics and habits linked to a goal",
    responses={404: {"model": ErrorResponse, "description": "Goal not found."}},
)
async def goal_linked_counts(
    goal_id: str,
    loader: GoalDataLoader = Depends(get_goal_loader),
):
    if await loader.repository.get_goal_by_id(goal_id) is None:
        raise GoalNotFoundError(goal_id)
    counts = await loader.get_linked_counts(goal_id)
    return LinkedCountsResponse(
        goal_id=goal_id,
        tasks=counts.tasks,
        metrics=counts.metrics,
        habits=counts.habits,
    )


# ---------------------------------------------------------------------------
# POST /goals/warm
# ---------------------------------------------------------------------------

@router.post(
    "/warm",
    response_model=WarmResponse,
    summary="Precompute progress and health for a batch of goals",
    responses={
        200: {"description": "Caches warmed."},
        422: {"model": ErrorResponse, "description": "Empty batch or too many goal ids."},
    },
)
async def warm_goals(
    payload: WarmRequest,
    loader: GoalDataLoader = Depends(get_goal_loader),
):
    """
    Goals are processed a few at a time; duplicates are ignored. Unknown
    ids or goals whose reads fail are simply not counted in `loaded`.
    """
    ids = list(dict.fromkeys(payload.goal_ids))
    if not ids:
        raise EmptyBatchError()
    if len(ids) > settings.WARM_MAX_GOALS:
        raise BatchTooLargeError(max_items=settings.WARM_MAX_GOALS, received=len(ids))

    await loader.load_many(ids, force=payload.force)
    loaded = sum(1 for gid in ids if loader.get_breakdown(gid) is not None)
    return WarmResponse(requested=len(ids), loaded=loaded)
