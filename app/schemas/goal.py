"""
Goal progress & health schemas.

GET  /goals                       → GoalListResponse
GET  /goals/{id}/progress         → GoalProgressResponse
GET  /goals/{id}/health           → GoalHealthResponse
GET  /goals/{id}/linked-counts    → LinkedCountsResponse
POST /goals/warm                  → WarmResponse
"""
from datetime import date
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class CriteriaProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    percentage: int = Field(ge=0, le=100)
    completed: int
    total: int
    present: bool = Field(description="False when the goal has no success criteria.")


class TaskProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    percentage: int = Field(ge=0, le=100)
    completed: int
    total: int = Field(description="Linked tasks in scope (cancelled excluded).")
    cancelled: int
    present: bool


class MetricScoreResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    metric_id: str
    current_value: float
    progress: float
    at_target: bool


class MetricProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    percentage: int = Field(ge=0, le=100)
    at_target: int = Field(description="Metrics whose latest value is within 10% of target.")
    total: int = Field(description="Linked metrics with a usable target.")
    present: bool
    scores: list[MetricScoreResponse]


class HabitProgressResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    consistency: int = Field(ge=0, le=100)
    streak_days: int
    total: int
    present: bool


class GoalProgressResponse(BaseModel):
    """Weighted progress breakdown. Absent sources show 0 and `present: false`."""
    goal_id: str
    overall: int = Field(ge=0, le=100, examples=[62])
    criteria: CriteriaProgressResponse
    tasks: TaskProgressResponse
    metrics: MetricProgressResponse
    habits: HabitProgressResponse


class GoalHealthResponse(BaseModel):
    goal_id: str
    status: Optional[str] = Field(
        description='"healthy" | "at_risk" | "behind" | "dormant"; null for achieved goals.'
    )
    days_remaining: Optional[int] = Field(
        description="Whole days until the target date; negative when overdue."
    )
    momentum: str = Field(description='"active" | "dormant"')
    velocity_score: float = Field(description="Overall progress points per day since creation.")
    days_since_activity: int
    expected_progress: Optional[float]


class GoalSummaryResponse(BaseModel):
    id: str
    title: str
    status: str
    area: Optional[str]
    priority: Optional[str]
    target_date: Optional[date]
    progress: Optional[GoalProgressResponse]
    health: Optional[GoalHealthResponse]


class GoalListResponse(BaseModel):
    total: int
    items: list[GoalSummaryResponse]


class LinkedCountsResponse(BaseModel):
    goal_id: str
    tasks: int
    metrics: int
    habits: int


class WarmRequest(BaseModel):
    goal_ids: list[str] = Field(description="Goal ids to (re)compute.")
    force: bool = Field(default=False, description="Recompute even if the goal is unchanged.")


class WarmResponse(BaseModel):
    requested: int
    loaded: int = Field(description="Requested goals that now have a cached breakdown.")
