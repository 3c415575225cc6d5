"""
Goal — the aggregate whose progress and health the engine computes.

success_criteria: JSON list of {"text", "isCompleted", "completedAt"}.
progress_config:  JSON object {"criteriaWeight", "tasksWeight",
                  "metricsWeight", "habitsWeight"} or NULL for defaults.

Tasks, metrics and habits reference goals many-to-many through the
link tables in app/models/links.py.
"""
from datetime import datetime, date
import enum
import uuid

from sqlalchemy import String, Text, DateTime, Date, Enum, JSON, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class GoalStatus(str, enum.Enum):
    planning = "Planning"
    active = "Active"
    on_track = "OnTrack"
    at_risk = "AtRisk"
    achieved = "Achieved"
    abandoned = "Abandoned"


class Goal(Base):
    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    title: Mapped[str] = mapped_column(String(256), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    area: Mapped[str | None] = mapped_column(String(64), nullable=True)
    priority: Mapped[str | None] = mapped_column(String(16), nullable=True)
    status: Mapped[GoalStatus] = mapped_column(
        Enum(GoalStatus, name="goal_status_enum"),
        nullable=False,
        default=GoalStatus.planning,
    )
    target_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    success_criteria: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    progress_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    completed_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
