"""
Metric + MetricLog.

direction decides which way is "better":
  Higher — progress grows with the value (target is a floor to reach)
  Lower  — progress grows as the value drops towards the target
  Target — progress peaks when the value sits on the target
"""
from datetime import datetime
import enum
import uuid

from sqlalchemy import Integer, String, Float, DateTime, Enum, ForeignKey, func
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class MetricDirection(str, enum.Enum):
    higher = "Higher"
    lower = "Lower"
    target = "Target"


class Metric(Base):
    __tablename__ = "metrics"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    unit: Mapped[str | None] = mapped_column(String(32), nullable=True)
    direction: Mapped[MetricDirection] = mapped_column(
        Enum(MetricDirection, name="metric_direction_enum"),
        nullable=False,
        default=MetricDirection.higher,
    )
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class MetricLog(Base):
    __tablename__ = "metric_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    metric_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("metrics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[float] = mapped_column(Float, nullable=False)
    logged_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False, index=True
    )
