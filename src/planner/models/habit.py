"""Habit model."""

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from planner.models.base import BaseModel, JSONType


def _all_week() -> list[int]:
    return [1, 2, 3, 4, 5, 6, 7]


class Habit(BaseModel):
    """Recurring habit with streak tracking."""

    __tablename__ = "habits"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), default="target", nullable=True)
    color: Mapped[str | None] = mapped_column(String(7), default="#3b82f6", nullable=True)

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # boolean, numeric, duration, checklist
    type: Mapped[str] = mapped_column(String(20), default="boolean", nullable=False)

    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)
    # daily, weekly, monthly
    frequency: Mapped[str] = mapped_column(String(20), default="daily", nullable=False)

    # 1=Monday .. 7=Sunday
    scheduled_days: Mapped[list[int]] = mapped_column(JSONType, default=_all_week, nullable=False)
    scheduled_time: Mapped[str | None] = mapped_column(String(5), nullable=True)  # HH:MM
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes

    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_completed: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    start_date: Mapped[date] = mapped_column(Date, default=date.today, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    last_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    reminder_enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    # active, paused, completed, abandoned
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict, nullable=False)

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Habit {self.name!r} streak={self.current_streak}>"
