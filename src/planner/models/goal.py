"""Goal model."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from planner.models.base import BaseModel, JSONType


class Goal(BaseModel):
    """Measurable goal scoped to a workspace."""

    __tablename__ = "goals"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # lifetime, yearly, quarterly, monthly, weekly, daily
    type: Mapped[str] = mapped_column(String(20), default="monthly", nullable=False)
    parent_goal_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    priority: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)

    # not_started, in_progress, completed, paused, cancelled
    status: Mapped[str] = mapped_column(String(20), default="not_started", nullable=False)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    target_value: Mapped[float | None] = mapped_column(Float, nullable=True)
    current_value: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    unit: Mapped[str | None] = mapped_column(String(50), nullable=True)

    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    target_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    why: Mapped[str | None] = mapped_column(Text, nullable=True)
    milestones: Mapped[list[Any]] = mapped_column(JSONType, default=list, nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict, nullable=False)

    created_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Goal {self.title!r} {self.status}>"
