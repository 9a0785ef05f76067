"""Block model.

Blocks are the generic unit of planner content. A task is a block with
``type == "task"``; the same table also holds notes, events and time blocks.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from planner.models.base import BaseModel, JSONType


class Block(BaseModel):
    """Task, note or event inside a workspace."""

    __tablename__ = "blocks"

    # task, note, event, time_block, project
    type: Mapped[str] = mapped_column(String(50), default="task", nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Hierarchy and organization
    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("blocks.id", ondelete="SET NULL"),
        nullable=True,
    )
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    content: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)
    meta: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict, nullable=False)

    # todo, in_progress, completed, cancelled, waiting
    status: Mapped[str] = mapped_column(String(20), default="todo", nullable=False)
    # low, medium, high, urgent
    priority: Mapped[str] = mapped_column(String(10), default="medium", nullable=False)

    # Scheduling
    due_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    start_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    estimated_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)  # minutes

    # Tracking
    created_by: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    assigned_to: Mapped[str | None] = mapped_column(String(255), nullable=True)
    progress: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)

    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Block {self.type} {self.title!r}>"
