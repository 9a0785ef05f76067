"""Workspace and membership models."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from planner.models.base import BaseModel, JSONType, utcnow


class Workspace(BaseModel):
    """Container for a user's tasks, goals and habits.

    ``owner_id`` is the identity issued by the authentication provider.
    """

    __tablename__ = "workspaces"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)

    # Ownership and access
    owner_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    is_personal: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Customization
    color: Mapped[str | None] = mapped_column(String(7), default="#3b82f6", nullable=True)
    icon: Mapped[str | None] = mapped_column(String(50), default="folder", nullable=True)
    settings: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    # Template the workspace was created from, if any
    template_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    max_members: Mapped[int] = mapped_column(Integer, default=10, nullable=False)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<Workspace {self.slug} owner={self.owner_id}>"


class WorkspaceMember(BaseModel):
    """Membership of a user in a workspace."""

    __tablename__ = "workspace_members"

    workspace_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # owner, admin, member, viewer
    role: Mapped[str] = mapped_column(String(20), default="member", nullable=False)
    permissions: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        default=lambda: {"read": True, "write": False, "delete": False, "invite": False},
        nullable=False,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        nullable=False,
    )
    invited_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
