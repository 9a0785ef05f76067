"""Template and usage-record models."""

import uuid
from enum import Enum
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from planner.models.base import Base, BaseModel, JSONType, TimestampMixin, UUIDMixin


class TemplateStatus(str, Enum):
    """Publishing state of a user-authored template."""

    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Template(BaseModel):
    """Reusable bundle of task, goal and habit definitions.

    ``structure`` holds ``{"entries": [...]}`` where every entry is tagged
    with ``kind`` (task, goal or habit). Installing a template never
    modifies this row apart from ``use_count``.
    """

    __tablename__ = "templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # workspace, project, routine, workflow
    type: Mapped[str] = mapped_column(String(30), default="routine", nullable=False)
    category: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)

    creator_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    structure: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False)
    tags: Mapped[list[str]] = mapped_column(JSONType, default=list, nullable=False)

    status: Mapped[str] = mapped_column(
        String(20),
        default=TemplateStatus.DRAFT.value,
        nullable=False,
        index=True,
    )
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    use_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    version: Mapped[str] = mapped_column(String(20), default="1.0.0", nullable=False)

    def __repr__(self) -> str:
        return f"<Template {self.name!r} {self.status}>"


class UsageAction(str, Enum):
    """Kinds of data-transfer events recorded in the usage ledger."""

    TEMPLATE_INSTALL = "template_install"
    SNAPSHOT_RESTORE = "snapshot_restore"


class UsageRecord(Base, UUIDMixin, TimestampMixin):
    """Append-only audit entry for template installs and snapshot restores.

    Rows are never updated or deleted by the data-transfer pipeline.
    ``template_ref`` is a template UUID or the slug of a predefined template.
    """

    __tablename__ = "usage_records"

    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    action: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    template_ref: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    workspace_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)

    counts: Mapped[dict[str, int]] = mapped_column(JSONType, default=dict, nullable=False)
    context: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict, nullable=False)

    def __repr__(self) -> str:
        return f"<UsageRecord {self.action} user={self.user_id}>"
