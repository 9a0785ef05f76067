"""Snapshot (backup file) schemas.

A snapshot is the portable JSON document produced by export and consumed by
restore. Keys are camelCase on the wire; record field names match the
database column names so records map onto models without translation.
Unknown keys are accepted and ignored so newer exports stay restorable.
"""

from datetime import date, datetime
from typing import Any
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class SnapshotModel(BaseModel):
    """Base for every snapshot document model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class SnapshotRecord(SnapshotModel):
    """Fields shared by every exported entity."""

    id: UUID
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def column_values(self) -> dict[str, Any]:
        """Declared field values keyed by column name, extras dropped."""
        return self.model_dump(include=set(type(self).model_fields))


class WorkspaceRecord(SnapshotRecord):
    name: str
    slug: str
    description: str | None = None
    owner_id: str | None = None
    is_personal: bool = True
    is_public: bool = False
    color: str | None = None
    icon: str | None = None
    settings: dict[str, Any] = Field(default_factory=dict)
    template_id: str | None = None
    max_members: int = 10
    is_archived: bool = False
    archived_at: datetime | None = None


class WorkspaceMemberRecord(SnapshotRecord):
    workspace_id: UUID
    user_id: str
    role: str = "member"
    permissions: dict[str, Any] = Field(default_factory=dict)
    joined_at: datetime | None = None
    invited_by: str | None = None


class TaskRecord(SnapshotRecord):
    """A block; tasks are blocks of type ``task``."""

    type: str = "task"
    title: str
    description: str | None = None
    workspace_id: UUID
    parent_id: UUID | None = None
    position: int = 0
    content: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    status: str = "todo"
    priority: str = "medium"
    due_date: datetime | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    estimated_duration: int | None = None
    created_by: str | None = None
    assigned_to: str | None = None
    progress: int = 0
    completed_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    category: str | None = None
    is_archived: bool = False


class GoalRecord(SnapshotRecord):
    title: str
    description: str | None = None
    type: str = "monthly"
    parent_goal_id: UUID | None = None
    workspace_id: UUID
    category: str | None = None
    priority: str = "medium"
    status: str = "not_started"
    progress: int = 0
    target_value: float | None = None
    current_value: float = 0.0
    unit: str | None = None
    start_date: datetime | None = None
    target_date: datetime | None = None
    completed_at: datetime | None = None
    why: str | None = None
    milestones: list[Any] = Field(default_factory=list)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_by: str | None = None
    is_public: bool = False
    is_archived: bool = False


class HabitRecord(SnapshotRecord):
    name: str
    description: str | None = None
    icon: str | None = None
    color: str | None = None
    category: str | None = None
    type: str = "boolean"
    target_value: float | None = None
    unit: str | None = None
    frequency: str = "daily"
    scheduled_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7])
    scheduled_time: str | None = None
    duration: int | None = None
    current_streak: int = 0
    longest_streak: int = 0
    total_completed: int = 0
    start_date: date | None = None
    end_date: date | None = None
    last_completed_at: datetime | None = None
    reminder_enabled: bool = True
    status: str = "active"
    metadata: dict[str, Any] = Field(default_factory=dict)
    user_id: str | None = None
    workspace_id: UUID
    is_archived: bool = False


class TemplateRecord(SnapshotRecord):
    name: str
    description: str | None = None
    type: str = "routine"
    category: str | None = None
    creator_id: str | None = None
    structure: dict[str, Any]
    tags: list[str] = Field(default_factory=list)
    status: str = "draft"
    is_public: bool = False
    use_count: int = 0
    version: str = "1.0.0"


class SnapshotOwner(SnapshotModel):
    """Identity of the user the snapshot was exported for."""

    id: str = Field(..., min_length=1)
    email: str | None = None


class SnapshotCollections(SnapshotModel):
    """Entity arrays carried by a snapshot."""

    workspaces: list[WorkspaceRecord]
    workspace_members: list[WorkspaceMemberRecord] = Field(default_factory=list)
    tasks: list[TaskRecord] = Field(
        validation_alias=AliasChoices("tasks", "blocks"),
        serialization_alias="tasks",
    )
    goals: list[GoalRecord]
    habits: list[HabitRecord]
    templates: list[TemplateRecord]


class Snapshot(SnapshotModel):
    """A full export of one user's planning data."""

    format_version: str
    exported_at: datetime | None = None
    owner: SnapshotOwner
    collections: SnapshotCollections


class RestoredCounts(BaseModel):
    """Newly created records per collection after a restore."""

    workspaces: int = 0
    blocks: int = 0
    goals: int = 0
    habits: int = 0
    templates: int = 0


class RestoreResponse(BaseModel):
    """Response after restore operation."""

    success: bool
    message: str
    restored: RestoredCounts
