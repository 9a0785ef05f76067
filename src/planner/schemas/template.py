"""Pydantic schemas for template API endpoints.

Template content is a list of entries tagged by ``kind``; each kind expands
into one live entity on installation.
"""

from datetime import datetime
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts and emits camelCase keys, also accepts field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class TaskTemplate(CamelModel):
    """Task to create on installation."""

    kind: Literal["task"] = "task"
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    status: str = "todo"
    priority: Literal["low", "medium", "high", "urgent"] = "medium"
    estimated_duration: int | None = Field(None, ge=0)
    # Due date relative to installation time
    due_in_days: int | None = Field(None, ge=0)
    position: int = Field(0, ge=0)
    category: str | None = None
    tags: list[str] = Field(default_factory=list)


class GoalTemplate(CamelModel):
    """Goal to create on installation."""

    kind: Literal["goal"] = "goal"
    title: str = Field(..., min_length=1, max_length=500)
    description: str | None = None
    type: str = "monthly"
    category: str | None = None
    priority: Literal["low", "medium", "high", "critical"] = "medium"
    target_value: float | None = None
    unit: str | None = None
    target_in_days: int | None = Field(None, ge=0)
    why: str | None = None
    milestones: list[str] = Field(default_factory=list)


class HabitTemplate(CamelModel):
    """Habit to create on installation."""

    kind: Literal["habit"] = "habit"
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None
    category: str | None = None
    type: Literal["boolean", "numeric", "duration", "checklist"] = "boolean"
    frequency: Literal["daily", "weekly", "monthly"] = "daily"
    target_value: float | None = None
    unit: str | None = None
    scheduled_days: list[int] = Field(default_factory=lambda: [1, 2, 3, 4, 5, 6, 7])
    scheduled_time: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    duration: int | None = Field(None, ge=0)
    icon: str | None = None
    color: str | None = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")


TemplateEntry = Annotated[
    TaskTemplate | GoalTemplate | HabitTemplate,
    Field(discriminator="kind"),
]


# Per-kind collections of the older structure format
LEGACY_COLLECTIONS = {"blocks": "task", "tasks": "task", "goals": "goal", "habits": "habit"}


class TemplateStructure(CamelModel):
    """Installable content of a template.

    Also accepts the older ``{"blocks": [...], "goals": [...], "habits": [...]}``
    format, converting it into tagged entries. Unknown keys are rejected so
    content can never be dropped silently.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    entries: list[TemplateEntry] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def convert_legacy_format(cls, data: Any) -> Any:
        if not isinstance(data, dict) or "entries" in data:
            return data
        if not any(key in data for key in LEGACY_COLLECTIONS):
            return data

        data = dict(data)
        # Display settings of the older format carry no installable content
        data.pop("settings", None)
        entries = []
        for key, kind in LEGACY_COLLECTIONS.items():
            items = data.pop(key, None)
            if items is None:
                continue
            if not isinstance(items, list):
                # Left in place for the unknown-key error
                data[key] = items
                continue
            entries.extend(
                {**item, "kind": kind} if isinstance(item, dict) else item
                for item in items
            )
        data["entries"] = entries
        return data


class TemplateCreate(CamelModel):
    """Schema for creating a user template."""

    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    type: str = Field("routine", max_length=30)
    category: Literal[
        "productivity", "business", "education", "health", "creative", "development", "personal"
    ] = "personal"
    tags: list[str] = Field(default_factory=list, max_length=10)
    structure: TemplateStructure
    is_public: bool = False


class TemplateUpdate(CamelModel):
    """Schema for updating a user template. Omitted fields are left as is."""

    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = Field(None, max_length=500)
    type: str | None = Field(None, max_length=30)
    category: Literal[
        "productivity", "business", "education", "health", "creative", "development", "personal"
    ] | None = None
    tags: list[str] | None = Field(None, max_length=10)
    structure: TemplateStructure | None = None
    is_public: bool | None = None


class TemplateResponse(CamelModel):
    """Template as returned by the catalog."""

    id: str
    source: Literal["builtin", "user"]
    name: str
    description: str | None = None
    type: str
    category: str | None = None
    tags: list[str] = Field(default_factory=list)
    status: str
    creator_id: str | None = None
    use_count: int = 0
    structure: TemplateStructure
    created_at: datetime | None = None


class TemplateListResponse(CamelModel):
    """Catalog listing."""

    items: list[TemplateResponse]
    total: int


class InstallCustomizations(CamelModel):
    """Caller choices applied while expanding a template."""

    # Defaults to the caller's default workspace
    workspace_id: UUID | None = None
    include_tasks: bool = True
    include_goals: bool = True
    include_habits: bool = True
    # Added to every created task
    tags: list[str] = Field(default_factory=list, max_length=10)

    def includes(self, kind: str) -> bool:
        """Whether entries of ``kind`` should be installed."""
        return {
            "task": self.include_tasks,
            "goal": self.include_goals,
            "habit": self.include_habits,
        }[kind]


class InstallRequest(CamelModel):
    """Body of the install endpoint."""

    customizations: InstallCustomizations | None = None


class InstalledItem(CamelModel):
    """An entity created by an installation."""

    id: UUID
    kind: Literal["task", "goal", "habit"]
    title: str
    workspace_id: UUID


class InstalledCounts(CamelModel):
    tasks: int = 0
    goals: int = 0
    habits: int = 0


class InstalledItems(CamelModel):
    tasks: list[InstalledItem] = Field(default_factory=list)
    goals: list[InstalledItem] = Field(default_factory=list)
    habits: list[InstalledItem] = Field(default_factory=list)


class InstallResponse(CamelModel):
    """Result of installing a template."""

    success: bool = True
    message: str
    template_id: str
    template_name: str
    installation_id: UUID
    workspace_id: UUID
    installed: InstalledCounts
    total_items: int
    items: InstalledItems
