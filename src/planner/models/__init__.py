"""SQLAlchemy database models."""

from planner.models.base import Base
from planner.models.block import Block
from planner.models.goal import Goal
from planner.models.habit import Habit
from planner.models.template import Template, TemplateStatus, UsageAction, UsageRecord
from planner.models.workspace import Workspace, WorkspaceMember

__all__ = [
    "Base",
    "Block",
    "Goal",
    "Habit",
    "Template",
    "TemplateStatus",
    "UsageAction",
    "UsageRecord",
    "Workspace",
    "WorkspaceMember",
]
