"""API routers."""

from planner.api.routers import admin, backup, templates

__all__ = [
    "admin",
    "backup",
    "templates",
]
