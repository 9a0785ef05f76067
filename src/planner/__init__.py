"""Planner - digital planner backend.

Exports, restores and templates a user's workspaces, tasks, goals and
habits over a REST API.
"""

__version__ = "0.1.0"
