"""Builtin template catalog."""

from planner.templates.builtin import BUILTIN_TEMPLATES, BuiltinTemplate

__all__ = ["BUILTIN_TEMPLATES", "BuiltinTemplate"]
