"""Snapshot and template services."""
