"""Taskboard CLI - typed task management with variant-specific business rules."""

__version__ = "0.1.0"
