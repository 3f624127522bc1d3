"""Utility modules for Taskboard CLI."""
