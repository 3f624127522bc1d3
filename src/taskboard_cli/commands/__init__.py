"""Command modules for Taskboard CLI."""
