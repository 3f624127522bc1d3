"""Repository layer for Taskboard CLI.

``PersistenceProvider`` is the port (abstract base class) storage backends
implement; concrete adapters live in :mod:`taskboard_cli.adapters`.
``TaskRepository`` owns the in-memory collection and publishes change events.
"""

from .events import EventPublisher, RepositoryEvent
from .repository import PersistenceProvider, PlainRecord
from .task_repository import TaskRepository

__all__ = [
    "EventPublisher",
    "PersistenceProvider",
    "PlainRecord",
    "RepositoryEvent",
    "TaskRepository",
]
