"""Change events published by the task repository."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

CREATED = "created"
UPDATED = "updated"
DELETED = "deleted"
TASKS_DELETED = "tasksDeleted"
CLEARED = "cleared"
IMPORTED = "imported"
INITIALIZED = "initialized"

EVENT_NAMES = (CREATED, UPDATED, DELETED, TASKS_DELETED, CLEARED, IMPORTED, INITIALIZED)

# "*" subscribes to every event
ALL_EVENTS = "*"


@dataclass
class RepositoryEvent:
    """A single change notification.

    Attributes:
        name: Event name (created, updated, deleted, tasksDeleted, cleared, ...)
        payload: Event data, e.g. ``{"task": task, "patch": {...}}``
    """

    name: str
    payload: dict[str, Any] = field(default_factory=dict)


Subscriber = Callable[[RepositoryEvent], None]


class EventPublisher:
    """Synchronous publish/subscribe list owned by one repository."""

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscriber]] = {}

    def subscribe(self, name: str, callback: Subscriber) -> Callable[[], None]:
        """Register a callback and return a function that removes it."""
        if name != ALL_EVENTS and name not in EVENT_NAMES:
            raise ValueError(f"Unknown repository event: {name}")
        self._subscribers.setdefault(name, []).append(callback)
        return lambda: self.unsubscribe(name, callback)

    def unsubscribe(self, name: str, callback: Subscriber) -> bool:
        callbacks = self._subscribers.get(name, [])
        if callback in callbacks:
            callbacks.remove(callback)
            return True
        return False

    def publish(self, name: str, **payload: Any) -> RepositoryEvent:
        """Deliver an event to its subscribers in registration order.

        A failing subscriber is logged and does not stop delivery to the rest.
        """
        event = RepositoryEvent(name=name, payload=payload)
        for callback in [*self._subscribers.get(name, []), *self._subscribers.get(ALL_EVENTS, [])]:
            try:
                callback(event)
            except Exception:
                logger.exception("subscriber failed for event %s", name)
        return event

    def subscriber_count(self, name: str | None = None) -> int:
        if name is not None:
            return len(self._subscribers.get(name, []))
        return sum(len(callbacks) for callbacks in self._subscribers.values())
