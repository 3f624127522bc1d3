"""Custom exceptions for Taskboard CLI.

Every error carries a stable ``code`` so callers (the rule engine's result
values and the CLI's exit codes) can branch on it without string matching.
"""

from __future__ import annotations

from typing import Any


class TaskboardError(Exception):
    """Base exception for all Taskboard errors."""

    code = "TASKBOARD_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for structured result values."""
        return {"error": self.message, "code": self.code, **self.details}


class ValidationFailed(TaskboardError):
    """Raised when record data fails field or variant validation."""

    code = "VALIDATION_FAILED"

    def __init__(self, errors: list[str], warnings: list[str] | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(
            "Validation failed: " + "; ".join(self.errors),
            {"errors": self.errors, "warnings": self.warnings},
        )


class NotFound(TaskboardError):
    """Raised when no record exists for the given id."""

    code = "NOT_FOUND"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}", {"task_id": task_id})


class UnknownVariant(TaskboardError):
    """Raised when a variant is not registered."""

    code = "UNKNOWN_VARIANT"

    def __init__(self, variant: str, available: list[str] | None = None):
        self.variant = variant
        self.available = list(available or [])
        message = f"Unknown task variant: {variant}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message, {"variant": variant, "available": self.available})


class LimitExceeded(TaskboardError):
    """Raised when the collection already holds the maximum number of tasks."""

    code = "LIMIT_EXCEEDED"

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Maximum number of tasks reached ({limit})", {"limit": limit})


class ModificationNotAllowed(TaskboardError):
    """Raised when a protected field or state is edited."""

    code = "MODIFICATION_NOT_ALLOWED"

    def __init__(self, message: str, fields: list[str] | None = None):
        self.fields = list(fields or [])
        super().__init__(message, {"fields": self.fields})


class InvalidStatusTransition(TaskboardError):
    """Raised when a status change is not permitted by the transition table."""

    code = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid status transition from '{from_status}' to '{to_status}'",
            {"from": from_status, "to": to_status},
        )


class CircularDependency(TaskboardError):
    """Raised when a dependency edit would introduce a cycle."""

    code = "CIRCULAR_DEPENDENCY"

    def __init__(self, task_id: str, path: list[str] | None = None):
        self.task_id = task_id
        self.path = list(path or [])
        message = f"Circular dependency detected for task {task_id}"
        if self.path:
            message += f": {' -> '.join(self.path)}"
        super().__init__(message, {"task_id": task_id, "path": self.path})


class HasDependencies(TaskboardError):
    """Raised when deleting a task that active tasks still depend on."""

    code = "HAS_DEPENDENCIES"

    def __init__(self, task_id: str, blockers: list[dict[str, str]]):
        self.task_id = task_id
        self.blockers = blockers
        titles = ", ".join(b["title"] for b in blockers)
        super().__init__(
            f"Cannot delete task {task_id}: active tasks depend on it ({titles})",
            {"task_id": task_id, "blockers": blockers},
        )


class DependenciesIncomplete(TaskboardError):
    """Raised when completing a task whose dependencies are not all completed."""

    code = "DEPENDENCIES_INCOMPLETE"

    def __init__(self, task_id: str, incomplete: list[dict[str, str]]):
        self.task_id = task_id
        self.incomplete = incomplete
        titles = ", ".join(d["title"] for d in incomplete)
        super().__init__(
            f"Cannot complete task {task_id}: incomplete dependencies ({titles})",
            {"task_id": task_id, "incomplete": incomplete},
        )


class ApprovalRequired(TaskboardError):
    """Raised when a work task needing approval is completed before approval."""

    code = "APPROVAL_REQUIRED"

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(
            "Work task requires approval before completion", {"task_id": task_id}
        )


class StorageError(TaskboardError):
    """Base exception for persistence provider failures."""

    code = "STORAGE_ERROR"


class StorageUnavailable(StorageError):
    """Raised when the persistence provider cannot be read or written."""

    code = "STORAGE_UNAVAILABLE"


class QuotaExceeded(StorageError):
    """Raised when the persistence provider is out of space."""

    code = "QUOTA_EXCEEDED"
