"""Result and summary models returned by services and the repository."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .task import TaskRecord


class ValidationResult(BaseModel):
    """Outcome of a validation run.

    Attributes:
        valid: True when there are no errors
        errors: Blocking problems
        warnings: Advisory problems that do not block the operation
        sanitized_data: Input with string fields cleaned up
    """

    valid: bool = True
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    sanitized_data: dict[str, Any] = Field(default_factory=dict)


class DisplayInfo(BaseModel):
    """Variant-specific display metadata."""

    icon: str
    color: str
    label: str
    badges: list[str] = Field(default_factory=list)
    details: dict[str, Any] = Field(default_factory=dict)


class OperationResult(BaseModel):
    """Structured outcome of a rule-engine operation.

    Rule rejections are reported here instead of being raised, so callers can
    render field-level feedback.

    Attributes:
        success: Whether the operation was applied
        task: The resulting task, when there is one
        message: Human-readable summary
        error: Error message on failure
        code: Stable error code on failure
        details: Extra error context (blockers, path, field errors)
        warnings: Advisory validation warnings
        unblocked: Tasks whose dependencies became satisfied
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    success: bool
    task: TaskRecord | None = None
    message: str = ""
    error: str | None = None
    code: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)
    unblocked: list[TaskRecord] = Field(default_factory=list)


class ImportResult(BaseModel):
    """Outcome of importing plain records."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    imported_count: int = 0
    errors: list[str] = Field(default_factory=list)


class TaskStats(BaseModel):
    """Aggregate statistics over the task collection."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total: int = 0
    by_status: dict[str, int] = Field(default_factory=dict)
    by_type: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
    completed: int = 0
    completion_rate: float = 0.0
    overdue: int = 0
    due_today: int = 0
    due_this_week: int = 0


class Page(BaseModel):
    """One page of tasks."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[TaskRecord] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 20

    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return -(-self.total // self.page_size)

    @property
    def has_next(self) -> bool:
        return self.page < self.pages
