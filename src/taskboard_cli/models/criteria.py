"""Filter criteria for repository queries."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .exceptions import ValidationFailed
from .task import Priority, Status, ensure_aware


class TaskCriteria(BaseModel):
    """Filters for ``TaskRepository.find``.

    Every field that is set narrows the result (logical AND). An empty
    criteria object matches every task.

    Attributes:
        variant: Exact variant name (``type`` is accepted as an alias)
        status: Exact status
        priority: Exact priority
        tags: Tags that must all be present
        due_date: Calendar day the task is due on
        overdue: True for overdue tasks only, False for non-overdue only
        completed: True for completed tasks only, False for the rest
        search: Case-insensitive substring over title, description and tags
        created_after: Inclusive lower bound on created_at
        created_before: Inclusive upper bound on created_at
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    variant: str | None = Field(
        default=None, validation_alias=AliasChoices("variant", "type")
    )
    status: Status | None = None
    priority: Priority | None = None
    tags: list[str] | None = None
    due_date: date | None = None
    overdue: bool | None = None
    completed: bool | None = None
    search: str | None = None
    created_after: datetime | None = None
    created_before: datetime | None = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_as_list(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v

    @field_validator("due_date", mode="before")
    @classmethod
    def _day_only(cls, v: Any) -> Any:
        if isinstance(v, datetime):
            return ensure_aware(v).date()
        if isinstance(v, str) and "T" in v:
            return datetime.fromisoformat(v.replace("Z", "+00:00")).date()
        return v

    @field_validator("created_after", "created_before")
    @classmethod
    def _aware(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v)

    @classmethod
    def coerce(cls, criteria: TaskCriteria | dict[str, Any] | None) -> TaskCriteria:
        """Accept a criteria object, a plain mapping or None.

        Raises:
            ValidationFailed: If a criterion has an invalid value
        """
        if criteria is None:
            return cls()
        if isinstance(criteria, cls):
            return criteria
        try:
            return cls.model_validate(
                {k: v for k, v in criteria.items() if v is not None}
            )
        except ValidationError as e:
            raise ValidationFailed(
                [f"{'.'.join(map(str, err['loc']))}: {err['msg']}" for err in e.errors()]
            ) from e
