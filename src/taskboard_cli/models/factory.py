"""Task factory.

Builds typed task records from loose data: merges variant defaults under the
caller's fields, validates, instantiates the variant's pydantic shape and
applies post-creation setup (variant tags, default due dates). The factory is
also the only component that turns plain records back into typed records.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta
from typing import Any

from pydantic import ValidationError

from taskboard_cli.services.validation_service import ValidationService, normalize_keys

from .exceptions import TaskboardError, ValidationFailed
from .task import TaskRecord, utcnow
from .variants import VariantCapability, VariantRegistry

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase

BASE_DEFAULTS: dict[str, Any] = {
    "description": "",
    "priority": "medium",
    "status": "pending",
    "progress": 0,
    "tags": [],
}

FIELD_INDICATORS: dict[str, tuple[str, ...]] = {
    "work": ("project_name", "client_name", "billable_hours", "department", "meeting_required"),
    "project": ("project_id", "milestone", "dependencies", "story_points", "sprint", "assignees"),
    "personal": ("category", "energy_level", "motivation_level", "reward_planned", "health_impact"),
}

KEYWORD_INDICATORS: dict[str, tuple[str, ...]] = {
    "work": ("meeting", "client", "project", "deadline", "presentation", "report"),
    "project": ("develop", "implement", "design", "test", "deploy", "feature"),
    "personal": ("exercise", "health", "learn", "hobby", "family", "personal"),
}


def to_base36(number: int) -> str:
    """Encode a non-negative integer in base 36."""
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def pydantic_errors(exc: ValidationError) -> list[str]:
    """Flatten a pydantic ValidationError into readable messages."""
    messages = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"])
        messages.append(f"{location}: {error['msg']}" if location else error["msg"])
    return messages


class TaskFactory:
    """Create and reconstruct task records through the variant registry."""

    def __init__(
        self,
        registry: VariantRegistry,
        validator: ValidationService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.registry = registry
        self.validator = validator or ValidationService(registry)
        self.clock = clock

    # ------------------------------------------------------------------
    # Registry passthrough
    # ------------------------------------------------------------------

    def register_variant(
        self, name: str, shape: type[TaskRecord], **options: Any
    ) -> VariantCapability:
        """Register a new variant without modifying the factory."""
        return self.registry.register_variant(name, shape, **options)

    def unregister_variant(self, name: str) -> bool:
        """Remove a variant from the registry."""
        return self.registry.unregister_variant(name)

    def available_variants(self) -> list[str]:
        return self.registry.names()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def generate_id(self) -> str:
        """Generate an id of the form ``task_<base36 millis>_<6 random chars>``."""
        millis = int(self.clock().timestamp() * 1000)
        suffix = "".join(secrets.choice(_BASE36) for _ in range(6))
        return f"task_{to_base36(millis)}_{suffix}"

    def merge_defaults(self, variant: str, data: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Merge base and variant defaults under the caller's data.

        Raises:
            UnknownVariant: If the variant is not registered
        """
        capability = self.registry.get(variant)
        merged: dict[str, Any] = {**BASE_DEFAULTS, **capability.defaults}
        merged.update(normalize_keys(data or {}))
        merged["variant"] = variant
        return merged

    def create(self, variant: str, data: Mapping[str, Any] | None = None) -> TaskRecord:
        """Create a new task of the given variant.

        Args:
            variant: Registered variant name
            data: Caller-supplied fields; they win over variant defaults

        Returns:
            The new task, with post-creation setup applied

        Raises:
            UnknownVariant: If the variant is not registered
            ValidationFailed: If the merged data or the built record is invalid
        """
        capability = self.registry.get(variant)
        merged = self.merge_defaults(variant, data)
        result = self.validator.validate(merged, now=self.clock())
        if not result.valid:
            raise ValidationFailed(result.errors, result.warnings)

        task = self._build(capability, result.sanitized_data)
        self._post_create(capability, task)
        logger.debug("created %s task %s", variant, task.id)
        return task

    def create_with_auto_detection(self, data: Mapping[str, Any]) -> TaskRecord:
        """Create a task, guessing the variant when none is supplied.

        The guess is a best-effort heuristic; see :meth:`detect_variant`.
        """
        normalized = normalize_keys(data)
        variant = normalized.pop("variant", None) or self.detect_variant(normalized)
        return self.create(variant, normalized)

    def detect_variant(self, data: Mapping[str, Any]) -> str:
        """Score data against work, project and personal indicators.

        Each indicator field that is present scores one point, and so does
        each indicator keyword found in the title or description. The highest
        score wins; ties (including no matches at all) fall back to personal.
        """
        normalized = normalize_keys(data)
        text = f"{normalized.get('title') or ''} {normalized.get('description') or ''}".lower()
        scores = {}
        for variant, fields in FIELD_INDICATORS.items():
            score = sum(1 for name in fields if normalized.get(name) is not None)
            score += sum(1 for keyword in KEYWORD_INDICATORS[variant] if keyword in text)
            scores[variant] = score

        best = max(scores.values())
        winners = [variant for variant, score in scores.items() if score == best]
        if len(winners) > 1:
            return "personal"
        return winners[0]

    def create_from_template(
        self,
        variant: str,
        template_name: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> TaskRecord:
        """Create a task from one of the variant's templates.

        Raises:
            UnknownVariant: If the variant is not registered
            ValidationFailed: If the template does not exist or the result is invalid
        """
        return self.create(variant, self.template_data(variant, template_name, overrides))

    def template_data(
        self,
        variant: str,
        template_name: str,
        overrides: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Resolve a template into creation data without building the task.

        Raises:
            UnknownVariant: If the variant is not registered
            ValidationFailed: If the template does not exist
        """
        capability = self.registry.get(variant)
        template = capability.templates.get(template_name)
        if template is None:
            raise ValidationFailed(
                [f"Template '{template_name}' not found for variant {variant}"]
            )
        data = {**template, "tags": list(template.get("tags", []))}
        data.update(normalize_keys(overrides or {}))
        return data

    def templates(self, variant: str | None = None) -> dict[str, dict[str, dict[str, Any]]]:
        """List templates, optionally for a single variant."""
        names = [variant] if variant else self.registry.names()
        return {
            name: dict(self.registry.get(name).templates)
            for name in names
            if self.registry.get(name).templates
        }

    def create_many(
        self, items: list[Mapping[str, Any]]
    ) -> tuple[list[TaskRecord], list[str]]:
        """Create several tasks, collecting per-item errors instead of failing."""
        tasks: list[TaskRecord] = []
        errors: list[str] = []
        for index, item in enumerate(items):
            try:
                tasks.append(self.create_with_auto_detection(item))
            except TaskboardError as e:
                errors.append(f"Item {index}: {e.message}")
        return tasks, errors

    # ------------------------------------------------------------------
    # Reconstruction
    # ------------------------------------------------------------------

    def restore(self, record: Mapping[str, Any]) -> TaskRecord:
        """Rebuild a typed record from a plain record.

        No post-creation setup runs; the record is taken as stored.

        Raises:
            UnknownVariant: If the record's variant is not registered
            ValidationFailed: If the record is malformed
        """
        if not isinstance(record, Mapping):
            raise ValidationFailed(["Record must be a mapping"])
        data = normalize_keys(record)
        variant = data.get("variant")
        if not variant:
            raise ValidationFailed(["Variant is required"])
        capability = self.registry.get(variant)
        return self._build(capability, {**capability.defaults, **data})

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _build(self, capability: VariantCapability, data: dict[str, Any]) -> TaskRecord:
        now = self.clock()
        payload = {key: value for key, value in data.items() if value is not None}
        payload["variant"] = capability.name
        payload.setdefault("id", self.generate_id())
        payload.setdefault("created_at", now)
        payload.setdefault("updated_at", payload["created_at"])
        if payload.get("status") == "completed":
            payload["progress"] = 100
            payload.setdefault("completed_at", now)
        else:
            payload.pop("completed_at", None)

        try:
            task = capability.shape.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailed(pydantic_errors(e)) from e

        result = self.registry.validate_task(task)
        if not result.valid:
            raise ValidationFailed(result.errors, result.warnings)
        return task

    def _post_create(self, capability: VariantCapability, task: TaskRecord) -> None:
        task.add_tags(capability.name)
        if capability.tags is not None:
            task.add_tags(*capability.tags(task))
        if capability.needs_due_date and task.due_date is None:
            task.due_date = task.created_at + timedelta(days=1)
