"""Declarative validation of task data.

Rules are data: :data:`FIELD_RULES` lists the generic per-field checks, the
cross-field checks produce advisory warnings, and variant-specific checks are
looked up in the variant registry's capability table. Errors block an
operation; warnings are returned to the caller and never fail it.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic.alias_generators import to_snake

from taskboard_cli.models.task import (
    MAX_DESCRIPTION_LENGTH,
    MAX_ESTIMATED_MINUTES,
    MAX_TAG_LENGTH,
    MAX_TAGS,
    MAX_TITLE_LENGTH,
    PRIORITIES,
    STATUSES,
    ensure_aware,
    normalize_tag,
    utcnow,
)
from taskboard_cli.models.results import ValidationResult
from taskboard_cli.models.variants import VariantRegistry, VariantValidator

MAX_STRING_LENGTH = 1000
TAG_PATTERN = re.compile(r"^[a-zA-Z0-9\-_\s]+$")


@dataclass(frozen=True)
class FieldRule:
    """Checks applied to a single field."""

    kind: str = "string"  # string, number, integer, enum, date, array
    required: bool = False
    min_length: int | None = None
    max_length: int | None = None
    minimum: float | None = None
    maximum: float | None = None
    choices: tuple[str, ...] | None = None
    pattern: re.Pattern[str] | None = None
    max_items: int | None = None
    items: FieldRule | None = None
    sanitize: bool = False
    label: str = ""


FIELD_RULES: dict[str, FieldRule] = {
    "title": FieldRule(
        required=True,
        min_length=1,
        max_length=MAX_TITLE_LENGTH,
        sanitize=True,
        label="Title",
    ),
    "description": FieldRule(
        max_length=MAX_DESCRIPTION_LENGTH, sanitize=True, label="Description"
    ),
    "notes": FieldRule(max_length=MAX_STRING_LENGTH, sanitize=True, label="Notes"),
    "priority": FieldRule(kind="enum", required=True, choices=PRIORITIES, label="Priority"),
    "status": FieldRule(kind="enum", required=True, choices=STATUSES, label="Status"),
    "progress": FieldRule(kind="number", minimum=0, maximum=100, label="Progress"),
    "estimated_minutes": FieldRule(
        kind="integer",
        minimum=0,
        maximum=MAX_ESTIMATED_MINUTES,
        label="Estimated minutes",
    ),
    "actual_minutes": FieldRule(kind="integer", minimum=0, label="Actual minutes"),
    "due_date": FieldRule(kind="date", label="Due date"),
    "tags": FieldRule(
        kind="array",
        max_items=MAX_TAGS,
        items=FieldRule(
            max_length=MAX_TAG_LENGTH,
            pattern=TAG_PATTERN,
            label="Tag",
        ),
        label="Tags",
    ),
}


def sanitize_string(value: str) -> str:
    """Trim, collapse whitespace, strip angle brackets and cap the length."""
    cleaned = " ".join(value.split()).replace("<", "").replace(">", "")
    return cleaned[:MAX_STRING_LENGTH]


def normalize_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Convert camelCase keys to snake_case and map ``type`` to ``variant``."""
    normalized = {to_snake(key): value for key, value in data.items()}
    if "type" in normalized:
        legacy = normalized.pop("type")
        normalized.setdefault("variant", legacy)
    return normalized


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 string or datetime into an aware datetime.

    Raises:
        ValueError: If the value is not a timestamp
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, str):
        return ensure_aware(datetime.fromisoformat(value.replace("Z", "+00:00")))
    raise ValueError(f"not a timestamp: {value!r}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class ValidationService:
    """Validate and sanitize task data."""

    def __init__(self, registry: VariantRegistry):
        self.registry = registry
        self._custom: dict[str, list[VariantValidator]] = {}

    def add_validator(self, variant: str, validator: VariantValidator) -> None:
        """Register an extra validator for a variant.

        Args:
            variant: Variant name the validator applies to
            validator: Callable returning ``(errors, warnings)`` for snake_case data
        """
        self._custom.setdefault(variant, []).append(validator)

    def validate(self, data: Mapping[str, Any], *, now: datetime | None = None) -> ValidationResult:
        """Validate a full task mapping.

        Args:
            data: Task data (snake_case or camelCase keys)
            now: Reference time for due-date checks

        Returns:
            ValidationResult with errors, warnings and sanitized data
        """
        now = now or utcnow()
        sanitized = normalize_keys(data)
        errors: list[str] = []
        warnings: list[str] = []

        for name, rule in FIELD_RULES.items():
            value = sanitized.get(name)
            if rule.sanitize and isinstance(value, str):
                value = sanitize_string(value)
                sanitized[name] = value
            field_errors, value = self._check(rule, value)
            errors.extend(field_errors)
            if not field_errors and name in sanitized:
                sanitized[name] = value

        variant = sanitized.get("variant")
        if not variant:
            errors.append("Variant is required")
        elif variant not in self.registry:
            errors.append(
                f"Invalid task variant: {variant} (valid: {', '.join(self.registry.names())})"
            )

        for name in ("created_at", "updated_at", "completed_at"):
            if name in sanitized:
                try:
                    sanitized[name] = parse_datetime(sanitized[name])
                except ValueError:
                    errors.append(f"{name} must be a valid timestamp")

        due = sanitized.get("due_date")
        if isinstance(due, datetime) and due < now and sanitized.get("status") in ("pending", "in-progress"):
            warnings.append("Due date is in the past")

        warnings.extend(self._cross_field(sanitized))

        if variant in self.registry:
            variant_errors, variant_warnings = self.registry.validate_data(variant, sanitized)
            errors.extend(variant_errors)
            warnings.extend(variant_warnings)
            for validator in self._custom.get(variant, []):
                custom_errors, custom_warnings = validator(sanitized)
                errors.extend(custom_errors)
                warnings.extend(custom_warnings)

        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            sanitized_data=sanitized,
        )

    def validate_field(self, name: str, value: Any) -> list[str]:
        """Validate one field in isolation.

        Returns:
            Error messages; empty when the value is acceptable or the field has no rule
        """
        rule = FIELD_RULES.get(to_snake(name))
        if rule is None:
            return []
        if rule.sanitize and isinstance(value, str):
            value = sanitize_string(value)
        errors, _ = self._check(rule, value)
        return errors

    def _check(self, rule: FieldRule, value: Any) -> tuple[list[str], Any]:
        """Apply one rule, returning errors and the coerced value."""
        label = rule.label
        if value is None or value == "" or value == []:
            if rule.required:
                return [f"{label} is required"], value
            return [], value

        if rule.kind == "string":
            if not isinstance(value, str):
                return [f"{label} must be a string"], value
            if rule.min_length is not None and len(value) < rule.min_length:
                return [f"{label} must be at least {rule.min_length} characters"], value
            if rule.max_length is not None and len(value) > rule.max_length:
                return [f"{label} cannot exceed {rule.max_length} characters"], value
            if rule.pattern is not None and not rule.pattern.match(value):
                return [f"{label} '{value}' contains invalid characters"], value
            return [], value

        if rule.kind == "enum":
            if value not in (rule.choices or ()):
                return [f"{label} must be one of: {', '.join(rule.choices or ())}"], value
            return [], value

        if rule.kind in ("number", "integer"):
            if not _is_number(value):
                return [f"{label} must be a number"], value
            if rule.kind == "integer" and value != int(value):
                return [f"{label} must be a whole number"], value
            if rule.minimum is not None and value < rule.minimum:
                return [f"{label} must be at least {rule.minimum:g}"], value
            if rule.maximum is not None and value > rule.maximum:
                return [f"{label} cannot exceed {rule.maximum:g}"], value
            return [], int(round(value))

        if rule.kind == "date":
            try:
                return [], parse_datetime(value)
            except ValueError:
                return [f"{label} must be a valid date"], value

        if rule.kind == "array":
            if not isinstance(value, (list, tuple, set)):
                return [f"{label} must be a list"], value
            items = list(value)
            errors = []
            if rule.max_items is not None and len(items) > rule.max_items:
                errors.append(f"Cannot have more than {rule.max_items} {label.lower()}")
            if rule.items is not None:
                for item in items:
                    item_errors, _ = self._check(rule.items, item)
                    errors.extend(item_errors)
            if errors:
                return errors, value
            if label == "Tags":
                items = list(dict.fromkeys(normalize_tag(item) for item in items))
            return [], items

        return [], value

    def _cross_field(self, data: dict[str, Any]) -> list[str]:
        warnings = []
        status = data.get("status")
        progress = data.get("progress")
        if _is_number(progress):
            if status == "completed" and progress < 100:
                warnings.append("Completed tasks should have 100% progress")
            if status == "pending" and progress > 0:
                warnings.append("Pending tasks usually have 0% progress")
        estimated = data.get("estimated_minutes")
        actual = data.get("actual_minutes")
        if _is_number(estimated) and _is_number(actual) and estimated > 0 and actual > estimated * 2:
            warnings.append("Actual time is more than double the estimate")
        return warnings
