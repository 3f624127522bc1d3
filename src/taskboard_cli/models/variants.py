"""Variant capability table and registry.

Each variant name maps to a :class:`VariantCapability`: the pydantic shape it
is built with, the defaults merged under caller data, post-creation tags,
templates, and three behaviours (validator, describer and status hook). The
registry is a plain object created once at the composition root and handed
to the factory and the repository; nothing here is global.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ApprovalRequired, ModificationNotAllowed, UnknownVariant
from .results import DisplayInfo, ValidationResult
from .task import (
    ENERGY_LEVELS,
    PERSONAL_CATEGORIES,
    WORK_LOCATIONS,
    GenericTask,
    PersonalTask,
    ProjectTask,
    TaskRecord,
    WorkTask,
)

# (errors, warnings) for a snake_case data mapping
VariantValidator = Callable[[dict[str, Any]], tuple[list[str], list[str]]]
Describer = Callable[[TaskRecord], DisplayInfo]
StatusHook = Callable[[TaskRecord, str, str], None]
TagBuilder = Callable[[TaskRecord], list[str]]


@dataclass
class VariantCapability:
    """Everything the system knows about one variant."""

    name: str
    shape: type[TaskRecord]
    defaults: dict[str, Any] = field(default_factory=dict)
    tags: TagBuilder | None = None
    validate: VariantValidator | None = None
    describe: Describer | None = None
    on_status_changed: StatusHook | None = None
    needs_due_date: bool = False
    templates: dict[str, dict[str, Any]] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_negative(value: Any, label: str) -> list[str]:
    if value is None:
        return []
    if not _is_number(value):
        return [f"{label} must be a number"]
    if value < 0:
        return [f"{label} cannot be negative"]
    return []


def validate_work(data: dict[str, Any]) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    warnings: list[str] = []
    for key, label in (("billable_hours", "Billable hours"), ("hourly_rate", "Hourly rate")):
        errors.extend(_non_negative(data.get(key), label))
    location = data.get("work_location")
    if location is not None and location not in WORK_LOCATIONS:
        errors.append(f"Work location must be one of: {', '.join(WORK_LOCATIONS)}")
    if data.get("meeting_required") and not data.get("due_date"):
        warnings.append("Meeting tasks should have a due date")
    return errors, warnings


def validate_personal(data: dict[str, Any]) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    motivation = data.get("motivation_level")
    if motivation is not None and (
        not _is_number(motivation) or not 1 <= motivation <= 10
    ):
        errors.append("Motivation level must be between 1 and 10")
    energy = data.get("energy_level")
    if energy is not None and energy not in ENERGY_LEVELS:
        errors.append(f"Energy level must be one of: {', '.join(ENERGY_LEVELS)}")
    category = data.get("category")
    if category is not None and category not in PERSONAL_CATEGORIES:
        errors.append(f"Category must be one of: {', '.join(PERSONAL_CATEGORIES)}")
    return errors, []


def validate_project(data: dict[str, Any]) -> tuple[list[str], list[str]]:
    errors: list[str] = []
    for key, label in (
        ("story_points", "Story points"),
        ("budget", "Budget"),
        ("actual_cost", "Actual cost"),
    ):
        errors.extend(_non_negative(data.get(key), label))
    dependencies = data.get("dependencies")
    if dependencies is not None:
        if not isinstance(dependencies, (list, tuple, set)):
            errors.append("Dependencies must be a list of task ids")
        elif data.get("id") and data["id"] in dependencies:
            errors.append("Task cannot depend on itself")
    return errors, []


# ---------------------------------------------------------------------------
# Describers
# ---------------------------------------------------------------------------

_CATEGORY_ICONS = {
    "general": "🌟",
    "health": "💪",
    "finance": "💰",
    "learning": "📚",
    "household": "🏠",
    "social": "👥",
    "hobby": "🎨",
}
_ENERGY_COLORS = {"low": "#10b981", "medium": "#f59e0b", "high": "#ef4444"}
_PHASE_ICONS = {
    "planning": "📋",
    "design": "🎨",
    "development": "💻",
    "testing": "🧪",
    "deployment": "🚀",
    "maintenance": "🔧",
}


def describe_generic(task: TaskRecord) -> DisplayInfo:
    return DisplayInfo(icon="📝", color="#6b7280", label="Task")


def describe_work(task: TaskRecord) -> DisplayInfo:
    assert isinstance(task, WorkTask)
    badges = []
    if task.requires_approval:
        badges.append("Approved" if task.approved_by else "Needs Approval")
    if task.meeting_required:
        badges.append("Meeting")
    details: dict[str, Any] = {"location": task.work_location}
    if task.billable_hours:
        details["billable_amount"] = task.billable_amount
    if task.client_name:
        details["client"] = task.client_name
    if task.variant == "meeting":
        return DisplayInfo(
            icon="📅", color="#7c3aed", label="Meeting", badges=badges, details=details
        )
    return DisplayInfo(
        icon="🏢", color="#2563eb", label="Work", badges=badges, details=details
    )


def describe_personal(task: TaskRecord) -> DisplayInfo:
    assert isinstance(task, PersonalTask)
    details = {
        "category": task.category,
        "energy": task.energy_level,
        "motivation": task.motivation_level,
    }
    color = _ENERGY_COLORS.get(task.energy_level, "#f59e0b")
    if task.variant == "reminder":
        return DisplayInfo(icon="⏰", color=color, label="Reminder", details=details)
    if task.variant == "goal":
        return DisplayInfo(
            icon="🎯",
            color=color,
            label="Goal",
            badges=[f"Motivation {task.motivation_level}/10"],
            details=details,
        )
    badges = [f"Reward: {task.reward_planned}"] if task.reward_planned else []
    return DisplayInfo(
        icon=_CATEGORY_ICONS.get(task.category, "🌟"),
        color=color,
        label="Personal",
        badges=badges,
        details=details,
    )


def describe_project(task: TaskRecord) -> DisplayInfo:
    assert isinstance(task, ProjectTask)
    badges = [f"{task.story_points:g} SP"]
    if task.is_blocked:
        badges.insert(0, "Blocked")
    if task.sprint:
        badges.append(f"Sprint {task.sprint}")
    return DisplayInfo(
        icon=_PHASE_ICONS.get(task.phase, "📋"),
        color="#dc2626" if task.is_blocked else "#7c3aed",
        label="Project",
        badges=badges,
        details={
            "phase": task.phase,
            "dependencies": len(task.dependencies),
            "health": task.health_score(),
        },
    )


# ---------------------------------------------------------------------------
# Status hooks
# ---------------------------------------------------------------------------


def work_status_changed(task: TaskRecord, old: str, new: str) -> None:
    assert isinstance(task, WorkTask)
    if new == "completed":
        if not task.is_approved:
            raise ApprovalRequired(task.id)
        task.add_tags("completed-work")
    elif new == "in-progress":
        task.add_tags("active-work")


def personal_status_changed(task: TaskRecord, old: str, new: str) -> None:
    assert isinstance(task, PersonalTask)
    if new == "completed":
        task.motivation_level = min(task.motivation_level + 1, 10)
        task.add_tags("personal-win", f"{task.category}-completed")


def project_status_changed(task: TaskRecord, old: str, new: str) -> None:
    assert isinstance(task, ProjectTask)
    if new == "in-progress" and task.is_blocked:
        reason = f": {task.blocking_reason}" if task.blocking_reason else ""
        raise ModificationNotAllowed(
            f"Cannot start blocked project task{reason}", ["status"]
        )
    if new == "completed":
        task.add_tags("project-completed", f"{task.phase}-complete")


# ---------------------------------------------------------------------------
# Post-creation tags
# ---------------------------------------------------------------------------


def work_tags(task: TaskRecord) -> list[str]:
    assert isinstance(task, WorkTask)
    return ["professional"] + (["meeting"] if task.meeting_required else [])


def personal_tags(task: TaskRecord) -> list[str]:
    assert isinstance(task, PersonalTask)
    return ["self-care"] + (["healthy"] if task.health_impact == "positive" else [])


_SPRINT_UNSAFE = re.compile(r"[^a-z0-9\-_\s]+")


def project_tags(task: TaskRecord) -> list[str]:
    assert isinstance(task, ProjectTask)
    if not task.sprint:
        return ["project-management"]
    # sprint names may carry dots or slashes; tags only allow word characters, "-" and spaces
    sprint = _SPRINT_UNSAFE.sub("-", str(task.sprint).lower()).strip("-")
    return ["project-management"] + ([f"sprint-{sprint}"] if sprint else [])


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

WORK_TEMPLATES: dict[str, dict[str, Any]] = {
    "meeting": {
        "title": "Team Meeting",
        "description": "Weekly team sync meeting",
        "estimated_minutes": 60,
        "meeting_required": True,
        "tags": ["meeting", "team"],
    },
    "development": {
        "title": "Development Task",
        "description": "Code development and implementation",
        "estimated_minutes": 240,
        "tags": ["development", "coding"],
    },
    "review": {
        "title": "Code Review",
        "description": "Review team member's code",
        "estimated_minutes": 30,
        "requires_approval": True,
        "tags": ["review", "quality-assurance"],
    },
    "client-call": {
        "title": "Client Call",
        "description": "Call with client to discuss project",
        "estimated_minutes": 30,
        "meeting_required": True,
        "work_location": "remote",
        "tags": ["client", "call", "meeting"],
    },
}

PERSONAL_TEMPLATES: dict[str, dict[str, Any]] = {
    "exercise": {
        "title": "Daily Exercise",
        "description": "30 minutes of physical activity",
        "category": "health",
        "energy_level": "high",
        "estimated_minutes": 30,
        "health_impact": "positive",
        "location": "gym",
        "tags": ["exercise", "daily", "health"],
    },
    "meditation": {
        "title": "Meditation Session",
        "description": "10 minutes of mindfulness meditation",
        "category": "health",
        "energy_level": "low",
        "estimated_minutes": 10,
        "health_impact": "positive",
        "tags": ["meditation", "mindfulness", "daily"],
    },
    "learning": {
        "title": "Learning Session",
        "description": "Study or learn something new",
        "category": "learning",
        "estimated_minutes": 60,
        "tags": ["learning", "growth", "skill"],
    },
    "household": {
        "title": "Household Chore",
        "description": "General household maintenance task",
        "category": "household",
        "estimated_minutes": 45,
        "tags": ["chore", "home", "maintenance"],
    },
}

PROJECT_TEMPLATES: dict[str, dict[str, Any]] = {
    "feature": {
        "title": "New Feature Development",
        "description": "Develop and implement new feature",
        "phase": "development",
        "story_points": 5,
        "estimated_minutes": 480,
        "tags": ["feature", "development"],
    },
    "bug-fix": {
        "title": "Bug Fix",
        "description": "Investigate and fix reported bug",
        "phase": "development",
        "priority": "high",
        "story_points": 2,
        "estimated_minutes": 120,
        "tags": ["bug", "fix", "maintenance"],
    },
    "research": {
        "title": "Research Task",
        "description": "Research and analyze technical solution",
        "phase": "planning",
        "story_points": 3,
        "estimated_minutes": 240,
        "tags": ["research", "analysis", "planning"],
    },
}


def default_capabilities() -> list[VariantCapability]:
    """Build the capability table for the built-in variants."""
    return [
        VariantCapability(name="generic", shape=GenericTask, describe=describe_generic),
        VariantCapability(
            name="work",
            shape=WorkTask,
            defaults={"priority": "medium", "work_location": "office", "billable_hours": 0},
            tags=work_tags,
            validate=validate_work,
            describe=describe_work,
            on_status_changed=work_status_changed,
            templates=WORK_TEMPLATES,
        ),
        VariantCapability(
            name="personal",
            shape=PersonalTask,
            defaults={
                "category": "general",
                "energy_level": "medium",
                "motivation_level": 5,
                "location": "home",
            },
            tags=personal_tags,
            validate=validate_personal,
            describe=describe_personal,
            on_status_changed=personal_status_changed,
            templates=PERSONAL_TEMPLATES,
        ),
        VariantCapability(
            name="project",
            shape=ProjectTask,
            defaults={
                "phase": "planning",
                "story_points": 1,
                "assignees": [],
                "dependencies": [],
            },
            tags=project_tags,
            validate=validate_project,
            describe=describe_project,
            on_status_changed=project_status_changed,
            templates=PROJECT_TEMPLATES,
        ),
        VariantCapability(
            name="reminder",
            shape=PersonalTask,
            defaults={"category": "general", "energy_level": "low", "priority": "medium"},
            tags=lambda task: ["reminder", "notification"],
            validate=validate_personal,
            describe=describe_personal,
            on_status_changed=personal_status_changed,
            needs_due_date=True,
        ),
        VariantCapability(
            name="meeting",
            shape=WorkTask,
            defaults={
                "meeting_required": True,
                "estimated_minutes": 60,
                "work_location": "office",
            },
            tags=lambda task: ["meeting", "collaboration"],
            validate=validate_work,
            describe=describe_work,
            on_status_changed=work_status_changed,
            needs_due_date=True,
        ),
        VariantCapability(
            name="goal",
            shape=PersonalTask,
            defaults={
                "category": "general",
                "motivation_level": 8,
                "health_impact": "positive",
            },
            tags=lambda task: ["goal", "achievement", "growth"],
            validate=validate_personal,
            describe=describe_personal,
            on_status_changed=personal_status_changed,
        ),
    ]


class VariantRegistry:
    """Mutable mapping of variant names to their capabilities."""

    def __init__(self, capabilities: list[VariantCapability] | None = None):
        self._capabilities: dict[str, VariantCapability] = {}
        for capability in default_capabilities() if capabilities is None else capabilities:
            self.register(capability)

    def register(self, capability: VariantCapability) -> None:
        """Add or replace a variant."""
        self._capabilities[capability.name] = capability

    def register_variant(
        self, name: str, shape: type[TaskRecord], **options: Any
    ) -> VariantCapability:
        """Register a variant from a shape plus optional capability fields."""
        capability = VariantCapability(name=name, shape=shape, **options)
        self.register(capability)
        return capability

    def unregister_variant(self, name: str) -> bool:
        """Remove a variant. Returns False when it was not registered."""
        return self._capabilities.pop(name, None) is not None

    def get(self, name: str) -> VariantCapability:
        """Look up a variant.

        Raises:
            UnknownVariant: If the variant is not registered
        """
        try:
            return self._capabilities[name]
        except KeyError:
            raise UnknownVariant(name, self.names()) from None

    def names(self) -> list[str]:
        return list(self._capabilities)

    def __contains__(self, name: object) -> bool:
        return name in self._capabilities

    def __len__(self) -> int:
        return len(self._capabilities)

    def validate_data(self, variant: str, data: dict[str, Any]) -> tuple[list[str], list[str]]:
        """Run the variant's validator over snake_case data."""
        capability = self._capabilities.get(variant)
        if capability is None or capability.validate is None:
            return [], []
        return capability.validate(data)

    def validate_task(self, task: TaskRecord) -> ValidationResult:
        """Check record invariants plus the variant's own rules."""
        errors = task.check_invariants()
        variant_errors, warnings = self.validate_data(task.variant, task.to_data())
        errors.extend(variant_errors)
        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def describe(self, task: TaskRecord) -> DisplayInfo:
        capability = self._capabilities.get(task.variant)
        if capability is None or capability.describe is None:
            return describe_generic(task)
        return capability.describe(task)

    def on_status_changed(self, task: TaskRecord, old: str, new: str) -> None:
        """Run the variant's status hook; the hook may raise to veto."""
        capability = self._capabilities.get(task.variant)
        if capability is not None and capability.on_status_changed is not None:
            capability.on_status_changed(task, old, new)
