"""Task service layer - business rules on top of the task repository.

Every operation (create, update, delete, complete) runs an ordered pipeline
of rule functions before anything is stored. A rule receives the proposed
data and a :class:`RuleContext` (existing record, collected warnings) and
returns the data, possibly transformed, or raises a ``TaskboardError`` to
abort the pipeline. Rejections are returned to the caller as
:class:`OperationResult` values; storage failures propagate as exceptions.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from taskboard_cli.models.criteria import TaskCriteria
from taskboard_cli.models.exceptions import (
    ApprovalRequired,
    CircularDependency,
    DependenciesIncomplete,
    HasDependencies,
    InvalidStatusTransition,
    LimitExceeded,
    ModificationNotAllowed,
    StorageError,
    TaskboardError,
    ValidationFailed,
)
from taskboard_cli.models.results import OperationResult, Page, TaskStats
from taskboard_cli.models.task import MAX_TITLE_LENGTH, TaskRecord, WorkTask
from taskboard_cli.repositories.task_repository import TaskRepository
from taskboard_cli.services.dependency_graph import (
    build_graph,
    dependencies_of,
    dependents_of,
    find_cycle,
    find_unblocked,
    incomplete_dependencies,
    unknown_dependencies,
)
from taskboard_cli.services.validation_service import ValidationService, normalize_keys

logger = logging.getLogger(__name__)

DEFAULT_MAX_TASKS = 1000

STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"in-progress", "cancelled"}),
    "in-progress": frozenset({"completed", "pending", "cancelled"}),
    "completed": frozenset({"in-progress"}),
    "cancelled": frozenset({"pending", "in-progress"}),
}

# Fields frozen once a task is completed
PROTECTED_WHEN_COMPLETED = ("variant", "created_at")

OPERATIONS = ("create", "update", "delete", "complete")


def can_transition(old: str, new: str) -> bool:
    """Check the status transition table (no-op moves are always allowed)."""
    return old == new or new in STATUS_TRANSITIONS.get(old, frozenset())


@dataclass
class RuleContext:
    """State shared by the rules of one pipeline run.

    Attributes:
        operation: create, update, delete or complete
        task_id: Id of the task being changed, when known
        existing: Stored task for update/delete/complete
        warnings: Advisory messages collected along the way
        allow_routing: Whether pending -> completed may pass through in-progress
    """

    operation: str
    task_id: str | None = None
    existing: TaskRecord | None = None
    warnings: list[str] = field(default_factory=list)
    allow_routing: bool = False


Rule = Callable[[dict[str, Any], RuleContext], dict[str, Any]]


def _summary(task: TaskRecord) -> dict[str, str]:
    return {"id": task.id, "title": task.title, "status": task.status}


class TaskService:
    """Business rule engine for task operations."""

    def __init__(
        self,
        task_repository: TaskRepository,
        validator: ValidationService | None = None,
        max_tasks: int = DEFAULT_MAX_TASKS,
    ):
        self.repository = task_repository
        self.factory = task_repository.factory
        self.registry = task_repository.registry
        self.validator = validator or self.factory.validator
        self.max_tasks = max_tasks
        self._rules: dict[str, list[Rule]] = {
            "create": [
                self._validate_creation,
                self._enforce_task_limit,
                self._apply_variant_defaults,
                self._check_dependency_cycles,
            ],
            "update": [
                self._validate_update,
                self._derive_status_from_progress,
                self._enforce_status_transitions,
                self._ensure_completion_ready,
                self._protect_completed_fields,
                self._check_dependency_cycles,
            ],
            "delete": [self._ensure_no_active_dependents],
            "complete": [self._ensure_approved, self._ensure_dependencies_complete],
        }

    # ------------------------------------------------------------------
    # Pipeline machinery
    # ------------------------------------------------------------------

    def add_rule(self, operation: str, rule: Rule, index: int | None = None) -> None:
        """Insert a custom rule into an operation's pipeline.

        Args:
            operation: create, update, delete or complete
            rule: Callable taking ``(data, context)`` and returning data
            index: Position in the pipeline; appended when None
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation '{operation}'")
        rules = self._rules[operation]
        rules.insert(len(rules) if index is None else index, rule)

    def rules(self, operation: str) -> list[Rule]:
        return list(self._rules[operation])

    def apply_rules(
        self, operation: str, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        """Run the pipeline for ``operation``; the first failing rule aborts it."""
        for rule in self._rules[operation]:
            data = rule(data, context)
        return data

    def _failure(self, error: TaskboardError, context: RuleContext | None = None) -> OperationResult:
        logger.info("%s rejected: %s", context.operation if context else "operation", error.message)
        warnings = list(context.warnings) if context else []
        if isinstance(error, ValidationFailed):
            warnings.extend(w for w in error.warnings if w not in warnings)
        return OperationResult(
            success=False,
            error=error.message,
            code=error.code,
            details=error.details,
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> TaskRecord:
        """Get a task by id.

        Raises:
            NotFound: If the task does not exist
        """
        return self.repository.require(task_id)

    def list_tasks(
        self,
        criteria: TaskCriteria | Mapping[str, Any] | None = None,
        sort_key: str = "created-desc",
    ) -> list[TaskRecord]:
        """Filter and sort tasks."""
        return self.repository.sort(self.repository.find(criteria), sort_key)

    def page_tasks(
        self,
        criteria: TaskCriteria | Mapping[str, Any] | None = None,
        sort_key: str = "created-desc",
        page: int = 1,
        page_size: int = 20,
    ) -> Page:
        """Filter, sort and paginate tasks."""
        return self.repository.paginate(self.list_tasks(criteria, sort_key), page, page_size)

    def get_stats(self) -> TaskStats:
        return self.repository.get_stats()

    def find_unblocked_tasks(self) -> list[TaskRecord]:
        """Active, unblocked tasks whose dependencies are all completed."""
        tasks = self.repository.get_all()
        lookup = {task.id: task for task in tasks}
        return [
            task
            for task in tasks
            if task.is_active
            and dependencies_of(task)
            and not getattr(task, "is_blocked", False)
            and not incomplete_dependencies(task, lookup)
        ]

    def can_complete(self, task: TaskRecord) -> tuple[bool, list[str]]:
        """Check whether ``task`` could be completed right now.

        Returns:
            Tuple of (allowed, reasons it is not)
        """
        reasons = []
        if isinstance(task, WorkTask) and not task.is_approved:
            reasons.append("Work task requires approval before completion")
        lookup = {t.id: t for t in self.repository.get_all()}
        incomplete = incomplete_dependencies(task, lookup)
        if incomplete:
            reasons.append(
                "Incomplete dependencies: " + ", ".join(dep.title for dep in incomplete)
            )
        if task.status == "cancelled":
            reasons.append("Cannot complete a cancelled task")
        return not reasons, reasons

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def create_task(self, data: Mapping[str, Any]) -> OperationResult:
        """Create a task through the create pipeline.

        Args:
            data: Task fields; ``variant`` is auto-detected when missing

        Returns:
            OperationResult with the created task or the rejection
        """
        context = RuleContext(operation="create")
        try:
            prepared = self.apply_rules("create", normalize_keys(data), context)
            task = await self.repository.create(prepared)
        except StorageError:
            raise
        except TaskboardError as e:
            return self._failure(e, context)
        logger.info("created task %s (%s)", task.id, task.variant)
        return OperationResult(
            success=True,
            task=task,
            message="Task created successfully",
            warnings=context.warnings,
        )

    async def update_task(self, task_id: str, patch: Mapping[str, Any]) -> OperationResult:
        """Update a task through the update pipeline.

        Args:
            task_id: Task to update
            patch: Fields to change

        Returns:
            OperationResult with the updated task or the rejection
        """
        context = RuleContext(operation="update", task_id=task_id)
        try:
            task = await self._apply_update(task_id, patch, context)
        except StorageError:
            raise
        except TaskboardError as e:
            return self._failure(e, context)
        return OperationResult(
            success=True,
            task=task,
            message="Task updated successfully",
            warnings=context.warnings,
        )

    async def _apply_update(
        self, task_id: str, patch: Mapping[str, Any], context: RuleContext
    ) -> TaskRecord:
        context.existing = self.repository.require(task_id)
        changes = normalize_keys(patch)
        changes.pop("id", None)
        changes = self.apply_rules("update", changes, context)
        task = await self.repository.update(task_id, changes)
        logger.info("updated task %s", task_id)
        return task

    async def delete_task(self, task_id: str) -> OperationResult:
        """Delete a task unless active tasks depend on it.

        References to the deleted id are then stripped from every other
        task's dependencies.
        """
        context = RuleContext(operation="delete", task_id=task_id)
        try:
            context.existing = self.repository.require(task_id)
            self.apply_rules("delete", {}, context)
            await self.repository.delete(task_id)
            cleaned = await self._strip_dependency_references(task_id)
        except StorageError:
            raise
        except TaskboardError as e:
            return self._failure(e, context)
        message = "Task deleted successfully"
        if cleaned:
            message += f" ({cleaned} dependency reference(s) removed)"
        logger.info("deleted task %s", task_id)
        return OperationResult(success=True, task=context.existing, message=message)

    async def _strip_dependency_references(self, task_id: str) -> int:
        referencing = dependents_of(self.repository.get_all(), task_id)
        for task in referencing:
            remaining = [dep for dep in dependencies_of(task) if dep != task_id]
            await self.repository.update(task.id, {"dependencies": remaining})
        return len(referencing)

    async def complete_task(self, task_id: str) -> OperationResult:
        """Complete a task and report the tasks it unblocks.

        Pending tasks are moved through in-progress on the way.
        """
        context = RuleContext(operation="complete", task_id=task_id, allow_routing=True)
        try:
            context.existing = self.repository.require(task_id)
            self.apply_rules("complete", {}, context)
            task = await self._apply_update(task_id, {"status": "completed"}, context)
        except StorageError:
            raise
        except TaskboardError as e:
            return self._failure(e, context)

        unblocked = find_unblocked(self.repository.get_all(), task_id)
        message = "Task completed successfully"
        if unblocked:
            message += f" ({len(unblocked)} task(s) unblocked)"
        return OperationResult(
            success=True,
            task=task,
            message=message,
            warnings=context.warnings,
            unblocked=unblocked,
        )

    async def start_task(self, task_id: str) -> OperationResult:
        """Move a task to in-progress."""
        return await self.update_task(task_id, {"status": "in-progress"})

    async def reopen_task(self, task_id: str) -> OperationResult:
        """Reopen a completed task (back to in-progress)."""
        return await self.update_task(task_id, {"status": "in-progress"})

    async def cancel_task(self, task_id: str) -> OperationResult:
        return await self.update_task(task_id, {"status": "cancelled"})

    async def bulk_complete_tasks(self, task_ids: list[str]) -> list[OperationResult]:
        """Complete several tasks, one result per id, in order."""
        return [await self.complete_task(task_id) for task_id in task_ids]

    async def duplicate_task(self, task_id: str) -> OperationResult:
        """Copy a task as a fresh pending task titled ``"<title> (Copy)"``.

        Long titles are shortened so the copy still fits the title limit.
        """
        try:
            original = self.repository.require(task_id)
        except TaskboardError as e:
            return self._failure(e)
        data = original.to_data()
        for key in ("id", "created_at", "updated_at", "completed_at"):
            data.pop(key, None)
        suffix = " (Copy)"
        base = original.title[: MAX_TITLE_LENGTH - len(suffix)].rstrip()
        data.update(
            title=f"{base}{suffix}",
            status="pending",
            progress=0,
        )
        return await self.create_task(data)

    # ------------------------------------------------------------------
    # Create rules
    # ------------------------------------------------------------------

    def _validate_creation(self, data: dict[str, Any], context: RuleContext) -> dict[str, Any]:
        variant = data.get("variant") or self.factory.detect_variant(data)
        data = {**data, "variant": variant}
        merged = self.factory.merge_defaults(variant, data)
        result = self.validator.validate(merged, now=self.repository.now())
        context.warnings.extend(result.warnings)
        if not result.valid:
            raise ValidationFailed(result.errors)
        return {key: result.sanitized_data.get(key, value) for key, value in data.items()}

    def _enforce_task_limit(self, data: dict[str, Any], context: RuleContext) -> dict[str, Any]:
        if len(self.repository) >= self.max_tasks:
            raise LimitExceeded(self.max_tasks)
        return data

    def _apply_variant_defaults(self, data: dict[str, Any], context: RuleContext) -> dict[str, Any]:
        return self.factory.merge_defaults(data["variant"], data)

    # ------------------------------------------------------------------
    # Update rules
    # ------------------------------------------------------------------

    def _validate_update(self, data: dict[str, Any], context: RuleContext) -> dict[str, Any]:
        existing = context.existing
        assert existing is not None
        merged = {**existing.to_data(), **data}
        result = self.validator.validate(merged, now=self.repository.now())
        context.warnings.extend(result.warnings)
        if not result.valid:
            raise ValidationFailed(result.errors)
        if (
            data.get("status") == "completed"
            and existing.status != "completed"
            and isinstance(existing, WorkTask)
            and merged.get("requires_approval")
            and not merged.get("approved_by")
        ):
            raise ApprovalRequired(existing.id)
        return {key: result.sanitized_data.get(key, value) for key, value in data.items()}

    def _derive_status_from_progress(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        """Move the status along with progress when no status is given."""
        existing = context.existing
        assert existing is not None
        if "progress" not in data or "status" in data:
            return data
        progress = data["progress"]
        current = existing.status
        target = None
        if progress == 100 and current in ("pending", "in-progress"):
            target = "completed"
        elif 0 < progress < 100 and current in ("pending", "completed"):
            target = "in-progress"
        elif progress == 0 and current == "in-progress":
            target = "pending"
        if target is None:
            return data
        context.allow_routing = True
        return {**data, "status": target}

    def _enforce_status_transitions(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        existing = context.existing
        assert existing is not None
        new = data.get("status")
        old = existing.status
        if new is None or can_transition(old, new):
            return data
        if context.allow_routing and old == "pending" and new == "completed":
            # pending -> in-progress -> completed; the intermediate step must be permitted too
            self.registry.on_status_changed(existing.clone(), "pending", "in-progress")
            return data
        raise InvalidStatusTransition(old, new)

    def _ensure_completion_ready(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        """Updates that end in completed must meet the same dependency rule as complete."""
        existing = context.existing
        assert existing is not None
        if data.get("status") != "completed" or existing.status == "completed":
            return data
        deps = data["dependencies"] if "dependencies" in data else dependencies_of(existing)
        lookup = {task.id: task for task in self.repository.get_all()}
        incomplete = [
            lookup[dep_id]
            for dep_id in deps
            if dep_id in lookup and lookup[dep_id].status != "completed"
        ]
        if incomplete:
            raise DependenciesIncomplete(existing.id, [_summary(task) for task in incomplete])
        return data

    def _protect_completed_fields(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        existing = context.existing
        assert existing is not None
        if "variant" in data and data["variant"] != existing.variant:
            raise ModificationNotAllowed(
                "Task variant cannot be changed after creation", ["variant"]
            )
        if existing.status == "completed":
            changed = [
                name
                for name in PROTECTED_WHEN_COMPLETED
                if name in data and data[name] != getattr(existing, name)
            ]
            if changed:
                raise ModificationNotAllowed(
                    f"Cannot modify {', '.join(changed)} of a completed task", changed
                )
        return data

    def _check_dependency_cycles(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        deps = data.get("dependencies")
        if deps is None:
            return data
        lookup = {task.id: task for task in self.repository.get_all()}
        context.warnings.extend(
            f"Unknown dependency: {dep_id}" for dep_id in unknown_dependencies(deps, lookup)
        )
        task_id = context.task_id or data.get("id")
        if not task_id:
            return data
        graph = build_graph(lookup.values(), {task_id: list(deps)})
        cycle = find_cycle(graph, task_id)
        if cycle:
            raise CircularDependency(task_id, cycle)
        return data

    # ------------------------------------------------------------------
    # Delete and complete rules
    # ------------------------------------------------------------------

    def _ensure_no_active_dependents(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        blockers = dependents_of(self.repository.get_all(), context.task_id or "", active_only=True)
        if blockers:
            raise HasDependencies(context.task_id or "", [_summary(task) for task in blockers])
        return data

    def _ensure_approved(self, data: dict[str, Any], context: RuleContext) -> dict[str, Any]:
        existing = context.existing
        if isinstance(existing, WorkTask) and not existing.is_approved:
            raise ApprovalRequired(existing.id)
        return data

    def _ensure_dependencies_complete(
        self, data: dict[str, Any], context: RuleContext
    ) -> dict[str, Any]:
        existing = context.existing
        assert existing is not None
        lookup = {task.id: task for task in self.repository.get_all()}
        incomplete = incomplete_dependencies(existing, lookup)
        if incomplete:
            raise DependenciesIncomplete(existing.id, [_summary(task) for task in incomplete])
        return data
