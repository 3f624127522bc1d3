"""In-memory task repository mirrored to a persistence provider.

The repository owns the canonical ``id -> task`` map. Every mutating call
changes the map, hands the full serialized collection to the provider's
``save_all`` and, once both steps succeed, publishes a change event. If the
provider fails, the error propagates and the in-memory change stays applied:
memory is the source of truth and the store is best effort.

Mutations are single-writer: a second mutating call while a provider write is
still outstanding raises ``RuntimeError``. Callers are expected to await each
mutation before starting the next one.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Callable, Mapping
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from taskboard_cli.models.criteria import TaskCriteria
from taskboard_cli.models.exceptions import (
    ModificationNotAllowed,
    NotFound,
    TaskboardError,
    ValidationFailed,
)
from taskboard_cli.models.factory import TaskFactory
from taskboard_cli.models.results import ImportResult, Page, TaskStats
from taskboard_cli.models.task import (
    PRIORITIES,
    PRIORITY_WEIGHTS,
    STATUS_ORDER,
    STATUSES,
    TaskRecord,
)
from taskboard_cli.models.variants import VariantRegistry
from taskboard_cli.services.validation_service import normalize_keys

from .events import (
    CLEARED,
    CREATED,
    DELETED,
    IMPORTED,
    INITIALIZED,
    TASKS_DELETED,
    UPDATED,
    EventPublisher,
    Subscriber,
)
from .repository import PersistenceProvider, PlainRecord

logger = logging.getLogger(__name__)

FAR_FUTURE = datetime(2100, 1, 1, tzinfo=UTC)

SORT_KEYS: dict[str, Callable[[TaskRecord], Any]] = {
    "created": lambda task: task.created_at,
    "updated": lambda task: task.updated_at,
    "title": lambda task: task.title.casefold(),
    "priority": lambda task: PRIORITY_WEIGHTS[task.priority],
    "due-date": lambda task: task.due_date or FAR_FUTURE,
    "status": lambda task: STATUS_ORDER[task.status],
    "progress": lambda task: task.progress,
}


def parse_sort_key(sort_key: str) -> tuple[str, bool]:
    """Split ``"<field>-asc"``/``"<field>-desc"`` into field and descending flag.

    Without a suffix the direction defaults to descending.
    """
    if sort_key.endswith("-asc"):
        return sort_key[: -len("-asc")], False
    if sort_key.endswith("-desc"):
        return sort_key[: -len("-desc")], True
    return sort_key, True


def matches(task: TaskRecord, criteria: TaskCriteria, now: datetime) -> bool:
    """Check a task against every criterion that is set."""
    if criteria.variant is not None and task.variant != criteria.variant:
        return False
    if criteria.status is not None and task.status != criteria.status:
        return False
    if criteria.priority is not None and task.priority != criteria.priority:
        return False
    if criteria.tags and not all(tag.lower() in task.tags for tag in criteria.tags):
        return False
    if criteria.due_date is not None:
        if task.due_date is None or task.due_date.astimezone(UTC).date() != criteria.due_date:
            return False
    if criteria.overdue is not None and task.is_overdue(now) != criteria.overdue:
        return False
    if criteria.completed is not None and (task.status == "completed") != criteria.completed:
        return False
    if criteria.search:
        term = criteria.search.lower()
        haystack = [task.title.lower(), task.description.lower(), *task.tags]
        if not any(term in text for text in haystack):
            return False
    if criteria.created_after is not None and task.created_at < criteria.created_after:
        return False
    if criteria.created_before is not None and task.created_at > criteria.created_before:
        return False
    return True


class TaskRepository:
    """Owns the in-memory task collection and publishes change events."""

    def __init__(
        self,
        factory: TaskFactory,
        provider: PersistenceProvider,
        registry: VariantRegistry | None = None,
    ):
        self.factory = factory
        self.provider = provider
        self.registry = registry or factory.registry
        self.events = EventPublisher()
        self.load_warnings: list[str] = []
        self._tasks: dict[str, TaskRecord] = {}
        self._initialized = False
        self._writing = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    def now(self) -> datetime:
        return self.factory.clock()

    # ------------------------------------------------------------------
    # Lifecycle and events
    # ------------------------------------------------------------------

    async def initialize(self) -> int:
        """Load the collection from the provider.

        Records that cannot be reconstructed are skipped and noted in
        ``load_warnings`` so one corrupt entry cannot block startup.

        Returns:
            Number of tasks loaded

        Raises:
            StorageUnavailable: If the provider cannot be read
        """
        records = await self.provider.load_all()
        self._tasks.clear()
        self.load_warnings = []
        for index, record in enumerate(records):
            try:
                task = self.factory.restore(record)
            except TaskboardError as e:
                self._warn_skipped(index, record, e.message)
                continue
            if task.id in self._tasks:
                self._warn_skipped(index, record, f"duplicate id {task.id}")
                continue
            self._tasks[task.id] = task

        self._initialized = True
        logger.info(
            "loaded %d tasks (%d skipped)", len(self._tasks), len(self.load_warnings)
        )
        self.events.publish(INITIALIZED, count=len(self._tasks))
        return len(self._tasks)

    def _warn_skipped(self, index: int, record: Any, reason: str) -> None:
        record_id = record.get("id") if isinstance(record, Mapping) else None
        message = f"Skipped record {index} ({record_id or 'no id'}): {reason}"
        self.load_warnings.append(message)
        logger.warning(message)

    def subscribe(self, event: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for ``event`` ("*" for every event)."""
        return self.events.subscribe(event, callback)

    def unsubscribe(self, event: str, callback: Subscriber) -> bool:
        return self.events.unsubscribe(event, callback)

    @asynccontextmanager
    async def _writer(self) -> AsyncIterator[None]:
        if self._writing:
            raise RuntimeError("A repository write is already in progress")
        self._writing = True
        try:
            yield
        finally:
            self._writing = False

    async def _persist(self) -> None:
        records = self.export_records()
        try:
            await self.provider.save_all(records)
        except Exception:
            logger.error("failed to persist %d tasks", len(records), exc_info=True)
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, task_id: str) -> TaskRecord | None:
        return self._tasks.get(task_id)

    def require(self, task_id: str) -> TaskRecord:
        """Return a task or raise NotFound."""
        task = self._tasks.get(task_id)
        if task is None:
            raise NotFound(task_id)
        return task

    def get_all(self) -> list[TaskRecord]:
        return list(self._tasks.values())

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def find(self, criteria: TaskCriteria | Mapping[str, Any] | None = None) -> list[TaskRecord]:
        """Return tasks matching every criterion (empty criteria matches all).

        Args:
            criteria: TaskCriteria or a mapping of the same keys
        """
        criteria = TaskCriteria.coerce(criteria)
        now = self.now()
        return [task for task in self._tasks.values() if matches(task, criteria, now)]

    def find_one(self, criteria: TaskCriteria | Mapping[str, Any] | None = None) -> TaskRecord | None:
        criteria = TaskCriteria.coerce(criteria)
        now = self.now()
        return next(
            (task for task in self._tasks.values() if matches(task, criteria, now)), None
        )

    @staticmethod
    def sort(tasks: list[TaskRecord], sort_key: str = "created-desc") -> list[TaskRecord]:
        """Return a stably sorted copy of ``tasks``.

        Args:
            tasks: Tasks to sort
            sort_key: One of created, updated, title, priority, due-date, status,
                progress, optionally suffixed with -asc or -desc (default desc)

        Raises:
            ValueError: If the sort field is unknown
        """
        field_name, descending = parse_sort_key(sort_key)
        key = SORT_KEYS.get(field_name)
        if key is None:
            raise ValueError(
                f"Unknown sort key '{field_name}' (valid: {', '.join(SORT_KEYS)})"
            )
        return sorted(tasks, key=key, reverse=descending)

    @staticmethod
    def paginate(tasks: list[TaskRecord], page: int = 1, page_size: int = 20) -> Page:
        """Slice ``tasks`` into a 1-based page."""
        page = max(page, 1)
        page_size = max(page_size, 1)
        start = (page - 1) * page_size
        return Page(
            items=tasks[start : start + page_size],
            total=len(tasks),
            page=page,
            page_size=page_size,
        )

    def get_overdue(self) -> list[TaskRecord]:
        return self.find({"overdue": True})

    def get_due_today(self) -> list[TaskRecord]:
        now = self.now()
        return [task for task in self._tasks.values() if task.is_due_today(now)]

    def get_due_within(self, days: int) -> list[TaskRecord]:
        """Active tasks due between now and ``days`` from now."""
        now = self.now()
        return [task for task in self._tasks.values() if task.is_due_within(days, now)]

    def get_stats(self) -> TaskStats:
        """Aggregate counts over the whole collection."""
        now = self.now()
        tasks = list(self._tasks.values())
        by_status = dict.fromkeys(STATUSES, 0)
        by_priority = dict.fromkeys(PRIORITIES, 0)
        by_type = dict.fromkeys(self.registry.names(), 0)
        for task in tasks:
            by_status[task.status] += 1
            by_priority[task.priority] += 1
            by_type[task.variant] = by_type.get(task.variant, 0) + 1

        completed = by_status["completed"]
        return TaskStats(
            total=len(tasks),
            by_status=by_status,
            by_type=by_type,
            by_priority=by_priority,
            completed=completed,
            completion_rate=round(completed / len(tasks) * 100, 1) if tasks else 0.0,
            overdue=sum(1 for task in tasks if task.is_overdue(now)),
            due_today=sum(1 for task in tasks if task.is_due_today(now)),
            due_this_week=sum(1 for task in tasks if task.is_due_within(7, now)),
        )

    def get_health(self) -> dict[str, Any]:
        """Summarize repository state for diagnostics."""
        return {
            "initialized": self._initialized,
            "task_count": len(self._tasks),
            "load_warnings": list(self.load_warnings),
            "subscribers": self.events.subscriber_count(),
            "provider": type(self.provider).__name__,
        }

    def export_records(self) -> list[PlainRecord]:
        """Serialize the collection as plain records."""
        return [task.to_record() for task in self._tasks.values()]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create(self, data: Mapping[str, Any]) -> TaskRecord:
        """Build a task through the factory, store it and publish ``created``.

        The variant is auto-detected when ``data`` does not name one.

        Raises:
            UnknownVariant: If the variant is not registered
            ValidationFailed: If the data is invalid or the id is taken
        """
        normalized = normalize_keys(data)
        variant = normalized.pop("variant", None)
        if variant:
            task = self.factory.create(variant, normalized)
        else:
            task = self.factory.create_with_auto_detection(normalized)
        if task.id in self._tasks:
            raise ValidationFailed([f"Task id already exists: {task.id}"])

        async with self._writer():
            self._tasks[task.id] = task
            await self._persist()
        self.events.publish(CREATED, task=task)
        return task

    def prepare_update(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord:
        """Build the record an update would produce, without storing it.

        Applies status side effects and the variant's status hook, then
        re-runs full validation.

        Raises:
            NotFound: If the task does not exist
            ModificationNotAllowed: If the patch changes the variant
            ValidationFailed: If the merged record is invalid
        """
        existing = self.require(task_id)
        changes = normalize_keys(patch)
        changes.pop("id", None)
        if "variant" in changes and changes["variant"] != existing.variant:
            raise ModificationNotAllowed(
                "Task variant cannot be changed after creation", ["variant"]
            )

        merged = {**existing.to_data(), **changes}
        result = self.factory.validator.validate(merged, now=self.now())
        if not result.valid:
            raise ValidationFailed(result.errors, result.warnings)
        data = result.sanitized_data

        now = self.now()
        old_status, new_status = existing.status, data["status"]
        if old_status != new_status:
            if new_status == "completed":
                data["progress"] = 100
                data["completed_at"] = now
            else:
                data["completed_at"] = None
                if new_status == "in-progress" and not data.get("progress"):
                    data["progress"] = 10
        data["updated_at"] = max(now, data["created_at"])

        candidate = self.factory.restore(data)
        if old_status != new_status:
            self.registry.on_status_changed(candidate, old_status, new_status)
        return candidate

    async def update(self, task_id: str, patch: Mapping[str, Any]) -> TaskRecord:
        """Merge ``patch`` into a task, store it and publish ``updated``.

        Date fields in the patch may be ISO-8601 strings. The id is never
        changed.

        Returns:
            The updated task (a new object replacing the stored one)

        Raises:
            NotFound: If the task does not exist
            ValidationFailed: If the merged record is invalid
            ModificationNotAllowed: If the patch changes the variant or a status
                hook vetoes the change
            ApprovalRequired: If a work task is completed without approval
        """
        candidate = self.prepare_update(task_id, patch)
        async with self._writer():
            self._tasks[task_id] = candidate
            await self._persist()
        self.events.publish(UPDATED, task=candidate, patch=dict(patch))
        return candidate

    async def delete(self, task_id: str) -> bool:
        """Remove a task. Returns False when it does not exist."""
        if task_id not in self._tasks:
            return False
        async with self._writer():
            task = self._tasks.pop(task_id)
            await self._persist()
        self.events.publish(DELETED, task=task)
        return True

    async def delete_many(self, task_ids: list[str]) -> int:
        """Remove every existing task in ``task_ids``; unknown ids are ignored.

        Returns:
            Number of tasks removed
        """
        present = [task_id for task_id in dict.fromkeys(task_ids) if task_id in self._tasks]
        if not present:
            return 0
        async with self._writer():
            removed = [self._tasks.pop(task_id) for task_id in present]
            await self._persist()
        self.events.publish(TASKS_DELETED, tasks=removed, count=len(removed))
        return len(removed)

    async def clear(self) -> int:
        """Remove every task and publish ``cleared``."""
        async with self._writer():
            count = len(self._tasks)
            self._tasks.clear()
            await self._persist()
        self.events.publish(CLEARED, count=count)
        return count

    async def import_records(self, records: list[Any]) -> ImportResult:
        """Add plain records, giving each a fresh id.

        Invalid records are reported in ``errors`` and skipped.
        """
        result = ImportResult()
        imported: list[TaskRecord] = []
        taken = set(self._tasks)
        for index, record in enumerate(records):
            if not isinstance(record, Mapping):
                result.errors.append(f"Record {index}: not an object")
                continue
            data = {key: value for key, value in record.items() if key != "id"}
            data["id"] = self._fresh_id(taken)
            try:
                task = self.factory.restore(data)
            except TaskboardError as e:
                result.errors.append(f"Record {index}: {e.message}")
                continue
            taken.add(task.id)
            imported.append(task)

        if imported:
            async with self._writer():
                for task in imported:
                    self._tasks[task.id] = task
                await self._persist()
        result.imported_count = len(imported)
        self.events.publish(IMPORTED, count=result.imported_count, errors=result.errors)
        return result

    def _fresh_id(self, taken: set[str]) -> str:
        task_id = self.factory.generate_id()
        while task_id in taken:
            task_id = self.factory.generate_id()
        return task_id

