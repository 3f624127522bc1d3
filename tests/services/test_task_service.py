"""Tests for the TaskService rule engine."""

from __future__ import annotations

from datetime import timedelta

import pytest

from taskboard_cli.models.exceptions import StorageUnavailable, ValidationFailed
from taskboard_cli.services.task_service import TaskService, can_transition


async def _create(service, **data):
    data.setdefault("variant", "generic")
    result = await service.create_task(data)
    assert result.success, result.error
    return result.task


# ---------------------------------------------------------------------------
# create
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_create_task(service):
    """A valid create returns the stored task."""
    result = await service.create_task({"title": "Plan sprint", "variant": "project"})
    assert result.success
    assert result.message == "Task created successfully"
    assert service.get_task(result.task.id) is result.task


@pytest.mark.asyncio
async def test_create_task_rejects_invalid_data(service, repository):
    """Validation problems are returned, not raised, and nothing is stored."""
    result = await service.create_task({"title": "", "variant": "generic"})
    assert not result.success
    assert result.code == "VALIDATION_FAILED"
    assert "Title is required" in result.details["errors"]
    assert len(repository) == 0


@pytest.mark.asyncio
async def test_create_task_limit(repository, validator):
    """The collection size ceiling is enforced."""
    service = TaskService(repository, validator, max_tasks=1)
    await _create(service, title="First")
    result = await service.create_task({"title": "Second", "variant": "generic"})
    assert result.code == "LIMIT_EXCEEDED"


@pytest.mark.asyncio
async def test_create_task_warns_about_unknown_dependency(service):
    """Dangling dependency ids are a warning, not an error."""
    result = await service.create_task(
        {"title": "Wire API", "variant": "project", "dependencies": ["ghost"]}
    )
    assert result.success
    assert "Unknown dependency: ghost" in result.warnings


@pytest.mark.asyncio
async def test_create_task_propagates_storage_errors(service, provider):
    """Persistence failures are raised instead of being folded into a result."""
    provider.available = False
    with pytest.raises(StorageUnavailable):
        await service.create_task({"title": "Lost", "variant": "generic"})


# ---------------------------------------------------------------------------
# update
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_circular_dependency_is_rejected(service):
    """A depends-on edit that closes a loop fails with the cycle path."""
    a = await _create(service, title="A", variant="project", dependencies=[])
    b = await _create(service, title="B", variant="project", dependencies=[a.id])

    result = await service.update_task(a.id, {"dependencies": [b.id]})

    assert not result.success
    assert result.code == "CIRCULAR_DEPENDENCY"
    assert result.details["path"] == [a.id, b.id, a.id]
    assert service.get_task(a.id).dependencies == []


@pytest.mark.asyncio
async def test_indirect_cycle_through_unrelated_edit_is_rejected(service):
    """Editing the tail of a chain so it points back at the head is a cycle."""
    c = await _create(service, title="C", variant="project")
    b = await _create(service, title="B", variant="project", dependencies=[c.id])
    a = await _create(service, title="A", variant="project", dependencies=[b.id])

    result = await service.update_task(c.id, {"dependencies": [a.id]})

    assert result.code == "CIRCULAR_DEPENDENCY"
    assert result.details["path"] == [c.id, a.id, b.id, c.id]
    assert service.get_task(c.id).dependencies == []


@pytest.mark.asyncio
async def test_sprint_with_dots_stays_editable(service):
    """A project created with a dotted sprint can be updated and cancelled later."""
    task = await _create(service, title="Release", variant="project", sprint="2024.1")
    assert "sprint-2024-1" in task.tags

    renamed = await service.update_task(task.id, {"title": "Ship it"})
    assert renamed.success, renamed.error

    cancelled = await service.cancel_task(task.id)
    assert cancelled.task.status == "cancelled"


@pytest.mark.asyncio
async def test_update_to_completed_requires_completed_dependencies(service):
    """Progress or status updates cannot complete a task with open dependencies."""
    a = await _create(service, title="Design", variant="project")
    b = await _create(service, title="Build", variant="project", dependencies=[a.id])

    by_progress = await service.update_task(b.id, {"progress": 100})
    assert by_progress.code == "DEPENDENCIES_INCOMPLETE"
    assert service.get_task(b.id).status == "pending"

    await service.start_task(b.id)
    by_status = await service.update_task(b.id, {"status": "completed"})
    assert by_status.code == "DEPENDENCIES_INCOMPLETE"
    assert by_status.details["incomplete"][0]["id"] == a.id

    await service.complete_task(a.id)
    done = await service.update_task(b.id, {"progress": 100})
    assert done.task.status == "completed"


@pytest.mark.asyncio
async def test_unapproved_work_task_cannot_complete(service):
    """Completing a work task that needs approval fails until approved."""
    task = await _create(
        service, title="Contract", variant="work", requiresApproval=True, approvedBy=None
    )

    result = await service.update_task(task.id, {"status": "completed"})
    assert result.code == "APPROVAL_REQUIRED"

    await service.update_task(task.id, {"approvedBy": "lead"})
    done = await service.complete_task(task.id)
    assert done.success
    assert done.task.status == "completed"


@pytest.mark.asyncio
async def test_progress_100_completes_pending_task(service, now):
    """Full progress moves a pending task to completed and stamps the time."""
    task = await _create(service, title="Halfway", progress=50, status="pending")

    result = await service.update_task(task.id, {"progress": 100})

    assert result.success
    assert result.task.status == "completed"
    assert result.task.completed_at == now


@pytest.mark.asyncio
async def test_progress_moves_status(service):
    """Partial progress starts a task; zero progress sends it back to pending."""
    task = await _create(service, title="Paint fence")

    started = await service.update_task(task.id, {"progress": 30})
    assert started.task.status == "in-progress"
    assert started.task.progress == 30

    reset = await service.update_task(task.id, {"progress": 0})
    assert reset.task.status == "pending"


@pytest.mark.asyncio
async def test_explicit_status_skips_progress_derivation(service):
    """When a status is given it wins over the progress rule."""
    task = await _create(service, title="Paint fence")
    result = await service.update_task(task.id, {"progress": 100, "status": "in-progress"})
    assert result.task.status == "in-progress"


@pytest.mark.parametrize(
    "old, new, allowed",
    [
        ("pending", "in-progress", True),
        ("pending", "completed", False),
        ("completed", "in-progress", True),
        ("completed", "pending", False),
        ("cancelled", "pending", True),
        ("pending", "pending", True),
    ],
)
def test_transition_table(old, new, allowed):
    """The transition table allows only the listed moves."""
    assert can_transition(old, new) is allowed


@pytest.mark.asyncio
async def test_direct_pending_to_completed_is_invalid(service):
    """Setting completed on a pending task is not routed outside complete()."""
    task = await _create(service, title="Skip ahead")
    result = await service.update_task(task.id, {"status": "completed"})
    assert result.code == "INVALID_STATUS_TRANSITION"
    assert result.details == {"from": "pending", "to": "completed"}


@pytest.mark.asyncio
async def test_cancelled_task_cannot_complete(service):
    """Cancelled tasks must be reopened before completion."""
    task = await _create(service, title="Abandoned")
    await service.cancel_task(task.id)
    result = await service.complete_task(task.id)
    assert result.code == "INVALID_STATUS_TRANSITION"


@pytest.mark.asyncio
async def test_completed_task_protects_created_at(service, now):
    """Protected fields of a completed task cannot change."""
    task = await _create(service, title="Shipped")
    await service.complete_task(task.id)

    result = await service.update_task(task.id, {"createdAt": now - timedelta(days=3)})

    assert result.code == "MODIFICATION_NOT_ALLOWED"
    assert result.details["fields"] == ["created_at"]


@pytest.mark.asyncio
async def test_variant_cannot_change(service):
    """The variant is fixed regardless of status."""
    task = await _create(service, title="Generic")
    result = await service.update_task(task.id, {"variant": "work"})
    assert result.code == "MODIFICATION_NOT_ALLOWED"


@pytest.mark.asyncio
async def test_update_ignores_id_in_patch(service):
    """An id in the patch never renames the task."""
    task = await _create(service, title="Stable")
    result = await service.update_task(task.id, {"id": "renamed", "title": "Still stable"})
    assert result.task.id == task.id
    assert service.repository.get("renamed") is None


@pytest.mark.asyncio
async def test_update_missing_task(service):
    """Unknown ids produce a NOT_FOUND result."""
    result = await service.update_task("ghost", {"title": "x"})
    assert result.code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_start_complete_reopen(service):
    """Lifecycle helpers walk the status machine."""
    task = await _create(service, title="Cycle")

    started = await service.start_task(task.id)
    assert started.task.status == "in-progress"
    assert started.task.progress == 10

    done = await service.complete_task(task.id)
    assert done.task.progress == 100

    reopened = await service.reopen_task(task.id)
    assert reopened.task.status == "in-progress"
    assert reopened.task.completed_at is None


# ---------------------------------------------------------------------------
# delete and complete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_delete_blocked_by_active_dependents(service):
    """A task cannot be deleted while active tasks depend on it."""
    a = await _create(service, title="Foundation", variant="project")
    b = await _create(service, title="Walls", variant="project", dependencies=[a.id])

    result = await service.delete_task(a.id)

    assert result.code == "HAS_DEPENDENCIES"
    assert result.details["blockers"] == [{"id": b.id, "title": "Walls", "status": "pending"}]


@pytest.mark.asyncio
async def test_delete_strips_references_from_inactive_dependents(service):
    """Once dependents are inactive the delete succeeds and references are removed."""
    a = await _create(service, title="Foundation", variant="project")
    b = await _create(service, title="Walls", variant="project", dependencies=[a.id])
    await service.cancel_task(b.id)

    result = await service.delete_task(a.id)

    assert result.success
    assert "1 dependency reference(s) removed" in result.message
    assert service.get_task(b.id).dependencies == []


@pytest.mark.asyncio
async def test_delete_missing_task(service):
    """Deleting an unknown id reports NOT_FOUND."""
    assert (await service.delete_task("ghost")).code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_complete_requires_completed_dependencies(service):
    """Dependencies must be completed first; completing them unblocks dependents."""
    a = await _create(service, title="Design", variant="project")
    b = await _create(service, title="Build", variant="project", dependencies=[a.id])

    blocked = await service.complete_task(b.id)
    assert blocked.code == "DEPENDENCIES_INCOMPLETE"
    assert blocked.details["incomplete"][0]["id"] == a.id
    assert service.can_complete(b) == (False, ["Incomplete dependencies: Design"])

    done = await service.complete_task(a.id)
    assert [task.id for task in done.unblocked] == [b.id]
    assert "(1 task(s) unblocked)" in done.message
    assert [task.id for task in service.find_unblocked_tasks()] == [b.id]


@pytest.mark.asyncio
async def test_can_complete_work_task(service):
    """Unapproved work tasks report why they cannot be completed."""
    task = await _create(service, title="Invoice", variant="work", requiresApproval=True)
    allowed, reasons = service.can_complete(task)
    assert not allowed
    assert reasons == ["Work task requires approval before completion"]


@pytest.mark.asyncio
async def test_bulk_complete(service):
    """Each id gets its own result, in order."""
    task = await _create(service, title="One")
    results = await service.bulk_complete_tasks([task.id, "ghost"])
    assert [r.success for r in results] == [True, False]
    assert results[1].code == "NOT_FOUND"


# ---------------------------------------------------------------------------
# duplicate and custom rules
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_duplicate_task(service):
    """Duplicates are fresh pending copies with a (Copy) title."""
    task = await _create(service, title="Weekly review", variant="work", tags=["ops"])
    await service.start_task(task.id)

    result = await service.duplicate_task(task.id)

    copy = result.task
    assert copy.id != task.id
    assert copy.title == "Weekly review (Copy)"
    assert copy.status == "pending"
    assert copy.progress == 0
    assert "ops" in copy.tags


@pytest.mark.asyncio
async def test_duplicate_task_with_longest_title(service):
    """A copy of a title at the limit is shortened to make room for the suffix."""
    task = await _create(service, title="x" * 200)

    result = await service.duplicate_task(task.id)

    assert result.success, result.error
    assert len(result.task.title) == 200
    assert result.task.title.endswith("x (Copy)")


@pytest.mark.asyncio
async def test_duplicate_missing_task(service):
    """Duplicating an unknown id reports NOT_FOUND."""
    assert (await service.duplicate_task("ghost")).code == "NOT_FOUND"


@pytest.mark.asyncio
async def test_custom_rule(service):
    """Custom rules run in the pipeline and can veto operations."""

    def no_weekend_tag(data, context):
        if "weekend" in data.get("tags", []):
            raise ValidationFailed(["Weekend tasks are not allowed"])
        return data

    service.add_rule("create", no_weekend_tag)
    result = await service.create_task({"title": "Hike", "variant": "generic", "tags": ["weekend"]})

    assert result.code == "VALIDATION_FAILED"
    assert result.error == "Validation failed: Weekend tasks are not allowed"
    assert service.rules("create")[-1] is no_weekend_tag


def test_add_rule_unknown_operation(service):
    """Only the known operations accept rules."""
    with pytest.raises(ValueError):
        service.add_rule("archive", lambda data, context: data)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_list_and_page_tasks(service):
    """Listing filters and sorts; paging slices the sorted list."""
    for title, priority in [("b", "low"), ("a", "high"), ("c", "high")]:
        await _create(service, title=title, priority=priority)

    high = service.list_tasks({"priority": "high"}, "title-asc")
    assert [t.title for t in high] == ["a", "c"]

    page = service.page_tasks(None, "title-desc", page=1, page_size=2)
    assert [t.title for t in page.items] == ["c", "b"]
    assert page.has_next
    assert service.get_stats().total == 3
