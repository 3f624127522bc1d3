"""Tests for the task record models."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from pydantic import ValidationError

from taskboard_cli.models.task import (
    MAX_TAGS,
    GenericTask,
    PersonalTask,
    ProjectTask,
    Risk,
    WorkTask,
    ensure_aware,
)

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)


def _generic(**overrides) -> GenericTask:
    data = {"id": "t1", "title": "Write docs", "created_at": NOW, "updated_at": NOW}
    data.update(overrides)
    return GenericTask(**data)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def test_camel_case_keys_are_accepted():
    """Plain records with camelCase keys populate snake_case fields."""
    task = GenericTask.model_validate(
        {
            "id": "t1",
            "title": "Ship",
            "createdAt": "2026-03-01T08:00:00Z",
            "updatedAt": "2026-03-01T09:00:00Z",
            "estimatedMinutes": 30,
        }
    )
    assert task.estimated_minutes == 30
    assert task.created_at == datetime(2026, 3, 1, 8, 0, tzinfo=UTC)


def test_naive_timestamps_are_treated_as_utc():
    """Naive datetimes become aware UTC values."""
    task = _generic(due_date=datetime(2026, 3, 5, 9, 0))
    assert task.due_date.tzinfo is UTC
    assert ensure_aware(None) is None


def test_tags_are_normalized_and_deduplicated():
    """Tags are lowercased, trimmed and kept unique in order."""
    task = _generic(tags=["Urgent", " urgent ", "Home", ""])
    assert task.tags == ["urgent", "home"]


def test_progress_out_of_range_is_rejected():
    """Progress must stay within 0..100."""
    with pytest.raises(ValidationError):
        _generic(progress=101)


def test_to_record_uses_camel_case_and_iso_strings():
    """to_record produces the plain-record shape."""
    record = _generic(due_date=NOW).to_record()
    assert record["createdAt"].startswith("2026-03-02T12:00:00")
    assert "dueDate" in record
    assert "created_at" not in record


# ---------------------------------------------------------------------------
# Derived state
# ---------------------------------------------------------------------------


def test_is_overdue_only_for_active_tasks():
    """A past due date makes active tasks overdue but not completed ones."""
    due = NOW - timedelta(hours=1)
    assert _generic(due_date=due).is_overdue(NOW)
    assert not _generic(due_date=due, status="completed", progress=100).is_overdue(NOW)
    assert not _generic().is_overdue(NOW)


def test_is_due_today_compares_utc_days():
    """Due-today matches the UTC calendar day of now."""
    assert _generic(due_date=NOW.replace(hour=23)).is_due_today(NOW)
    assert not _generic(due_date=NOW + timedelta(days=1)).is_due_today(NOW)


def test_is_due_within_window():
    """Due-within includes tasks due between now and now + days."""
    task = _generic(due_date=NOW + timedelta(days=3))
    assert task.is_due_within(7, NOW)
    assert not task.is_due_within(2, NOW)


def test_priority_weight():
    """Priority weights order low < medium < high."""
    assert _generic(priority="low").priority_weight < _generic(priority="high").priority_weight


# ---------------------------------------------------------------------------
# Mutation helpers
# ---------------------------------------------------------------------------


def test_add_tags_respects_ceiling():
    """add_tags never grows the list beyond the tag ceiling."""
    task = _generic(tags=[f"tag{i}" for i in range(MAX_TAGS - 1)])
    added = task.add_tags("one", "two", "three")
    assert added == ["one"]
    assert len(task.tags) == MAX_TAGS


def test_add_tags_truncates_long_tags():
    """Tags added after creation are cut to the maximum tag length."""
    task = _generic()
    task.add_tags("x" * 50)
    assert task.tags == ["x" * 30]


def test_touch_never_precedes_created_at():
    """touch clamps updated_at to created_at."""
    task = _generic()
    task.touch(NOW - timedelta(days=1))
    assert task.updated_at == NOW


def test_check_invariants_reports_completed_without_full_progress():
    """Completed tasks must have 100% progress."""
    task = _generic(status="completed", progress=40)
    assert "Completed tasks must have 100% progress" in task.check_invariants()


def test_clone_is_independent():
    """clone returns a deep copy."""
    task = _generic(tags=["a"])
    copy = task.clone()
    copy.tags.append("b")
    assert task.tags == ["a"]


# ---------------------------------------------------------------------------
# Variant shapes
# ---------------------------------------------------------------------------


def test_work_task_approval_and_billing():
    """Work tasks compute billing and approval state."""
    task = WorkTask(
        id="w1",
        title="Audit",
        variant="work",
        requires_approval=True,
        billable_hours=2.5,
        hourly_rate=80,
        created_at=NOW,
        updated_at=NOW,
    )
    assert not task.is_approved
    assert task.billable_amount == 200.0
    task.approve("alice")
    assert task.is_approved
    assert task.approved_by == "alice"


def test_personal_task_defaults():
    """Personal tasks default to neutral health impact and motivation 5."""
    task = PersonalTask(id="p1", title="Run", variant="personal")
    assert task.health_impact == "neutral"
    assert task.motivation_level == 5


def test_project_task_sets_are_deduplicated():
    """Dependencies, assignees and reviewers behave as sets."""
    task = ProjectTask(
        id="p1",
        title="Build",
        variant="project",
        dependencies=["a", "b", "a", ""],
        assignees=["x", "x"],
    )
    assert task.dependencies == ["a", "b"]
    assert task.assignees == ["x"]


def test_project_health_score_and_blocking():
    """Blocking, high risks and overspend reduce the health score."""
    task = ProjectTask(
        id="p1",
        title="Build",
        variant="project",
        budget=100,
        actual_cost=150,
        risks=[Risk(description="vendor", severity="high")],
        created_at=NOW,
        updated_at=NOW,
    )
    task.block("waiting on vendor")
    assert task.is_over_budget
    assert task.health_score(NOW) == 100 - 15 - 10 - 15
    task.unblock()
    assert not task.is_blocked
    assert task.blocking_reason == ""
