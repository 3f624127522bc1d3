"""Task record models.

A task is a flat pydantic record tagged by its ``variant`` field. Each variant
maps onto one of four shapes (generic, work, personal, project); the variant
registry in :mod:`taskboard_cli.models.variants` decides which shape a variant
uses and which validator, describer and status hook belong to it.

Python attributes are snake_case. Plain records (persistence, import and
export) use camelCase keys with ISO-8601 timestamps.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

Priority = Literal["low", "medium", "high"]
Status = Literal["pending", "in-progress", "completed", "cancelled"]
WorkLocation = Literal["office", "remote", "client-site", "hybrid"]
EnergyLevel = Literal["low", "medium", "high"]
PersonalCategory = Literal[
    "general", "health", "finance", "learning", "household", "social", "hobby"
]
HealthImpact = Literal["positive", "negative", "neutral"]
PrivacyLevel = Literal["private", "family", "friends", "public"]
ProjectPhase = Literal[
    "planning", "design", "development", "testing", "deployment", "maintenance"
]

PRIORITIES: tuple[str, ...] = ("low", "medium", "high")
STATUSES: tuple[str, ...] = ("pending", "in-progress", "completed", "cancelled")
WORK_LOCATIONS: tuple[str, ...] = ("office", "remote", "client-site", "hybrid")
ENERGY_LEVELS: tuple[str, ...] = ("low", "medium", "high")
PERSONAL_CATEGORIES: tuple[str, ...] = (
    "general",
    "health",
    "finance",
    "learning",
    "household",
    "social",
    "hobby",
)
HEALTH_IMPACTS: tuple[str, ...] = ("positive", "negative", "neutral")
PROJECT_PHASES: tuple[str, ...] = (
    "planning",
    "design",
    "development",
    "testing",
    "deployment",
    "maintenance",
)

PRIORITY_WEIGHTS = {"low": 1, "medium": 2, "high": 3}
STATUS_ORDER = {"pending": 1, "in-progress": 2, "completed": 3, "cancelled": 4}
ACTIVE_STATUSES = frozenset({"pending", "in-progress"})

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000
MAX_TAGS = 20
MAX_TAG_LENGTH = 30
MAX_ESTIMATED_MINUTES = 10080  # one week

# Fields holding timestamps; parsed from ISO strings on every merge.
DATE_FIELDS = ("created_at", "updated_at", "due_date", "completed_at")


def utcnow() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_aware(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _unique(values: list[str]) -> list[str]:
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def normalize_tag(tag: str) -> str:
    """Lowercase and trim a tag."""
    return " ".join(str(tag).split()).lower()


class TaskRecord(BaseModel):
    """Base task record shared by every variant.

    Attributes:
        id: Opaque unique identifier, immutable after creation
        title: Short task title (1-200 characters)
        description: Optional longer description
        variant: Variant name, fixed at creation
        priority: One of low, medium, high
        status: One of pending, in-progress, completed, cancelled
        progress: Completion percentage (0-100)
        created_at: Creation timestamp
        updated_at: Last update timestamp, never before created_at
        due_date: Optional due timestamp
        completed_at: Set while status is completed
        tags: Lowercase, de-duplicated labels
        estimated_minutes: Optional time estimate
        actual_minutes: Optional time spent
        notes: Free-form notes
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    id: str
    title: str
    description: str = ""
    variant: str = "generic"
    priority: Priority = "medium"
    status: Status = "pending"
    progress: int = Field(default=0, ge=0, le=100)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    due_date: datetime | None = None
    completed_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    estimated_minutes: int | None = Field(default=None, ge=0)
    actual_minutes: int | None = Field(default=None, ge=0)
    notes: str = ""

    @field_validator("created_at", "updated_at", "due_date", "completed_at")
    @classmethod
    def _aware_timestamps(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v)

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, v: list[str]) -> list[str]:
        return _unique([normalize_tag(tag) for tag in v if str(tag).strip()])

    @property
    def priority_weight(self) -> int:
        """Numeric weight of the priority (low=1, medium=2, high=3)."""
        return PRIORITY_WEIGHTS[self.priority]

    @property
    def is_active(self) -> bool:
        """True while the task is neither completed nor cancelled."""
        return self.status in ACTIVE_STATUSES

    def is_overdue(self, now: datetime | None = None) -> bool:
        """Check whether the task is past its due date and still active."""
        if self.due_date is None or not self.is_active:
            return False
        return self.due_date < (now or utcnow())

    def is_due_today(self, now: datetime | None = None) -> bool:
        """Check whether the due date falls on the current (UTC) day."""
        if self.due_date is None:
            return False
        return self.due_date.astimezone(UTC).date() == (now or utcnow()).astimezone(UTC).date()

    def is_due_within(self, days: int, now: datetime | None = None) -> bool:
        """Check whether an active task is due between now and ``days`` from now."""
        if self.due_date is None or not self.is_active:
            return False
        now = now or utcnow()
        return now <= self.due_date <= now + timedelta(days=days)

    def add_tags(self, *tags: str) -> list[str]:
        """Add tags, keeping the list unique and under the tag ceiling.

        Returns:
            The tags that were actually added
        """
        added = []
        for tag in tags:
            tag = normalize_tag(tag)[:MAX_TAG_LENGTH].strip()
            if not tag or tag in self.tags or len(self.tags) >= MAX_TAGS:
                continue
            self.tags.append(tag)
            added.append(tag)
        return added

    def remove_tags(self, *tags: str) -> None:
        """Remove tags if present."""
        drop = {normalize_tag(tag) for tag in tags}
        self.tags = [tag for tag in self.tags if tag not in drop]

    def touch(self, now: datetime | None = None) -> None:
        """Bump updated_at, never moving it before created_at."""
        self.updated_at = max(now or utcnow(), self.created_at)

    def check_invariants(self) -> list[str]:
        """Return violations of the record-level invariants."""
        errors = []
        if not self.title.strip():
            errors.append("Title is required")
        elif len(self.title) > MAX_TITLE_LENGTH:
            errors.append(f"Title cannot exceed {MAX_TITLE_LENGTH} characters")
        if len(self.description) > MAX_DESCRIPTION_LENGTH:
            errors.append(
                f"Description cannot exceed {MAX_DESCRIPTION_LENGTH} characters"
            )
        if self.status == "completed" and self.progress != 100:
            errors.append("Completed tasks must have 100% progress")
        if self.updated_at < self.created_at:
            errors.append("Updated timestamp cannot precede creation timestamp")
        if len(self.tags) > MAX_TAGS:
            errors.append(f"Cannot have more than {MAX_TAGS} tags")
        errors.extend(
            f"Tag '{tag}' cannot exceed {MAX_TAG_LENGTH} characters"
            for tag in self.tags
            if len(tag) > MAX_TAG_LENGTH
        )
        return errors

    def to_data(self) -> dict[str, Any]:
        """Dump to a snake_case dictionary of Python values."""
        return self.model_dump()

    def to_record(self) -> dict[str, Any]:
        """Dump to the plain-record shape (camelCase keys, ISO timestamps)."""
        return self.model_dump(mode="json", by_alias=True)

    def clone(self) -> TaskRecord:
        """Return a deep copy of this record."""
        return self.model_copy(deep=True)


class GenericTask(TaskRecord):
    """Task with no variant-specific fields."""


class WorkTask(TaskRecord):
    """Professional task with billing and approval tracking.

    Attributes:
        project_name: Related project name
        client_name: Client the work is done for
        department: Owning department
        assigned_to: Assignee
        billable_hours: Hours to bill (>= 0)
        hourly_rate: Rate per billable hour (>= 0)
        budget_code: Accounting code
        meeting_required: Whether the task involves a meeting
        requires_approval: Whether completion needs sign-off
        approved_by: Approver, set by ``approve``
        approved_at: Approval timestamp
        work_location: office, remote, client-site or hybrid
    """

    project_name: str = ""
    client_name: str = ""
    department: str = ""
    assigned_to: str = ""
    billable_hours: float = 0
    hourly_rate: float = 0
    budget_code: str = ""
    meeting_required: bool = False
    requires_approval: bool = False
    approved_by: str | None = None
    approved_at: datetime | None = None
    work_location: WorkLocation = "office"

    @field_validator("approved_at")
    @classmethod
    def _aware_approval(cls, v: datetime | None) -> datetime | None:
        return ensure_aware(v)

    @property
    def is_approved(self) -> bool:
        """True when no approval is needed or it has been granted."""
        return not self.requires_approval or bool(self.approved_by)

    @property
    def billable_amount(self) -> float:
        """Billable hours multiplied by the hourly rate."""
        return round(self.billable_hours * self.hourly_rate, 2)

    def approve(self, approver: str) -> None:
        """Record approval of this task."""
        self.approved_by = approver
        self.approved_at = utcnow()
        self.touch()


class PersonalTask(TaskRecord):
    """Personal task tracking energy, motivation and wellbeing.

    Attributes:
        category: general, health, finance, learning, household, social or hobby
        energy_level: low, medium or high
        motivation_level: 1 to 10
        mood: Free-form mood note
        location: Where the task happens
        weather_dependent: Whether weather matters
        reward_planned: Reward promised on completion
        health_impact: positive, negative or neutral
        privacy_level: private, family, friends or public
        linked_habit: Habit this task feeds
    """

    category: PersonalCategory = "general"
    energy_level: EnergyLevel = "medium"
    motivation_level: int = 5
    mood: str = ""
    location: str = ""
    weather_dependent: bool = False
    reward_planned: str = ""
    health_impact: HealthImpact = "neutral"
    privacy_level: PrivacyLevel = "private"
    linked_habit: str = ""


class Risk(BaseModel):
    """A project risk entry."""

    description: str
    severity: Literal["low", "medium", "high"] = "medium"
    mitigated: bool = False


class ProjectTask(TaskRecord):
    """Project task participating in the dependency graph.

    Attributes:
        project_id: Owning project identifier
        project_name: Owning project name
        milestone: Milestone the task contributes to
        phase: planning, design, development, testing, deployment or maintenance
        dependencies: Ids of tasks that must be completed first
        assignees: People working on the task
        reviewers: People reviewing the task
        story_points: Effort estimate (>= 0)
        sprint: Sprint label
        epic: Epic label
        is_blocked: Whether work is blocked
        blocking_reason: Why work is blocked
        budget: Allocated budget (>= 0)
        actual_cost: Spent budget (>= 0)
        risks: Known risks
    """

    project_id: str = ""
    project_name: str = ""
    milestone: str = ""
    phase: ProjectPhase = "planning"
    dependencies: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    reviewers: list[str] = Field(default_factory=list)
    story_points: float = 1
    sprint: str = ""
    epic: str = ""
    is_blocked: bool = False
    blocking_reason: str = ""
    budget: float = 0
    actual_cost: float = 0
    risks: list[Risk] = Field(default_factory=list)

    @field_validator("dependencies", "assignees", "reviewers")
    @classmethod
    def _as_set(cls, v: list[str]) -> list[str]:
        return _unique([str(item) for item in v if item])

    @property
    def is_over_budget(self) -> bool:
        return self.budget > 0 and self.actual_cost > self.budget

    def health_score(self, now: datetime | None = None) -> int:
        """Score the task's health from 0 to 100."""
        score = 100
        if self.is_overdue(now):
            score -= 20
        if self.is_blocked:
            score -= 15
        score -= 10 * sum(
            1 for risk in self.risks if risk.severity == "high" and not risk.mitigated
        )
        if self.is_over_budget:
            score -= 15
        return max(score, 0)

    def block(self, reason: str) -> None:
        """Mark the task as blocked."""
        self.is_blocked = True
        self.blocking_reason = reason
        self.touch()

    def unblock(self) -> None:
        """Clear the blocked flag."""
        self.is_blocked = False
        self.blocking_reason = ""
        self.touch()
