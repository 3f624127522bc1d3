"""Taskboard CLI domain models.

This package contains the pydantic task records, their variant capability
table, result models and the exception hierarchy. The factory lives in
:mod:`taskboard_cli.models.factory` and is imported from there directly.
"""

from .criteria import TaskCriteria
from .exceptions import (
    ApprovalRequired,
    CircularDependency,
    DependenciesIncomplete,
    HasDependencies,
    InvalidStatusTransition,
    LimitExceeded,
    ModificationNotAllowed,
    NotFound,
    QuotaExceeded,
    StorageError,
    StorageUnavailable,
    TaskboardError,
    UnknownVariant,
    ValidationFailed,
)
from .results import (
    DisplayInfo,
    ImportResult,
    OperationResult,
    Page,
    TaskStats,
    ValidationResult,
)
from .task import GenericTask, PersonalTask, ProjectTask, Risk, TaskRecord, WorkTask
from .variants import VariantCapability, VariantRegistry

__all__ = [
    # Task records
    "TaskRecord",
    "GenericTask",
    "WorkTask",
    "PersonalTask",
    "ProjectTask",
    "Risk",
    "TaskCriteria",
    # Variants
    "VariantCapability",
    "VariantRegistry",
    # Results
    "DisplayInfo",
    "ImportResult",
    "OperationResult",
    "Page",
    "TaskStats",
    "ValidationResult",
    # Errors
    "TaskboardError",
    "ValidationFailed",
    "NotFound",
    "UnknownVariant",
    "LimitExceeded",
    "ModificationNotAllowed",
    "InvalidStatusTransition",
    "CircularDependency",
    "HasDependencies",
    "DependenciesIncomplete",
    "ApprovalRequired",
    "StorageError",
    "StorageUnavailable",
    "QuotaExceeded",
]
