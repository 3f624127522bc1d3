"""
Exit codes for Taskboard CLI.

Semantic exit codes so scripts can tell what went wrong without parsing
output.
"""

from taskboard_cli.models.exceptions import (
    ApprovalRequired,
    CircularDependency,
    DependenciesIncomplete,
    HasDependencies,
    InvalidStatusTransition,
    LimitExceeded,
    ModificationNotAllowed,
    NotFound,
    StorageError,
    TaskboardError,
    UnknownVariant,
    ValidationFailed,
)

# Success
SUCCESS = 0

# General error (unspecified)
ERROR_GENERAL = 1

# Invalid arguments or validation error
ERROR_INVALID_ARGS = 2

# Business rule rejected the operation (transition, dependency, approval, limit)
ERROR_RULE_VIOLATION = 3

# Storage read or write failed
ERROR_STORAGE = 4

# Resource not found
ERROR_NOT_FOUND = 5


def get_exit_code_name(code: int) -> str:
    """Get the name of an exit code for display purposes."""
    code_names = {
        SUCCESS: "SUCCESS",
        ERROR_GENERAL: "ERROR_GENERAL",
        ERROR_INVALID_ARGS: "ERROR_INVALID_ARGS",
        ERROR_RULE_VIOLATION: "ERROR_RULE_VIOLATION",
        ERROR_STORAGE: "ERROR_STORAGE",
        ERROR_NOT_FOUND: "ERROR_NOT_FOUND",
    }
    return code_names.get(code, f"UNKNOWN({code})")


def get_exit_code_description(code: int) -> str:
    """Get a human-readable description of an exit code."""
    descriptions = {
        SUCCESS: "Command executed successfully",
        ERROR_GENERAL: "A general error occurred",
        ERROR_INVALID_ARGS: "Invalid arguments or validation error",
        ERROR_RULE_VIOLATION: "The operation was rejected by a business rule",
        ERROR_STORAGE: "Task storage could not be read or written",
        ERROR_NOT_FOUND: "Resource not found",
    }
    return descriptions.get(code, "Unknown error")


_ERROR_CODES: list[tuple[type[TaskboardError], int]] = [
    (NotFound, ERROR_NOT_FOUND),
    (ValidationFailed, ERROR_INVALID_ARGS),
    (UnknownVariant, ERROR_INVALID_ARGS),
    (StorageError, ERROR_STORAGE),
    (LimitExceeded, ERROR_RULE_VIOLATION),
    (ModificationNotAllowed, ERROR_RULE_VIOLATION),
    (InvalidStatusTransition, ERROR_RULE_VIOLATION),
    (CircularDependency, ERROR_RULE_VIOLATION),
    (HasDependencies, ERROR_RULE_VIOLATION),
    (DependenciesIncomplete, ERROR_RULE_VIOLATION),
    (ApprovalRequired, ERROR_RULE_VIOLATION),
]

_CODES_BY_NAME = {error_type.code: exit_code for error_type, exit_code in _ERROR_CODES}


def exit_code_for(error: TaskboardError) -> int:
    """Map an error to its exit code."""
    for error_type, exit_code in _ERROR_CODES:
        if isinstance(error, error_type):
            return exit_code
    return ERROR_GENERAL


def exit_code_for_result_code(code: str | None) -> int:
    """Map an OperationResult error code to an exit code."""
    return _CODES_BY_NAME.get(code or "", ERROR_GENERAL)
