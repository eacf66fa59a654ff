# src/preventive_tasks/tasks/errors.py

"""
Error taxonomy of the scheduling engine.

Operations raise these; the outer surface (CLI command registry, or whatever
service wraps the engine) catches TaskError at its boundary and renders the
`code` + message. ConflictError must stay distinguishable so callers can say
"already taken" instead of "try again".
"""

from __future__ import annotations


class TaskError(Exception):
    code = "task_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(TaskError):
    code = "not_found"

    def __init__(self, entity: str, identifier: object | None = None) -> None:
        if identifier is None:
            message = f"{entity} not found"
        else:
            message = f'{entity} with identifier "{identifier}" not found'
        super().__init__(message)
        self.entity = entity
        self.identifier = identifier


class ConflictError(TaskError):
    code = "conflict"


class InvalidOperationError(TaskError):
    code = "invalid_operation"


class NotAssignedError(InvalidOperationError):
    """Caller tried to act on a task that is not assigned to them."""

    code = "not_assigned"


class ValidationError(TaskError):
    code = "validation_error"
