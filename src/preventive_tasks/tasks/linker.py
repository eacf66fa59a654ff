# src/preventive_tasks/tasks/linker.py

from __future__ import annotations

"""
Completion linking between scheduled tasks and maintenance requests.

The request lifecycle belongs to the external request service:
1. create_request_from_task() hands it a pre-filled draft (the task stays open),
2. the service persists the request with scheduled_task_id set,
3. when that request reaches its own completed state the service calls
   on_request_completed(), the only path that completes a scheduled task and,
   through it, schedules the next cycle.

If the request service fails after a pool task was claimed, the claim stays:
an administrator cancels the task or returns it to the pool with an edit.
"""

import logging

from ..core.state import AppState
from .errors import InvalidOperationError, NotAssignedError, ValidationError
from .recurrence import generate_next
from .task_api import require_task
from .task_models import CompletionResult, MaintenanceRequestDraft
from .transitions import complete

logger = logging.getLogger(__name__)


def _request_description(title: str, description: str) -> str:
    if description:
        return f"{title}\n\n{description}"
    return title


def create_request_from_task(state: AppState, task_id: int, engineer_id: str) -> MaintenanceRequestDraft:
    """
    Build the maintenance request draft for an open task the caller holds.

    Pool tasks must be accepted first.
    """
    engineer = (engineer_id or "").strip()
    if not engineer:
        raise ValidationError("engineer_id is required")

    task = require_task(state, task_id)
    if task.status.is_terminal:
        raise InvalidOperationError(
            f"Cannot create a request for a {task.status.value} task ({task.task_code})"
        )
    if task.engineer_id is None:
        raise NotAssignedError(f"Task {task.task_code} is in the shared pool; accept it first")
    if task.engineer_id != engineer:
        raise NotAssignedError(f"Task {task.task_code} is not assigned to engineer {engineer}")

    draft = MaintenanceRequestDraft(
        scheduled_task_id=task.id,
        task_code=task.task_code,
        engineer_id=engineer,
        location_id=task.location_id,
        department_id=task.department_id,
        system_id=task.system_id,
        machine_id=task.machine_id,
        maintain_all_components=task.maintain_all_components,
        selected_components=list(task.selected_components),
        description=_request_description(task.title, task.description),
    )
    logger.info("Request draft prepared for task=%s engineer=%s", task.task_code, engineer)
    return draft


def on_request_completed(
    state: AppState,
    request_id: str,
    task_id: int,
    *,
    now_ts: float | None = None,
) -> CompletionResult:
    """
    Called by the request service when a request carrying `scheduled_task_id`
    completes.

    Safe to retry: completion is idempotent for the same request id, and the
    successor is generated only if the guard is still unset, so a crash
    between the two steps is repaired by calling again.
    """
    task = complete(state, task_id, request_id, now_ts=now_ts)
    successor = generate_next(state, task, now_ts=now_ts)
    return CompletionResult(task=require_task(state, task.id), successor=successor)
