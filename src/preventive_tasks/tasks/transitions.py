# src/preventive_tasks/tasks/transitions.py

from __future__ import annotations

"""
Status transitions.

    pending ──► completed
    pending ──► overdue ──► completed
    pending | overdue ──► cancelled

pending <-> overdue is not a transition performed here: it is the derived
read-time value, materialized opportunistically by listings.

Each transition is one conditional UPDATE guarded on "status still open", so a
complete racing a cancel (or two completes) resolves to exactly one winner.
Losers re-read the row to report a precise outcome.
"""

import logging

from ..core.events import AUDIENCE_ADMINS, EventKind, publish_safely, task_event
from ..core.state import AppState
from .errors import InvalidOperationError, ValidationError
from .task_api import require_task
from .task_models import ScheduledTask, TaskStatus

logger = logging.getLogger(__name__)


def complete(
    state: AppState,
    task_id: int,
    request_id: str,
    *,
    now_ts: float | None = None,
) -> ScheduledTask:
    """
    Mark an open task completed by `request_id`.

    Idempotent for the same request id (returns the completed record untouched).
    A task resolves exactly one request: a different id fails.
    """
    req = (str(request_id) if request_id is not None else "").strip()
    if not req:
        raise ValidationError("request_id is required")

    if state.task_store.try_complete_task(int(task_id), req, now_ts=now_ts):
        task = require_task(state, task_id)
        logger.info("Task %s -> completed (request=%s)", task.task_code, req)
        publish_safely(
            state.events,
            task_event(EventKind.TASK_COMPLETED, task, audience=AUDIENCE_ADMINS, request_id=req),
        )
        return task

    task = require_task(state, task_id)
    if task.status == TaskStatus.COMPLETED:
        if task.completed_request_id == req:
            logger.debug("Task %s already completed by request=%s; no-op", task.task_code, req)
            return task
        raise InvalidOperationError(
            f"Task {task.task_code} was already completed by request {task.completed_request_id}"
        )
    raise InvalidOperationError(f"Cannot complete a {task.status.value} task ({task.task_code})")


def cancel(state: AppState, task_id: int, *, now_ts: float | None = None) -> ScheduledTask:
    """
    Cancel an open task (administrative). Cancelled is terminal and breaks the
    recurrence chain: no successor is ever generated from it.
    """
    if state.task_store.try_cancel_task(int(task_id), now_ts=now_ts):
        task = require_task(state, task_id)
        logger.info("Task %s -> cancelled", task.task_code)
        publish_safely(state.events, task_event(EventKind.TASK_CANCELLED, task))
        return task

    task = require_task(state, task_id)
    raise InvalidOperationError(f"Cannot cancel a {task.status.value} task ({task.task_code})")
