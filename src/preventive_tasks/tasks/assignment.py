# src/preventive_tasks/tasks/assignment.py

from __future__ import annotations

"""
Assignment coordination.

A task is either privately assigned (engineer_id set at creation or by edit)
or pool-visible (engineer_id NULL) until one engineer accepts it. Accepting is
a single conditional UPDATE on "engineer_id IS NULL", so among concurrent
callers exactly one wins and the rest get ConflictError.

All listings order by target date ascending, then id ascending. For the pool
this puts the most overdue work first, and ties are stable.
"""

import logging
from datetime import date

from ..core.events import EventKind, publish_safely, task_event
from ..core.state import AppState
from .errors import ConflictError, InvalidOperationError, ValidationError
from .task_api import evaluate_tasks, require_task
from .task_models import ScheduledTask, TaskStatus, TaskView

logger = logging.getLogger(__name__)


def _limit(state: AppState, limit: int | None) -> int:
    if limit is not None:
        return max(1, int(limit))
    return int(getattr(state.settings, "list_limit", 200))


def list_mine(
    state: AppState,
    engineer_id: str,
    *,
    today: date | None = None,
    limit: int | None = None,
) -> list[TaskView]:
    """Open tasks assigned to `engineer_id` (directly or through accept)."""
    if not engineer_id:
        raise ValidationError("engineer_id is required")
    tasks = state.task_store.list_open_for_engineer(engineer_id, limit=_limit(state, limit))
    return evaluate_tasks(state, tasks, today=today)


def list_available(
    state: AppState,
    *,
    today: date | None = None,
    limit: int | None = None,
) -> list[TaskView]:
    """Unclaimed pool tasks (effective status pending or overdue)."""
    tasks = state.task_store.list_open_pool(limit=_limit(state, limit))
    return evaluate_tasks(state, tasks, today=today)


def list_pending(
    state: AppState,
    *,
    today: date | None = None,
    limit: int | None = None,
) -> list[TaskView]:
    """Administrative oversight: every open task regardless of assignment."""
    tasks = state.task_store.list_open(limit=_limit(state, limit))
    return evaluate_tasks(state, tasks, today=today)


def accept(state: AppState, task_id: int, engineer_id: str) -> ScheduledTask:
    """
    Claim a pool task for `engineer_id`.

    Raises:
    - NotFoundError: no such task
    - InvalidOperationError: task is completed/cancelled
    - ConflictError: another engineer already holds it (including tasks
      assigned directly at creation)
    """
    engineer = (engineer_id or "").strip()
    if not engineer:
        raise ValidationError("engineer_id is required")

    if state.task_store.try_claim_task(int(task_id), engineer):
        task = require_task(state, task_id)
        logger.info("Task %s accepted by engineer=%s", task.task_code, engineer)
        publish_safely(state.events, task_event(EventKind.TASK_ACCEPTED, task))
        return task

    # Lost: find out why, for a precise outcome.
    task = require_task(state, task_id)
    if task.status.is_terminal:
        raise InvalidOperationError(f"Cannot accept a {task.status.value} task ({task.task_code})")
    logger.info(
        "Accept conflict task=%s caller=%s holder=%s", task.task_code, engineer, task.engineer_id
    )
    raise ConflictError(f"Task {task.task_code} has already been taken")


def summarize_for_engineer(
    state: AppState,
    engineer_id: str,
    *,
    today: date | None = None,
) -> dict[str, int]:
    """
    Pending/overdue counts for one engineer (the "you have N tasks" reminder).

    Counted from evaluated views so a not-yet-reconciled row still counts as overdue.
    """
    views = list_mine(state, engineer_id, today=today)
    overdue = sum(1 for v in views if v.effective_status == TaskStatus.OVERDUE)
    return {"total": len(views), "pending": len(views) - overdue, "overdue": overdue}
