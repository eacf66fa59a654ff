# src/preventive_tasks/tasks/recurrence.py

from __future__ import annotations

"""
Recurrence generation.

When a task carrying a repetition interval is completed, exactly one successor
is created for the next cycle. The guard is the parent's last_generated_at:
stamping it (only if still NULL) and inserting the successor happen in one
store transaction, so a retried trigger can neither duplicate nor lose a cycle.
"""

import logging
from datetime import date

from dateutil.relativedelta import relativedelta

from ..core.events import EventKind, publish_safely, task_event
from ..core.state import AppState
from .due_state import MAX_YEAR
from .errors import NotFoundError, ValidationError
from .task_models import RepetitionInterval, ScheduledTask, TaskStatus

logger = logging.getLogger(__name__)

_MONTHS_BY_INTERVAL = {
    RepetitionInterval.MONTHLY: 1,
    RepetitionInterval.QUARTERLY: 3,
    RepetitionInterval.SEMI_ANNUALLY: 6,
}


def add_months(d: date, months: int) -> date:
    """Calendar month arithmetic, clamping the day (Jan 31 + 1 -> Feb 28/29)."""
    return d + relativedelta(months=+months)


def next_occurrence(
    year: int,
    month: int,
    day: int | None,
    interval: RepetitionInterval,
) -> tuple[int, int, int | None]:
    """
    Schedule fields of the next cycle.

    Month-level occurrences (no day) stay month-level for month-based
    intervals; weekly always lands on a concrete day. A cycle past the
    supported calendar raises ValidationError.
    """
    target = date(year, month, day or 1)
    try:
        if interval == RepetitionInterval.WEEKLY:
            nxt = target + relativedelta(weeks=+1)
        else:
            nxt = add_months(target, _MONTHS_BY_INTERVAL[interval])
    except (OverflowError, ValueError):
        nxt = None
    if nxt is None or nxt.year > MAX_YEAR:
        raise ValidationError(
            f"The next {interval.value} occurrence after {target.isoformat()} "
            f"falls after year {MAX_YEAR}"
        )
    if interval == RepetitionInterval.WEEKLY:
        return nxt.year, nxt.month, nxt.day
    return nxt.year, nxt.month, (nxt.day if day is not None else None)


def successor_fields(task: ScheduledTask) -> dict:
    """Fields copied onto the next occurrence (same assignee or same pool visibility)."""
    if task.repetition_interval is None:
        raise ValueError(f"Task {task.task_code} has no repetition interval")
    year, month, day = next_occurrence(
        task.scheduled_year, task.scheduled_month, task.scheduled_day, task.repetition_interval
    )
    return {
        "title": task.title,
        "description": task.description,
        "engineer_id": task.engineer_id,
        "location_id": task.location_id,
        "department_id": task.department_id,
        "system_id": task.system_id,
        "machine_id": task.machine_id,
        "maintain_all_components": task.maintain_all_components,
        "selected_components": list(task.selected_components),
        "scheduled_year": year,
        "scheduled_month": month,
        "scheduled_day": day,
        "repetition_interval": task.repetition_interval,
    }


def generate_next(
    state: AppState,
    task: ScheduledTask,
    *,
    now_ts: float | None = None,
) -> ScheduledTask | None:
    """
    Create the next occurrence of a completed recurring task.

    Returns the successor, or None when nothing is due: one-off task, task not
    completed (cancelled never generates), already generated, or the chain
    reached the end of the supported calendar.
    """
    if task.repetition_interval is None:
        return None
    if task.status != TaskStatus.COMPLETED:
        logger.debug("generate_next skipped task=%s status=%s", task.task_code, task.status.value)
        return None
    if task.last_generated_at is not None:
        logger.debug("generate_next skipped task=%s: already generated", task.task_code)
        return None

    try:
        fields = successor_fields(task)
    except ValidationError as e:
        logger.warning("Recurrence of task=%s ends: %s", task.task_code, e.message)
        return None

    child_id = state.task_store.insert_successor(
        task.id, fields, created_by=task.created_by, now_ts=now_ts
    )
    if child_id is None:
        # Another caller stamped the guard between our read and our write.
        logger.info("generate_next lost guard race for task=%s; no successor created", task.task_code)
        return None

    child = state.task_store.get_task(child_id)
    if child is None:
        raise NotFoundError("Scheduled Task", child_id)
    logger.info(
        "Recurring task %s (%s) -> successor %s due %s",
        task.task_code,
        task.repetition_interval.value,
        child.task_code,
        child.target_date.isoformat(),
    )
    publish_safely(
        state.events,
        task_event(EventKind.TASK_GENERATED, child, parent_task_id=task.id, parent_task_code=task.task_code),
    )
    publish_safely(state.events, task_event(EventKind.TASK_CREATED, child))
    return child
