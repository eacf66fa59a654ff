# src/preventive_tasks/tasks/due_state.py

from __future__ import annotations

"""
Due-state evaluation.

Lateness is never trusted from storage: the effective status of an open task is
derived from its calendar target and "today" on every read. Stored "overdue" is
only a cache that listing paths materialize so status filters stay correct.
"""

import calendar
from datetime import date

from .errors import ValidationError
from .task_models import ScheduledTask, TaskStatus, TaskView

MIN_YEAR = 2000
MAX_YEAR = 9999


def target_date_for(year: int, month: int, day: int | None = None) -> date:
    """
    Validate schedule fields and build the occurrence's target date.

    A missing day means "first day of the month".
    """
    try:
        y = int(year)
        m = int(month)
        d = None if day is None else int(day)
    except (TypeError, ValueError):
        raise ValidationError("Scheduled year/month/day must be integers") from None

    if not (MIN_YEAR <= y <= MAX_YEAR):
        raise ValidationError(f"Scheduled year must be between {MIN_YEAR} and {MAX_YEAR}")
    if not (1 <= m <= 12):
        raise ValidationError("Scheduled month must be between 1 and 12")
    if d is None:
        return date(y, m, 1)
    if not (1 <= d <= 31):
        raise ValidationError("Scheduled day must be between 1 and 31")

    last = calendar.monthrange(y, m)[1]
    if d > last:
        raise ValidationError(f"Scheduled day {d} is not valid for {y}-{m:02d} (last day is {last})")
    return date(y, m, d)


def days_remaining(task: ScheduledTask, today: date | None = None) -> int:
    """Whole days from today to the target date; negative once late."""
    if today is None:
        today = date.today()
    return (task.target_date - today).days


def effective_status(task: ScheduledTask, today: date | None = None) -> TaskStatus:
    """
    Open tasks are overdue iff the target date is before today, whatever the
    stored open status says; terminal statuses are returned as stored.
    """
    if today is None:
        today = date.today()
    if task.status.is_terminal:
        return task.status
    return TaskStatus.OVERDUE if task.target_date < today else TaskStatus.PENDING


def evaluate(task: ScheduledTask, today: date | None = None) -> TaskView:
    if today is None:
        today = date.today()
    return TaskView(
        task=task,
        effective_status=effective_status(task, today),
        days_remaining=days_remaining(task, today),
    )


def needs_overdue_write(view: TaskView) -> bool:
    """True when the cached status lags behind the derived one."""
    return view.task.status == TaskStatus.PENDING and view.effective_status == TaskStatus.OVERDUE
