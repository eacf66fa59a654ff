# tests/test_due_state.py

from __future__ import annotations

from datetime import date

import pytest

from preventive_tasks.tasks.due_state import (
    days_remaining,
    effective_status,
    evaluate,
    needs_overdue_write,
    target_date_for,
)
from preventive_tasks.tasks.errors import ValidationError
from preventive_tasks.tasks.task_models import TaskStatus

from .fakes import make_task


def test_target_date_defaults_to_first_of_month() -> None:
    assert target_date_for(2025, 4) == date(2025, 4, 1)
    assert target_date_for(2024, 2, 29) == date(2024, 2, 29)


@pytest.mark.parametrize(
    ("year", "month", "day"),
    [
        (2025, 13, None),
        (2025, 0, None),
        (1999, 5, None),
        (2023, 2, 29),
        (2025, 4, 31),
        (2025, 4, 0),
        ("abc", 4, None),
    ],
)
def test_target_date_rejects_invalid_schedule(year, month, day) -> None:
    with pytest.raises(ValidationError):
        target_date_for(year, month, day)


def test_pending_task_past_target_is_overdue_without_storage_write() -> None:
    task = make_task(scheduled_year=2025, scheduled_month=3, scheduled_day=15)
    today = date(2025, 3, 16)

    assert effective_status(task, today) == TaskStatus.OVERDUE
    assert days_remaining(task, today) == -1
    # The record itself is untouched.
    assert task.status == TaskStatus.PENDING


def test_due_today_is_still_pending() -> None:
    task = make_task(scheduled_year=2025, scheduled_month=3, scheduled_day=15)
    view = evaluate(task, date(2025, 3, 15))
    assert view.effective_status == TaskStatus.PENDING
    assert view.days_remaining == 0
    assert not needs_overdue_write(view)


def test_month_level_task_targets_the_first() -> None:
    task = make_task(scheduled_year=2025, scheduled_month=3, scheduled_day=None)
    assert days_remaining(task, date(2025, 2, 27)) == 2
    assert effective_status(task, date(2025, 3, 2)) == TaskStatus.OVERDUE


@pytest.mark.parametrize("status", [TaskStatus.COMPLETED, TaskStatus.CANCELLED])
def test_terminal_tasks_never_become_overdue(status: TaskStatus) -> None:
    task = make_task(status=status, scheduled_year=2024, scheduled_month=1, scheduled_day=1)
    view = evaluate(task, date(2025, 1, 1))
    assert view.effective_status == status
    assert not needs_overdue_write(view)


def test_needs_overdue_write_only_for_stale_pending() -> None:
    late = make_task(scheduled_year=2025, scheduled_month=1, scheduled_day=1)
    cached = make_task(status=TaskStatus.OVERDUE, scheduled_year=2025, scheduled_month=1, scheduled_day=1)
    today = date(2025, 2, 1)

    assert needs_overdue_write(evaluate(late, today))
    assert not needs_overdue_write(evaluate(cached, today))


def test_cached_overdue_that_is_no_longer_late_reads_pending() -> None:
    task = make_task(status=TaskStatus.OVERDUE, scheduled_year=2025, scheduled_month=6, scheduled_day=1)
    view = evaluate(task, date(2025, 3, 10))
    assert view.effective_status == TaskStatus.PENDING
    assert view.days_remaining == 83
    assert not needs_overdue_write(view)
