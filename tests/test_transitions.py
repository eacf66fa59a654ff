# tests/test_transitions.py

from __future__ import annotations

from datetime import date

import pytest

from preventive_tasks.core.events import AUDIENCE_ADMINS, EventKind
from preventive_tasks.tasks.errors import InvalidOperationError, NotFoundError, ValidationError
from preventive_tasks.tasks.task_api import create_task, reconcile_overdue
from preventive_tasks.tasks.task_models import TaskStatus
from preventive_tasks.tasks.transitions import cancel, complete

from .fakes import task_kwargs


def test_complete_records_request(state, events) -> None:
    task = create_task(state, **task_kwargs(engineer_id="eng-1"))

    done = complete(state, task.id, "req-1")
    assert done.status == TaskStatus.COMPLETED
    assert done.completed_request_id == "req-1"
    assert done.completed_at is not None

    ev = events.events[-1]
    assert ev.kind == EventKind.TASK_COMPLETED
    assert ev.audience == AUDIENCE_ADMINS
    assert ev.data["request_id"] == "req-1"


def test_complete_is_idempotent_for_same_request(state, events) -> None:
    task = create_task(state, **task_kwargs())
    first = complete(state, task.id, "req-1")
    n = len(events.events)

    again = complete(state, task.id, "req-1")
    assert again.completed_at == first.completed_at
    assert len(events.events) == n

    with pytest.raises(InvalidOperationError, match="already completed by request req-1"):
        complete(state, task.id, "req-2")


def test_overdue_task_can_be_completed(state) -> None:
    task = create_task(state, **task_kwargs(scheduled_day=1))
    reconcile_overdue(state, today=date(2025, 3, 10))
    assert state.task_store.get_task(task.id).status == TaskStatus.OVERDUE

    assert complete(state, task.id, "req-1").status == TaskStatus.COMPLETED


def test_complete_cancelled_task_fails(state) -> None:
    task = create_task(state, **task_kwargs())
    cancel(state, task.id)
    with pytest.raises(InvalidOperationError):
        complete(state, task.id, "req-1")


def test_complete_requires_request_id(state) -> None:
    task = create_task(state, **task_kwargs())
    with pytest.raises(ValidationError):
        complete(state, task.id, "  ")
    with pytest.raises(NotFoundError):
        complete(state, 999, "req-1")


def test_cancel_open_tasks_only(state, events) -> None:
    task = create_task(state, **task_kwargs())
    cancelled = cancel(state, task.id)
    assert cancelled.status == TaskStatus.CANCELLED
    assert events.events[-1].kind == EventKind.TASK_CANCELLED

    with pytest.raises(InvalidOperationError):
        cancel(state, task.id)

    done = create_task(state, **task_kwargs())
    complete(state, done.id, "req-1")
    with pytest.raises(InvalidOperationError):
        cancel(state, done.id)
