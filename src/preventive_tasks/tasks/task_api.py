# src/preventive_tasks/tasks/task_api.py

"""
Administrative task API: create, read, edit, filter, delete, reconcile.

Every function takes the AppState first (state.task_store, state.reference,
state.events), mirroring the CLI command handlers that call them.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from typing import Any

from ..core.events import AUDIENCE_ADMINS, EventKind, publish_safely, task_event
from ..core.state import AppState
from .due_state import evaluate, needs_overdue_write, target_date_for
from .errors import InvalidOperationError, NotFoundError, ValidationError
from .recurrence import next_occurrence
from .task_models import RepetitionInterval, ScheduledTask, TaskFilter, TaskView

logger = logging.getLogger(__name__)

_UNSET: Any = object()

_REFERENCE_FIELDS = (
    ("location", "location_id"),
    ("department", "department_id"),
    ("system", "system_id"),
    ("machine", "machine_id"),
)


def _setting(state: AppState, name: str, default: Any) -> Any:
    return getattr(state.settings, name, default)


# ---- lookups ----


def require_task(state: AppState, task_id: int) -> ScheduledTask:
    task = state.task_store.get_task(int(task_id))
    if task is None:
        raise NotFoundError("Scheduled Task", task_id)
    return task


def resolve_task(state: AppState, ref: int | str) -> ScheduledTask:
    """Find a task by numeric id or by task code ("TASK-202401-0003")."""
    if isinstance(ref, int):
        return require_task(state, ref)
    s = str(ref).strip()
    if s.isdigit():
        return require_task(state, int(s))
    task = state.task_store.get_task_by_code(s)
    if task is None:
        raise NotFoundError("Scheduled Task", s)
    return task


def get_task(state: AppState, ref: int | str, *, today: date | None = None) -> TaskView:
    return evaluate(resolve_task(state, ref), today)


# ---- due-state materialization ----


def evaluate_tasks(
    state: AppState,
    tasks: Iterable[ScheduledTask],
    *,
    today: date | None = None,
) -> list[TaskView]:
    """
    Evaluate tasks for display and, best-effort, persist freshly derived "overdue".

    The write is idempotent (only pending rows flip), so concurrent readers
    re-writing the same value is harmless. A failed write never fails the read.
    """
    if today is None:
        today = date.today()
    views = [evaluate(t, today) for t in tasks]

    if not _setting(state, "persist_overdue_on_read", True):
        return views

    stale = [v.task.id for v in views if needs_overdue_write(v)]
    if stale:
        try:
            n = state.task_store.mark_overdue(stale, today)
            logger.debug("Materialized overdue for %s/%s tasks", n, len(stale))
        except Exception:
            logger.exception("Best-effort overdue persistence failed ids=%s", stale)
    return views


def reconcile_overdue(state: AppState, *, today: date | None = None) -> int:
    """Bulk pass: persist "overdue" for every pending task whose target date has passed."""
    if today is None:
        today = date.today()
    n = state.task_store.mark_overdue_before(today)
    if n:
        logger.info("Reconciled %s task(s) to overdue (today=%s)", n, today.isoformat())
    return n


# ---- validation ----


def _clean_components(components: Iterable[str] | None) -> list[str]:
    return sorted({str(c).strip() for c in components or [] if str(c).strip()})


def _check_scope(maintain_all: bool, components: list[str]) -> None:
    if not maintain_all and not components:
        raise InvalidOperationError(
            "Selected components are required when maintain_all_components is false"
        )


def _check_reference(state: AppState, kind: str, ref_id: str | None) -> None:
    if not ref_id or not state.reference.exists(kind, ref_id):
        raise NotFoundError(kind.capitalize(), ref_id)


def _check_machine_components(state: AppState, machine_id: str, components: list[str]) -> None:
    known = state.reference.machine_components(machine_id)
    if known is None:
        return
    if not known:
        raise InvalidOperationError("The selected machine does not have any components")
    invalid = [c for c in components if c not in known]
    if invalid:
        raise InvalidOperationError(
            f"The following components are not valid for this machine: {', '.join(invalid)}"
        )


def _clean_title(title: str | None) -> str:
    t = (title or "").strip()
    if not t:
        raise ValidationError("Title is required")
    return t


def _check_recurrence(year: int, month: int, day: int | None, interval: RepetitionInterval | None) -> None:
    """A recurring schedule must leave room for its next cycle on the supported calendar."""
    if interval is not None:
        next_occurrence(year, month, day, interval)


# ---- create / update / delete ----


def create_task(
    state: AppState,
    *,
    title: str,
    location_id: str,
    department_id: str,
    system_id: str,
    machine_id: str,
    scheduled_year: int,
    scheduled_month: int,
    created_by: str,
    scheduled_day: int | None = None,
    engineer_id: str | None = None,
    description: str | None = None,
    maintain_all_components: bool = True,
    selected_components: Iterable[str] | None = None,
    repetition_interval: RepetitionInterval | str | None = None,
    now_ts: float | None = None,
) -> ScheduledTask:
    """
    Create a pending task (administrators only; authorization is the caller's job).

    Without engineer_id the task goes to the shared pool.
    """
    clean_title = _clean_title(title)
    target = target_date_for(scheduled_year, scheduled_month, scheduled_day)
    interval = (
        repetition_interval
        if isinstance(repetition_interval, RepetitionInterval) or repetition_interval is None
        else RepetitionInterval.parse(repetition_interval)
    )
    if not (created_by or "").strip():
        raise ValidationError("created_by is required")
    _check_recurrence(
        target.year, target.month, None if scheduled_day is None else target.day, interval
    )

    components = [] if maintain_all_components else _clean_components(selected_components)
    _check_scope(maintain_all_components, components)

    refs = {
        "location_id": location_id,
        "department_id": department_id,
        "system_id": system_id,
        "machine_id": machine_id,
    }
    for kind, key in _REFERENCE_FIELDS:
        _check_reference(state, kind, refs[key])
    engineer = (engineer_id or "").strip() or None
    if engineer is not None:
        _check_reference(state, "engineer", engineer)
    if not maintain_all_components:
        _check_machine_components(state, machine_id, components)

    fields = {
        "title": clean_title,
        "description": (description or "").strip(),
        "engineer_id": engineer,
        **refs,
        "maintain_all_components": bool(maintain_all_components),
        "selected_components": components,
        "scheduled_year": target.year,
        "scheduled_month": target.month,
        "scheduled_day": None if scheduled_day is None else target.day,
        "repetition_interval": interval,
    }

    task_id = state.task_store.add_task(fields, created_by=created_by.strip(), now_ts=now_ts)
    task = require_task(state, task_id)
    logger.info(
        "Task created id=%s code=%s target=%s engineer=%s interval=%s",
        task.id,
        task.task_code,
        task.target_date.isoformat(),
        task.engineer_id or "<pool>",
        task.repetition_interval.value if task.repetition_interval else "-",
    )
    publish_safely(state.events, task_event(EventKind.TASK_CREATED, task))
    return task


def update_task(
    state: AppState,
    task_id: int,
    *,
    title: Any = _UNSET,
    description: Any = _UNSET,
    engineer_id: Any = _UNSET,
    location_id: Any = _UNSET,
    department_id: Any = _UNSET,
    system_id: Any = _UNSET,
    machine_id: Any = _UNSET,
    maintain_all_components: Any = _UNSET,
    selected_components: Any = _UNSET,
    scheduled_year: Any = _UNSET,
    scheduled_month: Any = _UNSET,
    scheduled_day: Any = _UNSET,
    repetition_interval: Any = _UNSET,
    now_ts: float | None = None,
) -> ScheduledTask:
    """
    Edit an open task. Only the given fields change.

    - engineer_id=None returns the task to the pool.
    - scheduled_day=None makes the occurrence month-level again.
    - any schedule change drops a cached "overdue" back to "pending".
    - terminal tasks (completed/cancelled) are frozen: InvalidOperationError.
    """
    task = require_task(state, task_id)
    if task.status.is_terminal:
        raise InvalidOperationError(f"Cannot edit a {task.status.value} task ({task.task_code})")

    changes: dict[str, Any] = {}

    if title is not _UNSET:
        changes["title"] = _clean_title(title)
    if description is not _UNSET:
        changes["description"] = (description or "").strip()

    if engineer_id is not _UNSET:
        engineer = (engineer_id or "").strip() or None
        if engineer is not None:
            _check_reference(state, "engineer", engineer)
        changes["engineer_id"] = engineer

    ref_updates = {
        "location_id": location_id,
        "department_id": department_id,
        "system_id": system_id,
        "machine_id": machine_id,
    }
    for kind, key in _REFERENCE_FIELDS:
        value = ref_updates[key]
        if value is not _UNSET:
            _check_reference(state, kind, value)
            changes[key] = value

    schedule_touched = any(
        v is not _UNSET for v in (scheduled_year, scheduled_month, scheduled_day)
    )
    if schedule_touched:
        year = task.scheduled_year if scheduled_year is _UNSET else scheduled_year
        month = task.scheduled_month if scheduled_month is _UNSET else scheduled_month
        day = task.scheduled_day if scheduled_day is _UNSET else scheduled_day
        target = target_date_for(year, month, day)
        changes["scheduled_year"] = target.year
        changes["scheduled_month"] = target.month
        changes["scheduled_day"] = None if day is None else target.day

    if repetition_interval is not _UNSET:
        changes["repetition_interval"] = (
            repetition_interval
            if isinstance(repetition_interval, RepetitionInterval) or repetition_interval is None
            else RepetitionInterval.parse(repetition_interval)
        )

    if schedule_touched or "repetition_interval" in changes:
        _check_recurrence(
            changes.get("scheduled_year", task.scheduled_year),
            changes.get("scheduled_month", task.scheduled_month),
            changes["scheduled_day"] if "scheduled_day" in changes else task.scheduled_day,
            changes.get("repetition_interval", task.repetition_interval),
        )

    scope_touched = maintain_all_components is not _UNSET or selected_components is not _UNSET
    if scope_touched or "machine_id" in changes:
        maintain_all = (
            task.maintain_all_components
            if maintain_all_components is _UNSET
            else bool(maintain_all_components)
        )
        components = (
            task.selected_components
            if selected_components is _UNSET
            else _clean_components(selected_components)
        )
        if maintain_all:
            components = []
        _check_scope(maintain_all, components)
        if not maintain_all:
            _check_machine_components(state, changes.get("machine_id", task.machine_id), components)
        changes["maintain_all_components"] = maintain_all
        changes["selected_components"] = components

    if not changes:
        return task

    ok = state.task_store.try_update_open_task(
        task.id, changes, reset_status=schedule_touched, now_ts=now_ts
    )
    if not ok:
        # Lost a race with complete/cancel (or a delete).
        current = require_task(state, task.id)
        raise InvalidOperationError(f"Cannot edit a {current.status.value} task ({current.task_code})")

    updated = require_task(state, task.id)
    logger.info("Task updated id=%s fields=%s", updated.id, sorted(changes))
    publish_safely(state.events, task_event(EventKind.TASK_UPDATED, updated, fields=sorted(changes)))
    return updated


def delete_task(state: AppState, task_id: int) -> None:
    """Hard delete (administrative). Successors keep their parent reference."""
    task = require_task(state, task_id)
    if not state.task_store.delete_task(task.id):
        raise NotFoundError("Scheduled Task", task_id)
    logger.info("Task deleted id=%s code=%s", task.id, task.task_code)
    publish_safely(state.events, task_event(EventKind.TASK_DELETED, task, audience=AUDIENCE_ADMINS))


# ---- administrative listing ----


def query_tasks(
    state: AppState,
    flt: TaskFilter | None = None,
    *,
    limit: int = 50,
    offset: int = 0,
    today: date | None = None,
) -> list[TaskView]:
    """
    Filtered listing for the back office.

    Stored status is reconciled first so a status filter sees fresh values.
    """
    if flt is None:
        flt = TaskFilter()
    if _setting(state, "persist_overdue_on_read", True):
        try:
            reconcile_overdue(state, today=today)
        except Exception:
            logger.exception("Overdue reconciliation before query failed")
    tasks = state.task_store.query_tasks(flt, limit=limit, offset=offset)
    return evaluate_tasks(state, tasks, today=today)
