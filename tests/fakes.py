# tests/fakes.py

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any

from preventive_tasks.core.events import EventKind, TaskEvent
from preventive_tasks.tasks.task_models import RepetitionInterval, ScheduledTask, TaskStatus

# 2025-03-10 12:00 local time; task codes minted at this instant carry "202503".
FIXED_NOW = time.mktime((2025, 3, 10, 12, 0, 0, 0, 0, -1))

REFERENCE_IDS = {
    "location": ["loc-1", "loc-2"],
    "department": ["dep-1"],
    "system": ["sys-1"],
    "machine": ["m-1", "m-2", "m-3"],
    "engineer": ["eng-1", "eng-2", "eng-3"],
}

# m-3 has no known catalog: any component names pass.
MACHINE_COMPONENTS = {
    "m-1": ["pump", "motor", "valve"],
    "m-2": [],
}


@dataclass(slots=True)
class RecordingPublisher:
    """
    Fake EventPublisher used by engine tests.
    """

    events: list[TaskEvent] = field(default_factory=list)

    def publish(self, event: TaskEvent) -> None:
        self.events.append(event)

    def kinds(self) -> list[EventKind]:
        return [e.kind for e in self.events]

    def of_kind(self, kind: EventKind) -> list[TaskEvent]:
        return [e for e in self.events if e.kind == kind]


class FailingPublisher:
    """Transport that is always down."""

    def __init__(self) -> None:
        self.calls = 0

    def publish(self, event: TaskEvent) -> None:
        self.calls += 1
        raise ConnectionError("notification transport unavailable")


def task_kwargs(**overrides: Any) -> dict[str, Any]:
    """Valid create_task() arguments for the reference catalog above."""
    kwargs: dict[str, Any] = {
        "title": "Quarterly pump inspection",
        "location_id": "loc-1",
        "department_id": "dep-1",
        "system_id": "sys-1",
        "machine_id": "m-1",
        "scheduled_year": 2025,
        "scheduled_month": 3,
        "scheduled_day": 15,
        "created_by": "admin-1",
        "now_ts": FIXED_NOW,
    }
    kwargs.update(overrides)
    return kwargs


def make_task(**overrides: Any) -> ScheduledTask:
    """Detached ScheduledTask for pure evaluation tests (never stored)."""
    values: dict[str, Any] = {
        "id": 1,
        "task_code": "TASK-202503-0001",
        "status": TaskStatus.PENDING,
        "created_at": FIXED_NOW,
        "updated_at": FIXED_NOW,
        "title": "Inspect",
        "description": "",
        "engineer_id": None,
        "location_id": "loc-1",
        "department_id": "dep-1",
        "system_id": "sys-1",
        "machine_id": "m-1",
        "maintain_all_components": True,
        "selected_components": [],
        "scheduled_year": 2025,
        "scheduled_month": 3,
        "scheduled_day": 15,
        "created_by": "admin-1",
        "repetition_interval": None,
    }
    values.update(overrides)
    if isinstance(values["repetition_interval"], str):
        values["repetition_interval"] = RepetitionInterval(values["repetition_interval"])
    return ScheduledTask(**values)
