# src/preventive_tasks/core/events.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from ..tasks.task_models import ScheduledTask

logger = logging.getLogger(__name__)

AUDIENCE_ALL_ENGINEERS = "engineers"
AUDIENCE_ADMINS = "admins"


class EventKind(StrEnum):
    TASK_CREATED = "task_created"
    TASK_ACCEPTED = "task_accepted"
    TASK_UPDATED = "task_updated"
    TASK_COMPLETED = "task_completed"
    TASK_CANCELLED = "task_cancelled"
    TASK_GENERATED = "task_generated"
    TASK_DELETED = "task_deleted"


def engineer_audience(engineer_id: str) -> str:
    return f"user:{engineer_id}"


@dataclass(frozen=True, slots=True)
class TaskEvent:
    """
    Logical notification emitted by the engine.

    `audience` is a routing hint for the transport: "user:<id>" for one engineer,
    "engineers" for every eligible engineer (pool tasks), "admins" for oversight.
    """

    kind: EventKind
    task_id: int
    task_code: str
    audience: str
    data: dict[str, Any] = field(default_factory=dict)


def task_event(kind: EventKind, task: ScheduledTask, *, audience: str | None = None, **data: Any) -> TaskEvent:
    """Build an event for `task`; default audience follows assignment (pool -> all engineers)."""
    if audience is None:
        audience = engineer_audience(task.engineer_id) if task.engineer_id else AUDIENCE_ALL_ENGINEERS
    payload: dict[str, Any] = {
        "title": task.title,
        "scheduled_date": task.target_date.isoformat(),
        "is_available_to_all": task.is_pool,
    }
    payload.update(data)
    return TaskEvent(kind=kind, task_id=task.id, task_code=task.task_code, audience=audience, data=payload)


class LoggingEventPublisher:
    """Default publisher: writes events to the log. A real transport replaces it."""

    def publish(self, event: TaskEvent) -> None:
        logger.info(
            "event %s task=%s code=%s audience=%s data=%s",
            event.kind.value,
            event.task_id,
            event.task_code,
            event.audience,
            event.data,
        )


def publish_safely(publisher: Any, event: TaskEvent) -> None:
    """Delivery is an external concern: failures are logged, never raised into the engine."""
    if publisher is None:
        return
    try:
        publisher.publish(event)
    except Exception:
        logger.exception("Event publish failed kind=%s task_id=%s", event.kind.value, event.task_id)
