# src/preventive_tasks/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import StrEnum

from .errors import ValidationError


class TaskStatus(StrEnum):
    """
    Stored lifecycle status of a scheduled task.

    Notes:
    - "overdue" is a cached value; the evaluator derives lateness from the schedule.
    - "completed" and "cancelled" are terminal.
    """

    PENDING = "pending"
    OVERDUE = "overdue"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        try:
            return cls(raw)
        except ValueError:
            return cls.PENDING

    @classmethod
    def parse(cls, raw: str) -> TaskStatus:
        try:
            return cls((raw or "").strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown status: {raw!r}") from None

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


OPEN_STATUSES: tuple[TaskStatus, ...] = (TaskStatus.PENDING, TaskStatus.OVERDUE)
TERMINAL_STATUSES: tuple[TaskStatus, ...] = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)


class RepetitionInterval(StrEnum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMI_ANNUALLY = "semi_annually"

    @classmethod
    def from_db(cls, raw: str | None) -> RepetitionInterval | None:
        if not raw:
            return None
        try:
            return cls(raw)
        except ValueError:
            return None

    @classmethod
    def parse(cls, raw: str | None) -> RepetitionInterval | None:
        """Accept None/"" (one-off), or one of the interval names (case-insensitive)."""
        if raw is None:
            return None
        s = str(raw).strip().lower().replace("-", "_")
        if not s or s in ("none", "once"):
            return None
        try:
            return cls(s)
        except ValueError:
            raise ValidationError(
                "Repetition interval must be weekly, monthly, quarterly, or semi_annually"
            ) from None


@dataclass(slots=True)
class ScheduledTask:
    id: int
    task_code: str
    status: TaskStatus
    created_at: float
    updated_at: float

    title: str
    description: str

    engineer_id: str | None
    location_id: str
    department_id: str
    system_id: str
    machine_id: str

    maintain_all_components: bool
    selected_components: list[str]

    scheduled_year: int
    scheduled_month: int
    scheduled_day: int | None

    created_by: str

    repetition_interval: RepetitionInterval | None = None
    completed_request_id: str | None = None
    completed_at: float | None = None
    last_generated_at: float | None = None
    parent_task_id: int | None = None

    @property
    def target_date(self) -> date:
        return date(self.scheduled_year, self.scheduled_month, self.scheduled_day or 1)

    @property
    def is_pool(self) -> bool:
        return not self.engineer_id


@dataclass(frozen=True, slots=True)
class TaskView:
    """A task as seen at read time: stored record plus derived due state."""

    task: ScheduledTask
    effective_status: TaskStatus
    days_remaining: int

    @property
    def id(self) -> int:
        return self.task.id


@dataclass(frozen=True, slots=True)
class MaintenanceRequestDraft:
    """
    Pre-filled maintenance request handed to the external request service.

    The request service persists it and later reports completion back through
    the completion linker using `scheduled_task_id`.
    """

    scheduled_task_id: int
    task_code: str
    engineer_id: str
    location_id: str
    department_id: str
    system_id: str
    machine_id: str
    maintain_all_components: bool
    selected_components: list[str]
    description: str
    maintenance_type: str = "preventive"


@dataclass(frozen=True, slots=True)
class CompletionResult:
    task: ScheduledTask
    successor: ScheduledTask | None = None


@dataclass(slots=True)
class TaskFilter:
    """Administrative listing filter. None means "any"."""

    status: TaskStatus | None = None
    engineer_id: str | None = None
    location_id: str | None = None
    department_id: str | None = None
    system_id: str | None = None
    machine_id: str | None = None
    scheduled_year: int | None = None
    scheduled_month: int | None = None
    pool_only: bool = False
