# src/preventive_tasks/core/state.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .events import LoggingEventPublisher
from .ports import EventPublisher, ReferenceData, TaskRepo


@dataclass
class AppState:
    """
    Wiring shared by every engine call.

    Engine functions take the state as their first argument, the same way the
    CLI command handlers do.
    """

    # Settings object (real Settings or a SimpleNamespace in tests).
    settings: Any

    task_store: TaskRepo
    reference: ReferenceData
    events: EventPublisher = field(default_factory=LoggingEventPublisher)
