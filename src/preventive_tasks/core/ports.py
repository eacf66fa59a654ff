# src/preventive_tasks/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the engine.

The engine depends on Protocols instead of concrete implementations.
Reference data and notification delivery are owned by other services; these
ports keep them swappable and make testing easier.
"""

from collections.abc import Iterable, Mapping
from datetime import date
from typing import Any, Protocol

from .events import TaskEvent

REFERENCE_KINDS = ("location", "department", "system", "machine", "engineer")


class ReferenceData(Protocol):
    """
    Read-only view of reference data (locations, departments, systems, machines, users).

    Filtering out inactive entities is the provider's job, not the engine's.
    """

    def exists(self, kind: str, ref_id: str) -> bool: ...

    def machine_components(self, machine_id: str) -> list[str] | None:
        """Component names of a machine, or None when the provider does not know them."""
        ...


class EventPublisher(Protocol):
    """
    Notification-side port: the engine emits logical events, the transport
    (websocket, mail, push) decides delivery.
    """

    def publish(self, event: TaskEvent) -> None: ...


class TaskRepo(Protocol):
    # Reads
    def get_task(self, task_id: int) -> Any | None: ...
    def get_task_by_code(self, task_code: str) -> Any | None: ...
    def list_children(self, parent_task_id: int) -> list[Any]: ...
    def list_open_for_engineer(self, engineer_id: str, limit: int = 200) -> list[Any]: ...
    def list_open_pool(self, limit: int = 200) -> list[Any]: ...
    def list_open(self, limit: int = 200) -> list[Any]: ...
    def query_tasks(self, flt: Any, *, limit: int = 50, offset: int = 0) -> list[Any]: ...

    # Writes (each one a single conditional statement or one transaction)
    def add_task(self, fields: Mapping[str, Any], *, created_by: str, now_ts: float | None = None) -> int: ...
    def insert_successor(
            self,
            parent_task_id: int,
            fields: Mapping[str, Any],
            *,
            created_by: str,
            now_ts: float | None = None,
    ) -> int | None: ...
    def try_claim_task(self, task_id: int, engineer_id: str, *, now_ts: float | None = None) -> bool: ...
    def try_complete_task(self, task_id: int, request_id: str, *, now_ts: float | None = None) -> bool: ...
    def try_cancel_task(self, task_id: int, *, now_ts: float | None = None) -> bool: ...
    def try_update_open_task(
            self,
            task_id: int,
            fields: Mapping[str, Any],
            *,
            reset_status: bool = False,
            now_ts: float | None = None,
    ) -> bool: ...
    def mark_overdue(self, task_ids: Iterable[int], today: date, *, now_ts: float | None = None) -> int: ...
    def mark_overdue_before(self, today: date, *, now_ts: float | None = None) -> int: ...
    def delete_task(self, task_id: int) -> bool: ...
