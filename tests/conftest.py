# tests/conftest.py

from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest

from preventive_tasks.core.state import AppState
from preventive_tasks.reference import InMemoryReferenceData
from preventive_tasks.tasks.task_store import TaskStore

from .fakes import MACHINE_COMPONENTS, REFERENCE_IDS, RecordingPublisher


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and engine modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="preventive-tasks-test",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "scheduled_tasks.sqlite3",
        reference_data_path=tmp_path / "reference.json",
        # Engine behavior
        task_code_prefix="TASK",
        persist_overdue_on_read=True,
        list_limit=200,
    )


@pytest.fixture()
def events() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture()
def state(settings: SimpleNamespace, events: RecordingPublisher) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite TaskStore here because its conditional
    updates are part of what we want to test.
    """
    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path, code_prefix=settings.task_code_prefix),
        reference=InMemoryReferenceData(REFERENCE_IDS, MACHINE_COMPONENTS),
        events=events,
    )
