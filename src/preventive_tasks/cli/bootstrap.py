# src/preventive_tasks/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (task store, reference data, events).
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..core.events import LoggingEventPublisher
from ..core.state import AppState
from ..reference import load_reference_data
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    reference = load_reference_data(settings.reference_data_path)
    logger.info("Reference data: %s", type(reference).__name__)

    return AppState(
        settings=settings,
        task_store=TaskStore(settings.tasks_db_path, code_prefix=settings.task_code_prefix),
        reference=reference,
        events=LoggingEventPublisher(),
    )
