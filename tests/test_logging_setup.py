# tests/test_logging_setup.py

from __future__ import annotations

import logging

import pytest

from preventive_tasks.logging_setup import _ConsoleNoiseFilter


def _record(name: str, level: int) -> logging.LogRecord:
    return logging.LogRecord(name, level, __file__, 1, "msg", None, None)


@pytest.mark.parametrize(
    ("name", "level", "shown"),
    [
        ("preventive_tasks.core.events", logging.INFO, False),
        ("preventive_tasks.core.events", logging.WARNING, True),
        ("preventive_tasks.cli.commands", logging.INFO, False),
        ("preventive_tasks.tasks.task_store", logging.INFO, False),
        ("preventive_tasks.tasks.task_api", logging.INFO, True),
        ("preventive_tasks.tasks.recurrence", logging.DEBUG, True),
        ("urllib3.connectionpool", logging.WARNING, False),
        ("urllib3.connectionpool", logging.ERROR, True),
        ("py.warnings", logging.WARNING, False),
    ],
)
def test_console_filter_defaults(name, level, shown) -> None:
    assert _ConsoleNoiseFilter().filter(_record(name, level)) is shown


def test_console_filter_prefix_does_not_match_sibling_names() -> None:
    f = _ConsoleNoiseFilter()
    # "core.events_extra" is not under "core.events".
    assert f.filter(_record("preventive_tasks.core.events_extra", logging.INFO)) is True


def test_console_filter_longest_prefix_wins() -> None:
    f = _ConsoleNoiseFilter(
        {
            "preventive_tasks.tasks": logging.ERROR,
            "preventive_tasks.tasks.linker": logging.INFO,
        }
    )
    assert f.filter(_record("preventive_tasks.tasks.linker", logging.INFO)) is True
    assert f.filter(_record("preventive_tasks.tasks.task_api", logging.WARNING)) is False
    # Not in the custom table: the defaults are replaced, not merged.
    assert f.filter(_record("preventive_tasks.core.events", logging.INFO)) is True
