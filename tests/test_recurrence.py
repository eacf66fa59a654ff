# tests/test_recurrence.py

from __future__ import annotations

from datetime import date

import pytest

from preventive_tasks.tasks.errors import ValidationError
from preventive_tasks.tasks.recurrence import add_months, generate_next, next_occurrence, successor_fields
from preventive_tasks.tasks.task_models import RepetitionInterval, TaskStatus

from .fakes import make_task

W = RepetitionInterval.WEEKLY
M = RepetitionInterval.MONTHLY
Q = RepetitionInterval.QUARTERLY
S = RepetitionInterval.SEMI_ANNUALLY


def test_add_months_clamps_to_month_end() -> None:
    assert add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)
    assert add_months(date(2024, 12, 15), 1) == date(2025, 1, 15)


@pytest.mark.parametrize(
    ("start", "interval", "expected"),
    [
        ((2024, 1, 31), M, (2024, 2, 29)),
        ((2023, 1, 31), M, (2023, 2, 28)),
        ((2024, 12, 28), W, (2025, 1, 4)),
        ((2024, 11, 30), Q, (2025, 2, 28)),
        ((2024, 8, 31), S, (2025, 2, 28)),
        ((2024, 12, None), M, (2025, 1, None)),
        ((2024, 10, None), Q, (2025, 1, None)),
        ((2024, 12, None), W, (2024, 12, 8)),
    ],
)
def test_next_occurrence(start, interval, expected) -> None:
    assert next_occurrence(*start, interval) == expected


@pytest.mark.parametrize(
    ("start", "interval"),
    [
        ((9999, 12, None), M),
        ((9999, 12, 31), M),
        ((9999, 12, 25), W),
        ((9999, 10, 1), Q),
    ],
)
def test_next_occurrence_past_calendar_is_rejected(start, interval) -> None:
    with pytest.raises(ValidationError, match="after year 9999"):
        next_occurrence(*start, interval)


def test_successor_fields_copy_scope_and_assignee() -> None:
    task = make_task(
        engineer_id="eng-1",
        maintain_all_components=False,
        selected_components=["motor", "pump"],
        scheduled_year=2024,
        scheduled_month=1,
        scheduled_day=31,
        repetition_interval="monthly",
    )
    fields = successor_fields(task)
    assert fields["engineer_id"] == "eng-1"
    assert fields["selected_components"] == ["motor", "pump"]
    assert fields["maintain_all_components"] is False
    assert (fields["scheduled_year"], fields["scheduled_month"], fields["scheduled_day"]) == (2024, 2, 29)
    assert fields["repetition_interval"] == M


def test_successor_fields_require_interval() -> None:
    with pytest.raises(ValueError):
        successor_fields(make_task())


def test_generate_next_skips_non_candidates(state) -> None:
    one_off = make_task(status=TaskStatus.COMPLETED)
    still_open = make_task(repetition_interval="weekly")
    cancelled = make_task(status=TaskStatus.CANCELLED, repetition_interval="weekly")
    already = make_task(status=TaskStatus.COMPLETED, repetition_interval="weekly", last_generated_at=1.0)

    for task in (one_off, still_open, cancelled, already):
        assert generate_next(state, task) is None
    assert state.task_store.count_tasks() == 0
