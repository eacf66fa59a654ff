# tests/test_reference.py

from __future__ import annotations

import json
from pathlib import Path

import pytest

from preventive_tasks.cli.bootstrap import create_initial_state
from preventive_tasks.config import Settings
from preventive_tasks.reference import JsonReferenceData, OpenReferenceData, load_reference_data


def _write_catalog(path: Path) -> Path:
    path.write_text(
        json.dumps(
            {
                "locations": ["loc-1", {"id": "loc-old", "active": False}],
                "departments": [{"id": "dep-1"}],
                "systems": ["sys-1"],
                "machines": [
                    {"id": "m-1", "components": ["pump", "motor"]},
                    {"id": "m-2"},
                ],
                "engineers": [{"id": "eng-1", "active": True}, {"id": "eng-9", "active": False}],
            }
        ),
        "utf-8",
    )
    return path


def test_json_catalog_skips_inactive_entries(tmp_path: Path) -> None:
    ref = JsonReferenceData(_write_catalog(tmp_path / "reference.json"))

    assert ref.exists("location", "loc-1")
    assert not ref.exists("location", "loc-old")
    assert ref.exists("department", "dep-1")
    assert ref.exists("engineer", "eng-1")
    assert not ref.exists("engineer", "eng-9")
    assert not ref.exists("machine", "")

    assert ref.machine_components("m-1") == ["pump", "motor"]
    assert ref.machine_components("m-2") is None


def test_missing_catalog_accepts_everything(tmp_path: Path) -> None:
    ref = load_reference_data(tmp_path / "absent.json")
    assert isinstance(ref, OpenReferenceData)
    assert ref.exists("machine", "anything")
    assert ref.machine_components("anything") is None
    assert isinstance(load_reference_data(None), OpenReferenceData)


def test_broken_catalog_is_raised(tmp_path: Path) -> None:
    bad = tmp_path / "reference.json"
    bad.write_text("[1, 2]", "utf-8")
    with pytest.raises(ValueError):
        load_reference_data(bad)


def test_settings_from_env(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PTASKS_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("PTASKS_TASK_CODE_PREFIX", "pm")
    monkeypatch.setenv("PTASKS_PERSIST_OVERDUE_ON_READ", "no")
    monkeypatch.setenv("PTASKS_LIST_LIMIT", "not-a-number")
    monkeypatch.delenv("PTASKS_TASKS_DB_PATH", raising=False)
    monkeypatch.delenv("PTASKS_REFERENCE_DATA_PATH", raising=False)

    s = Settings.from_env()
    assert s.data_dir == tmp_path
    assert s.tasks_db_path == tmp_path / "scheduled_tasks.sqlite3"
    assert s.task_code_prefix == "PM"
    assert s.persist_overdue_on_read is False
    assert s.list_limit == 200


def test_bootstrap_wires_catalog_and_store(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("PTASKS_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("PTASKS_REFERENCE_DATA_PATH", str(_write_catalog(tmp_path / "reference.json")))
    monkeypatch.setenv("PTASKS_TASK_CODE_PREFIX", "PM")
    monkeypatch.delenv("PTASKS_TASKS_DB_PATH", raising=False)

    state = create_initial_state(settings=Settings.from_env())
    assert isinstance(state.reference, JsonReferenceData)
    assert (tmp_path / "data" / "scheduled_tasks.sqlite3").exists()
    assert state.task_store.count_tasks() == 0
