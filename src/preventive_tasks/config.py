# src/preventive_tasks/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time.
- Paths default to a gitignored local data directory.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "PTASKS"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    reference_data_path: Path

    # ---- Engine behavior ----
    task_code_prefix: str
    persist_overdue_on_read: bool
    list_limit: int

    @staticmethod
    def from_env() -> "Settings":
        app_name = _env(_k("APP_NAME"), "preventive-tasks")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/preventive_tasks"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "scheduled_tasks.sqlite3")
        reference_data_path = _env_path(_k("REFERENCE_DATA_PATH"), data_dir / "reference.json")

        task_code_prefix = _env(_k("TASK_CODE_PREFIX"), "TASK").strip().upper() or "TASK"
        persist_overdue_on_read = _env_bool(_k("PERSIST_OVERDUE_ON_READ"), True)
        list_limit = max(1, _env_int(_k("LIST_LIMIT"), 200))

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            reference_data_path=reference_data_path,
            task_code_prefix=task_code_prefix,
            persist_overdue_on_read=persist_overdue_on_read,
            list_limit=list_limit,
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
