# src/preventive_tasks/logging_setup.py

from __future__ import annotations

import logging
import sys
from collections.abc import Mapping
from pathlib import Path

APP_LOGGER = "preventive_tasks"

# Console floor per logger (prefix match, longest wins). The file gets everything.
CONSOLE_LEVELS: dict[str, int] = {
    # one line per published event
    f"{APP_LOGGER}.core.events": logging.WARNING,
    # rejected commands are already printed as the reply
    f"{APP_LOGGER}.cli.commands": logging.WARNING,
    # startup and migration lines
    f"{APP_LOGGER}.tasks.task_store": logging.WARNING,
    "py.warnings": logging.ERROR,
}


class _ConsoleNoiseFilter(logging.Filter):
    """
    Make the interactive console usable:
    - allow preventive_tasks logs, except the loggers listed in `levels`
      below their floor
    - suppress third-party noise unless ERROR+
    """

    def __init__(self, levels: Mapping[str, int] | None = None) -> None:
        super().__init__()
        table = CONSOLE_LEVELS if levels is None else levels
        # longest prefix first so "a.b.c" beats "a.b"
        self._levels = sorted(table.items(), key=lambda kv: len(kv[0]), reverse=True)

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name

        for prefix, floor in self._levels:
            if name == prefix or name.startswith(prefix + "."):
                return record.levelno >= floor

        if name == APP_LOGGER or name.startswith(APP_LOGGER + "."):
            return True

        return record.levelno >= logging.ERROR


def setup_logging(
    *,
    log_dir: str | Path = ".local/preventive_tasks",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
    console_levels: Mapping[str, int] | None = None,
) -> Path:
    """
    Configure logging with:
    - Console handler: readable + filtered for interactive use
      (`console_levels` overrides CONSOLE_LEVELS)
    - File handler: full logs for debugging

    Call this ONCE, very early (before first logger.info). Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / f"{APP_LOGGER}.log"

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    # Remove any pre-existing handlers to avoid duplicates.
    for h in list(root.handlers):
        root.removeHandler(h)

    fmt = logging.Formatter(
        fmt="%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    ch = logging.StreamHandler(sys.stderr)
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    ch.addFilter(_ConsoleNoiseFilter(console_levels))
    root.addHandler(ch)

    fh = logging.FileHandler(str(log_file), encoding="utf-8")
    fh.setLevel(file_level)
    fh.setFormatter(fmt)
    root.addHandler(fh)

    # Route warnings.warn(...) into logging as 'py.warnings'
    logging.captureWarnings(True)
    return log_file
