# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file),
see src/preventive_tasks/config.py. Keep local values in .env (gitignored).

This file exists to make the repo self-documenting even without opening .env.example.
"""

ENV_VARS = {
    # App / logging
    "PTASKS_APP_NAME": "App display name (default: preventive-tasks).",
    "PTASKS_LOG_LEVEL": "Console logging level (default: INFO). The log file always gets DEBUG.",
    # Paths (gitignored)
    "PTASKS_DATA_DIR": "Local data directory, also holds the log file (default: .local/preventive_tasks).",
    "PTASKS_TASKS_DB_PATH": "TaskStore SQLite path (default: <data_dir>/scheduled_tasks.sqlite3).",
    "PTASKS_REFERENCE_DATA_PATH": (
        "JSON catalog of locations/departments/systems/machines/engineers "
        "(default: <data_dir>/reference.json; when missing every id is accepted)."
    ),
    # Engine behavior
    "PTASKS_TASK_CODE_PREFIX": "Prefix of generated task codes, e.g. TASK-202501-0001 (default: TASK).",
    "PTASKS_PERSIST_OVERDUE_ON_READ": "Write derived 'overdue' back while listing (true/false, default: true).",
    "PTASKS_LIST_LIMIT": "Max rows returned by /mine, /available, /pending (default: 200).",
}
