# src/preventive_tasks/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from collections.abc import Iterable, Mapping
from datetime import date
from pathlib import Path
from typing import Any

from .task_models import (
    OPEN_STATUSES,
    RepetitionInterval,
    ScheduledTask,
    TaskFilter,
    TaskStatus,
)

logger = logging.getLogger(__name__)

_OPEN_SQL = "(" + ",".join(f"'{s.value}'" for s in OPEN_STATUSES) + ")"

# Columns a caller may write through insert/update. Everything else
# (status transitions, guards, audit timestamps) has a dedicated method.
_WRITABLE_FIELDS = (
    "title",
    "description",
    "engineer_id",
    "location_id",
    "department_id",
    "system_id",
    "machine_id",
    "maintain_all_components",
    "selected_components",
    "scheduled_year",
    "scheduled_month",
    "scheduled_day",
    "repetition_interval",
)


def due_date_str(year: int, month: int, day: int | None) -> str:
    return f"{int(year):04d}-{int(month):02d}-{int(day or 1):02d}"


class TaskStore:
    """
    SQLite scheduled-task store.

    The schema is migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Concurrency:
    - each method opens its own SQLite connection
    - single-row transitions are one conditional UPDATE (compare-and-swap on
      the guarded column), never a read followed by a separate write
    - multi-statement writes (task code allocation, successor generation) run
      under BEGIN IMMEDIATE
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, code_prefix: str = "TASK") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._code_prefix = (code_prefix or "TASK").strip().upper()
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except sqlite3.Error:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS scheduled_tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    task_code TEXT NOT NULL UNIQUE,
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    engineer_id TEXT,
                    location_id TEXT NOT NULL,
                    department_id TEXT NOT NULL,
                    system_id TEXT NOT NULL,
                    machine_id TEXT NOT NULL,
                    maintain_all_components INTEGER NOT NULL DEFAULT 1,
                    selected_components TEXT NOT NULL DEFAULT '[]',
                    scheduled_year INTEGER NOT NULL,
                    scheduled_month INTEGER NOT NULL,
                    scheduled_day INTEGER,
                    due_date TEXT NOT NULL,
                    created_by TEXT NOT NULL
                )
                """
            )

            cur.execute("PRAGMA table_info(scheduled_tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE scheduled_tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            # Recurrence / completion columns arrived after the first schema.
            add_col("repetition_interval", "TEXT")
            add_col("completed_request_id", "TEXT")
            add_col("completed_at", "REAL")
            add_col("last_generated_at", "REAL")
            add_col("parent_task_id", "INTEGER")

            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_sched_engineer_status "
                "ON scheduled_tasks(engineer_id, status)"
            )
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_sched_status_due ON scheduled_tasks(status, due_date)"
            )
            cur.execute("CREATE INDEX IF NOT EXISTS idx_sched_parent ON scheduled_tasks(parent_task_id)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _components_to_str(components: Iterable[str] | None) -> str:
        return json.dumps(sorted({str(c) for c in components or []}), ensure_ascii=False)

    @staticmethod
    def _str_to_components(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except ValueError:
            logger.warning("Corrupt selected_components value %r; treating as empty", s)
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> ScheduledTask:
        return ScheduledTask(
            id=int(row["id"]),
            task_code=str(row["task_code"]),
            status=TaskStatus.from_db(row["status"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            engineer_id=row["engineer_id"] or None,
            location_id=str(row["location_id"]),
            department_id=str(row["department_id"]),
            system_id=str(row["system_id"]),
            machine_id=str(row["machine_id"]),
            maintain_all_components=bool(row["maintain_all_components"]),
            selected_components=self._str_to_components(row["selected_components"]),
            scheduled_year=int(row["scheduled_year"]),
            scheduled_month=int(row["scheduled_month"]),
            scheduled_day=int(row["scheduled_day"]) if row["scheduled_day"] is not None else None,
            created_by=str(row["created_by"]),
            repetition_interval=RepetitionInterval.from_db(row["repetition_interval"]),
            completed_request_id=row["completed_request_id"],
            completed_at=float(row["completed_at"]) if row["completed_at"] is not None else None,
            last_generated_at=(
                float(row["last_generated_at"]) if row["last_generated_at"] is not None else None
            ),
            parent_task_id=int(row["parent_task_id"]) if row["parent_task_id"] is not None else None,
        )

    def _encode_fields(self, fields: Mapping[str, Any]) -> dict[str, Any]:
        """Map model-level values onto column values (unknown keys rejected)."""
        out: dict[str, Any] = {}
        for key, value in fields.items():
            if key not in _WRITABLE_FIELDS:
                raise KeyError(f"Field {key!r} is not writable")
            if key == "selected_components":
                value = self._components_to_str(value)
            elif key == "maintain_all_components":
                value = 1 if value else 0
            elif key == "repetition_interval":
                value = value.value if isinstance(value, RepetitionInterval) else (value or None)
            elif key == "engineer_id":
                value = value or None
            out[key] = value
        return out

    def _next_code(self, conn: sqlite3.Connection, now_ts: float) -> str:
        """
        Next `<PREFIX>-<YYYYMM>-<NNNN>` code for the creation month.

        Must run inside the caller's write transaction so the sequence read and
        the insert are serialized against other writers.
        """
        month_key = time.strftime("%Y%m", time.localtime(now_ts))
        prefix = f"{self._code_prefix}-{month_key}-"
        # Numeric max of the suffix: a text sort would put -9999 after -10000.
        (last_seq,) = conn.execute(
            """
            SELECT MAX(CAST(substr(task_code, ?) AS INTEGER))
            FROM scheduled_tasks
            WHERE substr(task_code, 1, ?) = ?
            """,
            (len(prefix) + 1, len(prefix), prefix),
        ).fetchone()
        seq = int(last_seq or 0) + 1
        return f"{prefix}{seq:04d}"

    def _insert(
        self,
        conn: sqlite3.Connection,
        fields: Mapping[str, Any],
        *,
        created_by: str,
        parent_task_id: int | None,
        now_ts: float,
    ) -> int:
        cols = self._encode_fields(fields)
        cols["due_date"] = due_date_str(
            cols["scheduled_year"], cols["scheduled_month"], cols.get("scheduled_day")
        )
        cols["task_code"] = self._next_code(conn, now_ts)
        cols["status"] = TaskStatus.PENDING.value
        cols["created_by"] = created_by
        cols["parent_task_id"] = parent_task_id
        cols["created_at"] = now_ts
        cols["updated_at"] = now_ts

        names = ", ".join(cols)
        placeholders = ", ".join("?" for _ in cols)
        cur = conn.execute(
            f"INSERT INTO scheduled_tasks({names}) VALUES ({placeholders})",
            tuple(cols.values()),
        )
        rowid = cur.lastrowid
        if rowid is None:
            raise RuntimeError("SQLite did not return lastrowid for scheduled_tasks insert")
        return int(rowid)

    # ---- public API: reads ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM scheduled_tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def get_task(self, task_id: int) -> ScheduledTask | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM scheduled_tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def get_task_by_code(self, task_code: str) -> ScheduledTask | None:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT * FROM scheduled_tasks WHERE task_code = ?", ((task_code or "").strip().upper(),)
            ).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_children(self, parent_task_id: int) -> list[ScheduledTask]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM scheduled_tasks WHERE parent_task_id = ? ORDER BY id ASC",
                (int(parent_task_id),),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def list_open_for_engineer(self, engineer_id: str, limit: int = 200) -> list[ScheduledTask]:
        """Non-terminal tasks assigned to one engineer, earliest target first."""
        if not engineer_id:
            return []
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"""
                SELECT *
                FROM scheduled_tasks
                WHERE engineer_id = ?
                  AND status IN {_OPEN_SQL}
                ORDER BY due_date ASC, id ASC
                    LIMIT ?
                """,
                (engineer_id, int(limit)),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def list_open_pool(self, limit: int = 200) -> list[ScheduledTask]:
        """Unassigned, non-terminal tasks, earliest (most overdue) target first."""
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"""
                SELECT *
                FROM scheduled_tasks
                WHERE engineer_id IS NULL
                  AND status IN {_OPEN_SQL}
                ORDER BY due_date ASC, id ASC
                    LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def list_open(self, limit: int = 200) -> list[ScheduledTask]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"""
                SELECT *
                FROM scheduled_tasks
                WHERE status IN {_OPEN_SQL}
                ORDER BY due_date ASC, id ASC
                    LIMIT ?
                """,
                (int(limit),),
            ).fetchall()
            return [self._row_to_task(r) for r in rows]
        finally:
            conn.close()

    def query_tasks(self, flt: TaskFilter, *, limit: int = 50, offset: int = 0) -> list[ScheduledTask]:
        """Administrative listing; newest first like the back-office table."""
        where: list[str] = []
        params: list[Any] = []

        if flt.status is not None:
            where.append("status = ?")
            params.append(flt.status.value)
        if flt.pool_only:
            where.append("engineer_id IS NULL")
        elif flt.engineer_id:
            where.append("engineer_id = ?")
            params.append(flt.engineer_id)
        for col in ("location_id", "department_id", "system_id", "machine_id"):
            val = getattr(flt, col)
            if val:
                where.append(f"{col} = ?")
                params.append(val)
        if flt.scheduled_year is not None:
            where.append("scheduled_year = ?")
            params.append(int(flt.scheduled_year))
        if flt.scheduled_month is not None:
            where.append("scheduled_month = ?")
            params.append(int(flt.scheduled_month))

        sql = "SELECT * FROM scheduled_tasks"
        if where:
            sql += " WHERE " + " AND ".join(where)
        sql += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
        params.extend([int(limit), max(0, int(offset))])

        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    # ---- public API: writes ----

    def add_task(
        self,
        fields: Mapping[str, Any],
        *,
        created_by: str,
        now_ts: float | None = None,
    ) -> int:
        """Insert a new pending task; allocates its task code atomically."""
        if now_ts is None:
            now_ts = time.time()

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            task_id = self._insert(conn, fields, created_by=created_by, parent_task_id=None, now_ts=now_ts)
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.debug("Task added id=%s created_by=%s", task_id, created_by)
        return task_id

    def insert_successor(
        self,
        parent_task_id: int,
        fields: Mapping[str, Any],
        *,
        created_by: str,
        now_ts: float | None = None,
    ) -> int | None:
        """
        Stamp the parent's generation guard and insert its successor, atomically.

        Returns the successor id, or None if the parent was already stamped
        (another caller generated first) or is not completed.
        """
        if now_ts is None:
            now_ts = time.time()

        conn = self._get_conn()
        try:
            conn.execute("BEGIN IMMEDIATE")
            cur = conn.execute(
                """
                UPDATE scheduled_tasks
                SET last_generated_at = ?, updated_at = ?
                WHERE id = ?
                  AND status = 'completed'
                  AND last_generated_at IS NULL
                """,
                (now_ts, now_ts, int(parent_task_id)),
            )
            if cur.rowcount != 1:
                conn.rollback()
                return None
            child_id = self._insert(
                conn, fields, created_by=created_by, parent_task_id=int(parent_task_id), now_ts=now_ts
            )
            conn.commit()
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

        logger.debug("Successor id=%s generated from parent id=%s", child_id, parent_task_id)
        return child_id

    def try_claim_task(self, task_id: int, engineer_id: str, *, now_ts: float | None = None) -> bool:
        """
        Atomically assign a pool task:
          engineer_id IS NULL AND status open -> engineer_id = caller

        Returns True if this caller won the claim.
        """
        if now_ts is None:
            now_ts = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                UPDATE scheduled_tasks
                SET engineer_id = ?, updated_at = ?
                WHERE id = ?
                  AND engineer_id IS NULL
                  AND status IN {_OPEN_SQL}
                """,
                (engineer_id, now_ts, int(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def try_complete_task(self, task_id: int, request_id: str, *, now_ts: float | None = None) -> bool:
        """Atomically transition open -> completed, recording the fulfilling request."""
        if now_ts is None:
            now_ts = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                UPDATE scheduled_tasks
                SET status = 'completed',
                    completed_request_id = ?,
                    completed_at = ?,
                    updated_at = ?
                WHERE id = ?
                  AND status IN {_OPEN_SQL}
                """,
                (request_id, now_ts, now_ts, int(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def try_cancel_task(self, task_id: int, *, now_ts: float | None = None) -> bool:
        if now_ts is None:
            now_ts = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                UPDATE scheduled_tasks
                SET status = 'cancelled', updated_at = ?
                WHERE id = ?
                  AND status IN {_OPEN_SQL}
                """,
                (now_ts, int(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def try_update_open_task(
        self,
        task_id: int,
        fields: Mapping[str, Any],
        *,
        reset_status: bool = False,
        now_ts: float | None = None,
    ) -> bool:
        """
        Apply field edits only while the task is still open.

        `fields` must carry the complete schedule (year/month/day) whenever any
        schedule field changes, so due_date can be recomputed in the same write.
        reset_status=True drops a cached "overdue" back to "pending".
        """
        cols = self._encode_fields(fields)
        if not cols and not reset_status:
            return False
        if now_ts is None:
            now_ts = time.time()

        if "scheduled_year" in cols:
            cols["due_date"] = due_date_str(
                cols["scheduled_year"], cols["scheduled_month"], cols.get("scheduled_day")
            )
        if reset_status:
            cols["status"] = TaskStatus.PENDING.value
        cols["updated_at"] = now_ts

        assignments = ", ".join(f"{k} = ?" for k in cols)
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                UPDATE scheduled_tasks
                SET {assignments}
                WHERE id = ?
                  AND status IN {_OPEN_SQL}
                """,
                (*cols.values(), int(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def mark_overdue(self, task_ids: Iterable[int], today: date, *, now_ts: float | None = None) -> int:
        """
        Persist a derived "overdue" for the given ids. Idempotent; only touches
        pending rows whose current due date is still before `today`, so a
        reschedule landing after the caller's read is never overwritten.
        """
        ids = [int(t) for t in task_ids]
        if not ids:
            return 0
        if now_ts is None:
            now_ts = time.time()
        placeholders = ",".join("?" for _ in ids)
        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                UPDATE scheduled_tasks
                SET status = 'overdue', updated_at = ?
                WHERE status = 'pending'
                  AND due_date < ?
                  AND id IN ({placeholders})
                """,
                (now_ts, today.isoformat(), *ids),
            )
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    def mark_overdue_before(self, today: date, *, now_ts: float | None = None) -> int:
        """Bulk reconciliation: every pending task whose target is before `today`."""
        if now_ts is None:
            now_ts = time.time()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE scheduled_tasks
                SET status = 'overdue', updated_at = ?
                WHERE status = 'pending'
                  AND due_date < ?
                """,
                (now_ts, today.isoformat()),
            )
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    def delete_task(self, task_id: int) -> bool:
        """Hard delete. Successors keep their parent_task_id (no cascade)."""
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM scheduled_tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()
