# src/preventive_tasks/cli/commands.py

from __future__ import annotations

import logging
import shlex
from collections.abc import Callable
from typing import Any

from ..core.state import AppState
from ..tasks.assignment import accept, list_available, list_mine, list_pending, summarize_for_engineer
from ..tasks.errors import ConflictError, TaskError
from ..tasks.linker import create_request_from_task, on_request_completed
from ..tasks.task_api import (
    create_task,
    delete_task,
    get_task,
    query_tasks,
    reconcile_overdue,
    resolve_task,
    update_task,
)
from ..tasks.task_models import RepetitionInterval, TaskFilter, TaskStatus, TaskView
from ..tasks.transitions import cancel

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Slash-command registry used by the console (/help, /mine, /accept, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Engine errors are rendered here; ConflictError gets its own wording so
        the user knows the task is taken rather than that something broke.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError as e:
            return f"Could not parse command: {e}"
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(state, args)
        except ConflictError as e:
            logger.info("Command /%s conflict: %s", name, e.message)
            return f"Already taken: {e.message}"
        except TaskError as e:
            logger.info("Command /%s rejected (%s): %s", name, e.code, e.message)
            return f"[{e.code}] {e.message}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- argument helpers ----


class UsageError(TaskError):
    code = "usage"


def _kv(args: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for a in args:
        if "=" not in a:
            raise UsageError(f"Expected key=value, got {a!r}")
        k, v = a.split("=", 1)
        out[k.strip().lower()] = v.strip()
    return out


def _int(raw: str, name: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise UsageError(f"{name} must be an integer, got {raw!r}") from None


def _optional(raw: str) -> str | None:
    """'-', 'none' or '' clear a field."""
    return None if raw.strip().lower() in ("", "-", "none") else raw


def _components(raw: str) -> tuple[bool, list[str]]:
    if raw.strip().lower() in ("", "all", "*"):
        return True, []
    return False, [c.strip() for c in raw.split(",") if c.strip()]


def _need(args: list[str], n: int, usage: str) -> None:
    if len(args) < n:
        raise UsageError(f"Usage: {usage}")


# ---- rendering ----


def format_view(v: TaskView) -> str:
    t = v.task
    days = v.days_remaining
    when = f"in {days}d" if days > 0 else ("today" if days == 0 else f"{-days}d late")
    who = t.engineer_id or "<pool>"
    rep = f" every {t.repetition_interval.value}" if t.repetition_interval else ""
    return (
        f"#{t.id} {t.task_code} [{v.effective_status.value}] {t.target_date.isoformat()} ({when}) "
        f"{t.title} | engineer={who}{rep}"
    )


def _format_views(views: list[TaskView], empty: str) -> str:
    if not views:
        return empty
    return "\n".join(format_view(v) for v in views)


# ---- handlers ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_create(state: AppState, args: list[str]) -> str:
    """
    /create title=".." location=L department=D system=S machine=M year=2025 month=3
            [day=15] [engineer=E] [description=".."] [components=a,b] [interval=monthly] [by=admin]
    """
    kv = _kv(args)
    missing = [k for k in ("title", "location", "department", "system", "machine", "year", "month") if k not in kv]
    if missing:
        raise UsageError(f"Missing: {', '.join(missing)}. See /help.")

    maintain_all, comps = _components(kv.get("components", "all"))
    day = _optional(kv.get("day", ""))
    task = create_task(
        state,
        title=kv["title"],
        location_id=kv["location"],
        department_id=kv["department"],
        system_id=kv["system"],
        machine_id=kv["machine"],
        scheduled_year=_int(kv["year"], "year"),
        scheduled_month=_int(kv["month"], "month"),
        scheduled_day=_int(day, "day") if day is not None else None,
        engineer_id=_optional(kv.get("engineer", "")),
        description=kv.get("description"),
        maintain_all_components=maintain_all,
        selected_components=comps,
        repetition_interval=RepetitionInterval.parse(kv.get("interval")),
        created_by=kv.get("by", "admin"),
    )
    return f"Created {task.task_code} (#{task.id})."


def cmd_show(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/show <id|code>")
    v = get_task(state, args[0])
    t = v.task
    lines = [format_view(v), f"  location={t.location_id} department={t.department_id} system={t.system_id} machine={t.machine_id}"]
    if t.maintain_all_components:
        lines.append("  scope=all components")
    else:
        lines.append(f"  scope={', '.join(t.selected_components)}")
    if t.description:
        lines.append(f"  {t.description}")
    if t.completed_request_id:
        lines.append(f"  completed by request {t.completed_request_id}")
    if t.parent_task_id:
        lines.append(f"  generated from #{t.parent_task_id}")
    return "\n".join(lines)


def cmd_edit(state: AppState, args: list[str]) -> str:
    """/edit <id> key=value ... (engineer=- returns the task to the pool, day=- makes it month-level)"""
    _need(args, 2, "/edit <id> key=value ...")
    task = resolve_task(state, args[0])
    kv = _kv(args[1:])

    changes: dict[str, Any] = {}
    simple = {
        "title": "title",
        "description": "description",
        "location": "location_id",
        "department": "department_id",
        "system": "system_id",
        "machine": "machine_id",
    }
    for key, field_name in simple.items():
        if key in kv:
            changes[field_name] = kv[key]
    if "engineer" in kv:
        changes["engineer_id"] = _optional(kv["engineer"])
    if "year" in kv:
        changes["scheduled_year"] = _int(kv["year"], "year")
    if "month" in kv:
        changes["scheduled_month"] = _int(kv["month"], "month")
    if "day" in kv:
        day = _optional(kv["day"])
        changes["scheduled_day"] = _int(day, "day") if day is not None else None
    if "components" in kv:
        maintain_all, comps = _components(kv["components"])
        changes["maintain_all_components"] = maintain_all
        changes["selected_components"] = comps
    if "interval" in kv:
        changes["repetition_interval"] = RepetitionInterval.parse(kv["interval"])

    unknown = set(kv) - set(simple) - {"engineer", "year", "month", "day", "components", "interval"}
    if unknown:
        raise UsageError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    updated = update_task(state, task.id, **changes)
    return f"Updated {updated.task_code}."


def cmd_mine(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/mine <engineer>")
    return _format_views(list_mine(state, args[0]), f"No open tasks for {args[0]}.")


def cmd_available(state: AppState, args: list[str]) -> str:
    return _format_views(list_available(state), "No tasks available in the pool.")


def cmd_pending(state: AppState, args: list[str]) -> str:
    return _format_views(list_pending(state), "No open tasks.")


def cmd_list(state: AppState, args: list[str]) -> str:
    """/list [status=..] [engineer=..] [pool=yes] [location=..] [machine=..] [year=..] [month=..] [limit=..] [offset=..]"""
    kv = _kv(args)
    flt = TaskFilter(
        status=TaskStatus.parse(kv["status"]) if "status" in kv else None,
        engineer_id=kv.get("engineer"),
        location_id=kv.get("location"),
        department_id=kv.get("department"),
        system_id=kv.get("system"),
        machine_id=kv.get("machine"),
        scheduled_year=_int(kv["year"], "year") if "year" in kv else None,
        scheduled_month=_int(kv["month"], "month") if "month" in kv else None,
        pool_only=kv.get("pool", "").lower() in ("1", "yes", "true", "y"),
    )
    views = query_tasks(
        state,
        flt,
        limit=_int(kv.get("limit", "50"), "limit"),
        offset=_int(kv.get("offset", "0"), "offset"),
    )
    return _format_views(views, "No matching tasks.")


def cmd_accept(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/accept <id|code> <engineer>")
    task = resolve_task(state, args[0])
    accepted = accept(state, task.id, args[1])
    return f"{accepted.task_code} is now assigned to {accepted.engineer_id}."


def cmd_request(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/request <id|code> <engineer>")
    task = resolve_task(state, args[0])
    d = create_request_from_task(state, task.id, args[1])
    scope = "all components" if d.maintain_all_components else ", ".join(d.selected_components)
    return (
        f"Request draft for {d.task_code} (scheduled_task_id={d.scheduled_task_id}):\n"
        f"  type={d.maintenance_type} engineer={d.engineer_id}\n"
        f"  location={d.location_id} department={d.department_id} system={d.system_id} machine={d.machine_id}\n"
        f"  scope={scope}\n"
        f"  {d.description}"
    )


def cmd_complete(state: AppState, args: list[str]) -> str:
    _need(args, 2, "/complete <id|code> <request_id>")
    task = resolve_task(state, args[0])
    res = on_request_completed(state, args[1], task.id)
    msg = f"{res.task.task_code} completed by request {res.task.completed_request_id}."
    if res.successor is not None:
        msg += f" Next: {res.successor.task_code} due {res.successor.target_date.isoformat()}."
    return msg


def cmd_cancel(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/cancel <id|code>")
    task = resolve_task(state, args[0])
    return f"{cancel(state, task.id).task_code} cancelled."


def cmd_delete(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/delete <id|code>")
    task = resolve_task(state, args[0])
    delete_task(state, task.id)
    return f"{task.task_code} deleted."


def cmd_reconcile(state: AppState, args: list[str]) -> str:
    n = reconcile_overdue(state)
    return f"Marked {n} task(s) overdue."


def cmd_summary(state: AppState, args: list[str]) -> str:
    _need(args, 1, "/summary <engineer>")
    counts = summarize_for_engineer(state, args[0])
    if counts["overdue"]:
        return (
            f"{args[0]} has {counts['overdue']} overdue and {counts['pending']} pending preventive task(s)."
        )
    return f"{args[0]} has {counts['pending']} pending preventive task(s)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register(
    "create",
    cmd_create,
    help_text="Create: title=.. location=.. department=.. system=.. machine=.. year=.. month=.. "
    "[day=..] [engineer=..] [components=a,b] [interval=weekly|monthly|quarterly|semi_annually].",
)
registry.register("show", cmd_show, help_text="Show one task: /show <id|code>.")
registry.register("edit", cmd_edit, help_text="Edit an open task: /edit <id> key=value ...")
registry.register("mine", cmd_mine, help_text="Open tasks of an engineer: /mine <engineer>.")
registry.register("available", cmd_available, help_text="Unclaimed pool tasks.", aliases=["pool"])
registry.register("pending", cmd_pending, help_text="All open tasks (oversight).")
registry.register("list", cmd_list, help_text="Filtered listing: /list status=.. engineer=.. machine=.. ...")
registry.register("accept", cmd_accept, help_text="Claim a pool task: /accept <id> <engineer>.")
registry.register("request", cmd_request, help_text="Draft a maintenance request: /request <id> <engineer>.")
registry.register(
    "complete", cmd_complete, help_text="Request completed: /complete <id> <request_id>."
)
registry.register("cancel", cmd_cancel, help_text="Cancel an open task: /cancel <id>.")
registry.register("delete", cmd_delete, help_text="Delete a task: /delete <id>.")
registry.register("reconcile", cmd_reconcile, help_text="Persist overdue status for late tasks.")
registry.register("summary", cmd_summary, help_text="Pending/overdue counts: /summary <engineer>.")
