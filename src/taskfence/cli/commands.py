# src/taskfence/cli/commands.py

from __future__ import annotations

import asyncio
import contextlib
import inspect
import logging
import shlex
from collections.abc import Callable
from datetime import date, datetime, time as dtime
from typing import Any, cast

from ..core.state import AppState
from ..geofence.distance import distance_m
from ..geofence.geo_models import Coordinate
from ..geofence.notifications import PermissionResult
from ..geofence.position_sources import ManualPositionSource
from ..tasks.task_api import (
    get_open_tasks,
    get_task_stats,
    get_task_stats_by_tag,
    get_tasks_by_date,
    get_tasks_by_tag,
)
from ..tasks.task_models import LocationReminder, Task, TaskPriority, TaskTag

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /task, ...)."""

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

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.

        Arguments are split shell-style, so quoted values may contain spaces.
        """
        if not line.startswith("/"):
            return None

        try:
            parts = shlex.split(line[1:])
        except ValueError:
            parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except (TypeError, ValueError):
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


# ---- formatting / parsing helpers ----


def _fmt_ts(ts: float | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts).astimezone().strftime("%Y-%m-%d %H:%M")


def _parse_due(raw: str) -> float:
    """
    Accepts YYYY-MM-DD (end of that local day) or an ISO datetime.
    Raises ValueError on anything else.
    """
    raw = raw.strip()
    if len(raw) == 10:
        day = datetime.strptime(raw, "%Y-%m-%d").date()
        return datetime.combine(day, dtime(23, 59)).astimezone().timestamp()
    return datetime.fromisoformat(raw).astimezone().timestamp()


def _parse_task_id(raw: str) -> int | None:
    try:
        return int(raw.lstrip("#"))
    except ValueError:
        return None


def _format_task(task: Task, location_names: dict[str, str]) -> str:
    box = "[x]" if task.completed else "[ ]"
    extras = [task.priority.value, task.tag.value]
    if task.due_at is not None:
        extras.append(f"due {_fmt_ts(task.due_at)}")
    line = f"#{task.id} {box} {task.title} ({', '.join(extras)})"

    rem = task.location_reminder
    if rem is not None:
        where = location_names.get(rem.location_id, f"unknown location {rem.location_id}")
        when = "/".join(
            w for w, on in (("arrive", rem.notify_on_arrival), ("depart", rem.notify_on_departure)) if on
        ) or "no trigger"
        state_s = "" if rem.enabled else ", off"
        line += f" @{where} [{when}{state_s}]"
    return line


def _location_names(state: AppState) -> dict[str, str]:
    return {loc.id: loc.name for loc in state.location_store.list_locations()}


# ---- commands ----


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    session = state.monitor.session
    monitoring = "ON" if state.monitor.is_monitoring_active() else "OFF"
    permission = state.notifier.permission.value if state.notifier.permission else "not requested"
    sink = getattr(state.notifier, "name", type(state.notifier).__name__)
    open_count = len(get_open_tasks(state.task_store.list_tasks()))
    lines = [
        "Status:",
        f"  Monitoring: {monitoring}",
        f"  Position source: {type(state.position_source).__name__}",
        f"  Notifications: {sink} (permission: {permission})",
        f"  Saved locations: {len(state.location_store.list_locations())}",
        f"  Tasks: {state.task_store.count_tasks()} (open: {open_count})",
    ]
    if session is not None:
        lines.append(f"  Samples processed: {session.samples_processed}")
        lines.append(f"  Notifications sent: {session.notifications_sent}")
    return "\n".join(lines)


LOC_USAGE = (
    "Usage:\n"
    "  /loc list\n"
    "  /loc add <name> <lat> <lon> [radius_m]\n"
    "  /loc del <location_id>"
)


def cmd_loc(state: AppState, args: list[str]) -> str:
    """
    /loc list                           -> saved locations
    /loc add <name> <lat> <lon> [r]     -> save a new location (radius in meters)
    /loc del <id>                       -> delete a location
    """
    if not args or args[0].lower() == "list":
        locations = state.location_store.list_locations()
        if not locations:
            return "No saved locations. Use /loc add <name> <lat> <lon> [radius_m]."
        lines = ["Saved locations:"]
        for loc in locations:
            c = loc.coordinates
            lines.append(f"  {loc.id}  {loc.name}  ({c.latitude:.6f}, {c.longitude:.6f})  r={loc.radius:.0f}m")
        return "\n".join(lines)

    sub = args[0].lower()

    if sub == "add":
        if len(args) < 4:
            return LOC_USAGE
        name = args[1]
        try:
            lat = float(args[2])
            lon = float(args[3])
            radius = float(args[4]) if len(args) > 4 else float(getattr(state.settings, "default_radius_m", 100.0))
            loc = state.location_store.add_location(name, lat, lon, radius)
        except ValueError as e:
            return f"Invalid location: {e}"
        return f"Saved location {loc.name!r} as {loc.id} (radius {loc.radius:.0f}m)."

    if sub in ("del", "delete", "rm"):
        if len(args) < 2:
            return LOC_USAGE
        if state.location_store.delete_location(args[1]):
            return f"Deleted location {args[1]}."
        return f"No location with id {args[1]}."

    return LOC_USAGE


TASK_USAGE = (
    "Usage:\n"
    "  /task list [open|today|YYYY-MM-DD|<tag>]\n"
    "  /task add <title...> [priority=low|medium|high] [tag=<tag>] [due=YYYY-MM-DD] [desc=\"...\"]\n"
    "  /task edit <id> [title=\"...\"] [priority=..] [tag=..] [due=YYYY-MM-DD|none] [desc=\"...\"]\n"
    "  /task show <id>\n"
    "  /task done <id>      (toggles completion)\n"
    "  /task reopen <id>\n"
    "  /task del <id>"
)

TASK_OPTION_KEYS = ("title", "priority", "tag", "due", "desc")


def _split_options(args: list[str]) -> tuple[list[str], dict[str, str]]:
    """Separate key=value options from free words (the title for /task add)."""
    words: list[str] = []
    opts: dict[str, str] = {}
    for a in args:
        key, sep, value = a.partition("=")
        if sep and key.lower() in TASK_OPTION_KEYS:
            opts[key.lower()] = value
        else:
            words.append(a)
    return words, opts


def _task_add(state: AppState, args: list[str]) -> str:
    words, opts = _split_options(args)
    title = (opts.get("title") or " ".join(words)).strip()
    if not title:
        return TASK_USAGE

    try:
        priority = TaskPriority(opts.get("priority", "medium").lower())
        tag = TaskTag.parse(opts["tag"]) if "tag" in opts else TaskTag.MISC
        due_at = _parse_due(opts["due"]) if "due" in opts else None
    except ValueError as e:
        return f"Invalid task option: {e}"

    task_id = state.task_store.add_task(
        title=title,
        description=opts.get("desc", ""),
        due_at=due_at,
        priority=priority,
        tag=tag,
    )
    return f"Task #{task_id} added."


def _task_edit(state: AppState, task_id: int, args: list[str]) -> str:
    words, opts = _split_options(args)
    if words or not opts:
        return TASK_USAGE

    changes: dict[str, Any] = {}
    try:
        if "title" in opts:
            if not opts["title"].strip():
                raise ValueError("title must not be empty")
            changes["title"] = opts["title"]
        if "desc" in opts:
            changes["description"] = opts["desc"]
        if "priority" in opts:
            changes["priority"] = TaskPriority(opts["priority"].lower())
        if "tag" in opts:
            changes["tag"] = TaskTag.parse(opts["tag"])
        if "due" in opts:
            raw_due = opts["due"].strip().lower()
            changes["due_at"] = None if raw_due in ("", "none", "-") else _parse_due(opts["due"])
    except ValueError as e:
        return f"Invalid task option: {e}"

    if not state.task_store.update_task(task_id, **changes):
        return f"No task #{task_id}."
    return f"Task #{task_id} updated ({', '.join(sorted(opts))})."


def _select_tasks(state: AppState, selector: str) -> list[Task] | str:
    """Tasks for a /task list selector, or an error message."""
    sel = selector.lower()
    if sel == "all":
        return state.task_store.list_tasks()
    if sel == "open":
        return state.task_store.list_open_tasks()
    if sel == "today":
        return get_tasks_by_date(state.task_store.list_tasks(), date.today())
    if len(sel) == 10 and sel[4] == "-":
        try:
            day = datetime.strptime(sel, "%Y-%m-%d").date()
        except ValueError as e:
            return f"Invalid date: {e}"
        return get_tasks_by_date(state.task_store.list_tasks(), day)
    try:
        return get_tasks_by_tag(state.task_store.list_tasks(), TaskTag.parse(selector))
    except ValueError as e:
        return str(e)


def cmd_task(state: AppState, args: list[str]) -> str:
    if not args or args[0].lower() == "list":
        selected = _select_tasks(state, args[1] if len(args) > 1 else "all")
        if isinstance(selected, str):
            return selected
        if not selected:
            return "No tasks."
        names = _location_names(state)
        return "\n".join(_format_task(t, names) for t in selected)

    sub = args[0].lower()

    if sub == "add":
        return _task_add(state, args[1:])

    if len(args) < 2:
        return TASK_USAGE
    task_id = _parse_task_id(args[1])
    if task_id is None:
        return f"Invalid task id: {args[1]}"

    if sub == "show":
        task = state.task_store.get_task(task_id)
        if task is None:
            return f"No task #{task_id}."
        lines = [_format_task(task, _location_names(state))]
        if task.description:
            lines.append(f"  {task.description}")
        lines.append(f"  created {_fmt_ts(task.created_at)}, updated {_fmt_ts(task.updated_at)}")
        if task.location_reminder and task.location_reminder.message:
            lines.append(f"  reminder message: {task.location_reminder.message}")
        return "\n".join(lines)

    if sub == "done":
        new_value = state.task_store.toggle_completed(task_id)
        if new_value is None:
            return f"No task #{task_id}."
        return f"Task #{task_id} marked {'completed' if new_value else 'open'}."

    if sub == "reopen":
        if not state.task_store.set_completed(task_id, False):
            return f"No task #{task_id}."
        return f"Task #{task_id} marked open."

    if sub == "edit":
        return _task_edit(state, task_id, args[2:])

    if sub in ("del", "delete", "rm"):
        if state.task_store.delete_task(task_id):
            return f"Task #{task_id} deleted."
        return f"No task #{task_id}."

    return TASK_USAGE


REMIND_USAGE = (
    "Usage:\n"
    "  /remind <task_id> <location_id> [arrive|depart|both] [message...]\n"
    "  /remind off <task_id>   (disable, keep settings)\n"
    "  /remind on <task_id>\n"
    "  /remind clear <task_id>"
)


def cmd_remind(state: AppState, args: list[str]) -> str:
    if len(args) < 2:
        return REMIND_USAGE

    sub = args[0].lower()
    if sub in ("off", "on", "clear"):
        task_id = _parse_task_id(args[1])
        task = state.task_store.get_task(task_id) if task_id is not None else None
        if task is None:
            return f"No task {args[1]}."
        if sub == "clear":
            state.task_store.set_location_reminder(task.id, None)
            return f"Location reminder removed from task #{task.id}."
        if task.location_reminder is None:
            return f"Task #{task.id} has no location reminder."
        rem = task.location_reminder
        updated = LocationReminder(
            location_id=rem.location_id,
            enabled=(sub == "on"),
            notify_on_arrival=rem.notify_on_arrival,
            notify_on_departure=rem.notify_on_departure,
            message=rem.message,
        )
        state.task_store.set_location_reminder(task.id, updated)
        return f"Location reminder for task #{task.id} {'enabled' if updated.enabled else 'disabled'}."

    task_id = _parse_task_id(args[0])
    task = state.task_store.get_task(task_id) if task_id is not None else None
    if task is None:
        return f"No task {args[0]}."

    location = state.location_store.get_location(args[1])
    if location is None:
        return f"No location with id {args[1]}. Use /loc list."

    rest = args[2:]
    trigger = "arrive"
    if rest and rest[0].lower() in ("arrive", "depart", "both"):
        trigger = rest[0].lower()
        rest = rest[1:]
    message = " ".join(rest).strip() or None

    reminder = LocationReminder(
        location_id=location.id,
        enabled=True,
        notify_on_arrival=trigger in ("arrive", "both"),
        notify_on_departure=trigger in ("depart", "both"),
        message=message,
    )
    state.task_store.set_location_reminder(task.id, reminder)
    return f"Task #{task.id} will remind you on {trigger} at {location.name!r}."


def cmd_pos(state: AppState, args: list[str]) -> str:
    """
    /pos <lat> <lon> [accuracy]  -> feed a position sample to the monitor
    """
    source = state.position_source
    if not isinstance(source, ManualPositionSource):
        return f"Positions come from {type(source).__name__}; /pos only works with manual positioning."
    if len(args) < 2:
        return "Usage: /pos <lat> <lon> [accuracy_m]"

    try:
        coord = Coordinate(
            latitude=float(args[0]),
            longitude=float(args[1]),
            accuracy=float(args[2]) if len(args) > 2 else None,
        )
    except ValueError as e:
        return f"Invalid position: {e}"

    delivered = source.push(coord)
    lines = [f"Position {coord.latitude:.6f}, {coord.longitude:.6f}"]
    if not delivered:
        lines[0] += " (monitoring is off; sample not evaluated)"
    for loc in state.location_store.list_locations():
        d = distance_m(coord, loc.coordinates)
        where = "inside" if d <= loc.radius else "outside"
        lines.append(f"  {loc.name}: {d:.0f} m ({where}, r={loc.radius:.0f}m)")
    return "\n".join(lines)


def cmd_monitor(state: AppState, args: list[str]) -> str:
    sub = args[0].lower() if args else "status"

    if sub == "start":
        session = state.start_monitoring()
        if session is None:
            return "Location monitoring is not available on this host."
        return "Location monitoring started."

    if sub == "stop":
        if not state.monitor.is_monitoring_active():
            return "Location monitoring is not running."
        state.monitor.stop_monitoring()
        return "Location monitoring stopped."

    if sub == "status":
        return f"Location monitoring is {'ON' if state.monitor.is_monitoring_active() else 'OFF'}."

    return "Usage: /monitor start | stop | status"


def cmd_stats(state: AppState, args: list[str]) -> str:
    tasks = state.task_store.list_tasks()
    stats = get_task_stats(tasks)
    lines = [
        "Task statistics:",
        f"  Total: {stats.total}",
        f"  Completed: {stats.completed}",
        f"  Pending: {stats.pending}",
        f"  Overdue: {stats.overdue}",
        f"  Completion rate: {stats.completion_rate:.0f}%",
        "This week by tag (completed / created):",
    ]
    for tag, row in get_task_stats_by_tag(tasks).items():
        lines.append(f"  {tag.value}: {row['completed']} / {row['created']}")
    return "\n".join(lines)


def cmd_notify(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /notify  -> request notification permission from the configured sink
    """
    if emit:
        with contextlib.suppress(Exception):
            emit("[NOTIFY] Requesting notification permission...")
    result = asyncio.run(state.notifier.request_permission())
    if result == PermissionResult.GRANTED:
        return "Notifications enabled."
    if result == PermissionResult.UNSUPPORTED:
        return "Notifications are not supported with the current configuration."
    return "Notification permission was denied (see log for details)."


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show monitoring/notification status.")
registry.register("loc", cmd_loc, help_text="Saved locations: /loc list | add | del.", aliases=["location"])
registry.register("task", cmd_task, help_text="Tasks: /task list | add | edit | show | done | reopen | del.", aliases=["t"])
registry.register("remind", cmd_remind, help_text="Attach a location reminder to a task.")
registry.register("pos", cmd_pos, help_text="Feed a position sample: /pos <lat> <lon> [accuracy].")
registry.register("monitor", cmd_monitor, help_text="Location monitoring: /monitor start | stop | status.")
registry.register("stats", cmd_stats, help_text="Task statistics.")
registry.register("notify", cmd_notify, help_text="Request notification permission.")
