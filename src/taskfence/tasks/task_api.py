# src/taskfence/tasks/task_api.py

"""
Read-side helpers over a task list: calendar/tag views and statistics.

All helpers take plain Task sequences so they work the same on TaskStore
results and on in-memory fixtures.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from datetime import date, datetime, time as dtime, timedelta

from .task_models import Task, TaskStats, TaskTag


def _local_date(ts: float) -> date:
    return datetime.fromtimestamp(ts).astimezone().date()


def week_bounds(now_ts: float | None = None) -> tuple[float, float]:
    """
    [start, end) of the current local week as epoch seconds.

    Weeks run Sunday..Saturday.
    """
    if now_ts is None:
        now_ts = time.time()
    today = _local_date(now_ts)
    sunday = today - timedelta(days=(today.weekday() + 1) % 7)
    # Local midnights built per day, so a DST switch inside the week keeps both ends on 00:00.
    start = datetime.combine(sunday, dtime.min).astimezone()
    end = datetime.combine(sunday + timedelta(days=7), dtime.min).astimezone()
    return start.timestamp(), end.timestamp()


def _in_week(ts: float | None, bounds: tuple[float, float]) -> bool:
    return ts is not None and bounds[0] <= ts < bounds[1]


def get_tasks_by_date(tasks: Iterable[Task], day: date) -> list[Task]:
    return [t for t in tasks if t.due_at is not None and _local_date(t.due_at) == day]


def get_tasks_by_tag(tasks: Iterable[Task], tag: TaskTag | None) -> list[Task]:
    """tag=None means "All"."""
    if tag is None:
        return list(tasks)
    return [t for t in tasks if t.tag == tag]


def get_open_tasks(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if not t.completed]


def get_completed_tasks_this_week(tasks: Iterable[Task], now_ts: float | None = None) -> list[Task]:
    """Completed tasks whose due date falls in the current week."""
    bounds = week_bounds(now_ts)
    return [t for t in tasks if t.completed and _in_week(t.due_at, bounds)]


def get_created_tasks_this_week(tasks: Iterable[Task], now_ts: float | None = None) -> list[Task]:
    bounds = week_bounds(now_ts)
    return [t for t in tasks if _in_week(t.created_at, bounds)]


def get_task_stats_by_tag(
    tasks: Iterable[Task], now_ts: float | None = None
) -> dict[TaskTag, dict[str, int]]:
    items = list(tasks)
    completed = get_completed_tasks_this_week(items, now_ts)
    created = get_created_tasks_this_week(items, now_ts)

    stats: dict[TaskTag, dict[str, int]] = {tag: {"completed": 0, "created": 0} for tag in TaskTag}
    for t in completed:
        stats[t.tag]["completed"] += 1
    for t in created:
        stats[t.tag]["created"] += 1
    return stats


def get_task_stats(tasks: Iterable[Task], now_ts: float | None = None) -> TaskStats:
    if now_ts is None:
        now_ts = time.time()

    items = list(tasks)
    total = len(items)
    completed = sum(1 for t in items if t.completed)
    overdue = sum(1 for t in items if not t.completed and t.due_at is not None and t.due_at < now_ts)
    rate = (completed / total) * 100.0 if total else 0.0

    return TaskStats(
        completed=completed,
        pending=total - completed,
        overdue=overdue,
        total=total,
        completion_rate=rate,
    )
