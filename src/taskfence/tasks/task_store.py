# src/taskfence/tasks/task_store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
import time
from pathlib import Path
from typing import Any

from .task_models import LocationReminder, Task, TaskPriority, TaskTag

logger = logging.getLogger(__name__)

_UNSET: Any = object()


class TaskStore:
    """
    SQLite task store.

    The schema is simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("TaskStore ready db=%s total=%s", self._db_path, total)

    def close(self) -> None:
        """Compatibility hook for shutdown (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    completed INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL,
                    due_at REAL,
                    priority TEXT NOT NULL DEFAULT 'medium',
                    tag TEXT NOT NULL DEFAULT 'Misc',
                    location_reminder TEXT
                )
                """
            )

            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("due_at", "REAL")
            add_col("priority", "TEXT NOT NULL DEFAULT 'medium'")
            add_col("tag", "TEXT NOT NULL DEFAULT 'Misc'")
            add_col("location_reminder", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_completed_due ON tasks(completed, due_at)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_tag ON tasks(tag)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _reminder_to_str(reminder: LocationReminder | None) -> str | None:
        if reminder is None:
            return None
        return json.dumps(reminder.to_dict(), ensure_ascii=False)

    @staticmethod
    def _str_to_reminder(task_id: int, s: str | None) -> LocationReminder | None:
        if not s:
            return None
        try:
            return LocationReminder.from_dict(json.loads(s))
        except (ValueError, TypeError):
            # Fail closed: a broken reminder must never reach the monitor.
            logger.warning("Dropping malformed location reminder task_id=%s raw=%r", task_id, s)
            return None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        task_id = int(row["id"])
        return Task(
            id=task_id,
            title=str(row["title"] or ""),
            description=str(row["description"] or ""),
            completed=bool(row["completed"]),
            created_at=float(row["created_at"] or 0.0),
            updated_at=float(row["updated_at"] or 0.0),
            due_at=float(row["due_at"]) if row["due_at"] is not None else None,
            priority=TaskPriority.from_db(row["priority"]),
            tag=TaskTag.from_db(row["tag"]),
            location_reminder=self._str_to_reminder(task_id, row["location_reminder"]),
        )

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        description: str = "",
        due_at: float | None = None,
        priority: TaskPriority = TaskPriority.MEDIUM,
        tag: TaskTag = TaskTag.MISC,
        location_reminder: LocationReminder | None = None,
        completed: bool = False,
    ) -> int:
        if not title or not title.strip():
            raise ValueError("title is required")

        now = time.time()

        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO tasks(
                    title, description, completed, created_at, updated_at,
                    due_at, priority, tag, location_reminder
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    title.strip(),
                    (description or "").strip(),
                    int(bool(completed)),
                    now,
                    now,
                    due_at,
                    TaskPriority(priority).value,
                    TaskTag(tag).value,
                    self._reminder_to_str(location_reminder),
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug(
                "Task added id=%s priority=%s tag=%s due_at=%s reminder=%s",
                task_id,
                priority,
                tag,
                due_at,
                location_reminder is not None,
            )
            return task_id
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),))
            row = cur.fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks(self, *, tag: TaskTag | None = None) -> list[Task]:
        """All tasks (optionally for one tag), newest first."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            if tag is None:
                cur.execute("SELECT * FROM tasks ORDER BY created_at DESC, id DESC")
            else:
                cur.execute(
                    "SELECT * FROM tasks WHERE tag = ? ORDER BY created_at DESC, id DESC",
                    (TaskTag(tag).value,),
                )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def list_open_tasks(self) -> list[Task]:
        """Incomplete tasks, earliest due first (tasks without due date last)."""
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT *
                FROM tasks
                WHERE completed = 0
                ORDER BY due_at IS NULL, due_at ASC, created_at ASC
                """
            )
            return [self._row_to_task(r) for r in cur.fetchall()]
        finally:
            conn.close()

    def update_task(
        self,
        task_id: int,
        *,
        title: str | None = None,
        description: str | None = None,
        due_at: float | None = _UNSET,
        priority: TaskPriority | None = None,
        tag: TaskTag | None = None,
        completed: bool | None = None,
    ) -> bool:
        """
        Update selected fields. due_at may be set to None explicitly to clear it.

        Returns True if the task exists.
        """
        fields: list[str] = []
        params: list[Any] = []

        if title is not None:
            if not title.strip():
                raise ValueError("title is required")
            fields.append("title = ?")
            params.append(title.strip())

        if description is not None:
            fields.append("description = ?")
            params.append(description.strip())

        if due_at is not _UNSET:
            fields.append("due_at = ?")
            params.append(float(due_at) if due_at is not None else None)

        if priority is not None:
            fields.append("priority = ?")
            params.append(TaskPriority(priority).value)

        if tag is not None:
            fields.append("tag = ?")
            params.append(TaskTag(tag).value)

        if completed is not None:
            fields.append("completed = ?")
            params.append(int(bool(completed)))

        if not fields:
            return self.get_task(task_id) is not None

        fields.append("updated_at = ?")
        params.append(time.time())
        params.append(int(task_id))

        sql = f"UPDATE tasks SET {', '.join(fields)} WHERE id = ?"

        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def set_completed(self, task_id: int, completed: bool = True) -> bool:
        return self.update_task(task_id, completed=completed)

    def toggle_completed(self, task_id: int) -> bool | None:
        """Flip the completed flag. Returns the new value, or None if the task is missing."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE tasks SET completed = 1 - completed, updated_at = ? WHERE id = ?",
                (time.time(), int(task_id)),
            )
            conn.commit()
            if cur.rowcount != 1:
                return None
            row = conn.execute("SELECT completed FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return bool(row["completed"]) if row else None
        finally:
            conn.close()

    def set_location_reminder(self, task_id: int, reminder: LocationReminder | None) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "UPDATE tasks SET location_reminder = ?, updated_at = ? WHERE id = ?",
                (self._reminder_to_str(reminder), time.time(), int(task_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_task(self, task_id: int) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (int(task_id),))
            conn.commit()
            deleted = cur.rowcount == 1
            if deleted:
                logger.debug("Task deleted id=%s", task_id)
            return deleted
        finally:
            conn.close()
