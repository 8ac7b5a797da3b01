# src/tasky/tasks/store.py

from __future__ import annotations

import contextlib
import json
import logging
import sqlite3
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from ..errors import ConflictError, LimitReachedError, NotFoundError, ValidationError
from .criteria import TaskFilterCriteria, ts
from .models import (
    FocusSession,
    Goal,
    GoalStatus,
    Priority,
    Subtask,
    Tag,
    Task,
    TaskList,
    new_id,
    start_of_day,
)
from .recurrence import RecurrencePattern, RecurrenceType, format_days
from .scoring import calculate_ai_priority_score

logger = logging.getLogger(__name__)

INBOX_NAME = "Inbox"
DEFAULT_LIST_COLOR = "007AFF"
DEFAULT_LIST_ICON = "list.bullet"
INBOX_ICON = "tray.fill"

_UNSET: Any = object()

# Columns that update_task() may touch directly.
_TASK_FIELDS = (
    "title",
    "notes",
    "due_date",
    "scheduled_time",
    "scheduled_end_time",
    "priority",
    "priority_order",
    "list_id",
    "is_recurring",
    "recurrence_days",
    "recurrence",
    "estimated_duration",
    "focus_time_seconds",
    "reschedule_count",
)
_SCORE_FIELDS = {"due_date", "scheduled_time", "priority", "estimated_duration"}


def _dt(raw: float | None) -> datetime | None:
    return datetime.fromtimestamp(float(raw)) if raw is not None else None


class TaskStore:
    """
    SQLite store for tasks, lists, subtasks, tags, goals and focus sessions.

    The schema is migration-safe:
    - create tables if missing
    - use PRAGMA table_info to detect missing task columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "tasks.sqlite3", *, max_custom_lists: int = 5) -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self.max_custom_lists = int(max_custom_lists)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    def close(self) -> None:
        """Shutdown hook (no persistent connections to close)."""
        return

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.DatabaseError):
            conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.executescript(
                """
                CREATE TABLE IF NOT EXISTS task_lists (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    color_hex TEXT NOT NULL DEFAULT '007AFF',
                    icon_name TEXT NOT NULL DEFAULT 'list.bullet',
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    notes TEXT,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    completed_at REAL,
                    created_at REAL NOT NULL,
                    due_date REAL,
                    scheduled_time REAL,
                    scheduled_end_time REAL,
                    priority INTEGER NOT NULL DEFAULT 0,
                    priority_order INTEGER NOT NULL DEFAULT 0,
                    list_id TEXT REFERENCES task_lists(id) ON DELETE SET NULL
                );

                CREATE TABLE IF NOT EXISTS subtasks (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    title TEXT NOT NULL,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS tags (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    color_hex TEXT,
                    sort_order INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL
                );

                CREATE TABLE IF NOT EXISTS task_tags (
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    tag_id TEXT NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
                    PRIMARY KEY (task_id, tag_id)
                );

                CREATE TABLE IF NOT EXISTS goals (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    notes TEXT,
                    status TEXT NOT NULL DEFAULT 'active',
                    target_date REAL,
                    created_at REAL NOT NULL,
                    completed_at REAL,
                    color_hex TEXT,
                    icon_name TEXT
                );

                CREATE TABLE IF NOT EXISTS goal_tasks (
                    goal_id TEXT NOT NULL REFERENCES goals(id) ON DELETE CASCADE,
                    task_id TEXT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                    PRIMARY KEY (goal_id, task_id)
                );

                CREATE TABLE IF NOT EXISTS focus_sessions (
                    id TEXT PRIMARY KEY,
                    task_id TEXT REFERENCES tasks(id) ON DELETE SET NULL,
                    started_at REAL NOT NULL,
                    duration_seconds INTEGER NOT NULL DEFAULT 0,
                    completed INTEGER NOT NULL DEFAULT 1
                );
                """
            )

            # Migrations (safe): add missing task columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("is_recurring", "INTEGER NOT NULL DEFAULT 0")
            add_col("recurrence_days", "TEXT")
            add_col("recurrence", "TEXT")
            add_col("estimated_duration", "INTEGER NOT NULL DEFAULT 0")
            add_col("focus_time_seconds", "INTEGER NOT NULL DEFAULT 0")
            add_col("reschedule_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("ai_priority_score", "REAL NOT NULL DEFAULT 0")
            add_col("next_occurrence_id", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(is_completed, due_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_list ON tasks(list_id)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_focus_started ON focus_sessions(started_at)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _recurrence_to_str(pattern: RecurrencePattern | None) -> str | None:
        if pattern is None:
            return None
        return json.dumps(pattern.to_dict(), ensure_ascii=False)

    @staticmethod
    def _str_to_recurrence(s: str | None) -> RecurrencePattern | None:
        if not s:
            return None
        try:
            val = json.loads(s)
        except json.JSONDecodeError:
            logger.warning("Ignoring malformed recurrence JSON: %r", s)
            return None
        return RecurrencePattern.from_dict(val) if isinstance(val, dict) else None

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"] or ""),
            notes=row["notes"],
            is_completed=bool(row["is_completed"]),
            completed_at=_dt(row["completed_at"]),
            created_at=_dt(row["created_at"]) or datetime.now(),
            due_date=_dt(row["due_date"]),
            scheduled_time=_dt(row["scheduled_time"]),
            scheduled_end_time=_dt(row["scheduled_end_time"]),
            priority=int(Priority.from_db(row["priority"])),
            priority_order=int(row["priority_order"] or 0),
            list_id=row["list_id"],
            is_recurring=bool(row["is_recurring"]),
            recurrence_days=row["recurrence_days"],
            recurrence=self._str_to_recurrence(row["recurrence"]),
            estimated_duration=int(row["estimated_duration"] or 0),
            focus_time_seconds=int(row["focus_time_seconds"] or 0),
            reschedule_count=int(row["reschedule_count"] or 0),
            ai_priority_score=float(row["ai_priority_score"] or 0.0),
            next_occurrence_id=row["next_occurrence_id"],
        )

    @staticmethod
    def _row_to_list(row: sqlite3.Row) -> TaskList:
        return TaskList(
            id=str(row["id"]),
            name=str(row["name"]),
            color_hex=str(row["color_hex"] or DEFAULT_LIST_COLOR),
            icon_name=str(row["icon_name"] or DEFAULT_LIST_ICON),
            sort_order=int(row["sort_order"] or 0),
            created_at=_dt(row["created_at"]) or datetime.now(),
        )

    def _query_tasks(self, where: str = "1=1", params: Sequence[Any] = (), order: str = "created_at DESC", limit: int | None = None) -> list[Task]:
        sql = f"SELECT * FROM tasks WHERE {where} ORDER BY {order}"
        args = list(params)
        if limit is not None:
            sql += " LIMIT ?"
            args.append(int(limit))
        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, args).fetchall()]
        finally:
            conn.close()

    def _write_task(self, conn: sqlite3.Connection, task: Task) -> None:
        # Upsert, not REPLACE: a REPLACE deletes the row first and would cascade to subtasks/tags.
        conn.execute(
            """
            INSERT INTO tasks(
                id, title, notes, is_completed, completed_at, created_at,
                due_date, scheduled_time, scheduled_end_time,
                priority, priority_order, list_id,
                is_recurring, recurrence_days, recurrence,
                estimated_duration, focus_time_seconds, reschedule_count, ai_priority_score,
                next_occurrence_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                title = excluded.title,
                notes = excluded.notes,
                is_completed = excluded.is_completed,
                completed_at = excluded.completed_at,
                due_date = excluded.due_date,
                scheduled_time = excluded.scheduled_time,
                scheduled_end_time = excluded.scheduled_end_time,
                priority = excluded.priority,
                priority_order = excluded.priority_order,
                list_id = excluded.list_id,
                is_recurring = excluded.is_recurring,
                recurrence_days = excluded.recurrence_days,
                recurrence = excluded.recurrence,
                estimated_duration = excluded.estimated_duration,
                focus_time_seconds = excluded.focus_time_seconds,
                reschedule_count = excluded.reschedule_count,
                ai_priority_score = excluded.ai_priority_score,
                next_occurrence_id = excluded.next_occurrence_id
            """,
            (
                task.id,
                task.title,
                task.notes,
                1 if task.is_completed else 0,
                ts(task.completed_at),
                ts(task.created_at),
                ts(task.due_date),
                ts(task.scheduled_time),
                ts(task.scheduled_end_time),
                int(task.priority),
                int(task.priority_order),
                task.list_id,
                1 if task.is_recurring else 0,
                task.recurrence_days,
                self._recurrence_to_str(task.recurrence),
                int(task.estimated_duration),
                int(task.focus_time_seconds),
                int(task.reschedule_count),
                float(task.ai_priority_score),
                task.next_occurrence_id,
            ),
        )

    def _save_tasks(self, tasks: Iterable[Task]) -> None:
        conn = self._get_conn()
        try:
            for task in tasks:
                self._write_task(conn, task)
            conn.commit()
        finally:
            conn.close()

    # ---- tasks: CRUD ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def create_task(
        self,
        title: str,
        *,
        notes: str | None = None,
        due_date: datetime | None = None,
        scheduled_time: datetime | None = None,
        scheduled_end_time: datetime | None = None,
        priority: int = 0,
        list_id: str | None = None,
        is_recurring: bool = False,
        recurrence_days: Iterable[int] | None = None,
        recurrence: RecurrencePattern | None = None,
        estimated_duration: int = 0,
    ) -> Task:
        if not title or not title.strip():
            raise ValidationError("title is required")

        task = Task(
            id=new_id(),
            title=title.strip(),
            notes=notes,
            due_date=due_date,
            scheduled_time=scheduled_time,
            scheduled_end_time=scheduled_end_time,
            priority=int(Priority.from_db(priority)),
            list_id=list_id,
            is_recurring=bool(is_recurring or recurrence is not None),
            recurrence_days=format_days(list(recurrence_days or [])),
            recurrence=recurrence,
            estimated_duration=max(0, int(estimated_duration)),
        )
        task.ai_priority_score = calculate_ai_priority_score(task)
        self._save_tasks([task])
        logger.debug("Task created id=%s title=%r due=%s", task.id, task.title, task.due_date)
        return task

    def get_task(self, task_id: str) -> Task | None:
        found = self._query_tasks("id = ?", [task_id], limit=1)
        return found[0] if found else None

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError(f"task {task_id} not found")
        return task

    def update_task(self, task_id: str, **changes: Any) -> Task:
        """
        Update selected fields.

        Passing None clears a nullable field; omitted fields are left alone.
        The AI score is refreshed when dates, priority or estimate change.
        """
        unknown = set(changes) - set(_TASK_FIELDS)
        if unknown:
            raise ValidationError(f"unknown task fields: {', '.join(sorted(unknown))}")

        task = self.require_task(task_id)
        for name, value in changes.items():
            if name == "recurrence_days" and value is not None and not isinstance(value, str):
                value = format_days(list(value))
            if name == "priority":
                value = int(Priority.from_db(value))
            setattr(task, name, value)

        if "title" in changes and not (task.title or "").strip():
            raise ValidationError("title is required")
        if set(changes) & _SCORE_FIELDS:
            task.ai_priority_score = calculate_ai_priority_score(task)

        self._save_tasks([task])
        return task

    def toggle_completion(self, task_id: str) -> Task:
        task = self.require_task(task_id)
        task.is_completed = not task.is_completed
        task.completed_at = datetime.now() if task.is_completed else None
        self._apply_recurrence(task)
        self._save_tasks([task])
        return task

    def _apply_recurrence(self, task: Task) -> None:
        if task.is_completed:
            self._spawn_next_occurrence(task)
        else:
            self._drop_pending_occurrence(task)

    def _spawn_next_occurrence(self, task: Task) -> Task | None:
        """
        Create the next instance of a recurring task after it is completed.

        At most one occurrence is spawned per task: if the one recorded in
        next_occurrence_id still exists, nothing new is created. The caller saves `task`.
        """
        if not task.is_recurring:
            return None
        if task.next_occurrence_id and self.get_task(task.next_occurrence_id) is not None:
            return None
        pattern = task.recurrence
        if pattern is None and task.recurrence_day_set:
            pattern = RecurrencePattern(type=RecurrenceType.WEEKLY, weekdays=task.recurrence_day_set)
        if pattern is None:
            return None

        if pattern.type == RecurrenceType.AFTER_COMPLETION:
            base = task.completed_at or datetime.now()
        else:
            base = task.due_date or task.completed_at or datetime.now()
        nxt = pattern.next_occurrence(base)
        if nxt is None:
            logger.info("Recurring task %s has no further occurrences", task.id)
            return None

        shift = nxt - base
        spawned = self.create_task(
            task.title,
            notes=task.notes,
            due_date=nxt,
            scheduled_time=task.scheduled_time + shift if task.scheduled_time else None,
            scheduled_end_time=task.scheduled_end_time + shift if task.scheduled_end_time else None,
            priority=task.priority,
            list_id=task.list_id,
            is_recurring=True,
            recurrence_days=task.recurrence_day_set,
            recurrence=task.recurrence,
            estimated_duration=task.estimated_duration,
        )
        task.next_occurrence_id = spawned.id
        return spawned

    def _drop_pending_occurrence(self, task: Task) -> None:
        """Reopening removes the spawned occurrence unless it was completed in the meantime."""
        if not task.next_occurrence_id:
            return
        successor = self.get_task(task.next_occurrence_id)
        if successor is not None and successor.is_completed:
            return
        if successor is not None:
            self.delete_task(successor.id)
            logger.info("Removed pending occurrence %s of reopened task %s", successor.id, task.id)
        task.next_occurrence_id = None

    def delete_task(self, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        finally:
            conn.close()

    def reorder_tasks(self, task_ids: Sequence[str]) -> None:
        conn = self._get_conn()
        try:
            for index, task_id in enumerate(task_ids):
                conn.execute("UPDATE tasks SET priority_order = ? WHERE id = ?", (index, task_id))
            conn.commit()
        finally:
            conn.close()

    def update_ai_priority_scores(self, now: datetime | None = None) -> int:
        """Recompute the score of every open task; returns how many rows were written."""
        tasks = self._query_tasks("is_completed = 0")
        for task in tasks:
            task.ai_priority_score = calculate_ai_priority_score(task, now)
        return self._save_scores(tasks)

    def _save_scores(self, tasks: Iterable[Task]) -> int:
        # Only the score column: other fields may have changed since the tasks were read.
        rows = [(float(t.ai_priority_score), t.id) for t in tasks]
        if not rows:
            return 0
        conn = self._get_conn()
        try:
            cur = conn.executemany("UPDATE tasks SET ai_priority_score = ? WHERE id = ? AND is_completed = 0", rows)
            conn.commit()
            return int(cur.rowcount)
        finally:
            conn.close()

    # ---- tasks: queries ----

    def fetch_all_tasks(self) -> list[Task]:
        return self._query_tasks(limit=1000)

    def fetch_today_tasks(self, now: datetime | None = None) -> list[Task]:
        """Due today OR scheduled today; scores refreshed before sorting."""
        now = now or datetime.now()
        start = start_of_day(now)
        end = start + timedelta(days=1)
        tasks = self._query_tasks(
            "(due_date >= ? AND due_date < ?) OR (scheduled_time >= ? AND scheduled_time < ?)",
            [ts(start), ts(end), ts(start), ts(end)],
        )
        pending = [t for t in tasks if not t.is_completed]
        for task in pending:
            task.ai_priority_score = calculate_ai_priority_score(task, now)
        self._save_scores(pending)
        return sorted(
            tasks,
            key=lambda t: (t.is_completed, -t.ai_priority_score, t.scheduled_time or datetime.max),
        )

    def fetch_upcoming_tasks(self, now: datetime | None = None) -> list[Task]:
        now = now or datetime.now()
        return self._query_tasks(
            "due_date >= ? AND due_date <= ? AND is_completed = 0",
            [ts(now), ts(now + timedelta(days=7))],
            order="due_date ASC",
        )

    def fetch_inbox_tasks(self) -> list[Task]:
        inbox = self.find_list(INBOX_NAME)
        if inbox is None:
            return self._query_tasks("list_id IS NULL AND is_completed = 0")
        return self._query_tasks("(list_id IS NULL OR list_id = ?) AND is_completed = 0", [inbox.id])

    def fetch_completed_tasks(self) -> list[Task]:
        return self._query_tasks("is_completed = 1", order="completed_at DESC", limit=500)

    def fetch_tasks_for_list(self, list_id: str) -> list[Task]:
        return self._query_tasks("list_id = ?", [list_id])

    def fetch_matching(self, criteria: TaskFilterCriteria, now: datetime | None = None) -> list[Task]:
        where, params = criteria.to_sql(now)
        return self._query_tasks(where, params, order="priority DESC, due_date IS NULL, due_date ASC")

    def fetch_overdue_tasks(self, now: datetime | None = None) -> list[Task]:
        today = start_of_day(now or datetime.now())
        return self._query_tasks("due_date < ? AND is_completed = 0", [ts(today)], order="due_date ASC")

    def fetch_tasks_older_than(self, days: int, *, completed_only: bool = False) -> list[Task]:
        cutoff = ts(datetime.now() - timedelta(days=int(days)))
        if completed_only:
            return self._query_tasks("completed_at < ? AND is_completed = 1", [cutoff])
        return self._query_tasks("created_at < ?", [cutoff])

    def fetch_tasks_completed_between(self, start: datetime, end: datetime) -> list[Task]:
        return self._query_tasks(
            "completed_at >= ? AND completed_at < ? AND is_completed = 1",
            [ts(start), ts(end)],
            order="completed_at DESC",
        )

    def fetch_tasks_created_between(self, start: datetime, end: datetime) -> list[Task]:
        return self._query_tasks("created_at >= ? AND created_at < ?", [ts(start), ts(end)])

    def task_count_for_list(self, list_id: str, *, completed_only: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM tasks WHERE list_id = ?"
        if completed_only:
            sql += " AND is_completed = 1"
        conn = self._get_conn()
        try:
            (n,) = conn.execute(sql, (list_id,)).fetchone()
            return int(n)
        finally:
            conn.close()

    def fetch_high_priority_pending(self) -> list[Task]:
        return self._query_tasks(
            "priority >= ? AND is_completed = 0",
            [int(Priority.MEDIUM)],
            order="priority DESC, due_date IS NULL, due_date ASC",
        )

    # ---- tasks: batch operations ----

    def complete_tasks(self, tasks: Iterable[Task], completed: bool = True) -> int:
        """Set completion on the given tasks; returns how many actually changed."""
        changed: list[Task] = []
        now = datetime.now()
        for task in tasks:
            if task.is_completed == completed:
                continue
            task.is_completed = completed
            task.completed_at = now if completed else None
            self._apply_recurrence(task)
            changed.append(task)
        self._save_tasks(changed)
        return len(changed)

    def reschedule_tasks(self, tasks: Iterable[Task], new_date: datetime, time: datetime | None = None) -> int:
        items = list(tasks)
        for task in items:
            task.due_date = new_date
            if time is not None:
                task.scheduled_time = time
            task.reschedule_count += 1
            task.ai_priority_score = calculate_ai_priority_score(task)
        self._save_tasks(items)
        return len(items)

    def delete_tasks(self, tasks: Iterable[Task]) -> int:
        ids = [t.id for t in tasks]
        if not ids:
            return 0
        conn = self._get_conn()
        try:
            conn.executemany("DELETE FROM tasks WHERE id = ?", [(i,) for i in ids])
            conn.commit()
        finally:
            conn.close()
        return len(ids)

    def update_tasks_priority(self, tasks: Iterable[Task], priority: int) -> int:
        items = list(tasks)
        for task in items:
            task.priority = int(Priority.from_db(priority))
            task.ai_priority_score = calculate_ai_priority_score(task)
        self._save_tasks(items)
        return len(items)

    def move_tasks_to_list(self, tasks: Iterable[Task], list_id: str | None) -> int:
        items = list(tasks)
        for task in items:
            task.list_id = list_id
        self._save_tasks(items)
        return len(items)

    # ---- lists ----

    def fetch_all_lists(self) -> list[TaskList]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM task_lists ORDER BY sort_order ASC, created_at ASC").fetchall()
            return [self._row_to_list(r) for r in rows]
        finally:
            conn.close()

    def get_list(self, list_id: str) -> TaskList | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM task_lists WHERE id = ?", (list_id,)).fetchone()
            return self._row_to_list(row) if row else None
        finally:
            conn.close()

    def find_list(self, name: str) -> TaskList | None:
        """Case-insensitive exact name lookup."""
        wanted = (name or "").strip().lower()
        for lst in self.fetch_all_lists():
            if lst.name.lower() == wanted:
                return lst
        return None

    def create_list(self, name: str, *, color_hex: str | None = None, icon_name: str | None = None) -> TaskList:
        name = (name or "").strip()
        if not name:
            raise ValidationError("List name cannot be empty.")
        existing = self.fetch_all_lists()
        if any(lst.name.lower() == name.lower() for lst in existing):
            raise ConflictError(f"A list named '{name}' already exists.")
        if len(existing) >= self.max_custom_lists:
            raise LimitReachedError(f"Maximum number of lists ({self.max_custom_lists}) reached")
        return self._insert_list(
            name,
            color_hex=color_hex or DEFAULT_LIST_COLOR,
            icon_name=icon_name or DEFAULT_LIST_ICON,
            sort_order=len(existing),
        )

    def _insert_list(self, name: str, *, color_hex: str, icon_name: str, sort_order: int) -> TaskList:
        lst = TaskList(id=new_id(), name=name, color_hex=color_hex, icon_name=icon_name, sort_order=sort_order)
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO task_lists(id, name, color_hex, icon_name, sort_order, created_at) VALUES (?, ?, ?, ?, ?, ?)",
                (lst.id, lst.name, lst.color_hex, lst.icon_name, lst.sort_order, ts(lst.created_at)),
            )
            conn.commit()
        finally:
            conn.close()
        logger.info("List created id=%s name=%r", lst.id, lst.name)
        return lst

    def update_list(
        self,
        list_id: str,
        *,
        name: str | None = None,
        color_hex: str | None = None,
        icon_name: str | None = None,
    ) -> TaskList:
        lst = self.get_list(list_id)
        if lst is None:
            raise NotFoundError(f"list {list_id} not found")
        if name is not None:
            if not name.strip():
                raise ValidationError("List name cannot be empty.")
            lst.name = name.strip()
        if color_hex is not None:
            lst.color_hex = color_hex
        if icon_name is not None:
            lst.icon_name = icon_name
        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE task_lists SET name = ?, color_hex = ?, icon_name = ? WHERE id = ?",
                (lst.name, lst.color_hex, lst.icon_name, lst.id),
            )
            conn.commit()
        finally:
            conn.close()
        return lst

    def delete_list(self, list_id: str) -> int:
        """Delete a list; its tasks fall back to the Inbox. Returns how many tasks moved."""
        moved = self.task_count_for_list(list_id)
        conn = self._get_conn()
        try:
            conn.execute("UPDATE tasks SET list_id = NULL WHERE list_id = ?", (list_id,))
            conn.execute("DELETE FROM task_lists WHERE id = ?", (list_id,))
            conn.commit()
        finally:
            conn.close()
        logger.info("List deleted id=%s moved_tasks=%s", list_id, moved)
        return moved

    def create_default_inbox_if_needed(self) -> TaskList:
        inbox = self.find_list(INBOX_NAME)
        if inbox is not None:
            return inbox
        return self._insert_list(INBOX_NAME, color_hex=DEFAULT_LIST_COLOR, icon_name=INBOX_ICON, sort_order=0)

    # ---- subtasks ----

    @staticmethod
    def _row_to_subtask(row: sqlite3.Row) -> Subtask:
        return Subtask(
            id=str(row["id"]),
            task_id=str(row["task_id"]),
            title=str(row["title"]),
            is_completed=bool(row["is_completed"]),
            sort_order=int(row["sort_order"] or 0),
            created_at=_dt(row["created_at"]) or datetime.now(),
        )

    def fetch_subtasks(self, task_id: str) -> list[Subtask]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM subtasks WHERE task_id = ? ORDER BY sort_order ASC, created_at ASC",
                (task_id,),
            ).fetchall()
            return [self._row_to_subtask(r) for r in rows]
        finally:
            conn.close()

    def add_subtask(self, task_id: str, title: str) -> Subtask:
        if not title or not title.strip():
            raise ValidationError("subtask title is required")
        self.require_task(task_id)
        sub = Subtask(
            id=new_id(),
            task_id=task_id,
            title=title.strip(),
            sort_order=len(self.fetch_subtasks(task_id)),
        )
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO subtasks(id, task_id, title, is_completed, sort_order, created_at) VALUES (?, ?, ?, 0, ?, ?)",
                (sub.id, sub.task_id, sub.title, sub.sort_order, ts(sub.created_at)),
            )
            conn.commit()
        finally:
            conn.close()
        return sub

    def _subtask_exec(self, sql: str, params: Sequence[Any]) -> None:
        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            if cur.rowcount == 0:
                raise NotFoundError("subtask not found")
        finally:
            conn.close()

    def toggle_subtask(self, subtask_id: str) -> None:
        self._subtask_exec("UPDATE subtasks SET is_completed = 1 - is_completed WHERE id = ?", (subtask_id,))

    def rename_subtask(self, subtask_id: str, title: str) -> None:
        if not title or not title.strip():
            raise ValidationError("subtask title is required")
        self._subtask_exec("UPDATE subtasks SET title = ? WHERE id = ?", (title.strip(), subtask_id))

    def delete_subtask(self, subtask_id: str) -> None:
        self._subtask_exec("DELETE FROM subtasks WHERE id = ?", (subtask_id,))

    def reorder_subtasks(self, subtask_ids: Sequence[str]) -> None:
        conn = self._get_conn()
        try:
            for index, sid in enumerate(subtask_ids):
                conn.execute("UPDATE subtasks SET sort_order = ? WHERE id = ?", (index, sid))
            conn.commit()
        finally:
            conn.close()

    # ---- tags ----

    @staticmethod
    def _row_to_tag(row: sqlite3.Row) -> Tag:
        return Tag(
            id=str(row["id"]),
            name=str(row["name"]),
            color_hex=row["color_hex"],
            sort_order=int(row["sort_order"] or 0),
            created_at=_dt(row["created_at"]) or datetime.now(),
        )

    def fetch_all_tags(self) -> list[Tag]:
        conn = self._get_conn()
        try:
            rows = conn.execute("SELECT * FROM tags ORDER BY sort_order ASC, name ASC").fetchall()
            return [self._row_to_tag(r) for r in rows]
        finally:
            conn.close()

    def create_tag(self, name: str, *, color_hex: str | None = None) -> Tag:
        name = (name or "").strip()
        if not name:
            raise ValidationError("tag name is required")
        tag = Tag(id=new_id(), name=name, color_hex=color_hex, sort_order=len(self.fetch_all_tags()))
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO tags(id, name, color_hex, sort_order, created_at) VALUES (?, ?, ?, ?, ?)",
                (tag.id, tag.name, tag.color_hex, tag.sort_order, ts(tag.created_at)),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"A tag named '{name}' already exists.") from e
        finally:
            conn.close()
        return tag

    def rename_tag(self, tag_id: str, name: str) -> None:
        if not name or not name.strip():
            raise ValidationError("tag name is required")
        conn = self._get_conn()
        try:
            conn.execute("UPDATE tags SET name = ? WHERE id = ?", (name.strip(), tag_id))
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise ConflictError(f"A tag named '{name}' already exists.") from e
        finally:
            conn.close()

    def delete_tag(self, tag_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM tags WHERE id = ?", (tag_id,))
            conn.commit()
        finally:
            conn.close()

    def add_tag_to_task(self, task_id: str, tag_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("INSERT OR IGNORE INTO task_tags(task_id, tag_id) VALUES (?, ?)", (task_id, tag_id))
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise NotFoundError("task or tag not found") from e
        finally:
            conn.close()

    def remove_tag_from_task(self, task_id: str, tag_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM task_tags WHERE task_id = ? AND tag_id = ?", (task_id, tag_id))
            conn.commit()
        finally:
            conn.close()

    def tags_for_task(self, task_id: str) -> list[Tag]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT tags.* FROM tags
                JOIN task_tags ON task_tags.tag_id = tags.id
                WHERE task_tags.task_id = ?
                ORDER BY tags.sort_order ASC, tags.name ASC
                """,
                (task_id,),
            ).fetchall()
            return [self._row_to_tag(r) for r in rows]
        finally:
            conn.close()

    def tasks_for_tag(self, tag_id: str) -> list[Task]:
        return self._query_tasks("id IN (SELECT task_id FROM task_tags WHERE tag_id = ?)", [tag_id])

    # ---- goals ----

    @staticmethod
    def _row_to_goal(row: sqlite3.Row) -> Goal:
        return Goal(
            id=str(row["id"]),
            name=str(row["name"]),
            notes=row["notes"],
            status=GoalStatus.from_db(row["status"]),
            target_date=_dt(row["target_date"]),
            created_at=_dt(row["created_at"]) or datetime.now(),
            completed_at=_dt(row["completed_at"]),
            color_hex=row["color_hex"],
            icon_name=row["icon_name"],
        )

    def create_goal(
        self,
        name: str,
        *,
        notes: str | None = None,
        target_date: datetime | None = None,
        color_hex: str | None = None,
        icon_name: str | None = None,
    ) -> Goal:
        name = (name or "").strip()
        if not name:
            raise ValidationError("goal name is required")
        goal = Goal(
            id=new_id(),
            name=name,
            notes=notes,
            target_date=target_date,
            color_hex=color_hex,
            icon_name=icon_name,
        )
        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO goals(id, name, notes, status, target_date, created_at, completed_at, color_hex, icon_name)
                VALUES (?, ?, ?, ?, ?, ?, NULL, ?, ?)
                """,
                (goal.id, goal.name, goal.notes, goal.status.value, ts(goal.target_date), ts(goal.created_at), goal.color_hex, goal.icon_name),
            )
            conn.commit()
        finally:
            conn.close()
        return goal

    def get_goal(self, goal_id: str) -> Goal | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM goals WHERE id = ?", (goal_id,)).fetchone()
            return self._row_to_goal(row) if row else None
        finally:
            conn.close()

    def fetch_goals(self, status: GoalStatus | None = None) -> list[Goal]:
        conn = self._get_conn()
        try:
            if status is None:
                rows = conn.execute("SELECT * FROM goals ORDER BY created_at DESC").fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM goals WHERE status = ? ORDER BY created_at DESC", (status.value,)
                ).fetchall()
            return [self._row_to_goal(r) for r in rows]
        finally:
            conn.close()

    def update_goal(
        self,
        goal_id: str,
        *,
        name: str | None = None,
        notes: str | None | Any = _UNSET,
        status: GoalStatus | None = None,
        target_date: datetime | None | Any = _UNSET,
    ) -> Goal:
        goal = self.get_goal(goal_id)
        if goal is None:
            raise NotFoundError(f"goal {goal_id} not found")
        if name is not None:
            if not name.strip():
                raise ValidationError("goal name is required")
            goal.name = name.strip()
        if notes is not _UNSET:
            goal.notes = notes
        if target_date is not _UNSET:
            goal.target_date = target_date
        if status is not None and status != goal.status:
            goal.status = status
            goal.completed_at = datetime.now() if status == GoalStatus.COMPLETED else None

        conn = self._get_conn()
        try:
            conn.execute(
                "UPDATE goals SET name = ?, notes = ?, status = ?, target_date = ?, completed_at = ? WHERE id = ?",
                (goal.name, goal.notes, goal.status.value, ts(goal.target_date), ts(goal.completed_at), goal.id),
            )
            conn.commit()
        finally:
            conn.close()
        return goal

    def delete_goal(self, goal_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM goals WHERE id = ?", (goal_id,))
            conn.commit()
        finally:
            conn.close()

    def link_task_to_goal(self, goal_id: str, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("INSERT OR IGNORE INTO goal_tasks(goal_id, task_id) VALUES (?, ?)", (goal_id, task_id))
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise NotFoundError("goal or task not found") from e
        finally:
            conn.close()

    def unlink_task_from_goal(self, goal_id: str, task_id: str) -> None:
        conn = self._get_conn()
        try:
            conn.execute("DELETE FROM goal_tasks WHERE goal_id = ? AND task_id = ?", (goal_id, task_id))
            conn.commit()
        finally:
            conn.close()

    def tasks_for_goal(self, goal_id: str) -> list[Task]:
        return self._query_tasks("id IN (SELECT task_id FROM goal_tasks WHERE goal_id = ?)", [goal_id])

    # ---- focus sessions ----

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> FocusSession:
        return FocusSession(
            id=str(row["id"]),
            task_id=row["task_id"],
            started_at=_dt(row["started_at"]) or datetime.now(),
            duration_seconds=int(row["duration_seconds"] or 0),
            completed=bool(row["completed"]),
        )

    def add_focus_session(
        self,
        task_id: str | None,
        *,
        started_at: datetime,
        duration_seconds: int,
        completed: bool = True,
    ) -> FocusSession:
        """Record a session and add its duration to the task's focus time."""
        session = FocusSession(
            id=new_id(),
            task_id=task_id,
            started_at=started_at,
            duration_seconds=max(0, int(duration_seconds)),
            completed=completed,
        )
        conn = self._get_conn()
        try:
            conn.execute(
                "INSERT INTO focus_sessions(id, task_id, started_at, duration_seconds, completed) VALUES (?, ?, ?, ?, ?)",
                (session.id, task_id, ts(started_at), session.duration_seconds, 1 if completed else 0),
            )
            if task_id is not None:
                conn.execute(
                    "UPDATE tasks SET focus_time_seconds = focus_time_seconds + ? WHERE id = ?",
                    (session.duration_seconds, task_id),
                )
            conn.commit()
        finally:
            conn.close()
        return session

    def fetch_focus_sessions_between(self, start: datetime, end: datetime) -> list[FocusSession]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT * FROM focus_sessions
                WHERE started_at >= ? AND started_at < ? AND completed = 1
                ORDER BY started_at DESC
                """,
                (ts(start), ts(end)),
            ).fetchall()
            return [self._row_to_session(r) for r in rows]
        finally:
            conn.close()

    def fetch_all_focus_sessions(self) -> list[FocusSession]:
        conn = self._get_conn()
        try:
            rows = conn.execute(
                "SELECT * FROM focus_sessions WHERE completed = 1 ORDER BY started_at DESC"
            ).fetchall()
            return [self._row_to_session(r) for r in rows]
        finally:
            conn.close()

    def fetch_today_focus_sessions(self, now: datetime | None = None) -> list[FocusSession]:
        start = start_of_day(now or datetime.now())
        return self.fetch_focus_sessions_between(start, start + timedelta(days=1))

    def fetch_yesterday_focus_sessions(self, now: datetime | None = None) -> list[FocusSession]:
        today = start_of_day(now or datetime.now())
        return self.fetch_focus_sessions_between(today - timedelta(days=1), today)
