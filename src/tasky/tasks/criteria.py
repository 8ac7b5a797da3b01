# src/tasky/tasks/criteria.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from .models import start_of_day


def ts(d: datetime | None) -> float | None:
    return d.timestamp() if d is not None else None


@dataclass(slots=True)
class TaskFilterCriteria:
    """
    Resolved filter for bulk queries, translated into a SQL WHERE clause.

    Explicit task ids short-circuit every other condition.
    """

    list_id: str | None = None
    is_completed: bool | None = None
    is_overdue: bool = False
    is_due_today: bool = False
    is_due_tomorrow: bool = False
    is_due_this_week: bool = False
    is_due_next_week: bool = False
    priority_level: int | None = None
    keyword: str | None = None
    task_ids: list[str] | None = None
    older_than_days: int | None = None
    has_no_due_date: bool = False

    def to_sql(self, now: datetime | None = None) -> tuple[str, list[Any]]:
        now = now or datetime.now()
        today = start_of_day(now)

        if self.task_ids:
            placeholders = ",".join("?" for _ in self.task_ids)
            return f"id IN ({placeholders})", list(self.task_ids)

        clauses: list[str] = []
        params: list[Any] = []

        def day_range(col: str, start: datetime, end: datetime) -> None:
            clauses.append(f"({col} >= ? AND {col} < ?)")
            params.extend([ts(start), ts(end)])

        if self.list_id is not None:
            clauses.append("list_id = ?")
            params.append(self.list_id)

        if self.is_completed is not None:
            clauses.append("is_completed = ?")
            params.append(1 if self.is_completed else 0)

        if self.is_overdue:
            clauses.append("(due_date < ? AND is_completed = 0)")
            params.append(ts(today))

        if self.is_due_today:
            end = today + timedelta(days=1)
            clauses.append(
                "((due_date >= ? AND due_date < ?) OR (scheduled_time >= ? AND scheduled_time < ?))"
            )
            params.extend([ts(today), ts(end), ts(today), ts(end)])

        if self.is_due_tomorrow:
            day_range("due_date", today + timedelta(days=1), today + timedelta(days=2))

        if self.is_due_this_week:
            day_range("due_date", today, today + timedelta(days=7))

        if self.is_due_next_week:
            day_range("due_date", today + timedelta(days=7), today + timedelta(days=14))

        if self.priority_level is not None:
            clauses.append("priority >= ?")
            params.append(int(self.priority_level))

        if self.keyword:
            clauses.append("LOWER(title) LIKE ?")
            params.append(f"%{self.keyword.lower()}%")

        if self.has_no_due_date:
            clauses.append("due_date IS NULL")

        if self.older_than_days is not None:
            clauses.append("created_at < ?")
            params.append(ts(now - timedelta(days=int(self.older_than_days))))

        if not clauses:
            return "1=1", []
        return " AND ".join(clauses), params
