# src/tasky/ai/helpers.py

"""
Shared helpers for AI tools: filter resolution, fuzzy task/list lookup,
and date parsing/formatting tuned for what small models actually emit.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from dateutil import parser as dateutil_parser
from dateutil.parser import ParserError

from ..errors import NotFoundError
from ..tasks.criteria import TaskFilterCriteria
from ..tasks.models import Task, TaskList, start_of_day
from ..tasks.recurrence import add_months
from ..tasks.store import TaskStore

logger = logging.getLogger(__name__)

_PRIORITY_LEVELS = {"high": 3, "medium": 2, "low": 1}
_WEEKDAYS = {
    "monday": 0,
    "tuesday": 1,
    "wednesday": 2,
    "thursday": 3,
    "friday": 4,
    "saturday": 5,
    "sunday": 6,
}


@dataclass(slots=True)
class TaskFilter:
    """Filter as the model sends it; every field optional."""

    task_names: list[str] | None = None
    list_name: str | None = None
    status: str | None = None  # overdue|today|tomorrow|this_week|completed|incomplete|all
    priority: str | None = None  # high|medium|low|any
    time_range: str | None = None  # older_than_week|older_than_month|due_this_week|due_next_week|no_due_date
    keyword: str | None = None

    @classmethod
    def from_args(cls, raw: Mapping[str, Any] | None) -> TaskFilter:
        raw = raw or {}
        names = raw.get("taskNames")
        if isinstance(names, str):
            names = [names]
        return cls(
            task_names=[str(n) for n in names if str(n).strip()] if names else None,
            list_name=_opt_str(raw.get("listName")),
            status=_opt_str(raw.get("status")),
            priority=_opt_str(raw.get("priority")),
            time_range=_opt_str(raw.get("timeRange")),
            keyword=_opt_str(raw.get("keyword")),
        )


def _opt_str(v: Any) -> str | None:
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def resolve_filter(flt: TaskFilter, store: TaskStore) -> TaskFilterCriteria:
    """
    Translate a model-facing filter into store criteria.

    Explicit task names win over every other field when at least one resolves;
    when none do, the first name narrows the query as a keyword.
    Raises NotFoundError when a named list does not exist.
    """
    criteria = TaskFilterCriteria()

    if flt.task_names:
        ids = [t.id for t in (find_task(n, store) for n in flt.task_names) if t is not None]
        if ids:
            criteria.task_ids = ids
            return criteria
        if not flt.keyword:
            criteria.keyword = flt.task_names[0].strip()

    if flt.list_name:
        lst = find_list(flt.list_name, store)
        if lst is None:
            raise NotFoundError(f"Could not find list '{flt.list_name}'.")
        criteria.list_id = lst.id

    status = (flt.status or "").lower()
    if status == "overdue":
        criteria.is_overdue = True
        criteria.is_completed = False
    elif status == "today":
        criteria.is_due_today = True
        criteria.is_completed = False
    elif status == "tomorrow":
        criteria.is_due_tomorrow = True
        criteria.is_completed = False
    elif status == "this_week":
        criteria.is_due_this_week = True
        criteria.is_completed = False
    elif status == "completed":
        criteria.is_completed = True
    elif status == "incomplete":
        criteria.is_completed = False

    level = _PRIORITY_LEVELS.get((flt.priority or "").lower())
    if level is not None:
        criteria.priority_level = level

    time_range = (flt.time_range or "").lower()
    if time_range == "older_than_week":
        criteria.older_than_days = 7
    elif time_range == "older_than_month":
        criteria.older_than_days = 30
    elif time_range == "due_this_week":
        criteria.is_due_this_week = True
    elif time_range == "due_next_week":
        criteria.is_due_next_week = True
    elif time_range == "no_due_date":
        criteria.has_no_due_date = True

    if flt.keyword:
        criteria.keyword = flt.keyword

    return criteria


def fetch_tasks_matching(flt: TaskFilter, store: TaskStore, now: datetime | None = None) -> list[Task]:
    return store.fetch_matching(resolve_filter(flt, store), now)


# ---- fuzzy lookup ----


def find_task(search_title: str, store: TaskStore) -> Task | None:
    """
    Fuzzy title lookup: exact, then prefix, then substring, then shared word.

    Incomplete tasks are searched first; completed ones only when nothing is open.
    """
    wanted = (search_title or "").strip().lower()
    if not wanted:
        return None

    all_tasks = store.fetch_all_tasks()
    pool = [t for t in all_tasks if not t.is_completed] or all_tasks

    for match in (
        lambda title: title == wanted,
        lambda title: title.startswith(wanted),
        lambda title: wanted in title,
    ):
        for t in pool:
            if match(t.title.lower()):
                return t

    words = set(wanted.split())
    for t in pool:
        if words & set(t.title.lower().split()):
            return t
    return None


def find_tasks(names: Iterable[str], store: TaskStore) -> list[Task]:
    return [t for t in (find_task(n, store) for n in names) if t is not None]


def find_similar_tasks(search_title: str, store: TaskStore, limit: int = 3) -> str:
    """Up to `limit` open task titles that look like `search_title`, as "- title" lines."""
    wanted = (search_title or "").strip().lower()
    words = set(wanted.split())
    out: list[str] = []
    for t in store.fetch_all_tasks():
        if t.is_completed:
            continue
        title = t.title.lower()
        if (words & set(title.split())) or (wanted and wanted in title) or (title and title in wanted):
            out.append(f"- {t.title}")
            if len(out) >= limit:
                break
    return "\n".join(out)


def find_list(name: str, store: TaskStore) -> TaskList | None:
    """Exact (case-insensitive), then substring, then reverse substring match."""
    wanted = (name or "").strip().lower()
    if not wanted:
        return None
    lists = store.fetch_all_lists()
    for lst in lists:
        if lst.name.lower() == wanted:
            return lst
    for lst in lists:
        if wanted in lst.name.lower():
            return lst
    for lst in lists:
        if lst.name and lst.name.lower() in wanted:
            return lst
    return None


def available_list_names(store: TaskStore) -> str:
    lists = store.fetch_all_lists()
    if not lists:
        return "none"
    return ", ".join(lst.name for lst in lists)


# ---- dates ----


def parse_iso_date(raw: str | None, now: datetime | None = None) -> datetime | None:
    """
    Parse ISO 8601 as produced by models: date only, date-time, with or
    without a zone. Aware values are converted to naive local time.

    Anything else ("Oct 20", "20 October 2026 9am") goes through dateutil,
    with missing parts taken from today.
    """
    s = (raw or "").strip()
    if not s:
        return None
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        try:
            parsed = dateutil_parser.parse(s, default=start_of_day(now or datetime.now()))
        except (ParserError, ValueError, OverflowError):
            logger.debug("Could not parse date %r", raw)
            return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_iso_day(raw: str | None, now: datetime | None = None) -> datetime | None:
    parsed = parse_iso_date(raw, now)
    return start_of_day(parsed) if parsed is not None else None


def parse_weekday(day: str, now: datetime | None = None) -> datetime | None:
    """Next occurrence of a weekday name, always strictly after today."""
    target = _WEEKDAYS.get((day or "").strip().lower())
    if target is None:
        return None
    today = start_of_day(now or datetime.now())
    days = target - today.weekday()
    if days <= 0:
        days += 7
    return today + timedelta(days=days)


def calculate_new_date(when: str, specific_date: str | None = None, now: datetime | None = None) -> datetime | None:
    """today, tomorrow, next_week, next_month, specific_date or a weekday name."""
    today = start_of_day(now or datetime.now())
    key = (when or "").strip().lower()
    if key == "today":
        return today
    if key == "tomorrow":
        return today + timedelta(days=1)
    if key == "next_week":
        return today + timedelta(days=7)
    if key == "next_month":
        return add_months(today, 1)
    if key == "specific_date":
        return parse_iso_date(specific_date, now)
    return parse_weekday(key, now)


def parse_time(raw: str | None, on_date: datetime) -> datetime | None:
    """Apply "HH:MM" to a date; None for anything out of range."""
    parts = (raw or "").strip().split(":")
    if len(parts) < 2:
        return None
    try:
        hour, minute = int(parts[0]), int(parts[1])
    except ValueError:
        return None
    if not (0 <= hour < 24 and 0 <= minute < 60):
        return None
    return on_date.replace(hour=hour, minute=minute, second=0, microsecond=0)


def format_duration(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes}m"
    if minutes % 60 == 0:
        return f"{minutes // 60}h"
    return f"{minutes // 60}h {minutes % 60}m"


def format_relative_date(d: datetime, now: datetime | None = None) -> str:
    today = start_of_day(now or datetime.now())
    day = start_of_day(d)
    if day == today:
        return "today"
    if day == today + timedelta(days=1):
        return "tomorrow"
    if day == today - timedelta(days=1):
        return "yesterday"
    return f"{d:%A, %b} {d.day}"


def format_time(d: datetime) -> str:
    hour = d.hour % 12 or 12
    return f"{hour}:{d.minute:02d} {'AM' if d.hour < 12 else 'PM'}"


def format_task_titles(tasks: Sequence[Task], limit: int | None = None) -> str:
    """Bulleted titles; the tail is summarized as "...and N more"."""
    shown = tasks if limit is None else tasks[:limit]
    lines = [f"• {t.title}" for t in shown]
    if limit is not None and len(tasks) > limit:
        lines.append(f"...and {len(tasks) - limit} more")
    return "\n".join(lines)
