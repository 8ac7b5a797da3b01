# tests/test_helpers.py

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from tasky.ai.helpers import (
    TaskFilter,
    calculate_new_date,
    find_list,
    find_similar_tasks,
    find_task,
    format_duration,
    format_relative_date,
    format_task_titles,
    format_time,
    parse_iso_date,
    parse_time,
    parse_weekday,
    resolve_filter,
)
from tasky.errors import NotFoundError
from tasky.tasks.store import TaskStore

NOW = datetime(2025, 6, 10, 15, 0)  # Tuesday
TODAY = datetime(2025, 6, 10)


def test_find_task_prefers_exact_then_prefix_then_substring(store: TaskStore) -> None:
    store.create_task("Call mom tonight")
    exact = store.create_task("Call mom")
    assert find_task("call MOM", store).id == exact.id

    store.delete_task(exact.id)
    assert find_task("call mom", store).title == "Call mom tonight"
    assert find_task("mom tonight", store).title == "Call mom tonight"
    assert find_task("tonight pizza", store).title == "Call mom tonight"
    assert find_task("zzz", store) is None
    assert find_task("", store) is None


def test_find_task_searches_open_tasks_first(store: TaskStore) -> None:
    done = store.create_task("Report")
    store.complete_tasks([done])
    assert find_task("report", store).id == done.id

    open_one = store.create_task("Report draft")
    assert find_task("report", store).id == open_one.id


def test_find_similar_tasks(store: TaskStore) -> None:
    store.create_task("Write report")
    store.create_task("Read report")
    store.create_task("Gym")
    lines = find_similar_tasks("report", store).splitlines()
    assert sorted(lines) == ["- Read report", "- Write report"]


def test_find_list_fuzzy(store: TaskStore) -> None:
    work = store.create_list("Work Projects")
    assert find_list("work projects", store).id == work.id
    assert find_list("work", store).id == work.id
    assert find_list("my work projects list", store).id == work.id
    assert find_list("garden", store) is None


def test_resolve_filter(store: TaskStore) -> None:
    named = store.create_task("Taxes")
    crit = resolve_filter(TaskFilter.from_args({"taskNames": "taxes", "status": "overdue"}), store)
    assert crit.task_ids == [named.id]
    assert not crit.is_overdue

    crit = resolve_filter(
        TaskFilter.from_args({"status": "today", "priority": "high", "timeRange": "older_than_month"}),
        store,
    )
    assert crit.is_due_today
    assert crit.is_completed is False
    assert crit.priority_level == 3
    assert crit.older_than_days == 30

    with pytest.raises(NotFoundError, match="Could not find list 'Garden'"):
        resolve_filter(TaskFilter.from_args({"listName": "Garden"}), store)


def test_parse_iso_date_variants() -> None:
    assert parse_iso_date("2025-06-12") == datetime(2025, 6, 12)
    assert parse_iso_date("2025-06-12T09:30:00") == datetime(2025, 6, 12, 9, 30)
    aware = parse_iso_date("2025-06-12T09:30:00Z")
    assert aware is not None and aware.tzinfo is None
    assert aware == datetime(2025, 6, 12, 9, 30, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert parse_iso_date("not a date") is None
    assert parse_iso_date(None) is None


def test_parse_iso_date_accepts_written_dates() -> None:
    assert parse_iso_date("Oct 20", NOW) == datetime(2025, 10, 20)
    assert parse_iso_date("20 October 2026 9am", NOW) == datetime(2026, 10, 20, 9, 0)
    assert parse_iso_date("June 12, 2025 14:30", NOW) == datetime(2025, 6, 12, 14, 30)
    assert calculate_new_date("specific_date", "Dec 24", now=NOW) == datetime(2025, 12, 24)


def test_relative_dates() -> None:
    assert parse_weekday("friday", NOW) == TODAY + timedelta(days=3)
    # Same weekday means next week.
    assert parse_weekday("Tuesday", NOW) == TODAY + timedelta(days=7)
    assert calculate_new_date("tomorrow", now=NOW) == TODAY + timedelta(days=1)
    assert calculate_new_date("next_month", now=NOW) == datetime(2025, 7, 10)
    assert calculate_new_date("specific_date", "2025-12-24", now=NOW) == datetime(2025, 12, 24)
    assert calculate_new_date("someday", now=NOW) is None


def test_parse_time() -> None:
    assert parse_time("14:05", TODAY) == datetime(2025, 6, 10, 14, 5)
    assert parse_time("25:00", TODAY) is None
    assert parse_time("noon", TODAY) is None


def test_formatting() -> None:
    assert format_duration(45) == "45m"
    assert format_duration(120) == "2h"
    assert format_duration(95) == "1h 35m"
    assert format_time(datetime(2025, 1, 1, 0, 5)) == "12:05 AM"
    assert format_time(datetime(2025, 1, 1, 13, 0)) == "1:00 PM"
    assert format_relative_date(TODAY + timedelta(days=1), NOW) == "tomorrow"
    assert format_relative_date(TODAY + timedelta(days=3), NOW) == "Friday, Jun 13"


def test_format_task_titles(store: TaskStore) -> None:
    tasks = [store.create_task(f"t{i}") for i in range(4)]
    assert format_task_titles(tasks, limit=2) == "• t0\n• t1\n...and 2 more"
