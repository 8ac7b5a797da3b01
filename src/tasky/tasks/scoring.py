# src/tasky/tasks/scoring.py

"""
AI priority score for tasks.

score = urgency * 3 + importance * 2 + quick_win * 1 + staleness * 1

The score is stored on the task and refreshed whenever a task is created,
updated, rescheduled or re-prioritized.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timedelta

from .models import Priority, Task, start_of_day

URGENCY_WEIGHT = 3.0
IMPORTANCE_WEIGHT = 2.0
QUICK_WIN_WEIGHT = 1.0
STALENESS_WEIGHT = 1.0


def _urgency_for(moment: datetime, now: datetime, *, is_due_date: bool) -> float:
    today = start_of_day(now)
    tomorrow = today + timedelta(days=1)
    day = start_of_day(moment)

    if is_due_date:
        if day < today:
            return 100.0
    elif moment < now:
        return 100.0
    if day == today:
        return 50.0
    if day == tomorrow:
        return 25.0
    return 0.0


def urgency_score(task: Task, now: datetime) -> float:
    # Scheduled time is checked first; a far-future slot falls through to the due date.
    if task.scheduled_time is not None:
        score = _urgency_for(task.scheduled_time, now, is_due_date=False)
        if score > 0:
            return score
    if task.due_date is not None:
        return _urgency_for(task.due_date, now, is_due_date=True)
    return 0.0


def importance_score(task: Task) -> float:
    if task.priority >= Priority.HIGH:
        return 30.0
    if task.priority == Priority.MEDIUM:
        return 15.0
    return 0.0


def quick_win_score(task: Task) -> float:
    return 10.0 if task.is_quick_win else 0.0


def staleness_score(task: Task, now: datetime) -> float:
    days = task.staleness_in_days(now)
    if days > 3:
        return float(min((days - 3) * 2, 20))
    return 0.0


def calculate_ai_priority_score(task: Task, now: datetime | None = None) -> float:
    now = now or datetime.now()
    return (
        urgency_score(task, now) * URGENCY_WEIGHT
        + importance_score(task) * IMPORTANCE_WEIGHT
        + quick_win_score(task) * QUICK_WIN_WEIGHT
        + staleness_score(task, now) * STALENESS_WEIGHT
    )


def sort_today_tasks(tasks: Iterable[Task]) -> list[Task]:
    """Incomplete first, then by AI score (desc), then by scheduled time."""
    return sorted(
        tasks,
        key=lambda t: (
            t.is_completed,
            -t.ai_priority_score,
            t.scheduled_time or datetime.max,
        ),
    )
