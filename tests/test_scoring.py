# tests/test_scoring.py

from __future__ import annotations

from datetime import datetime, timedelta

from tasky.tasks.models import Priority, Task, start_of_day
from tasky.tasks.scoring import (
    calculate_ai_priority_score,
    importance_score,
    sort_today_tasks,
    staleness_score,
    urgency_score,
)

NOW = datetime(2025, 6, 10, 14, 0)
TODAY = start_of_day(NOW)


def _task(tid: str = "t", **kw) -> Task:
    kw.setdefault("created_at", NOW)
    return Task(id=tid, title=tid, **kw)


def test_urgency_by_due_date() -> None:
    assert urgency_score(_task(due_date=TODAY - timedelta(days=1)), NOW) == 100.0
    assert urgency_score(_task(due_date=TODAY), NOW) == 50.0
    assert urgency_score(_task(due_date=TODAY + timedelta(days=1)), NOW) == 25.0
    assert urgency_score(_task(due_date=TODAY + timedelta(days=5)), NOW) == 0.0
    assert urgency_score(_task(), NOW) == 0.0


def test_urgency_prefers_scheduled_time() -> None:
    # A slot that already passed today counts as overdue.
    assert urgency_score(_task(scheduled_time=NOW - timedelta(hours=1)), NOW) == 100.0
    assert urgency_score(_task(scheduled_time=NOW + timedelta(hours=1)), NOW) == 50.0
    far = _task(scheduled_time=NOW + timedelta(days=10), due_date=TODAY + timedelta(days=1))
    assert urgency_score(far, NOW) == 25.0


def test_importance_and_staleness() -> None:
    assert importance_score(_task(priority=Priority.HIGH)) == 30.0
    assert importance_score(_task(priority=Priority.MEDIUM)) == 15.0
    assert importance_score(_task(priority=Priority.LOW)) == 0.0

    assert staleness_score(_task(created_at=NOW - timedelta(days=3)), NOW) == 0.0
    assert staleness_score(_task(created_at=NOW - timedelta(days=10)), NOW) == 14.0
    assert staleness_score(_task(created_at=NOW - timedelta(days=60)), NOW) == 20.0


def test_weighted_total() -> None:
    t = _task(due_date=TODAY - timedelta(days=1), priority=Priority.HIGH, estimated_duration=10)
    # 100*3 + 30*2 + 10*1 + 0
    assert calculate_ai_priority_score(t, NOW) == 370.0


def test_sort_today_tasks() -> None:
    done = _task("done", is_completed=True, ai_priority_score=500)
    low = _task("low", ai_priority_score=10)
    high = _task("high", ai_priority_score=200)
    early = _task("early", ai_priority_score=10, scheduled_time=NOW)

    ordered = sort_today_tasks([done, low, high, early])
    assert [t.id for t in ordered] == ["high", "early", "low", "done"]
