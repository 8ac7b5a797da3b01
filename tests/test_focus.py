# tests/test_focus.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from tasky.errors import ConflictError, ValidationError
from tasky.tasks.focus import (
    FocusTimer,
    calculate_focus_statistics,
    focus_by_day,
    focus_rankings,
    format_seconds,
    format_seconds_change,
)
from tasky.tasks.models import start_of_day
from tasky.tasks.store import TaskStore


class ManualClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kw: float) -> None:
        self.now += timedelta(**kw)


def test_format_seconds() -> None:
    assert format_seconds(3900) == "1h 5m"
    assert format_seconds(59) == "0m"
    assert format_seconds_change(-600) == "-10m"
    assert format_seconds_change(0) == "+0m"


def test_timer_records_completed_session(store: TaskStore) -> None:
    clock = ManualClock(datetime.now() - timedelta(hours=1))
    timer = FocusTimer(store, clock=clock)
    task = store.create_task("Write")

    active = timer.start(task, minutes=3)
    # Clamped to the minimum.
    assert active.planned_minutes == 5
    assert timer.remaining_seconds() == 300

    clock.advance(minutes=6)
    session = timer.stop()
    assert session is not None
    assert session.completed
    assert session.duration_seconds == 360
    assert store.require_task(task.id).focus_time_seconds == 360
    assert timer.status() is None
    assert timer.stop() is None


def test_timer_early_stop_is_not_completed(store: TaskStore) -> None:
    clock = ManualClock(datetime.now())
    timer = FocusTimer(store, clock=clock)
    task = store.create_task("Read")
    timer.start(task, minutes=25)
    clock.advance(minutes=10)

    session = timer.stop()
    assert session is not None
    assert not session.completed


def test_timer_rejects_second_session_and_completed_task(store: TaskStore) -> None:
    timer = FocusTimer(store)
    a = store.create_task("a")
    b = store.create_task("b")
    timer.start(a)
    with pytest.raises(ConflictError):
        timer.start(b)
    timer.stop()

    store.complete_tasks([b])
    with pytest.raises(ValidationError):
        timer.start(store.require_task(b.id))


def test_statistics_and_rankings(store: TaskStore) -> None:
    now = datetime.now()
    a = store.create_task("a")
    b = store.create_task("b")
    store.add_focus_session(a.id, started_at=now, duration_seconds=1200)
    store.add_focus_session(b.id, started_at=now, duration_seconds=600)
    store.add_focus_session(a.id, started_at=start_of_day(now) - timedelta(hours=2), duration_seconds=300)

    stats = calculate_focus_statistics(store, now)
    assert stats.today_count == 2
    assert stats.today_seconds == 1800
    assert stats.yesterday_seconds == 300
    assert stats.today_seconds_change == 1500
    assert stats.total_formatted == "35m"

    ranks = focus_rankings(store)
    assert [(r.task_title, r.total_seconds) for r in ranks] == [("a", 1500), ("b", 600)]

    days = focus_by_day(store, start_of_day(now) - timedelta(days=2), start_of_day(now) + timedelta(days=1))
    assert [d.total_seconds for d in days] == [0, 300, 1800]
