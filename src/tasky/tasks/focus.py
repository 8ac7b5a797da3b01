# src/tasky/tasks/focus.py

"""
Focus (Pomodoro) sessions: the in-process timer and the statistics built
from recorded sessions.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..errors import ConflictError, ValidationError
from .models import FocusSession, Task, start_of_day
from .store import TaskStore

logger = logging.getLogger(__name__)

MIN_MINUTES = 5
MAX_MINUTES = 120
DEFAULT_MINUTES = 25


def format_seconds(seconds: int) -> str:
    hours, rest = divmod(abs(int(seconds)), 3600)
    minutes = rest // 60
    return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"


def format_seconds_change(seconds: int) -> str:
    sign = "+" if seconds >= 0 else "-"
    return sign + format_seconds(seconds)


@dataclass(slots=True, frozen=True)
class ActiveFocus:
    task_id: str
    task_title: str
    planned_minutes: int
    started_at: datetime

    @property
    def ends_at(self) -> datetime:
        return self.started_at + timedelta(minutes=self.planned_minutes)


class FocusTimer:
    """
    Single active focus session.

    stop() records the elapsed time as a FocusSession; the session counts as
    completed once the planned duration has elapsed.
    """

    def __init__(self, store: TaskStore, *, clock: Callable[[], datetime] = datetime.now) -> None:
        self._store = store
        self._clock = clock
        self._lock = threading.Lock()
        self._active: ActiveFocus | None = None

    def status(self) -> ActiveFocus | None:
        return self._active

    def start(self, task: Task, minutes: int = DEFAULT_MINUTES) -> ActiveFocus:
        if task.is_completed:
            raise ValidationError(f"'{task.title}' is already completed.")
        minutes = max(MIN_MINUTES, min(MAX_MINUTES, int(minutes)))
        with self._lock:
            if self._active is not None:
                raise ConflictError(f"Already focusing on '{self._active.task_title}'.")
            self._active = ActiveFocus(
                task_id=task.id,
                task_title=task.title,
                planned_minutes=minutes,
                started_at=self._clock(),
            )
            logger.info("Focus started task=%s minutes=%s", task.id, minutes)
            return self._active

    def stop(self) -> FocusSession | None:
        with self._lock:
            active = self._active
            self._active = None
        if active is None:
            return None

        now = self._clock()
        elapsed = int((now - active.started_at).total_seconds())
        session = self._store.add_focus_session(
            active.task_id,
            started_at=active.started_at,
            duration_seconds=elapsed,
            completed=now >= active.ends_at,
        )
        logger.info("Focus stopped task=%s seconds=%s completed=%s", active.task_id, elapsed, session.completed)
        return session

    def remaining_seconds(self) -> int:
        active = self._active
        if active is None:
            return 0
        return max(0, int((active.ends_at - self._clock()).total_seconds()))


@dataclass(slots=True, frozen=True)
class DayFocus:
    day: datetime
    total_seconds: int
    session_count: int

    @property
    def intensity(self) -> float:
        # 4 hours of focus is full intensity.
        return min(self.total_seconds / 14400.0, 1.0)


@dataclass(slots=True, frozen=True)
class TaskFocusRanking:
    task_id: str
    task_title: str
    list_name: str | None
    total_seconds: int
    session_count: int


@dataclass(slots=True, frozen=True)
class FocusStatistics:
    today_count: int = 0
    today_seconds: int = 0
    yesterday_count: int = 0
    yesterday_seconds: int = 0
    total_count: int = 0
    total_seconds: int = 0

    @property
    def today_count_change(self) -> int:
        return self.today_count - self.yesterday_count

    @property
    def today_seconds_change(self) -> int:
        return self.today_seconds - self.yesterday_seconds

    @property
    def today_formatted(self) -> str:
        return format_seconds(self.today_seconds)

    @property
    def total_formatted(self) -> str:
        return format_seconds(self.total_seconds)


def calculate_focus_statistics(store: TaskStore, now: datetime | None = None) -> FocusStatistics:
    today = store.fetch_today_focus_sessions(now)
    yesterday = store.fetch_yesterday_focus_sessions(now)
    everything = store.fetch_all_focus_sessions()
    return FocusStatistics(
        today_count=len(today),
        today_seconds=sum(s.duration_seconds for s in today),
        yesterday_count=len(yesterday),
        yesterday_seconds=sum(s.duration_seconds for s in yesterday),
        total_count=len(everything),
        total_seconds=sum(s.duration_seconds for s in everything),
    )


def focus_by_day(store: TaskStore, start: datetime, end: datetime) -> list[DayFocus]:
    """Per-day totals in [start, end), zero-filled for days without sessions."""
    totals: dict[datetime, list[int]] = {}
    for s in store.fetch_focus_sessions_between(start, end):
        bucket = totals.setdefault(start_of_day(s.started_at), [0, 0])
        bucket[0] += s.duration_seconds
        bucket[1] += 1

    out: list[DayFocus] = []
    day = start_of_day(start)
    while day < end:
        seconds, count = totals.get(day, (0, 0))
        out.append(DayFocus(day=day, total_seconds=seconds, session_count=count))
        day += timedelta(days=1)
    return out


def focus_rankings(
    store: TaskStore,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[TaskFocusRanking]:
    if start is not None and end is not None:
        sessions = store.fetch_focus_sessions_between(start, end)
    else:
        sessions = store.fetch_all_focus_sessions()

    per_task: dict[str, list[int]] = {}
    for s in sessions:
        if s.task_id is None:
            continue
        bucket = per_task.setdefault(s.task_id, [0, 0])
        bucket[0] += s.duration_seconds
        bucket[1] += 1

    lists = {lst.id: lst.name for lst in store.fetch_all_lists()}
    out: list[TaskFocusRanking] = []
    for task_id, (seconds, count) in per_task.items():
        task = store.get_task(task_id)
        if task is None:
            continue
        out.append(
            TaskFocusRanking(
                task_id=task_id,
                task_title=task.title,
                list_name=lists.get(task.list_id or ""),
                total_seconds=seconds,
                session_count=count,
            )
        )
    out.sort(key=lambda r: r.total_seconds, reverse=True)
    return out
