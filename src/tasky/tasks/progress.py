# src/tasky/tasks/progress.py

"""
Progress statistics: streaks, achievements, activity charts and scores.

Everything is computed from an in-memory task list in a single pass or two;
callers fetch tasks from the store and pass them in.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import StrEnum

from .models import Task, start_of_day
from .recurrence import add_months


class ProgressPeriod(StrEnum):
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"

    @property
    def days(self) -> int:
        return {"week": 7, "month": 30, "year": 365}[self.value]

    @property
    def heatmap_days(self) -> int:
        return {"week": 28, "month": 84, "year": 365}[self.value]


@dataclass(slots=True, frozen=True)
class Streak:
    current: int
    record: int

    @property
    def message(self) -> str:
        return streak_message(self.current, self.record)


@dataclass(slots=True, frozen=True)
class Achievement:
    id: int
    name: str
    icon: str
    description: str
    unlocked: bool
    progress: int
    required: int


@dataclass(slots=True, frozen=True)
class ActivityBucket:
    label: str
    total: int
    completed: int


@dataclass(slots=True, frozen=True)
class PersonalBest:
    metric: str
    value: int
    period: str


@dataclass(slots=True, frozen=True)
class ProgressStatistics:
    period: ProgressPeriod
    streak: Streak
    tasks_completed: int
    tasks_completed_change: int
    focus_hours: float
    completion_rate: float
    avg_per_day: float
    consistency: float
    productivity_score: int
    activity: list[ActivityBucket]
    heatmap: list[int]
    personal_best: PersonalBest | None
    achievements: list[Achievement]


def _completion_days(tasks: list[Task]) -> list[date]:
    return [t.completed_at.date() for t in tasks if t.is_completed and t.completed_at is not None]


def calculate_streak(tasks: list[Task], now: datetime | None = None) -> Streak:
    """
    Current streak counts consecutive days with completions back from today.
    An empty today does not break the streak (the day is not over yet).
    """
    today = (now or datetime.now()).date()
    days = set(_completion_days(tasks))

    current = 0
    check = today
    while True:
        if check in days:
            current += 1
            check -= timedelta(days=1)
            continue
        if current == 0 and check == today:
            check -= timedelta(days=1)
            continue
        break

    record = 0
    temp = 0
    previous: date | None = None
    for day in sorted(_completion_days(tasks), reverse=True):
        if previous is None:
            temp = 1
        else:
            diff = (previous - day).days
            if diff == 0:
                continue
            if diff == 1:
                temp += 1
                record = max(record, temp)
            else:
                temp = 1
        previous = day

    record = max(record, temp, current)
    return Streak(current=current, record=record)


def streak_message(current: int, record: int) -> str:
    remaining = record - current
    if current == 0:
        return "Complete a task today to start your streak!"
    if current >= record:
        return "New record! You're unstoppable! 🎉"
    if remaining <= 3:
        return f"{remaining} more day{'' if remaining == 1 else 's'} to beat your record! 🎯"
    return "Building momentum! 💪"


def max_completed_in_one_day(tasks: list[Task]) -> int:
    counts = Counter(_completion_days(tasks))
    return max(counts.values(), default=0)


def week_completion_rate(tasks: list[Task], now: datetime | None = None) -> float | None:
    """Percent of tasks created in the last 7 days that are done; None when there are none."""
    week_ago = (now or datetime.now()) - timedelta(days=7)
    recent = [t for t in tasks if t.created_at >= week_ago]
    if not recent:
        return None
    return sum(1 for t in recent if t.is_completed) / len(recent) * 100


def calculate_achievements(tasks: list[Task], streak: int, now: datetime | None = None) -> list[Achievement]:
    completed = sum(1 for t in tasks if t.is_completed)
    focus_hours = sum(t.focus_time_seconds for t in tasks) / 3600.0
    best_day = max_completed_in_one_day(tasks)
    rate = week_completion_rate(tasks, now)

    return [
        Achievement(1, "Week Warrior", "🔥", "7 day streak", streak >= 7, streak, 7),
        Achievement(2, "Speed Demon", "⚡", "10 tasks in 1 day", best_day >= 10, best_day, 10),
        Achievement(
            3,
            "Perfectionist",
            "🎯",
            "100% completion rate",
            rate is not None and rate >= 100,
            int(rate or 0),
            100,
        ),
        Achievement(4, "Diamond", "💎", "30 day streak", streak >= 30, streak, 30),
        Achievement(5, "Champion", "🏆", "100 tasks", completed >= 100, completed, 100),
        Achievement(6, "All-Star", "🌟", "30 focus hours", focus_hours >= 30, int(focus_hours), 30),
    ]


def newly_unlocked(previous: set[int], achievements: list[Achievement]) -> list[Achievement]:
    """Achievements unlocked now that were not unlocked in the previous snapshot."""
    return [a for a in achievements if a.unlocked and a.id not in previous]


def _activity_date(task: Task) -> datetime:
    return task.completed_at or task.created_at


def calculate_activity(tasks: list[Task], period: ProgressPeriod, now: datetime | None = None) -> list[ActivityBucket]:
    """
    Week: last 7 days labelled by weekday.
    Month: last 4 weeks labelled W1..W4 (W1 is the current week).
    Year: last 12 months labelled by month abbreviation.
    """
    now = now or datetime.now()
    buckets: list[ActivityBucket] = []

    count = {ProgressPeriod.WEEK: 7, ProgressPeriod.MONTH: 4, ProgressPeriod.YEAR: 12}[period]
    for i in reversed(range(count)):
        if period == ProgressPeriod.WEEK:
            start = start_of_day(now - timedelta(days=i))
            end = start + timedelta(days=1)
            label = start.strftime("%a")
        elif period == ProgressPeriod.MONTH:
            start = start_of_day(now - timedelta(weeks=i))
            end = start + timedelta(weeks=1)
            label = f"W{i + 1}"
        else:
            start = start_of_day(add_months(now, -i))
            end = add_months(start, 1)
            label = start.strftime("%b")

        in_range = [t for t in tasks if start <= _activity_date(t) < end]
        buckets.append(
            ActivityBucket(label=label, total=len(in_range), completed=sum(1 for t in in_range if t.is_completed))
        )
    return buckets


def calculate_heatmap(tasks: list[Task], period: ProgressPeriod, now: datetime | None = None) -> list[int]:
    """Completions per day, oldest first."""
    today = (now or datetime.now()).date()
    counts = Counter(_completion_days(tasks))
    return [counts.get(today - timedelta(days=i), 0) for i in reversed(range(period.heatmap_days))]


def calculate_consistency(tasks: list[Task], period: ProgressPeriod) -> float:
    active_days = set(_completion_days(tasks))
    return min(100.0, max(0.0, len(active_days) / period.days * 100))


def productivity_score(completion_rate: float, consistency: float) -> int:
    return min(100, max(0, int(completion_rate * 0.6 + consistency * 0.4)))


def calculate_personal_best(tasks: list[Task]) -> PersonalBest | None:
    """Week (Monday-based) with the most completions."""
    weeks: Counter[date] = Counter()
    for day in _completion_days(tasks):
        weeks[day - timedelta(days=day.weekday())] += 1
    if not weeks:
        return None
    week_start, value = max(weeks.items(), key=lambda kv: kv[1])
    return PersonalBest(metric="tasks", value=value, period=week_start.strftime("%B %Y"))


def calculate_statistics(tasks: list[Task], period: ProgressPeriod, now: datetime | None = None) -> ProgressStatistics:
    now = now or datetime.now()
    period_start = now - timedelta(days=period.days)
    previous_start = now - timedelta(days=period.days * 2)

    current = [t for t in tasks if period_start <= _activity_date(t) <= now]
    previous = [t for t in tasks if previous_start <= _activity_date(t) < period_start]

    completed = sum(1 for t in current if t.is_completed)
    previous_completed = sum(1 for t in previous if t.is_completed)
    completion_rate = completed / len(current) * 100 if current else 0.0
    consistency = calculate_consistency(current, period)
    streak = calculate_streak(tasks, now)

    return ProgressStatistics(
        period=period,
        streak=streak,
        tasks_completed=completed,
        tasks_completed_change=completed - previous_completed,
        focus_hours=sum(t.focus_time_seconds for t in current) / 3600.0,
        completion_rate=completion_rate,
        avg_per_day=completed / period.days,
        consistency=consistency,
        productivity_score=productivity_score(completion_rate, consistency),
        activity=calculate_activity(tasks, period, now),
        heatmap=calculate_heatmap(tasks, period, now),
        personal_best=calculate_personal_best(tasks),
        achievements=calculate_achievements(tasks, streak.current, now),
    )
