# src/tasky/tasks/goals.py

"""Goal statistics computed from linked tasks (nothing here is stored)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from .models import Goal, GoalStatus, Task

NEGLECT_DAYS = 7


@dataclass(slots=True, frozen=True)
class GoalStats:
    goal: Goal
    total: int
    completed: int
    pending: int
    weekly_velocity: float
    days_since_progress: int | None
    now: datetime

    @classmethod
    def for_goal(cls, goal: Goal, tasks: list[Task], now: datetime | None = None) -> GoalStats:
        now = now or datetime.now()
        done = [t for t in tasks if t.is_completed]
        week_ago = now - timedelta(days=7)
        recent = [t for t in done if t.completed_at is not None and t.completed_at >= week_ago]
        last = max((t.completed_at for t in done if t.completed_at is not None), default=None)
        return cls(
            goal=goal,
            total=len(tasks),
            completed=len(done),
            pending=len(tasks) - len(done),
            weekly_velocity=len(recent) / 7.0,
            days_since_progress=(now - last).days if last is not None else None,
            now=now,
        )

    @property
    def progress(self) -> float:
        if self.total == 0:
            return 0.0
        return self.completed / self.total

    @property
    def progress_percentage(self) -> int:
        return int(self.progress * 100)

    @property
    def progress_text(self) -> str:
        return f"{self.completed}/{self.total} tasks"

    @property
    def days_until_target(self) -> int | None:
        if self.goal.target_date is None:
            return None
        return (self.goal.target_date - self.now).days

    @property
    def is_overdue(self) -> bool:
        target = self.goal.target_date
        if target is None or self.goal.status == GoalStatus.COMPLETED:
            return False
        return target < self.now

    @property
    def estimated_completion_date(self) -> datetime | None:
        if self.pending <= 0 or self.weekly_velocity <= 0:
            return None
        days = math.ceil(self.pending / self.weekly_velocity)
        return self.now + timedelta(days=days)

    @property
    def estimated_completion_text(self) -> str | None:
        est = self.estimated_completion_date
        if est is None:
            return None
        return f"Est. completion: {est.strftime('%b')} {est.day}"

    @property
    def is_neglected(self) -> bool:
        if self.goal.status != GoalStatus.ACTIVE or self.pending <= 0:
            return False
        if self.days_since_progress is None:
            return (self.now - self.goal.created_at).days > NEGLECT_DAYS
        return self.days_since_progress > NEGLECT_DAYS
