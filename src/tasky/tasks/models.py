# src/tasky/tasks/models.py

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum, StrEnum

from .recurrence import RecurrencePattern, parse_days


def new_id() -> str:
    return str(uuid.uuid4())


def start_of_day(d: datetime) -> datetime:
    return d.replace(hour=0, minute=0, second=0, microsecond=0)


class Priority(IntEnum):
    """Task priority. Higher is more important."""

    NONE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3

    @classmethod
    def from_db(cls, raw: int | None) -> Priority:
        try:
            return cls(int(raw or 0))
        except ValueError:
            return cls.NONE

    @classmethod
    def from_name(cls, raw: str | None) -> Priority:
        return {
            "high": cls.HIGH,
            "medium": cls.MEDIUM,
            "low": cls.LOW,
        }.get((raw or "").strip().lower(), cls.NONE)


def priority_name(priority: int) -> str:
    return {3: "high", 2: "medium", 1: "low"}.get(int(priority), "none")


def priority_emoji(priority: int) -> str:
    return {3: "🔴", 2: "🟠", 1: "🟡"}.get(int(priority), "")


class GoalStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    ABANDONED = "abandoned"

    @classmethod
    def from_db(cls, raw: str | None) -> GoalStatus:
        if not raw:
            return cls.ACTIVE
        try:
            return cls(raw)
        except ValueError:
            return cls.ACTIVE


@dataclass(slots=True)
class Task:
    id: str
    title: str
    notes: str | None = None
    is_completed: bool = False
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    due_date: datetime | None = None
    scheduled_time: datetime | None = None
    scheduled_end_time: datetime | None = None
    priority: int = 0
    priority_order: int = 0
    list_id: str | None = None
    is_recurring: bool = False
    recurrence_days: str | None = None
    recurrence: RecurrencePattern | None = None
    estimated_duration: int = 0
    focus_time_seconds: int = 0
    reschedule_count: int = 0
    ai_priority_score: float = 0.0
    # Occurrence spawned when this recurring task was completed.
    next_occurrence_id: str | None = None

    def is_overdue(self, now: datetime | None = None) -> bool:
        if self.is_completed or self.due_date is None:
            return False
        return self.due_date < start_of_day(now or datetime.now())

    def is_due_today(self, now: datetime | None = None) -> bool:
        if self.due_date is None:
            return False
        return self.due_date.date() == (now or datetime.now()).date()

    def is_upcoming(self, now: datetime | None = None) -> bool:
        if self.due_date is None:
            return False
        now = now or datetime.now()
        return now <= self.due_date <= now + timedelta(days=7)

    @property
    def is_quick_win(self) -> bool:
        return 0 < self.estimated_duration <= 15

    @property
    def is_stuck(self) -> bool:
        return self.reschedule_count >= 3 and not self.is_completed

    def staleness_in_days(self, now: datetime | None = None) -> int:
        return max(0, ((now or datetime.now()) - self.created_at).days)

    @property
    def formatted_focus_time(self) -> str:
        minutes = self.focus_time_seconds // 60
        hours, rest = divmod(minutes, 60)
        if hours > 0:
            return f"{hours}h {rest}m"
        return f"{rest}m"

    @property
    def formatted_estimated_duration(self) -> str | None:
        if self.estimated_duration <= 0:
            return None
        if self.estimated_duration < 60:
            return f"{self.estimated_duration} min"
        hours, rest = divmod(self.estimated_duration, 60)
        return f"{hours}h" if rest == 0 else f"{hours}h {rest}m"

    @property
    def recurrence_day_set(self) -> set[int]:
        return parse_days(self.recurrence_days)

    def should_recur_on(self, weekday: int) -> bool:
        days = self.recurrence_day_set
        return not days or weekday in days


@dataclass(slots=True)
class Subtask:
    id: str
    task_id: str
    title: str
    is_completed: bool = False
    sort_order: int = 0
    created_at: datetime = field(default_factory=datetime.now)


def subtask_progress(subtasks: list[Subtask]) -> float:
    if not subtasks:
        return 0.0
    return sum(1 for s in subtasks if s.is_completed) / len(subtasks)


def subtask_progress_string(subtasks: list[Subtask]) -> str:
    done = sum(1 for s in subtasks if s.is_completed)
    return f"{done}/{len(subtasks)}"


@dataclass(slots=True)
class Tag:
    id: str
    name: str
    color_hex: str | None = None
    sort_order: int = 0
    created_at: datetime = field(default_factory=datetime.now)


@dataclass(slots=True)
class TaskList:
    id: str
    name: str
    color_hex: str = "007AFF"
    icon_name: str = "list.bullet"
    sort_order: int = 0
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def is_inbox(self) -> bool:
        return self.name == "Inbox"


@dataclass(slots=True)
class Goal:
    id: str
    name: str
    notes: str | None = None
    status: GoalStatus = GoalStatus.ACTIVE
    target_date: datetime | None = None
    created_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    color_hex: str | None = None
    icon_name: str | None = None


@dataclass(slots=True)
class FocusSession:
    id: str
    task_id: str | None
    started_at: datetime
    duration_seconds: int
    completed: bool = True


@dataclass(slots=True, frozen=True)
class DeletedTaskInfo:
    """Snapshot used to recreate a deleted task on undo."""

    title: str
    notes: str | None
    due_date: datetime | None
    scheduled_time: datetime | None
    scheduled_end_time: datetime | None
    priority: int
    list_id: str | None
    is_recurring: bool
    estimated_duration: int

    @classmethod
    def from_task(cls, task: Task) -> DeletedTaskInfo:
        return cls(
            title=task.title,
            notes=task.notes,
            due_date=task.due_date,
            scheduled_time=task.scheduled_time,
            scheduled_end_time=task.scheduled_end_time,
            priority=task.priority,
            list_id=task.list_id,
            is_recurring=task.is_recurring,
            estimated_duration=task.estimated_duration,
        )
