# src/tasky/tasks/reminders.py

"""
Due-task reminders.

A small polling loop that:
- looks for incomplete tasks whose scheduled time has been reached,
- or that are overdue at the start of a new day,
- sends one message per task via an injected messenger port.

Sent ids are remembered for the life of the loop, so each task is announced once.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime

from ..core.ports import OutboundMessenger
from .models import Task, priority_emoji, start_of_day
from .store import TaskStore

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class Reminder:
    task: Task
    text: str


def build_reminder(task: Task, now: datetime) -> Reminder | None:
    """Reminder for a task that needs attention at `now`, else None."""
    if task.is_completed:
        return None

    prefix = priority_emoji(task.priority)
    title = f"{prefix} {task.title}" if prefix else task.title

    if task.scheduled_time is not None and task.scheduled_time <= now:
        if start_of_day(task.scheduled_time) == start_of_day(now):
            return Reminder(task=task, text=f"⏰ It's time for: {title} ({task.scheduled_time:%H:%M})")

    if task.is_overdue(now):
        return Reminder(task=task, text=f"⚠️ Overdue: {title}")

    return None


def collect_reminders(store: TaskStore, now: datetime, already_sent: set[str]) -> list[Reminder]:
    start = start_of_day(now)
    candidates = {t.id: t for t in store.fetch_overdue_tasks(now)}
    for t in store.fetch_today_tasks(now):
        candidates.setdefault(t.id, t)

    out: list[Reminder] = []
    for task in candidates.values():
        if task.id in already_sent:
            continue
        reminder = build_reminder(task, now)
        if reminder is not None:
            out.append(reminder)

    # Scheduled reminders first, in time order.
    out.sort(key=lambda r: (r.task.scheduled_time is None, r.task.scheduled_time or start))
    return out


async def run_reminder_loop(
        store: TaskStore,
        messenger: OutboundMessenger,
        *,
        interval_seconds: float = 60.0,
) -> None:
    """
    Simple polling loop.

    Every interval_seconds:
    - collect tasks that became due (or overdue) and were not announced yet
    - send via messenger.send_text(...)
    - remember the id only after a successful send

    To stop the loop, cancel the coroutine/task.
    """
    sleep_s = max(0.5, float(interval_seconds))
    sent: set[str] = set()

    while True:
        now = datetime.now()

        try:
            reminders = collect_reminders(store, now, sent)
        except Exception:
            logger.exception("collect_reminders failed")
            reminders = []

        for reminder in reminders:
            try:
                await messenger.send_text(text=reminder.text)
                sent.add(reminder.task.id)
                logger.info("Reminder sent task=%s", reminder.task.id)
            except Exception:
                logger.exception("reminder send failed task=%s", reminder.task.id)

        await asyncio.sleep(sleep_s)
