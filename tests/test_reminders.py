# tests/test_reminders.py

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

import pytest

from tasky.tasks.models import start_of_day
from tasky.tasks.reminders import build_reminder, collect_reminders, run_reminder_loop

from .fakes import FakeMessenger

NOW = datetime(2025, 6, 10, 9, 0)


def test_build_reminder_for_scheduled_task(store) -> None:
    task = store.create_task("Standup", scheduled_time=NOW.replace(hour=8, minute=30), priority=3)

    reminder = build_reminder(task, NOW)

    assert reminder is not None
    assert reminder.text == "⏰ It's time for: 🔴 Standup (08:30)"


def test_build_reminder_for_overdue_task(store) -> None:
    task = store.create_task("Taxes", due_date=datetime(2025, 6, 9))

    reminder = build_reminder(task, NOW)

    assert reminder is not None
    assert reminder.text == "⚠️ Overdue: Taxes"


def test_build_reminder_skips_future_and_completed(store) -> None:
    later = store.create_task("Lunch", scheduled_time=NOW.replace(hour=12))
    done = store.create_task("Old", due_date=datetime(2025, 6, 1))
    done.is_completed = True

    assert build_reminder(later, NOW) is None
    assert build_reminder(done, NOW) is None


def test_collect_reminders_orders_scheduled_first_and_skips_sent(store) -> None:
    overdue = store.create_task("Taxes", due_date=datetime(2025, 6, 9))
    store.create_task("Review", due_date=NOW, scheduled_time=NOW.replace(hour=8))
    store.create_task("Standup", due_date=NOW, scheduled_time=NOW.replace(hour=7))
    store.create_task("Tomorrow", due_date=NOW + timedelta(days=1))

    texts = [r.text for r in collect_reminders(store, NOW, set())]
    assert texts == [
        "⏰ It's time for: Standup (07:00)",
        "⏰ It's time for: Review (08:00)",
        "⚠️ Overdue: Taxes",
    ]

    again = collect_reminders(store, NOW, {overdue.id})
    assert [r.task.title for r in again] == ["Standup", "Review"]


@pytest.mark.asyncio
async def test_reminder_loop_sends_each_task_once(store) -> None:
    today = start_of_day(datetime.now())
    store.create_task("Taxes", due_date=today - timedelta(days=1))

    messenger = FakeMessenger()
    runner = asyncio.create_task(run_reminder_loop(store, messenger, interval_seconds=0.01))

    # the loop never sleeps less than half a second, so this covers two passes
    await asyncio.sleep(0.7)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert messenger.sent == ["⚠️ Overdue: Taxes"]


@pytest.mark.asyncio
async def test_reminder_loop_retries_after_failed_send(store) -> None:
    today = start_of_day(datetime.now())
    store.create_task("Taxes", due_date=today - timedelta(days=1))

    messenger = FakeMessenger(fail_times=1)
    runner = asyncio.create_task(run_reminder_loop(store, messenger, interval_seconds=0.5))

    await asyncio.sleep(0.8)
    runner.cancel()
    with pytest.raises(asyncio.CancelledError):
        await runner

    assert messenger.sent == ["⚠️ Overdue: Taxes"]
    assert messenger.fail_times == 0
