# tests/test_task_tools.py

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from tasky.core.events import Event, Notification
from tasky.core.state import AppState
from tasky.memory.models import ContextCategory
from tasky.tasks.models import Priority, start_of_day


@pytest.fixture()
def events(state: AppState) -> list[Event]:
    seen: list[Event] = []
    state.notifications.subscribe(None, seen.append)
    return seen


def _names(events: list[Event]) -> list[Notification]:
    return [e.name for e in events if e.name != Notification.TOOL_CALLED]


def test_create_single_task_defaults_to_today(state: AppState, events: list[Event]) -> None:
    reply = state.tools.call("createTasks", {"tasks": [{"title": "Buy milk"}]})

    assert reply == '✓ Created task: "Buy milk"'
    (task,) = state.store.fetch_all_tasks()
    assert task.due_date == start_of_day(datetime.now())
    assert _names(events) == [Notification.TASKS_CREATED]
    assert events[-1].payload["tasks"][0]["title"] == "Buy milk"
    assert state.undo.has_undo_available
    assert state.usage.usage_count("createTasks") == 1


def test_create_skips_invalid_and_notes_missing_list(state: AppState) -> None:
    reply = state.tools.call(
        "createTasks",
        {
            "tasks": [
                {"title": "a", "listName": "Garden", "priority": "high"},
                {"title": "  "},
                {"title": "b", "estimatedMinutes": 9999},
            ]
        },
    )

    assert reply.startswith("✓ Created 2 of 3 tasks:\n• a\n• b")
    assert "(Note: List 'Garden' was not found, task added to Inbox)" in reply
    by_title = {t.title: t for t in state.store.fetch_all_tasks()}
    assert by_title["a"].priority == Priority.HIGH
    assert by_title["a"].list_id is None
    assert by_title["b"].estimated_duration == 480


def test_create_reads_written_due_dates(state: AppState) -> None:
    reply = state.tools.call(
        "createTasks",
        {"tasks": [{"title": "Dentist", "dueDate": "Dec 24"}, {"title": "Gym", "dueDate": "whenever works"}]},
    )

    assert reply.endswith("(Note: Couldn't read due date 'whenever works'; used today instead)")
    by_title = {t.title: t for t in state.store.fetch_all_tasks()}
    assert by_title["Dentist"].due_date == datetime(datetime.now().year, 12, 24)
    assert by_title["Gym"].due_date == start_of_day(datetime.now())


def test_create_learns_people_and_goals(state: AppState) -> None:
    state.tools.call(
        "createTasks",
        {"tasks": [{"title": "Email Sarah", "relatedPerson": "Sarah", "relatedGoal": "Promotion"}]},
    )
    assert state.context_store.get(ContextCategory.PERSON, "sarah") is not None
    assert state.context_store.get(ContextCategory.GOAL, "promotion") is not None


def test_create_undo_removes_tasks(state: AppState) -> None:
    state.tools.call("createTasks", {"tasks": [{"title": "a"}, {"title": "b"}]})
    action = state.undo.perform_undo()
    assert action is not None and action.description == "Created 2 tasks"
    assert state.store.count_tasks() == 0


def test_create_requires_tasks(state: AppState) -> None:
    assert state.tools.call("createTasks", {"tasks": []}) == "Missing required argument(s) for createTasks: tasks."


def test_rejected_call_is_still_tracked(state: AppState, events: list[Event]) -> None:
    state.tools.call("createTasks", {})

    assert state.usage.usage_count("createTasks") == 1
    assert [e.payload["tool_name"] for e in events if e.name == Notification.TOOL_CALLED] == ["createTasks"]
    assert state.store.count_tasks() == 0


def test_complete_single_task_is_undoable(state: AppState, events: list[Event]) -> None:
    t = state.store.create_task("Laundry")
    reply = state.tools.call("completeTasks", {"filter": {"taskNames": ["laundry"]}})

    assert reply == "✓ Completed 'Laundry'"
    assert Notification.TASK_COMPLETED in _names(events)
    assert state.tools.call("completeTasks", {"filter": {"taskNames": ["laundry"]}}) == "'Laundry' is already complete."

    state.undo.perform_undo()
    assert not state.store.require_task(t.id).is_completed


def test_complete_bulk_posts_bulk_notification(state: AppState, events: list[Event]) -> None:
    yesterday = start_of_day(datetime.now()) - timedelta(days=1)
    for title in ("a", "b", "c", "d"):
        state.store.create_task(title, due_date=yesterday)

    reply = state.tools.call("completeTasks", {"filter": {"status": "overdue"}})

    assert reply.startswith("✓ Completed 4 tasks: ")
    assert reply.endswith(" and 1 more")
    assert _names(events) == [Notification.BULK_TASKS_COMPLETED]
    assert not state.undo.has_undo_available


def test_unmatched_task_name_matches_nothing(state: AppState) -> None:
    state.store.create_task("Laundry")
    reply = state.tools.call("completeTasks", {"filter": {"taskNames": ["quarterly taxes"]}})
    assert reply == "No tasks found matching your criteria."
    assert state.store.fetch_completed_tasks() == []


def test_unknown_list_in_filter(state: AppState) -> None:
    reply = state.tools.call("completeTasks", {"filter": {"listName": "Garden"}})
    assert reply == "Could not find list 'Garden'."


def test_reschedule_single_and_undo(state: AppState) -> None:
    today = start_of_day(datetime.now())
    t = state.store.create_task("Dentist", due_date=today)

    reply = state.tools.call(
        "rescheduleTasks",
        {"filter": {"taskNames": ["dentist"]}, "targetDate": "tomorrow", "time": "14:30"},
    )

    assert reply == "✓ Rescheduled 'Dentist' to tomorrow at 2:30 PM"
    got = state.store.require_task(t.id)
    assert got.due_date == today + timedelta(days=1)
    assert got.scheduled_time == today + timedelta(days=1, hours=14, minutes=30)
    assert got.reschedule_count == 1

    state.undo.perform_undo()
    assert state.store.require_task(t.id).due_date == today


def test_reschedule_rejects_unknown_date(state: AppState) -> None:
    state.store.create_task("x")
    reply = state.tools.call("rescheduleTasks", {"filter": {"taskNames": ["x"]}, "targetDate": "someday"})
    assert reply.startswith("Could not understand the date 'someday'.")


def test_delete_requires_confirmation_for_three_or_more(state: AppState) -> None:
    for title in ("a", "b", "c"):
        state.store.create_task(title, notes="old")

    preview = state.tools.call("deleteTasks", {"filter": {}})
    assert preview == "Please specify which tasks to delete."

    preview = state.tools.call("deleteTasks", {"filter": {"status": "incomplete"}})
    assert preview.startswith("This will delete 3 tasks:")
    assert state.store.count_tasks() == 3

    done = state.tools.call("deleteTasks", {"filter": {"status": "incomplete"}, "confirmed": True})
    assert done.startswith("✓ Deleted 3 tasks:")
    assert state.store.count_tasks() == 0


def test_delete_all_needs_confirmation(state: AppState) -> None:
    state.store.create_task("a")
    warning = state.tools.call("deleteTasks", {"deleteAll": True})
    assert warning.startswith("⚠️ This will permanently delete ALL 1 tasks.")
    assert state.tools.call("deleteTasks", {"deleteAll": True, "confirmed": True}) == "✓ Deleted 'a'"


def test_delete_single_is_undoable(state: AppState) -> None:
    state.store.create_task("Old note", priority=Priority.MEDIUM)
    assert state.tools.call("deleteTasks", {"filter": {"taskNames": ["old note"]}}) == "✓ Deleted 'Old note'"

    state.undo.perform_undo()
    (restored,) = state.store.fetch_all_tasks()
    assert restored.title == "Old note"
    assert restored.priority == Priority.MEDIUM


def test_update_priority_and_list(state: AppState) -> None:
    work = state.store.create_list("Work")
    t = state.store.create_task("Report")

    reply = state.tools.call(
        "updateTasks",
        {"filter": {"taskNames": ["report"]}, "newPriority": "high", "newListName": "work"},
    )

    assert reply == "✓ Updated 'Report': priority → high, list → Work"
    got = state.store.require_task(t.id)
    assert (got.priority, got.list_id) == (Priority.HIGH, work.id)

    state.undo.perform_undo()
    got = state.store.require_task(t.id)
    assert (got.priority, got.list_id) == (Priority.NONE, None)


def test_update_needs_a_change(state: AppState) -> None:
    reply = state.tools.call("updateTasks", {"filter": {"status": "all"}})
    assert reply.startswith("Please specify what to update")


def test_query_list_and_count(state: AppState, events: list[Event]) -> None:
    today = start_of_day(datetime.now())
    state.store.create_task("Pay rent", due_date=today, priority=Priority.HIGH)
    done = state.store.create_task("Call bank")
    state.store.complete_tasks([done])

    listing = state.tools.call("queryTasks", {"queryType": "list", "filter": {"status": "incomplete"}})
    assert listing.startswith("📋 **Tasks** (1 total):")
    assert "○ Pay rent - today 🔴" in listing
    assert Notification.QUERY_RESULTS in _names(events)

    count = state.tools.call("queryTasks", {"queryType": "count"})
    assert "• Total: 2\n• Incomplete: 1\n• Completed: 1" in count


def test_query_status_and_summary(state: AppState) -> None:
    today = start_of_day(datetime.now())
    state.store.create_task("Late", due_date=today - timedelta(days=2), priority=Priority.HIGH, estimated_duration=30)
    state.store.create_task("Now", due_date=today, estimated_duration=15)
    state.store.create_task("Whenever")

    status = state.tools.call("queryTasks", {"queryType": "status"})
    assert "🔴 Overdue: 1\n   • Late\n" in status
    assert "🟠 Due Today: 1\n" in status
    assert "⚪ No Due Date: 1\n" in status
    assert status.endswith("✅ Completed: 0\n")

    summary = state.tools.call("queryTasks", {"queryType": "summary"})
    assert "• 3 incomplete, 0 completed\n" in summary
    assert "• Estimated time: 45m\n" in summary
    assert "• 🔴 High: 1\n" in summary


def test_query_search_uses_keyword(state: AppState) -> None:
    state.store.create_task("Write report")
    reply = state.tools.call("queryTasks", {"queryType": "search", "filter": {"keyword": "report"}})
    assert reply.startswith("🔍 **Search Results for 'report':** (1 found)")
    empty = state.tools.call("queryTasks", {"queryType": "search", "filter": {"keyword": "zebra"}})
    assert empty == "🔍 No tasks found matching 'zebra'."


def test_query_limit_is_at_least_one(state: AppState) -> None:
    for title in ("a", "b", "c"):
        state.store.create_task(title)

    reply = state.tools.call("queryTasks", {"queryType": "list", "limit": -5, "sortBy": "alphabetical"})

    assert reply == "📋 **Tasks** (3 total):\n\n○ a\n\n...and 2 more tasks"
