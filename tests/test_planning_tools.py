# tests/test_planning_tools.py

from __future__ import annotations

from datetime import datetime, timedelta

from tasky.ai.tools.planning_tools import (
    breakdown_steps,
    goal_alignment_factor,
    quick_win_factor,
    urgency_factor,
)
from tasky.core.events import Event, Notification
from tasky.core.state import AppState
from tasky.memory.models import ContextCategory
from tasky.tasks.models import Priority, Task, start_of_day

TODAY = datetime(2025, 6, 10)


def _task(**kw) -> Task:
    return Task(id="t", title=kw.pop("title", "Task"), **kw)


def test_scoring_factors() -> None:
    assert urgency_factor(_task(due_date=TODAY - timedelta(days=1)), TODAY) == 1.0
    assert urgency_factor(_task(due_date=TODAY + timedelta(hours=8)), TODAY) == 0.95
    assert urgency_factor(_task(due_date=TODAY + timedelta(days=2)), TODAY) == 0.7
    assert urgency_factor(_task(due_date=TODAY + timedelta(days=30)), TODAY) == 0.1
    assert urgency_factor(_task(), TODAY) == 0.2

    assert quick_win_factor(_task(estimated_duration=5)) == 1.0
    assert quick_win_factor(_task(estimated_duration=0)) == 0.3
    assert quick_win_factor(_task(estimated_duration=90)) == 0.2


def test_goal_alignment_factor() -> None:
    assert goal_alignment_factor(_task(title="Buy marathon shoes"), [], None) == 0.3
    assert goal_alignment_factor(_task(title="Buy marathon shoes"), ["marathon"], None) == 1.0
    assert goal_alignment_factor(_task(title="Stretch"), ["fitness"], "Fitness") == 0.7
    assert goal_alignment_factor(_task(title="Stretch"), ["fitness"], "Work") == 0.2


def test_smart_prioritize_empty_scope(state: AppState) -> None:
    assert state.tools.call("smartPrioritize", {}) == "No incomplete tasks found for the selected scope."


def test_smart_prioritize_balanced(state: AppState) -> None:
    today = start_of_day(datetime.now())
    state.store.create_task("Someday idea", due_date=today + timedelta(days=5), priority=Priority.LOW)
    state.store.create_task("Tax filing", due_date=today - timedelta(days=1), priority=Priority.HIGH)
    seen: list[Event] = []
    state.notifications.subscribe(Notification.TASKS_PRIORITIZED, seen.append)

    reply = state.tools.call("smartPrioritize", {"scope": "all"})

    assert reply.startswith("🎯 **Top 2 tasks for all tasks** (balanced priority):\n\n1. Tax filing (due yesterday) 🔴\n")
    assert reply.endswith('💡 **Suggestion:** Start with "Tax filing" - it\'s overdue!')
    assert seen[0].payload["scope"] == "all"


def test_smart_prioritize_by_goals(state: AppState) -> None:
    state.context_store.save(ContextCategory.GOAL, "marathon", "run a marathon in spring")
    state.store.create_task("Answer emails", priority=Priority.HIGH)
    state.store.create_task("Buy marathon shoes")

    reply = state.tools.call("smartPrioritize", {"scope": "all", "prioritizeBy": "goals", "topN": 1})

    assert "(goal-aligned)" in reply
    assert "1. Buy marathon shoes\n" in reply
    assert "Answer emails" not in reply


def test_smart_prioritize_list_scope(state: AppState) -> None:
    work = state.store.create_list("Work")
    state.store.create_task("Quarterly report", list_id=work.id)
    state.store.create_task("Groceries")

    reply = state.tools.call("smartPrioritize", {"scope": "list", "listName": "work"})
    assert reply.startswith("🎯 **Top 1 tasks for 'work'**")
    assert "Groceries" not in reply


def test_plan_day(state: AppState) -> None:
    today = start_of_day(datetime.now())
    state.store.create_task(
        "Standup",
        scheduled_time=today + timedelta(hours=9),
        scheduled_end_time=today + timedelta(hours=10),
    )
    state.store.create_task("Pay rent", due_date=today, priority=Priority.HIGH, estimated_duration=20)
    state.store.create_task("Prep deck", priority=Priority.MEDIUM)
    state.context_store.save(ContextCategory.SCHEDULE, "gym", "gym on mondays")
    seen: list[Event] = []
    state.notifications.subscribe(Notification.DAY_PLAN_GENERATED, seen.append)

    reply = state.tools.call("planDay", {})

    assert reply.startswith("📅 **Plan for Today**\n\n🗓️ **Scheduled Tasks:**\n• 9:00 AM - Standup\n\n")
    assert "⚡ **Due today:**\n• Pay rent (~20m) 🔴\n" in reply
    assert "🔴 **High Priority (consider adding):**\n• Prep deck\n" in reply
    assert "⏱️ **Time:**\n• Tasks: 1h\n• Free: 7h\n" in reply
    assert reply.endswith("💡 **Based on what I know about you:**\n• Schedule: gym on mondays\n")
    assert seen[0].payload["free_minutes"] == 420


def test_plan_tomorrow_without_context(state: AppState) -> None:
    state.context_store.save(ContextCategory.SCHEDULE, "gym", "gym on mondays")
    reply = state.tools.call("planDay", {"targetDate": "tomorrow", "useContext": False, "availableHours": 4})
    assert reply.startswith("📅 **Plan for Tomorrow**")
    assert "• Free: 4h\n" in reply
    assert "Based on what I know" not in reply


def test_breakdown_templates() -> None:
    assert breakdown_steps("Prepare presentation", 2) == [
        "Define presentation outline and key points",
        "Research and gather content",
    ]
    assert breakdown_steps("Fix bike", 1) == ["Define what 'done' looks like for Fix bike"]


def test_suggest_breakdown_preview_only(state: AppState) -> None:
    reply = state.tools.call("suggestBreakdown", {"taskName": "Prepare presentation", "numberOfSteps": 1})

    assert reply.startswith("📋 **Suggested breakdown for 'Prepare presentation':**\n\n1. ")
    # Clamped to at least two steps.
    assert "2. Research and gather content\n" in reply
    assert reply.endswith('💡 Say "create these subtasks" to add them to your task list.')
    assert state.store.count_tasks() == 0


def test_suggest_breakdown_adds_subtasks_to_existing(state: AppState) -> None:
    t = state.store.create_task("Quarterly report")
    reply = state.tools.call("suggestBreakdown", {"taskName": "quarterly report", "createSubtasks": True})

    assert reply.startswith("📋 **Breakdown for 'Quarterly report':**")
    assert reply.endswith("✅ Added 5 subtasks to 'Quarterly report'.")
    subs = state.store.fetch_subtasks(t.id)
    assert [s.title for s in subs][:2] == ["Outline main sections", "Gather data and sources"]


def test_suggest_breakdown_creates_tasks_when_missing(state: AppState) -> None:
    work = state.store.create_list("Work")
    reply = state.tools.call(
        "suggestBreakdown",
        {"taskName": "Launch website", "numberOfSteps": 3, "createSubtasks": True, "listName": "Work"},
    )

    assert reply.endswith("✅ Created 3 subtasks in 'Work'.")
    tasks = state.store.fetch_all_tasks()
    assert len(tasks) == 3
    assert {t.notes for t in tasks} == {"Subtask of: Launch website"}
    assert {(t.priority, t.estimated_duration, t.list_id) for t in tasks} == {(Priority.LOW, 15, work.id)}
