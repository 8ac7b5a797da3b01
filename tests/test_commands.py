# tests/test_commands.py

from __future__ import annotations

from datetime import datetime, timedelta

from tasky.cli.commands import CommandRegistry, registry
from tasky.core.undo import UndoableAction, UndoActionType
from tasky.memory.models import ContextCategory, ContextSource
from tasky.tasks.models import start_of_day


def test_command_registry_routes_aliases(state) -> None:
    reg = CommandRegistry()
    called: list[list[str]] = []

    def handler(state, args):
        called.append(args)
        return "done"

    reg.register("ping", handler, "Ping.", aliases=["p"])

    assert reg.handle(state, "/ping a b") == "done"
    assert reg.handle(state, "/P") == "done"
    assert called == [["a", "b"], []]
    assert reg.build_help() == "Available commands:\n  /ping - Ping."


def test_command_registry_unknown_and_non_command(state) -> None:
    reg = CommandRegistry()
    assert reg.handle(state, "hello") is None
    assert reg.handle(state, "/") == "Empty command. Use /help to list available commands."
    assert reg.handle(state, "/nope") == "Unknown command: /nope. Use /help to list available commands."


def test_help_lists_builtin_commands(state) -> None:
    out = registry.handle(state, "/help") or ""
    assert out.startswith("Available commands:")
    assert "  /help - Show available commands." in out
    assert "/tasks" in out
    assert registry.handle(state, "/?") == out


def test_status(state) -> None:
    out = registry.handle(state, "/status") or ""
    assert out.startswith("Status:\n  LLM: remote")
    assert "Models (priority -> fallback): test/model" in out
    assert "Dialog history: ON" in out
    assert "Undo: none" in out


def test_undo_command(state) -> None:
    assert registry.handle(state, "/undo") == "Nothing to undo."

    restored: list[bool] = []
    state.undo.register(
        UndoableAction(UndoActionType.COMPLETE, "Completed 'Taxes'", lambda: restored.append(True))
    )

    assert registry.handle(state, "/undo") == "Undone: Completed 'Taxes'"
    assert restored == [True]


def test_clear_command(state, llm) -> None:
    state.chat.send_message("hi")
    assert registry.handle(state, "/clear") == "Chat cleared."
    assert len(state.chat.messages) == 1


def test_tasks_views(state, store) -> None:
    today = start_of_day(datetime.now())
    store.create_task("Taxes", due_date=today - timedelta(days=2), priority=3)
    store.create_task("Groceries", due_date=today)

    assert registry.handle(state, "/tasks bogus") == "Usage: /tasks [today|upcoming|inbox|overdue|completed]"
    assert registry.handle(state, "/tasks completed") == "No completed tasks."

    overdue = registry.handle(state, "/tasks overdue") or ""
    assert overdue == f"Overdue tasks (1):\n  ○ Taxes (due {today - timedelta(days=2):%Y-%m-%d}) 🔴 [overdue]"

    today_out = registry.handle(state, "/tasks") or ""
    assert today_out.startswith("Today tasks (1):")
    assert "○ Groceries" in today_out

    inbox = registry.handle(state, "/tasks inbox") or ""
    assert inbox.startswith("Inbox tasks (2):")


def test_stats_command(state, store) -> None:
    task = store.create_task("Taxes")
    store.complete_tasks([task])

    assert registry.handle(state, "/stats decade") == "Usage: /stats [week|month|year]"
    out = registry.handle(state, "/stats") or ""
    assert out.startswith("Progress (week):\n  Completed: 1")
    assert "Streak: 1 days" in out

    assert (registry.handle(state, "/stats month") or "").startswith("Progress (month):")


def test_goals_command(state, store) -> None:
    assert registry.handle(state, "/goals") == "No active goals."

    goal = store.create_goal("Ship v1")
    store.link_task_to_goal(goal.id, store.create_task("Write docs").id)
    out = registry.handle(state, "/goals") or ""
    assert out.startswith("Active goals:\n  Ship v1: 0/1 tasks (0%)")


def test_usage_command(state) -> None:
    assert registry.handle(state, "/usage") == "No AI tools used yet."

    state.usage.track("createTasks")
    state.usage.track("createTasks")
    state.usage.track("planDay")

    out = registry.handle(state, "/usage") or ""
    assert out.splitlines()[0].startswith("AI tool usage (3 calls, personalization")
    assert "  createTasks: 2" in out
    assert "  planDay: 1" in out


def test_context_command(state, context_store) -> None:
    assert registry.handle(state, "/context") == "No context stored."
    assert registry.handle(state, "/context planets").startswith("Usage: /context [")

    context_store.save(ContextCategory.PERSON, "sarah", "my manager", ContextSource.EXPLICIT)

    out = registry.handle(state, "/context") or ""
    assert out.startswith("Context (1 items):")
    assert "sarah: my manager" in out

    assert registry.handle(state, "/context schedule") == "No context stored."
    assert registry.handle(state, "/context clear") == "Cleared 1 context items."
