# src/tasky/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..core.state import AppState
from ..llm.offline import OfflineLLMClient
from ..memory.models import ContextCategory
from ..tasks.focus import calculate_focus_statistics
from ..tasks.goals import GoalStats
from ..tasks.models import GoalStatus, Task, priority_emoji
from ..tasks.progress import ProgressPeriod, calculate_statistics

CommandHandler = Callable[[AppState, list[str]], str]

logger = logging.getLogger(__name__)

TASK_VIEWS = ("today", "upcoming", "inbox", "overdue", "completed")


class CommandRegistry:
    """Simple slash-command registry used by connectors (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, state: AppState, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."
        return handler(state, parts[1:])

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _task_line(task: Task, now: datetime) -> str:
    mark = "✓" if task.is_completed else "○"
    parts = [f"{mark} {task.title}"]
    if task.due_date is not None:
        parts.append(f"(due {task.due_date:%Y-%m-%d})")
    if task.scheduled_time is not None:
        parts.append(f"@ {task.scheduled_time:%H:%M}")
    emoji = priority_emoji(task.priority)
    if emoji:
        parts.append(emoji)
    if not task.is_completed and task.is_overdue(now):
        parts.append("[overdue]")
    return "  " + " ".join(parts)


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    llm = "offline demo" if isinstance(state.llm, OfflineLLMClient) else "remote"
    models = ", ".join(list(getattr(state.settings, "llm_models", []) or []))
    hist = "ON" if state.save_history else "OFF"
    undo = f"{state.undo.time_remaining:.0f}s left" if state.undo.has_undo_available else "none"
    return (
        "Status:\n"
        f"  LLM: {llm}\n"
        f"  Models (priority -> fallback): {models}\n"
        f"  Dialog history: {hist}\n"
        f"  Chat: {state.chat.state.value}, ~{state.chat.estimated_tokens}/{state.chat.token_limit} tokens\n"
        f"  Tasks: {state.store.count_tasks()}, context items: {state.context_store.count()}\n"
        f"  Undo: {undo}"
    )


def cmd_undo(state: AppState, args: list[str]) -> str:
    action = state.undo.perform_undo()
    if action is None:
        return "Nothing to undo."
    return f"Undone: {action.description}"


def cmd_clear(state: AppState, args: list[str]) -> str:
    state.chat.clear_chat()
    return "Chat cleared."


def cmd_tasks(state: AppState, args: list[str]) -> str:
    """
    /tasks            -> today
    /tasks upcoming   -> next 7 days
    /tasks inbox | overdue | completed
    """
    view = args[0].lower() if args else "today"
    now = datetime.now()
    store = state.store

    if view == "today":
        tasks = store.fetch_today_tasks(now)
    elif view == "upcoming":
        tasks = store.fetch_upcoming_tasks(now)
    elif view == "inbox":
        tasks = store.fetch_inbox_tasks()
    elif view == "overdue":
        tasks = store.fetch_overdue_tasks(now)
    elif view == "completed":
        tasks = store.fetch_completed_tasks()[:20]
    else:
        return f"Usage: /tasks [{'|'.join(TASK_VIEWS)}]"

    if not tasks:
        return f"No {view} tasks."
    lines = [f"{view.capitalize()} tasks ({len(tasks)}):"]
    lines.extend(_task_line(t, now) for t in tasks)
    return "\n".join(lines)


def cmd_stats(state: AppState, args: list[str]) -> str:
    """/stats [week|month|year] -> progress, streak and focus summary."""
    raw = args[0].lower() if args else "week"
    try:
        period = ProgressPeriod(raw)
    except ValueError:
        return "Usage: /stats [week|month|year]"

    now = datetime.now()
    stats = calculate_statistics(state.store.fetch_all_tasks(), period, now)
    focus = calculate_focus_statistics(state.store, now)
    unlocked = [a for a in stats.achievements if a.unlocked]

    lines = [
        f"Progress ({period.value}):",
        f"  Completed: {stats.tasks_completed} ({stats.tasks_completed_change:+d} vs previous)",
        f"  Completion rate: {stats.completion_rate:.0f}%",
        f"  Avg per day: {stats.avg_per_day:.1f}",
        f"  Productivity score: {stats.productivity_score}",
        f"  Streak: {stats.streak.current} days (record {stats.streak.record}). {stats.streak.message}",
        f"  Focus today: {focus.today_formatted} in {focus.today_count} sessions, total {focus.total_formatted}",
    ]
    if stats.personal_best is not None:
        pb = stats.personal_best
        lines.append(f"  Personal best: {pb.value} {pb.metric} in a week ({pb.period})")
    if unlocked:
        lines.append("  Achievements: " + ", ".join(f"{a.icon} {a.name}" for a in unlocked))
    return "\n".join(lines)


def cmd_goals(state: AppState, args: list[str]) -> str:
    goals = state.store.fetch_goals(GoalStatus.ACTIVE)
    if not goals:
        return "No active goals."
    now = datetime.now()
    lines = ["Active goals:"]
    for goal in goals:
        st = GoalStats.for_goal(goal, state.store.tasks_for_goal(goal.id), now)
        line = f"  {goal.name}: {st.progress_text} ({st.progress_percentage}%)"
        if st.estimated_completion_text:
            line += f", {st.estimated_completion_text}"
        if st.is_overdue:
            line += " [overdue]"
        elif st.is_neglected:
            line += " [needs attention]"
        lines.append(line)
    return "\n".join(lines)


def cmd_usage(state: AppState, args: list[str]) -> str:
    usage = state.usage
    top = usage.top_tools()
    if not top:
        return "No AI tools used yet."
    lines = [f"AI tool usage ({usage.total_calls} calls, personalization {usage.personalization_progress:.0%}):"]
    lines.extend(f"  {s.tool_name}: {s.total_calls}" for s in top)
    return "\n".join(lines)


def cmd_context(state: AppState, args: list[str]) -> str:
    """
    /context          -> everything the assistant remembers
    /context <cat>    -> one category (person, preference, schedule, goal, ...)
    /context clear    -> forget everything
    """
    store = state.context_store
    if args and args[0].lower() == "clear":
        n = store.delete_all()
        return f"Cleared {n} context items."

    category = None
    if args:
        category = next((c for c in ContextCategory if c.value == args[0].lower()), None)
        if category is None:
            return "Usage: /context [person|preference|schedule|goal|constraint|pattern|other|clear]"

    items = store.fetch_all(category)
    if not items:
        return "No context stored."
    lines = [f"Context ({len(items)} items):"]
    for item in items:
        lines.append(
            f"  [{item.category.display_name}] {item.key}: {item.value} "
            f"({item.formatted_confidence}, {item.source.display_name})"
        )
    return "\n".join(lines)


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show LLM, chat and store status.")
registry.register("undo", cmd_undo, help_text="Undo the last AI action (within a few seconds).")
registry.register("clear", cmd_clear, help_text="Clear the chat and start a fresh session.")
registry.register("tasks", cmd_tasks, help_text="List tasks: /tasks [today|upcoming|inbox|overdue|completed].")
registry.register("stats", cmd_stats, help_text="Progress statistics: /stats [week|month|year].")
registry.register("goals", cmd_goals, help_text="Show active goals and their progress.")
registry.register("usage", cmd_usage, help_text="Show which AI tools you use most.")
registry.register("context", cmd_context, help_text="Show or clear what the assistant remembers: /context [category|clear].")
