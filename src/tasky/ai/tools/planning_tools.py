# src/tasky/ai/tools/planning_tools.py

"""
Planning tools: smartPrioritize, planDay and suggestBreakdown.

These read the store and the user's context memory and answer with a
formatted plan; suggestBreakdown can also write subtasks.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from ...core.events import Notification
from ...memory.context_store import ContextIntent
from ...memory.models import ContextCategory
from ...tasks.models import Priority, Task, priority_emoji, start_of_day
from .. import helpers
from .base import Tool, ToolContext, arg_bool, arg_int, arg_str

logger = logging.getLogger(__name__)


# ---- smartPrioritize ----


def urgency_factor(task: Task, today: datetime) -> float:
    if task.due_date is None:
        return 0.2
    days = (start_of_day(task.due_date) - today).days
    if days < 0:
        return 1.0
    if days == 0:
        return 0.95
    if days == 1:
        return 0.85
    if days <= 3:
        return 0.7
    if days <= 7:
        return 0.5
    return max(0.1, 1.0 - days * 0.05)


def importance_factor(task: Task) -> float:
    return {3: 1.0, 2: 0.7, 1: 0.4}.get(int(task.priority), 0.2)


def quick_win_factor(task: Task) -> float:
    d = task.estimated_duration
    if d == 0:
        return 0.3
    if d <= 5:
        return 1.0
    if d <= 15:
        return 0.85
    if d <= 30:
        return 0.6
    if d <= 60:
        return 0.4
    return 0.2


def goal_alignment_factor(task: Task, goals: list[str], list_name: str | None) -> float:
    if not goals:
        return 0.3
    title = task.title.lower()
    notes = (task.notes or "").lower()
    if any(g in title or g in notes for g in goals):
        return 1.0
    if list_name:
        ln = list_name.lower()
        if any(g in ln or ln in g for g in goals):
            return 0.7
    return 0.2


_SCOPE_LABELS = {"today": "today", "this_week": "this week", "all": "all tasks"}
_STRATEGY_LABELS = {
    "urgency": "most urgent",
    "importance": "most important",
    "quick_wins": "quick wins",
    "goals": "goal-aligned",
}


def _scope_tasks(ctx: ToolContext, scope: str, list_name: str | None, today: datetime) -> list[Task]:
    pending = [t for t in ctx.store.fetch_all_tasks() if not t.is_completed]
    if scope == "today":
        horizon = today + timedelta(days=1)
        return [
            t
            for t in pending
            if (t.due_date is not None and t.due_date <= horizon)
            or (t.scheduled_time is not None and start_of_day(t.scheduled_time) == today)
        ]
    if scope == "this_week":
        horizon = today + timedelta(days=7)
        return [t for t in pending if t.due_date is not None and t.due_date <= horizon]
    if scope == "list":
        lst = helpers.find_list(list_name or "", ctx.store) if list_name else None
        return [t for t in pending if lst is not None and t.list_id == lst.id]
    return pending


def _smart_prioritize(ctx: ToolContext, args: dict[str, Any]) -> str:
    scope = (arg_str(args, "scope") or "today").lower()
    top_n = min(arg_int(args, "topN", 5) or 5, 10)
    strategy = (arg_str(args, "prioritizeBy") or "balanced").lower()
    list_name = arg_str(args, "listName")

    today = start_of_day(ctx.now())
    tasks = _scope_tasks(ctx, scope, list_name, today)
    if not tasks:
        return "No incomplete tasks found for the selected scope."

    goals = [c.key for c in ctx.context_store.fetch_all(ContextCategory.GOAL, min_confidence=0.3)]
    lists = {lst.id: lst.name for lst in ctx.store.fetch_all_lists()}

    def score(t: Task) -> float:
        list_of_task = lists.get(t.list_id or "")
        if strategy == "urgency":
            return urgency_factor(t, today)
        if strategy == "importance":
            return importance_factor(t)
        if strategy == "quick_wins":
            return quick_win_factor(t)
        if strategy == "goals":
            return goal_alignment_factor(t, goals, list_of_task)
        return (
            urgency_factor(t, today) * 0.35
            + importance_factor(t) * 0.30
            + quick_win_factor(t) * 0.15
            + goal_alignment_factor(t, goals, list_of_task) * 0.20
        )

    ranked = sorted(tasks, key=score, reverse=True)[:top_n]

    scope_label = f"'{list_name or 'list'}'" if scope == "list" else _SCOPE_LABELS.get(scope, "all tasks")
    strategy_label = _STRATEGY_LABELS.get(strategy, "balanced priority")

    out = f"🎯 **Top {len(ranked)} tasks for {scope_label}** ({strategy_label}):\n\n"
    for rank, t in enumerate(ranked, start=1):
        details = []
        if t.due_date:
            details.append(f"due {helpers.format_relative_date(t.due_date, ctx.now())}")
        if t.estimated_duration > 0:
            details.append(f"~{t.estimated_duration}m")
        detail = f" ({', '.join(details)})" if details else ""
        out += f"{rank}. {t.title}{detail} {priority_emoji(t.priority)}".rstrip() + "\n"

    top = ranked[0]
    out += f'\n💡 **Suggestion:** Start with "{top.title}" - '
    if top.due_date is not None and top.due_date < today:
        out += "it's overdue!"
    elif top.priority >= Priority.MEDIUM:
        out += "it's high priority."
    elif top.is_quick_win:
        out += "it's a quick win you can knock out fast."
    else:
        out += "it has the highest priority score."

    ctx.notifications.post(
        Notification.TASKS_PRIORITIZED,
        task_ids=[t.id for t in ranked],
        scope=scope,
        strategy=strategy,
    )
    return out


SMART_PRIORITIZE = Tool(
    name="smartPrioritize",
    description=(
        "Rank tasks by urgency, importance, quick wins and the user's goals. "
        "Triggers: prioritize, what's most important, what should I focus on, rank my tasks."
    ),
    handler=_smart_prioritize,
    parameters={
        "scope": {"enum": ["today", "this_week", "all", "list"]},
        "listName": {"type": "string"},
        "topN": {"type": "integer"},
        "prioritizeBy": {"enum": ["urgency", "importance", "quick_wins", "goals", "balanced"]},
    },
)


# ---- planDay ----

DEFAULT_SLOT_MINUTES = 30


def _planned_minutes(task: Task) -> int:
    if task.scheduled_time is not None and task.scheduled_end_time is not None:
        return max(0, int((task.scheduled_end_time - task.scheduled_time).total_seconds() // 60))
    if task.estimated_duration > 0:
        return task.estimated_duration
    return DEFAULT_SLOT_MINUTES


def _plan_day(ctx: ToolContext, args: dict[str, Any]) -> str:
    today = start_of_day(ctx.now())
    is_tomorrow = (arg_str(args, "targetDate") or "").lower() == "tomorrow"
    target = today + timedelta(days=1) if is_tomorrow else today
    label = "tomorrow" if is_tomorrow else "today"

    pending = [t for t in ctx.store.fetch_all_tasks() if not t.is_completed]
    horizon = target + timedelta(days=1)
    due = [t for t in pending if t.due_date is not None and t.due_date <= horizon]
    scheduled = sorted(
        (t for t in pending if t.scheduled_time is not None and start_of_day(t.scheduled_time) == target),
        key=lambda t: t.scheduled_time or target,
    )
    scheduled_ids = {t.id for t in scheduled}
    due_ids = {t.id for t in due}

    context_lines: list[str] = []
    if arg_bool(args, "useContext", True):
        items = ctx.context_store.for_intent(ContextIntent.PLAN_DAY)
        context_lines = [i.prompt_description for i in items[:3]]

    available = arg_int(args, "availableHours", 8) or 8
    scheduled_minutes = sum(_planned_minutes(t) for t in scheduled)
    free_minutes = max(0, available * 60 - scheduled_minutes)

    out = f"📅 **Plan for {label.capitalize()}**\n\n"

    if scheduled:
        out += "🗓️ **Scheduled Tasks:**\n"
        for t in scheduled:
            assert t.scheduled_time is not None
            out += f"• {helpers.format_time(t.scheduled_time)} - {t.title} {priority_emoji(t.priority)}".rstrip() + "\n"
        out += "\n"

    unscheduled_due = sorted((t for t in due if t.id not in scheduled_ids), key=lambda t: t.priority, reverse=True)
    if unscheduled_due:
        out += f"⚡ **Due {label}:**\n"
        for t in unscheduled_due[:5]:
            est = f" (~{t.estimated_duration}m)" if t.estimated_duration > 0 else ""
            out += f"• {t.title}{est} {priority_emoji(t.priority)}".rstrip() + "\n"
        if len(unscheduled_due) > 5:
            out += f"• ...and {len(unscheduled_due) - 5} more\n"
        out += "\n"

    extra_high = [
        t for t in ctx.store.fetch_high_priority_pending() if t.scheduled_time is None and t.id not in due_ids
    ]
    if extra_high:
        out += "🔴 **High Priority (consider adding):**\n"
        for t in extra_high[:3]:
            est = f" (~{t.estimated_duration}m)" if t.estimated_duration > 0 else ""
            out += f"• {t.title}{est}\n"
        out += "\n"

    out += "⏱️ **Time:**\n"
    out += f"• Tasks: {helpers.format_duration(scheduled_minutes)}\n"
    out += f"• Free: {helpers.format_duration(free_minutes)}\n"

    if context_lines:
        out += "\n💡 **Based on what I know about you:**\n"
        out += "".join(f"• {line}\n" for line in context_lines)

    ctx.notifications.post(
        Notification.DAY_PLAN_GENERATED,
        date=target,
        scheduled_count=len(scheduled),
        due_count=len(unscheduled_due),
        free_minutes=free_minutes,
    )
    return out


PLAN_DAY = Tool(
    name="planDay",
    description=(
        "Create a daily plan from tasks and what I know about the user. "
        "Triggers: plan my day, what should I do today, daily planning, schedule my day."
    ),
    handler=_plan_day,
    parameters={
        "targetDate": {"enum": ["today", "tomorrow"]},
        "focusAreas": {"type": "array", "items": {"type": "string"}},
        "availableHours": {"type": "integer"},
        "useContext": {"type": "boolean"},
    },
)


# ---- suggestBreakdown ----

# (trigger words, steps) checked in order; the first match wins.
_BREAKDOWN_TEMPLATES: tuple[tuple[tuple[str, ...], tuple[str, ...]], ...] = (
    (
        ("presentation", "slides"),
        (
            "Define presentation outline and key points",
            "Research and gather content",
            "Create slide structure",
            "Add visuals and graphics",
            "Write speaker notes",
            "Practice run-through",
            "Get feedback and revise",
        ),
    ),
    (
        ("report", "document"),
        (
            "Outline main sections",
            "Gather data and sources",
            "Write first draft",
            "Add charts/visualizations",
            "Review and edit",
            "Format and finalize",
        ),
    ),
    (
        ("meeting", "call"),
        (
            "Define meeting agenda",
            "Send calendar invites",
            "Prepare discussion points",
            "Gather relevant documents",
            "Set up meeting room/link",
            "Follow up with notes",
        ),
    ),
    (
        ("project", "launch"),
        (
            "Define project scope and goals",
            "Identify key stakeholders",
            "Create timeline and milestones",
            "Assign responsibilities",
            "Set up tracking system",
            "Schedule kickoff meeting",
            "Review and adjust plan",
        ),
    ),
    (
        ("clean", "organize"),
        (
            "Declutter and remove items",
            "Sort items into categories",
            "Clean surfaces",
            "Organize storage",
            "Label containers/areas",
            "Final walkthrough",
        ),
    ),
    (
        ("learn", "study", "course"),
        (
            "Set learning goals",
            "Gather resources and materials",
            "Create study schedule",
            "Complete first module/chapter",
            "Take notes and review",
            "Practice with exercises",
            "Test understanding",
        ),
    ),
    (
        ("email", "write", "draft"),
        (
            "Outline key points to cover",
            "Write initial draft",
            "Review for clarity",
            "Check tone and formatting",
            "Proofread and send",
        ),
    ),
    (
        ("shop", "buy", "purchase"),
        (
            "Make list of items needed",
            "Research options and prices",
            "Compare and decide",
            "Make purchase",
            "Arrange delivery/pickup",
        ),
    ),
    (
        ("plan", "trip", "travel"),
        (
            "Set dates and budget",
            "Book transportation",
            "Reserve accommodation",
            "Plan activities/itinerary",
            "Pack and prepare",
            "Confirm all bookings",
        ),
    ),
)


def breakdown_steps(task_name: str, count: int) -> list[str]:
    lowered = task_name.lower()
    for triggers, steps in _BREAKDOWN_TEMPLATES:
        if any(word in lowered for word in triggers):
            return list(steps[:count])
    generic = [
        f"Define what 'done' looks like for {task_name}",
        "Gather required resources/information",
        "Complete first major step",
        "Review progress and adjust",
        "Finish remaining work",
        "Final review and wrap-up",
    ]
    return generic[:count]


def _suggest_breakdown(ctx: ToolContext, args: dict[str, Any]) -> str:
    name = arg_str(args, "taskName") or ""
    count = min(max(arg_int(args, "numberOfSteps", 5) or 5, 2), 10)
    create = arg_bool(args, "createSubtasks")

    existing = helpers.find_task(name, ctx.store)
    steps = breakdown_steps(name, count)
    if not steps:
        return f"I couldn't generate a breakdown for '{name}'. Try being more specific about what needs to be done."

    if existing is not None:
        out = f"📋 **Breakdown for '{existing.title}':**\n\n"
    else:
        out = f"📋 **Suggested breakdown for '{name}':**\n\n"
    out += "".join(f"{i}. {s}\n" for i, s in enumerate(steps, start=1))

    if not create:
        return out + '\n💡 Say "create these subtasks" to add them to your task list.'

    if existing is not None:
        for step in steps:
            ctx.store.add_subtask(existing.id, step)
        out += f"\n✅ Added {len(steps)} subtasks to '{existing.title}'."
    else:
        list_name = arg_str(args, "listName")
        lst = helpers.find_list(list_name, ctx.store) if list_name else None
        due = start_of_day(ctx.now())
        for step in steps:
            ctx.store.create_task(
                step,
                notes=f"Subtask of: {name}",
                due_date=due,
                priority=Priority.LOW,
                list_id=lst.id if lst else None,
                estimated_duration=15,
            )
        out += f"\n✅ Created {len(steps)} subtasks"
        if lst is not None:
            out += f" in '{lst.name}'"
        out += "."

    ctx.notifications.post(
        Notification.BREAKDOWN_SUGGESTED,
        original_task=name,
        subtasks_created=len(steps),
        subtask_titles=steps,
    )
    return out


SUGGEST_BREAKDOWN = Tool(
    name="suggestBreakdown",
    description=(
        "Break a complex task into smaller, actionable steps. "
        "Triggers: break down, split task, subtasks for, how do I do, steps for."
    ),
    handler=_suggest_breakdown,
    parameters={
        "taskName": {"type": "string"},
        "numberOfSteps": {"type": "integer"},
        "createSubtasks": {"type": "boolean"},
        "listName": {"type": "string"},
    },
    required=("taskName",),
)


PLANNING_TOOLS = (SMART_PRIORITIZE, PLAN_DAY, SUGGEST_BREAKDOWN)
