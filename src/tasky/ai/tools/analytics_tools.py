# src/tasky/ai/tools/analytics_tools.py

"""
taskAnalytics: productivity numbers the assistant can quote back.

Each analytics type is a small formatter over the task list (optionally
narrowed to one list) and the statistics in tasks.progress and tasks.focus.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from ...tasks.focus import calculate_focus_statistics, format_seconds
from ...tasks.models import Task, start_of_day
from ...tasks.progress import ProgressPeriod, calculate_statistics, calculate_streak
from ...tasks.store import INBOX_NAME
from .. import helpers
from .base import Tool, ToolContext, arg_str

logger = logging.getLogger(__name__)

Analysis = Callable[[ToolContext, list[Task], str, datetime], str]

# (label, hours); night wraps around midnight.
_DAY_PERIODS = (
    ("Morning (5am-12pm)", range(5, 12)),
    ("Afternoon (12pm-5pm)", range(12, 17)),
    ("Evening (5pm-10pm)", range(17, 22)),
    ("Night (10pm-5am)", (*range(22, 24), *range(0, 5))),
)


def _completed_since(tasks: list[Task], start: datetime) -> list[Task]:
    return [t for t in tasks if t.is_completed and t.completed_at is not None and t.completed_at >= start]


def _hour_label(hour: int) -> str:
    if hour == 0:
        return "12am"
    if hour < 12:
        return f"{hour}am"
    return "12pm" if hour == 12 else f"{hour - 12}pm"


# ---- per-type formatters ----


def _daily_summary(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    today = start_of_day(now)
    tomorrow = today + timedelta(days=1)
    pending = [t for t in tasks if not t.is_completed]

    completed_today = sum(1 for t in tasks if t.completed_at and today <= t.completed_at < tomorrow)
    due_today = sum(1 for t in pending if t.due_date and today <= t.due_date < tomorrow)
    overdue = sum(1 for t in pending if t.due_date and t.due_date < today)

    lines = [f"📊 **Today's Summary{label}**", ""]
    done = f"Completed: {completed_today}"
    if due_today + completed_today > 0:
        done += f" ({int(completed_today / (due_today + completed_today) * 100)}% of today's tasks)"
    lines += [done, f"Still due today: {due_today}", f"Overdue: {overdue}", f"Total remaining: {len(pending)}"]

    if completed_today >= 5:
        lines += ["", f"Great momentum! {completed_today} tasks done today!"]
    elif completed_today > 0 and due_today == 0 and overdue == 0:
        lines += ["", "All caught up! Nice work!"]
    elif overdue > 3:
        lines += ["", f"You have {overdue} overdue tasks. Consider tackling the oldest ones first."]
    return "\n".join(lines)


def _weekly_summary(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    period = ProgressPeriod.WEEK
    stats = calculate_statistics(tasks, period, now)
    days = Counter(t.completed_at.strftime("%A") for t in _completed_since(tasks, now - timedelta(days=period.days)))

    busiest = "None"
    if days:
        name, count = days.most_common(1)[0]
        busiest = f"{name} ({count} tasks)"

    lines = [
        f"📊 **This Week's Summary{label}**",
        "",
        f"Tasks completed: {stats.tasks_completed} ({stats.tasks_completed_change:+d} vs last week)",
        f"Most productive day: {busiest}",
        f"Daily average: {stats.avg_per_day:.1f} tasks",
        f"Productivity score: {stats.productivity_score}/100",
    ]
    if stats.tasks_completed >= 25:
        lines += ["", "Outstanding week! 25+ tasks completed!"]
    elif stats.tasks_completed >= 15:
        lines += ["", "Excellent week! Keep it up!"]
    return "\n".join(lines)


def _monthly_summary(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    period = ProgressPeriod.MONTH
    stats = calculate_statistics(tasks, period, now)
    weekly = stats.tasks_completed * 7 / period.days
    return "\n".join(
        [
            f"📊 **Monthly Summary{label} (Last {period.days} Days)**",
            "",
            f"Total completed: {stats.tasks_completed} ({stats.tasks_completed_change:+d} vs previous 30 days)",
            f"Weekly average: {weekly:.1f} tasks",
            f"Daily average: {stats.avg_per_day:.1f} tasks",
            f"Completion rate: {stats.completion_rate:.0f}%",
        ]
    )


def _completion_rate(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    if not tasks:
        return f"No tasks found{label}. Create some tasks to see your completion rate!"

    completed = sum(1 for t in tasks if t.is_completed)
    rate = completed / len(tasks) * 100
    if rate >= 90:
        message = "Outstanding!"
    elif rate >= 75:
        message = "Excellent progress!"
    elif rate >= 50:
        message = "Good momentum!"
    elif rate >= 25:
        message = "Building up!"
    else:
        message = "Room to grow!"

    return f"📈 **Completion Rate{label}**\n\n{completed} of {len(tasks)} tasks completed\nRate: {rate:.0f}%\n{message}"


def _overdue_count(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    today = start_of_day(now)
    overdue = sorted(
        (t for t in tasks if not t.is_completed and t.due_date and t.due_date < today),
        key=lambda t: t.due_date or today,
    )
    if not overdue:
        return f"No overdue tasks{label}! You're on track."

    def days_late(task: Task) -> int:
        return (today - start_of_day(task.due_date or today)).days

    ages = [days_late(t) for t in overdue]
    lines = [f"⚠️ **{len(overdue)} Overdue Task(s){label}**", ""]
    for name, count in (
        ("Critical (7+ days)", sum(1 for d in ages if d >= 7)),
        ("Warning (3-6 days)", sum(1 for d in ages if 3 <= d < 7)),
        ("Recent (1-2 days)", sum(1 for d in ages if d < 3)),
    ):
        if count:
            lines.append(f"{name}: {count}")

    lines += ["", "Top tasks to address:"]
    lines += [f"{i}. {t.title} ({days_late(t)}d overdue)" for i, t in enumerate(overdue[:5], start=1)]
    if len(overdue) > 5:
        lines.append(f"... and {len(overdue) - 5} more")
    return "\n".join(lines)


def _list_breakdown(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    everything = ctx.store.fetch_all_tasks()
    inbox = ctx.store.find_list(INBOX_NAME)
    inbox_id = inbox.id if inbox else None

    def row(name: str, members: list[Task]) -> str:
        active = sum(1 for t in members if not t.is_completed)
        rate = int((len(members) - active) / len(members) * 100) if members else 0
        return f"{name}: {active} active ({rate}% complete)"

    lines = ["🗂️ **Tasks by List**", ""]
    lines.append(row(INBOX_NAME, [t for t in everything if t.list_id is None or t.list_id == inbox_id]))
    for lst in ctx.store.fetch_all_lists():
        if lst.id != inbox_id:
            lines.append(row(lst.name, [t for t in everything if t.list_id == lst.id]))

    active = sum(1 for t in everything if not t.is_completed)
    lines += ["", f"Total: {active} active, {len(everything) - active} completed"]
    return "\n".join(lines)


def _productivity_streak(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    streak = calculate_streak(ctx.store.fetch_all_tasks(), now)
    if streak.current >= 30:
        badge = "Legendary!"
    elif streak.current >= 14:
        badge = "Amazing!"
    elif streak.current >= 7:
        badge = "Great streak!"
    elif streak.current >= 3:
        badge = "Building momentum!"
    else:
        badge = ""

    lines = ["🔥 **Productivity Streak**", ""]
    if streak.current == 0:
        lines.append("No active streak.")
    else:
        lines.append(f"Current: {streak.current} day(s) {badge}".rstrip())
    lines += [f"Longest: {streak.record} day(s)", "", streak.message]
    return "\n".join(lines)


def _best_time(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    hours = Counter(t.completed_at.hour for t in _completed_since(tasks, now - timedelta(days=30)))
    if not hours:
        return "Not enough data yet. Complete more tasks to see your productivity patterns!"

    totals = [(name, sum(hours[h] for h in span)) for name, span in _DAY_PERIODS]
    peak_hour, peak_count = hours.most_common(1)[0]
    best = max(totals, key=lambda p: p[1])[0]

    lines = [f"🕐 **Your Productivity Patterns{label} (Last 30 days)**", ""]
    lines += [f"{name}: {count} tasks" for name, count in totals]
    lines += ["", f"Peak time: {_hour_label(peak_hour)} ({peak_count} tasks)", f"Best period: {best.split(' ')[0]}"]
    return "\n".join(lines)


def _focus_stats(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    total = sum(t.focus_time_seconds for t in tasks)
    if total == 0:
        return (
            f"⏱️ **Focus Statistics{label}**\n\n"
            "No focus time recorded yet.\n"
            "Start a focus session to track your deep work!\n\n"
            'Try: "Start 25-minute focus on [task]"'
        )

    focused = [t for t in tasks if t.focus_time_seconds > 0]
    today = calculate_focus_statistics(ctx.store, now)
    lines = [
        f"⏱️ **Focus Statistics{label}**",
        "",
        f"Total focus time: {format_seconds(total)}",
        f"Tasks with focus time: {len(focused)}",
        f"Average per task: {format_seconds(total // len(focused))}",
        f"Today: {today.today_formatted} across {today.today_count} session(s)",
    ]
    if total >= 2 * 3600:
        lines += ["", "Great deep work! Keep up the focused effort!"]
    return "\n".join(lines)


def _weekly_comparison(ctx: ToolContext, tasks: list[Task], label: str, now: datetime) -> str:
    today = start_of_day(now)
    week_ago = today - timedelta(days=7)
    this_week = len(ctx.store.fetch_tasks_completed_between(week_ago, today + timedelta(days=1)))
    last_week = len(ctx.store.fetch_tasks_completed_between(today - timedelta(days=14), week_ago))

    lines = ["📊 **Weekly Comparison**", "", f"This week: {this_week} tasks", f"Last week: {last_week} tasks", ""]
    if last_week == 0:
        lines.append("Great start this week!" if this_week > 0 else "Time to get started!")
        return "\n".join(lines)

    change = this_week - last_week
    percent = int(change / last_week * 100)
    if change > 0:
        lines += [f"Up {change} tasks (+{percent}%)", "Great improvement!"]
    elif change < 0:
        lines += [f"Down {-change} tasks ({percent}%)", "Let's pick up the pace!"]
    else:
        lines += ["Same as last week", "Push for more this week!"]
    return "\n".join(lines)


ANALYSES: dict[str, Analysis] = {
    "daily_summary": _daily_summary,
    "weekly_summary": _weekly_summary,
    "monthly_summary": _monthly_summary,
    "completion_rate": _completion_rate,
    "overdue_count": _overdue_count,
    "list_breakdown": _list_breakdown,
    "productivity_streak": _productivity_streak,
    "best_time": _best_time,
    "focus_stats": _focus_stats,
    "weekly_comparison": _weekly_comparison,
}


def _task_analytics(ctx: ToolContext, args: dict[str, Any]) -> str:
    kind = (arg_str(args, "analyticsType") or "").lower()
    analysis = ANALYSES.get(kind)
    if analysis is None:
        return f"Unknown analytics type. Use: {', '.join(ANALYSES)}"

    tasks = ctx.store.fetch_all_tasks()
    label = ""
    list_name = arg_str(args, "listName")
    if list_name:
        lst = helpers.find_list(list_name, ctx.store)
        if lst is None:
            return f"Could not find list '{list_name}'."
        tasks = [t for t in tasks if t.list_id == lst.id]
        label = f" for '{lst.name}'"

    logger.debug("taskAnalytics type=%s tasks=%s", kind, len(tasks))
    return analysis(ctx, tasks, label, ctx.now())


TASK_ANALYTICS = Tool(
    name="taskAnalytics",
    description=(
        "Show productivity stats and analytics. "
        "Triggers: how am I doing, progress, stats, summary, streak, productivity."
    ),
    handler=_task_analytics,
    parameters={
        "analyticsType": {"enum": list(ANALYSES)},
        "listName": {"type": "string"},
    },
    required=("analyticsType",),
)
