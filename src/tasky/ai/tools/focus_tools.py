# src/tasky/ai/tools/focus_tools.py

from __future__ import annotations

from typing import Any

from ...core.events import Notification
from ...errors import ConflictError
from ...tasks.focus import DEFAULT_MINUTES
from .. import helpers
from .base import Tool, ToolContext, arg_int, arg_str


def _focus_session(ctx: ToolContext, args: dict[str, Any]) -> str:
    action = (arg_str(args, "action") or "").lower()
    if action == "start":
        return _start(ctx, args)
    if action == "stop":
        return _stop(ctx)
    if action == "status":
        return _status(ctx)
    return f"Unknown action '{arg_str(args, 'action') or ''}'. Use: start, stop, or status."


def _start(ctx: ToolContext, args: dict[str, Any]) -> str:
    title = arg_str(args, "taskTitle")
    if not title:
        return "Please specify which task to focus on."

    task = helpers.find_task(title, ctx.store)
    if task is None:
        similar = helpers.find_similar_tasks(title, ctx.store)
        if not similar:
            return f"Could not find a task matching '{title}'."
        return f"Could not find '{title}'. Did you mean:\n{similar}"

    if task.is_completed:
        return f"'{task.title}' is already completed. Choose an active task to focus on."

    try:
        active = ctx.focus.start(task, arg_int(args, "durationMinutes", DEFAULT_MINUTES) or DEFAULT_MINUTES)
    except ConflictError as e:
        return f'{e} Say "stop focus" first.'

    minutes = active.planned_minutes
    ctx.notifications.post(
        Notification.FOCUS_SESSION_START,
        task_id=task.id,
        task_title=task.title,
        duration_minutes=minutes,
    )

    reply = f"Focus session started!\nTask: {task.title}\nDuration: {minutes} minutes\n"
    reply += '\nStay focused! Say "stop focus" when done.'
    if minutes >= 45:
        reply += "\n\nLong session - consider a 10-15 min break after."
    elif minutes == 25:
        reply += "\n\nClassic Pomodoro! Take a 5 min break after."
    return reply


def _stop(ctx: ToolContext) -> str:
    active = ctx.focus.status()
    session = ctx.focus.stop()
    if session is None or active is None:
        return "No focus session is running."

    ctx.notifications.post(
        Notification.FOCUS_SESSION_STOP,
        task_id=session.task_id,
        duration_seconds=session.duration_seconds,
        completed=session.completed,
    )
    minutes = session.duration_seconds // 60
    return (
        f"Focus session ended ({minutes} min on '{active.task_title}').\n\n"
        "Great work! Take a short break before your next session."
    )


def _status(ctx: ToolContext) -> str:
    active = ctx.focus.status()
    ctx.notifications.post(
        Notification.FOCUS_SESSION_STATUS,
        active=active is not None,
        task_id=active.task_id if active else None,
    )
    if active is None:
        return (
            "No focus session is running.\n\n"
            'To start a session, say "focus on [task name]".'
        )
    remaining = (ctx.focus.remaining_seconds() + 59) // 60
    return (
        f"Focusing on '{active.task_title}': {remaining} min remaining of {active.planned_minutes}.\n\n"
        'To end the session, say "stop focus".'
    )


FOCUS_SESSION = Tool(
    name="focusSession",
    description="Manage focus sessions. Triggers: focus on, start focus, pomodoro, deep work, stop focus, end session.",
    handler=_focus_session,
    parameters={
        "action": {"enum": ["start", "stop", "status"]},
        "taskTitle": {"type": "string"},
        "durationMinutes": {"type": "integer"},
    },
    required=("action",),
)
