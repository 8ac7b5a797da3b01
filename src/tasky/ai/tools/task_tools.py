# src/tasky/ai/tools/task_tools.py

"""
Task tools: create, complete, reschedule, delete, update and query.

Bulk tools select tasks through a TaskFilter. When exactly one task is
affected, an undo action is registered and the single-task notification is
posted; otherwise the bulk notification is.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Any

from ...core.events import Notification
from ...core.undo import (
    TaskPreviousState,
    completion_undo,
    create_undo,
    delete_undo,
    reschedule_undo,
    update_undo,
)
from ...errors import NotFoundError, ValidationError
from ...memory.models import ContextCategory, ContextSource
from ...tasks.models import DeletedTaskInfo, Task, priority_emoji, start_of_day
from ...tasks.recurrence import RecurrencePattern
from .. import helpers
from .base import (
    FILTER_SCHEMA,
    PRIORITY_VALUES,
    Tool,
    ToolContext,
    arg_bool,
    arg_int,
    arg_str,
    titles_summary,
)

logger = logging.getLogger(__name__)

MAX_ESTIMATE_MINUTES = 480


def _filtered(ctx: ToolContext, args: dict[str, Any]) -> list[Task] | str:
    """Tasks matching args["filter"], or a reply string when the filter can't resolve."""
    flt = helpers.TaskFilter.from_args(args.get("filter") if isinstance(args.get("filter"), dict) else None)
    try:
        return helpers.fetch_tasks_matching(flt, ctx.store, ctx.now())
    except NotFoundError as e:
        return str(e)


# ---- createTasks ----


def _create_tasks(ctx: ToolContext, args: dict[str, Any]) -> str:
    items = args.get("tasks")
    if isinstance(items, dict):
        items = [items]
    if not isinstance(items, list) or not items:
        return "Sorry, I couldn't create any tasks. Please try again."

    today = start_of_day(ctx.now())
    created: list[Task] = []
    previews: list[dict[str, Any]] = []
    missing_lists: list[str] = []
    unreadable_dates: list[str] = []

    for raw in items:
        if not isinstance(raw, dict):
            continue
        title = arg_str(raw, "title") or ""

        due_raw = arg_str(raw, "dueDate")
        due = helpers.parse_iso_day(due_raw, ctx.now())
        if due is None:
            if due_raw:
                unreadable_dates.append(due_raw)
            due = today
        scheduled = helpers.parse_iso_date(arg_str(raw, "scheduledTime"))
        scheduled_end = helpers.parse_iso_date(arg_str(raw, "scheduledEndTime"))

        list_name = arg_str(raw, "listName")
        lst = helpers.find_list(list_name, ctx.store) if list_name else None
        if list_name and lst is None and list_name not in missing_lists:
            missing_lists.append(list_name)

        recurrence = None
        if isinstance(raw.get("recurrence"), dict):
            recurrence = RecurrencePattern.from_dict(raw["recurrence"])
            if recurrence is not None and not recurrence.is_valid:
                recurrence = None

        estimate = min(max(arg_int(raw, "estimatedMinutes", 0) or 0, 0), MAX_ESTIMATE_MINUTES)
        days = raw.get("recurrenceDays") if isinstance(raw.get("recurrenceDays"), list) else None

        try:
            task = ctx.store.create_task(
                title,
                notes=arg_str(raw, "notes"),
                due_date=due,
                scheduled_time=scheduled,
                scheduled_end_time=scheduled_end,
                priority=PRIORITY_VALUES.get((arg_str(raw, "priority") or "").lower(), 0),
                list_id=lst.id if lst else None,
                is_recurring=arg_bool(raw, "isRecurring"),
                recurrence_days=[int(d) for d in days or [] if str(d).isdigit()],
                recurrence=recurrence,
                estimated_duration=estimate,
            )
        except ValidationError:
            logger.warning("createTasks skipped invalid task %r", raw)
            continue

        created.append(task)
        previews.append(
            {
                "id": task.id,
                "title": task.title,
                "due_date": task.due_date,
                "priority": task.priority,
                "list_name": lst.name if lst else None,
                "estimated_minutes": task.estimated_duration,
            }
        )
        _learn_from_task(ctx, raw, task)

    if not created:
        return "Sorry, I couldn't create any tasks. Please try again."

    if len(created) == 1:
        reply = f'✓ Created task: "{created[0].title}"'
    else:
        header = (
            f"✓ Created {len(created)} tasks:"
            if len(created) == len(items)
            else f"✓ Created {len(created)} of {len(items)} tasks:"
        )
        reply = header + "\n" + "\n".join(f"• {t.title}" for t in created)

    if len(missing_lists) == 1:
        reply += f"\n\n(Note: List '{missing_lists[0]}' was not found, task added to Inbox)"
    elif missing_lists:
        reply += f"\n\n(Note: Lists not found: {', '.join(missing_lists)}; tasks added to Inbox)"
    if unreadable_dates:
        dates = ", ".join(repr(d) for d in unreadable_dates)
        reply += f"\n\n(Note: Couldn't read due date {dates}; used today instead)"

    ctx.undo.register(create_undo(ctx.store, [t.id for t in created]))
    ctx.notifications.post(Notification.TASKS_CREATED, tasks=previews)
    return reply


def _learn_from_task(ctx: ToolContext, raw: dict[str, Any], task: Task) -> None:
    """Reinforce people, goals and list habits mentioned while creating a task."""
    person = arg_str(raw, "relatedPerson")
    if person:
        ctx.context_store.save(
            ContextCategory.PERSON,
            person,
            person,
            ContextSource.EXTRACTED,
            metadata={"lastMentionedTaskId": task.id},
        )
    goal = arg_str(raw, "relatedGoal")
    if goal:
        ctx.context_store.save(ContextCategory.GOAL, goal, goal, ContextSource.EXTRACTED)
    list_name = arg_str(raw, "listName")
    if list_name:
        ctx.context_store.save(
            ContextCategory.PREFERENCE,
            f"list_{list_name.lower()}",
            f"Uses '{list_name}' list for tasks",
            ContextSource.INFERRED,
        )


CREATE_TASKS = Tool(
    name="createTasks",
    description="Create new tasks. Triggers: add, create, remind me, new task, schedule, set reminder.",
    handler=_create_tasks,
    parameters={
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "relatedPerson": {"type": "string"},
                    "relatedGoal": {"type": "string"},
                    "listName": {"type": "string"},
                    "notes": {"type": "string"},
                    "dueDate": {"type": "string", "format": "date"},
                    "scheduledTime": {"type": "string", "format": "date-time"},
                    "scheduledEndTime": {"type": "string", "format": "date-time"},
                    "priority": {"enum": ["none", "low", "medium", "high"]},
                    "isRecurring": {"type": "boolean"},
                    "recurrenceDays": {"type": "array", "items": {"type": "integer"}},
                    "recurrence": {"type": "object"},
                    "estimatedMinutes": {"type": "integer"},
                },
                "required": ["title"],
            },
        }
    },
    required=("tasks",),
)


# ---- completeTasks ----


def _complete_tasks(ctx: ToolContext, args: dict[str, Any]) -> str:
    completed = arg_bool(args, "completed", True)
    tasks = _filtered(ctx, args)
    if isinstance(tasks, str):
        return tasks

    to_change = [t for t in tasks if t.is_completed != completed]
    if not to_change:
        if not tasks:
            return "No tasks found matching your criteria."
        state = "already complete" if completed else "already incomplete"
        if len(tasks) == 1:
            return f"'{tasks[0].title}' is {state}."
        return f"All {len(tasks)} matching tasks are {state}."

    titles = [t.title for t in to_change]
    count = ctx.store.complete_tasks(to_change, completed)
    action = "Completed" if completed else "Reopened"

    if count == 1:
        task = to_change[0]
        ctx.undo.register(completion_undo(ctx.store, task.id, task.title, completed))
        ctx.notifications.post(
            Notification.TASK_COMPLETED,
            task_id=task.id,
            task_title=task.title,
            completed=completed,
            undo_available=True,
        )
        return f"✓ {action} '{titles[0]}'"

    ctx.notifications.post(
        Notification.BULK_TASKS_COMPLETED,
        task_ids=[t.id for t in to_change],
        task_titles=titles,
        completed=completed,
        count=count,
    )
    return f"✓ {action} {count} tasks: {titles_summary(titles, count)}"


COMPLETE_TASKS = Tool(
    name="completeTasks",
    description="Mark tasks complete or reopen them. Triggers: done, finished, complete, check off, reopen.",
    handler=_complete_tasks,
    parameters={"filter": FILTER_SCHEMA, "completed": {"type": "boolean"}},
    required=("filter",),
)


# ---- rescheduleTasks ----


def _reschedule_tasks(ctx: ToolContext, args: dict[str, Any]) -> str:
    target = arg_str(args, "targetDate") or ""
    new_date = helpers.calculate_new_date(target, arg_str(args, "specificDate"), ctx.now())
    if new_date is None:
        return f"Could not understand the date '{target}'. Try: today, tomorrow, monday, or a specific date."

    tasks = _filtered(ctx, args)
    if isinstance(tasks, str):
        return tasks
    pending = [t for t in tasks if not t.is_completed]
    if not pending:
        return "No tasks found matching your criteria." if not tasks else "All matching tasks are already completed."

    time_str = arg_str(args, "time")
    scheduled = helpers.parse_time(time_str, new_date) if time_str else None

    previous = [(t.due_date, t.scheduled_time, t.scheduled_end_time) for t in pending]
    titles = [t.title for t in pending]
    count = ctx.store.reschedule_tasks(pending, new_date, scheduled)

    date_label = helpers.format_relative_date(new_date, ctx.now())
    time_label = f" at {helpers.format_time(scheduled)}" if scheduled else ""

    if count == 1:
        task = pending[0]
        due, sched, sched_end = previous[0]
        ctx.undo.register(
            reschedule_undo(
                ctx.store,
                task.id,
                task.title,
                previous_due_date=due,
                previous_scheduled_time=sched,
                previous_scheduled_end_time=sched_end,
            )
        )
        ctx.notifications.post(
            Notification.TASK_RESCHEDULED,
            task_id=task.id,
            task_title=task.title,
            new_date=new_date,
            previous_due_date=due,
            undo_available=True,
        )
        return f"✓ Rescheduled '{titles[0]}' to {date_label}{time_label}"

    ctx.notifications.post(
        Notification.BULK_TASKS_RESCHEDULED,
        task_ids=[t.id for t in pending],
        task_titles=titles,
        new_date=new_date,
        count=count,
    )
    return f"✓ Rescheduled {count} tasks to {date_label}{time_label}: {titles_summary(titles, count)}"


RESCHEDULE_TASKS = Tool(
    name="rescheduleTasks",
    description="Move tasks to another day. Triggers: move, postpone, reschedule, push to, delay.",
    handler=_reschedule_tasks,
    parameters={
        "filter": FILTER_SCHEMA,
        "targetDate": {
            "enum": [
                "today", "tomorrow", "next_week", "next_month",
                "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
                "specific_date",
            ]
        },
        "specificDate": {"type": "string", "format": "date"},
        "time": {"type": "string", "pattern": "HH:MM"},
    },
    required=("filter", "targetDate"),
)


# ---- deleteTasks ----


def _delete_tasks(ctx: ToolContext, args: dict[str, Any]) -> str:
    delete_all = arg_bool(args, "deleteAll")
    confirmed = arg_bool(args, "confirmed")

    if delete_all and not confirmed:
        total = ctx.store.count_tasks()
        return (
            f"⚠️ This will permanently delete ALL {total} tasks. This action cannot be undone.\n\n"
            'Say "delete all tasks, confirm" to proceed.'
        )

    if delete_all:
        tasks = ctx.store.fetch_all_tasks()
    elif not isinstance(args.get("filter"), dict) or not args["filter"]:
        return "Please specify which tasks to delete."
    else:
        found = _filtered(ctx, args)
        if isinstance(found, str):
            return found
        tasks = found

    if not tasks:
        return "No tasks found matching your criteria."

    titles = [t.title for t in tasks]
    if len(tasks) >= 3 and not confirmed:
        preview = "\n".join(f"• {t}" for t in titles[:5])
        more = f"\n• ...and {len(tasks) - 5} more" if len(tasks) > 5 else ""
        return f'This will delete {len(tasks)} tasks:\n{preview}{more}\n\nSay "confirm delete" to proceed.'

    infos = [DeletedTaskInfo.from_task(t) for t in tasks]
    count = ctx.store.delete_tasks(tasks)

    if count == 1:
        ctx.undo.register(delete_undo(ctx.store, infos[0]))
        ctx.notifications.post(Notification.TASK_DELETED, deleted_task_info=infos[0], undo_available=True)
        return f"✓ Deleted '{titles[0]}'"

    ctx.notifications.post(Notification.BULK_TASKS_DELETED, task_titles=titles, count=count)
    return f"✓ Deleted {count} tasks: {titles_summary(titles, count)}"


DELETE_TASKS = Tool(
    name="deleteTasks",
    description="Delete tasks. Deleting 3 or more needs confirmed=true. Triggers: delete, remove, get rid of.",
    handler=_delete_tasks,
    parameters={"filter": FILTER_SCHEMA, "confirmed": {"type": "boolean"}, "deleteAll": {"type": "boolean"}},
)


# ---- updateTasks ----


def _update_tasks(ctx: ToolContext, args: dict[str, Any]) -> str:
    new_priority = arg_str(args, "newPriority")
    new_list_name = arg_str(args, "newListName")
    if new_priority is None and new_list_name is None:
        return "Please specify what to update: newPriority (high/medium/low/none) or newListName."

    tasks = _filtered(ctx, args)
    if isinstance(tasks, str):
        return tasks
    pending = [t for t in tasks if not t.is_completed]
    if not pending:
        if not tasks:
            return "No tasks found matching your criteria."
        return "All matching tasks are completed. Cannot update completed tasks."

    snapshots = [
        TaskPreviousState(
            title=t.title,
            notes=t.notes,
            due_date=t.due_date,
            scheduled_time=t.scheduled_time,
            scheduled_end_time=t.scheduled_end_time,
            priority=t.priority,
            list_id=t.list_id,
        )
        for t in pending
    ]

    changes: list[str] = []
    count = 0
    if new_priority is not None:
        count = ctx.store.update_tasks_priority(pending, PRIORITY_VALUES.get(new_priority.lower(), 2))
        changes.append(f"priority → {new_priority}")
    if new_list_name is not None:
        target = helpers.find_list(new_list_name, ctx.store)
        count = ctx.store.move_tasks_to_list(pending, target.id if target else None)
        changes.append(f"list → {target.name if target else 'Inbox'}")

    titles = [t.title for t in pending]
    change_text = ", ".join(changes)

    if count == 1:
        task = pending[0]
        ctx.undo.register(update_undo(ctx.store, task.id, snapshots[0]))
        ctx.notifications.post(
            Notification.TASK_UPDATED,
            task_id=task.id,
            task_title=task.title,
            changes=changes,
            undo_available=True,
        )
        return f"✓ Updated '{titles[0]}': {change_text}"

    ctx.notifications.post(
        Notification.BULK_TASKS_UPDATED,
        task_ids=[t.id for t in pending],
        task_titles=titles,
        changes=change_text,
        count=count,
    )
    return f"✓ Updated {count} tasks ({change_text}): {titles_summary(titles, count)}"


UPDATE_TASKS = Tool(
    name="updateTasks",
    description="Change priority or move tasks to another list. Triggers: set priority, mark important, move to list.",
    handler=_update_tasks,
    parameters={
        "filter": FILTER_SCHEMA,
        "newPriority": {"enum": ["high", "medium", "low", "none"]},
        "newListName": {"type": "string"},
    },
    required=("filter",),
)


# ---- queryTasks ----


def _sort_tasks(tasks: list[Task], sort_by: str) -> list[Task]:
    if sort_by == "priority":
        return sorted(tasks, key=lambda t: t.priority, reverse=True)
    if sort_by == "created":
        return sorted(tasks, key=lambda t: t.created_at, reverse=True)
    if sort_by == "alphabetical":
        return sorted(tasks, key=lambda t: t.title.lower())
    return sorted(tasks, key=lambda t: t.due_date or datetime.max)


def _line(task: Task, detail: str) -> str:
    status = "✓" if task.is_completed else "○"
    return f"{status} {task.title}{detail} {priority_emoji(task.priority)}".rstrip()


def _query_tasks(ctx: ToolContext, args: dict[str, Any]) -> str:
    query_type = (arg_str(args, "queryType") or "list").lower()
    limit = min(max(arg_int(args, "limit", 10) or 10, 1), 20)
    sort_by = (arg_str(args, "sortBy") or "due_date").lower()

    tasks = _filtered(ctx, args)
    if isinstance(tasks, str):
        return tasks
    tasks = _sort_tasks(tasks, sort_by)
    flt = args.get("filter") if isinstance(args.get("filter"), dict) else {}
    now = ctx.now()

    if query_type == "count":
        return _format_count(tasks, flt)
    if query_type == "search":
        return _format_search(ctx, tasks, flt, limit, now)
    if query_type == "status":
        return _format_status(tasks, now)
    if query_type == "summary":
        return _format_summary(ctx, tasks)
    return _format_list(ctx, tasks, limit, now)


def _format_count(tasks: list[Task], flt: dict[str, Any]) -> str:
    done = sum(1 for t in tasks if t.is_completed)
    out = "📊 **Task Count**\n\n"
    out += f"• Total: {len(tasks)}\n• Incomplete: {len(tasks) - done}\n• Completed: {done}\n"
    if flt.get("listName"):
        out += f"\n(Filtered by list: '{flt['listName']}')"
    if flt.get("keyword"):
        out += f"\n(Matching: '{flt['keyword']}')"
    return out


def _format_search(ctx: ToolContext, tasks: list[Task], flt: dict[str, Any], limit: int, now: datetime) -> str:
    names = flt.get("taskNames") or []
    keyword = flt.get("keyword") or (names[0] if names else "")
    if not tasks:
        return f"🔍 No tasks found matching '{keyword}'."

    lists = {lst.id: lst.name for lst in ctx.store.fetch_all_lists()}
    out = f"🔍 **Search Results for '{keyword}':** ({len(tasks)} found)\n\n"
    for t in tasks[:limit]:
        details = []
        if t.due_date:
            details.append(f"due {helpers.format_relative_date(t.due_date, now)}")
        if t.list_id in lists:
            details.append(f"in {lists[t.list_id]}")
        out += _line(t, f" ({', '.join(details)})" if details else "") + "\n"
    if len(tasks) > limit:
        out += f"\n...and {len(tasks) - limit} more"
    return out


def _format_status(tasks: list[Task], now: datetime) -> str:
    today = start_of_day(now)
    tomorrow = today + timedelta(days=1)
    pending = [t for t in tasks if not t.is_completed]

    overdue = [t for t in pending if t.due_date and t.due_date < today]
    due_today = [t for t in pending if t.due_date and start_of_day(t.due_date) == today]
    due_tomorrow = [t for t in pending if t.due_date and start_of_day(t.due_date) == tomorrow]
    no_due = [t for t in pending if t.due_date is None]
    done = [t for t in tasks if t.is_completed]

    out = "📈 **Task Status**\n\n"
    if overdue:
        out += f"🔴 Overdue: {len(overdue)}\n" + "".join(f"   • {t.title}\n" for t in overdue[:3])
    if due_today:
        out += f"🟠 Due Today: {len(due_today)}\n" + "".join(f"   • {t.title}\n" for t in due_today[:3])
    if due_tomorrow:
        out += f"🟡 Due Tomorrow: {len(due_tomorrow)}\n"
    if no_due:
        out += f"⚪ No Due Date: {len(no_due)}\n"
    out += f"✅ Completed: {len(done)}\n"
    return out


def _format_summary(ctx: ToolContext, tasks: list[Task]) -> str:
    pending = [t for t in tasks if not t.is_completed]
    done = len(tasks) - len(pending)
    high = sum(1 for t in pending if t.priority >= 3)
    medium = sum(1 for t in pending if t.priority == 2)
    normal = sum(1 for t in pending if t.priority <= 1)
    minutes = sum(t.estimated_duration for t in pending)

    lists = {lst.id: lst.name for lst in ctx.store.fetch_all_lists()}
    by_list = Counter(lists.get(t.list_id or "", "Inbox") for t in pending)

    out = "📋 **Task Summary**\n\n**Overview:**\n"
    out += f"• {len(pending)} incomplete, {done} completed\n"
    if minutes > 0:
        out += f"• Estimated time: {helpers.format_duration(minutes)}\n"

    out += "\n**By Priority:**\n"
    if high:
        out += f"• 🔴 High: {high}\n"
    if medium:
        out += f"• 🟠 Medium: {medium}\n"
    if normal:
        out += f"• ⚪ Normal: {normal}\n"

    if len(by_list) > 1:
        out += "\n**By List:**\n"
        for name, n in by_list.most_common(5):
            out += f"• {name}: {n}\n"
    return out


def _format_list(ctx: ToolContext, tasks: list[Task], limit: int, now: datetime) -> str:
    if not tasks:
        return "No tasks found matching your criteria."

    shown = tasks[:limit]
    out = f"📋 **Tasks** ({len(tasks)} total):\n\n"
    for t in shown:
        detail = f" - {helpers.format_relative_date(t.due_date, now)}" if t.due_date else ""
        out += _line(t, detail) + "\n"
    if len(tasks) > limit:
        out += f"\n...and {len(tasks) - limit} more tasks"

    ctx.notifications.post(Notification.QUERY_RESULTS, task_ids=[t.id for t in shown], total_count=len(tasks))
    return out


QUERY_TASKS = Tool(
    name="queryTasks",
    description="Search and query tasks. Triggers: show tasks, list tasks, what tasks, find tasks, how many tasks, search for.",
    handler=_query_tasks,
    parameters={
        "queryType": {"enum": ["list", "count", "search", "status", "summary"]},
        "filter": FILTER_SCHEMA,
        "limit": {"type": "integer"},
        "sortBy": {"enum": ["due_date", "priority", "created", "alphabetical"]},
    },
)


TASK_TOOLS = (CREATE_TASKS, COMPLETE_TASKS, RESCHEDULE_TASKS, DELETE_TASKS, UPDATE_TASKS, QUERY_TASKS)
