# src/tasky/ai/tools/list_tools.py

from __future__ import annotations

from typing import Any

from ...core.events import Notification
from ...core.undo import list_delete_undo, list_rename_undo
from ...errors import ConflictError, TaskyError
from ...tasks.store import INBOX_NAME
from .. import helpers
from .base import Tool, ToolContext, arg_str

COLOR_MAP = {
    "red": "FF3B30",
    "orange": "FF9500",
    "yellow": "FFCC00",
    "green": "34C759",
    "blue": "007AFF",
    "purple": "AF52DE",
    "pink": "FF2D55",
    "gray": "8E8E93",
}

ICON_MAP = {
    "list": "list.bullet",
    "folder": "folder",
    "briefcase": "briefcase",
    "house": "house",
    "cart": "cart",
    "heart": "heart",
    "star": "star",
    "flag": "flag",
    "book": "book",
    "gift": "gift",
}


def _manage_list(ctx: ToolContext, args: dict[str, Any]) -> str:
    action = (arg_str(args, "action") or "").lower()
    if action == "create":
        return _create(ctx, args)
    if action == "rename":
        return _rename(ctx, args)
    if action == "delete":
        return _delete(ctx, args)
    return f"Unknown action '{arg_str(args, 'action') or ''}'. Use: create, rename, or delete."


def _create(ctx: ToolContext, args: dict[str, Any]) -> str:
    name = arg_str(args, "listName")
    if not name:
        return "List name cannot be empty."

    color = COLOR_MAP.get((arg_str(args, "color") or "").lower(), COLOR_MAP["blue"])
    icon = ICON_MAP.get((arg_str(args, "icon") or "").lower(), ICON_MAP["list"])

    try:
        lst = ctx.store.create_list(name, color_hex=color, icon_name=icon)
    except ConflictError as e:
        return str(e)
    except TaskyError as e:
        return f"Failed to create list: {e}"

    ctx.notifications.post(Notification.LIST_CREATED, list_name=lst.name, list_id=lst.id)
    return f"Created list '{lst.name}'"


def _not_found(ctx: ToolContext, name: str) -> str:
    return f"Could not find list '{name}'. Available: {helpers.available_list_names(ctx.store)}"


def _rename(ctx: ToolContext, args: dict[str, Any]) -> str:
    new_name = arg_str(args, "newName")
    if not new_name:
        return "Please specify the new name for the list."

    name = arg_str(args, "listName") or ""
    lst = helpers.find_list(name, ctx.store)
    if lst is None:
        return _not_found(ctx, name)

    old_name = lst.name
    try:
        ctx.store.update_list(lst.id, name=new_name)
    except TaskyError as e:
        return f"Failed to rename list: {e}"

    ctx.undo.register(list_rename_undo(ctx.store, lst.id, old_name, new_name))
    ctx.notifications.post(
        Notification.LIST_UPDATED,
        list_id=lst.id,
        old_name=old_name,
        new_name=new_name,
        undo_available=True,
    )
    return f"Renamed '{old_name}' to '{new_name}'"


def _delete(ctx: ToolContext, args: dict[str, Any]) -> str:
    name = arg_str(args, "listName") or ""
    lst = helpers.find_list(name, ctx.store)
    if lst is None:
        return _not_found(ctx, name)
    if lst.name == INBOX_NAME:
        return "The Inbox can't be deleted."

    task_ids = [t.id for t in ctx.store.fetch_tasks_for_list(lst.id)]
    moved = ctx.store.delete_list(lst.id)

    ctx.undo.register(list_delete_undo(ctx.store, lst, task_ids))
    ctx.notifications.post(
        Notification.LIST_DELETED,
        list_id=lst.id,
        list_name=lst.name,
        color_hex=lst.color_hex,
        icon_name=lst.icon_name,
        task_count=moved,
        undo_available=True,
    )

    reply = f"Deleted list '{lst.name}'"
    if moved > 0:
        reply += f" ({moved} tasks moved to Inbox)"
    return reply


MANAGE_LIST = Tool(
    name="manageList",
    description="Manage task lists. Triggers: create list, new list, rename list, delete list, remove list.",
    handler=_manage_list,
    parameters={
        "action": {"enum": ["create", "rename", "delete"]},
        "listName": {"type": "string"},
        "newName": {"type": "string"},
        "color": {"enum": list(COLOR_MAP)},
        "icon": {"enum": list(ICON_MAP)},
    },
    required=("action",),
)
