# src/tasky/ai/tools/base.py

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ...core.events import Notification, NotificationCenter
from ...core.undo import AIUndoManager
from ...errors import TaskyError, ToolExecutionError
from ...memory.context_store import ContextStore
from ...tasks.focus import FocusTimer
from ...tasks.store import TaskStore
from ..usage import AIUsageTracker

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class ToolContext:
    """Everything a tool handler may touch."""

    store: TaskStore
    context_store: ContextStore
    notifications: NotificationCenter
    undo: AIUndoManager
    usage: AIUsageTracker
    focus: FocusTimer
    clock: Callable[[], datetime] = datetime.now

    def now(self) -> datetime:
        return self.clock()


ToolHandler = Callable[[ToolContext, dict[str, Any]], str]


@dataclass(slots=True, frozen=True)
class Tool:
    name: str
    description: str
    handler: ToolHandler
    parameters: dict[str, Any] = field(default_factory=dict)  # JSON schema "properties"
    required: tuple[str, ...] = ()

    def describe(self) -> str:
        args = ", ".join(
            f"{name}{'' if name in self.required else '?'}: {_type_hint(spec)}"
            for name, spec in self.parameters.items()
        )
        return f"- {self.name}({args}): {self.description}"


class ToolRegistry:
    """
    Named tools the model may call.

    Domain errors raised inside a handler become the tool's reply text;
    anything else is logged and surfaced as ToolExecutionError.
    """

    def __init__(self, ctx: ToolContext) -> None:
        self.ctx = ctx
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        if tool.name in self._tools:
            raise ValueError(f"tool already registered: {tool.name}")
        self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def call(self, name: str, arguments: Mapping[str, Any] | None = None) -> str:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolExecutionError(name, f"unknown tool: {name}")

        args = dict(arguments or {})
        self.ctx.usage.track(name)
        self.ctx.notifications.post(Notification.TOOL_CALLED, tool_name=name)
        logger.info("Tool call %s args=%s", name, _short_json(args))

        missing = [r for r in tool.required if args.get(r) in (None, "", [])]
        if missing:
            return f"Missing required argument(s) for {name}: {', '.join(missing)}."

        try:
            return tool.handler(self.ctx, args)
        except TaskyError as e:
            if isinstance(e, ToolExecutionError):
                raise
            logger.info("Tool %s rejected: %s", name, e)
            return str(e)
        except Exception as e:
            logger.exception("Tool %s failed", name)
            raise ToolExecutionError(name, str(e)) from e

    def describe(self) -> str:
        return "\n".join(t.describe() for t in self._tools.values())


def _type_hint(spec: Mapping[str, Any]) -> str:
    if "enum" in spec:
        return "|".join(str(v) for v in spec["enum"])
    if spec.get("type") == "array":
        return f"{spec.get('items', {}).get('type', 'any')}[]"
    return str(spec.get("type", "any"))


def _short_json(obj: Any, limit: int = 300) -> str:
    s = json.dumps(obj, ensure_ascii=False, default=str)
    return s if len(s) <= limit else s[:limit] + "..."


# ---- argument coercion (models are sloppy with types) ----


def arg_str(args: Mapping[str, Any], key: str) -> str | None:
    v = args.get(key)
    if v is None:
        return None
    s = str(v).strip()
    return s or None


def arg_int(args: Mapping[str, Any], key: str, default: int | None = None) -> int | None:
    v = args.get(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def arg_bool(args: Mapping[str, Any], key: str, default: bool = False) -> bool:
    v = args.get(key)
    if v is None:
        return default
    if isinstance(v, bool):
        return v
    return str(v).strip().lower() in {"1", "true", "yes", "y", "on"}


def titles_summary(titles: list[str], count: int) -> str:
    """"a, b, c and N more" for bulk confirmations."""
    shown = ", ".join(titles[:3])
    return shown + (f" and {count - 3} more" if count > 3 else "")


PRIORITY_VALUES = {"high": 3, "medium": 2, "low": 1, "none": 0}

FILTER_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "taskNames": {"type": "array", "items": {"type": "string"}},
        "listName": {"type": "string"},
        "status": {"enum": ["overdue", "today", "tomorrow", "this_week", "completed", "incomplete", "all"]},
        "priority": {"enum": ["high", "medium", "low", "any"]},
        "timeRange": {"enum": ["older_than_week", "older_than_month", "due_this_week", "due_next_week", "no_due_date"]},
        "keyword": {"type": "string"},
    },
}
