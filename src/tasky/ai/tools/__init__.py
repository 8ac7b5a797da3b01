"""AI tools the assistant can call, and the registry that dispatches them."""

from __future__ import annotations

from .analytics_tools import TASK_ANALYTICS
from .base import Tool, ToolContext, ToolRegistry
from .context_tools import CONTEXT_TOOLS
from .focus_tools import FOCUS_SESSION
from .list_tools import MANAGE_LIST
from .planning_tools import PLANNING_TOOLS
from .task_tools import TASK_TOOLS

ALL_TOOLS: tuple[Tool, ...] = (
    *TASK_TOOLS,
    MANAGE_LIST,
    *PLANNING_TOOLS,
    *CONTEXT_TOOLS,
    FOCUS_SESSION,
    TASK_ANALYTICS,
)


def build_tool_registry(ctx: ToolContext) -> ToolRegistry:
    registry = ToolRegistry(ctx)
    for tool in ALL_TOOLS:
        registry.register(tool)
    return registry


__all__ = ["ALL_TOOLS", "Tool", "ToolContext", "ToolRegistry", "build_tool_registry"]
