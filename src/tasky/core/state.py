# src/tasky/core/state.py

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any

from ..ai.tools import ToolRegistry
from ..ai.usage import AIUsageTracker
from ..memory.context_store import ContextStore
from ..tasks.focus import FocusTimer
from ..tasks.store import TaskStore
from .chat import ChatSession
from .events import NotificationCenter
from .ports import ChatMessage, LLMClient
from .undo import AIUndoManager


@dataclass
class AppState:
    """
    Runtime state shared by connectors and commands.

    `settings` is typed loosely so tests can pass a SimpleNamespace.
    Connectors hold `lock` while driving the chat session or the stores.
    """

    settings: Any
    llm: LLMClient
    store: TaskStore
    context_store: ContextStore
    notifications: NotificationCenter
    undo: AIUndoManager
    usage: AIUsageTracker
    focus: FocusTimer
    tools: ToolRegistry
    chat: ChatSession

    save_history: bool = True
    dialog_histories: dict[str, list[ChatMessage]] = field(default_factory=dict)
    lock: threading.RLock = field(default_factory=threading.RLock)
