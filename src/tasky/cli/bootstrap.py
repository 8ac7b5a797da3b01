# src/tasky/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- wires concrete implementations into AppState (LLM, stores, tools, chat session),
- persists the console dialog as JSON (optional).
"""

from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Any

from ..ai.tools import ToolContext, build_tool_registry
from ..ai.usage import AIUsageTracker
from ..config import get_settings
from ..core.chat import ChatSession
from ..core.events import NotificationCenter
from ..core.ports import ChatMessage, LLMClient
from ..core.state import AppState
from ..core.undo import AIUndoManager
from ..llm.client import OpenRouterLLMClient
from ..llm.offline import OfflineLLMClient
from ..memory.context_store import ContextStore
from ..tasks.focus import FocusTimer
from ..tasks.store import TaskStore

logger = logging.getLogger(__name__)

CONSOLE_DIALOG_KEY = "console"


def _ensure_local_dirs(settings: Any) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.context_db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.usage_path.parent.mkdir(parents=True, exist_ok=True)
    settings.dialog_history_path.parent.mkdir(parents=True, exist_ok=True)


def _make_llm(settings: Any) -> LLMClient:
    client = OpenRouterLLMClient(settings)
    if client.is_configured:
        return client
    logger.info("No LLM API key configured, using the offline client.")
    return OfflineLLMClient()


def create_initial_state(*, settings: Any = None, llm: LLMClient | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings (and the LLM client) injectable makes the app easy to test.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = TaskStore(settings.tasks_db_path, max_custom_lists=settings.max_custom_lists)
    store.create_default_inbox_if_needed()
    context_store = ContextStore(settings.context_db_path, max_items=settings.context_max_items)

    notifications = NotificationCenter()
    undo = AIUndoManager(notifications, window_seconds=settings.undo_window_seconds)
    usage = AIUsageTracker(settings.usage_path)
    focus = FocusTimer(store)

    tools = build_tool_registry(
        ToolContext(
            store=store,
            context_store=context_store,
            notifications=notifications,
            undo=undo,
            usage=usage,
            focus=focus,
        )
    )

    llm_client = llm if llm is not None else _make_llm(settings)
    chat = ChatSession(
        llm_client,
        tools,
        token_limit=settings.chat_token_limit,
        max_tool_rounds=settings.max_tool_rounds,
    )

    return AppState(
        settings=settings,
        llm=llm_client,
        store=store,
        context_store=context_store,
        notifications=notifications,
        undo=undo,
        usage=usage,
        focus=focus,
        tools=tools,
        chat=chat,
        save_history=settings.save_history,
    )


def load_dialog_histories(state: AppState) -> dict[str, list[ChatMessage]]:
    if not state.save_history:
        return {}
    raw_path = getattr(state.settings, "dialog_history_path", None)
    if not raw_path:
        return {}
    path = Path(raw_path)
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text("utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.exception("Failed to load dialog histories from %s", path)
        return {}
    if not isinstance(data, dict):
        return {}

    out: dict[str, list[ChatMessage]] = {}
    for key, msgs in data.items():
        if not isinstance(key, str) or not isinstance(msgs, list):
            continue
        clean: list[ChatMessage] = []
        for m in msgs:
            if isinstance(m, dict):
                role = m.get("role", "user")
                if role not in ("user", "assistant"):
                    role = "user"
                clean.append({"role": role, "content": str(m.get("content", ""))})
        if clean:
            out[key] = clean
    logger.info("Loaded dialog histories: %d dialogs from %s", len(out), path)
    return out


def run_startup_maintenance(state: AppState) -> None:
    """Prune remembered context and refresh open-task scores, which drift as due dates approach."""
    pruned, removed = state.context_store.perform_daily_maintenance()
    if pruned or removed:
        logger.info("Context maintenance: pruned=%s over_limit=%s", pruned, removed)
    rescored = state.store.update_ai_priority_scores()
    logger.info("Refreshed AI priority scores for %s open tasks", rescored)


def restore_console_dialog(state: AppState) -> None:
    """Load saved dialogs and replay the console one into the chat session."""
    state.dialog_histories = load_dialog_histories(state)
    msgs = state.dialog_histories.get(CONSOLE_DIALOG_KEY)
    if msgs:
        state.chat.restore_history(msgs)
    else:
        state.chat.add_welcome_message()


def save_dialog_histories(state: AppState) -> None:
    if not state.save_history:
        return
    raw_path = getattr(state.settings, "dialog_history_path", None)
    if not raw_path:
        return

    msgs = state.chat.export_history()
    max_msgs = int(getattr(state.settings, "max_dialog_messages", 80))
    state.dialog_histories[CONSOLE_DIALOG_KEY] = msgs[-max_msgs:]

    path = Path(raw_path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(json.dumps(state.dialog_histories, ensure_ascii=False, indent=2), "utf-8")
        os.replace(tmp, path)
        with contextlib.suppress(OSError):
            # History may contain personal content, keep the file private on disk.
            os.chmod(path, 0o600)
        logger.info("Saved dialog histories: %d dialogs to %s", len(state.dialog_histories), path)
    except OSError:
        logger.exception("Failed to save dialog histories to %s", path)
