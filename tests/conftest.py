# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest

from tasky.ai.tools import ToolContext
from tasky.cli.bootstrap import create_initial_state
from tasky.core.state import AppState
from tasky.memory.context_store import ContextStore
from tasky.tasks.store import TaskStore

from .fakes import FakeLLMClient


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and the bootstrap.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="tasky-test",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        tasks_db_path=tmp_path / "tasks.sqlite3",
        context_db_path=tmp_path / "context.sqlite3",
        usage_path=tmp_path / "tool_usage.json",
        dialog_history_path=tmp_path / "dialog_histories.json",
        # Limits
        chat_token_limit=3500,
        max_tool_rounds=3,
        undo_window_seconds=5.0,
        max_dialog_messages=80,
        max_custom_lists=5,
        context_max_items=100,
        # Features
        save_history=True,
        reminders_enabled=False,
        reminder_interval_seconds=60.0,
        llm_models=["test/model"],
    )


@pytest.fixture()
def llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture()
def state(settings: SimpleNamespace, llm: FakeLLMClient) -> Iterator[AppState]:
    """
    AppState wired with a scripted fake LLM.

    NOTE: We keep real SQLite stores here because their correctness is part
    of what we want to test.
    """
    st = create_initial_state(settings=settings, llm=llm)
    yield st
    st.chat.close()
    st.undo.shutdown()


@pytest.fixture()
def store(state: AppState) -> TaskStore:
    return state.store


@pytest.fixture()
def context_store(state: AppState) -> ContextStore:
    return state.context_store


@pytest.fixture()
def ctx(state: AppState) -> ToolContext:
    return state.tools.ctx
