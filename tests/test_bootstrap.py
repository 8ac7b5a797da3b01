# tests/test_bootstrap.py

from __future__ import annotations

import contextlib
import json
import sqlite3
from datetime import datetime

from tasky.cli.bootstrap import (
    CONSOLE_DIALOG_KEY,
    create_initial_state,
    load_dialog_histories,
    restore_console_dialog,
    run_startup_maintenance,
    save_dialog_histories,
)
from tasky.core.chat import WELCOME_MESSAGE
from tasky.llm.offline import OfflineLLMClient
from tasky.tasks.models import Priority, start_of_day


def test_bootstrap_creates_inbox_and_offline_client(settings) -> None:
    settings.openrouter_api_key = None
    settings.openrouter_base_url = ""

    state = create_initial_state(settings=settings)
    try:
        assert isinstance(state.llm, OfflineLLMClient)
        assert [lst.name for lst in state.store.fetch_all_lists()] == ["Inbox"]
        assert "createTasks" in state.tools
    finally:
        state.chat.close()
        state.undo.shutdown()


def test_dialog_history_roundtrip(state, llm, settings) -> None:
    llm.push("Hello!")
    state.chat.send_message("hi")

    save_dialog_histories(state)

    data = json.loads(settings.dialog_history_path.read_text("utf-8"))
    assert data[CONSOLE_DIALOG_KEY] == [
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "Hello!"},
    ]

    state.chat.messages.clear()
    restore_console_dialog(state)
    assert [m.content for m in state.chat.messages] == ["hi", "Hello!"]


def test_history_is_trimmed_to_max_messages(state, llm, settings) -> None:
    settings.max_dialog_messages = 2
    for text in ("one", "two", "three"):
        state.chat.send_message(text)

    save_dialog_histories(state)

    data = json.loads(settings.dialog_history_path.read_text("utf-8"))
    assert [m["content"] for m in data[CONSOLE_DIALOG_KEY]] == ["three", "ok"]


def test_restore_without_history_shows_welcome(state) -> None:
    restore_console_dialog(state)
    assert [m.content for m in state.chat.messages] == [WELCOME_MESSAGE]


def test_load_dialog_histories_cleans_bad_data(state, settings) -> None:
    settings.dialog_history_path.write_text(
        json.dumps(
            {
                "console": [{"role": "system", "content": "x"}, {"role": "assistant", "content": 5}, "junk"],
                "other": "not a list",
            }
        ),
        "utf-8",
    )

    assert load_dialog_histories(state) == {
        "console": [{"role": "user", "content": "x"}, {"role": "assistant", "content": "5"}]
    }


def test_corrupt_history_file_is_ignored(state, settings) -> None:
    settings.dialog_history_path.write_text("{not json", "utf-8")
    assert load_dialog_histories(state) == {}


def test_history_disabled(state, llm, settings) -> None:
    state.save_history = False
    state.chat.send_message("hi")

    save_dialog_histories(state)

    assert not settings.dialog_history_path.exists()
    assert load_dialog_histories(state) == {}


def test_startup_maintenance_refreshes_stale_scores(state, settings) -> None:
    task = state.store.create_task("Pay rent", due_date=start_of_day(datetime.now()), priority=Priority.HIGH)
    with contextlib.closing(sqlite3.connect(str(settings.tasks_db_path))) as conn:
        conn.execute("UPDATE tasks SET ai_priority_score = 0 WHERE id = ?", (task.id,))
        conn.commit()

    run_startup_maintenance(state)

    assert state.store.require_task(task.id).ai_priority_score == task.ai_priority_score > 0
