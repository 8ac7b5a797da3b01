# src/tasky/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app.
- No secrets required at import time.
- Bad values fall back to defaults instead of crashing startup.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKY"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


load_dotenv(override=False)


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Global switches ----
    save_history: bool
    console_enabled: bool
    reminders_enabled: bool

    # ---- LLM / OpenRouter ----
    openrouter_api_key: str | None
    openrouter_base_url: str
    llm_models: list[str]
    extra_headers: dict[str, str]

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    tasks_db_path: Path
    context_db_path: Path
    usage_path: Path
    dialog_history_path: Path

    # ---- Assistant tuning ----
    chat_token_limit: int
    max_tool_rounds: int
    undo_window_seconds: float
    max_dialog_messages: int

    # ---- Domain limits ----
    max_custom_lists: int
    context_max_items: int

    # ---- Reminders ----
    reminder_interval_seconds: float

    @staticmethod
    def from_env() -> Settings:
        app_name = _env(_k("APP_NAME"), "tasky") or "tasky"
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        save_history = _env_bool(_k("SAVE_HISTORY"), True)
        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        reminders_enabled = _env_bool(_k("REMINDERS_ENABLED"), True)

        openrouter_api_key = _first_env(_k("OPENROUTER_API_KEY"), "OPENROUTER_API_KEY", default=None)
        openrouter_base_url = _env(_k("OPENROUTER_BASE_URL"), "https://openrouter.ai/api/v1")

        extra_headers = {
            "HTTP-Referer": _env(_k("HTTP_REFERER"), "https://example.com"),
            "X-Title": _env(_k("APP_TITLE"), app_name),
        }

        llm_models = _env_list(
            _k("LLM_MODELS"),
            [
                "x-ai/grok-4.1-fast:free",
                "qwen/qwen-2.5-72b-instruct:free",
                "deepseek/deepseek-chat-v3-0324:free",
            ],
        )

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/tasky"))
        tasks_db_path = _env_path(_k("TASKS_DB_PATH"), data_dir / "tasks.sqlite3")
        context_db_path = _env_path(_k("CONTEXT_DB_PATH"), data_dir / "context.sqlite3")
        usage_path = _env_path(_k("USAGE_PATH"), data_dir / "tool_usage.json")
        dialog_history_path = _env_path(_k("DIALOG_HISTORY_PATH"), data_dir / "dialog_history.json")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            save_history=save_history,
            console_enabled=console_enabled,
            reminders_enabled=reminders_enabled,
            openrouter_api_key=openrouter_api_key,
            openrouter_base_url=openrouter_base_url,
            llm_models=llm_models,
            extra_headers=extra_headers,
            data_dir=data_dir,
            tasks_db_path=tasks_db_path,
            context_db_path=context_db_path,
            usage_path=usage_path,
            dialog_history_path=dialog_history_path,
            chat_token_limit=max(500, _env_int(_k("CHAT_TOKEN_LIMIT"), 3500)),
            max_tool_rounds=min(max(_env_int(_k("MAX_TOOL_ROUNDS"), 3), 0), 5),
            undo_window_seconds=max(1.0, _env_float(_k("UNDO_WINDOW_SECONDS"), 5.0)),
            max_dialog_messages=_env_int(_k("MAX_DIALOG_MESSAGES"), 80),
            max_custom_lists=max(1, _env_int(_k("MAX_CUSTOM_LISTS"), 5)),
            context_max_items=max(10, _env_int(_k("CONTEXT_MAX_ITEMS"), 100)),
            reminder_interval_seconds=_env_float(_k("REMINDER_INTERVAL_SECONDS"), 60.0),
        )


SETTINGS = Settings.from_env()


def get_settings() -> Settings:
    return SETTINGS
