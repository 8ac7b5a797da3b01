# src/tasky/connectors/console_connector.py

from __future__ import annotations

import asyncio
import logging
import sys
import threading
from dataclasses import dataclass
from datetime import datetime

from ..cli.commands import registry as command_registry
from ..core.state import AppState
from ..tasks.reminders import run_reminder_loop

logger = logging.getLogger(__name__)


def _ts_local() -> str:
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _rewrite_prev_line(line: str) -> None:
    """
    Replace the last terminal line with `line`.
    If stdout is not a TTY, just print a new line.
    """
    if sys.stdout.isatty():
        sys.stdout.write("\033[1A\033[2K\r")
        sys.stdout.write(line + "\n")
        sys.stdout.flush()
    else:
        print(line)


def _print_ts(text: str) -> None:
    print(f"[{_ts_local()}] {text}", flush=True)


class ConsoleMessenger:
    """OutboundMessenger that prints background messages (reminders) to the console."""

    def __init__(self, lock: threading.RLock | None = None) -> None:
        self._lock = lock or threading.RLock()

    async def send_text(self, *, text: str) -> None:
        with self._lock:
            _print_ts(f"[REMINDER] {text}")


@dataclass
class ReminderBackgroundRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    task: asyncio.Task[None]

    def stop(self) -> None:
        if not self.loop.is_closed():
            self.loop.call_soon_threadsafe(self.task.cancel)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_reminders_in_background(state: AppState) -> ReminderBackgroundRunner | None:
    """
    Run the reminder loop in a background thread with its own event loop,
    so the blocking console REPL can run in parallel.
    """
    if not getattr(state.settings, "reminders_enabled", True):
        logger.info("Reminders disabled, not starting.")
        return None

    interval = float(getattr(state.settings, "reminder_interval_seconds", 60.0))
    messenger = ConsoleMessenger(state.lock)
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        task = loop.create_task(run_reminder_loop(state.store, messenger, interval_seconds=interval))
        holder["loop"] = loop
        holder["task"] = task
        ready.set()

        try:
            loop.run_until_complete(task)
        except asyncio.CancelledError:
            logger.info("Reminder loop stopped.")
        finally:
            loop.close()

    t = threading.Thread(target=runner, name="tasky-reminders", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    task = holder.get("task")
    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(task, asyncio.Task):
        logger.error("Reminder thread did not initialize properly.")
        return None

    logger.info("Reminder background thread started (interval=%.0fs).", interval)
    return ReminderBackgroundRunner(thread=t, loop=loop, task=task)


def _print_preview(state: AppState) -> None:
    preview = state.chat.created_tasks_preview
    if not preview:
        return
    _print_ts(f"[PREVIEW] {len(preview)} task(s) created. Type /undo to remove them.")


def run_console_loop(state: AppState) -> None:
    logger.info("Console connector started.")
    app_name = str(getattr(state.settings, "app_name", "tasky"))
    _print_ts("[CONSOLE] Type your messages. Use /help for commands. Use /exit to quit.\n")

    for entry in state.chat.messages[-4:]:
        who = "You" if entry.role == "user" else app_name
        print(f"{who}: {entry.content}\n")

    while True:
        try:
            user_input = input(">>> You: ").strip()
            _rewrite_prev_line(f"[{_ts_local()}] >>> You: {user_input}")
        except EOFError:
            logger.info("Console EOF received, exiting.")
            break
        except KeyboardInterrupt:
            logger.info("Console KeyboardInterrupt, exiting.")
            print()
            break

        if not user_input:
            continue

        if user_input.lower() in ("/exit", "/quit"):
            logger.info("Console exit command received.")
            break

        try:
            with state.lock:
                cmd_response = command_registry.handle(state, user_input)
        except Exception:
            logger.exception("Command handler crashed.")
            cmd_response = "Internal error while handling a command."

        if cmd_response is not None:
            _print_ts(cmd_response)
            continue

        assistant_printed = False
        try:
            with state.lock:
                for piece in state.chat.stream_message(user_input):
                    if not piece:
                        continue
                    if not assistant_printed:
                        print(f"[{_ts_local()}] <<< {app_name}: ", end="", flush=True)
                        assistant_printed = True
                    print(piece, end="", flush=True)
        except Exception:
            logger.exception("Console chat handler crashed.")
            _print_ts("Internal error while generating a reply.")
            continue

        if not assistant_printed:
            _print_ts("[LLM] Still working on the previous request.")
            continue

        print("\n")
        if state.chat.last_error is not None:
            title, message = state.chat.last_error
            _print_ts(f"[{title}] {message}")
        _print_preview(state)

    logger.info("Console connector finished.")
