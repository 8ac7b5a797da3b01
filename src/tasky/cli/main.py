# src/tasky/cli/main.py

"""
CLI entrypoint.

Initializes logging, builds AppState, runs startup maintenance (context pruning,
task score refresh), then starts:
- the due-task reminder loop in a background thread (optional),
- the console REPL in the main thread (optional).
"""

from __future__ import annotations

import logging
import signal
import threading

from ..cli.bootstrap import (
    create_initial_state,
    restore_console_dialog,
    run_startup_maintenance,
    save_dialog_histories,
)
from ..config import get_settings
from ..connectors.console_connector import ReminderBackgroundRunner, run_console_loop, start_reminders_in_background
from ..core.state import AppState
from ..logging_setup import setup_logging

logger = logging.getLogger(__name__)


def _shutdown(state: AppState) -> None:
    """Shutdown hook: persist the dialog, stop timers, close stores."""
    save_dialog_histories(state)
    state.chat.close()
    state.undo.shutdown()
    focus = state.focus.stop()
    if focus is not None:
        logger.info("Focus session saved on exit (%ss).", focus.duration_seconds)
    state.store.close()
    state.context_store.close()


def main() -> None:
    settings = get_settings()

    level_name = str(getattr(settings, "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    log_file = setup_logging(log_dir=settings.data_dir, console_level=console_level)
    logger.info("Starting %s (log file: %s)...", settings.app_name, log_file)

    state = create_initial_state(settings=settings)

    run_startup_maintenance(state)

    restore_console_dialog(state)

    reminders: ReminderBackgroundRunner | None = start_reminders_in_background(state)

    # Use an Event so main can wait without a busy while-loop.
    stop_main = threading.Event()

    def _handle_signal(signum, _frame) -> None:
        logger.info("Signal %s received, shutting down...", signum)
        stop_main.set()

    signal.signal(signal.SIGTERM, _handle_signal)
    if not settings.console_enabled:
        signal.signal(signal.SIGINT, _handle_signal)

    try:
        if settings.console_enabled:
            run_console_loop(state)
            stop_main.set()
        else:
            logger.info("Console disabled. Running reminders only. Press Ctrl+C to stop.")
            stop_main.wait()
    finally:
        if reminders is not None:
            reminders.stop()
            reminders.join(timeout=5.0)

        _shutdown(state)
        logger.info("Bye.")


if __name__ == "__main__":
    main()
