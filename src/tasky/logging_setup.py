# src/tasky/logging_setup.py

from __future__ import annotations

import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FILE_NAME = "tasky.log"
LOG_FILE_MAX_BYTES = 1_000_000
LOG_FILE_BACKUPS = 3

FILE_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(threadName)s %(name)s: %(message)s"
CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"

# Loggers that would interleave with the REPL output; WARNING+ only on the console.
_QUIET_ON_CONSOLE = (
    "tasky.tasks.reminders",  # background thread
    "tasky.ai.tools.base",  # one line per tool call with arguments
    "tasky.core.undo",
)

_THIRD_PARTY = ("httpx", "httpcore", "openai")


class _ConsoleNoiseFilter(logging.Filter):
    """Console gets tasky logs (minus the chatty ones); everything else only at ERROR+."""

    def filter(self, record: logging.LogRecord) -> bool:
        name = record.name
        if not name.startswith("tasky."):
            return record.levelno >= logging.ERROR
        if name.startswith(_QUIET_ON_CONSOLE):
            return record.levelno >= logging.WARNING
        return True


def setup_logging(
    *,
    log_dir: str | Path = ".local/tasky",
    console_level: int = logging.INFO,
    file_level: int = logging.DEBUG,
) -> Path:
    """
    Console handler for the interactive user, rotating file handler with everything.

    Call once, before the first log line. Returns the log file path.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / LOG_FILE_NAME

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for h in list(root.handlers):
        root.removeHandler(h)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    console.addFilter(_ConsoleNoiseFilter())
    root.addHandler(console)

    # Chat text and remembered context end up here, so the file is rotated rather than kept forever.
    file_handler = logging.handlers.RotatingFileHandler(
        str(log_file),
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root.addHandler(file_handler)

    logging.captureWarnings(True)

    for name in _THIRD_PARTY:
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_file
