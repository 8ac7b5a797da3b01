# src/tasky/ai/usage.py

from __future__ import annotations

import contextlib
import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from datetime import datetime
from pathlib import Path

logger = logging.getLogger(__name__)

PERSONALIZATION_THRESHOLD = 50


@dataclass(slots=True)
class ToolUsageStats:
    tool_name: str
    total_calls: int
    last_used: float


class AIUsageTracker:
    """
    Per-tool call counters, persisted as a small JSON file.

    After enough calls the most used tools drive suggestions.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._stats: dict[str, ToolUsageStats] = {}
        self._load()

    def track(self, tool_name: str) -> None:
        with self._lock:
            st = self._stats.get(tool_name)
            if st is None:
                st = ToolUsageStats(tool_name=tool_name, total_calls=0, last_used=0.0)
                self._stats[tool_name] = st
            st.total_calls += 1
            st.last_used = datetime.now().timestamp()
            self._save()
        logger.debug("Tool usage %s total=%s", tool_name, self.total_calls)

    def usage_count(self, tool_name: str) -> int:
        st = self._stats.get(tool_name)
        return st.total_calls if st else 0

    def top_tools(self, limit: int = 6) -> list[ToolUsageStats]:
        ranked = sorted(self._stats.values(), key=lambda s: s.total_calls, reverse=True)
        return ranked[: max(0, int(limit))]

    @property
    def total_calls(self) -> int:
        return sum(s.total_calls for s in self._stats.values())

    @property
    def has_enough_data(self) -> bool:
        return self.total_calls >= PERSONALIZATION_THRESHOLD

    @property
    def personalization_progress(self) -> float:
        return min(self.total_calls / PERSONALIZATION_THRESHOLD, 1.0)

    def reset(self) -> None:
        with self._lock:
            self._stats = {}
            self._save()
        logger.info("Tool usage statistics reset")

    # ---- persistence ----

    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Failed to load tool usage from %s", self._path)
            return

        if not isinstance(raw, list):
            logger.warning("Tool usage file has unexpected shape: %s", self._path)
            return

        for item in raw:
            try:
                st = ToolUsageStats(
                    tool_name=str(item["tool_name"]),
                    total_calls=int(item["total_calls"]),
                    last_used=float(item.get("last_used", 0.0)),
                )
            except (KeyError, TypeError, ValueError):
                continue
            self._stats[st.tool_name] = st

    def _save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            tmp.write_text(
                json.dumps([asdict(s) for s in self._stats.values()], ensure_ascii=False, indent=2),
                encoding="utf-8",
            )
            os.replace(tmp, self._path)
        except OSError:
            logger.exception("Failed to save tool usage to %s", self._path)
            with contextlib.suppress(OSError):
                tmp.unlink()
