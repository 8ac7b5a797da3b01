# tests/test_usage.py

from __future__ import annotations

import json
from pathlib import Path

from tasky.ai.usage import PERSONALIZATION_THRESHOLD, AIUsageTracker


def test_track_and_rank(tmp_path: Path) -> None:
    tracker = AIUsageTracker(tmp_path / "usage.json")
    for _ in range(3):
        tracker.track("createTasks")
    tracker.track("planDay")

    assert tracker.usage_count("createTasks") == 3
    assert tracker.usage_count("unknown") == 0
    assert [s.tool_name for s in tracker.top_tools(1)] == ["createTasks"]
    assert tracker.total_calls == 4
    assert tracker.personalization_progress == 4 / PERSONALIZATION_THRESHOLD
    assert not tracker.has_enough_data


def test_persists_between_instances(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    AIUsageTracker(path).track("recall")

    reloaded = AIUsageTracker(path)
    assert reloaded.usage_count("recall") == 1

    reloaded.reset()
    assert json.loads(path.read_text(encoding="utf-8")) == []


def test_ignores_corrupt_file(tmp_path: Path) -> None:
    path = tmp_path / "usage.json"
    path.write_text("{not json", encoding="utf-8")
    assert AIUsageTracker(path).total_calls == 0

    path.write_text(json.dumps([{"tool_name": "x"}, {"tool_name": "y", "total_calls": 2}]), encoding="utf-8")
    tracker = AIUsageTracker(path)
    assert tracker.usage_count("y") == 2
    assert tracker.usage_count("x") == 0
