# tests/test_goals.py

from __future__ import annotations

from datetime import datetime, timedelta

from tasky.tasks.goals import GoalStats
from tasky.tasks.models import Goal, GoalStatus, Task

NOW = datetime(2025, 6, 10, 12, 0)


def _goal(**kw) -> Goal:
    kw.setdefault("created_at", NOW - timedelta(days=30))
    return Goal(id="g", name="Ship v1", **kw)


def _task(tid: str, done_days_ago: int | None = None) -> Task:
    if done_days_ago is None:
        return Task(id=tid, title=tid)
    return Task(id=tid, title=tid, is_completed=True, completed_at=NOW - timedelta(days=done_days_ago))


def test_progress_and_estimate() -> None:
    done = [_task(f"d{i}", i % 7) for i in range(7)]
    pending = [_task(f"p{i}") for i in range(7)]
    st = GoalStats.for_goal(_goal(), done + pending, NOW)

    assert st.progress_text == "7/14 tasks"
    assert st.progress_percentage == 50
    # One task a day this week, seven pending.
    assert st.estimated_completion_date == NOW + timedelta(days=7)
    assert st.estimated_completion_text == "Est. completion: Jun 17"
    assert not st.is_neglected


def test_empty_goal() -> None:
    st = GoalStats.for_goal(_goal(), [], NOW)
    assert st.progress == 0.0
    assert st.estimated_completion_text is None
    assert not st.is_neglected


def test_overdue_and_neglected() -> None:
    goal = _goal(target_date=NOW - timedelta(days=1))
    st = GoalStats.for_goal(goal, [_task("a", 20), _task("b")], NOW)
    assert st.is_overdue
    assert st.is_neglected
    assert st.days_since_progress == 20

    finished = _goal(target_date=NOW - timedelta(days=1), status=GoalStatus.COMPLETED)
    assert not GoalStats.for_goal(finished, [], NOW).is_overdue
