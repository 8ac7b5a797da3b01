# tests/test_context_store.py

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest

from tasky.errors import NotFoundError, ValidationError
from tasky.memory.context_store import ContextIntent, ContextStore
from tasky.memory.models import ContextCategory, ContextSource, UserContext


class ManualClock:
    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, 9, 0)

    def __call__(self) -> datetime:
        return self.now


def _store(tmp_path: Path, **kw) -> tuple[ContextStore, ManualClock]:
    clock = ManualClock()
    return ContextStore(tmp_path / "context.sqlite3", clock=clock, **kw), clock


def test_save_get_and_reinforce(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    item = store.save(ContextCategory.PERSON, "  Sarah ", "my manager")
    assert item.key == "sarah"
    assert item.confidence == pytest.approx(0.85)

    again = store.save(ContextCategory.PERSON, "sarah", "likes short emails")
    assert again.id == item.id
    assert again.reinforcement_count == 1
    assert again.confidence == pytest.approx(0.85 + 0.15 * 0.15)
    assert again.value == "my manager; likes short emails"

    # Repeating known information does not duplicate it.
    third = store.save(ContextCategory.PERSON, "sarah", "My Manager")
    assert third.value == "my manager; likes short emails"

    stored = store.get(ContextCategory.PERSON, "SARAH")
    assert stored is not None
    assert stored.reinforcement_count == 2
    assert store.count() == 1


def test_save_rejects_empty(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    with pytest.raises(ValidationError):
        store.save(ContextCategory.OTHER, " ", "value")
    with pytest.raises(ValidationError):
        store.save(ContextCategory.OTHER, "key", "")


def test_effective_confidence_decays(tmp_path: Path) -> None:
    store, clock = _store(tmp_path)
    item = store.save(ContextCategory.PATTERN, "mornings", "works best early", source=ContextSource.INFERRED)
    assert item.effective_confidence(clock.now) == pytest.approx(0.3)

    later = clock.now + timedelta(days=30)
    assert item.effective_confidence(later) == pytest.approx(0.15)
    # Floor at 10% of the stored confidence.
    assert item.effective_confidence(clock.now + timedelta(days=3650)) == pytest.approx(0.03)


def test_fetch_all_filters(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    store.save(ContextCategory.PERSON, "sarah", "manager")
    store.save(ContextCategory.GOAL, "marathon", "run in spring")
    store.save(ContextCategory.PATTERN, "late", "works late", source=ContextSource.INFERRED)

    assert [i.key for i in store.fetch_all(ContextCategory.GOAL)] == ["marathon"]
    assert {i.key for i in store.fetch_all(min_confidence=0.5)} == {"sarah", "marathon"}
    assert len(store.fetch_all(limit=1)) == 1
    assert {i.key for i in store.for_intent(ContextIntent.PRIORITIZE)} == {"sarah", "marathon"}


def test_fetch_relevant_ranks_by_query_and_marks_access(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    store.save(ContextCategory.PERSON, "sarah", "manager at work")
    store.save(ContextCategory.PERSON, "tom", "brother")

    top = store.fetch_relevant("email sarah about work", max_items=1)
    assert [i.key for i in top] == ["sarah"]

    stored = store.get(ContextCategory.PERSON, "sarah")
    assert stored is not None
    assert stored.access_count == 1
    assert stored.last_accessed_at is not None


def test_search_delete_and_delete_all(tmp_path: Path) -> None:
    store, _ = _store(tmp_path)
    a = store.save(ContextCategory.PERSON, "sarah", "manager")
    store.save(ContextCategory.PREFERENCE, "meetings", "no meetings before 10")
    store.save(ContextCategory.PREFERENCE, "music", "lofi while coding")

    assert [i.key for i in store.search("MEETINGS")] == ["meetings"]
    assert store.search("  ") == []

    store.delete(a.id)
    with pytest.raises(NotFoundError):
        store.delete(a.id)

    assert store.delete_all(ContextCategory.PREFERENCE) == 2
    assert store.count() == 0


def test_item_limit_drops_lowest_confidence(tmp_path: Path) -> None:
    store, _ = _store(tmp_path, max_items=2)
    store.save(ContextCategory.PATTERN, "weak", "guess", source=ContextSource.INFERRED)
    store.save(ContextCategory.PERSON, "sarah", "manager")
    store.save(ContextCategory.GOAL, "marathon", "spring")

    assert store.count() == 2
    assert store.get(ContextCategory.PATTERN, "weak") is None


def test_daily_maintenance_prunes_stale_and_weak_patterns(tmp_path: Path) -> None:
    store, clock = _store(tmp_path)
    store.save(ContextCategory.PATTERN, "weak", "guess", source=ContextSource.INFERRED, metadata={"dataPoints": 1})
    store.save(ContextCategory.PATTERN, "solid", "habit", source=ContextSource.INFERRED, metadata={"dataPoints": 10})
    store.save(ContextCategory.PERSON, "sarah", "manager")

    clock.now += timedelta(days=45)
    pruned, removed = store.perform_daily_maintenance()

    assert (pruned, removed) == (1, 0)
    assert {i.key for i in store.fetch_all()} == {"solid", "sarah"}


def test_prompt_description() -> None:
    now = datetime(2025, 1, 1)
    item = UserContext(
        id="x",
        category=ContextCategory.PREFERENCE,
        key="meetings",
        value="afternoons",
        confidence=0.85,
        source=ContextSource.EXPLICIT,
        created_at=now,
        updated_at=now,
    )
    assert item.prompt_description == "Prefers: afternoons"
    assert ContextStore.format_for_prompt([item, item]) == "Prefers: afternoons\n- Prefers: afternoons"
