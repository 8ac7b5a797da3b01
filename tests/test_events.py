# tests/test_events.py

from __future__ import annotations

from tasky.core.events import Event, Notification, NotificationCenter


def test_post_reaches_named_and_wildcard_subscribers() -> None:
    center = NotificationCenter()
    named: list[Event] = []
    everything: list[Event] = []
    center.subscribe(Notification.TASKS_CREATED, named.append)
    center.subscribe(None, everything.append)

    center.post(Notification.TASKS_CREATED, count=2)
    center.post(Notification.QUERY_RESULTS, count=0)

    assert [e.payload for e in named] == [{"count": 2}]
    assert [e.name for e in everything] == [Notification.TASKS_CREATED, Notification.QUERY_RESULTS]


def test_failing_handler_does_not_block_others() -> None:
    center = NotificationCenter()
    seen: list[Event] = []

    def boom(event: Event) -> None:
        raise RuntimeError("handler failed")

    center.subscribe(Notification.TOOL_CALLED, boom)
    center.subscribe(Notification.TOOL_CALLED, seen.append)
    center.post(Notification.TOOL_CALLED, name="recall")

    assert len(seen) == 1


def test_unsubscribe() -> None:
    center = NotificationCenter()
    seen: list[Event] = []
    center.subscribe(Notification.UNDO_ACTION, seen.append)
    center.unsubscribe(Notification.UNDO_ACTION, seen.append)
    center.post(Notification.UNDO_ACTION)
    assert seen == []
