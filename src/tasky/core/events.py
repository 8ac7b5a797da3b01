# src/tasky/core/events.py

"""
In-process notifications.

Tools post events after they change data; the console connector (and tests)
subscribe to them. Delivery is synchronous, in subscription order.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)


class Notification(StrEnum):
    # single task operations (undo-capable)
    TASK_COMPLETED = "aiTaskCompleted"
    TASK_UPDATED = "aiTaskUpdated"
    TASK_RESCHEDULED = "aiTaskRescheduled"
    TASK_DELETED = "aiTaskDeleted"

    # lists
    LIST_CREATED = "aiListCreated"
    LIST_UPDATED = "aiListUpdated"
    LIST_DELETED = "aiListDeleted"

    # focus
    FOCUS_SESSION_START = "aiFocusSessionStart"
    FOCUS_SESSION_STOP = "aiFocusSessionStop"
    FOCUS_SESSION_STATUS = "aiFocusSessionStatus"

    UNDO_ACTION = "aiUndoAction"
    TOOL_CALLED = "aiToolCalled"

    # bulk / query tools
    TASKS_CREATED = "aiTasksCreated"
    BULK_TASKS_COMPLETED = "aiBulkTasksCompleted"
    BULK_TASKS_RESCHEDULED = "aiBulkTasksRescheduled"
    BULK_TASKS_DELETED = "aiBulkTasksDeleted"
    BULK_TASKS_UPDATED = "aiBulkTasksUpdated"
    QUERY_RESULTS = "aiQueryResults"
    TASKS_PRIORITIZED = "aiTasksPrioritized"
    RECALL_RESULTS = "aiRecallResults"
    DAY_PLAN_GENERATED = "aiDayPlanGenerated"
    BREAKDOWN_SUGGESTED = "aiBreakdownSuggested"


@dataclass(slots=True, frozen=True)
class Event:
    name: Notification
    payload: dict[str, Any] = field(default_factory=dict)


Handler = Callable[[Event], None]


class NotificationCenter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._handlers: dict[Notification | None, list[Handler]] = {}

    def subscribe(self, name: Notification | None, handler: Handler) -> None:
        """Subscribe to one notification, or to all of them with name=None."""
        with self._lock:
            self._handlers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: Notification | None, handler: Handler) -> None:
        with self._lock:
            handlers = self._handlers.get(name, [])
            if handler in handlers:
                handlers.remove(handler)

    def post(self, name: Notification, **payload: Any) -> Event:
        event = Event(name=name, payload=payload)
        with self._lock:
            handlers = list(self._handlers.get(name, [])) + list(self._handlers.get(None, []))

        for handler in handlers:
            try:
                handler(event)
            except Exception:
                logger.exception("Notification handler failed name=%s", name.value)
        return event
