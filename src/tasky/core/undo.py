# src/tasky/core/undo.py

"""
Undo window for AI-driven changes.

Only the most recent action can be undone, and only for a few seconds.
Registering a new action replaces the pending one and restarts the timer.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum

from ..tasks.models import DeletedTaskInfo, TaskList, new_id
from ..tasks.store import TaskStore
from .events import Notification, NotificationCenter

logger = logging.getLogger(__name__)

UNDO_WINDOW_SECONDS = 5.0


class UndoActionType(StrEnum):
    COMPLETE = "complete"
    UPDATE = "update"
    RESCHEDULE = "reschedule"
    DELETE = "delete"
    LIST_UPDATE = "listUpdate"
    LIST_DELETE = "listDelete"
    CREATE = "create"


@dataclass(slots=True)
class UndoableAction:
    type: UndoActionType
    description: str
    undo_handler: Callable[[], None]
    expires_at: float = 0.0  # monotonic deadline, set on register
    id: str = field(default_factory=new_id)


@dataclass(slots=True, frozen=True)
class TaskPreviousState:
    """Editable task fields captured before an update."""

    title: str
    notes: str | None
    due_date: datetime | None
    scheduled_time: datetime | None
    scheduled_end_time: datetime | None
    priority: int
    list_id: str | None


class AIUndoManager:
    def __init__(
        self,
        notifications: NotificationCenter | None = None,
        *,
        window_seconds: float = UNDO_WINDOW_SECONDS,
    ) -> None:
        self._notifications = notifications
        self.window_seconds = float(window_seconds)
        self._lock = threading.Lock()
        self._timer: threading.Timer | None = None
        self.current: UndoableAction | None = None

    def register(self, action: UndoableAction) -> None:
        with self._lock:
            self._cancel_timer()
            action.expires_at = time.monotonic() + self.window_seconds
            self.current = action
            timer = threading.Timer(self.window_seconds, self._expire, args=(action.id,))
            timer.daemon = True
            self._timer = timer
            timer.start()
        logger.debug("Undo registered type=%s desc=%r", action.type.value, action.description)

    def perform_undo(self) -> UndoableAction | None:
        with self._lock:
            action = self.current
            if action is None or time.monotonic() >= action.expires_at:
                self.current = None
                self._cancel_timer()
                return None
            self._cancel_timer()
            self.current = None

        action.undo_handler()
        logger.info("Undo performed type=%s desc=%r", action.type.value, action.description)
        if self._notifications is not None:
            self._notifications.post(
                Notification.UNDO_ACTION,
                action_type=action.type.value,
                description=action.description,
            )
        return action

    def dismiss(self) -> None:
        with self._lock:
            self._cancel_timer()
            self.current = None

    @property
    def has_undo_available(self) -> bool:
        action = self.current
        return action is not None and time.monotonic() < action.expires_at

    @property
    def time_remaining(self) -> float:
        action = self.current
        if action is None:
            return 0.0
        return max(0.0, action.expires_at - time.monotonic())

    def shutdown(self) -> None:
        self.dismiss()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _expire(self, action_id: str) -> None:
        with self._lock:
            if self.current is not None and self.current.id == action_id:
                self.current = None
                self._timer = None


# ---- factories ----


def completion_undo(store: TaskStore, task_id: str, task_title: str, was_completed: bool) -> UndoableAction:
    """`was_completed` is the state the action produced; undo toggles it back."""
    return UndoableAction(
        type=UndoActionType.COMPLETE,
        description=f"Completed '{task_title}'" if was_completed else f"Reopened '{task_title}'",
        undo_handler=lambda: _restore_completion(store, task_id, not was_completed),
    )


def _restore_completion(store: TaskStore, task_id: str, completed: bool) -> None:
    task = store.get_task(task_id)
    if task is not None:
        store.complete_tasks([task], completed)


def update_undo(store: TaskStore, task_id: str, previous: TaskPreviousState) -> UndoableAction:
    def undo() -> None:
        if store.get_task(task_id) is None:
            return
        list_id = previous.list_id if previous.list_id and store.get_list(previous.list_id) else None
        store.update_task(
            task_id,
            title=previous.title,
            notes=previous.notes,
            due_date=previous.due_date,
            scheduled_time=previous.scheduled_time,
            scheduled_end_time=previous.scheduled_end_time,
            priority=previous.priority,
            list_id=list_id,
        )

    return UndoableAction(type=UndoActionType.UPDATE, description=f"Updated '{previous.title}'", undo_handler=undo)


def delete_undo(store: TaskStore, info: DeletedTaskInfo) -> UndoableAction:
    def undo() -> None:
        list_id = info.list_id if info.list_id and store.get_list(info.list_id) else None
        store.create_task(
            info.title,
            notes=info.notes,
            due_date=info.due_date,
            scheduled_time=info.scheduled_time,
            scheduled_end_time=info.scheduled_end_time,
            priority=info.priority,
            list_id=list_id,
            is_recurring=info.is_recurring,
            estimated_duration=info.estimated_duration,
        )

    return UndoableAction(type=UndoActionType.DELETE, description=f"Deleted '{info.title}'", undo_handler=undo)


def reschedule_undo(
    store: TaskStore,
    task_id: str,
    task_title: str,
    *,
    previous_due_date: datetime | None,
    previous_scheduled_time: datetime | None,
    previous_scheduled_end_time: datetime | None,
) -> UndoableAction:
    def undo() -> None:
        if store.get_task(task_id) is None:
            return
        store.update_task(
            task_id,
            due_date=previous_due_date,
            scheduled_time=previous_scheduled_time,
            scheduled_end_time=previous_scheduled_end_time,
        )

    return UndoableAction(type=UndoActionType.RESCHEDULE, description=f"Rescheduled '{task_title}'", undo_handler=undo)


def create_undo(store: TaskStore, task_ids: Sequence[str]) -> UndoableAction:
    ids = list(task_ids)

    def undo() -> None:
        tasks = [t for t in (store.get_task(i) for i in ids) if t is not None]
        store.delete_tasks(tasks)

    noun = "task" if len(ids) == 1 else "tasks"
    return UndoableAction(type=UndoActionType.CREATE, description=f"Created {len(ids)} {noun}", undo_handler=undo)


def list_rename_undo(store: TaskStore, list_id: str, old_name: str, new_name: str) -> UndoableAction:
    def undo() -> None:
        if store.get_list(list_id) is not None:
            store.update_list(list_id, name=old_name)

    return UndoableAction(
        type=UndoActionType.LIST_UPDATE,
        description=f"Renamed '{old_name}' to '{new_name}'",
        undo_handler=undo,
    )


def list_delete_undo(store: TaskStore, deleted: TaskList, task_ids: Sequence[str]) -> UndoableAction:
    """Recreate the list and move its former tasks back into it."""
    ids = list(task_ids)

    def undo() -> None:
        lst = store.create_list(deleted.name, color_hex=deleted.color_hex, icon_name=deleted.icon_name)
        tasks = [t for t in (store.get_task(i) for i in ids) if t is not None]
        store.move_tasks_to_list(tasks, lst.id)

    return UndoableAction(
        type=UndoActionType.LIST_DELETE,
        description=f"Deleted list '{deleted.name}'",
        undo_handler=undo,
    )
