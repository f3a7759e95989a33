"""In-memory entity store for tasks and their activity log.

The store is the source of truth for a running board session.  Every
mutation completes synchronously under a single lock, is immediately
visible to readers, and hands a snapshot of the changed collection to a
:class:`~taskflow_board.storage.writer.PersistenceWriter` for best-effort,
asynchronous durability.  Unknown task ids are silently ignored.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol

from loguru import logger

from ..constants import COLLECTION_ACTIVITIES, COLLECTION_TASKS, DEFAULT_ACTIVITY_CAPACITY
from ..utils import now_iso, now_ms
from .activity import ActivityRecorder
from .model import Activity, ActivityType, Status, Task, TaskDraft

Listener = Callable[[str], None]


class SnapshotWriter(Protocol):
    def schedule(self, collection: str, records: list[dict[str, Any]]) -> Optional[int]:
        ...


class BoardStore:
    """Owns the task collection and the activity log.

    Parameters
    ----------
    writer:
        Receives a full snapshot of a collection after each change.  May be
        ``None`` for a purely in-memory board.
    activity_capacity:
        Number of activity entries retained.
    clock_ms:
        Source of new-task order keys (milliseconds).
    """

    def __init__(
        self,
        writer: Optional[SnapshotWriter] = None,
        activity_capacity: int = DEFAULT_ACTIVITY_CAPACITY,
        clock_ms: Callable[[], float] = now_ms,
    ) -> None:
        self._writer = writer
        self._clock_ms = clock_ms
        self._lock = threading.RLock()
        self._tasks: list[Task] = []
        self._listeners: list[Listener] = []
        self._recorder = ActivityRecorder(activity_capacity, on_change=self._persist_activities)

    # -- persistence / notification -----------------------------------------

    def _schedule(self, collection: str, records: list[dict[str, Any]]) -> None:
        if self._writer is None:
            return
        try:
            self._writer.schedule(collection, records)
        except Exception:
            logger.exception("Failed to schedule persistence of {}", collection)

    def _persist_tasks(self) -> None:
        self._schedule(COLLECTION_TASKS, [t.to_dict() for t in self._tasks])
        self._notify(COLLECTION_TASKS)

    def _persist_activities(self, entries: list[Activity]) -> None:
        self._schedule(COLLECTION_ACTIVITIES, [a.to_dict() for a in entries])
        self._notify(COLLECTION_ACTIVITIES)

    def _notify(self, collection: str) -> None:
        for listener in list(self._listeners):
            try:
                listener(collection)
            except Exception:
                logger.exception("Board listener failed for {} change", collection)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*; returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    # -- reads --------------------------------------------------------------

    @property
    def tasks(self) -> list[Task]:
        with self._lock:
            return [t.copy() for t in self._tasks]

    @property
    def activities(self) -> list[Activity]:
        with self._lock:
            return self._recorder.entries

    @property
    def recorder(self) -> ActivityRecorder:
        return self._recorder

    def get_by_id(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._find(task_id)
            return task.copy() if task is not None else None

    def _find(self, task_id: str) -> Optional[Task]:
        for task in self._tasks:
            if task.id == task_id:
                return task
        return None

    # -- mutations ----------------------------------------------------------

    def hydrate(self, tasks: Iterable[Task], activities: Iterable[Activity] = ()) -> None:
        """Load persisted state without writing it back or logging activity."""
        with self._lock:
            self._tasks = list(tasks)
            self._recorder.hydrate(activities)
        self._notify(COLLECTION_TASKS)
        self._notify(COLLECTION_ACTIVITIES)

    def create(self, draft: TaskDraft) -> Task:
        with self._lock:
            task = Task.from_draft(draft, order=float(self._clock_ms()), timestamp=now_iso())
            self._tasks.append(task)
            self._persist_tasks()
            self._recorder.record(
                ActivityType.CREATE,
                task.id,
                f'created task "{task.title}"',
                user_id=task.assignee_id,
            )
        logger.info("Created task {}: {}", task.id, task.title)
        return task.copy()

    def update(self, task_id: str, changes: Mapping[str, Any]) -> Optional[Task]:
        with self._lock:
            task = self._find(task_id)
            if task is None:
                return None
            previous_assignee = task.assignee_id
            task.apply_changes(changes)
            task.touch()
            self._persist_tasks()
            self._recorder.record(
                ActivityType.UPDATE,
                task.id,
                f'updated task "{task.title}"',
                user_id=previous_assignee,
            )
            return task.copy()

    def delete(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._find(task_id)
            if task is None:
                return None
            self._tasks = [t for t in self._tasks if t.id != task_id]
            self._persist_tasks()
            self._recorder.record(
                ActivityType.DELETE,
                task.id,
                f'deleted task "{task.title}"',
                user_id=task.assignee_id,
            )
        logger.info("Deleted task {}", task_id)
        return task

    def move(self, task_id: str, status: Status | str, order: float) -> Optional[Task]:
        new_status = Status(status)
        with self._lock:
            task = self._find(task_id)
            if task is None:
                return None
            status_changed = task.status != new_status
            task.status = new_status
            task.order = float(order)
            task.touch()
            self._persist_tasks()
            if status_changed:
                self._recorder.record(
                    ActivityType.STATUS_CHANGE,
                    task.id,
                    f"moved task to {new_status.value.replace('_', ' ')}",
                    user_id=task.assignee_id,
                )
            return task.copy()

    def record(
        self,
        activity_type: ActivityType | str,
        task_id: str,
        message: str,
        user_id: Optional[str] = None,
    ) -> Activity:
        with self._lock:
            return self._recorder.record(activity_type, task_id, message, user_id=user_id)

    def clear(self) -> None:
        with self._lock:
            self._tasks = []
            self._recorder.clear()
            self._persist_tasks()
            self._persist_activities([])
