"""Bounded, most-recent-first history of task mutations."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from ..constants import DEFAULT_ACTIVITY_CAPACITY
from ..utils import now_iso, parse_iso
from .model import Activity, ActivityType

ActivitySink = Callable[[list[Activity]], None]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class ActivityRecorder:
    """Keeps at most ``capacity`` activities, newest first.

    Parameters
    ----------
    capacity:
        Maximum number of entries retained; older entries are dropped.
    on_change:
        Called with the full (already truncated) list after every append,
        typically to schedule a bulk replace of the persisted collection.
    """

    def __init__(self, capacity: int = DEFAULT_ACTIVITY_CAPACITY, on_change: Optional[ActivitySink] = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: list[Activity] = []
        self._on_change = on_change

    @property
    def entries(self) -> list[Activity]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(
        self,
        activity_type: ActivityType | str,
        task_id: str,
        message: str,
        user_id: Optional[str] = None,
    ) -> Activity:
        activity = Activity(
            type=ActivityType(activity_type),
            task_id=task_id,
            user_id=user_id,
            timestamp=now_iso(),
            message=message,
        )
        self._entries = [activity] + self._entries[: self.capacity - 1]
        if self._on_change is not None:
            self._on_change(self.entries)
        return activity

    def hydrate(self, entries: Iterable[Activity]) -> None:
        """Replace the log with persisted entries (no write is triggered)."""
        ordered = sorted(
            entries,
            key=lambda a: parse_iso(a.timestamp) or _EPOCH,
            reverse=True,
        )
        self._entries = ordered[: self.capacity]

    def for_task(self, task_id: str) -> list[Activity]:
        return [a for a in self._entries if a.task_id == task_id]

    def clear(self) -> None:
        self._entries = []
