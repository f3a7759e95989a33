"""Board engine: the single entry point the UI surfaces talk to.

It wraps :class:`BoardStore` with the ordering resolver, the filter pipeline,
the user directory, the tag registry and the sticky notes, and owns startup
loading from the persistent store.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Any, Iterable, Mapping, Optional

from loguru import logger

from ..config import BoardConfig
from ..constants import (
    COLLECTION_ACTIVITIES,
    COLLECTION_NOTES,
    COLLECTION_TAGS,
    COLLECTION_TASKS,
    COLLECTION_USERS,
    COLLECTIONS,
)
from ..storage.writer import PersistenceWriter
from . import analytics as board_analytics
from .filters import apply_filters, group_by_status
from .model import Activity, ActivityType, CustomTag, Filters, Note, Status, Task, TaskDraft, User
from .notes import NoteBoard
from .ordering import DropEvent, DropResolution, resolve_drop
from .seed import default_tags, default_users
from .store import BoardStore, SnapshotWriter


class ReferenceInUseError(ValueError):
    """Raised when deleting a user or tag that tasks still reference."""

    def __init__(self, kind: str, name: str, task_count: int) -> None:
        super().__init__(f"Cannot delete {kind} {name!r}: used by {task_count} task(s)")
        self.kind = kind
        self.task_count = task_count


def _clean_name(value: Any) -> str:
    name = str(value or "").strip()
    if not name:
        raise ValueError("name must not be empty")
    return name


def _optional(value: Any) -> Optional[str]:
    text = str(value).strip() if value is not None else ""
    return text or None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

class UserDirectory:
    """The people tasks can be assigned to.

    Deleting a user never touches tasks; their ``assignee_id`` simply dangles.
    """

    def __init__(self, writer: Optional[SnapshotWriter] = None) -> None:
        self._writer = writer
        self._lock = threading.RLock()
        self._users: list[User] = []

    def _persist(self) -> None:
        if self._writer is None:
            return
        try:
            self._writer.schedule(COLLECTION_USERS, [u.to_dict() for u in self._users])
        except Exception:
            logger.exception("Failed to schedule persistence of users")

    def _find(self, user_id: Optional[str]) -> Optional[User]:
        return next((u for u in self._users if u.id == user_id), None)

    @property
    def users(self) -> list[User]:
        with self._lock:
            return [replace(u) for u in self._users]

    def hydrate(self, users: Iterable[User]) -> None:
        with self._lock:
            self._users = list(users)

    def set_users(self, users: Iterable[User]) -> None:
        with self._lock:
            self._users = list(users)
            self._persist()

    def get(self, user_id: Optional[str]) -> Optional[User]:
        with self._lock:
            user = self._find(user_id)
            return replace(user) if user is not None else None

    def add_user(self, name: str, role: Optional[str] = None, avatar: Optional[str] = None) -> User:
        user = User(name=_clean_name(name), role=_optional(role), avatar=_optional(avatar))
        with self._lock:
            self._users.append(user)
            self._persist()
        logger.info("Added user {}: {}", user.id, user.name)
        return replace(user)

    def update_user(self, user_id: str, changes: Mapping[str, Any]) -> Optional[User]:
        with self._lock:
            user = self._find(user_id)
            if user is None:
                return None
            if "name" in changes:
                user.name = _clean_name(changes["name"])
            if "role" in changes:
                user.role = _optional(changes["role"])
            if "avatar" in changes:
                user.avatar = _optional(changes["avatar"])
            self._persist()
            return replace(user)

    def delete_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._find(user_id)
            if user is None:
                return None
            self._users = [u for u in self._users if u.id != user_id]
            self._persist()
        logger.info("Deleted user {}", user_id)
        return user


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

class TagRegistry:
    """Named, coloured tags.  Names are stored lower-case."""

    def __init__(self, writer: Optional[SnapshotWriter] = None) -> None:
        self._writer = writer
        self._lock = threading.RLock()
        self._tags: list[CustomTag] = []

    def _persist(self) -> None:
        if self._writer is None:
            return
        try:
            self._writer.schedule(COLLECTION_TAGS, [t.to_dict() for t in self._tags])
        except Exception:
            logger.exception("Failed to schedule persistence of tags")

    def _find(self, tag_id: str) -> Optional[CustomTag]:
        return next((t for t in self._tags if t.id == tag_id), None)

    @property
    def tags(self) -> list[CustomTag]:
        with self._lock:
            return [replace(t) for t in self._tags]

    def colors(self) -> dict[str, str]:
        with self._lock:
            return {t.name: t.color for t in self._tags}

    def hydrate(self, tags: Iterable[CustomTag]) -> None:
        with self._lock:
            self._tags = list(tags)

    def set_tags(self, tags: Iterable[CustomTag]) -> None:
        with self._lock:
            self._tags = list(tags)
            self._persist()

    def get(self, tag_id: str) -> Optional[CustomTag]:
        with self._lock:
            tag = self._find(tag_id)
            return replace(tag) if tag is not None else None

    def get_by_name(self, name: str) -> Optional[CustomTag]:
        wanted = name.strip().lower()
        with self._lock:
            tag = next((t for t in self._tags if t.name.lower() == wanted), None)
            return replace(tag) if tag is not None else None

    def add(self, name: str, color: Optional[str] = None) -> CustomTag:
        tag = CustomTag(name=_clean_name(name).lower())
        if color:
            tag.color = color
        with self._lock:
            self._tags.append(tag)
            self._persist()
        return replace(tag)

    def update(self, tag_id: str, name: Optional[str] = None, color: Optional[str] = None) -> Optional[CustomTag]:
        with self._lock:
            tag = self._find(tag_id)
            if tag is None:
                return None
            if name is not None:
                tag.name = _clean_name(name).lower()
            if color:
                tag.color = color
            self._persist()
            return replace(tag)

    def delete(self, tag_id: str) -> Optional[CustomTag]:
        with self._lock:
            tag = self._find(tag_id)
            if tag is None:
                return None
            self._tags = [t for t in self._tags if t.id != tag_id]
            self._persist()
            return tag


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class BoardEngine:
    """Facade over the board's in-memory state and its persistence.

    Parameters
    ----------
    writer:
        Persistence writer shared by every collection.  ``load`` runs the
        startup reads on it.
    config:
        Ordering and capacity tunables.
    """

    def __init__(self, writer: PersistenceWriter, config: Optional[BoardConfig] = None) -> None:
        self.config = config or BoardConfig()
        self.writer = writer
        self.store = BoardStore(writer, activity_capacity=self.config.activity_capacity)
        self.users = UserDirectory(writer)
        self.tags = TagRegistry(writer)
        self.notes = NoteBoard(writer)

    # -- lifecycle -----------------------------------------------------------

    async def _load_records(self) -> dict[str, list[dict[str, Any]]]:
        adapter = self.writer.store
        return {
            COLLECTION_TASKS: await adapter.load_all(COLLECTION_TASKS),
            COLLECTION_USERS: await adapter.load_all(COLLECTION_USERS),
            COLLECTION_TAGS: await adapter.load_all(COLLECTION_TAGS),
            COLLECTION_ACTIVITIES: await adapter.load_all(
                COLLECTION_ACTIVITIES, order_by="timestamp", descending=True
            ),
            COLLECTION_NOTES: await adapter.load_all(COLLECTION_NOTES),
        }

    def load(self, seed: bool = True) -> None:
        """Read every collection into memory; seed defaults on first run."""
        records = self.writer.run(self._load_records())
        self.notes.hydrate(Note.from_dict(r) for r in records[COLLECTION_NOTES])
        if seed and not any(records[name] for name in COLLECTIONS):
            logger.info("Empty board store; seeding defaults")
            self._seed()
            return
        self.store.hydrate(
            [Task.from_dict(r) for r in records[COLLECTION_TASKS]],
            [Activity.from_dict(r) for r in records[COLLECTION_ACTIVITIES]],
        )
        self.users.hydrate(User.from_dict(r) for r in records[COLLECTION_USERS])
        self.tags.hydrate(CustomTag.from_dict(r) for r in records[COLLECTION_TAGS])
        logger.info(
            "Loaded board: {} tasks, {} users, {} tags, {} activities",
            len(records[COLLECTION_TASKS]),
            len(records[COLLECTION_USERS]),
            len(records[COLLECTION_TAGS]),
            len(self.store.activities),
        )

    def _seed(self) -> None:
        self.users.set_users(default_users())
        self.tags.set_tags(default_tags())

    def reset(self) -> None:
        """Wipe every collection and reseed the defaults.

        Sticky notes are not board data and are left alone.
        """
        self.store.clear()
        self._seed()
        logger.info("Board reset")

    def stats(self) -> dict[str, int]:
        return {
            COLLECTION_TASKS: len(self.store.tasks),
            COLLECTION_USERS: len(self.users.users),
            COLLECTION_TAGS: len(self.tags.tags),
            COLLECTION_ACTIVITIES: len(self.store.activities),
            COLLECTION_NOTES: len(self.notes.notes),
        }

    # -- tasks ---------------------------------------------------------------

    def create_task(self, draft: TaskDraft) -> Task:
        return self.store.create(draft)

    def update_task(self, task_id: str, changes: Mapping[str, Any]) -> Optional[Task]:
        return self.store.update(task_id, changes)

    def delete_task(self, task_id: str) -> Optional[Task]:
        return self.store.delete(task_id)

    def move_task(self, task_id: str, status: Status | str, order: float) -> Optional[Task]:
        return self.store.move(task_id, status, order)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self.store.get_by_id(task_id)

    def add_comment(self, task_id: str, message: str, user_id: Optional[str] = None) -> Optional[Activity]:
        """Attach a comment to the activity log; unknown tasks are ignored."""
        if self.store.get_by_id(task_id) is None:
            return None
        text = message.strip()
        if not text:
            raise ValueError("comment must not be empty")
        return self.store.record(ActivityType.COMMENT, task_id, text, user_id=user_id)

    def activities(self, task_id: Optional[str] = None, limit: Optional[int] = None) -> list[Activity]:
        entries = self.store.recorder.for_task(task_id) if task_id else self.store.activities
        return entries[:limit] if limit is not None else entries

    # -- views ---------------------------------------------------------------

    def filtered_tasks(self, filters: Optional[Filters] = None) -> list[Task]:
        return apply_filters(self.store.tasks, filters)

    def view(self, filters: Optional[Filters] = None) -> dict[Status, list[Task]]:
        """The four columns as rendered: filtered, then sorted by ``order``."""
        return group_by_status(self.filtered_tasks(filters))

    def handle_drag_end(
        self,
        active_id: str,
        over_id: Optional[str],
        filters: Optional[Filters] = None,
    ) -> DropResolution:
        """Resolve a drop against the rendered view and apply its moves."""
        tasks = self.store.tasks
        columns = group_by_status(apply_filters(tasks, filters))
        resolution = resolve_drop(
            DropEvent(active_id, over_id),
            tasks,
            columns,
            gap=self.config.order_gap,
            epsilon=self.config.rebalance_epsilon,
        )
        for move in resolution.moves:
            self.store.move(move.task_id, move.status, move.order)
        if resolution.rebalanced:
            logger.debug("Rebalanced column after dropping {} on {}", active_id, over_id)
        return resolution

    # -- users and tags ------------------------------------------------------

    def delete_user(self, user_id: str, force: bool = False) -> Optional[User]:
        """Delete a user, refusing while tasks are still assigned to them."""
        user = self.users.get(user_id)
        if user is None:
            return None
        assigned = [t for t in self.store.tasks if t.assignee_id == user_id]
        if assigned and not force:
            raise ReferenceInUseError("user", user.name, len(assigned))
        return self.users.delete_user(user_id)

    def delete_tag(self, tag_id: str, force: bool = False) -> Optional[CustomTag]:
        """Delete a tag, refusing while tasks still carry it."""
        tag = self.tags.get(tag_id)
        if tag is None:
            return None
        tagged = [t for t in self.store.tasks if tag.name in (name.lower() for name in t.tags)]
        if tagged and not force:
            raise ReferenceInUseError("tag", tag.name, len(tagged))
        return self.tags.delete(tag_id)

    # -- analytics -----------------------------------------------------------

    def analytics(self, days: int = 30) -> dict[str, Any]:
        return board_analytics.dashboard(
            self.store.tasks,
            self.users.users,
            days,
            colors=self.tags.colors() or None,
        )
