"""Data model for the task board.

Tasks live in one of four fixed status columns and carry a numeric ``order``
key that positions them inside their column.  Activities are an informational
history of task mutations.  Users and custom tags are owned by the settings
screens; tasks only hold weak references to them (ids and tag names).
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from typing import Any, Iterable, Mapping, Optional

from ..constants import DEFAULT_NOTE_COLOR, FALLBACK_TAG_COLOR
from ..utils import now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class Status(str, Enum):
    """Board column a task sits in."""

    TODO = "todo"
    IN_PROGRESS = "in_progress"
    IN_REVIEW = "in_review"
    DONE = "done"

    @property
    def label(self) -> str:
        return {
            "todo": "To Do",
            "in_progress": "In Progress",
            "in_review": "In Review",
            "done": "Done",
        }[self.value]


STATUSES: tuple[Status, ...] = (
    Status.TODO,
    Status.IN_PROGRESS,
    Status.IN_REVIEW,
    Status.DONE,
)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


PRIORITY_ORDER: tuple[Priority, ...] = (Priority.LOW, Priority.MEDIUM, Priority.HIGH)


class ActivityType(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    STATUS_CHANGE = "status_change"
    DELETE = "delete"
    COMMENT = "comment"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def _enum_or_default(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


def _to_plain(data: dict[str, Any]) -> dict[str, Any]:
    return {k: (v.value if isinstance(v, Enum) else v) for k, v in data.items()}


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class TaskDraft:
    """Fields supplied by the task form when creating a task."""

    title: str
    description: str = ""
    status: Status = Status.TODO
    priority: Priority = Priority.MEDIUM
    tags: list[str] = field(default_factory=list)
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None


@dataclass
class Task:
    """A card on the board.

    ``order`` only has meaning relative to other tasks with the same status;
    lower values render first.  ``assignee_id`` may point at a user that no
    longer exists.
    """

    id: str = field(default_factory=lambda: generate_id("task"))
    title: str = ""
    description: str = ""
    status: Status = Status.TODO
    priority: Priority = Priority.MEDIUM
    tags: list[str] = field(default_factory=list)
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)
    order: float = 0.0

    # Fields a partial update may never touch.
    IMMUTABLE_FIELDS = frozenset({"id", "created_at"})
    REQUIRED_FIELDS = frozenset({"title", "description", "status", "priority", "order"})

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for YAML/JSON persistence."""
        return _to_plain(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Task":
        """Deserialize from a plain dict, coercing enums gracefully."""
        raw_order = data.get("order")
        try:
            order = float(raw_order) if raw_order is not None else 0.0
        except (TypeError, ValueError):
            order = 0.0
        return cls(
            id=str(data.get("id") or generate_id("task")),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            status=_enum_or_default(Status, data.get("status"), Status.TODO),
            priority=_enum_or_default(Priority, data.get("priority"), Priority.MEDIUM),
            tags=[str(t) for t in list(data.get("tags") or [])],
            assignee_id=data.get("assignee_id") or None,
            due_date=data.get("due_date") or None,
            created_at=str(data.get("created_at") or now_iso()),
            updated_at=str(data.get("updated_at") or now_iso()),
            order=order,
        )

    @classmethod
    def from_draft(cls, draft: TaskDraft, *, order: float, timestamp: str) -> "Task":
        return cls(
            title=draft.title,
            description=draft.description,
            status=Status(draft.status),
            priority=Priority(draft.priority),
            tags=list(draft.tags),
            assignee_id=draft.assignee_id,
            due_date=draft.due_date,
            created_at=timestamp,
            updated_at=timestamp,
            order=order,
        )

    def apply_changes(self, changes: Mapping[str, Any]) -> list[str]:
        """Merge *changes* into this task and return the field names applied.

        Unknown and immutable keys are ignored.  Enum fields accept either the
        enum member or its string value; an unknown value raises ``ValueError``.
        Only ``assignee_id`` and ``due_date`` may be cleared with ``None``.
        """
        known = {f.name for f in fields(self)}
        coerced: dict[str, Any] = {}
        for key, value in changes.items():
            if key not in known or key in self.IMMUTABLE_FIELDS:
                continue
            if value is None and key in self.REQUIRED_FIELDS:
                raise ValueError(f"{key} cannot be null")
            if key in ("title", "description"):
                value = str(value)
            elif key == "status":
                value = Status(value)
            elif key == "priority":
                value = Priority(value)
            elif key == "tags":
                value = list(value or [])
            elif key == "order":
                value = float(value)
            coerced[key] = value
        # Nothing is written until every value has been coerced.
        for key, value in coerced.items():
            setattr(self, key, value)
        return list(coerced)

    def copy(self) -> "Task":
        return replace(self, tags=list(self.tags))

    def touch(self, timestamp: Optional[str] = None) -> None:
        """Bump ``updated_at`` to now."""
        self.updated_at = timestamp or now_iso()


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------

@dataclass
class Activity:
    id: str = field(default_factory=lambda: generate_id("act"))
    type: ActivityType = ActivityType.UPDATE
    task_id: str = ""
    user_id: Optional[str] = None
    timestamp: str = field(default_factory=now_iso)
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _to_plain(asdict(self))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Activity":
        return cls(
            id=str(data.get("id") or generate_id("act")),
            type=_enum_or_default(ActivityType, data.get("type"), ActivityType.UPDATE),
            task_id=str(data.get("task_id") or ""),
            user_id=data.get("user_id") or None,
            timestamp=str(data.get("timestamp") or now_iso()),
            message=str(data.get("message") or ""),
        )


# ---------------------------------------------------------------------------
# Users and tags
# ---------------------------------------------------------------------------

@dataclass
class User:
    id: str = field(default_factory=lambda: generate_id("user"))
    name: str = ""
    role: Optional[str] = None
    avatar: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "User":
        return cls(
            id=str(data.get("id") or generate_id("user")),
            name=str(data.get("name") or ""),
            role=data.get("role") or None,
            avatar=data.get("avatar") or None,
        )


@dataclass
class CustomTag:
    id: str = field(default_factory=lambda: generate_id("tag"))
    name: str = ""
    color: str = FALLBACK_TAG_COLOR
    created_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CustomTag":
        return cls(
            id=str(data.get("id") or generate_id("tag")),
            name=str(data.get("name") or "").lower(),
            color=str(data.get("color") or FALLBACK_TAG_COLOR),
            created_at=str(data.get("created_at") or now_iso()),
        )


# ---------------------------------------------------------------------------
# Sticky notes
# ---------------------------------------------------------------------------

@dataclass
class Note:
    """A free-form sticky note shown beside the board."""

    id: str = field(default_factory=lambda: generate_id("note"))
    content: str = ""
    color: str = DEFAULT_NOTE_COLOR
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Note":
        created = str(data.get("created_at") or now_iso())
        return cls(
            id=str(data.get("id") or generate_id("note")),
            content=str(data.get("content") or ""),
            color=str(data.get("color") or DEFAULT_NOTE_COLOR),
            created_at=created,
            updated_at=str(data.get("updated_at") or created),
        )


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

def _toggled(values: Iterable[Any], item: Any) -> list[Any]:
    values = list(values)
    if item in values:
        return [v for v in values if v != item]
    return values + [item]


@dataclass
class Filters:
    """Active filter criteria.  Every empty criterion imposes no constraint."""

    assignees: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    priorities: list[Priority] = field(default_factory=list)
    query: str = ""

    def __post_init__(self) -> None:
        self.priorities = [Priority(p) for p in self.priorities]

    @property
    def is_empty(self) -> bool:
        return not (self.assignees or self.tags or self.priorities or self.query.strip())

    def merge(self, **changes: Any) -> "Filters":
        data = {
            "assignees": list(self.assignees),
            "tags": list(self.tags),
            "priorities": list(self.priorities),
            "query": self.query,
        }
        data.update({k: v for k, v in changes.items() if k in data})
        return Filters(**data)

    def toggle_tag(self, tag: str) -> None:
        self.tags = _toggled(self.tags, tag)

    def toggle_priority(self, priority: Priority | str) -> None:
        self.priorities = _toggled(self.priorities, Priority(priority))

    def toggle_assignee(self, user_id: str) -> None:
        self.assignees = _toggled(self.assignees, user_id)

    def reset(self) -> None:
        self.assignees = []
        self.tags = []
        self.priorities = []
        self.query = ""
