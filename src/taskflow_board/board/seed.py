"""First-run data: one default user, the default tag palette, no tasks."""

from __future__ import annotations

from typing import Optional

from ..constants import DEFAULT_TAG_COLORS
from ..utils import now_iso
from .model import CustomTag, User

DEFAULT_USER_NAME = "Board Owner"
DEFAULT_USER_ROLE = "Full Stack Developer"
DEFAULT_USER_AVATAR = "👨‍💻"


def default_users() -> list[User]:
    return [User(name=DEFAULT_USER_NAME, role=DEFAULT_USER_ROLE, avatar=DEFAULT_USER_AVATAR)]


def default_tags(timestamp: Optional[str] = None) -> list[CustomTag]:
    created = timestamp or now_iso()
    return [CustomTag(name=name, color=color, created_at=created) for name, color in DEFAULT_TAG_COLORS.items()]
