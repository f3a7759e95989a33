"""Provide the public `taskflow_board` package exports."""

from __future__ import annotations

from .board.engine import BoardEngine
from .board.model import Filters, Priority, Status, Task, TaskDraft
from .config import BoardConfig, load_board_config
from .storage.container import BoardContainer

__all__ = [
    "BoardConfig",
    "BoardContainer",
    "BoardEngine",
    "Filters",
    "Priority",
    "Status",
    "Task",
    "TaskDraft",
    "load_board_config",
]
