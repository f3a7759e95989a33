"""Persistent record storage for board collections."""

from __future__ import annotations

from .file_repos import FileRecordStore, MemoryRecordStore
from .interfaces import RecordStore
from .writer import PersistenceWriter

__all__ = ["FileRecordStore", "MemoryRecordStore", "PersistenceWriter", "RecordStore"]
