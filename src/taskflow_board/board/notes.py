"""Sticky notes pinned beside the board.

Notes have no link to tasks.  Each change saves the whole collection, the
same way users and tags are saved.
"""

from __future__ import annotations

import threading
from dataclasses import replace
from typing import Iterable, Optional

from loguru import logger

from ..constants import COLLECTION_NOTES
from ..utils import now_iso
from .model import Note
from .store import SnapshotWriter


def _clean_content(value: Optional[str]) -> str:
    content = (value or "").strip()
    if not content:
        raise ValueError("note content must not be empty")
    return content


class NoteBoard:
    """Ordered collection of sticky notes, oldest first."""

    def __init__(self, writer: Optional[SnapshotWriter] = None) -> None:
        self._writer = writer
        self._lock = threading.RLock()
        self._notes: list[Note] = []

    def _persist(self) -> None:
        if self._writer is None:
            return
        try:
            self._writer.schedule(COLLECTION_NOTES, [n.to_dict() for n in self._notes])
        except Exception:
            logger.exception("Failed to schedule persistence of notes")

    def _find(self, note_id: str) -> Optional[Note]:
        return next((n for n in self._notes if n.id == note_id), None)

    @property
    def notes(self) -> list[Note]:
        with self._lock:
            return [replace(n) for n in self._notes]

    def hydrate(self, notes: Iterable[Note]) -> None:
        with self._lock:
            self._notes = list(notes)

    def get(self, note_id: str) -> Optional[Note]:
        with self._lock:
            note = self._find(note_id)
            return replace(note) if note is not None else None

    def add_note(self, content: str, color: Optional[str] = None) -> Note:
        note = Note(content=_clean_content(content))
        if color:
            note.color = color
        note.updated_at = note.created_at
        with self._lock:
            self._notes.append(note)
            self._persist()
        logger.info("Added note {}", note.id)
        return replace(note)

    def update_note(self, note_id: str, content: Optional[str] = None, color: Optional[str] = None) -> Optional[Note]:
        """Change a note's text and/or colour; unknown ids return ``None``."""
        with self._lock:
            note = self._find(note_id)
            if note is None:
                return None
            if content is not None:
                note.content = _clean_content(content)
            if color:
                note.color = color
            note.updated_at = now_iso()
            self._persist()
            return replace(note)

    def delete_note(self, note_id: str) -> Optional[Note]:
        with self._lock:
            note = self._find(note_id)
            if note is None:
                return None
            self._notes = [n for n in self._notes if n.id != note_id]
            self._persist()
        logger.info("Deleted note {}", note_id)
        return note
