from __future__ import annotations

import asyncio
import copy
import threading
from pathlib import Path
from typing import Any, Optional

from ..io_utils import FileLock, _atomic_write_yaml, _load_yaml_with_error
from .interfaces import RecordStore

SCHEMA_VERSION = 1


class CorruptCollectionError(RuntimeError):
    """A collection file exists but cannot be parsed."""


def _sorted(records: list[dict[str, Any]], order_by: Optional[str], descending: bool) -> list[dict[str, Any]]:
    if not order_by:
        return records
    # Missing keys sort as empty strings so mixed payloads never raise.
    return sorted(records, key=lambda r: str(r.get(order_by) or ""), reverse=descending)


class _YamlCollection:
    def __init__(self, path: Path, lock_path: Path, key: str) -> None:
        self._path = path
        self._lock = FileLock(lock_path)
        self._thread_lock = threading.RLock()
        self._key = key

    def load(self) -> list[dict[str, Any]]:
        with self._thread_lock:
            with self._lock:
                raw, err = _load_yaml_with_error(self._path, {})
        if err:
            # A corrupt file is never treated as an empty collection.
            raise CorruptCollectionError(err)
        items = raw.get(self._key, [])
        if not isinstance(items, list):
            return []
        return [item for item in items if isinstance(item, dict)]

    def save(self, items: list[dict[str, Any]]) -> None:
        payload = {"version": SCHEMA_VERSION, self._key: items}
        with self._thread_lock:
            with self._lock:
                _atomic_write_yaml(self._path, payload)


class FileRecordStore(RecordStore):
    """One YAML file per collection under ``state_root``.

    Blocking file I/O runs in a worker thread so the event loop that drives
    persistence stays responsive.
    """

    def __init__(self, state_root: Path) -> None:
        self.state_root = state_root
        self._collections: dict[str, _YamlCollection] = {}
        self._guard = threading.Lock()

    def _collection(self, name: str) -> _YamlCollection:
        with self._guard:
            repo = self._collections.get(name)
            if repo is None:
                repo = _YamlCollection(
                    self.state_root / f"{name}.yaml",
                    self.state_root / f"{name}.lock",
                    name,
                )
                self._collections[name] = repo
            return repo

    def path_for(self, collection: str) -> Path:
        return self.state_root / f"{collection}.yaml"

    async def replace_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        await asyncio.to_thread(self._collection(collection).save, list(records))

    async def load_all(
        self,
        collection: str,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        records = await asyncio.to_thread(self._collection(collection).load)
        return _sorted(records, order_by, descending)


class MemoryRecordStore(RecordStore):
    """Dict-backed store for ephemeral boards and tests."""

    def __init__(self, initial: Optional[dict[str, list[dict[str, Any]]]] = None) -> None:
        self._data: dict[str, list[dict[str, Any]]] = copy.deepcopy(initial or {})
        self._lock = threading.Lock()
        self.write_count = 0

    async def replace_all(self, collection: str, records: list[dict[str, Any]]) -> None:
        snapshot = copy.deepcopy(list(records))
        with self._lock:
            self._data[collection] = snapshot
            self.write_count += 1

    async def load_all(
        self,
        collection: str,
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[dict[str, Any]]:
        with self._lock:
            records = copy.deepcopy(self._data.get(collection, []))
        return _sorted(records, order_by, descending)

    def snapshot(self, collection: str) -> list[dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._data.get(collection, []))
