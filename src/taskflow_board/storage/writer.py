"""Fire-and-forget persistence of in-memory collections.

Board mutations are synchronous; each one hands a full snapshot of the
affected collection to :meth:`PersistenceWriter.schedule` and returns
immediately.  Writes run on a private asyncio loop in a daemon thread.

Every snapshot is stamped with a per-collection sequence number.  Writes for
one collection are serialized, and a snapshot is dropped when a newer one
has already been scheduled, so an older snapshot can never land after a
newer one.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from collections import defaultdict
from typing import Any, Awaitable, Optional, TypeVar

from loguru import logger

from ..constants import DEFAULT_WRITE_ATTEMPTS
from .interfaces import RecordStore

T = TypeVar("T")


class PersistenceWriter:
    """Schedule ``replace_all`` calls without blocking the caller.

    Parameters
    ----------
    store:
        The backing :class:`RecordStore`.
    max_attempts:
        How many times a failing write is tried before it is given up on.
    """

    def __init__(self, store: RecordStore, max_attempts: int = DEFAULT_WRITE_ATTEMPTS) -> None:
        self.store = store
        self.max_attempts = max(1, int(max_attempts))
        self.failures = 0
        self.skipped = 0
        self._seq: dict[str, int] = defaultdict(int)
        self._written: dict[str, int] = defaultdict(int)
        self._pending: set[concurrent.futures.Future[Any]] = set()
        self._state_lock = threading.Lock()
        self._collection_locks: dict[str, asyncio.Lock] = {}
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run_loop, name="taskflow-writer", daemon=True)
        self._thread.start()
        self._closed = False

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    # -- scheduling ---------------------------------------------------------

    def schedule(self, collection: str, records: list[dict[str, Any]]) -> Optional[int]:
        """Queue a full-collection write; returns its sequence number.

        Never raises: a closed writer or a scheduling failure is logged.
        """
        if self._closed:
            logger.warning("Persistence writer closed; dropping write for {}", collection)
            return None
        with self._state_lock:
            self._seq[collection] += 1
            seq = self._seq[collection]
        try:
            future = asyncio.run_coroutine_threadsafe(self._write(collection, seq, records), self._loop)
        except RuntimeError:
            logger.exception("Failed to schedule write for {} (seq={})", collection, seq)
            return None
        with self._state_lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return seq

    def _discard(self, future: concurrent.futures.Future[Any]) -> None:
        with self._state_lock:
            self._pending.discard(future)

    def _collection_lock(self, collection: str) -> asyncio.Lock:
        lock = self._collection_locks.get(collection)
        if lock is None:
            lock = asyncio.Lock()
            self._collection_locks[collection] = lock
        return lock

    async def _write(self, collection: str, seq: int, records: list[dict[str, Any]]) -> None:
        async with self._collection_lock(collection):
            with self._state_lock:
                latest = self._seq[collection]
            if seq < latest or seq <= self._written[collection]:
                self.skipped += 1
                logger.debug("Skipping stale {} snapshot seq={} (latest={})", collection, seq, latest)
                return
            for attempt in range(1, self.max_attempts + 1):
                try:
                    await self.store.replace_all(collection, records)
                except Exception:
                    logger.exception(
                        "Failed to persist {} (seq={}, attempt {}/{})",
                        collection,
                        seq,
                        attempt,
                        self.max_attempts,
                    )
                    continue
                self._written[collection] = seq
                return
            self.failures += 1

    # -- synchronous helpers ------------------------------------------------

    def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Run *coro* on the writer loop and block for its result.

        Only meant for startup loads and maintenance, never for mutations.
        """
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)  # type: ignore[arg-type]
        return future.result(timeout)

    def flush(self, timeout: Optional[float] = 10.0) -> bool:
        """Wait for every scheduled write; returns False on timeout."""
        with self._state_lock:
            pending = set(self._pending)
        if not pending:
            return True
        _, not_done = concurrent.futures.wait(pending, timeout=timeout)
        return not not_done

    @property
    def pending_count(self) -> int:
        with self._state_lock:
            return len(self._pending)

    def close(self, timeout: Optional[float] = 10.0) -> None:
        if self._closed:
            return
        self.flush(timeout)
        self._closed = True
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        if not self._loop.is_running():
            self._loop.close()

    def __enter__(self) -> "PersistenceWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
