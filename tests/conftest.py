from __future__ import annotations

from typing import Iterator

import pytest
from loguru import logger

from taskflow_board.storage.file_repos import MemoryRecordStore
from taskflow_board.storage.writer import PersistenceWriter


@pytest.fixture
def log_messages() -> Iterator[list[str]]:
    """Capture loguru output (level name plus message) for the test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda record: messages.append(f"{record.record['level'].name} {record.record['message']}"),
        level="DEBUG",
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def memory_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def writer(memory_store: MemoryRecordStore) -> Iterator[PersistenceWriter]:
    w = PersistenceWriter(memory_store)
    yield w
    w.close()


@pytest.fixture
def anyio_backend() -> str:
    """The server is built on asyncio (asyncio.Lock, asyncio.to_thread)."""
    return "asyncio"
