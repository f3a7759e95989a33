from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger

from ..board.engine import BoardEngine
from ..config import BoardConfig, load_board_config
from ..constants import STATE_DIR_NAME
from .file_repos import FileRecordStore, MemoryRecordStore
from .interfaces import RecordStore
from .writer import PersistenceWriter


def ensure_state_root(project_dir: Path) -> Path:
    state_root = project_dir / STATE_DIR_NAME
    state_root.mkdir(parents=True, exist_ok=True)
    return state_root


class BoardContainer:
    """Wire config, record store, writer and engine for one project dir."""

    def __init__(
        self,
        project_dir: Path,
        config: Optional[BoardConfig] = None,
        record_store: Optional[RecordStore] = None,
    ) -> None:
        self.project_dir = project_dir.resolve()
        if config is None:
            config, err = load_board_config(self.project_dir)
            if err:
                logger.warning("Ignoring board config: {}", err)
        self.config = config

        if record_store is None:
            if config.storage == "memory":
                record_store = MemoryRecordStore()
            else:
                record_store = FileRecordStore(ensure_state_root(self.project_dir))
        self.record_store = record_store
        self.writer = PersistenceWriter(record_store, max_attempts=config.write_attempts)
        self.engine = BoardEngine(self.writer, config)

    @property
    def project_id(self) -> str:
        return self.project_dir.name

    def open(self) -> BoardEngine:
        """Load persisted state and return the ready engine.

        The writer is shut down again when loading fails.
        """
        try:
            self.engine.load()
        except Exception:
            self.close()
            raise
        return self.engine

    def close(self) -> None:
        self.writer.close()

    def __enter__(self) -> "BoardContainer":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
