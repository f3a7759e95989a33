"""FastAPI web server for the task board."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..board.engine import BoardEngine
from ..config import BoardConfig
from ..storage.container import BoardContainer
from ..storage.file_repos import CorruptCollectionError
from .board_api import create_board_router

APP_NAME = "Taskflow Board"
APP_VERSION = "0.1.0"


def create_app(
    project_dir: Optional[Path] = None,
    enable_cors: bool = True,
    config: Optional[BoardConfig] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        project_dir: Default project directory.
        enable_cors: Whether to enable CORS.
        config: Board config to use instead of the project's config file.

    Returns:
        Configured FastAPI app.
    """
    containers: dict[Path, BoardContainer] = {}
    containers_lock = asyncio.Lock()

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        async with containers_lock:
            opened = list(containers.values())
            containers.clear()
        for container in opened:
            container.close()

    app = FastAPI(
        title=APP_NAME,
        description="Personal task board with drag-and-drop ordering",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.default_project_dir = project_dir
    app.state.containers = containers

    def _get_project_dir(project_dir_param: Optional[str] = None) -> Path:
        """Get project directory from parameter or default."""
        if project_dir_param:
            return Path(project_dir_param)
        if app.state.default_project_dir:
            return app.state.default_project_dir
        return Path.cwd()

    def _open_container(key: Path) -> BoardContainer:
        container = BoardContainer(key, config=config)
        container.open()
        return container

    async def _get_engine(project_dir_param: Optional[str] = None) -> BoardEngine:
        key = _get_project_dir(project_dir_param).resolve()
        async with containers_lock:
            container = containers.get(key)
            if container is None:
                # Startup reads block on file I/O; run them in a worker thread.
                try:
                    container = await asyncio.to_thread(_open_container, key)
                except CorruptCollectionError as exc:
                    logger.error("Cannot open board for {}: {}", key, exc)
                    raise HTTPException(status_code=503, detail=f"Board storage is unreadable: {exc}") from exc
                containers[key] = container
                logger.info("Opened board for {}", key)
        return container.engine

    app.include_router(create_board_router(_get_engine))

    @app.get("/")
    async def root() -> dict[str, Any]:
        return {"name": APP_NAME, "version": APP_VERSION, "status": "running"}

    return app
