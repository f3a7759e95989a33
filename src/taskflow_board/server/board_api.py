"""Board API endpoints.

This module provides a FastAPI router over :class:`BoardEngine`: task CRUD,
drag-and-drop resolution, filtered board views, activity, users, tags, sticky
notes and dashboard analytics.  It is mounted under ``/api/board`` by ``create_app``.
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger
from pydantic import BaseModel, Field

from ..board.engine import BoardEngine, ReferenceInUseError
from ..board.filters import task_counts_by_status
from ..board.model import Filters, Priority, Status, TaskDraft
from ..board.ordering import append_order


# ---------------------------------------------------------------------------
# Pydantic request / response models
# ---------------------------------------------------------------------------

class CreateTaskRequest(BaseModel):
    title: str
    description: str = ""
    status: str = Status.TODO.value
    priority: str = Priority.MEDIUM.value
    tags: list[str] = Field(default_factory=list)
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None


class UpdateTaskRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    tags: Optional[list[str]] = None
    assignee_id: Optional[str] = None
    due_date: Optional[str] = None


class MoveRequest(BaseModel):
    status: str
    order: Optional[float] = None


class CommentRequest(BaseModel):
    message: str
    user_id: Optional[str] = None


class FiltersModel(BaseModel):
    assignees: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    priorities: list[str] = Field(default_factory=list)
    query: str = ""

    def to_filters(self) -> Filters:
        return Filters(
            assignees=list(self.assignees),
            tags=list(self.tags),
            priorities=[Priority(p) for p in self.priorities],
            query=self.query,
        )


class DragEndRequest(BaseModel):
    active_id: str
    over_id: Optional[str] = None
    filters: Optional[FiltersModel] = None


class UserRequest(BaseModel):
    name: str
    role: Optional[str] = None
    avatar: Optional[str] = None


class UpdateUserRequest(BaseModel):
    name: Optional[str] = None
    role: Optional[str] = None
    avatar: Optional[str] = None


class TagRequest(BaseModel):
    name: str
    color: Optional[str] = None


class UpdateTagRequest(BaseModel):
    name: Optional[str] = None
    color: Optional[str] = None


class NoteRequest(BaseModel):
    content: str
    color: Optional[str] = None


class UpdateNoteRequest(BaseModel):
    content: Optional[str] = None
    color: Optional[str] = None


class TaskResponse(BaseModel):
    task: dict[str, Any]


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int


class BoardResponse(BaseModel):
    columns: dict[str, list[dict[str, Any]]]
    counts: dict[str, int]


class DragEndResponse(BaseModel):
    moves: list[dict[str, Any]]
    rebalanced: bool
    noop: bool


def _filters_from_query(
    assignee: Optional[list[str]],
    tag: Optional[list[str]],
    priority: Optional[list[str]],
    q: Optional[str],
) -> Filters:
    try:
        return Filters(
            assignees=list(assignee or []),
            tags=list(tag or []),
            priorities=[Priority(p) for p in priority or []],
            query=q or "",
        )
    except ValueError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _not_found(kind: str, ident: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} {ident} not found")


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def create_board_router(get_engine: Callable[[Optional[str]], Awaitable[BoardEngine]]) -> APIRouter:
    """Create the board API router.

    Parameters
    ----------
    get_engine:
        An async callable ``(project_dir_param: str | None) -> BoardEngine`` that
        resolves the engine for the current request's project directory.
    """
    router = APIRouter(prefix="/api/board", tags=["board"])

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    @router.get("/tasks", response_model=TaskListResponse)
    async def list_tasks(
        project_dir: Optional[str] = Query(None),
        assignee: Optional[list[str]] = Query(None),
        tag: Optional[list[str]] = Query(None),
        priority: Optional[list[str]] = Query(None),
        q: Optional[str] = Query(None),
    ) -> TaskListResponse:
        engine = await get_engine(project_dir)
        filters = _filters_from_query(assignee, tag, priority, q)
        data = [t.to_dict() for t in engine.filtered_tasks(filters)]
        return TaskListResponse(tasks=data, total=len(data))

    @router.post("/tasks", response_model=TaskResponse, status_code=201)
    async def create_task(
        body: CreateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = await get_engine(project_dir)
        try:
            draft = TaskDraft(
                title=body.title,
                description=body.description,
                status=Status(body.status),
                priority=Priority(body.priority),
                tags=list(body.tags),
                assignee_id=body.assignee_id,
                due_date=body.due_date,
            )
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        task = engine.create_task(draft)
        return TaskResponse(task=task.to_dict())

    @router.get("/tasks/{task_id}", response_model=TaskResponse)
    async def get_task(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        task = (await get_engine(project_dir)).get_task(task_id)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=task.to_dict())

    @router.patch("/tasks/{task_id}", response_model=TaskResponse)
    async def update_task(
        task_id: str,
        body: UpdateTaskRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = await get_engine(project_dir)
        # Explicit nulls clear optional fields such as the assignee.
        changes = body.model_dump(exclude_unset=True)
        try:
            task = engine.update_task(task_id, changes)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=task.to_dict())

    @router.delete("/tasks/{task_id}", response_model=TaskResponse)
    async def delete_task(
        task_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        task = (await get_engine(project_dir)).delete_task(task_id)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=task.to_dict())

    @router.post("/tasks/{task_id}/move", response_model=TaskResponse)
    async def move_task(
        task_id: str,
        body: MoveRequest,
        project_dir: Optional[str] = Query(None),
    ) -> TaskResponse:
        engine = await get_engine(project_dir)
        try:
            status = Status(body.status)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        order = body.order
        if order is None:
            order = append_order(engine.view()[status], engine.config.order_gap)
        task = engine.move_task(task_id, status, order)
        if task is None:
            raise _not_found("Task", task_id)
        return TaskResponse(task=task.to_dict())

    @router.post("/tasks/{task_id}/comments", status_code=201)
    async def add_comment(
        task_id: str,
        body: CommentRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = await get_engine(project_dir)
        try:
            activity = engine.add_comment(task_id, body.message, user_id=body.user_id)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if activity is None:
            raise _not_found("Task", task_id)
        return {"activity": activity.to_dict()}

    # ------------------------------------------------------------------
    # Board views
    # ------------------------------------------------------------------

    @router.post("/drag-end", response_model=DragEndResponse)
    async def drag_end(
        body: DragEndRequest,
        project_dir: Optional[str] = Query(None),
    ) -> DragEndResponse:
        engine = await get_engine(project_dir)
        try:
            filters = body.filters.to_filters() if body.filters else None
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        resolution = engine.handle_drag_end(body.active_id, body.over_id, filters)
        moves = [
            {"task_id": m.task_id, "status": m.status.value, "order": m.order}
            for m in resolution.moves
        ]
        return DragEndResponse(moves=moves, rebalanced=resolution.rebalanced, noop=resolution.is_noop)

    @router.get("/board", response_model=BoardResponse)
    async def get_board(
        project_dir: Optional[str] = Query(None),
        assignee: Optional[list[str]] = Query(None),
        tag: Optional[list[str]] = Query(None),
        priority: Optional[list[str]] = Query(None),
        q: Optional[str] = Query(None),
    ) -> BoardResponse:
        engine = await get_engine(project_dir)
        columns = engine.view(_filters_from_query(assignee, tag, priority, q))
        visible = [t for bucket in columns.values() for t in bucket]
        return BoardResponse(
            columns={status.value: [t.to_dict() for t in bucket] for status, bucket in columns.items()},
            counts={status.value: n for status, n in task_counts_by_status(visible).items()},
        )

    @router.get("/activities")
    async def list_activities(
        project_dir: Optional[str] = Query(None),
        task_id: Optional[str] = Query(None),
        limit: Optional[int] = Query(None, ge=1),
    ) -> dict[str, Any]:
        entries = (await get_engine(project_dir)).activities(task_id=task_id, limit=limit)
        return {"activities": [a.to_dict() for a in entries]}

    @router.get("/analytics")
    async def get_analytics(
        project_dir: Optional[str] = Query(None),
        days: int = Query(30),
    ) -> dict[str, Any]:
        try:
            return (await get_engine(project_dir)).analytics(days)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc

    @router.get("/stats")
    async def get_stats(project_dir: Optional[str] = Query(None)) -> dict[str, int]:
        return (await get_engine(project_dir)).stats()

    @router.post("/reset")
    async def reset_board(project_dir: Optional[str] = Query(None)) -> dict[str, str]:
        (await get_engine(project_dir)).reset()
        logger.warning("Board reset via API")
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    @router.get("/users")
    async def list_users(project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        return {"users": [u.to_dict() for u in (await get_engine(project_dir)).users.users]}

    @router.post("/users", status_code=201)
    async def add_user(
        body: UserRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        try:
            user = (await get_engine(project_dir)).users.add_user(body.name, body.role, body.avatar)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"user": user.to_dict()}

    @router.patch("/users/{user_id}")
    async def update_user(
        user_id: str,
        body: UpdateUserRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        try:
            user = (await get_engine(project_dir)).users.update_user(user_id, body.model_dump(exclude_unset=True))
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if user is None:
            raise _not_found("User", user_id)
        return {"user": user.to_dict()}

    @router.delete("/users/{user_id}")
    async def delete_user(
        user_id: str,
        project_dir: Optional[str] = Query(None),
        force: bool = Query(False),
    ) -> dict[str, Any]:
        try:
            user = (await get_engine(project_dir)).delete_user(user_id, force=force)
        except ReferenceInUseError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if user is None:
            raise _not_found("User", user_id)
        return {"user": user.to_dict()}

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    @router.get("/tags")
    async def list_tags(project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        return {"tags": [t.to_dict() for t in (await get_engine(project_dir)).tags.tags]}

    @router.post("/tags", status_code=201)
    async def add_tag(
        body: TagRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        try:
            tag = (await get_engine(project_dir)).tags.add(body.name, body.color)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"tag": tag.to_dict()}

    @router.patch("/tags/{tag_id}")
    async def update_tag(
        tag_id: str,
        body: UpdateTagRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        try:
            tag = (await get_engine(project_dir)).tags.update(tag_id, body.name, body.color)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if tag is None:
            raise _not_found("Tag", tag_id)
        return {"tag": tag.to_dict()}

    @router.delete("/tags/{tag_id}")
    async def delete_tag(
        tag_id: str,
        project_dir: Optional[str] = Query(None),
        force: bool = Query(False),
    ) -> dict[str, Any]:
        try:
            tag = (await get_engine(project_dir)).delete_tag(tag_id, force=force)
        except ReferenceInUseError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if tag is None:
            raise _not_found("Tag", tag_id)
        return {"tag": tag.to_dict()}

    # ------------------------------------------------------------------
    # Sticky notes
    # ------------------------------------------------------------------

    @router.get("/notes")
    async def list_notes(project_dir: Optional[str] = Query(None)) -> dict[str, Any]:
        return {"notes": [n.to_dict() for n in (await get_engine(project_dir)).notes.notes]}

    @router.post("/notes", status_code=201)
    async def add_note(
        body: NoteRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = await get_engine(project_dir)
        try:
            note = engine.notes.add_note(body.content, body.color)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"note": note.to_dict()}

    @router.patch("/notes/{note_id}")
    async def update_note(
        note_id: str,
        body: UpdateNoteRequest,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        engine = await get_engine(project_dir)
        try:
            note = engine.notes.update_note(note_id, body.content, body.color)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        if note is None:
            raise _not_found("Note", note_id)
        return {"note": note.to_dict()}

    @router.delete("/notes/{note_id}")
    async def delete_note(
        note_id: str,
        project_dir: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        note = (await get_engine(project_dir)).notes.delete_note(note_id)
        if note is None:
            raise _not_found("Note", note_id)
        return {"note": note.to_dict()}

    return router
