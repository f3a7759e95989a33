"""Tests for the board API endpoints."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from taskflow_board.config import BoardConfig
from taskflow_board.server.api import create_app


@pytest.fixture
def app(tmp_path: Path):
    """Create a test app with a temp project directory."""
    project_dir = tmp_path / "test_project"
    project_dir.mkdir()
    return create_app(project_dir=project_dir, enable_cors=False, config=BoardConfig(storage="memory"))


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    for container in list(app.state.containers.values()):
        container.close()


async def _create(client: AsyncClient, **fields) -> dict:
    resp = await client.post("/api/board/tasks", json=fields)
    assert resp.status_code == 201
    return resp.json()["task"]


@pytest.mark.anyio
class TestTaskCRUD:
    async def test_list_empty(self, client: AsyncClient) -> None:
        resp = await client.get("/api/board/tasks")
        assert resp.status_code == 200
        assert resp.json() == {"tasks": [], "total": 0}

    async def test_create_and_get(self, client: AsyncClient) -> None:
        task = await _create(client, title="Implement auth", priority="high", tags=["backend"])
        assert task["status"] == "todo"
        assert task["priority"] == "high"

        resp = await client.get(f"/api/board/tasks/{task['id']}")
        assert resp.status_code == 200
        assert resp.json()["task"]["title"] == "Implement auth"

    async def test_create_invalid_status(self, client: AsyncClient) -> None:
        resp = await client.post("/api/board/tasks", json={"title": "x", "status": "archived"})
        assert resp.status_code == 422

    async def test_get_nonexistent(self, client: AsyncClient) -> None:
        resp = await client.get("/api/board/tasks/nope")
        assert resp.status_code == 404

    async def test_update(self, client: AsyncClient) -> None:
        task = await _create(client, title="Old", assignee_id="u1")
        resp = await client.patch(f"/api/board/tasks/{task['id']}", json={"title": "New", "assignee_id": None})
        assert resp.status_code == 200
        body = resp.json()["task"]
        assert body["title"] == "New"
        assert body["assignee_id"] is None

    async def test_update_invalid_priority(self, client: AsyncClient) -> None:
        task = await _create(client, title="x")
        resp = await client.patch(f"/api/board/tasks/{task['id']}", json={"priority": "P0"})
        assert resp.status_code == 422

    @pytest.mark.parametrize("field", ["title", "description", "status", "priority"])
    async def test_update_null_required_field(self, client: AsyncClient, field: str) -> None:
        task = await _create(client, title="Keep me", description="body")
        resp = await client.patch(f"/api/board/tasks/{task['id']}", json={field: None})
        assert resp.status_code == 422

        stored = (await client.get(f"/api/board/tasks/{task['id']}")).json()["task"]
        assert stored["title"] == "Keep me"
        assert stored["description"] == "body"
        resp = await client.get("/api/board/board", params={"q": "zzz"})
        assert resp.status_code == 200

    async def test_update_unknown(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/board/tasks/nope", json={"title": "x"})
        assert resp.status_code == 404

    async def test_delete(self, client: AsyncClient) -> None:
        task = await _create(client, title="To delete")
        resp = await client.delete(f"/api/board/tasks/{task['id']}")
        assert resp.status_code == 200
        resp = await client.get(f"/api/board/tasks/{task['id']}")
        assert resp.status_code == 404

    async def test_move_appends_by_default(self, client: AsyncClient) -> None:
        task = await _create(client, title="x")
        resp = await client.post(f"/api/board/tasks/{task['id']}/move", json={"status": "done"})
        assert resp.status_code == 200
        body = resp.json()["task"]
        assert body["status"] == "done"
        assert body["order"] == 1000

    async def test_move_explicit_order(self, client: AsyncClient) -> None:
        task = await _create(client, title="x")
        resp = await client.post(f"/api/board/tasks/{task['id']}/move", json={"status": "in_review", "order": 42})
        assert resp.json()["task"]["order"] == 42

    async def test_list_filters(self, client: AsyncClient) -> None:
        await _create(client, title="Implement auth", tags=["backend"])
        await _create(client, title="Fix CSS", tags=["frontend"], priority="low")
        resp = await client.get("/api/board/tasks", params={"q": "auth"})
        assert [t["title"] for t in resp.json()["tasks"]] == ["Implement auth"]
        resp = await client.get("/api/board/tasks", params={"priority": ["low", "high"]})
        assert resp.json()["total"] == 1
        resp = await client.get("/api/board/tasks", params={"priority": "urgent"})
        assert resp.status_code == 422


@pytest.mark.anyio
class TestBoardViews:
    async def test_board_columns(self, client: AsyncClient) -> None:
        await _create(client, title="a")
        await _create(client, title="b", status="done")
        resp = await client.get("/api/board/board")
        assert resp.status_code == 200
        data = resp.json()
        assert list(data["columns"]) == ["todo", "in_progress", "in_review", "done"]
        assert data["counts"] == {"todo": 1, "in_progress": 0, "in_review": 0, "done": 1}

    async def test_drag_end_reorders(self, client: AsyncClient) -> None:
        ids = []
        for i, title in enumerate(("A", "B", "C"), start=1):
            task = await _create(client, title=title)
            await client.post(f"/api/board/tasks/{task['id']}/move", json={"status": "todo", "order": i * 1000})
            ids.append(task["id"])

        resp = await client.post("/api/board/drag-end", json={"active_id": ids[0], "over_id": ids[1]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["noop"] is False
        assert {m["task_id"]: m["order"] for m in body["moves"]} == {ids[1]: 1000, ids[0]: 2000}

        board = (await client.get("/api/board/board")).json()
        assert [t["title"] for t in board["columns"]["todo"]] == ["B", "A", "C"]

    async def test_drag_end_noop(self, client: AsyncClient) -> None:
        task = await _create(client, title="A")
        resp = await client.post("/api/board/drag-end", json={"active_id": task["id"], "over_id": None})
        assert resp.json() == {"moves": [], "rebalanced": False, "noop": True}

    async def test_drag_end_with_filters(self, client: AsyncClient) -> None:
        mover = await _create(client, title="mover", tags=["keep"])
        kept = await _create(client, title="kept", status="done", tags=["keep"])
        hidden = await _create(client, title="hidden", status="done")
        await client.post(f"/api/board/tasks/{kept['id']}/move", json={"status": "done", "order": 1000})
        await client.post(f"/api/board/tasks/{hidden['id']}/move", json={"status": "done", "order": 9000})

        resp = await client.post("/api/board/drag-end", json={
            "active_id": mover["id"],
            "over_id": "done",
            "filters": {"tags": ["keep"]},
        })
        assert resp.json()["moves"] == [{"task_id": mover["id"], "status": "done", "order": 2000}]

    async def test_activities_and_comments(self, client: AsyncClient) -> None:
        task = await _create(client, title="x")
        resp = await client.post(f"/api/board/tasks/{task['id']}/comments", json={"message": "hello"})
        assert resp.status_code == 201
        assert resp.json()["activity"]["type"] == "comment"

        resp = await client.get("/api/board/activities", params={"task_id": task["id"]})
        types = [a["type"] for a in resp.json()["activities"]]
        assert types == ["comment", "create"]

        resp = await client.post("/api/board/tasks/nope/comments", json={"message": "hello"})
        assert resp.status_code == 404

    async def test_analytics(self, client: AsyncClient) -> None:
        await _create(client, title="x", status="done")
        resp = await client.get("/api/board/analytics", params={"days": 7})
        assert resp.status_code == 200
        assert resp.json()["progress"] == {"completed": 1, "total": 1, "percentage": 100}
        resp = await client.get("/api/board/analytics", params={"days": 14})
        assert resp.status_code == 422

    async def test_stats_and_reset(self, client: AsyncClient) -> None:
        await _create(client, title="x")
        assert (await client.get("/api/board/stats")).json()["tasks"] == 1
        resp = await client.post("/api/board/reset")
        assert resp.status_code == 200
        assert (await client.get("/api/board/stats")).json() == {
            "tasks": 0,
            "users": 1,
            "tags": 11,
            "activities": 0,
            "notes": 0,
        }


@pytest.mark.anyio
class TestUsersAndTags:
    async def test_user_crud(self, client: AsyncClient) -> None:
        resp = await client.post("/api/board/users", json={"name": "Ana", "role": "Dev"})
        assert resp.status_code == 201
        user = resp.json()["user"]

        resp = await client.patch(f"/api/board/users/{user['id']}", json={"role": "Lead"})
        assert resp.json()["user"]["role"] == "Lead"

        names = [u["name"] for u in (await client.get("/api/board/users")).json()["users"]]
        assert "Ana" in names

        resp = await client.delete(f"/api/board/users/{user['id']}")
        assert resp.status_code == 200
        resp = await client.delete(f"/api/board/users/{user['id']}")
        assert resp.status_code == 404

    async def test_user_in_use_conflict(self, client: AsyncClient) -> None:
        user = (await client.post("/api/board/users", json={"name": "Bo"})).json()["user"]
        await _create(client, title="x", assignee_id=user["id"])
        resp = await client.delete(f"/api/board/users/{user['id']}")
        assert resp.status_code == 409
        resp = await client.delete(f"/api/board/users/{user['id']}", params={"force": True})
        assert resp.status_code == 200

    async def test_blank_user_name(self, client: AsyncClient) -> None:
        resp = await client.post("/api/board/users", json={"name": "  "})
        assert resp.status_code == 422

    async def test_tag_crud(self, client: AsyncClient) -> None:
        resp = await client.post("/api/board/tags", json={"name": "Urgent", "color": "#ff0000"})
        assert resp.status_code == 201
        tag = resp.json()["tag"]
        assert tag["name"] == "urgent"

        resp = await client.patch(f"/api/board/tags/{tag['id']}", json={"color": "#00ff00"})
        assert resp.json()["tag"]["color"] == "#00ff00"

        await _create(client, title="x", tags=["urgent"])
        resp = await client.delete(f"/api/board/tags/{tag['id']}")
        assert resp.status_code == 409

        tags = (await client.get("/api/board/tags")).json()["tags"]
        assert len(tags) == 12

    async def test_root(self, client: AsyncClient) -> None:
        resp = await client.get("/")
        assert resp.json()["status"] == "running"


@pytest.mark.anyio
class TestNotes:
    async def test_note_crud(self, client: AsyncClient) -> None:
        resp = await client.post("/api/board/notes", json={"content": "Retro on Friday"})
        assert resp.status_code == 201
        note = resp.json()["note"]
        assert note["color"] == "#fef08a"

        resp = await client.patch(f"/api/board/notes/{note['id']}", json={"color": "#fda4af"})
        assert resp.status_code == 200
        assert resp.json()["note"]["content"] == "Retro on Friday"

        notes = (await client.get("/api/board/notes")).json()["notes"]
        assert [(n["id"], n["color"]) for n in notes] == [(note["id"], "#fda4af")]

        resp = await client.delete(f"/api/board/notes/{note['id']}")
        assert resp.status_code == 200
        resp = await client.delete(f"/api/board/notes/{note['id']}")
        assert resp.status_code == 404

    async def test_blank_note_rejected(self, client: AsyncClient) -> None:
        resp = await client.post("/api/board/notes", json={"content": "  "})
        assert resp.status_code == 422
        note = (await client.post("/api/board/notes", json={"content": "x"})).json()["note"]
        resp = await client.patch(f"/api/board/notes/{note['id']}", json={"content": ""})
        assert resp.status_code == 422

    async def test_update_unknown_note(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/board/notes/ghost", json={"content": "x"})
        assert resp.status_code == 404

    async def test_notes_survive_reset(self, client: AsyncClient) -> None:
        await client.post("/api/board/notes", json={"content": "keep"})
        await client.post("/api/board/reset")
        assert len((await client.get("/api/board/notes")).json()["notes"]) == 1


def _writer_threads() -> int:
    return sum(1 for t in threading.enumerate() if t.name == "taskflow-writer")


@pytest.mark.anyio
async def test_corrupt_storage_returns_503(tmp_path: Path) -> None:
    project_dir = tmp_path / "broken"
    state_root = project_dir / ".taskflow"
    state_root.mkdir(parents=True)
    (state_root / "tasks.yaml").write_text("tasks: [1, 2\n", encoding="utf-8")
    app = create_app(project_dir=project_dir, enable_cors=False, config=BoardConfig())

    before = _writer_threads()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        for _ in range(3):
            resp = await client.get("/api/board/tasks")
            assert resp.status_code == 503
            assert "unreadable" in resp.json()["detail"]
    assert app.state.containers == {}
    assert _writer_threads() == before
