"""Shared fixtures: an in-memory task service served by FastAPI over ASGI."""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx
import pytest
from fastapi import Body, FastAPI, Request
from fastapi.responses import JSONResponse

from taskboard_sync.client.api import TasksAPI
from taskboard_sync.sync_engine.model import Task

BASE_URL = "http://test/api"


def make_task(task_id: str, **fields: Any) -> Task:
    fields.setdefault("title", f"Task {task_id}")
    fields.setdefault("project_id", "p1")
    return Task(id=task_id, **fields)


class FakeTaskService:
    """Stores wire payloads and records every request it receives."""

    def __init__(self) -> None:
        self.tasks: dict[str, dict[str, Any]] = {}
        self.history: dict[str, list[dict[str, Any]]] = {}
        self.requests: list[dict[str, Any]] = []
        self.failures: dict[str, tuple[int, Any]] = {}
        self.bulk_failures: dict[str, Optional[str]] = {}
        self.bulk_response: Optional[dict[str, Any]] = None
        self.gates: dict[str, asyncio.Event] = {}
        self._next_id = 1

    def seed(self, *tasks: Task) -> None:
        for task in tasks:
            self.tasks[task.id] = task.to_dict()

    def fail(self, op: str, status: int, body: Any = None) -> None:
        self.failures[op] = (status, body)

    def calls(self, method: Optional[str] = None) -> list[dict[str, Any]]:
        return [r for r in self.requests if method is None or r["method"] == method]

    async def record(self, request: Request, op: str) -> Optional[JSONResponse]:
        body = None
        raw = await request.body()
        if raw:
            body = await request.json()
        self.requests.append({
            "op": op,
            "method": request.method,
            "path": request.url.path,
            "body": body,
            "authorization": request.headers.get("authorization"),
        })
        if op in self.gates:
            await self.gates[op].wait()
        if op in self.failures:
            status, payload = self.failures[op]
            return JSONResponse(status_code=status, content=payload)
        return None


def create_fake_app(service: FakeTaskService) -> FastAPI:
    app = FastAPI()

    @app.get("/api/tasks/projects/{project_id}")
    async def list_tasks(project_id: str, request: Request):
        failed = await service.record(request, "list")
        if failed:
            return failed
        return [t for t in service.tasks.values() if t.get("projectId") == project_id]

    @app.post("/api/tasks/projects/{project_id}")
    async def create_task(project_id: str, request: Request, body: dict[str, Any] = Body(...)):
        failed = await service.record(request, "create")
        if failed:
            return failed
        task_id = f"new-{service._next_id}"
        service._next_id += 1
        record = {**make_task(task_id, project_id=project_id).to_dict(), **body, "id": task_id}
        service.tasks[task_id] = record
        return record

    @app.patch("/api/tasks/{task_id}")
    async def patch_task(task_id: str, request: Request, body: dict[str, Any] = Body(...)):
        failed = await service.record(request, "patch")
        if failed:
            return failed
        if task_id not in service.tasks:
            return JSONResponse(status_code=404, content={"message": f"Task {task_id} not found"})
        service.tasks[task_id] = {**service.tasks[task_id], **body}
        return service.tasks[task_id]

    @app.put("/api/tasks/{task_id}")
    async def put_task(task_id: str, request: Request, body: dict[str, Any] = Body(...)):
        failed = await service.record(request, "put")
        if failed:
            return failed
        if task_id not in service.tasks:
            return JSONResponse(status_code=404, content={"message": f"Task {task_id} not found"})
        service.tasks[task_id] = {**service.tasks[task_id], **body}
        return service.tasks[task_id]

    @app.post("/api/tasks/bulk-update")
    async def bulk_update(request: Request, body: dict[str, Any] = Body(...)):
        failed = await service.record(request, "bulk")
        if failed:
            return failed
        if service.bulk_response is not None:
            return service.bulk_response
        ok: list[str] = []
        errors: list[dict[str, Any]] = []
        for task_id in body["taskIds"]:
            if task_id in service.bulk_failures or task_id not in service.tasks:
                errors.append({
                    "taskId": task_id,
                    "errorMessage": service.bulk_failures.get(task_id),
                    "errorCode": "FORBIDDEN" if task_id in service.tasks else "NOT_FOUND",
                })
                continue
            service.tasks[task_id] = {**service.tasks[task_id], **body["updates"]}
            ok.append(task_id)
        return {
            "successfulUpdates": ok,
            "failedUpdates": errors,
            "totalRequested": len(body["taskIds"]),
            "totalSuccessful": len(ok),
            "totalFailed": len(errors),
        }

    @app.get("/api/tasks/{task_id}/history")
    async def history(task_id: str, request: Request):
        failed = await service.record(request, "history")
        if failed:
            return failed
        return service.history.get(task_id, [])

    return app


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def service() -> FakeTaskService:
    return FakeTaskService()


@pytest.fixture
def app(service: FakeTaskService) -> FastAPI:
    return create_fake_app(service)


@pytest.fixture
async def api(app: FastAPI):
    async with TasksAPI(BASE_URL, transport=httpx.ASGITransport(app=app)) as client:
        yield client
