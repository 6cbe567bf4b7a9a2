"""Async client for the task service endpoints the board consumes.

Every failure (network error, non-2xx, malformed body) surfaces as
:class:`TransportError`. Responses that carry no message fall back to the
configured generic string for the operation.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional

import httpx
import pydantic
from loguru import logger

from ..constants import DEFAULT_API_URL, DEFAULT_MESSAGES, DEFAULT_TIMEOUT_SECONDS
from ..errors import TransportError, ValidationError
from ..sync_engine.model import HistoryEntry, Patch, Task
from ..sync_engine.patch import to_wire
from .schemas import BulkUpdateRequest, BulkUpdateResponse, ErrorBody


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        payload = response.json()
    except ValueError:
        return fallback
    if not isinstance(payload, dict):
        return fallback
    try:
        body = ErrorBody.model_validate(payload)
    except pydantic.ValidationError:
        return fallback
    return body.text or fallback


class TasksAPI:
    """Thin wrapper over :class:`httpx.AsyncClient` for the task endpoints.

    Parameters
    ----------
    base_url:
        Service root, e.g. ``http://localhost:8080/api``.
    token:
        Optional bearer token attached to every request.
    messages:
        Overrides for the generic failure strings in ``DEFAULT_MESSAGES``.
    transport:
        Custom httpx transport (tests pass an ``ASGITransport``).
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_URL,
        *,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        messages: Optional[dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._messages = {**DEFAULT_MESSAGES, **(messages or {})}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> "TasksAPI":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def message(self, op: str) -> str:
        return self._messages.get(op) or DEFAULT_MESSAGES["update"]

    async def _request(self, method: str, path: str, *, op: str, json: Any = None) -> Any:
        fallback = self.message(op)
        try:
            response = await self._client.request(method, path, json=json)
        except httpx.HTTPError as exc:
            logger.warning("{} {} failed: {}", method, path, exc)
            raise TransportError(fallback) from exc
        if response.is_error:
            message = _error_message(response, fallback)
            logger.warning("{} {} returned {}: {}", method, path, response.status_code, message)
            raise TransportError(message, status_code=response.status_code)
        try:
            return response.json()
        except ValueError as exc:
            raise TransportError(fallback, status_code=response.status_code) from exc

    async def _task(self, method: str, path: str, *, op: str, json: Any = None) -> Task:
        payload = await self._request(method, path, op=op, json=json)
        if not isinstance(payload, dict):
            raise TransportError(self.message(op))
        return Task.from_dict(payload)

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    async def list_tasks(self, project_id: str) -> list[Task]:
        payload = await self._request("GET", f"/tasks/projects/{project_id}", op="list")
        if not isinstance(payload, list):
            raise TransportError(self.message("list"))
        return [Task.from_dict(item) for item in payload if isinstance(item, dict)]

    async def create_task(self, project_id: str, data: dict[str, Any]) -> Task:
        return await self._task("POST", f"/tasks/projects/{project_id}", op="create", json=data)

    async def patch_task(self, task_id: str, patch: Patch) -> Task:
        """Send only the changed fields. An empty patch is refused locally."""
        if not patch:
            raise ValidationError(self.message("empty_patch"))
        return await self._task("PATCH", f"/tasks/{task_id}", op="update", json=to_wire(patch))

    async def update_task(self, task_id: str, body: dict[str, Any]) -> Task:
        """Full-replace update (used by the status-transition path)."""
        return await self._task("PUT", f"/tasks/{task_id}", op="update", json=body)

    async def bulk_update(self, task_ids: Iterable[str], patch: Patch) -> BulkUpdateResponse:
        request = BulkUpdateRequest(task_ids=list(task_ids), updates=to_wire(patch))
        payload = await self._request(
            "POST", "/tasks/bulk-update", op="bulk_update", json=request.model_dump(by_alias=True)
        )
        if not isinstance(payload, dict):
            raise TransportError(self.message("bulk_update"))
        try:
            return BulkUpdateResponse.model_validate(payload)
        except pydantic.ValidationError as exc:
            raise TransportError(self.message("bulk_update")) from exc

    async def get_history(self, task_id: str) -> list[HistoryEntry]:
        """Fetch a task's history, newest first."""
        payload = await self._request("GET", f"/tasks/{task_id}/history", op="history")
        if not isinstance(payload, list):
            raise TransportError(self.message("history"))
        return [HistoryEntry.from_dict(item) for item in payload if isinstance(item, dict)]
