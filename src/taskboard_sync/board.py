"""Board controller: the entry point a presentation layer talks to.

Owns the project's :class:`TaskCollection` and routes every mutation through
the engine: drag gestures, editor sessions, bulk edits and task creation.
All methods return a :class:`RequestOutcome`; none of them raise for
validation or transport failures.
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional

from loguru import logger

from .client.api import TasksAPI
from .config import ClientConfig
from .constants import HISTORY_FILTER_ALL
from .errors import RequestOutcome, ShapeViolation, TaskboardError, ValidationError
from .shortcuts import Shortcut, editor_shortcuts
from .sync_engine import drag
from .sync_engine.autosave import AutoSaveController, SessionState
from .sync_engine.bulk import BulkMutationCoordinator
from .sync_engine.history import filter_history
from .sync_engine.model import Patch, Task, TaskPriority
from .sync_engine.patch import full_update_body
from .sync_engine.reconcile import TaskCollection


class BoardController:
    """Manage one project's board.

    Parameters
    ----------
    api:
        Client for the task service.
    project_id:
        Project whose tasks are shown.
    config:
        Auto-save and message settings (defaults when omitted).
    tasks:
        Initial tasks, e.g. from a previous listing.
    """

    def __init__(
        self,
        api: TasksAPI,
        project_id: str,
        *,
        config: Optional[ClientConfig] = None,
        tasks: Iterable[Task] = (),
    ) -> None:
        self.api = api
        self.project_id = project_id
        self.config = config or ClientConfig()
        self.tasks = TaskCollection(tasks)
        self.bulk = BulkMutationCoordinator(api, self.tasks, messages=self.config.messages)
        self._sessions: dict[str, AutoSaveController] = {}

    # ------------------------------------------------------------------
    # Loading / creation
    # ------------------------------------------------------------------

    async def load(self) -> RequestOutcome:
        try:
            tasks = await self.api.list_tasks(self.project_id)
        except TaskboardError as exc:
            return RequestOutcome.from_error(exc)
        self.tasks.replace_all(tasks)
        logger.info("Loaded {} task(s) for project {}", len(tasks), self.project_id)
        return RequestOutcome.success(*tasks)

    async def create_task(
        self,
        title: str,
        description: str = "",
        priority: TaskPriority = TaskPriority.MEDIUM,
        **fields: Any,
    ) -> RequestOutcome:
        if not title.strip():
            return RequestOutcome.from_error(ValidationError("Title is required"))
        data = {"title": title.strip(), "description": description, "priority": TaskPriority(priority).value, **fields}
        try:
            task = await self.api.create_task(self.project_id, data)
        except TaskboardError as exc:
            return RequestOutcome.from_error(exc)
        try:
            self.tasks.append(task)
        except ValueError as exc:
            logger.warning("Created task {} but could not add it to the board: {}", task.id, exc)
            return RequestOutcome.from_error(
                ShapeViolation(f"Task {task.id} was created but could not be shown: {exc}", unexpected=[task.id])
            )
        logger.info("Created task {}: {}", task.id, task.title)
        return RequestOutcome.success(task)

    # ------------------------------------------------------------------
    # Drag and drop
    # ------------------------------------------------------------------

    async def move_task(self, task_id: str, drop_target_id: Optional[str]) -> RequestOutcome:
        """Handle the end of a drag gesture.

        Issues one full-replace update when the resolved status differs from
        the task's current one; otherwise nothing is sent.
        """
        task = self.tasks.get(task_id)
        target = drag.resolve(drop_target_id, self.tasks.by_id())
        if task is None:
            return RequestOutcome.noop(reason="unknown task")
        if target is None:
            return RequestOutcome.noop(task, reason="unknown drop target")
        if drag.is_noop(task, target):
            return RequestOutcome.noop(task, reason="same column")

        try:
            record = await self.api.update_task(task_id, full_update_body(task, status=target))
        except TaskboardError as exc:
            return RequestOutcome.from_error(exc)
        self.tasks.merge(record)
        logger.info("Moved {} from {} to {}", task_id, task.status.value, record.status.value)
        return RequestOutcome.success(record)

    # ------------------------------------------------------------------
    # Editor sessions
    # ------------------------------------------------------------------

    def open_editor(self, task_id: str) -> AutoSaveController:
        """Start an editor session; an existing session for the task is closed."""
        task = self.tasks.get(task_id)
        if task is None:
            raise KeyError(task_id)
        self.close_editor(task_id)
        session = AutoSaveController(
            task,
            self.api,
            debounce_seconds=self.config.debounce_seconds,
            auto_save=self.config.autosave_enabled,
            on_saved=self._on_saved,
        )
        self._sessions[task_id] = session
        return session

    def editor(self, task_id: str) -> Optional[AutoSaveController]:
        return self._sessions.get(task_id)

    def close_editor(self, task_id: str) -> None:
        session = self._sessions.pop(task_id, None)
        if session is not None:
            session.cancel()

    async def save_editor(self, task_id: str) -> RequestOutcome:
        """Manual save for an open editor."""
        session = self._sessions.get(task_id)
        if session is None:
            return RequestOutcome.from_error(ValidationError(f"No editor open for {task_id}"))
        if not session.is_open:
            self._sessions.pop(task_id, None)
            return RequestOutcome.from_error(ValidationError(f"Editor for {task_id} was closed"))
        if session.state != SessionState.SAVING and not session.patch:
            return RequestOutcome.noop(session.baseline, reason="no changes")
        try:
            record = await session.save()
        except TaskboardError as exc:
            return RequestOutcome.from_error(exc)
        return RequestOutcome.success(record)

    def editor_shortcuts(
        self,
        task_id: str,
        *,
        on_history: Optional[Callable[[], Any]] = None,
        on_help: Optional[Callable[[], Any]] = None,
    ) -> list[Shortcut]:
        """Shortcut table for an open editor; save and cancel go through the board."""
        session = self._sessions.get(task_id)
        if session is None:
            raise KeyError(task_id)
        return editor_shortcuts(
            session,
            on_save=lambda: self.save_editor(task_id),
            on_cancel=lambda: self.close_editor(task_id),
            on_history=on_history,
            on_help=on_help,
        )

    def _on_saved(self, record: Task) -> None:
        self.tasks.merge(record)

    # ------------------------------------------------------------------
    # Bulk edits
    # ------------------------------------------------------------------

    async def bulk_update(self, task_ids: Iterable[str], patch: Patch) -> RequestOutcome:
        try:
            outcome = await self.bulk.apply_bulk(task_ids, patch)
        except TaskboardError as exc:
            return RequestOutcome.from_error(exc)
        updated = [self.tasks.get(task_id) for task_id in sorted(outcome.succeeded_ids)]
        tasks = [t for t in updated if t is not None]
        if outcome.has_failures:
            return RequestOutcome.partial(outcome, *tasks)
        return RequestOutcome.success(*tasks, bulk=outcome)

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    async def fetch_history(self, task_id: str, change_type: str = HISTORY_FILTER_ALL) -> RequestOutcome:
        try:
            entries = await self.api.get_history(task_id)
        except TaskboardError as exc:
            return RequestOutcome.from_error(exc)
        return RequestOutcome.with_history(filter_history(entries, change_type))
