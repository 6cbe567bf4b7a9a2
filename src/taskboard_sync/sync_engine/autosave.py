"""Auto-save state machine for a single task editor session.

One :class:`AutoSaveController` lives as long as an editor is open. It owns
the draft, the debounce timer and the in-flight request, and decides when a
patch is sent and what happens to edits made while it is in flight.

States::

    CLEAN --edit--> DIRTY --timer/manual--> SAVING --ok--> CLEAN
                      ^                       |
                      |                       +--ok, edited meanwhile--> DIRTY
                      +------- ERROR <--------+--failed

Only one request is in flight per session. Requests are never cancelled; a
response that arrives after the session was closed or superseded is ignored.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Optional, Protocol

from loguru import logger

from ..constants import DEFAULT_DEBOUNCE_SECONDS
from ..errors import TaskboardError, TransportError
from .model import EDITABLE_FIELDS, Patch, Task, TaskDraft
from .patch import diff


class SessionState(str, Enum):
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"
    ERROR = "error"


_VALID_TRANSITIONS: dict[SessionState, set[SessionState]] = {
    SessionState.CLEAN: {SessionState.DIRTY},
    # DIRTY -> CLEAN when the user reverts every change
    SessionState.DIRTY: {SessionState.SAVING, SessionState.CLEAN},
    SessionState.SAVING: {SessionState.CLEAN, SessionState.DIRTY, SessionState.ERROR},
    SessionState.ERROR: {SessionState.DIRTY},
}


class SupportsPatch(Protocol):
    async def patch_task(self, task_id: str, patch: Patch) -> Task: ...


class AutoSaveController:
    """Debounced auto-save for one task.

    Parameters
    ----------
    task:
        The server-confirmed record the editor was opened on (the baseline).
    api:
        Anything with an async ``patch_task(task_id, patch)``.
    debounce_seconds:
        Quiet period after the last edit before an automatic save fires.
    on_saved:
        Called with every server-confirmed record this session accepts.
    """

    def __init__(
        self,
        task: Task,
        api: SupportsPatch,
        *,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        auto_save: bool = True,
        on_saved: Optional[Callable[[Task], None]] = None,
    ) -> None:
        self.baseline = task
        self.draft = TaskDraft.from_task(task)
        self.state = SessionState.CLEAN
        self.debounce_seconds = debounce_seconds
        self.last_saved: Optional[datetime] = None
        self.last_error: Optional[str] = None

        self._api = api
        self._auto_save = auto_save
        self._on_saved = on_saved
        self._timer: Optional[asyncio.TimerHandle] = None
        self._inflight: Optional[asyncio.Future[Optional[Task]]] = None
        self._failure: Optional[TaskboardError] = None
        self._closed = False
        self._save_requested = False
        self._generation = 0
        self._edit_seq = 0
        self._sent_seq = 0
        self._field_seq: dict[str, int] = {}

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def task_id(self) -> str:
        return self.baseline.id

    @property
    def patch(self) -> Patch:
        return diff(self.baseline, self.draft)

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def save_scheduled(self) -> bool:
        return self._timer is not None

    @property
    def has_pending_edits(self) -> bool:
        """True while saving if the user kept editing after the request left."""
        return self.state == SessionState.SAVING and self._edit_seq > self._sent_seq

    @property
    def auto_save(self) -> bool:
        return self._auto_save

    @auto_save.setter
    def auto_save(self, enabled: bool) -> None:
        self._auto_save = enabled
        if not enabled:
            self._cancel_timer()
        elif self.state == SessionState.DIRTY:
            self._arm()

    # ------------------------------------------------------------------
    # Draft mutations
    # ------------------------------------------------------------------

    def edit(self, name: str, value: Any) -> None:
        self._require_open()
        self.draft.set_field(name, value)
        self._after_edit(name)

    def add_tag(self, tag: Optional[str] = None) -> bool:
        self._require_open()
        if tag is not None:
            self.draft.pending_tag = tag
        if not self.draft.add_tag():
            return False
        self._after_edit("tags")
        return True

    def remove_tag(self, tag: str) -> bool:
        self._require_open()
        if not self.draft.remove_tag(tag):
            return False
        self._after_edit("tags")
        return True

    def add_custom_field(self, key: Optional[str] = None, value: Optional[str] = None) -> bool:
        self._require_open()
        if key is not None:
            self.draft.pending_field_key = key
        if value is not None:
            self.draft.pending_field_value = value
        if not self.draft.add_custom_field():
            return False
        self._after_edit("custom_fields")
        return True

    def remove_custom_field(self, key: str) -> bool:
        self._require_open()
        if not self.draft.remove_custom_field(key):
            return False
        self._after_edit("custom_fields")
        return True

    def _after_edit(self, name: str) -> None:
        self._edit_seq += 1
        self._field_seq[name] = self._edit_seq
        if self.state == SessionState.SAVING:
            # The completion handler decides whether a follow-up save is needed.
            return
        if self.patch:
            self._transition(SessionState.DIRTY)
            self._arm()
        elif self.state == SessionState.DIRTY:
            self._cancel_timer()
            self._transition(SessionState.CLEAN)

    # ------------------------------------------------------------------
    # Saving
    # ------------------------------------------------------------------

    async def save(self) -> Task:
        """Save now, bypassing the debounce timer.

        With nothing to send, returns the baseline without a request. If a
        save is already in flight, a follow-up is queued and awaited too.
        Raises the request's :class:`TaskboardError` when it fails.
        """
        self._require_open()
        if self.state == SessionState.SAVING:
            self._save_requested = True
        else:
            self._cancel_timer()
            if self._start_save() is None:
                return self.baseline
        while self._inflight is not None and not self._inflight.done():
            await self._inflight
        if self._failure is not None:
            raise self._failure
        return self.baseline

    async def wait_idle(self) -> None:
        """Wait for the in-flight request (and any follow-up it started)."""
        while self._inflight is not None and not self._inflight.done():
            await self._inflight

    def cancel(self) -> None:
        """Close the session and discard the draft.

        A request already in flight is allowed to finish; its result is dropped.
        """
        if self._closed:
            return
        self._closed = True
        self._cancel_timer()
        self.draft = TaskDraft.from_task(self.baseline)
        logger.debug("Editor session for {} closed in state {}", self.task_id, self.state.value)

    def _start_save(self) -> Optional[asyncio.Future[Optional[Task]]]:
        patch = self.patch
        if not patch:
            if self.state == SessionState.DIRTY:
                self._transition(SessionState.CLEAN)
            return None
        self._transition(SessionState.SAVING)
        self._generation += 1
        self._sent_seq = self._edit_seq
        self._failure = None
        logger.debug("Saving {} field(s) on {}: {}", len(patch), self.task_id, sorted(patch))
        self._inflight = asyncio.ensure_future(self._submit(patch, self._generation, self._sent_seq))
        return self._inflight

    async def _submit(self, patch: Patch, generation: int, sent_seq: int) -> Optional[Task]:
        try:
            record = await self._api.patch_task(self.task_id, patch)
        except TaskboardError as exc:
            self._fail(exc, generation)
            return None
        except Exception as exc:
            logger.exception("Unexpected error while saving {}", self.task_id)
            self._fail(TransportError(str(exc) or type(exc).__name__), generation)
            return None
        if not self._accepts(generation):
            logger.debug("Ignoring stale save response for {}", self.task_id)
            return None
        self._apply_saved(record, sent_seq)
        return record

    def _accepts(self, generation: int) -> bool:
        return not self._closed and generation == self._generation

    def _fail(self, exc: TaskboardError, generation: int) -> None:
        if not self._accepts(generation):
            logger.debug("Ignoring failed save for closed session {}: {}", self.task_id, exc)
            return
        self._failure = exc
        self._save_requested = False
        self.last_error = getattr(exc, "message", None) or str(exc)
        self._transition(SessionState.ERROR)
        logger.warning("Save failed for {}: {}", self.task_id, self.last_error)
        # Stay editable; the next edit or a manual save retries.
        self._transition(SessionState.DIRTY)

    def _apply_saved(self, record: Task, sent_seq: int) -> None:
        edited_since = {name for name, seq in self._field_seq.items() if seq > sent_seq}
        self.baseline = record
        confirmed = TaskDraft.from_task(record)
        for name in EDITABLE_FIELDS:
            if name not in edited_since:
                setattr(self.draft, name, getattr(confirmed, name))
        self.last_saved = datetime.now(timezone.utc)
        self.last_error = None
        if self._on_saved is not None:
            self._on_saved(record)

        if not self.patch:
            self._save_requested = False
            self._transition(SessionState.CLEAN)
            return
        logger.debug("{} edited during save; starting another cycle", self.task_id)
        self._transition(SessionState.DIRTY)
        if self._save_requested:
            self._save_requested = False
            self._start_save()
        else:
            self._arm()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, target: SessionState) -> None:
        if target == self.state:
            return
        if target not in _VALID_TRANSITIONS[self.state]:
            raise RuntimeError(f"Cannot move editor session from {self.state.value} to {target.value}")
        self.state = target

    def _require_open(self) -> None:
        if self._closed:
            raise RuntimeError(f"Editor session for {self.task_id} is closed")

    def _arm(self) -> None:
        """Cancel any pending timer and schedule a fresh one."""
        self._cancel_timer()
        if not self._auto_save or self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; auto-save for {} waits for a manual save", self.task_id)
            return
        self._timer = loop.call_later(self.debounce_seconds, self._on_timer)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _on_timer(self) -> None:
        self._timer = None
        if self._closed or not self._auto_save or self.state != SessionState.DIRTY:
            return
        self._start_save()
