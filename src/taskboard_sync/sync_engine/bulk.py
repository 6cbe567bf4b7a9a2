"""Bulk edits: one shared patch applied to many tasks in a single request."""

from __future__ import annotations

from collections import Counter
from typing import Any, Iterable, Optional, Protocol, Sequence

from loguru import logger

from ..constants import DEFAULT_MESSAGES
from ..errors import ShapeViolation, ValidationError
from .model import EDITABLE_FIELDS, BulkFailure, BulkOutcome, Patch, Task, TaskPriority, TaskStatus, dedupe_tags
from .patch import apply_patch
from .reconcile import TaskCollection

BULK_FIELDS = ("status", "priority", "assignee_id", "tags", "custom_fields")


class _BulkResponse(Protocol):
    successful_updates: list[str]
    failed_updates: list[Any]
    total_requested: Optional[int]
    total_successful: Optional[int]
    total_failed: Optional[int]


class SupportsBulkUpdate(Protocol):
    async def bulk_update(self, task_ids: Iterable[str], patch: Patch) -> _BulkResponse: ...


# ---------------------------------------------------------------------------
# Form
# ---------------------------------------------------------------------------

class BulkEditForm:
    """Sparse form for the bulk editor.

    Only fields the user explicitly touched end up in the patch; an untouched
    field is left alone on every task, while an explicit empty collection
    clears it.
    """

    def __init__(self) -> None:
        self._fields: dict[str, Any] = {}
        self.pending_tag = ""
        self.pending_field_key = ""
        self.pending_field_value = ""

    def set_field(self, name: str, value: Any) -> None:
        if name not in BULK_FIELDS:
            raise ValueError(f"'{name}' cannot be bulk edited")
        if name == "status":
            value = TaskStatus(value)
        elif name == "priority":
            value = TaskPriority(value)
        elif name == "assignee_id":
            value = value or None
        elif name == "tags":
            value = dedupe_tags(value)
        elif name == "custom_fields":
            value = dict(value or {})
        self._fields[name] = value

    def clear_field(self, name: str) -> None:
        self._fields.pop(name, None)

    def get(self, name: str, default: Any = None) -> Any:
        return self._fields.get(name, default)

    def add_tag(self) -> bool:
        tag = self.pending_tag.strip()
        tags = list(self._fields.get("tags") or [])
        if not tag or tag in tags:
            return False
        self._fields["tags"] = tags + [tag]
        self.pending_tag = ""
        return True

    def remove_tag(self, tag: str) -> bool:
        tags = self._fields.get("tags")
        if not tags or tag not in tags:
            return False
        self._fields["tags"] = [t for t in tags if t != tag]
        return True

    def add_custom_field(self) -> bool:
        key = self.pending_field_key.strip()
        value = self.pending_field_value.strip()
        if not key or not value:
            return False
        self._fields["custom_fields"] = {**(self._fields.get("custom_fields") or {}), key: value}
        self.pending_field_key = ""
        self.pending_field_value = ""
        return True

    def remove_custom_field(self, key: str) -> bool:
        fields = self._fields.get("custom_fields")
        if not fields or key not in fields:
            return False
        self._fields["custom_fields"] = {k: v for k, v in fields.items() if k != key}
        return True

    def to_patch(self) -> Patch:
        return {name: self._fields[name] for name in BULK_FIELDS if name in self._fields}


# ---------------------------------------------------------------------------
# Response validation
# ---------------------------------------------------------------------------

def build_outcome(requested: Sequence[str], response: _BulkResponse, fallback_message: str) -> BulkOutcome:
    """Turn a bulk response into a :class:`BulkOutcome`.

    Every requested id must be reported exactly once, as either a success or
    a failure. Anything else raises :class:`ShapeViolation`; no attempt is
    made to guess which ids went through.
    """
    requested_set = set(requested)
    reported = list(response.successful_updates) + [f.task_id for f in response.failed_updates]
    counts = Counter(reported)
    duplicated = {task_id for task_id, n in counts.items() if n > 1}
    unexpected = set(counts) - requested_set
    missing = requested_set - set(counts)
    if duplicated or unexpected or missing:
        raise ShapeViolation(
            DEFAULT_MESSAGES["shape_violation"],
            missing=missing,
            unexpected=unexpected,
            duplicated=duplicated,
        )

    declared = {
        "total_requested": (response.total_requested, len(requested_set)),
        "total_successful": (response.total_successful, len(response.successful_updates)),
        "total_failed": (response.total_failed, len(response.failed_updates)),
    }
    for name, (reported_total, actual) in declared.items():
        if reported_total is not None and reported_total != actual:
            raise ShapeViolation(f"{DEFAULT_MESSAGES['shape_violation']}: {name}={reported_total}, counted {actual}")

    failures = tuple(
        BulkFailure(id=f.task_id, message=f.error_message or fallback_message, code=f.error_code)
        for f in response.failed_updates
    )
    return BulkOutcome(
        total_requested=len(requested_set),
        succeeded_ids=frozenset(response.successful_updates),
        failures=failures,
    )


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class BulkMutationCoordinator:
    """Send one patch for many tasks and reconcile the per-id results."""

    def __init__(
        self,
        api: SupportsBulkUpdate,
        collection: TaskCollection,
        messages: Optional[dict[str, str]] = None,
    ) -> None:
        self._api = api
        self._collection = collection
        self._messages = {**DEFAULT_MESSAGES, **(messages or {})}

    async def apply_bulk(self, task_ids: Iterable[str], patch: Patch) -> BulkOutcome:
        """Apply *patch* to every id in *task_ids*.

        Raises :class:`ValidationError` before any request when the patch or
        the selection is empty. Partial failure is reported in the outcome,
        not raised.
        """
        ids = list(dict.fromkeys(task_ids))
        if not patch:
            raise ValidationError(self._messages["empty_patch"])
        if not ids:
            raise ValidationError(self._messages["empty_selection"])
        unknown = sorted(set(patch) - set(EDITABLE_FIELDS))
        if unknown:
            raise ValidationError(f"Fields cannot be updated: {unknown}")

        response = await self._api.bulk_update(ids, patch)
        outcome = build_outcome(ids, response, self._messages["bulk_update"])
        updated = self._reconcile(outcome, patch)
        logger.info(
            "Bulk update of {} task(s): {} succeeded, {} failed",
            outcome.total_requested,
            outcome.total_successful,
            outcome.total_failed,
        )
        for failure in outcome.failures:
            logger.warning("Bulk update failed for {}: {} ({})", failure.id, failure.message, failure.code)
        logger.debug("Reconciled {} task(s) locally", len(updated))
        return outcome

    def _reconcile(self, outcome: BulkOutcome, patch: Patch) -> list[Task]:
        """Apply the sent fields to every succeeded task in one merge."""
        updated: list[Task] = []
        for task_id in outcome.succeeded_ids:
            task = self._collection.get(task_id)
            if task is not None:
                updated.append(apply_patch(task, patch))
        self._collection.merge(updated)
        return updated
