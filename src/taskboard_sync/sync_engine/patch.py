"""Compute the minimal change set between an editor draft and its baseline."""

from __future__ import annotations

import json
from dataclasses import replace
from typing import Any

from .model import (
    COLLECTION_FIELDS,
    DATE_FIELDS,
    EDITABLE_FIELDS,
    WIRE_NAMES,
    Patch,
    Task,
    TaskDraft,
    calendar_day,
    dedupe_tags,
)

# Fields the full-replace endpoint always expects.
FULL_UPDATE_FIELDS = ("title", "description", "status", "priority")


def _canonical(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


def _normalized(name: str, value: Any) -> Any:
    """Project a field value onto the form used for equality checks."""
    if name in DATE_FIELDS:
        # Unparseable stored dates read as empty, matching TaskDraft.from_task.
        try:
            return calendar_day(value)
        except ValueError:
            return None
    if name in COLLECTION_FIELDS:
        if name == "tags":
            return _canonical(list(value or []))
        return _canonical(dict(value or {}))
    if name == "description":
        return value or ""
    if name == "assignee_id":
        return value or None
    return value


def _wire_date(value: Any) -> Any:
    day = calendar_day(value)
    return f"{day.isoformat()}T00:00:00" if day is not None else None


def diff(baseline: Task, draft: TaskDraft) -> Patch:
    """Return the fields of *draft* that differ from *baseline*.

    An empty dict means nothing changed and no request should be sent.
    ``tags`` and ``custom_fields`` are replace-whole-value: when present the
    entire collection is carried.
    """
    patch: Patch = {}
    for name in EDITABLE_FIELDS:
        new = getattr(draft, name)
        if _normalized(name, getattr(baseline, name)) == _normalized(name, new):
            continue
        if name in DATE_FIELDS:
            patch[name] = _wire_date(new)
        elif name == "tags":
            patch[name] = list(new)
        elif name == "custom_fields":
            patch[name] = dict(new)
        elif name == "assignee_id":
            patch[name] = new or None
        else:
            patch[name] = new
    return patch


def apply_patch(task: Task, patch: Patch) -> Task:
    """Return a copy of *task* with the patch's fields overwritten."""
    changes: dict[str, Any] = {}
    for name, value in patch.items():
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"'{name}' is not an editable field")
        if name == "tags":
            value = dedupe_tags(value)
        elif name == "custom_fields":
            value = dict(value or {})
        elif name == "status" and value is not None:
            value = type(task.status)(value)
        elif name == "priority" and value is not None:
            value = type(task.priority)(value)
        changes[name] = value
    return replace(task, **changes)


def to_wire(patch: Patch) -> dict[str, Any]:
    """Rename patch keys to the camelCase the server expects."""
    body: dict[str, Any] = {}
    for name, value in patch.items():
        body[WIRE_NAMES[name]] = getattr(value, "value", value)
    return body


def full_update_body(task: Task, **changes: Any) -> dict[str, Any]:
    """Build the body for the full-replace endpoint.

    Title, description, status and priority are always sent; *changes*
    overrides any of them and may add further editable fields.
    """
    patch: Patch = {name: getattr(task, name) for name in FULL_UPDATE_FIELDS}
    patch.update(changes)
    return to_wire(patch)
