"""Resolve a drag-and-drop gesture into a target status."""

from __future__ import annotations

from typing import Mapping, Optional

from ..constants import COLUMN_IDS
from .model import Task, TaskStatus


def is_column_id(drop_target_id: str) -> bool:
    return drop_target_id in COLUMN_IDS


def resolve(drop_target_id: Optional[str], tasks_by_id: Mapping[str, Task]) -> Optional[TaskStatus]:
    """Map a drop target to the status the dragged task should take.

    A column identifier is the status itself. Any other id is treated as a
    task: dropping onto a task joins that task's column. Returns ``None`` when
    the target is neither, in which case the gesture is a no-op.
    """
    if not drop_target_id:
        return None
    if is_column_id(drop_target_id):
        return TaskStatus(drop_target_id)
    target = tasks_by_id.get(drop_target_id)
    if target is None:
        return None
    return target.status


def is_noop(task: Optional[Task], target: Optional[TaskStatus]) -> bool:
    """True when a resolved drop should not issue any request."""
    return task is None or target is None or task.status == target
