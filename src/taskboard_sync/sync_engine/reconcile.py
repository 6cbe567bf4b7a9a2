"""Merge server-confirmed tasks back into the client-held collection.

:func:`merge` is the only way task state changes after load. It replaces
matching entries in place and leaves every other entry untouched, so the
collection never changes length, order or id set.
"""

from __future__ import annotations

from typing import Iterable, Iterator, Optional, Sequence, Union

from loguru import logger

from ..constants import COLUMN_IDS
from .model import Task, TaskPriority, TaskStatus


def merge(current: Sequence[Task], updated: Union[Task, Iterable[Task]]) -> list[Task]:
    """Return *current* with entries whose id appears in *updated* replaced.

    Ids in *updated* that are not already present are ignored. When the same
    id appears more than once in *updated*, the last one wins.
    """
    if isinstance(updated, Task):
        updated = [updated]
    replacements = {task.id: task for task in updated}
    known = {task.id for task in current}
    stray = sorted(set(replacements) - known)
    if stray:
        logger.debug("Ignoring {} update(s) for tasks not on the board: {}", len(stray), stray)
    return [replacements.get(task.id, task) for task in current]


class TaskCollection:
    """The single owned list of tasks for one project board."""

    def __init__(self, tasks: Iterable[Task] = ()) -> None:
        self._tasks: list[Task] = []
        self._index: dict[str, int] = {}
        for task in tasks:
            self.append(task)

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks))

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._index

    # -- lookups ----------------------------------------------------------

    def get(self, task_id: str) -> Optional[Task]:
        idx = self._index.get(task_id)
        return self._tasks[idx] if idx is not None else None

    def list_all(self) -> list[Task]:
        return list(self._tasks)

    def by_id(self) -> dict[str, Task]:
        return {t.id: t for t in self._tasks}

    def columns(self) -> dict[str, list[Task]]:
        """Group tasks by status column, highest priority first within a column."""
        cols: dict[str, list[Task]] = {column: [] for column in COLUMN_IDS}
        for task in self._tasks:
            cols[task.status.value].append(task)
        for col_tasks in cols.values():
            col_tasks.sort(key=lambda t: TaskPriority(t.priority).sort_key)
        return cols

    def in_status(self, status: TaskStatus) -> list[Task]:
        return [t for t in self._tasks if t.status == status]

    # -- mutations ----------------------------------------------------------

    def append(self, task: Task) -> Task:
        """Add a newly created task at the end of the board."""
        if task.id in COLUMN_IDS:
            raise ValueError(f"Task id {task.id!r} collides with a column identifier")
        if task.id in self._index:
            raise ValueError(f"Task {task.id} already exists")
        self._index[task.id] = len(self._tasks)
        self._tasks.append(task)
        return task

    def merge(self, updated: Union[Task, Iterable[Task]]) -> list[Task]:
        """Apply :func:`merge` and swap in the result in one step."""
        self._tasks = merge(self._tasks, updated)
        return self.list_all()

    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Reset the board from a fresh server listing."""
        fresh = TaskCollection(tasks)
        self._tasks = fresh._tasks
        self._index = fresh._index
