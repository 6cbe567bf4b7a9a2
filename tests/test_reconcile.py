from __future__ import annotations

from dataclasses import replace

import pytest

from taskboard_sync.sync_engine.model import Task, TaskPriority, TaskStatus
from taskboard_sync.sync_engine.reconcile import TaskCollection, merge


def _board() -> list[Task]:
    return [
        Task(id="a", title="A", priority=TaskPriority.LOW),
        Task(id="b", title="B", priority=TaskPriority.HIGH),
        Task(id="c", title="C", status=TaskStatus.DONE),
    ]


def test_merge_keeps_size_order_and_ids() -> None:
    current = _board()
    updated = replace(current[1], title="B2")

    merged = merge(current, updated)

    assert [t.id for t in merged] == ["a", "b", "c"]
    assert merged[1].title == "B2"
    assert merged[0] is current[0]
    assert merged[2] is current[2]


def test_merge_ignores_tasks_not_on_the_board() -> None:
    current = _board()
    merged = merge(current, [Task(id="zzz", title="stray")])
    assert [t.id for t in merged] == ["a", "b", "c"]


def test_merge_last_duplicate_wins() -> None:
    current = _board()
    merged = merge(current, [replace(current[0], title="first"), replace(current[0], title="second")])
    assert merged[0].title == "second"


def test_columns_group_by_status_and_sort_by_priority() -> None:
    collection = TaskCollection(_board())
    cols = collection.columns()
    assert [t.id for t in cols["TODO"]] == ["b", "a"]
    assert [t.id for t in cols["DONE"]] == ["c"]
    assert cols["IN_PROGRESS"] == []


def test_collection_merge_swaps_in_new_records() -> None:
    collection = TaskCollection(_board())
    collection.merge([replace(collection.get("a"), status=TaskStatus.DONE)])
    assert collection.get("a").status == TaskStatus.DONE
    assert len(collection) == 3
    assert [t.id for t in collection.in_status(TaskStatus.DONE)] == ["a", "c"]


def test_append_rejects_duplicates_and_column_ids() -> None:
    collection = TaskCollection(_board())
    with pytest.raises(ValueError):
        collection.append(Task(id="a"))
    with pytest.raises(ValueError):
        collection.append(Task(id="DONE"))
    collection.append(Task(id="d"))
    assert "d" in collection


def test_replace_all_resets_the_board() -> None:
    collection = TaskCollection(_board())
    collection.replace_all([Task(id="x")])
    assert [t.id for t in collection] == ["x"]
    assert collection.get("a") is None
