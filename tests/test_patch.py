from __future__ import annotations

import pytest

from taskboard_sync.sync_engine.model import Task, TaskDraft, TaskPriority, TaskStatus
from taskboard_sync.sync_engine.patch import apply_patch, diff, full_update_body, to_wire


def _baseline(**fields) -> Task:
    defaults = dict(
        id="t1",
        title="Write docs",
        description="",
        status=TaskStatus.TODO,
        priority=TaskPriority.LOW,
        due_date="2024-03-05T10:30:00Z",
        tags=["docs", "backend"],
        custom_fields={"points": "3", "team": "core"},
    )
    defaults.update(fields)
    return Task(**defaults)


def test_unchanged_draft_yields_empty_patch() -> None:
    baseline = _baseline()
    assert diff(baseline, TaskDraft.from_task(baseline)) == {}


def test_patch_contains_exactly_the_changed_fields() -> None:
    baseline = _baseline()
    draft = TaskDraft.from_task(baseline)
    draft.set_field("title", "Write better docs")
    draft.set_field("priority", "HIGH")

    patch = diff(baseline, draft)

    assert set(patch) == {"title", "priority"}
    assert patch["priority"] == TaskPriority.HIGH


def test_applying_the_patch_closes_the_gap() -> None:
    baseline = _baseline()
    draft = TaskDraft.from_task(baseline)
    draft.set_field("status", "DONE")
    draft.set_field("due_date", "2024-04-01")
    draft.set_field("tags", ["docs"])

    patched = apply_patch(baseline, diff(baseline, draft))

    assert diff(patched, draft) == {}
    assert patched.status == TaskStatus.DONE
    assert patched.tags == ["docs"]


def test_diff_is_idempotent() -> None:
    baseline = _baseline()
    draft = TaskDraft.from_task(baseline)
    draft.set_field("description", "Cover the API")
    assert diff(baseline, draft) == diff(baseline, draft)


def test_time_of_day_never_produces_a_change() -> None:
    baseline = _baseline(due_date="2024-03-05T23:59:00")
    draft = TaskDraft.from_task(baseline)
    draft.set_field("due_date", "2024-03-05T00:00:00")
    assert diff(baseline, draft) == {}


def test_timezone_aware_dates_are_compared_in_utc() -> None:
    # 23:30 at UTC-2 is already the next day in UTC.
    baseline = _baseline(due_date="2024-03-05T23:30:00-02:00")
    draft = TaskDraft.from_task(baseline)
    assert draft.due_date == "2024-03-06"
    assert diff(baseline, draft) == {}


def test_changed_date_is_sent_as_midnight() -> None:
    baseline = _baseline()
    draft = TaskDraft.from_task(baseline)
    draft.set_field("due_date", "2024-03-06")
    assert diff(baseline, draft) == {"due_date": "2024-03-06T00:00:00"}


def test_cleared_date_and_assignee_are_sent_as_null() -> None:
    baseline = _baseline(assignee_id="u1")
    draft = TaskDraft.from_task(baseline)
    draft.set_field("due_date", "")
    draft.set_field("assignee_id", "")
    assert diff(baseline, draft) == {"due_date": None, "assignee_id": None}


def test_unparseable_stored_date_reads_as_empty() -> None:
    baseline = _baseline(due_date="next tuesday")
    draft = TaskDraft.from_task(baseline)
    assert diff(baseline, draft) == {}

    draft.set_field("title", "Renamed")
    assert diff(baseline, draft) == {"title": "Renamed"}

    draft.set_field("due_date", "2024-05-01")
    assert diff(baseline, draft)["due_date"] == "2024-05-01T00:00:00"


def test_missing_description_equals_empty_string() -> None:
    baseline = _baseline(description=None)
    draft = TaskDraft.from_task(baseline)
    draft.set_field("description", "")
    assert diff(baseline, draft) == {}


def test_collections_compare_by_content() -> None:
    baseline = _baseline()
    draft = TaskDraft.from_task(baseline)
    draft.custom_fields = {"team": "core", "points": "3"}
    draft.tags = list(baseline.tags)
    assert diff(baseline, draft) == {}

    draft.tags = ["backend", "docs"]
    assert diff(baseline, draft) == {"tags": ["backend", "docs"]}


def test_emptied_collection_is_an_explicit_change() -> None:
    baseline = _baseline()
    draft = TaskDraft.from_task(baseline)
    draft.remove_custom_field("points")
    draft.remove_custom_field("team")
    assert diff(baseline, draft) == {"custom_fields": {}}


def test_custom_field_requires_key_and_value() -> None:
    draft = TaskDraft.from_task(_baseline())
    draft.pending_field_key, draft.pending_field_value = "owner", "   "
    assert draft.add_custom_field() is False
    draft.pending_field_value = "ana"
    assert draft.add_custom_field() is True
    assert draft.custom_fields["owner"] == "ana"
    assert draft.pending_field_key == ""


def test_duplicate_tag_is_not_added() -> None:
    draft = TaskDraft.from_task(_baseline())
    draft.pending_tag = " docs "
    assert draft.add_tag() is False
    assert draft.tags == ["docs", "backend"]


def test_set_field_rejects_read_only_fields() -> None:
    draft = TaskDraft.from_task(_baseline())
    with pytest.raises(ValueError):
        draft.set_field("version", 3)


def test_apply_patch_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError):
        apply_patch(_baseline(), {"created_by": "u9"})


def test_wire_body_uses_camel_case_and_plain_values() -> None:
    body = to_wire({"assignee_id": None, "status": TaskStatus.DONE, "custom_fields": {"a": "1"}})
    assert body == {"assigneeId": None, "status": "DONE", "customFields": {"a": "1"}}


def test_status_change_sends_full_body_on_put_and_sparse_body_on_patch() -> None:
    baseline = _baseline(title="Ship", description="Release 1.0")
    draft = TaskDraft.from_task(baseline)
    draft.set_field("status", "DONE")

    patch = diff(baseline, draft)
    assert to_wire(patch) == {"status": "DONE"}

    body = full_update_body(baseline, **patch)
    assert body == {"title": "Ship", "description": "Release 1.0", "status": "DONE", "priority": "LOW"}
