from __future__ import annotations

from typing import Any, Optional

import pytest

from taskboard_sync.client.schemas import BulkUpdateResponse
from taskboard_sync.errors import ShapeViolation, ValidationError
from taskboard_sync.sync_engine.bulk import BulkEditForm, BulkMutationCoordinator, build_outcome
from taskboard_sync.sync_engine.model import BulkFailure, BulkOutcome, Task, TaskPriority
from taskboard_sync.sync_engine.reconcile import TaskCollection

IDS = ["t1", "t2", "t3", "t4", "t5"]


def _response(ok: list[str], failed: list[str], **totals: Any) -> BulkUpdateResponse:
    return BulkUpdateResponse.model_validate({
        "successfulUpdates": ok,
        "failedUpdates": [{"taskId": i, "errorMessage": f"{i} is locked", "errorCode": "LOCKED"} for i in failed],
        **totals,
    })


class FakeBulkAPI:
    def __init__(self, response: BulkUpdateResponse) -> None:
        self.response = response
        self.calls: list[tuple[list[str], dict[str, Any]]] = []

    async def bulk_update(self, task_ids, patch):
        self.calls.append((list(task_ids), dict(patch)))
        return self.response


def _coordinator(response: Optional[BulkUpdateResponse] = None) -> tuple[BulkMutationCoordinator, FakeBulkAPI, TaskCollection]:
    collection = TaskCollection(Task(id=i, priority=TaskPriority.LOW) for i in IDS)
    api = FakeBulkAPI(response or _response(IDS[:3], IDS[3:]))
    return BulkMutationCoordinator(api, collection), api, collection


@pytest.mark.anyio
class TestApplyBulk:
    async def test_partial_failure_updates_only_succeeded_tasks(self) -> None:
        coordinator, api, collection = _coordinator()

        outcome = await coordinator.apply_bulk(IDS, {"priority": TaskPriority.HIGH})

        assert len(api.calls) == 1
        assert outcome.total_requested == 5
        assert outcome.total_successful == 3
        assert outcome.total_failed == 2
        assert [f.id for f in outcome.failures] == ["t4", "t5"]
        assert outcome.failures[0].message == "t4 is locked"
        assert [t.priority for t in collection] == [TaskPriority.HIGH] * 3 + [TaskPriority.LOW] * 2

    async def test_empty_patch_is_rejected_before_any_request(self) -> None:
        coordinator, api, _ = _coordinator()
        with pytest.raises(ValidationError):
            await coordinator.apply_bulk(IDS, {})
        assert api.calls == []

    async def test_empty_selection_is_rejected(self) -> None:
        coordinator, api, _ = _coordinator()
        with pytest.raises(ValidationError):
            await coordinator.apply_bulk([], {"priority": "HIGH"})
        assert api.calls == []

    async def test_read_only_fields_are_rejected(self) -> None:
        coordinator, api, _ = _coordinator()
        with pytest.raises(ValidationError):
            await coordinator.apply_bulk(IDS, {"version": 2})
        assert api.calls == []

    async def test_duplicate_ids_are_sent_once(self) -> None:
        coordinator, api, _ = _coordinator(_response(["t1", "t2"], []))
        await coordinator.apply_bulk(["t1", "t2", "t1"], {"assignee_id": "u1"})
        assert api.calls[0][0] == ["t1", "t2"]

    async def test_shape_violation_leaves_collection_untouched(self) -> None:
        coordinator, _, collection = _coordinator(_response(["t1", "t2"], ["t3"]))
        with pytest.raises(ShapeViolation) as excinfo:
            await coordinator.apply_bulk(IDS, {"priority": "HIGH"})
        assert excinfo.value.missing == ["t4", "t5"]
        assert all(t.priority == TaskPriority.LOW for t in collection)


def test_build_outcome_flags_unexpected_and_duplicated_ids() -> None:
    with pytest.raises(ShapeViolation) as excinfo:
        build_outcome(["t1", "t2"], _response(["t1", "t1", "t9"], ["t2"]), "failed")
    assert excinfo.value.duplicated == ["t1"]
    assert excinfo.value.unexpected == ["t9"]


def test_build_outcome_checks_declared_totals() -> None:
    with pytest.raises(ShapeViolation):
        build_outcome(["t1", "t2"], _response(["t1"], ["t2"], totalRequested=3), "failed")


def test_missing_failure_message_uses_fallback() -> None:
    response = BulkUpdateResponse.model_validate({"successfulUpdates": [], "failedUpdates": [{"taskId": "t1"}]})
    outcome = build_outcome(["t1"], response, "Bulk update failed")
    assert outcome.failures[0].message == "Bulk update failed"


def test_bulk_outcome_rejects_overlapping_ids() -> None:
    with pytest.raises(ValueError):
        BulkOutcome(total_requested=1, succeeded_ids=frozenset({"t1"}), failures=(BulkFailure("t1", "x"),))


class TestBulkEditForm:
    def test_only_touched_fields_are_in_the_patch(self) -> None:
        form = BulkEditForm()
        assert form.to_patch() == {}
        form.set_field("priority", "HIGH")
        assert form.to_patch() == {"priority": TaskPriority.HIGH}
        form.clear_field("priority")
        assert form.to_patch() == {}

    def test_explicit_empty_collection_clears(self) -> None:
        form = BulkEditForm()
        form.set_field("tags", [])
        assert form.to_patch() == {"tags": []}

    def test_tags_and_custom_fields_from_input_buffers(self) -> None:
        form = BulkEditForm()
        form.pending_tag = "urgent"
        assert form.add_tag()
        form.pending_tag = "urgent"
        assert not form.add_tag()
        form.pending_field_key, form.pending_field_value = "sprint", "12"
        assert form.add_custom_field()
        assert form.to_patch() == {"tags": ["urgent"], "custom_fields": {"sprint": "12"}}
        assert form.remove_tag("urgent")
        assert form.remove_custom_field("sprint")
        assert form.to_patch() == {"tags": [], "custom_fields": {}}

    def test_title_cannot_be_bulk_edited(self) -> None:
        with pytest.raises(ValueError):
            BulkEditForm().set_field("title", "Same for all")
