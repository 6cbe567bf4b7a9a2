"""Task model for the board client.

Defines the server-confirmed :class:`Task`, the editor's :class:`TaskDraft`,
the :class:`BulkOutcome` aggregate and the immutable :class:`HistoryEntry`.
Everything round-trips through the camelCase wire payload the task service
speaks; Python code uses snake_case attribute names throughout.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional, Union

from loguru import logger


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Board-level status; each value is also a column identifier."""

    TODO = "TODO"
    IN_PROGRESS = "IN_PROGRESS"
    DONE = "DONE"


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"

    @property
    def sort_key(self) -> int:
        return {"HIGH": 0, "MEDIUM": 1, "LOW": 2}[self.value]


class ChangeType(str, Enum):
    """Kinds of field-level change recorded in a task's history."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    STATUS_CHANGE = "STATUS_CHANGE"
    ASSIGNMENT_CHANGE = "ASSIGNMENT_CHANGE"
    PRIORITY_CHANGE = "PRIORITY_CHANGE"
    DUE_DATE_CHANGE = "DUE_DATE_CHANGE"
    COMMENT_ADDED = "COMMENT_ADDED"
    ATTACHMENT_ADDED = "ATTACHMENT_ADDED"
    SUBTASK_ADDED = "SUBTASK_ADDED"
    DEPENDENCY_ADDED = "DEPENDENCY_ADDED"


# Custom field values are edited as text but may come back from the server
# as numbers or booleans.
CustomValue = Union[str, int, float, bool, None]

# Sparse mapping of editable field name -> new value.
Patch = dict[str, Any]

EDITABLE_FIELDS = (
    "title",
    "description",
    "status",
    "priority",
    "assignee_id",
    "start_date",
    "due_date",
    "tags",
    "custom_fields",
)
DATE_FIELDS = ("start_date", "due_date")
COLLECTION_FIELDS = ("tags", "custom_fields")

WIRE_NAMES = {
    "id": "id",
    "title": "title",
    "description": "description",
    "status": "status",
    "priority": "priority",
    "project_id": "projectId",
    "assignee_id": "assigneeId",
    "created_by": "createdBy",
    "start_date": "startDate",
    "due_date": "dueDate",
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "version": "version",
    "last_edited_by": "lastEditedBy",
    "tags": "tags",
    "custom_fields": "customFields",
}
FIELD_NAMES = {wire: name for name, wire in WIRE_NAMES.items()}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _coerce_enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except (ValueError, KeyError):
        return default


def calendar_day(value: Any) -> Optional[date]:
    """Reduce a date-ish value to its calendar date.

    Time-of-day is discarded; timezone-aware values are converted to UTC first.
    Empty values map to ``None``. Raises :class:`ValueError` for garbage.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return calendar_day(datetime.fromisoformat(text))
    except ValueError:
        return date.fromisoformat(text[:10])


def day_string(value: Any) -> Optional[str]:
    day = calendar_day(value)
    return day.isoformat() if day is not None else None


def dedupe_tags(tags: Any) -> list[str]:
    """Return *tags* as an ordered set (first occurrence wins)."""
    seen: set[str] = set()
    out: list[str] = []
    for tag in tags or []:
        tag = str(tag)
        if tag not in seen:
            seen.add(tag)
            out.append(tag)
    return out


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A task as last confirmed by the server."""

    id: str
    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    custom_fields: dict[str, CustomValue] = field(default_factory=dict)

    # Read-only server bookkeeping
    project_id: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    version: Optional[int] = None
    last_edited_by: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the camelCase wire payload."""
        data: dict[str, Any] = {}
        for name, wire in WIRE_NAMES.items():
            value = getattr(self, name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            elif isinstance(value, dict):
                value = dict(value)
            data[wire] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize a wire payload, coercing enums gracefully."""
        d = {FIELD_NAMES.get(k, k): v for k, v in dict(data).items()}
        version = d.get("version")
        return cls(
            id=str(d.get("id") or ""),
            title=str(d.get("title") or ""),
            description=str(d.get("description") or ""),
            status=_coerce_enum(TaskStatus, d.get("status"), TaskStatus.TODO),
            priority=_coerce_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            assignee_id=d.get("assignee_id") or None,
            start_date=d.get("start_date") or None,
            due_date=d.get("due_date") or None,
            tags=dedupe_tags(d.get("tags")),
            custom_fields=dict(d.get("custom_fields") or {}),
            project_id=d.get("project_id"),
            created_by=d.get("created_by"),
            created_at=d.get("created_at"),
            updated_at=d.get("updated_at"),
            version=int(version) if version is not None else None,
            last_edited_by=d.get("last_edited_by"),
        )


# ---------------------------------------------------------------------------
# TaskDraft
# ---------------------------------------------------------------------------

@dataclass
class TaskDraft:
    """Working copy of a task's editable fields while an editor is open.

    Dates are held as ``YYYY-MM-DD`` strings. The ``pending_*`` attributes are
    input buffers for the tag and custom-field entry boxes.
    """

    title: str = ""
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM
    assignee_id: Optional[str] = None
    start_date: Optional[str] = None
    due_date: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    custom_fields: dict[str, CustomValue] = field(default_factory=dict)

    pending_tag: str = ""
    pending_field_key: str = ""
    pending_field_value: str = ""

    @classmethod
    def from_task(cls, task: Task) -> "TaskDraft":
        return cls(
            title=task.title,
            description=task.description or "",
            status=task.status,
            priority=task.priority,
            assignee_id=task.assignee_id or None,
            start_date=_safe_day_string(task.start_date, task.id),
            due_date=_safe_day_string(task.due_date, task.id),
            tags=list(task.tags),
            custom_fields=dict(task.custom_fields),
        )

    def values(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}

    def set_field(self, name: str, value: Any) -> None:
        """Assign one editable field, normalizing the value for comparison."""
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"'{name}' is not an editable field")
        if name == "status":
            value = TaskStatus(value)
        elif name == "priority":
            value = TaskPriority(value)
        elif name in DATE_FIELDS:
            value = day_string(value)
        elif name == "assignee_id":
            value = value or None
        elif name == "description":
            value = value or ""
        elif name == "tags":
            value = dedupe_tags(value)
        elif name == "custom_fields":
            value = dict(value or {})
        setattr(self, name, value)

    # -- input buffers --------------------------------------------------

    def add_tag(self) -> bool:
        """Move the pending tag into ``tags``. Returns False when nothing changed."""
        tag = self.pending_tag.strip()
        if not tag or tag in self.tags:
            return False
        self.tags = [*self.tags, tag]
        self.pending_tag = ""
        return True

    def remove_tag(self, tag: str) -> bool:
        if tag not in self.tags:
            return False
        self.tags = [t for t in self.tags if t != tag]
        return True

    def add_custom_field(self) -> bool:
        key = self.pending_field_key.strip()
        value = self.pending_field_value.strip()
        if not key or not value:
            return False
        self.custom_fields = {**self.custom_fields, key: value}
        self.pending_field_key = ""
        self.pending_field_value = ""
        return True

    def remove_custom_field(self, key: str) -> bool:
        if key not in self.custom_fields:
            return False
        self.custom_fields = {k: v for k, v in self.custom_fields.items() if k != key}
        return True


def _safe_day_string(value: Any, task_id: str) -> Optional[str]:
    try:
        return day_string(value)
    except ValueError:
        logger.warning("Ignoring unparseable date {!r} on task {}", value, task_id)
        return None


# ---------------------------------------------------------------------------
# Bulk results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BulkFailure:
    id: str
    message: str
    code: Optional[str] = None


@dataclass(frozen=True)
class BulkOutcome:
    """Aggregate result of one bulk request."""

    total_requested: int
    succeeded_ids: frozenset[str]
    failures: tuple[BulkFailure, ...] = ()

    def __post_init__(self) -> None:
        failed = self.failed_ids
        if failed & self.succeeded_ids:
            raise ValueError(f"Ids reported as both succeeded and failed: {sorted(failed & self.succeeded_ids)}")
        if len(self.succeeded_ids) + len(self.failures) != self.total_requested:
            raise ValueError(
                f"Outcome covers {len(self.succeeded_ids) + len(self.failures)} ids, "
                f"expected {self.total_requested}"
            )

    @property
    def total_successful(self) -> int:
        return len(self.succeeded_ids)

    @property
    def total_failed(self) -> int:
        return len(self.failures)

    @property
    def failed_ids(self) -> frozenset[str]:
        return frozenset(f.id for f in self.failures)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalRequested": self.total_requested,
            "totalSuccessful": self.total_successful,
            "totalFailed": self.total_failed,
            "successfulUpdates": sorted(self.succeeded_ids),
            "failedUpdates": [
                {"taskId": f.id, "errorMessage": f.message, "errorCode": f.code} for f in self.failures
            ],
        }


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HistoryEntry:
    """One immutable field-level change recorded by the server.

    ``change_type`` stays a raw string so unknown kinds survive parsing.
    """

    id: str
    change_type: str
    field_name: Optional[str] = None
    old_value: Optional[str] = None
    new_value: Optional[str] = None
    changed_by: Optional[str] = None
    changed_by_name: Optional[str] = None
    changed_at: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "HistoryEntry":
        user = data.get("changedByUser") or {}
        return cls(
            id=str(data.get("id") or ""),
            change_type=str(data.get("changeType") or ""),
            field_name=data.get("fieldName"),
            old_value=data.get("oldValue"),
            new_value=data.get("newValue"),
            changed_by=data.get("changedBy"),
            changed_by_name=user.get("name") if isinstance(user, dict) else None,
            changed_at=data.get("changedAt"),
            description=data.get("description"),
        )
