"""Classify and filter task history entries for display."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Union

from ..constants import HISTORY_FILTER_ALL
from .model import ChangeType, HistoryEntry


@dataclass(frozen=True)
class ChangeClassification:
    change_type: str
    icon: str
    label: str


_CLASSIFICATIONS: dict[ChangeType, tuple[str, str]] = {
    ChangeType.CREATE: ("✅", "Created"),
    ChangeType.UPDATE: ("✏️", "Updated"),
    ChangeType.DELETE: ("🗑️", "Deleted"),
    ChangeType.STATUS_CHANGE: ("🔄", "Status changed"),
    ChangeType.ASSIGNMENT_CHANGE: ("👤", "Assignment changed"),
    ChangeType.PRIORITY_CHANGE: ("⚡", "Priority changed"),
    ChangeType.DUE_DATE_CHANGE: ("📅", "Due date changed"),
    ChangeType.COMMENT_ADDED: ("💬", "Comment added"),
    ChangeType.ATTACHMENT_ADDED: ("📎", "Attachment added"),
    ChangeType.SUBTASK_ADDED: ("📋", "Subtask added"),
    ChangeType.DEPENDENCY_ADDED: ("🔗", "Dependency added"),
}

OTHER = ChangeClassification(change_type="OTHER", icon="📝", label="Other")


def classify(entry: Union[HistoryEntry, str, None]) -> ChangeClassification:
    """Map an entry (or a raw change type) to its icon and label.

    Unknown or missing change types fall into :data:`OTHER`; this never raises.
    """
    raw = entry.change_type if isinstance(entry, HistoryEntry) else entry
    try:
        change_type = ChangeType(str(raw))
    except ValueError:
        return OTHER
    icon, label = _CLASSIFICATIONS[change_type]
    return ChangeClassification(change_type=change_type.value, icon=icon, label=label)


def filter_options() -> list[str]:
    return [HISTORY_FILTER_ALL] + [c.value for c in ChangeType]


def matches_filter(entry: HistoryEntry, change_type: str = HISTORY_FILTER_ALL) -> bool:
    if change_type == HISTORY_FILTER_ALL:
        return True
    return entry.change_type == change_type


def filter_history(entries: Iterable[HistoryEntry], change_type: str = HISTORY_FILTER_ALL) -> list[HistoryEntry]:
    return [e for e in entries if matches_filter(e, change_type)]


def _format_changed_at(value: str | None) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M")
    except ValueError:
        return value


def describe_entry(entry: HistoryEntry) -> list[str]:
    """Render an entry as display lines (headline, details, actor)."""
    cls = classify(entry)
    headline = f"{cls.icon} {cls.label}"
    if entry.field_name:
        headline += f" ({entry.field_name})"
    when = _format_changed_at(entry.changed_at)
    if when:
        headline += f" · {when}"
    lines = [headline]
    if entry.description:
        lines.append(entry.description)
    if entry.old_value != entry.new_value:
        if entry.old_value:
            lines.append(f"Before: {entry.old_value}")
        if entry.new_value:
            lines.append(f"After: {entry.new_value}")
    lines.append(f"By {entry.changed_by_name or 'Unknown user'}")
    return lines
