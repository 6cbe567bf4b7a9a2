"""Error taxonomy and the tagged result handed to the presentation layer.

Exceptions are raised inside the engine; :class:`BoardController` folds them
into a :class:`RequestOutcome` so callers never juggle loading/error flags.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

if TYPE_CHECKING:
    from .sync_engine.model import BulkFailure, BulkOutcome, HistoryEntry, Task


class TaskboardError(Exception):
    """Base class for every failure raised by the engine."""


class ValidationError(TaskboardError):
    """Local, pre-request failure (e.g. an empty patch). Never hits the network."""


class TransportError(TaskboardError):
    """A request failed or came back non-2xx."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ShapeViolation(TaskboardError):
    """A bulk response that does not account for every requested id."""

    def __init__(self, message: str, *, missing: Any = (), unexpected: Any = (), duplicated: Any = ()) -> None:
        super().__init__(message)
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        self.duplicated = sorted(duplicated)


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    NOOP = "noop"
    VALIDATION = "validation"
    TRANSPORT = "transport"
    PARTIAL = "partial"
    SHAPE = "shape"


@dataclass(frozen=True)
class RequestOutcome:
    """Result of one user-level operation (save, move, bulk edit, ...)."""

    kind: OutcomeKind
    tasks: tuple["Task", ...] = ()
    message: Optional[str] = None
    bulk: Optional["BulkOutcome"] = None
    history: tuple["HistoryEntry", ...] = ()
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.NOOP, OutcomeKind.PARTIAL)

    @property
    def task(self) -> Optional["Task"]:
        return self.tasks[0] if self.tasks else None

    @property
    def failures(self) -> tuple["BulkFailure", ...]:
        return self.bulk.failures if self.bulk is not None else ()

    # -- constructors ---------------------------------------------------

    @classmethod
    def success(cls, *tasks: "Task", bulk: Optional["BulkOutcome"] = None) -> "RequestOutcome":
        return cls(OutcomeKind.SUCCESS, tasks=tuple(tasks), bulk=bulk)

    @classmethod
    def noop(cls, *tasks: "Task", reason: str = "") -> "RequestOutcome":
        return cls(OutcomeKind.NOOP, tasks=tuple(tasks), details={"reason": reason} if reason else {})

    @classmethod
    def with_history(cls, entries: "tuple[HistoryEntry, ...] | list[HistoryEntry]") -> "RequestOutcome":
        return cls(OutcomeKind.SUCCESS, history=tuple(entries))

    @classmethod
    def partial(cls, bulk: "BulkOutcome", *tasks: "Task") -> "RequestOutcome":
        return cls(OutcomeKind.PARTIAL, tasks=tuple(tasks), bulk=bulk)

    @classmethod
    def from_error(cls, exc: TaskboardError) -> "RequestOutcome":
        if isinstance(exc, ValidationError):
            return cls(OutcomeKind.VALIDATION, message=str(exc))
        if isinstance(exc, ShapeViolation):
            return cls(
                OutcomeKind.SHAPE,
                message=str(exc),
                details={"missing": exc.missing, "unexpected": exc.unexpected, "duplicated": exc.duplicated},
            )
        if isinstance(exc, TransportError):
            return cls(OutcomeKind.TRANSPORT, message=exc.message, details={"status_code": exc.status_code})
        return cls(OutcomeKind.TRANSPORT, message=str(exc))
