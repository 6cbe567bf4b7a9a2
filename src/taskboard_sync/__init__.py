"""Provide the public `taskboard_sync` package exports."""

from __future__ import annotations

from .board import BoardController
from .errors import RequestOutcome, ShapeViolation, TransportError, ValidationError

__all__ = [
    "BoardController",
    "RequestOutcome",
    "ShapeViolation",
    "TransportError",
    "ValidationError",
]
