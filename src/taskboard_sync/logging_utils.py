"""Logging setup and compact summaries of request outcomes."""

from __future__ import annotations

import json
import sys
from typing import Any

from loguru import logger

from .errors import RequestOutcome


def configure_logging(level: str = "INFO") -> None:
    """Configure the loguru logger with the specified level."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level.upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{module}</cyan>:<cyan>{line}</cyan>\n"
            "{message}"
        ),
    )


def summarize_outcome(outcome: RequestOutcome | None, max_failures: int = 5) -> dict[str, Any]:
    """Render a compact, JSON-friendly summary of an outcome.

    Args:
        outcome: Result of a board operation (or None).
        max_failures: Maximum number of bulk failures to include.

    Returns:
        A dictionary suitable for logging or serialization.
    """
    if outcome is None:
        return {"outcome": None}

    d: dict[str, Any] = {"outcome": outcome.kind.value, "ok": outcome.ok}
    if outcome.tasks:
        d["task_ids"] = [t.id for t in outcome.tasks]
    if outcome.message:
        message = outcome.message
        d["message"] = (message[:240] + "…") if len(message) > 240 else message
    if outcome.details:
        d.update(outcome.details)

    bulk = outcome.bulk
    if bulk is not None:
        d["requested"] = bulk.total_requested
        d["succeeded"] = bulk.total_successful
        d["failed"] = bulk.total_failed
        if bulk.failures:
            d["failures"] = [
                {"id": f.id, "message": f.message, "code": f.code} for f in bulk.failures[:max_failures]
            ]
    return d


def pretty(obj: Any, *, indent: int = 2) -> str:
    """Serialize an object as JSON for readable logs.

    Returns:
        A JSON string when possible; otherwise ``str(obj)``.
    """
    try:
        return json.dumps(obj, indent=indent, default=str)
    except (TypeError, ValueError):
        return str(obj)
