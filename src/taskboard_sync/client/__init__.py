"""HTTP client for the task service (the engine's RPC boundary)."""

from .api import TasksAPI

__all__ = ["TasksAPI"]
