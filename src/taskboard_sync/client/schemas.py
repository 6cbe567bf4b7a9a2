"""Pydantic models for the task service's request / response payloads."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class BulkUpdateRequest(_WireModel):
    task_ids: list[str] = Field(alias="taskIds")
    updates: dict[str, Any]


class BulkUpdateError(_WireModel):
    task_id: str = Field(alias="taskId")
    error_message: Optional[str] = Field(default=None, alias="errorMessage")
    error_code: Optional[str] = Field(default=None, alias="errorCode")


class BulkUpdateResponse(_WireModel):
    successful_updates: list[str] = Field(default_factory=list, alias="successfulUpdates")
    failed_updates: list[BulkUpdateError] = Field(default_factory=list, alias="failedUpdates")
    total_requested: Optional[int] = Field(default=None, alias="totalRequested")
    total_successful: Optional[int] = Field(default=None, alias="totalSuccessful")
    total_failed: Optional[int] = Field(default=None, alias="totalFailed")


class ErrorBody(_WireModel):
    message: Optional[str] = None
    error: Optional[str] = None

    @property
    def text(self) -> Optional[str]:
        for candidate in (self.message, self.error):
            if isinstance(candidate, str) and candidate.strip():
                return candidate
        return None
