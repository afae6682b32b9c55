from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator


class AggregateRequest(BaseModel):
    days: int = Field(7, ge=1, le=365)

    @field_validator("days", mode="before")
    @classmethod
    def blank_days_use_default(cls, v):
        return v or 7


class AggregateResponse(BaseModel):
    success: bool = True
    message: str
    run_id: UUID
    days: int


class SummarizeRequest(BaseModel):
    days: int = Field(1, ge=1, le=365)

    @field_validator("days", mode="before")
    @classmethod
    def blank_days_use_default(cls, v):
        return v or 1


class SummarizeResponse(BaseModel):
    success: bool = True
    message: str
    run_id: UUID | None = None
    feedback_count: int = 0


class PipelineRunResponse(BaseModel):
    id: UUID
    kind: str
    source: str | None
    state: str
    params: dict[str, Any]
    step_results: dict[str, Any]
    result: dict[str, Any] | None
    error: str | None
    attempts: int
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
