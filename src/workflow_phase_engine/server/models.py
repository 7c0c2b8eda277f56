"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StartRequest(BaseModel):
    resume: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: str
    version: str
    uptime_seconds: float = Field(alias="uptimeSeconds")
    timestamp: str


class AckResponse(BaseModel):
    success: bool = True


class ClearStateResponse(AckResponse):
    cleared: int
    error: str | None = None


class WorkflowListResponse(BaseModel):
    workflows: list[str]
