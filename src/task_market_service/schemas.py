"""Pydantic response models for the API."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class HealthResponse(BaseModel):
    """Response model for GET /health."""

    model_config = ConfigDict(extra="forbid")
    status: Literal["ok"]
    uptime_seconds: float
    started_at: str
    total_tasks: int
    tasks_by_status: dict[str, int]


class DashboardStatsResponse(BaseModel):
    """Response model for GET /dashboard/stats."""

    model_config = ConfigDict(extra="forbid")
    total_tasks: int
    active_tasks: int
    completed_tasks: int
    active_bids: int
    earnings: int | float


class CategoryCount(BaseModel):
    """One category bucket of an owner's tasks."""

    model_config = ConfigDict(extra="forbid")
    name: str | None
    value: int


class CategoryBreakdownResponse(BaseModel):
    """Response model for GET /dashboard/categories."""

    model_config = ConfigDict(extra="forbid")
    categories: list[CategoryCount]
