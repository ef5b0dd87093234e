"""Health check and liveness endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from task_market_service.core.state import get_app_state
from task_market_service.schemas import HealthResponse

router = APIRouter()


@router.get("/")
async def root() -> dict[str, str]:
    """Plain liveness message."""
    return {"message": "Task market service is running"}


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check service health and return task statistics."""
    state = get_app_state()
    tasks_by_status: dict[str, int] = {}
    if state.task_repository is not None:
        tasks_by_status = state.task_repository.count_by_status()
    return HealthResponse(
        status="ok",
        uptime_seconds=state.uptime_seconds,
        started_at=state.started_at,
        total_tasks=sum(tasks_by_status.values()),
        tasks_by_status=tasks_by_status,
    )
