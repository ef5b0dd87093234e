"""Task lifecycle endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from task_market_service.core.state import get_app_state
from task_market_service.routers.validation import (
    optional_query_param,
    parse_json_body,
    require_query_param,
)

if TYPE_CHECKING:
    from task_market_service.services.task_repository import TaskRepository

router = APIRouter()


def _task_repository() -> TaskRepository:
    state = get_app_state()
    if state.task_repository is None:
        msg = "TaskRepository not initialized"
        raise RuntimeError(msg)
    return state.task_repository


# ---------------------------------------------------------------------------
# POST /tasks — create task
# ---------------------------------------------------------------------------


@router.post("/tasks", status_code=201)
async def create_task(request: Request) -> JSONResponse:
    """Create a new task. The body carries owner_email plus task fields."""
    body = await request.body()
    data = parse_json_body(body)
    owner_email = data.pop("owner_email", None)

    result = _task_repository().create_task(owner_email, data)
    return JSONResponse(status_code=201, content=result)


# ---------------------------------------------------------------------------
# GET /tasks — list tasks (MUST be before GET /tasks/{task_id})
# ---------------------------------------------------------------------------


@router.get("/tasks")
async def list_tasks(request: Request) -> dict[str, Any]:
    """List tasks filtered by status, category and free-text search."""
    tasks = _task_repository().list_tasks(
        status=optional_query_param(request.query_params.get("status")),
        category=optional_query_param(request.query_params.get("category")),
        search=optional_query_param(request.query_params.get("search")),
    )
    return {"tasks": tasks}


# ---------------------------------------------------------------------------
# GET /tasks/featured — MUST be before GET /tasks/{task_id}
# ---------------------------------------------------------------------------


@router.get("/tasks/featured")
async def list_featured_tasks() -> dict[str, Any]:
    """Tasks with the soonest deadlines."""
    return {"tasks": _task_repository().list_featured()}


# ---------------------------------------------------------------------------
# GET /my-tasks — tasks owned by an identity
# ---------------------------------------------------------------------------


@router.get("/my-tasks")
async def list_my_tasks(request: Request) -> dict[str, Any]:
    """List all tasks owned by ?email=."""
    email = require_query_param(request.query_params.get("email"), "email")
    return {"tasks": _task_repository().list_by_owner(email)}


# ---------------------------------------------------------------------------
# /tasks/{task_id}
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}")
async def get_task(task_id: str) -> dict[str, Any]:
    """Get full task details."""
    return _task_repository().get_task(task_id)


@router.put("/tasks/{task_id}")
async def update_task(task_id: str, request: Request) -> dict[str, Any]:
    """Merge owner edits into a task."""
    body = await request.body()
    data = parse_json_body(body)
    return _task_repository().update_task(task_id, data)


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str) -> dict[str, Any]:
    """Delete a task; bids are handled by the configured delete policy."""
    return _task_repository().delete_task(task_id)
