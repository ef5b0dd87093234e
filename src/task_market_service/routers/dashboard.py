"""Dashboard endpoints: stats, category breakdown and a bidder's bids."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request

from task_market_service.core.state import get_app_state
from task_market_service.routers.validation import require_query_param
from task_market_service.schemas import (
    CategoryBreakdownResponse,
    CategoryCount,
    DashboardStatsResponse,
)

if TYPE_CHECKING:
    from task_market_service.services.stats_aggregator import StatsAggregator

router = APIRouter()


def _stats_aggregator() -> StatsAggregator:
    state = get_app_state()
    if state.stats_aggregator is None:
        msg = "StatsAggregator not initialized"
        raise RuntimeError(msg)
    return state.stats_aggregator


@router.get("/my-bids")
async def list_my_bids(request: Request) -> dict[str, Any]:
    """Bids placed by ?email=, newest first, each with its task (or null)."""
    email = require_query_param(request.query_params.get("email"), "email")
    return {"bids": _stats_aggregator().my_bids(email)}


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
async def dashboard_stats(request: Request) -> DashboardStatsResponse:
    """Task and bid totals for ?email=."""
    email = require_query_param(request.query_params.get("email"), "email")
    return DashboardStatsResponse(**_stats_aggregator().dashboard_stats(email))


@router.get("/dashboard/categories", response_model=CategoryBreakdownResponse)
async def dashboard_categories(request: Request) -> CategoryBreakdownResponse:
    """Task count per category for ?email=."""
    email = require_query_param(request.query_params.get("email"), "email")
    breakdown = _stats_aggregator().category_breakdown(email)
    return CategoryBreakdownResponse(
        categories=[CategoryCount(**bucket) for bucket in breakdown],
    )
