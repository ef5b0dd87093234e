"""Bid placement, interest, status and repair endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from task_market_service.core.state import get_app_state
from task_market_service.routers.validation import parse_json_body

if TYPE_CHECKING:
    from task_market_service.services.bid_ledger import BidLedger

router = APIRouter()


def _bid_ledger() -> BidLedger:
    state = get_app_state()
    if state.bid_ledger is None:
        msg = "BidLedger not initialized"
        raise RuntimeError(msg)
    return state.bid_ledger


# ---------------------------------------------------------------------------
# PATCH /tasks/{task_id}/bid — quick bid (interest only, no Bid row)
# ---------------------------------------------------------------------------


@router.patch("/tasks/{task_id}/bid")
async def mark_interest(task_id: str, request: Request) -> dict[str, Any]:
    """Add the caller to the task's bidders."""
    body = await request.body()
    data = parse_json_body(body)

    result = _bid_ledger().mark_interest(task_id, data.get("user_email"))
    return {"success": True, **result}


# ---------------------------------------------------------------------------
# POST /tasks/{task_id}/bid — full bid submission
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/bid", status_code=201)
async def place_bid(task_id: str, request: Request) -> JSONResponse:
    """Create a bid and add the caller to the task's bidders."""
    body = await request.body()
    data = parse_json_body(body)

    result = _bid_ledger().place_bid(
        task_id,
        data.get("user_email"),
        data.get("bid_amount"),
        data.get("message"),
    )
    return JSONResponse(status_code=201, content={"success": True, **result})


# ---------------------------------------------------------------------------
# GET /tasks/{task_id}/bids — bids on a task
# ---------------------------------------------------------------------------


@router.get("/tasks/{task_id}/bids")
async def list_task_bids(task_id: str) -> dict[str, Any]:
    """List the bids on a task, oldest first."""
    return {"task_id": task_id, "bids": _bid_ledger().list_bids_for_task(task_id)}


# ---------------------------------------------------------------------------
# POST /tasks/{task_id}/reconcile — recompute bidders/bids_count
# ---------------------------------------------------------------------------


@router.post("/tasks/{task_id}/reconcile")
async def reconcile_task(task_id: str) -> dict[str, Any]:
    """Repair a task's denormalized bidder data from its bids."""
    return _bid_ledger().reconcile_task(task_id)


# ---------------------------------------------------------------------------
# PATCH /bids/{bid_id}/status — move a bid along its transition graph
# ---------------------------------------------------------------------------


@router.patch("/bids/{bid_id}/status")
async def set_bid_status(bid_id: str, request: Request) -> dict[str, Any]:
    """Change a bid's status (e.g. pending -> completed to recognize earnings)."""
    body = await request.body()
    data = parse_json_body(body)
    return _bid_ledger().set_bid_status(bid_id, data.get("status"))
