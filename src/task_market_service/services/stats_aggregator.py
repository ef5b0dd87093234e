"""Per-identity dashboards derived from tasks and bids. Holds no state."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from task_market_service.services.identifiers import require_identity
from task_market_service.services.vocabulary import BidStatus, TaskStatus

if TYPE_CHECKING:
    from task_market_service.services.market_store import MarketStore


class StatsAggregator:
    """Computes dashboard numbers by querying the store."""

    def __init__(self, store: MarketStore) -> None:
        self._store = store

    def dashboard_stats(self, email: object) -> dict[str, Any]:
        """
        Owner-side task counts and bidder-side bid numbers for one identity.

        The same identity is read both as an owner (task counts) and as a
        bidder (active_bids, earnings); the two roles are not reconciled.
        active_bids counts every bid the identity placed, whatever its status.
        """
        identity = require_identity(email, "email")
        return {
            "total_tasks": self._store.count_tasks(owner_email=identity),
            "active_tasks": self._store.count_tasks(
                owner_email=identity, status=TaskStatus.ACTIVE.value
            ),
            "completed_tasks": self._store.count_tasks(
                owner_email=identity, status=TaskStatus.COMPLETED.value
            ),
            "active_bids": self._store.count_bids(identity),
            "earnings": self._store.sum_bid_amounts(identity, BidStatus.COMPLETED.value),
        }

    def category_breakdown(self, owner_email: object) -> list[dict[str, Any]]:
        """Task count per category for an owner; empty categories are omitted."""
        owner = require_identity(owner_email, "owner_email")
        return [
            {"name": category, "value": count}
            for category, count in self._store.count_tasks_by_category(owner)
        ]

    def my_bids(self, bidder_email: object) -> list[dict[str, Any]]:
        """
        Bids by an identity, newest first, each joined with its task.

        A bid whose task was deleted carries task=None instead of failing
        the whole list.
        """
        bidder = require_identity(bidder_email, "bidder_email")
        bids = self._store.get_bids_by_bidder(bidder)
        tasks = self._store.get_tasks([bid["task_id"] for bid in bids])
        return [{**bid, "task": tasks.get(bid["task_id"])} for bid in bids]
