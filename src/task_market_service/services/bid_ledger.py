"""Bid placement: exactly-once registration of a bidder on a task."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from task_market_service.core.exceptions import (
    BidNotFoundError,
    DuplicateBidError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from task_market_service.logging import get_logger
from task_market_service.services.identifiers import (
    is_number,
    new_bid_id,
    now_iso,
    require_bid_id,
    require_identity,
    require_task_id,
)
from task_market_service.services.market_store import DuplicateRowError, MissingRowError
from task_market_service.services.vocabulary import (
    BidStatus,
    can_transition_bid,
    parse_bid_status,
)

if TYPE_CHECKING:
    from task_market_service.services.market_store import MarketStore


class BidLedger:
    """
    Places bids so that each (task, bidder) pair registers at most once.

    Two shapes are supported:

    - mark_interest: adds the bidder to the task's bidders only.
    - place_bid: creates a Bid row and adds the bidder to the task.

    Correctness never depends on reading the task first. Duplicate bids are
    stopped by the store's UNIQUE(task_id, bidder_email) constraint, and the
    bidders append + bids_count increment is one conditional UPDATE guarded
    by non-membership. Any membership check on an already-loaded task is a
    shortcut for the common case only.
    """

    def __init__(self, store: MarketStore) -> None:
        self._store = store
        self._logger = get_logger(__name__)

    def _require_task(self, task_id: str) -> dict[str, Any]:
        task = self._store.get_task(task_id)
        if task is None:
            raise NotFoundError(details={"task_id": task_id})
        return task

    def mark_interest(self, task_id: object, bidder_email: object) -> dict[str, Any]:
        """
        Register a lightweight "I'm interested" signal on a task.

        Raises:
            ValidationError: malformed task_id or missing bidder
            NotFoundError: no such task
            DuplicateBidError: bidder already in the task's bidders
        """
        valid_id = require_task_id(task_id)
        bidder = require_identity(bidder_email, "bidder_email")

        task = self._require_task(valid_id)
        if bidder in task["bidders"]:
            raise DuplicateBidError(details={"task_id": valid_id})

        if not self._store.add_bidder(valid_id, bidder, now_iso()):
            # Lost a race: either another caller registered this bidder or
            # the task was deleted in between.
            self._require_task(valid_id)
            raise DuplicateBidError(details={"task_id": valid_id})

        self._logger.info(
            "Interest registered",
            extra={"task_id": valid_id, "bidder_email": bidder},
        )
        return {"task": self._require_task(valid_id)}

    def place_bid(
        self,
        task_id: object,
        bidder_email: object,
        bid_amount: object,
        message: object,
    ) -> dict[str, Any]:
        """
        Create a pending bid and add the bidder to the task.

        The bid insert and the bidder registration commit together; a
        duplicate pair changes nothing.

        Raises:
            ValidationError: malformed task_id, missing bidder, non-positive
                amount or non-string message
            NotFoundError: no such task
            DuplicateBidError: bidder already bid on this task
        """
        valid_id = require_task_id(task_id)
        bidder = require_identity(bidder_email, "bidder_email")
        if not is_number(bid_amount) or bid_amount <= 0:  # type: ignore[operator]
            raise ValidationError("bid_amount must be a positive number", {"field": "bid_amount"})
        if message is not None and not isinstance(message, str):
            raise ValidationError("message must be a string", {"field": "message"})

        self._require_task(valid_id)

        bid_id = new_bid_id()
        timestamp = now_iso()
        try:
            newly_registered = self._store.insert_bid(
                {
                    "bid_id": bid_id,
                    "task_id": valid_id,
                    "bidder_email": bidder,
                    "bid_amount": bid_amount,
                    "message": message or "",
                    "status": BidStatus.PENDING.value,
                    "created_at": timestamp,
                },
                updated_at=timestamp,
            )
        except DuplicateRowError as exc:
            self._logger.info(
                "Duplicate bid rejected",
                extra={"task_id": valid_id, "bidder_email": bidder},
            )
            raise DuplicateBidError("Already bid on this task", {"task_id": valid_id}) from exc
        except MissingRowError as exc:
            raise NotFoundError(details={"task_id": valid_id}) from exc

        self._logger.info(
            "Bid placed",
            extra={
                "task_id": valid_id,
                "bid_id": bid_id,
                "bidder_email": bidder,
                "bidder_already_registered": not newly_registered,
            },
        )

        bid = self._store.get_bid(bid_id)
        task = self._store.get_task(valid_id)
        if bid is None or task is None:
            # Task deleted (and its bids cascaded) right after the commit
            raise NotFoundError(details={"task_id": valid_id})
        return {"bid": bid, "task": task}

    def get_bid(self, bid_id: object) -> dict[str, Any]:
        valid_id = require_bid_id(bid_id)
        bid = self._store.get_bid(valid_id)
        if bid is None:
            raise BidNotFoundError(details={"bid_id": valid_id})
        return bid

    def list_bids_for_task(self, task_id: object) -> list[dict[str, Any]]:
        """All bids on an existing task, oldest first."""
        valid_id = require_task_id(task_id)
        self._require_task(valid_id)
        return self._store.get_bids_for_task(valid_id)

    def set_bid_status(self, bid_id: object, status: object) -> dict[str, Any]:
        """
        Move a bid along the transition graph.

        pending -> accepted | rejected | completed
        accepted -> completed | rejected
        completed, rejected: terminal

        Raises:
            ValidationError: malformed bid_id or unknown status
            BidNotFoundError: no such bid
            InvalidTransitionError: transition not allowed, or the bid
                changed status concurrently
        """
        target = parse_bid_status(status)
        bid = self.get_bid(bid_id)
        current = BidStatus(bid["status"])

        if current is target:
            return bid
        if not can_transition_bid(current, target):
            raise InvalidTransitionError(
                f"Cannot move bid from '{current.value}' to '{target.value}'",
                {"bid_id": bid["bid_id"], "from": current.value, "to": target.value},
            )

        changed = self._store.update_bid_status(
            bid["bid_id"],
            target.value,
            expected_status=current.value,
        )
        if changed == 0:
            raise InvalidTransitionError(
                "Bid status changed concurrently; reload and retry",
                {"bid_id": bid["bid_id"]},
            )

        self._logger.info(
            "Bid status changed",
            extra={"bid_id": bid["bid_id"], "from": current.value, "to": target.value},
        )
        return self.get_bid(bid["bid_id"])

    def reconcile_task(self, task_id: object) -> dict[str, Any]:
        """
        Recompute a task's bidders/bids_count from its bids.

        Raises:
            NotFoundError: no such task
        """
        valid_id = require_task_id(task_id)
        try:
            task, changed = self._store.reconcile_task(valid_id, now_iso())
        except MissingRowError as exc:
            raise NotFoundError(details={"task_id": valid_id}) from exc

        if changed:
            self._logger.warning(
                "Bidder drift repaired",
                extra={"task_id": valid_id, "bids_count": task["bids_count"]},
            )
        return {"task": task, "changed": changed}

    def reconcile_all(self) -> int:
        """Reconcile every task; returns how many needed repair."""
        repaired = 0
        for task_id in self._store.list_task_ids():
            try:
                _task, changed = self._store.reconcile_task(task_id, now_iso())
            except MissingRowError:
                # Deleted while we were iterating.
                continue
            if changed:
                repaired += 1
        if repaired:
            self._logger.warning("Bidder drift repaired", extra={"tasks_repaired": repaired})
        return repaired
