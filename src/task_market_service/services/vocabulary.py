"""Closed status vocabularies for tasks and bids."""

from __future__ import annotations

from enum import StrEnum

from task_market_service.core.exceptions import ValidationError


class TaskStatus(StrEnum):
    """Task lifecycle status. Transitions between members are unconstrained."""

    ACTIVE = "active"
    COMPLETED = "completed"


class BidStatus(StrEnum):
    """Bid status. Transitions follow _BID_TRANSITIONS."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    COMPLETED = "completed"
    REJECTED = "rejected"


class DeletePolicy(StrEnum):
    """What happens to a task's bids when the task is deleted."""

    CASCADE = "cascade"
    ORPHAN = "orphan"
    REJECT = "reject"


# completed and rejected are terminal
_BID_TRANSITIONS: dict[BidStatus, frozenset[BidStatus]] = {
    BidStatus.PENDING: frozenset({BidStatus.ACCEPTED, BidStatus.REJECTED, BidStatus.COMPLETED}),
    BidStatus.ACCEPTED: frozenset({BidStatus.COMPLETED, BidStatus.REJECTED}),
    BidStatus.COMPLETED: frozenset(),
    BidStatus.REJECTED: frozenset(),
}


def parse_task_status(value: object) -> TaskStatus:
    """Coerce a raw value into a TaskStatus or raise ValidationError."""
    try:
        return TaskStatus(value)
    except ValueError as exc:
        allowed = ", ".join(status.value for status in TaskStatus)
        raise ValidationError(
            f"Invalid task status: {value!r}. Must be one of: {allowed}",
            {"field": "status"},
        ) from exc


def parse_bid_status(value: object) -> BidStatus:
    """Coerce a raw value into a BidStatus or raise ValidationError."""
    try:
        return BidStatus(value)
    except ValueError as exc:
        allowed = ", ".join(status.value for status in BidStatus)
        raise ValidationError(
            f"Invalid bid status: {value!r}. Must be one of: {allowed}",
            {"field": "status"},
        ) from exc


def can_transition_bid(current: BidStatus, target: BidStatus) -> bool:
    """Return True if a bid may move from current to target."""
    return target in _BID_TRANSITIONS[current]
