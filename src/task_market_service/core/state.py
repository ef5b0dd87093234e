"""Application state management."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from task_market_service.services.bid_ledger import BidLedger
    from task_market_service.services.market_store import MarketStore
    from task_market_service.services.stats_aggregator import StatsAggregator
    from task_market_service.services.task_repository import TaskRepository


@dataclass
class AppState:
    """Runtime application state. The store handle is opened once at startup."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    store: MarketStore | None = None
    task_repository: TaskRepository | None = None
    bid_ledger: BidLedger | None = None
    stats_aggregator: StatsAggregator | None = None

    @property
    def uptime_seconds(self) -> float:
        """Calculate uptime in seconds."""
        return (datetime.now(UTC) - self.start_time).total_seconds()

    @property
    def started_at(self) -> str:
        """ISO format start time."""
        return self.start_time.isoformat(timespec="seconds").replace("+00:00", "Z")


# Global application state container
_state_container: dict[str, AppState | None] = {"app_state": None}


def get_app_state() -> AppState:
    """Get the current application state."""
    app_state = _state_container["app_state"]
    if app_state is None:
        msg = "Application state not initialized"
        raise RuntimeError(msg)
    return app_state


def init_app_state() -> AppState:
    """Initialize application state. Called during startup."""
    app_state = AppState()
    _state_container["app_state"] = app_state
    return app_state


def reset_app_state() -> None:
    """Reset application state. Used in testing."""
    _state_container["app_state"] = None
