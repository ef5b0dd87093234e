"""Service layer components."""

from task_market_service.services.bid_ledger import BidLedger
from task_market_service.services.market_store import MarketStore
from task_market_service.services.stats_aggregator import StatsAggregator
from task_market_service.services.task_repository import TaskRepository

__all__ = [
    "BidLedger",
    "MarketStore",
    "StatsAggregator",
    "TaskRepository",
]
