"""Unit test fixtures: cache and state reset between tests, component wiring."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from task_market_service.config import clear_settings_cache
from task_market_service.core.state import reset_app_state
from task_market_service.services.bid_ledger import BidLedger
from task_market_service.services.market_store import MarketStore
from task_market_service.services.stats_aggregator import StatsAggregator
from task_market_service.services.task_repository import TaskRepository
from task_market_service.services.vocabulary import DeletePolicy

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


@pytest.fixture(autouse=True)
def _clear_caches():
    """Clear settings cache and app state between tests."""
    clear_settings_cache()
    reset_app_state()
    yield
    clear_settings_cache()
    reset_app_state()


@pytest.fixture
def db_path(tmp_path: Path) -> str:
    return str(tmp_path / "market.db")


@pytest.fixture
def store(db_path: str) -> Iterator[MarketStore]:
    """A fresh SQLite store per test."""
    market_store = MarketStore(db_path=db_path)
    yield market_store
    market_store.close()


@pytest.fixture
def repository(store: MarketStore) -> TaskRepository:
    return TaskRepository(store=store, delete_policy=DeletePolicy.ORPHAN)


@pytest.fixture
def ledger(store: MarketStore) -> BidLedger:
    return BidLedger(store=store)


@pytest.fixture
def aggregator(store: MarketStore) -> StatsAggregator:
    return StatsAggregator(store=store)
