"""Application lifecycle management."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from task_market_service.config import get_settings
from task_market_service.core.state import init_app_state
from task_market_service.logging import get_logger, setup_logging
from task_market_service.services.bid_ledger import BidLedger
from task_market_service.services.market_store import MarketStore
from task_market_service.services.stats_aggregator import StatsAggregator
from task_market_service.services.task_repository import TaskRepository

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle."""
    # === STARTUP ===
    settings = get_settings()

    setup_logging(settings.logging.level, settings.service.name, settings.logging.directory)
    logger = get_logger(__name__)

    state = init_app_state()

    # One store handle for the whole process, passed to every component
    store = MarketStore(db_path=settings.database.path)
    state.store = store
    state.task_repository = TaskRepository(
        store=store,
        delete_policy=settings.tasks.delete_policy,
        featured_limit=settings.tasks.featured_limit,
    )
    state.bid_ledger = BidLedger(store=store)
    repaired = state.bid_ledger.reconcile_all()
    state.stats_aggregator = StatsAggregator(store=store)

    logger.info(
        "Service starting",
        extra={
            "service": settings.service.name,
            "version": settings.service.version,
            "port": settings.server.port,
            "db_path": settings.database.path,
            "delete_policy": settings.tasks.delete_policy.value,
            "tasks_repaired": repaired,
        },
    )

    yield  # Application runs here

    # === SHUTDOWN ===
    logger.info("Service shutting down", extra={"uptime_seconds": state.uptime_seconds})
    store.close()
