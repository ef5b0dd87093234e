"""API routers."""

from task_market_service.routers import bids, dashboard, health, tasks

__all__ = ["bids", "dashboard", "health", "tasks"]
