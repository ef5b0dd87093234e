"""Unit tests for AppState lifecycle helpers."""

from __future__ import annotations

import time

import pytest

from task_market_service.core.state import AppState, get_app_state, init_app_state, reset_app_state


@pytest.mark.unit
def test_app_state_init() -> None:
    """AppState initializes with empty component slots."""
    state = AppState()
    assert state.store is None
    assert state.task_repository is None
    assert state.bid_ledger is None
    assert state.stats_aggregator is None


@pytest.mark.unit
def test_app_state_uptime() -> None:
    """uptime_seconds increases after initialization."""
    state = AppState()
    time.sleep(0.001)
    assert state.uptime_seconds > 0


@pytest.mark.unit
def test_app_state_started_at() -> None:
    """started_at returns a UTC ISO timestamp."""
    state = AppState()
    assert state.started_at.endswith("Z")
    assert "T" in state.started_at


@pytest.mark.unit
def test_get_app_state_before_init_raises() -> None:
    reset_app_state()
    with pytest.raises(RuntimeError, match="not initialized"):
        get_app_state()


@pytest.mark.unit
def test_init_and_reset_app_state() -> None:
    state = init_app_state()
    assert get_app_state() is state

    reset_app_state()
    with pytest.raises(RuntimeError):
        get_app_state()
