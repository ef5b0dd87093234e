"""Router test fixtures: a real app on a temp database behind an ASGI client."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, Any

import pytest
from httpx import ASGITransport, AsyncClient

from task_market_service.app import create_app
from task_market_service.config import clear_settings_cache
from task_market_service.core.lifespan import lifespan
from task_market_service.core.state import get_app_state, reset_app_state
from tests.helpers import render_config

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

    from task_market_service.services.market_store import MarketStore


@pytest.fixture
def delete_policy() -> str:
    """Override with @pytest.mark.parametrize("delete_policy", [...])."""
    return "orphan"


@pytest.fixture
def max_body_size() -> int:
    return 1048576


@pytest.fixture
async def app(tmp_path: Path, delete_policy: str, max_body_size: int) -> AsyncIterator[Any]:
    """Create a test app with a temp database and temp log directory."""
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        render_config(tmp_path, delete_policy=delete_policy, max_body_size=max_body_size)
    )

    old_config = os.environ.get("CONFIG_PATH")
    os.environ["CONFIG_PATH"] = str(config_path)

    clear_settings_cache()
    reset_app_state()

    test_app = create_app()
    async with lifespan(test_app):
        yield test_app

    reset_app_state()
    clear_settings_cache()
    if old_config is None:
        os.environ.pop("CONFIG_PATH", None)
    else:
        os.environ["CONFIG_PATH"] = old_config


@pytest.fixture
async def client(app: Any) -> AsyncIterator[AsyncClient]:
    """Create an async HTTP client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def app_store(_app: Any) -> MarketStore:
    """The store handle the running app was wired with."""
    store = get_app_state().store
    assert store is not None
    return store
