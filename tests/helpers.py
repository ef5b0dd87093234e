"""Shared test helpers: config rendering and API shortcuts."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from pathlib import Path

    from httpx import AsyncClient, Response

OWNER_EMAIL = "alice@example.com"
BIDDER_EMAIL = "bob@example.com"
OTHER_BIDDER_EMAIL = "carol@example.com"


def render_config(
    tmp_path: Path,
    *,
    delete_policy: str = "orphan",
    featured_limit: int = 6,
    max_body_size: int = 1048576,
    log_level: str = "WARNING",
) -> str:
    """Render a complete config.yaml pointing at files under tmp_path."""
    return f"""\
service:
  name: "task-market"
  version: "0.1.0"
server:
  host: "0.0.0.0"
  port: 5000
  log_level: "info"
logging:
  level: "{log_level}"
  directory: "{tmp_path / "logs"}"
database:
  path: "{tmp_path / "task-market.db"}"
request:
  max_body_size: {max_body_size}
cors:
  allow_origins:
    - "*"
tasks:
  delete_policy: "{delete_policy}"
  featured_limit: {featured_limit}
"""


async def create_task(
    client: AsyncClient,
    owner_email: str = OWNER_EMAIL,
    **fields: Any,
) -> Response:
    """Create a task via POST /tasks and return the response."""
    body: dict[str, Any] = {
        "owner_email": owner_email,
        "title": "Design a logo",
        "description": "Vector logo for a bakery",
        "category": "design",
        "deadline": "2026-12-01",
        "budget": 500,
    }
    body.update(fields)
    return await client.post("/tasks", json=body)


async def place_bid(
    client: AsyncClient,
    task_id: str,
    bidder_email: str = BIDDER_EMAIL,
    bid_amount: Any = 450,
    message: str = "I can do this",
) -> Response:
    """Place a full bid via POST /tasks/{task_id}/bid."""
    return await client.post(
        f"/tasks/{task_id}/bid",
        json={"user_email": bidder_email, "bid_amount": bid_amount, "message": message},
    )


async def mark_interest(
    client: AsyncClient,
    task_id: str,
    bidder_email: str = BIDDER_EMAIL,
) -> Response:
    """Register interest via PATCH /tasks/{task_id}/bid."""
    return await client.patch(f"/tasks/{task_id}/bid", json={"user_email": bidder_email})
