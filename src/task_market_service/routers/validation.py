"""Shared request validation helpers for the routers."""

from __future__ import annotations

import json
from typing import Any

from task_market_service.core.exceptions import ServiceError, ValidationError


def parse_json_body(raw_body: bytes) -> dict[str, Any]:
    """Parse JSON body, raising ServiceError on failure."""
    try:
        data = json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ServiceError(
            "INVALID_JSON",
            "Request body is not valid JSON",
            400,
            {},
        ) from exc

    if not isinstance(data, dict):
        raise ServiceError(
            "INVALID_JSON",
            "Request body must be a JSON object",
            400,
            {},
        )

    return data


def require_query_param(value: str | None, name: str) -> str:
    """Return a non-blank query parameter or raise ValidationError."""
    if value is None or not value.strip():
        raise ValidationError(f"Missing required query parameter: {name}", {"field": name})
    return value


def optional_query_param(value: str | None) -> str | None:
    """Treat absent and blank query parameters alike."""
    if value is None or not value.strip():
        return None
    return value
