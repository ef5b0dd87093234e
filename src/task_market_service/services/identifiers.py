"""Identifier, identity and timestamp helpers shared by the core components."""

from __future__ import annotations

import math
import re
import uuid
from datetime import UTC, datetime

from task_market_service.core.exceptions import ValidationError

_UUID_PATTERN = r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}"
_TASK_ID_RE = re.compile(rf"^t-{_UUID_PATTERN}$", re.IGNORECASE)
_BID_ID_RE = re.compile(rf"^bid-{_UUID_PATTERN}$", re.IGNORECASE)

# SQLite INTEGER is a signed 64-bit value
_SQLITE_INT_MIN = -(2**63)
_SQLITE_INT_MAX = 2**63 - 1


def now_iso() -> str:
    """Return current UTC time as ISO 8601 string with Z suffix."""
    return datetime.now(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")


def new_task_id() -> str:
    return f"t-{uuid.uuid4()}"


def new_bid_id() -> str:
    return f"bid-{uuid.uuid4()}"


def require_task_id(value: object) -> str:
    """Validate a task identifier (t-<uuid4>)."""
    if not isinstance(value, str) or not _TASK_ID_RE.match(value):
        raise ValidationError(
            "task_id must match the format t-<uuid4>",
            {"field": "task_id"},
        )
    return value


def require_bid_id(value: object) -> str:
    """Validate a bid identifier (bid-<uuid4>)."""
    if not isinstance(value, str) or not _BID_ID_RE.match(value):
        raise ValidationError(
            "bid_id must match the format bid-<uuid4>",
            {"field": "bid_id"},
        )
    return value


def require_identity(value: object, field_name: str) -> str:
    """
    Validate a caller-supplied identity string.

    Identities are trusted as given; only surrounding whitespace is removed.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(
            f"{field_name} is required and must be a non-empty string",
            {"field": field_name},
        )
    return value.strip()


def is_number(value: object) -> bool:
    """Check if value is a finite float or an int that fits in SQLite INTEGER (not bool)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, int):
        return _SQLITE_INT_MIN <= value <= _SQLITE_INT_MAX
    return math.isfinite(value)


def normalize_timestamp(value: object, field_name: str) -> str:
    """
    Parse an ISO 8601 date or datetime and return it in UTC with a Z suffix.

    Naive values are taken as UTC. The result has the same shape as
    now_iso(), so text order of stored values equals time order.
    """
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be an ISO 8601 string", {"field": field_name})
    try:
        parsed = datetime.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationError(
            f"{field_name} must be an ISO 8601 date or datetime",
            {"field": field_name},
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC).isoformat(timespec="microseconds").replace("+00:00", "Z")
