"""Task lifecycle: creation, lookup, filtered listing, edits and deletion."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from task_market_service.core.exceptions import NotFoundError, TaskHasBidsError, ValidationError
from task_market_service.logging import get_logger
from task_market_service.services.identifiers import (
    is_number,
    new_task_id,
    normalize_timestamp,
    now_iso,
    require_identity,
    require_task_id,
)
from task_market_service.services.market_store import MissingRowError
from task_market_service.services.vocabulary import DeletePolicy, TaskStatus, parse_task_status

if TYPE_CHECKING:
    from task_market_service.services.market_store import MarketStore

# Owner-supplied fields accepted on create and update
_TEXT_FIELDS = frozenset({"title", "description", "category", "owner_name"})
_NUMBER_FIELDS = frozenset({"budget"})
# Stored normalized to UTC so ORDER BY deadline is chronological
_TIMESTAMP_FIELDS = frozenset({"deadline"})
_EDITABLE_FIELDS = _TEXT_FIELDS | _NUMBER_FIELDS | _TIMESTAMP_FIELDS

# Owned by the Bid Ledger or by the system
_PROTECTED_FIELDS = frozenset(
    {"task_id", "owner_email", "bidders", "bids_count", "created_at", "updated_at"}
)


def _clean_fields(fields: dict[str, Any], *, allow_status: bool) -> dict[str, Any]:
    """Validate owner-supplied fields and return the column updates they imply."""
    protected = sorted(name for name in fields if name in _PROTECTED_FIELDS)
    if protected:
        raise ValidationError(
            f"Fields cannot be set directly: {', '.join(protected)}",
            {"fields": protected},
        )

    allowed = _EDITABLE_FIELDS | {"status"} if allow_status else _EDITABLE_FIELDS
    unknown = sorted(name for name in fields if name not in allowed)
    if unknown:
        raise ValidationError(
            f"Unknown task fields: {', '.join(unknown)}",
            {"fields": unknown},
        )

    cleaned: dict[str, Any] = {}
    for name, value in fields.items():
        if name == "status":
            cleaned[name] = parse_task_status(value).value
        elif name in _TIMESTAMP_FIELDS:
            cleaned[name] = None if value is None else normalize_timestamp(value, name)
        elif name in _TEXT_FIELDS:
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{name} must be a string", {"field": name})
            cleaned[name] = value
        elif value is not None and not is_number(value):
            raise ValidationError(f"{name} must be a number", {"field": name})
        else:
            cleaned[name] = value
    return cleaned


class TaskRepository:
    """
    Owns the Task entity lifecycle and the task status vocabulary.

    bidders and bids_count are never written here; they belong to the
    BidLedger.
    """

    def __init__(
        self,
        store: MarketStore,
        delete_policy: DeletePolicy,
        featured_limit: int = 6,
    ) -> None:
        self._store = store
        self._delete_policy = delete_policy
        self._featured_limit = featured_limit
        self._logger = get_logger(__name__)

    @property
    def delete_policy(self) -> DeletePolicy:
        return self._delete_policy

    def create_task(self, owner_email: object, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Create a new active task with no bidders.

        Raises:
            ValidationError: missing owner_email, protected or unknown fields
        """
        owner = require_identity(owner_email, "owner_email")
        if "status" in fields:
            raise ValidationError("New tasks always start as active", {"field": "status"})
        cleaned = _clean_fields(fields, allow_status=False)

        task_id = new_task_id()
        timestamp = now_iso()
        task_data: dict[str, Any] = {name: None for name in _EDITABLE_FIELDS}
        task_data.update(cleaned)
        task_data.update(
            {
                "task_id": task_id,
                "owner_email": owner,
                "status": TaskStatus.ACTIVE.value,
                "bidders": [],
                "bids_count": 0,
                "created_at": timestamp,
                "updated_at": timestamp,
            }
        )
        self._store.insert_task(task_data)
        self._logger.info(
            "Task created",
            extra={"task_id": task_id, "owner_email": owner, "category": task_data["category"]},
        )
        return self.get_task(task_id)

    def get_task(self, task_id: object) -> dict[str, Any]:
        """
        Get a single task by ID.

        Raises:
            ValidationError: malformed task_id
            NotFoundError: no such task
        """
        valid_id = require_task_id(task_id)
        task = self._store.get_task(valid_id)
        if task is None:
            raise NotFoundError(details={"task_id": valid_id})
        return task

    def list_tasks(
        self,
        status: str | None = None,
        category: str | None = None,
        search: str | None = None,
    ) -> list[dict[str, Any]]:
        """List tasks; all given filters must match. Empty strings mean 'no filter'."""
        status_value = parse_task_status(status).value if status else None
        return self._store.list_tasks(
            status=status_value,
            category=category or None,
            search=search or None,
            owner_email=None,
        )

    def list_featured(self) -> list[dict[str, Any]]:
        """Tasks with the soonest deadlines, at most featured_limit of them."""
        return self._store.list_tasks_by_deadline(self._featured_limit)

    def list_by_owner(self, owner_email: object) -> list[dict[str, Any]]:
        owner = require_identity(owner_email, "owner_email")
        return self._store.list_tasks(status=None, category=None, search=None, owner_email=owner)

    def update_task(self, task_id: object, fields: dict[str, Any]) -> dict[str, Any]:
        """
        Merge owner edits into a task and refresh updated_at.

        Status changes are unconstrained within TaskStatus.

        Raises:
            ValidationError: protected/unknown fields or bad values
            NotFoundError: no such task
        """
        valid_id = require_task_id(task_id)
        cleaned = _clean_fields(fields, allow_status=True)

        changed = self._store.update_task(valid_id, {**cleaned, "updated_at": now_iso()})
        if changed == 0:
            raise NotFoundError(details={"task_id": valid_id})

        self._logger.info(
            "Task updated",
            extra={"task_id": valid_id, "fields": sorted(cleaned)},
        )
        return {"task": self.get_task(valid_id), "updated_fields": sorted(cleaned)}

    def delete_task(self, task_id: object) -> dict[str, Any]:
        """
        Delete a task, handling its bids according to the delete policy.

        Raises:
            NotFoundError: no such task
            TaskHasBidsError: policy is 'reject' and bids exist
        """
        valid_id = require_task_id(task_id)
        policy = self._delete_policy
        try:
            deleted, bids_affected = self._store.delete_task(
                valid_id,
                delete_bids=policy is DeletePolicy.CASCADE,
                only_if_no_bids=policy is DeletePolicy.REJECT,
            )
        except MissingRowError as exc:
            raise NotFoundError(details={"task_id": valid_id}) from exc

        if deleted == 0:
            raise TaskHasBidsError(
                "Task cannot be deleted while bids exist",
                {"task_id": valid_id, "bids": bids_affected},
            )

        self._logger.info(
            "Task deleted",
            extra={"task_id": valid_id, "policy": policy.value, "bids_deleted": bids_affected},
        )
        return {
            "task_id": valid_id,
            "deleted": True,
            "policy": policy.value,
            "bids_deleted": bids_affected,
        }

    def count_by_status(self) -> dict[str, int]:
        """Task counts for every status, zero-filled."""
        counts = self._store.count_tasks_by_status()
        return {status.value: counts.get(status.value, 0) for status in TaskStatus}
