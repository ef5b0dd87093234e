"""SQLite-backed task and bid storage."""

from __future__ import annotations

import contextlib
import json
import sqlite3
from pathlib import Path
from threading import RLock
from typing import TYPE_CHECKING, Any

from task_market_service.core.exceptions import StoreError

if TYPE_CHECKING:
    from collections.abc import Iterator


class DuplicateRowError(Exception):
    """Raised when an insert violates a unique constraint."""


class MissingRowError(Exception):
    """Raised when a write targets a row that does not exist."""


def _casefold(value: str | None) -> str:
    return "" if value is None else value.casefold()


class MarketStore:
    """
    SQLite-backed storage for tasks and bids.

    One connection per process, serialized by an RLock. Every multi-statement
    write runs inside BEGIN IMMEDIATE so concurrent writers (threads here,
    other processes through SQLite's own locking) never interleave.
    """

    _TASK_COLUMNS: tuple[str, ...] = (
        "task_id",
        "owner_email",
        "owner_name",
        "title",
        "description",
        "category",
        "deadline",
        "budget",
        "status",
        "bidders",
        "bids_count",
        "created_at",
        "updated_at",
    )
    _TASK_COLUMNS_SQL = ", ".join(_TASK_COLUMNS)
    # Columns the generic update path may touch; bidders/bids_count are owned
    # by add_bidder, insert_bid and reconcile_task.
    _TASK_UPDATABLE_COLUMNS = frozenset(
        {"owner_name", "title", "description", "category", "deadline", "budget", "status", "updated_at"}
    )
    _BID_COLUMNS: tuple[str, ...] = (
        "bid_id",
        "task_id",
        "task_title",
        "bidder_email",
        "bid_amount",
        "message",
        "status",
        "created_at",
    )
    _BID_COLUMNS_SQL = ", ".join(_BID_COLUMNS)
    # Stays well below SQLITE_MAX_VARIABLE_NUMBER on every SQLite build
    _IN_CHUNK_SIZE = 500

    # Append + increment in a single statement, guarded by non-membership.
    _ADD_BIDDER_SQL = (
        "UPDATE tasks SET "
        "bidders = json_insert(bidders, '$[#]', ?), "
        "bids_count = bids_count + 1, "
        "updated_at = ? "
        "WHERE task_id = ? "
        "AND NOT EXISTS (SELECT 1 FROM json_each(tasks.bidders) WHERE json_each.value = ?)"
    )

    def __init__(self, db_path: str) -> None:
        self._lock = RLock()
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._db = sqlite3.connect(db_path, check_same_thread=False)
        self._db.row_factory = sqlite3.Row
        self._db.create_function("casefold", 1, _casefold, deterministic=True)
        self._db.execute("PRAGMA journal_mode=WAL")
        self._db.execute("PRAGMA busy_timeout=5000")
        self._init_schema()

    def _init_schema(self) -> None:
        with self._lock:
            self._db.executescript(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    task_id TEXT PRIMARY KEY,
                    owner_email TEXT NOT NULL,
                    owner_name TEXT,
                    title TEXT,
                    description TEXT,
                    category TEXT,
                    deadline TEXT,
                    budget NUMERIC,
                    status TEXT NOT NULL DEFAULT 'active',
                    bidders TEXT NOT NULL DEFAULT '[]',
                    bids_count INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_owner ON tasks (owner_email, status);
                CREATE INDEX IF NOT EXISTS idx_tasks_deadline ON tasks (deadline);

                CREATE TABLE IF NOT EXISTS bids (
                    bid_id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    task_title TEXT,
                    bidder_email TEXT NOT NULL,
                    bid_amount NUMERIC NOT NULL,
                    message TEXT NOT NULL DEFAULT '',
                    status TEXT NOT NULL DEFAULT 'pending',
                    created_at TEXT NOT NULL,
                    UNIQUE(task_id, bidder_email)
                );

                CREATE INDEX IF NOT EXISTS idx_bids_bidder ON bids (bidder_email, status);
                """
            )
            self._db.commit()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _translate_errors(self, operation: str) -> Iterator[None]:
        """Map sqlite3 failures onto DuplicateRowError / StoreError."""
        try:
            yield
        except sqlite3.IntegrityError as exc:
            if "unique" in str(exc).lower():
                raise DuplicateRowError(str(exc)) from exc
            raise StoreError(f"Store operation failed: {operation}") from exc
        except sqlite3.Error as exc:
            raise StoreError(f"Store operation failed: {operation}") from exc

    @contextlib.contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        with self._lock, self._translate_errors(operation):
            try:
                self._db.execute("BEGIN IMMEDIATE")
                yield self._db
                self._db.commit()
            except Exception:
                with contextlib.suppress(sqlite3.Error):
                    self._db.execute("ROLLBACK")
                raise

    def _fetch_all(self, operation: str, query: str, params: list[object] | tuple[object, ...]) -> list[sqlite3.Row]:
        with self._lock, self._translate_errors(operation):
            return self._db.execute(query, params).fetchall()

    def _fetch_one(self, operation: str, query: str, params: list[object] | tuple[object, ...]) -> sqlite3.Row | None:
        with self._lock, self._translate_errors(operation):
            return self._db.execute(query, params).fetchone()

    def _row_to_task(self, row: sqlite3.Row) -> dict[str, Any]:
        task = {column: row[column] for column in self._TASK_COLUMNS}
        task["bidders"] = json.loads(row["bidders"])
        return task

    def _row_to_bid(self, row: sqlite3.Row) -> dict[str, Any]:
        return {column: row[column] for column in self._BID_COLUMNS}

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def insert_task(self, task_data: dict[str, Any]) -> None:
        """Insert a new task row. bidders is serialized to a JSON array."""
        values = tuple(
            json.dumps(task_data[column]) if column == "bidders" else task_data[column]
            for column in self._TASK_COLUMNS
        )
        placeholders = ", ".join("?" for _ in self._TASK_COLUMNS)
        with self._transaction("insert_task") as db:
            db.execute(
                f"INSERT INTO tasks ({self._TASK_COLUMNS_SQL}) VALUES ({placeholders})",  # nosec B608
                values,
            )

    def get_task(self, task_id: str) -> dict[str, Any] | None:
        """Fetch a task by ID."""
        row = self._fetch_one(
            "get_task",
            f"SELECT {self._TASK_COLUMNS_SQL} FROM tasks WHERE task_id = ?",  # nosec B608
            (task_id,),
        )
        if row is None:
            return None
        return self._row_to_task(row)

    def get_tasks(self, task_ids: list[str]) -> dict[str, dict[str, Any]]:
        """Fetch several tasks at once, keyed by task_id. Missing ids are absent."""
        unique_ids = list(dict.fromkeys(task_ids))
        if len(unique_ids) == 0:
            return {}
        found: dict[str, dict[str, Any]] = {}
        for start in range(0, len(unique_ids), self._IN_CHUNK_SIZE):
            chunk = unique_ids[start : start + self._IN_CHUNK_SIZE]
            placeholders = ", ".join("?" for _ in chunk)
            rows = self._fetch_all(
                "get_tasks",
                f"SELECT {self._TASK_COLUMNS_SQL} FROM tasks WHERE task_id IN ({placeholders})",  # nosec B608
                chunk,
            )
            found.update((row["task_id"], self._row_to_task(row)) for row in rows)
        return found

    def list_tasks(
        self,
        status: str | None,
        category: str | None,
        search: str | None,
        owner_email: str | None,
    ) -> list[dict[str, Any]]:
        """List tasks with optional filters in insertion order."""
        query = f"SELECT {self._TASK_COLUMNS_SQL} FROM tasks"  # nosec B608
        clauses: list[str] = []
        params: list[object] = []

        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if category is not None:
            clauses.append("category = ?")
            params.append(category)
        if owner_email is not None:
            clauses.append("owner_email = ?")
            params.append(owner_email)
        if search is not None:
            needle = search.casefold()
            clauses.append("(instr(casefold(title), ?) > 0 OR instr(casefold(description), ?) > 0)")
            params.extend([needle, needle])

        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)

        query += " ORDER BY rowid"

        rows = self._fetch_all("list_tasks", query, params)
        return [self._row_to_task(row) for row in rows]

    def list_tasks_by_deadline(self, limit: int) -> list[dict[str, Any]]:
        """Soonest deadline first; tasks without a deadline last; ties by insertion."""
        rows = self._fetch_all(
            "list_tasks_by_deadline",
            f"SELECT {self._TASK_COLUMNS_SQL} FROM tasks "  # nosec B608
            "ORDER BY deadline IS NULL, deadline ASC, rowid ASC LIMIT ?",
            (limit,),
        )
        return [self._row_to_task(row) for row in rows]

    def update_task(self, task_id: str, updates: dict[str, Any]) -> int:
        """Update task columns and return the number of affected rows."""
        if len(updates) == 0:
            return 0

        if any(column not in self._TASK_UPDATABLE_COLUMNS for column in updates):
            msg = "Attempted to update a task column outside the updatable set"
            raise ValueError(msg)

        set_clause = ", ".join(f"{column} = ?" for column in updates)
        params: list[object] = [*updates.values(), task_id]
        query = "UPDATE tasks SET " + set_clause + " WHERE task_id = ?"  # nosec B608

        with self._transaction("update_task") as db:
            cursor = db.execute(query, params)
        return int(cursor.rowcount)

    def delete_task(self, task_id: str, *, delete_bids: bool, only_if_no_bids: bool) -> tuple[int, int]:
        """
        Delete a task, optionally together with its bids.

        With only_if_no_bids the task row is left alone when any bid
        references it; the caller sees (0, bid_count) in that case.

        Returns:
            (tasks_deleted, bids_affected)
        """
        with self._transaction("delete_task") as db:
            exists = db.execute("SELECT 1 FROM tasks WHERE task_id = ?", (task_id,)).fetchone()
            if exists is None:
                raise MissingRowError(f"Task {task_id} does not exist")

            bid_row = db.execute("SELECT COUNT(*) FROM bids WHERE task_id = ?", (task_id,)).fetchone()
            bid_count = int(bid_row[0])
            if only_if_no_bids and bid_count > 0:
                return 0, bid_count

            bids_deleted = 0
            if delete_bids:
                bids_deleted = int(db.execute("DELETE FROM bids WHERE task_id = ?", (task_id,)).rowcount)
            tasks_deleted = int(db.execute("DELETE FROM tasks WHERE task_id = ?", (task_id,)).rowcount)
        return tasks_deleted, bids_deleted

    def add_bidder(self, task_id: str, bidder_email: str, updated_at: str) -> bool:
        """
        Atomically add bidder_email to the task's bidders and bump bids_count.

        Returns False when the task is missing or the bidder is already present.
        """
        with self._transaction("add_bidder") as db:
            cursor = db.execute(self._ADD_BIDDER_SQL, (bidder_email, updated_at, task_id, bidder_email))
        return cursor.rowcount == 1

    def count_tasks(self, owner_email: str | None = None, status: str | None = None) -> int:
        """Count tasks, optionally restricted to an owner and/or status."""
        query = "SELECT COUNT(*) FROM tasks"
        clauses: list[str] = []
        params: list[object] = []
        if owner_email is not None:
            clauses.append("owner_email = ?")
            params.append(owner_email)
        if status is not None:
            clauses.append("status = ?")
            params.append(status)
        if len(clauses) > 0:
            query += " WHERE " + " AND ".join(clauses)
        row = self._fetch_one("count_tasks", query, params)
        return int(row[0]) if row is not None else 0

    def count_tasks_by_status(self) -> dict[str, int]:
        """Count tasks grouped by status."""
        rows = self._fetch_all(
            "count_tasks_by_status",
            "SELECT status, COUNT(*) FROM tasks GROUP BY status",
            (),
        )
        return {str(row[0]): int(row[1]) for row in rows}

    def count_tasks_by_category(self, owner_email: str) -> list[tuple[str | None, int]]:
        """Group an owner's tasks by category; only non-empty groups are returned."""
        rows = self._fetch_all(
            "count_tasks_by_category",
            "SELECT category, COUNT(*) FROM tasks WHERE owner_email = ? "
            "GROUP BY category ORDER BY category IS NULL, category",
            (owner_email,),
        )
        return [(row[0], int(row[1])) for row in rows]

    def list_task_ids(self) -> list[str]:
        """All task ids in insertion order."""
        rows = self._fetch_all("list_task_ids", "SELECT task_id FROM tasks ORDER BY rowid", ())
        return [str(row[0]) for row in rows]

    # ------------------------------------------------------------------
    # Bids
    # ------------------------------------------------------------------

    def insert_bid(self, bid_data: dict[str, Any], updated_at: str) -> bool:
        """
        Insert a bid and register its bidder on the task in one transaction.

        task_title is copied from the task row inside the transaction.
        The UNIQUE(task_id, bidder_email) constraint is the commit point:
        a second bid for the same pair raises DuplicateRowError and nothing
        is written.

        Returns:
            True when the bidder was newly added to the task's bidders,
            False when they were already present (e.g. after mark-interest).

        Raises:
            MissingRowError: task does not exist
            DuplicateRowError: pair already bid
        """
        with self._transaction("insert_bid") as db:
            cursor = db.execute(
                """
                INSERT INTO bids (
                    bid_id, task_id, task_title, bidder_email,
                    bid_amount, message, status, created_at
                )
                SELECT ?, task_id, title, ?, ?, ?, ?, ?
                FROM tasks WHERE task_id = ?
                """,
                (
                    bid_data["bid_id"],
                    bid_data["bidder_email"],
                    bid_data["bid_amount"],
                    bid_data["message"],
                    bid_data["status"],
                    bid_data["created_at"],
                    bid_data["task_id"],
                ),
            )
            if cursor.rowcount == 0:
                raise MissingRowError(f"Task {bid_data['task_id']} does not exist")

            update = db.execute(
                self._ADD_BIDDER_SQL,
                (bid_data["bidder_email"], updated_at, bid_data["task_id"], bid_data["bidder_email"]),
            )
        return update.rowcount == 1

    def get_bid(self, bid_id: str) -> dict[str, Any] | None:
        """Fetch a bid by ID."""
        row = self._fetch_one(
            "get_bid",
            f"SELECT {self._BID_COLUMNS_SQL} FROM bids WHERE bid_id = ?",  # nosec B608
            (bid_id,),
        )
        if row is None:
            return None
        return self._row_to_bid(row)

    def get_bids_for_task(self, task_id: str) -> list[dict[str, Any]]:
        """Fetch all bids for a task, oldest first."""
        rows = self._fetch_all(
            "get_bids_for_task",
            f"SELECT {self._BID_COLUMNS_SQL} FROM bids "  # nosec B608
            "WHERE task_id = ? ORDER BY created_at, rowid",
            (task_id,),
        )
        return [self._row_to_bid(row) for row in rows]

    def get_bids_by_bidder(self, bidder_email: str) -> list[dict[str, Any]]:
        """Fetch all bids placed by an identity, newest first."""
        rows = self._fetch_all(
            "get_bids_by_bidder",
            f"SELECT {self._BID_COLUMNS_SQL} FROM bids "  # nosec B608
            "WHERE bidder_email = ? ORDER BY created_at DESC, rowid DESC",
            (bidder_email,),
        )
        return [self._row_to_bid(row) for row in rows]

    def update_bid_status(self, bid_id: str, status: str, *, expected_status: str) -> int:
        """Compare-and-set a bid's status. Returns the number of affected rows."""
        with self._transaction("update_bid_status") as db:
            cursor = db.execute(
                "UPDATE bids SET status = ? WHERE bid_id = ? AND status = ?",
                (status, bid_id, expected_status),
            )
        return int(cursor.rowcount)

    def count_bids(self, bidder_email: str, status: str | None = None) -> int:
        """Count bids placed by an identity, optionally filtered by status."""
        query = "SELECT COUNT(*) FROM bids WHERE bidder_email = ?"
        params: list[object] = [bidder_email]
        if status is not None:
            query += " AND status = ?"
            params.append(status)
        row = self._fetch_one("count_bids", query, params)
        return int(row[0]) if row is not None else 0

    def sum_bid_amounts(self, bidder_email: str, status: str) -> int | float:
        """Sum bid_amount over an identity's bids in the given status."""
        row = self._fetch_one(
            "sum_bid_amounts",
            "SELECT COALESCE(SUM(bid_amount), 0) FROM bids WHERE bidder_email = ? AND status = ?",
            (bidder_email, status),
        )
        return row[0] if row is not None else 0

    # ------------------------------------------------------------------
    # Repair
    # ------------------------------------------------------------------

    def reconcile_task(self, task_id: str, updated_at: str) -> tuple[dict[str, Any], bool]:
        """
        Recompute bidders/bids_count from the task row and its bids.

        bidders becomes the current list followed by any bid emails missing
        from it (never shrinks); bids_count becomes len(bidders).

        Returns:
            (task, changed)

        Raises:
            MissingRowError: task does not exist
        """
        with self._transaction("reconcile_task") as db:
            row = db.execute(
                f"SELECT {self._TASK_COLUMNS_SQL} FROM tasks WHERE task_id = ?",  # nosec B608
                (task_id,),
            ).fetchone()
            if row is None:
                raise MissingRowError(f"Task {task_id} does not exist")
            task = self._row_to_task(row)

            bid_rows = db.execute(
                "SELECT bidder_email FROM bids WHERE task_id = ? ORDER BY created_at, rowid",
                (task_id,),
            ).fetchall()

            bidders = list(dict.fromkeys([*task["bidders"], *(str(r[0]) for r in bid_rows)]))
            changed = bidders != task["bidders"] or task["bids_count"] != len(bidders)
            if changed:
                db.execute(
                    "UPDATE tasks SET bidders = ?, bids_count = ?, updated_at = ? WHERE task_id = ?",
                    (json.dumps(bidders), len(bidders), updated_at, task_id),
                )
                task.update({"bidders": bidders, "bids_count": len(bidders), "updated_at": updated_at})
        return task, changed

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._db.close()
