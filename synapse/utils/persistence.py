"""
Record store with schema validation and transactions.

Holds the tables the study-room backend works on (rooms, quizzes, attempts,
profiles, achievements, ...) as JSON-serializable rows. The store is either
in-memory or mirrored to a single JSON file.

Features:
- Validate rows against the table's JSON Schema on every write
- Unique constraints per table (duplicate membership, achievement, ...)
- Conditional updates (``where=``) for compare-and-set transitions
- ``transaction()``: snapshot, run, roll back everything on exception
- Thread-safe (re-entrant lock around every operation)
"""

from __future__ import annotations

import json
import threading
import uuid
from contextlib import contextmanager
from copy import deepcopy
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from loguru import logger

from ..config import config
from ..errors import Conflict, NotFound, ValidationError
from .validation import validate_record


TABLES = (
    "rooms",
    "room_members",
    "documents",
    "quizzes",
    "questions",
    "quiz_attempts",
    "profiles",
    "achievements",
    "user_achievements",
    "user_preferences",
    "active_sessions",
    "daily_activity",
)

# Columns that must be unique together within a table
UNIQUE_CONSTRAINTS: Dict[str, tuple] = {
    "rooms": ("code",),
    "room_members": ("room_id", "user_id"),
    "user_achievements": ("user_id", "achievement_id"),
    "user_preferences": ("user_id",),
    "active_sessions": ("user_id", "quiz_id"),
    "daily_activity": ("user_id", "activity_date"),
}

# Generated id prefixes, one per table
ID_PREFIXES = {
    "rooms": "room",
    "room_members": "rm",
    "documents": "doc",
    "quizzes": "quiz",
    "questions": "q",
    "quiz_attempts": "qa",
    "profiles": "user",
    "achievements": "ach",
    "user_achievements": "ua",
    "user_preferences": "pref",
    "active_sessions": "as",
    "daily_activity": "da",
}


def utc_now_iso() -> str:
    """Current UTC timestamp in ISO 8601 format."""
    return datetime.now(timezone.utc).isoformat()


class RecordStore:
    """
    Table store standing in for the hosted Postgres backend.

    Usage:
        store = RecordStore()                      # in-memory
        store = RecordStore("data/store.json")     # persisted

        room = store.insert("rooms", {...})
        with store.transaction():
            store.update("profiles", user_id, {"xp": 125})
            store.insert("user_achievements", {...})
    """

    def __init__(self, path: Optional[Path | str] = None, validate: bool = True):
        """
        Initialize the store.

        Args:
            path: JSON file to mirror tables to (None = in-memory only)
            validate: Whether to validate rows against table schemas
        """
        self.path = Path(path) if path else None
        self.validate = validate
        self._lock = threading.RLock()
        self._tx_depth = 0
        self._tables: Dict[str, Dict[str, dict]] = {name: {} for name in TABLES}

        if self.path and self.path.exists():
            self._load()

    # ==================== Persistence ====================

    def _load(self) -> None:
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        for name in TABLES:
            self._tables[name] = {row["id"]: row for row in data.get(name, [])}
        logger.debug(f"Loaded record store from {self.path}")

    def _flush(self) -> None:
        """Write tables to disk unless inside a transaction."""
        if self.path is None or self._tx_depth > 0:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(
                {name: list(rows.values()) for name, rows in self._tables.items()},
                f,
                indent=2,
                ensure_ascii=False,
            )
        tmp_path.replace(self.path)

    @contextmanager
    def transaction(self) -> Iterator["RecordStore"]:
        """
        Run a block of reads and writes atomically.

        Nested transactions join the outermost one. If the block raises, every
        table is restored to the snapshot taken on entry and the exception
        propagates.
        """
        with self._lock:
            snapshot = deepcopy(self._tables) if self._tx_depth == 0 else None
            self._tx_depth += 1
            try:
                yield self
            except BaseException:
                self._tx_depth -= 1
                if snapshot is not None:
                    self._tables = snapshot
                    logger.warning("Transaction rolled back")
                raise
            else:
                self._tx_depth -= 1
                self._flush()

    # ==================== Helpers ====================

    def _table(self, table: str) -> Dict[str, dict]:
        if table not in self._tables:
            raise ValueError(f"Unknown table: {table}")
        return self._tables[table]

    @staticmethod
    def _matches(row: dict, filters: Dict[str, Any]) -> bool:
        return all(row.get(key) == value for key, value in filters.items())

    def _check_schema(self, table: str, row: dict) -> None:
        if not self.validate:
            return
        result = validate_record(table, row)
        if not result.valid:
            raise ValidationError(
                f"Invalid {table} row: " + "; ".join(result.errors),
                code="INVALID_RECORD",
            )

    def _check_unique(self, table: str, row: dict) -> None:
        columns = UNIQUE_CONSTRAINTS.get(table)
        if not columns:
            return
        key = {column: row.get(column) for column in columns}
        for existing in self._table(table).values():
            if existing["id"] != row["id"] and self._matches(existing, key):
                raise Conflict(
                    f"Duplicate {table} row for {key}",
                    code="DUPLICATE",
                )

    # ==================== CRUD ====================

    def insert(self, table: str, row: Dict[str, Any]) -> dict:
        """
        Insert a row and return a copy of it.

        Raises:
            Conflict: If the row violates a unique constraint or the id exists
            ValidationError: If the row fails schema validation
        """
        with self._lock:
            rows = self._table(table)
            record = deepcopy(row)
            record.setdefault("id", f"{ID_PREFIXES[table]}-{uuid.uuid4()}")
            record.setdefault("created_at", utc_now_iso())

            if record["id"] in rows:
                raise Conflict(f"{table} row {record['id']} already exists", code="DUPLICATE")
            self._check_unique(table, record)
            self._check_schema(table, record)

            rows[record["id"]] = record
            self._flush()
            return deepcopy(record)

    def update(
        self,
        table: str,
        row_id: str,
        changes: Dict[str, Any],
        where: Optional[Dict[str, Any]] = None,
    ) -> Optional[dict]:
        """
        Update a row by id.

        Args:
            table: Table name
            row_id: Row id
            changes: Columns to set
            where: Extra conditions the current row must satisfy

        Returns:
            Updated row copy, or None if ``where`` did not match

        Raises:
            NotFound: If no row has this id
        """
        with self._lock:
            rows = self._table(table)
            current = rows.get(row_id)
            if current is None:
                raise NotFound(f"{table} row {row_id} not found")
            if where and not self._matches(current, where):
                return None

            updated = deepcopy(current)
            updated.update(deepcopy(changes))
            updated["id"] = row_id
            self._check_unique(table, updated)
            self._check_schema(table, updated)

            rows[row_id] = updated
            self._flush()
            return deepcopy(updated)

    def upsert(self, table: str, row: Dict[str, Any], on_conflict: tuple) -> dict:
        """Insert a row, or update the row matching ``on_conflict`` columns."""
        with self._lock:
            existing = self.find_one(table, **{c: row.get(c) for c in on_conflict})
            if existing is None:
                return self.insert(table, row)
            changes = {k: v for k, v in row.items() if k != "id"}
            return self.update(table, existing["id"], changes)

    def get(self, table: str, row_id: str) -> Optional[dict]:
        with self._lock:
            row = self._table(table).get(row_id)
            return deepcopy(row) if row is not None else None

    def select(self, table: str, order_by: Optional[str] = None, **filters: Any) -> List[dict]:
        """
        Return copies of all rows matching the equality filters.

        Args:
            table: Table name
            order_by: Optional column to sort by (ascending, None first)
            **filters: column=value equality filters
        """
        with self._lock:
            rows = [
                deepcopy(row)
                for row in self._table(table).values()
                if self._matches(row, filters)
            ]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is not None, r.get(order_by)))
        return rows

    def find_one(self, table: str, **filters: Any) -> Optional[dict]:
        rows = self.select(table, **filters)
        return rows[0] if rows else None

    def delete(self, table: str, **filters: Any) -> int:
        """Delete rows matching the filters; returns the number deleted."""
        with self._lock:
            rows = self._table(table)
            doomed = [row_id for row_id, row in rows.items() if self._matches(row, filters)]
            for row_id in doomed:
                del rows[row_id]
            if doomed:
                self._flush()
            return len(doomed)

    def count(self, table: str, **filters: Any) -> int:
        with self._lock:
            return sum(1 for row in self._table(table).values() if self._matches(row, filters))


# Global store instance
_store: Optional[RecordStore] = None


def get_store() -> RecordStore:
    """Get or create the global record store at config.paths.store_file."""
    global _store
    if _store is None:
        config.prepare_fs()
        _store = RecordStore(config.paths.store_file)
    return _store
