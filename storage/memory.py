"""
In-memory record store for demos and tests.

GOVERNANCE:
- No persistent storage
- Outages can be simulated with disconnect()
"""

import copy
import itertools
from typing import Any, Optional

from core import TransientStorageError
from storage.base import RecordStore


class InMemoryRecordStore(RecordStore):
    """Dict-of-lists record store."""

    def __init__(self):
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._ids = itertools.count(1)
        self._connected = True

    @property
    def connected(self) -> bool:
        return self._connected

    def disconnect(self) -> None:
        """Simulate the backend becoming unreachable."""
        self._connected = False

    def connect(self) -> None:
        self._connected = True

    def _require_connection(self, table: str) -> None:
        if not self._connected:
            raise TransientStorageError("Record store unreachable", table=table)

    def _table(self, table: str) -> list[dict[str, Any]]:
        return self._tables.setdefault(table, [])

    @staticmethod
    def _matches(record: dict[str, Any], match: Optional[dict[str, Any]]) -> bool:
        return all(record.get(k) == v for k, v in (match or {}).items())

    def insert(self, table: str, record: dict[str, Any]) -> dict[str, Any]:
        """Store a new record, assigning an id when missing."""
        self._require_connection(table)
        stored = copy.deepcopy(record)
        stored.setdefault("id", next(self._ids))
        self._table(table).append(stored)
        return copy.deepcopy(stored)

    def upsert(self, table: str, record: dict[str, Any], key: str) -> dict[str, Any]:
        """Replace the record sharing ``key``, or insert it."""
        self._require_connection(table)
        rows = self._table(table)
        for index, existing in enumerate(rows):
            if existing.get(key) == record.get(key):
                stored = {**existing, **copy.deepcopy(record)}
                rows[index] = stored
                return copy.deepcopy(stored)
        return self.insert(table, record)

    def update(
        self, table: str, values: dict[str, Any], match: dict[str, Any]
    ) -> list[dict[str, Any]]:
        """Update matching records in place."""
        self._require_connection(table)
        updated = []
        for record in self._table(table):
            if self._matches(record, match):
                record.update(copy.deepcopy(values))
                updated.append(copy.deepcopy(record))
        return updated

    def select(
        self,
        table: str,
        match: Optional[dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """List matching records."""
        self._require_connection(table)
        rows = [r for r in self._table(table) if self._matches(r, match)]
        if order_by:
            rows.sort(key=lambda r: (r.get(order_by) is None, r.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def count(self, table: str) -> int:
        """Number of records in a table (ignores connection state)."""
        return len(self._tables.get(table, []))
