"""
memory.py — In-Memory Entity Store

Purpose:
- Fixture-backed store for demos, local development and tests.
- Same contract as the remote backends: reference checks on delete,
  cascades, uniqueness of (user_id, organization_id), NotFoundError on
  missing targets.

Rows are deep-copied on the way in and out so callers can never mutate the
store's state without going through `update`.
"""

from __future__ import annotations

import copy
import threading
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Sequence

from app.core.errors import ConflictError, NotFoundError, StoreError
from app.core.logging import get_logger
from app.services.inventory.types import MEMBERSHIPS, TABLES, USERS
from app.services.store.base import (
    CASCADE_REFERENCES,
    RESTRICT_REFERENCES,
    TIMESTAMPED_TABLES,
    EntityStore,
    Filters,
    MembershipEntry,
    Row,
    dedupe_entries,
)

logger = get_logger(__name__)

# Unique keys enforced on insert/update
UNIQUE_KEYS = {
    MEMBERSHIPS: ("user_id", "organization_id"),
    USERS: ("email",),
}


def _sort_key(value):
    # None sorts first ascending; strings compare case-insensitively like Postgres' default collation
    if value is None:
        return (0, "")
    if isinstance(value, str):
        return (1, value.lower())
    return (1, value)


class MemoryEntityStore(EntityStore):
    backend_name = "memory"

    def __init__(
        self,
        seed: Optional[Dict[str, List[Row]]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._tables: Dict[str, List[Row]] = {table: [] for table in TABLES}
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._last_stamp: Optional[datetime] = None
        self._lock = threading.RLock()
        if seed:
            for table, rows in seed.items():
                self._require_table(table)
                self._tables[table].extend(copy.deepcopy(rows))

    # ------------------------------------------------------------------ #
    # Helpers
    def _require_table(self, table: str) -> List[Row]:
        if table not in self._tables:
            raise StoreError(f"Unknown table {table!r}")
        return self._tables[table]

    def _stamp(self) -> str:
        """Strictly increasing timestamps so created_at ordering is stable."""
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now.isoformat()

    @staticmethod
    def _matches(row: Row, filters: Optional[Filters]) -> bool:
        if not filters:
            return True
        return all(row.get(key) == value for key, value in filters.items())

    def _check_unique(self, table: str, candidate: Row, ignore_id: Optional[str] = None) -> None:
        keys = UNIQUE_KEYS.get(table)
        if not keys:
            return
        for row in self._tables[table]:
            if row["id"] == ignore_id:
                continue
            if all(row.get(k) == candidate.get(k) for k in keys):
                raise ConflictError(
                    f"{table} already has a row with the same {', '.join(keys)}",
                    {"table": table, "keys": list(keys)},
                )

    def _find(self, table: str, entity_id: str) -> Row:
        for row in self._require_table(table):
            if row["id"] == entity_id:
                return row
        raise NotFoundError(table, entity_id)

    # ------------------------------------------------------------------ #
    # Reads
    def select(self, table, filters=None, order_by=None, descending=False, limit=None) -> List[Row]:
        with self._lock:
            rows = [row for row in self._require_table(table) if self._matches(row, filters)]
            if order_by:
                rows = sorted(rows, key=lambda r: _sort_key(r.get(order_by)), reverse=descending)
            if limit is not None:
                rows = rows[:limit]
            return copy.deepcopy(rows)

    # ------------------------------------------------------------------ #
    # Writes
    def insert(self, table: str, values: Row) -> Row:
        with self._lock:
            rows = self._require_table(table)
            row = copy.deepcopy(dict(values))
            row.setdefault("id", str(uuid.uuid4()))
            stamp = self._stamp()
            row.setdefault("created_at", stamp)
            if table in TIMESTAMPED_TABLES:
                row.setdefault("updated_at", stamp)
            if any(existing["id"] == row["id"] for existing in rows):
                raise ConflictError(f"{table} record {row['id']} already exists")
            self._check_unique(table, row)
            rows.append(row)
            return copy.deepcopy(row)

    def insert_many(self, table: str, rows: Sequence[Row]) -> List[Row]:
        # All-or-nothing: validate against a scratch copy first
        with self._lock:
            saved = copy.deepcopy(self._require_table(table))
            try:
                return [self.insert(table, row) for row in rows]
            except StoreError:
                self._tables[table] = saved
                raise

    def update(self, table: str, entity_id: str, values: Row) -> Row:
        with self._lock:
            row = self._find(table, entity_id)
            changes = {k: copy.deepcopy(v) for k, v in values.items() if k not in ("id", "created_at")}
            candidate = {**row, **changes}
            self._check_unique(table, candidate, ignore_id=entity_id)
            row.update(changes)
            if table in TIMESTAMPED_TABLES:
                row["updated_at"] = self._stamp()
            return copy.deepcopy(row)

    def delete(self, table: str, entity_id: str) -> None:
        with self._lock:
            self._find(table, entity_id)
            for ref_table, column in RESTRICT_REFERENCES.get(table, []):
                if any(r.get(column) == entity_id for r in self._tables[ref_table]):
                    raise ConflictError(
                        f"Cannot delete {table} record {entity_id}: still referenced by {ref_table}",
                        {"table": table, "id": entity_id, "referenced_by": ref_table},
                    )
            for dep_table, column in CASCADE_REFERENCES.get(table, []):
                self._tables[dep_table] = [r for r in self._tables[dep_table] if r.get(column) != entity_id]
            self._tables[table] = [r for r in self._tables[table] if r["id"] != entity_id]

    def delete_where(self, table: str, filters: Filters) -> int:
        with self._lock:
            rows = self._require_table(table)
            kept = [r for r in rows if not self._matches(r, filters)]
            removed = len(rows) - len(kept)
            self._tables[table] = kept
            return removed

    # ------------------------------------------------------------------ #
    # Memberships
    def replace_memberships(self, user_id: str, entries: Sequence[MembershipEntry]) -> List[Row]:
        """Atomic: the previous list is restored on any failure."""
        with self._lock:
            saved = copy.deepcopy(self._tables[MEMBERSHIPS])
            try:
                self.delete_where(MEMBERSHIPS, {"user_id": user_id})
                return [
                    self.insert(MEMBERSHIPS, {"user_id": user_id, "organization_id": org_id, "role": role})
                    for org_id, role in dedupe_entries(entries)
                ]
            except StoreError:
                self._tables[MEMBERSHIPS] = saved
                logger.warning("Membership replacement for user %s rolled back", user_id)
                raise
