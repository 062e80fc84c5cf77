"""
base.py — Entity Store Interface

Purpose:
- The one seam between the application and its data backend.
- CRUD by table name with equality filters and ordering; rows are plain dicts
  (the shape Supabase returns).
- Implementations: memory.py (fixtures), supabase_store.py, sql_store.py.
  Which one runs is decided once at startup (see app.services.store).

Contract for every implementation:
- Failures are raised as StoreError (ConflictError when references block a
  delete); NotFoundError when an update/delete target does not exist.
- Deletes are refused while referencing rows exist (RESTRICT_REFERENCES) and
  remove dependent rows listed in CASCADE_REFERENCES.
- `replace_memberships` is all-or-nothing from the caller's point of view.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from app.core.errors import StoreError
from app.core.logging import get_logger
from app.services.inventory.types import (
    CATEGORIES,
    MEMBERSHIPS,
    MODELS,
    NOTIFICATIONS,
    ORGANIZATIONS,
    PRODUCTS,
    USERS,
)

logger = get_logger(__name__)

Row = Dict[str, Any]
Filters = Mapping[str, Any]
MembershipEntry = Tuple[str, str]  # (organization_id, role)

# Target table → [(referencing table, column)] that block a delete
RESTRICT_REFERENCES: Dict[str, List[Tuple[str, str]]] = {
    ORGANIZATIONS: [
        (CATEGORIES, "organization_id"),
        (MODELS, "organization_id"),
        (PRODUCTS, "organization_id"),
    ],
    CATEGORIES: [(MODELS, "category_id"), (PRODUCTS, "category_id")],
    MODELS: [(PRODUCTS, "model_id")],
}

# Target table → [(dependent table, column)] removed together with the target
CASCADE_REFERENCES: Dict[str, List[Tuple[str, str]]] = {
    USERS: [(MEMBERSHIPS, "user_id")],
    ORGANIZATIONS: [(MEMBERSHIPS, "organization_id")],
    PRODUCTS: [(NOTIFICATIONS, "product_id")],
}

# Tables that carry an updated_at column
TIMESTAMPED_TABLES = frozenset({USERS, ORGANIZATIONS, CATEGORIES, MODELS, PRODUCTS})


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


class EntityStore(ABC):
    """Opaque CRUD backend addressed by table name."""

    backend_name = "abstract"

    # ------------------------------------------------------------------ #
    # Reads
    @abstractmethod
    def select(
        self,
        table: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Row]:
        """Rows of `table` matching every equality filter, optionally ordered and limited."""

    def get(self, table: str, entity_id: str) -> Optional[Row]:
        rows = self.select(table, {"id": entity_id}, limit=1)
        return rows[0] if rows else None

    # ------------------------------------------------------------------ #
    # Writes
    @abstractmethod
    def insert(self, table: str, values: Row) -> Row:
        """Insert one row; the store assigns id and timestamps when missing."""

    def insert_many(self, table: str, rows: Sequence[Row]) -> List[Row]:
        return [self.insert(table, row) for row in rows]

    @abstractmethod
    def update(self, table: str, entity_id: str, values: Row) -> Row:
        """Apply `values` to one row and return it; NotFoundError when absent."""

    @abstractmethod
    def delete(self, table: str, entity_id: str) -> None:
        """Delete one row; NotFoundError when absent, ConflictError when referenced."""

    @abstractmethod
    def delete_where(self, table: str, filters: Filters) -> int:
        """Delete every row matching `filters`; returns the number removed."""

    # ------------------------------------------------------------------ #
    # Memberships
    def replace_memberships(self, user_id: str, entries: Sequence[MembershipEntry]) -> List[Row]:
        """
        Make `entries` the complete membership list of `user_id`.

        Default implementation for backends without transactions: snapshot,
        delete, insert, and restore the snapshot if the insert fails.
        """
        snapshot = self.select(MEMBERSHIPS, {"user_id": user_id}, order_by="created_at")
        self.delete_where(MEMBERSHIPS, {"user_id": user_id})

        new_rows = [
            {"user_id": user_id, "organization_id": org_id, "role": role}
            for org_id, role in dedupe_entries(entries)
        ]
        try:
            return self.insert_many(MEMBERSHIPS, new_rows) if new_rows else []
        except StoreError:
            logger.exception("Membership insert failed for user %s; restoring %d previous rows", user_id, len(snapshot))
            if snapshot:
                try:
                    self.insert_many(MEMBERSHIPS, snapshot)
                except StoreError:
                    logger.exception("Could not restore memberships for user %s", user_id)
            raise


def dedupe_entries(entries: Sequence[MembershipEntry]) -> List[MembershipEntry]:
    """Keep the first entry per organization (one membership per user/org pair)."""
    seen = set()
    result: List[MembershipEntry] = []
    for org_id, role in entries:
        if org_id in seen:
            continue
        seen.add(org_id)
        result.append((org_id, role))
    return result
