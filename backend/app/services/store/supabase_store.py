"""
supabase_store.py — Entity Store over Supabase Tables

Purpose:
- Real backend: every operation is one PostgREST call through the supabase client.
- Thin wrapper, same shape as the ingestion-era SupabaseDBClient: build the
  query, `.execute()`, read `response.data`.

Error mapping:
- Postgres foreign key violation (23503) → ConflictError
- Postgres unique violation (23505)      → ConflictError
- anything else raised by the client      → StoreError
- update/delete that touch no row         → NotFoundError

Membership replacement uses the compensating default from EntityStore since
PostgREST calls do not share a transaction.
"""

from __future__ import annotations

import uuid
from typing import Any, List, Optional, Sequence

from supabase import Client, create_client

from app.core.config import settings
from app.core.errors import ConflictError, NotFoundError, StoreError
from app.core.logging import get_logger
from app.services.store.base import (
    CASCADE_REFERENCES,
    RESTRICT_REFERENCES,
    TIMESTAMPED_TABLES,
    EntityStore,
    Filters,
    Row,
    utcnow_iso,
)

logger = get_logger(__name__)

_CONFLICT_CODES = {"23503", "23505"}


def _create_supabase_client() -> Client:
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_ROLE_KEY)


def _wrap_error(action: str, table: str, exc: Exception) -> StoreError:
    code = str(getattr(exc, "code", "") or "")
    message = getattr(exc, "message", None) or str(exc)
    if code in _CONFLICT_CODES:
        return ConflictError(f"Failed to {action} {table}: {message}", {"table": table, "code": code})
    return StoreError(f"Failed to {action} {table}: {message}", {"table": table, "code": code} if code else None)


class SupabaseEntityStore(EntityStore):
    backend_name = "supabase"

    def __init__(self, client: Optional[Client] = None):
        self._client = client or _create_supabase_client()

    def _execute(self, action: str, table: str, query: Any) -> List[Row]:
        try:
            response = query.execute()
        except Exception as e:
            logger.warning("Supabase %s on %s failed: %s", action, table, e)
            raise _wrap_error(action, table, e) from e
        return list(response.data or [])

    # ------------------------------------------------------------------ #
    # Reads
    def select(self, table, filters=None, order_by=None, descending=False, limit=None) -> List[Row]:
        query = self._client.table(table).select("*")
        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)
        return self._execute("select", table, query)

    # ------------------------------------------------------------------ #
    # Writes
    def insert(self, table: str, values: Row) -> Row:
        rows = self.insert_many(table, [values])
        if not rows:
            raise StoreError(f"Insert into {table} returned no row")
        return rows[0]

    def insert_many(self, table: str, rows: Sequence[Row]) -> List[Row]:
        if not rows:
            return []
        now_iso = utcnow_iso()
        payload = []
        for values in rows:
            row = dict(values)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", now_iso)
            if table in TIMESTAMPED_TABLES:
                row.setdefault("updated_at", now_iso)
            payload.append(row)
        return self._execute("insert into", table, self._client.table(table).insert(payload))

    def update(self, table: str, entity_id: str, values: Row) -> Row:
        changes = {k: v for k, v in values.items() if k not in ("id", "created_at")}
        if table in TIMESTAMPED_TABLES:
            changes["updated_at"] = utcnow_iso()
        data = self._execute("update", table, self._client.table(table).update(changes).eq("id", entity_id))
        if not data:
            raise NotFoundError(table, entity_id)
        return data[0]

    def delete(self, table: str, entity_id: str) -> None:
        # Checked up front so a refused delete never loses cascaded rows
        for ref_table, column in RESTRICT_REFERENCES.get(table, []):
            if self.select(ref_table, {column: entity_id}, limit=1):
                raise ConflictError(
                    f"Cannot delete {table} record {entity_id}: still referenced by {ref_table}",
                    {"table": table, "id": entity_id, "referenced_by": ref_table},
                )
        for dep_table, column in CASCADE_REFERENCES.get(table, []):
            self.delete_where(dep_table, {column: entity_id})
        data = self._execute("delete from", table, self._client.table(table).delete().eq("id", entity_id))
        if not data:
            raise NotFoundError(table, entity_id)

    def delete_where(self, table: str, filters: Filters) -> int:
        if not filters:
            raise StoreError(f"Refusing unfiltered delete on {table}")
        query = self._client.table(table).delete()
        for column, value in filters.items():
            query = query.eq(column, value)
        return len(self._execute("delete from", table, query))
