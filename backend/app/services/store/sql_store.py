"""
sql_store.py — Entity Store over SQLAlchemy ORM Tables

Purpose:
- Real backend talking to the Supabase Postgres database directly
  (SUPABASE_DB_URL), or to sqlite for tests and local development.
- Every public method runs in its own session and commits before returning.

Key Points:
- Reference rules come from the schema itself (ON DELETE RESTRICT / CASCADE);
  IntegrityError is reported as ConflictError.
- Rows cross the boundary as dicts with ISO-8601 strings for timestamps and
  dates, the same shape the Supabase backend returns.
- `replace_memberships` runs delete + insert in a single transaction.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import Date, DateTime, Numeric, String, delete, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.database import make_session_factory
from app.core.errors import ConflictError, NotFoundError, StoreError
from app.core.logging import get_logger
from app.models import TABLE_MODELS, UserOrganization
from app.services.store.base import EntityStore, Filters, MembershipEntry, Row, dedupe_entries

logger = get_logger(__name__)


def _parse_datetime(value: Any) -> Any:
    if isinstance(value, str):
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return value


def _parse_date(value: Any) -> Any:
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    if isinstance(value, datetime):
        return value.date()
    return value


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class SqlEntityStore(EntityStore):
    backend_name = "sql"

    def __init__(self, engine: Engine):
        self._engine = engine
        self._session_factory = make_session_factory(engine)

    # ------------------------------------------------------------------ #
    # Helpers
    @contextmanager
    def _session(self, action: str, table: str) -> Iterator[Session]:
        session: Session = self._session_factory()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            logger.warning("Integrity error during %s on %s: %s", action, table, e.orig)
            raise ConflictError(f"Failed to {action} {table}: {e.orig}", {"table": table}) from e
        except SQLAlchemyError as e:
            session.rollback()
            logger.exception("Database error during %s on %s", action, table)
            raise StoreError(f"Failed to {action} {table}: {e}", {"table": table}) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    @staticmethod
    def _model_for(table: str):
        try:
            return TABLE_MODELS[table]
        except KeyError:
            raise StoreError(f"Unknown table {table!r}") from None

    @staticmethod
    def _column(model, name: str):
        column = model.__table__.columns.get(name)
        if column is None:
            raise StoreError(f"Unknown column {model.__tablename__}.{name}")
        return column

    def _coerce(self, model, values: Row) -> Dict[str, Any]:
        coerced: Dict[str, Any] = {}
        for key, value in values.items():
            column = self._column(model, key)
            if isinstance(column.type, DateTime):
                value = _parse_datetime(value)
            elif isinstance(column.type, Date):
                value = _parse_date(value)
            elif isinstance(column.type, Numeric) and value is not None:
                value = Decimal(str(value))
            coerced[key] = value
        return coerced

    @staticmethod
    def _to_row(obj) -> Row:
        return {column.name: _to_jsonable(getattr(obj, column.key)) for column in obj.__table__.columns}

    # ------------------------------------------------------------------ #
    # Reads
    def select(self, table, filters=None, order_by=None, descending=False, limit=None) -> List[Row]:
        model = self._model_for(table)
        stmt = select(model)
        for key, value in (filters or {}).items():
            stmt = stmt.where(self._column(model, key) == value)
        if order_by:
            column = self._column(model, order_by)
            expr = func.lower(column) if isinstance(column.type, String) else column
            stmt = stmt.order_by(expr.desc() if descending else expr.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        with self._session("select", table) as session:
            return [self._to_row(obj) for obj in session.scalars(stmt).all()]

    # ------------------------------------------------------------------ #
    # Writes
    def insert(self, table: str, values: Row) -> Row:
        return self.insert_many(table, [values])[0]

    def insert_many(self, table: str, rows: Sequence[Row]) -> List[Row]:
        model = self._model_for(table)
        with self._session("insert into", table) as session:
            objs = [model(**self._coerce(model, row)) for row in rows]
            session.add_all(objs)
            session.flush()
            return [self._to_row(obj) for obj in objs]

    def update(self, table: str, entity_id: str, values: Row) -> Row:
        model = self._model_for(table)
        changes = {k: v for k, v in values.items() if k not in ("id", "created_at")}
        with self._session("update", table) as session:
            obj = session.get(model, entity_id)
            if obj is None:
                raise NotFoundError(table, entity_id)
            for key, value in self._coerce(model, changes).items():
                setattr(obj, key, value)
            session.flush()
            return self._to_row(obj)

    def delete(self, table: str, entity_id: str) -> None:
        model = self._model_for(table)
        with self._session("delete from", table) as session:
            result = session.execute(delete(model).where(model.id == entity_id))
            if result.rowcount == 0:
                raise NotFoundError(table, entity_id)

    def delete_where(self, table: str, filters: Filters) -> int:
        model = self._model_for(table)
        if not filters:
            raise StoreError(f"Refusing unfiltered delete on {table}")
        stmt = delete(model)
        for key, value in filters.items():
            stmt = stmt.where(self._column(model, key) == value)
        with self._session("delete from", table) as session:
            return session.execute(stmt).rowcount

    # ------------------------------------------------------------------ #
    # Memberships
    def replace_memberships(self, user_id: str, entries: Sequence[MembershipEntry]) -> List[Row]:
        table = UserOrganization.__tablename__
        with self._session("replace memberships in", table) as session:
            session.execute(delete(UserOrganization).where(UserOrganization.user_id == user_id))
            objs = [
                UserOrganization(user_id=user_id, organization_id=org_id, role=role)
                for org_id, role in dedupe_entries(entries)
            ]
            session.add_all(objs)
            session.flush()
            return [self._to_row(obj) for obj in objs]

    def dispose(self) -> None:
        self._engine.dispose()
