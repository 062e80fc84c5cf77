"""
Tests for the Supabase Entity Store with a recording stand-in for the
supabase client's table query builder.
"""

from types import SimpleNamespace
from typing import Any, Dict, List

import pytest

from app.core.errors import ConflictError, NotFoundError, StoreError
from app.services.store.supabase_store import SupabaseEntityStore


class FakeAPIError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code


class FakeQuery:
    def __init__(self, client: "FakeClient", table: str):
        self.client = client
        self.table = table
        self.action = None
        self.payload: Any = None
        self.filters: List[tuple] = []
        self.ordering = None
        self.row_limit = None

    def select(self, columns):
        self.action = "select"
        return self

    def insert(self, payload):
        self.action, self.payload = "insert", payload
        return self

    def update(self, payload):
        self.action, self.payload = "update", payload
        return self

    def delete(self):
        self.action = "delete"
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.ordering = (column, desc)
        return self

    def limit(self, n):
        self.row_limit = n
        return self

    def _matches(self, row):
        return all(row.get(c) == v for c, v in self.filters)

    def execute(self):
        self.client.executed.append(self)
        if self.client.fail_with is not None:
            raise self.client.fail_with
        rows = self.client.tables.setdefault(self.table, [])
        if self.action == "select":
            data = [dict(r) for r in rows if self._matches(r)]
            if self.ordering:
                column, desc = self.ordering
                data.sort(key=lambda r: r.get(column) or "", reverse=desc)
            if self.row_limit is not None:
                data = data[: self.row_limit]
        elif self.action == "insert":
            data = [dict(r) for r in self.payload]
            rows.extend(dict(r) for r in data)
        elif self.action == "update":
            data = []
            for row in rows:
                if self._matches(row):
                    row.update(self.payload)
                    data.append(dict(row))
        else:
            data = [dict(r) for r in rows if self._matches(r)]
            self.client.tables[self.table] = [r for r in rows if not self._matches(r)]
        return SimpleNamespace(data=data)


class FakeClient:
    def __init__(self, tables: Dict[str, List[dict]] = None):
        self.tables = tables or {}
        self.executed: List[FakeQuery] = []
        self.fail_with = None

    def table(self, name):
        return FakeQuery(self, name)


@pytest.fixture
def client():
    return FakeClient({
        "categories": [{"id": "c1", "name": "Notebooks", "organization_id": "o1"}],
        "models": [{"id": "m1", "name": "ThinkPad", "brand": "Lenovo", "category_id": "c1", "organization_id": "o1"}],
        "products": [{"id": "p1", "name": "Dev", "model_id": "m1", "category_id": "c1", "organization_id": "o1"}],
        "notifications": [{"id": "n1", "product_id": "p1", "is_read": False}],
    })


@pytest.fixture
def supabase_store(client):
    return SupabaseEntityStore(client=client)


def test_select_translates_filters_order_and_limit(supabase_store, client):
    supabase_store.select("products", {"organization_id": "o1"}, order_by="created_at", descending=True, limit=5)

    query = client.executed[-1]
    assert query.filters == [("organization_id", "o1")]
    assert query.ordering == ("created_at", True)
    assert query.row_limit == 5


def test_insert_fills_id_and_timestamps(supabase_store):
    row = supabase_store.insert("categories", {"name": "Monitors", "organization_id": "o1"})

    assert row["id"]
    assert row["created_at"] == row["updated_at"]


def test_update_sets_updated_at_and_reports_missing_rows(supabase_store, client):
    row = supabase_store.update("products", "p1", {"quantity": 3, "id": "other"})

    assert row["quantity"] == 3
    assert row["id"] == "p1"
    assert "updated_at" in client.executed[-1].payload

    with pytest.raises(NotFoundError):
        supabase_store.update("products", "missing", {"quantity": 1})


def test_delete_checks_references_before_cascading(supabase_store, client):
    with pytest.raises(ConflictError):
        supabase_store.delete("categories", "c1")
    assert len(client.tables["categories"]) == 1


def test_delete_product_removes_its_notifications(supabase_store, client):
    supabase_store.delete("products", "p1")

    assert client.tables["products"] == []
    assert client.tables["notifications"] == []


def test_backend_errors_are_wrapped(supabase_store, client):
    client.fail_with = FakeAPIError("duplicate key value", "23505")
    with pytest.raises(ConflictError):
        supabase_store.insert("users", {"email": "a@b.c", "name": "A"})

    client.fail_with = RuntimeError("network down")
    with pytest.raises(StoreError) as exc:
        supabase_store.select("users")
    assert not isinstance(exc.value, ConflictError)
    assert "network down" in exc.value.message


def test_unfiltered_delete_is_refused(supabase_store):
    with pytest.raises(StoreError):
        supabase_store.delete_where("notifications", {})


def test_replace_memberships_restores_snapshot_when_insert_fails(supabase_store, client, monkeypatch):
    client.tables["user_organizations"] = [
        {"id": "uo1", "user_id": "u1", "organization_id": "o1", "role": "viewer", "created_at": "2024-01-01"},
    ]
    original_execute = FakeQuery.execute

    def failing_insert(query):
        if query.action == "insert" and any(r["organization_id"] == "bad" for r in query.payload):
            raise FakeAPIError("violates foreign key", "23503")
        return original_execute(query)

    monkeypatch.setattr(FakeQuery, "execute", failing_insert)
    with pytest.raises(ConflictError):
        supabase_store.replace_memberships("u1", [("bad", "viewer")])

    assert [r["organization_id"] for r in client.tables["user_organizations"]] == ["o1"]
