"""
Tests for the in-memory Entity Store: ordering, reference rules,
uniqueness and atomic membership replacement.
"""

import pytest

from app.core.errors import ConflictError, NotFoundError, StoreError
from app.services.store.fixtures import LOAD_ORDER, ORG_MAIN, ORG_SOUTH, demo_data, load_demo_data
from app.services.store.memory import MemoryEntityStore


def test_select_filters_and_orders_case_insensitively(store):
    store.insert("categories", {"name": "accessories", "organization_id": ORG_MAIN})

    names = [row["name"] for row in store.select("categories", {"organization_id": ORG_MAIN}, order_by="name")]

    assert names == ["accessories", "Monitors", "Notebooks"]


def test_select_newest_first_with_limit(store):
    rows = store.select("products", order_by="created_at", descending=True, limit=2)
    assert [row["id"] for row in rows] == ["prod-toner", "prod-monitor"]


def test_returned_rows_are_copies(store):
    row = store.get("products", "prod-monitor")
    row["quantity"] = 99
    assert store.get("products", "prod-monitor")["quantity"] == 1


def test_insert_assigns_id_and_increasing_timestamps(store):
    first = store.insert("categories", {"name": "A", "organization_id": ORG_MAIN})
    second = store.insert("categories", {"name": "B", "organization_id": ORG_MAIN})

    assert first["id"] and first["id"] != second["id"]
    assert first["created_at"] < second["created_at"]
    assert first["updated_at"] == first["created_at"]


def test_update_missing_row_raises_not_found(store):
    with pytest.raises(NotFoundError):
        store.update("products", "nope", {"quantity": 1})


def test_update_refreshes_updated_at_but_keeps_created_at(store):
    before = store.get("products", "prod-monitor")
    after = store.update("products", "prod-monitor", {"quantity": 3, "created_at": "1999-01-01"})

    assert after["quantity"] == 3
    assert after["created_at"] == before["created_at"]
    assert after["updated_at"] > before["updated_at"]


def test_delete_referenced_category_is_a_conflict(store):
    with pytest.raises(ConflictError) as exc:
        store.delete("categories", "cat-notebooks")
    assert exc.value.details["referenced_by"] == "models"
    assert store.get("categories", "cat-notebooks") is not None


def test_delete_product_cascades_to_notifications(store):
    store.delete("products", "prod-monitor")

    assert store.get("products", "prod-monitor") is None
    assert store.select("notifications", {"product_id": "prod-monitor"}) == []


def test_delete_user_cascades_to_memberships(store):
    store.delete("users", "user-editor")
    assert store.select("user_organizations", {"user_id": "user-editor"}) == []


def test_duplicate_membership_is_a_conflict(store):
    with pytest.raises(ConflictError):
        store.insert("user_organizations", {"user_id": "user-editor", "organization_id": ORG_MAIN, "role": "admin"})


def test_insert_many_is_all_or_nothing(store):
    rows = [
        {"user_id": "user-editor", "organization_id": ORG_SOUTH, "role": "editor"},
        {"user_id": "user-editor", "organization_id": ORG_MAIN, "role": "editor"},
    ]
    with pytest.raises(ConflictError):
        store.insert_many("user_organizations", rows)

    assert [r["organization_id"] for r in store.select("user_organizations", {"user_id": "user-editor"})] == [ORG_MAIN]


def test_replace_memberships_sets_exact_list(store):
    rows = store.replace_memberships("user-common", [(ORG_SOUTH, "viewer"), (ORG_MAIN, "viewer"), (ORG_SOUTH, "viewer")])

    assert [r["organization_id"] for r in rows] == [ORG_SOUTH, ORG_MAIN]
    stored = store.select("user_organizations", {"user_id": "user-common"}, order_by="created_at")
    assert [r["organization_id"] for r in stored] == [ORG_SOUTH, ORG_MAIN]


def test_replace_memberships_with_empty_list_removes_all(store):
    assert store.replace_memberships("user-admin", []) == []
    assert store.select("user_organizations", {"user_id": "user-admin"}) == []


def test_unknown_table_is_a_store_error(store):
    with pytest.raises(StoreError):
        store.select("widgets")


def test_load_demo_data_fills_an_empty_store():
    empty = MemoryEntityStore()
    counts = load_demo_data(empty)

    assert list(counts) == list(LOAD_ORDER)
    assert counts == {table: len(rows) for table, rows in demo_data().items()}
    assert empty.get("products", "prod-toner")["organization_id"] == ORG_SOUTH


def test_load_demo_data_twice_conflicts():
    seeded = MemoryEntityStore(seed=demo_data())
    with pytest.raises(ConflictError):
        load_demo_data(seeded)
