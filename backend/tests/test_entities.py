"""
Tests for the entity services: permission gates, validation, scoping,
reference rules and membership management.
"""

import pytest

from app.core.errors import ConflictError, NotFoundError, PermissionDenied, ScopeUnresolved, ValidationFailed
from app.services.inventory.entities import (
    CategoryService,
    ModelService,
    NotificationService,
    OrganizationService,
    ProductService,
    UserService,
    service_for,
)
from app.services.inventory.invalidation import affected_tables
from app.services.inventory.scope import DEFERRED
from app.services.inventory.session import SessionContext, SessionStorage
from app.core.cache import KeyValueStorage
from app.services.inventory.types import User
from app.services.store.fixtures import ORG_MAIN, ORG_SOUTH


def unresolved_session(store, user_id="user-admin"):
    user = User.from_row(store.get("users", user_id))
    return SessionContext("unresolved", user, store, SessionStorage(KeyValueStorage("session:unresolved")))


# -----------------------------------------------------------------------------
# Invalidation
# -----------------------------------------------------------------------------

def test_category_change_reaches_models_and_products():
    assert affected_tables("categories") == ["categories", "models", "products", "notifications"]
    assert affected_tables("users") == ["users", "user_organizations"]


def test_writes_publish_on_the_session_bus(admin_session):
    seen = []
    admin_session.bus.subscribe("products", seen.append)

    CategoryService(admin_session).update("cat-notebooks", {"name": "Laptops"})

    assert seen == ["products"]


# -----------------------------------------------------------------------------
# Categories and models
# -----------------------------------------------------------------------------

def test_categories_are_scoped_and_sorted(admin_session):
    names = [c.name for c in CategoryService(admin_session).list()]
    assert names == ["Monitors", "Notebooks"]

    admin_session.scope.switch(ORG_SOUTH)
    assert [c.name for c in CategoryService(admin_session).list()] == ["Supplies"]


def test_category_writes_need_admin_membership(editor_session):
    with pytest.raises(PermissionDenied):
        CategoryService(editor_session).create({"name": "Peripherals"})


def test_category_requires_a_name(admin_session):
    with pytest.raises(ValidationFailed) as exc:
        CategoryService(admin_session).create({"name": "   "})
    assert exc.value.field == "name"


def test_deleting_a_referenced_category_is_a_conflict(admin_session):
    with pytest.raises(ConflictError):
        CategoryService(admin_session).delete("cat-monitors")


def test_other_organizations_records_are_not_found(admin_session):
    with pytest.raises(NotFoundError):
        CategoryService(admin_session).update("cat-supplies", {"name": "Stolen"})


def test_scoped_writes_need_a_selected_organization(store):
    session = unresolved_session(store)
    service = CategoryService(session)

    assert service.list() is DEFERRED
    with pytest.raises(ScopeUnresolved):
        service.create({"name": "Peripherals"})


def test_model_category_must_belong_to_the_organization(admin_session):
    with pytest.raises(ValidationFailed) as exc:
        ModelService(admin_session).create({"name": "X", "brand": "Y", "category_id": "cat-supplies"})
    assert exc.value.field == "category_id"


def test_moving_a_model_moves_its_products(admin_session, store):
    ModelService(admin_session).update("model-thinkpad", {"category_id": "cat-monitors"})

    assert store.get("products", "prod-notebook-dev")["category_id"] == "cat-monitors"


def test_models_list_carries_their_category(admin_session):
    models = ModelService(admin_session).list()
    assert {m.name: m.category.name for m in models} == {"ThinkPad": "Notebooks", "UltraSharp 27": "Monitors"}


# -----------------------------------------------------------------------------
# Products
# -----------------------------------------------------------------------------

def test_editor_creates_product_with_defaults(editor_session):
    product = ProductService(editor_session).create({"name": "Spare Notebook", "model_id": "model-thinkpad"})

    assert product.quantity == 1
    assert product.min_quantity == 1
    assert product.category_id == "cat-notebooks"
    assert product.model.brand == "Lenovo"
    assert product.organization_id == ORG_MAIN


def test_viewer_cannot_create_products(viewer_session):
    with pytest.raises(PermissionDenied):
        ProductService(viewer_session).create({"name": "X", "model_id": "model-thinkpad"})


@pytest.mark.parametrize(
    "fields, field",
    [
        ({"name": "X", "model_id": "model-thinkpad", "quantity": -1}, "quantity"),
        ({"name": "X", "model_id": "model-thinkpad", "min_quantity": 0}, "min_quantity"),
        ({"name": "X", "model_id": "model-thinkpad", "value": "abc"}, "value"),
        ({"name": "X", "model_id": "model-thinkpad", "expiry_date": "31/12/2025"}, "expiry_date"),
        ({"name": "X", "model_id": "model-thinkpad", "category_id": "cat-monitors"}, "category_id"),
        ({"name": "X", "model_id": "model-toner"}, "model_id"),
    ],
)
def test_product_validation(admin_session, store, fields, field):
    before = len(store.select("products"))
    with pytest.raises(ValidationFailed) as exc:
        ProductService(admin_session).create(fields)
    assert exc.value.field == field
    assert len(store.select("products")) == before


def test_products_newest_first(editor_session):
    ProductService(editor_session).create({"name": "Newest", "model_id": "model-ultrasharp"})
    names = [p.name for p in ProductService(editor_session).list()]
    assert names == ["Newest", "Design Monitor", "Notebook Dev"]


def test_product_update_accepts_string_numbers(admin_session):
    product = ProductService(admin_session).update(
        "prod-monitor", {"quantity": "7", "value": "1999.90", "expiry_date": "2026-01-31"}
    )
    assert product.quantity == 7
    assert product.value == pytest.approx(1999.90)
    assert product.expiry_date.isoformat() == "2026-01-31"


def test_deleting_a_product_removes_its_notifications(admin_session, store):
    ProductService(admin_session).delete("prod-monitor")
    assert store.get("notifications", "notif-1") is None


# -----------------------------------------------------------------------------
# Notifications
# -----------------------------------------------------------------------------

def test_unread_notifications_are_scoped_to_the_organization(admin_session):
    notifications = NotificationService(admin_session).list()
    assert [n.id for n in notifications] == ["notif-1"]
    assert notifications[0].product_name == "Design Monitor"

    admin_session.scope.switch(ORG_SOUTH)
    assert [n.id for n in NotificationService(admin_session).list()] == ["notif-3"]


def test_mark_read(admin_session):
    service = NotificationService(admin_session)
    assert service.mark_read("notif-1").is_read
    assert service.list() == []


def test_mark_read_is_limited_to_the_active_organization(store, admin_session):
    service = NotificationService(admin_session)
    with pytest.raises(NotFoundError):
        service.mark_read("notif-3")
    assert store.get("notifications", "notif-3")["is_read"] is False

    admin_session.scope.switch(ORG_SOUTH)
    assert service.mark_read("notif-3").is_read


def test_mark_read_needs_an_organization(store):
    with pytest.raises(ScopeUnresolved):
        NotificationService(unresolved_session(store)).mark_read("notif-1")


def test_notification_without_product_can_be_marked_anywhere(store, viewer_session):
    store.insert("notifications", {"id": "notif-system", "type": "new_item", "message": "Welcome", "is_read": False})

    assert NotificationService(viewer_session).mark_read("notif-system").is_read


# -----------------------------------------------------------------------------
# Organizations
# -----------------------------------------------------------------------------

def test_admin_creates_organization_and_becomes_member(admin_session):
    org = OrganizationService(admin_session).create({"name": "LAQUS Norte"})

    assert admin_session.scope.membership_for(org.id).role == "admin"
    admin_session.scope.switch(org.id)
    assert admin_session.scope.org_id == org.id


def test_non_admin_sees_only_member_organizations(editor_session, admin_session):
    assert [o.id for o in OrganizationService(editor_session).list()] == [ORG_MAIN]
    assert {o.id for o in OrganizationService(admin_session).list()} == {ORG_MAIN, ORG_SOUTH}
    with pytest.raises(PermissionDenied):
        OrganizationService(editor_session).create({"name": "Nope"})


def test_deleting_an_organization_with_inventory_is_a_conflict(admin_session):
    with pytest.raises(ConflictError):
        OrganizationService(admin_session).delete(ORG_SOUTH)


def test_deleting_the_active_organization_rescopes(admin_session):
    org = OrganizationService(admin_session).create({"name": "Temporary"})
    admin_session.scope.switch(org.id)

    OrganizationService(admin_session).delete(org.id)

    assert admin_session.scope.org_id == ORG_MAIN


# -----------------------------------------------------------------------------
# Users and memberships
# -----------------------------------------------------------------------------

def test_user_management_is_admin_only(editor_session):
    with pytest.raises(PermissionDenied):
        UserService(editor_session).list()


def test_create_user_with_memberships(admin_session, store):
    user = UserService(admin_session).create(
        {"name": "Nina", "email": "Nina@Empresa.com", "user_type": "editor", "organization_ids": [ORG_MAIN, ORG_SOUTH]}
    )

    assert user.email == "nina@empresa.com"
    roles = {m["organization_id"]: m["role"] for m in store.select("user_organizations", {"user_id": user.id})}
    assert roles == {ORG_MAIN: "editor", ORG_SOUTH: "editor"}


def test_common_users_become_viewers(admin_session):
    service = UserService(admin_session)
    memberships = service.set_memberships("user-common", [ORG_SOUTH])
    assert [(m.organization_id, m.role) for m in memberships] == [(ORG_SOUTH, "viewer")]


@pytest.mark.parametrize(
    "fields, field",
    [
        ({"name": "A", "email": "not-an-email"}, "email"),
        ({"name": "A", "email": "a@b.c", "user_type": "Admin"}, "user_type"),
        ({"name": "A", "email": "a@b.c", "organization_ids": ["org-missing"]}, "organization_ids"),
    ],
)
def test_user_validation(admin_session, fields, field):
    with pytest.raises(ValidationFailed) as exc:
        UserService(admin_session).create(fields)
    assert exc.value.field == field


def test_duplicate_email_is_a_conflict(admin_session):
    with pytest.raises(ConflictError):
        UserService(admin_session).create({"name": "Again", "email": "editor@empresa.com"})


def test_editing_own_user_updates_session(admin_session):
    UserService(admin_session).update("user-admin", {"name": "Root"})
    assert admin_session.user.name == "Root"
    assert admin_session.storage.load_user().name == "Root"


def test_user_form_includes_memberships(admin_session):
    service = UserService(admin_session)
    editor = User.from_row(admin_session.store.get("users", "user-editor"))
    assert service.form_from(editor)["organization_ids"] == [ORG_MAIN]


def test_service_for_unknown_table():
    with pytest.raises(ValueError):
        service_for("widgets", None)
