"""
Tests for session persistence, role flags and login.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.cache import KeyValueStorage
from app.core.errors import AuthenticationFailed, PermissionDenied, StoreError
from app.services.inventory.session import (
    CURRENT_USER_KEY,
    EXPIRES_AT_KEY,
    SessionRegistry,
    SessionStorage,
    sign_in,
)
from app.services.inventory.types import User
from app.services.inventory.entities import UserService
from app.services.store.fixtures import ORG_MAIN, ORG_SOUTH


def test_sign_in_accepts_shared_password_and_any_email_case(store):
    user = sign_in(store, " Admin@Empresa.com ", "123456", "123456")
    assert user.id == "user-admin"
    assert user.role == "admin"


@pytest.mark.parametrize("email, password", [("admin@empresa.com", "wrong"), ("nobody@empresa.com", "123456")])
def test_sign_in_rejects_with_one_message(store, email, password):
    with pytest.raises(AuthenticationFailed) as exc:
        sign_in(store, email, password, "123456")
    assert exc.value.message == "Invalid email or password"


def test_open_persists_current_user_and_selects_first_org(admin_session):
    raw = KeyValueStorage(f"session:{admin_session.session_id}").get_item(CURRENT_USER_KEY)

    assert User.model_validate_json(raw).email == "admin@empresa.com"
    assert admin_session.scope.org_id == ORG_MAIN


def test_session_restored_from_storage_keeps_selected_org(store, admin_session):
    admin_session.scope.switch(ORG_SOUTH)

    # A fresh registry only has the persisted slots to go on
    restored = SessionRegistry(store).get(admin_session.session_id)

    assert restored.user.id == "user-admin"
    assert restored.scope.org_id == ORG_SOUTH


def test_unreadable_current_user_slot_is_discarded():
    storage = KeyValueStorage("session:broken")
    storage.set_item(CURRENT_USER_KEY, "{not json")

    assert SessionStorage(storage).load_user() is None
    assert storage.get_item(CURRENT_USER_KEY) is None


def test_close_clears_persisted_slots(registry, admin_session):
    registry.close(admin_session.session_id)

    assert registry.get(admin_session.session_id) is None


def test_role_flags_follow_membership_role(admin_session, editor_session, viewer_session):
    assert admin_session.is_admin and admin_session.can_administer and admin_session.can_mutate
    assert not editor_session.is_admin
    assert editor_session.can_mutate and not editor_session.can_administer
    assert not viewer_session.can_mutate
    assert viewer_session.to_dict()["role_label"] == "Viewer"

    with pytest.raises(PermissionDenied):
        viewer_session.require_mutate("edit products")


def test_global_admin_with_viewer_membership_is_read_only_in_that_org(store, registry):
    store.update("user_organizations", "uo-2", {"role": "viewer"})
    user = User.from_row(store.get("users", "user-admin"))
    session = registry.open(user)
    session.scope.switch(ORG_SOUTH)

    assert session.is_admin
    assert not session.can_mutate
    assert not session.can_administer


def test_membership_change_reloads_scope(store, admin_session):
    store.delete_where("user_organizations", {"user_id": "user-admin", "organization_id": ORG_MAIN})

    admin_session.bus.publish("user_organizations")

    assert admin_session.scope.org_id == ORG_SOUTH


# -----------------------------------------------------------------------------
# Lookup re-validation
# -----------------------------------------------------------------------------

def test_lookup_applies_revoked_memberships(store, registry, editor_session):
    store.delete_where("user_organizations", {"user_id": "user-editor"})

    session = registry.get(editor_session.session_id)

    assert session.scope.org_id is None
    assert not session.can_mutate


def test_lookup_applies_changed_membership_role(store, registry, editor_session):
    store.update("user_organizations", "uo-3", {"role": "viewer"})

    session = registry.get(editor_session.session_id)

    assert session.scope.org_id == ORG_MAIN
    assert not session.can_mutate


def test_lookup_applies_global_role_change(store, registry, admin_session):
    store.update("users", "user-admin", {"user_type": "common"})

    session = registry.get(admin_session.session_id)

    assert not session.is_admin
    with pytest.raises(PermissionDenied):
        session.require_global_admin("manage users")
    assert User.model_validate_json(
        KeyValueStorage(f"session:{session.session_id}").get_item(CURRENT_USER_KEY)
    ).user_type == "common"


def test_lookup_closes_session_of_deleted_user(store, registry, viewer_session):
    store.delete("users", "user-common")

    assert registry.get(viewer_session.session_id) is None
    assert KeyValueStorage(f"session:{viewer_session.session_id}").get_item(CURRENT_USER_KEY) is None


def test_deleting_a_user_closes_their_sessions(registry, admin_session, editor_session):
    UserService(admin_session).delete("user-editor")

    assert registry.sessions_of("user-editor") == []
    assert registry.get(editor_session.session_id) is None
    assert registry.get(admin_session.session_id) is admin_session


def test_membership_store_failure_denies_writes_but_keeps_selection(store, admin_session, monkeypatch):
    original_select = store.select

    def select(table, *args, **kwargs):
        if table == "user_organizations":
            raise StoreError("memberships unavailable")
        return original_select(table, *args, **kwargs)

    monkeypatch.setattr(store, "select", select)
    admin_session.reload_memberships()

    assert admin_session.scope.org_id == ORG_MAIN
    assert not admin_session.can_mutate


# -----------------------------------------------------------------------------
# Expiry
# -----------------------------------------------------------------------------

class Clock:
    def __init__(self):
        self.now = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def test_session_expires_with_its_lifetime(store):
    clock = Clock()
    registry = SessionRegistry(store, lifetime=timedelta(minutes=30), clock=clock)
    session = registry.open(User.from_row(store.get("users", "user-admin")))

    assert session.expires_at == clock.now + timedelta(minutes=30)
    clock.advance(minutes=29)
    assert registry.get(session.session_id) is session

    clock.advance(minutes=1)
    assert registry.get(session.session_id) is None
    assert KeyValueStorage(f"session:{session.session_id}").get_item(CURRENT_USER_KEY) is None


def test_opening_a_session_prunes_expired_ones(store):
    clock = Clock()
    registry = SessionRegistry(store, lifetime=timedelta(minutes=30), clock=clock)
    stale = [registry.open(User.from_row(store.get("users", uid))) for uid in ("user-admin", "user-editor")]

    clock.advance(hours=1)
    registry.open(User.from_row(store.get("users", "user-common")))

    assert registry.sessions_of("user-admin") == []
    assert registry.sessions_of("user-editor") == []
    for session in stale:
        assert KeyValueStorage(f"session:{session.session_id}").get_item(CURRENT_USER_KEY) is None


def test_expired_persisted_session_is_not_restored(store):
    clock = Clock()
    session = SessionRegistry(store, lifetime=timedelta(minutes=30), clock=clock).open(
        User.from_row(store.get("users", "user-admin"))
    )
    slots = KeyValueStorage(f"session:{session.session_id}")
    assert slots.get_item(EXPIRES_AT_KEY) == session.expires_at.isoformat()

    clock.advance(hours=1)
    fresh = SessionRegistry(store, lifetime=timedelta(minutes=30), clock=clock)

    assert fresh.get(session.session_id) is None
    assert slots.get_item(CURRENT_USER_KEY) is None
