"""
session.py — Session Context & Persistence

Purpose:
- `SessionContext`: the signed-in identity, its role flags, its organization
  scope and its invalidation bus. Passed explicitly to every service that
  needs identity or role; there is no global "current user".
- `SessionStorage`: persists the identity as JSON in the `currentUser` slot
  of a key-value storage, restores it, clears it on logout.
- `SessionRegistry`: owned by the application root; opens, looks up and
  tears down sessions.
- `sign_in`: demo-grade login (email lookup + shared password).

Role flags:
- global role  → User.user_type; gates user and organization management.
- effective role → membership role in the resolved organization; gates
  everything scoped to that organization.
"""

from __future__ import annotations

import json
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from app.core import permissions
from app.core.cache import KeyValueStorage
from app.core.config import settings
from app.core.errors import AuthenticationFailed, StoreError
from app.core.logging import get_logger
from app.core.permissions import Role
from app.services.inventory.invalidation import InvalidationBus
from app.services.inventory.scope import OrganizationScope
from app.services.inventory.types import MEMBERSHIPS, USERS, User
from app.services.store.base import EntityStore

logger = get_logger(__name__)

CURRENT_USER_KEY = "currentUser"
CURRENT_ORGANIZATION_KEY = "currentOrganization"
EXPIRES_AT_KEY = "expiresAt"


# -----------------------------------------------------------------------------
# Persistence
# -----------------------------------------------------------------------------

class SessionStorage:
    def __init__(self, storage: KeyValueStorage):
        self._storage = storage

    def save_user(self, user: User) -> None:
        self._storage.set_item(CURRENT_USER_KEY, user.model_dump_json())

    def load_user(self) -> Optional[User]:
        raw = self._storage.get_item(CURRENT_USER_KEY)
        if not raw:
            return None
        try:
            return User.model_validate_json(raw)
        except ValidationError:
            logger.warning("Discarding unreadable %s slot", CURRENT_USER_KEY)
            self._storage.remove_item(CURRENT_USER_KEY)
            return None

    def save_organization(self, org_id: Optional[str]) -> None:
        if org_id:
            self._storage.set_item(CURRENT_ORGANIZATION_KEY, json.dumps(org_id))
        else:
            self._storage.remove_item(CURRENT_ORGANIZATION_KEY)

    def load_organization(self) -> Optional[str]:
        raw = self._storage.get_item(CURRENT_ORGANIZATION_KEY)
        return json.loads(raw) if raw else None

    def save_expiry(self, expires_at: datetime) -> None:
        self._storage.set_item(EXPIRES_AT_KEY, expires_at.isoformat())

    def load_expiry(self) -> Optional[datetime]:
        raw = self._storage.get_item(EXPIRES_AT_KEY)
        if not raw:
            return None
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    def clear(self) -> None:
        self._storage.clear()


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------

class SessionContext:
    def __init__(self, session_id: str, user: User, store: EntityStore, storage: SessionStorage):
        self.session_id = session_id
        self.user = user
        self.store = store
        self.storage = storage
        self.bus = InvalidationBus()
        self.scope = OrganizationScope(store, user.id)
        self.scope.on_switch(lambda _previous, new: self.storage.save_organization(new))
        self._dashboard = None
        self.expires_at: Optional[datetime] = None
        # Set by the SessionRegistry that owns this session
        self.registry: Optional["SessionRegistry"] = None

        # Membership changes for this user must refresh the scope
        self.bus.subscribe(MEMBERSHIPS, lambda _table: self.reload_memberships())

    # ------------------------------------------------------------------ #
    # Roles
    @property
    def global_role(self) -> Optional[Role]:
        return permissions.parse_role(self.user.user_type)

    @property
    def effective_role(self) -> Optional[Role]:
        return permissions.parse_role(self.scope.role)

    @property
    def is_admin(self) -> bool:
        return permissions.can_administer(self.global_role)

    @property
    def can_mutate(self) -> bool:
        return permissions.can_mutate(self.effective_role)

    @property
    def can_administer(self) -> bool:
        return permissions.can_administer(self.effective_role)

    def require_mutate(self, action: str) -> None:
        permissions.require_mutate(self.effective_role, action)

    def require_administer(self, action: str) -> None:
        permissions.require_administer(self.effective_role, action)

    def require_global_admin(self, action: str) -> None:
        permissions.require_administer(self.global_role, action)

    # ------------------------------------------------------------------ #
    # Scope
    def load_memberships(self) -> Optional[str]:
        """Load memberships, then re-select the stored organization or the default one."""
        self.scope.list_memberships()
        return self.scope.restore(self.storage.load_organization())

    def reload_memberships(self) -> None:
        current = self.scope.org_id
        memberships = self.scope.list_memberships()
        if self.scope.last_error is not None:
            # No memberships known: the effective role is None until a reload succeeds
            return
        if current and self.scope.membership_for(current) is None:
            self.scope.forget(current)
        elif not current:
            self.scope.select_default(memberships)
        if self.scope.org_id is None:
            self.storage.save_organization(None)

    def refresh_user(self, user: User) -> None:
        """Adopt the current user row (global role, name, email)."""
        if user == self.user:
            return
        if user.user_type != self.user.user_type:
            logger.info("User %s global role is now %s", user.id, user.user_type)
        self.user = user
        self.storage.save_user(user)

    # ------------------------------------------------------------------ #
    # Views
    @property
    def dashboard(self):
        if self._dashboard is None:
            from app.services.inventory.dashboard import Dashboard

            self._dashboard = Dashboard(self)
        return self._dashboard

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "user": self.user.model_dump(mode="json"),
            "is_admin": self.is_admin,
            "organization_id": self.scope.org_id,
            "scope_state": self.scope.state.value,
            "role": self.scope.role,
            "role_label": permissions.role_label(self.scope.role),
            "can_mutate": self.can_mutate,
            "can_administer": self.can_administer,
        }


# -----------------------------------------------------------------------------
# Registry (application root)
# -----------------------------------------------------------------------------

def _storage_for(session_id: str) -> SessionStorage:
    return SessionStorage(KeyValueStorage(f"session:{session_id}"))


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionRegistry:
    """
    Owns every live session of the process.

    Sessions expire with their token (`JWT_EXPIRE_MINUTES`); expired ones are
    pruned whenever a session is opened or looked up. Each lookup re-reads
    the user row and the memberships, so role changes, revoked memberships
    and deleted users take effect on the next request.
    """

    def __init__(
        self,
        store: EntityStore,
        lifetime: Optional[timedelta] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.lifetime = lifetime if lifetime is not None else timedelta(minutes=settings.JWT_EXPIRE_MINUTES)
        self._clock = clock or _utcnow
        self._sessions: Dict[str, SessionContext] = {}

    def open(self, user: User) -> SessionContext:
        self.prune()
        session_id = uuid.uuid4().hex
        storage = _storage_for(session_id)
        storage.save_user(user)
        context = SessionContext(session_id, user, self.store, storage)
        context.expires_at = self._clock() + self.lifetime
        context.registry = self
        storage.save_expiry(context.expires_at)
        context.load_memberships()
        self._sessions[session_id] = context
        logger.info("Opened session %s for %s", session_id, user.email)
        return context

    def get(self, session_id: str) -> Optional[SessionContext]:
        """
        Live session, or one rebuilt from its persisted slots; None when it
        is unknown, expired, or its user no longer exists.
        """
        self.prune()
        context = self._sessions.get(session_id)
        if context is None:
            context = self._restore(session_id)
            if context is None:
                return None
        if not self._revalidate(context):
            return None
        return context

    def _restore(self, session_id: str) -> Optional[SessionContext]:
        storage = _storage_for(session_id)
        user = storage.load_user()
        if user is None:
            return None
        expires_at = storage.load_expiry()
        if expires_at is None or expires_at <= self._clock():
            logger.info("Discarding expired session %s", session_id)
            storage.clear()
            return None
        context = SessionContext(session_id, user, self.store, storage)
        context.expires_at = expires_at
        context.registry = self
        context.load_memberships()
        self._sessions[session_id] = context
        logger.info("Restored session %s for %s", session_id, user.email)
        return context

    def _revalidate(self, context: SessionContext) -> bool:
        """Re-read the user row and memberships; close the session if the user is gone."""
        row = self.store.get(USERS, context.user.id)
        if row is None:
            logger.info("User %s no longer exists; closing session %s", context.user.id, context.session_id)
            self.close(context.session_id)
            return False
        context.refresh_user(User.from_row(row))
        context.reload_memberships()
        return True

    def sessions_of(self, user_id: str) -> List[SessionContext]:
        return [context for context in self._sessions.values() if context.user.id == user_id]

    def close_user(self, user_id: str) -> int:
        """Close every session of `user_id`; returns how many were closed."""
        contexts = self.sessions_of(user_id)
        for context in contexts:
            self.close(context.session_id)
        return len(contexts)

    def prune(self) -> int:
        now = self._clock()
        expired = [
            sid for sid, context in self._sessions.items()
            if context.expires_at is not None and context.expires_at <= now
        ]
        for session_id in expired:
            self.close(session_id)
        if expired:
            logger.info("Pruned %d expired sessions", len(expired))
        return len(expired)

    def close(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)
        _storage_for(session_id).clear()
        logger.info("Closed session %s", session_id)


# -----------------------------------------------------------------------------
# Login
# -----------------------------------------------------------------------------

def sign_in(store: EntityStore, email: str, password: str, expected_password: str) -> User:
    """
    Look the user up by email and compare the shared demo password.

    Unknown email and wrong password produce the same message.
    """
    email = (email or "").strip().lower()
    try:
        rows = store.select(USERS, {"email": email}, limit=1)
    except StoreError:
        logger.exception("User lookup failed during login")
        raise
    if not rows or password != expected_password:
        logger.info("Rejected login for %s", email)
        raise AuthenticationFailed("Invalid email or password")
    return User.from_row(rows[0])
