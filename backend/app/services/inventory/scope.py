"""
scope.py — Organization Scope Resolver

Purpose:
- Decide which organization the session is working in.
- Every entity read/write downstream is parameterised by the resolved
  organization id.

States:
    UNRESOLVED ──select_default/switch──▶ SWITCHING ──▶ RESOLVED(org)
    RESOLVED(org) ──switch(org')──▶ SWITCHING(org→org') ──▶ RESOLVED(org')

Key Rules:
- The only implicit selection is the first membership (creation order) when
  nothing is selected yet.
- `switch` requires a membership for the target organization.
- Scoped work requested while UNRESOLVED is queued, not run unscoped.
"""

from __future__ import annotations

from collections import deque
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional

from app.core.errors import PermissionDenied, ScopeUnresolved, StoreError
from app.core.logging import get_logger
from app.services.inventory.types import MEMBERSHIPS, ORGANIZATIONS, UserOrganization
from app.services.store.base import EntityStore

logger = get_logger(__name__)


class ScopeState(str, Enum):
    UNRESOLVED = "unresolved"
    SWITCHING = "switching"
    RESOLVED = "resolved"


class _Deferred:
    """Returned by run_scoped when the call was queued instead of run."""

    def __repr__(self) -> str:
        return "DEFERRED"

    def __bool__(self) -> bool:
        return False


DEFERRED = _Deferred()

SwitchListener = Callable[[Optional[str], str], None]


class OrganizationScope:
    def __init__(self, store: EntityStore, user_id: str):
        self._store = store
        self.user_id = user_id
        self.state = ScopeState.UNRESOLVED
        self.org_id: Optional[str] = None
        self.pending_org_id: Optional[str] = None
        self.memberships: List[UserOrganization] = []
        self.last_error: Optional[StoreError] = None
        self._deferred: Deque[Callable[[str], Any]] = deque()
        self._switch_listeners: List[SwitchListener] = []

    # ------------------------------------------------------------------ #
    # Memberships
    def list_memberships(self) -> List[UserOrganization]:
        """
        Memberships of the user in creation order, joined with their organization.

        A store failure yields an empty list; the error is kept in `last_error`.
        """
        try:
            rows = self._store.select(MEMBERSHIPS, {"user_id": self.user_id}, order_by="created_at")
            organizations: Dict[str, dict] = {
                org["id"]: org for org in self._store.select(ORGANIZATIONS)
            }
        except StoreError as e:
            logger.warning("Could not load memberships for user %s: %s", self.user_id, e)
            self.last_error = e
            self.memberships = []
            return []

        self.last_error = None
        self.memberships = [
            UserOrganization.from_row({**row, "organization": organizations.get(row["organization_id"])})
            for row in rows
        ]
        return list(self.memberships)

    def membership_for(self, org_id: Optional[str]) -> Optional[UserOrganization]:
        if org_id is None:
            return None
        for membership in self.memberships:
            if membership.organization_id == org_id:
                return membership
        return None

    @property
    def role(self) -> Optional[str]:
        """Membership role in the resolved organization (None when unresolved or not a member)."""
        membership = self.membership_for(self.org_id) if self.state == ScopeState.RESOLVED else None
        return membership.role if membership else None

    @property
    def is_resolved(self) -> bool:
        return self.state == ScopeState.RESOLVED

    # ------------------------------------------------------------------ #
    # Transitions
    def select_default(self, memberships: Optional[List[UserOrganization]] = None) -> Optional[str]:
        """Pick the first membership's organization if nothing is selected yet."""
        if self.state != ScopeState.UNRESOLVED:
            return self.org_id
        memberships = self.memberships if memberships is None else memberships
        if not memberships:
            return None
        self._transition(memberships[0].organization_id)
        return self.org_id

    def switch(self, org_id: str) -> str:
        if self.membership_for(org_id) is None:
            logger.warning("User %s tried to switch to organization %s without a membership", self.user_id, org_id)
            raise PermissionDenied(f"You are not a member of organization {org_id}")
        self._transition(org_id)
        return org_id

    def forget(self, org_id: str) -> Optional[str]:
        """
        Drop an organization that no longer exists.

        If it was the active one, fall back to the first remaining membership,
        or to UNRESOLVED when none is left.
        """
        self.memberships = [m for m in self.memberships if m.organization_id != org_id]
        if self.org_id != org_id:
            return self.org_id
        if self.memberships:
            self._transition(self.memberships[0].organization_id)
        else:
            self.state = ScopeState.UNRESOLVED
            self.org_id = None
        return self.org_id

    def restore(self, org_id: Optional[str]) -> Optional[str]:
        """Re-select a previously active organization if the user is still a member of it."""
        if org_id and self.membership_for(org_id) is not None:
            self._transition(org_id)
        return self.select_default()

    def on_switch(self, listener: SwitchListener) -> None:
        """Called as (previous org, new org) while the scope is SWITCHING."""
        self._switch_listeners.append(listener)

    def _transition(self, org_id: str) -> None:
        previous = self.org_id
        self.state = ScopeState.SWITCHING
        self.pending_org_id = org_id
        for listener in list(self._switch_listeners):
            listener(previous, org_id)
        self.org_id = org_id
        self.pending_org_id = None
        self.state = ScopeState.RESOLVED
        logger.info("User %s now scoped to organization %s", self.user_id, org_id)
        self._flush_deferred()

    # ------------------------------------------------------------------ #
    # Scoped execution
    def run_scoped(self, fn: Callable[[str], Any]) -> Any:
        """
        Run fn(org_id) when resolved; otherwise queue it and return DEFERRED.
        """
        if self.state != ScopeState.RESOLVED:
            self._deferred.append(fn)
            logger.debug("Deferred scoped call for user %s until an organization is selected", self.user_id)
            return DEFERRED
        self._flush_deferred()
        return fn(self.org_id)

    def require_org_id(self) -> str:
        if self.state != ScopeState.RESOLVED or self.org_id is None:
            raise ScopeUnresolved("Select an organization first")
        return self.org_id

    @property
    def deferred_count(self) -> int:
        return len(self._deferred)

    def _flush_deferred(self) -> None:
        while self._deferred and self.state == ScopeState.RESOLVED:
            fn = self._deferred.popleft()
            fn(self.org_id)
