"""
permissions.py — Access Policy Evaluator

Purpose:
- Map (role, action) → allow / deny.
- Consulted before every write-triggering operation and before exposing
  admin-only affordances (user, organization, category and model management).

Roles form a closed set. Anything that does not parse into it is treated as
no-permission, never as an implicit allow.
"""

from enum import Enum
from typing import Optional, Union

from app.core.errors import PermissionDenied
from app.core.logging import get_logger

logger = get_logger(__name__)


class Role(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    # Global read-only role on the user record
    COMMON = "common"
    # Membership-level read-only role
    VIEWER = "viewer"


RoleLike = Union[Role, str, None]

_MUTATING_ROLES = frozenset({Role.ADMIN, Role.EDITOR})
_ADMIN_ROLES = frozenset({Role.ADMIN})

_ROLE_LABELS = {
    Role.ADMIN: "Admin",
    Role.EDITOR: "Editor",
    Role.COMMON: "Viewer",
    Role.VIEWER: "Viewer",
}


def parse_role(value: RoleLike) -> Optional[Role]:
    """
    Return the Role for `value`, or None when it is not a known role.

    Only exact lower-case role names are accepted; "Admin" or "admin " are
    not roles.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def can_mutate(role: RoleLike) -> bool:
    """True iff role ∈ {admin, editor}."""
    return parse_role(role) in _MUTATING_ROLES


def can_administer(role: RoleLike) -> bool:
    """True iff role == admin."""
    return parse_role(role) in _ADMIN_ROLES


def require_mutate(role: RoleLike, action: str) -> None:
    if not can_mutate(role):
        logger.warning("Denied %s for role %r", action, role)
        raise PermissionDenied(f"Your role does not allow you to {action}")


def require_administer(role: RoleLike, action: str) -> None:
    if not can_administer(role):
        logger.warning("Denied %s for role %r (admin only)", action, role)
        raise PermissionDenied(f"Only administrators can {action}")


def role_label(role: RoleLike) -> str:
    parsed = parse_role(role)
    if parsed is None:
        return str(role) if role is not None else ""
    return _ROLE_LABELS[parsed]


def membership_role_for(user_role: RoleLike) -> Role:
    """
    Membership role granted when an administrator assigns a user to organizations.

    Global `common` users become `viewer` members; unknown roles are read-only.
    """
    parsed = parse_role(user_role)
    if parsed in (Role.ADMIN, Role.EDITOR):
        return parsed
    return Role.VIEWER
