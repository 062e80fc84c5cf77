"""
errors.py — Domain Error Taxonomy

Purpose:
- One exception hierarchy shared by the entity stores, services, dialogs and API.
- Each error carries the HTTP status the API layer reports it with.

Rules:
- ValidationFailed is raised before any store call.
- PermissionDenied never reaches the store.
- Every backend failure is wrapped into StoreError by the store implementation.
"""

from typing import Any, Dict, Optional


class InventoryError(Exception):
    """Base class for every error this application raises on purpose."""

    status_code = 400
    kind = "error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "status": "error",
            "error": self.kind,
            "message": self.message,
        }
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationFailed(InventoryError):
    """Required field missing or malformed."""

    status_code = 422
    kind = "validation_error"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, {"field": field} if field else None)
        self.field = field


class PermissionDenied(InventoryError):
    """Role check failed."""

    status_code = 403
    kind = "permission_error"


class AuthenticationFailed(InventoryError):
    status_code = 401
    kind = "authentication_error"


class NotFoundError(InventoryError):
    """Update/delete target absent."""

    status_code = 404
    kind = "not_found"

    def __init__(self, table: str, entity_id: str):
        super().__init__(f"{table} record {entity_id} not found", {"table": table, "id": entity_id})
        self.table = table
        self.entity_id = entity_id


class StoreError(InventoryError):
    """Backend call failed or returned an error payload."""

    status_code = 502
    kind = "store_error"


class ConflictError(StoreError):
    """Write rejected because other rows still reference the target (or a uniqueness rule)."""

    status_code = 409
    kind = "conflict"


class ScopeUnresolved(InventoryError):
    """A scoped operation was attempted before an organization was selected."""

    status_code = 409
    kind = "scope_unresolved"


class ConfirmationRequired(InventoryError):
    """Destructive operation invoked without the explicit confirmation step."""

    status_code = 428
    kind = "confirmation_required"


class SubmissionInProgress(InventoryError):
    """A dialog already has a request in flight."""

    status_code = 409
    kind = "submission_in_progress"
