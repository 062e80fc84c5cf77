"""
dialogs.py — Entity Dialog State Machine

Purpose:
- Drive one create/edit/delete form for any entity service (category, model,
  product, user, organization) on the asyncio event loop.

States:
    CLOSED ──open()──▶ OPEN_NEW ──edit(E)──▶ OPEN_EDITING
    OPEN_NEW / OPEN_EDITING ──submit()──▶ SUBMITTING ──ok──▶ CLOSED
                                                     └─error─▶ back to the open state
    OPEN_EDITING ──cancel()──▶ OPEN_NEW (form cleared)
    any ──close()──▶ CLOSED (cancels the in-flight submission's token)

Key Rules:
- One submission in flight per dialog; a second submit raises SubmissionInProgress.
- Deletes go through request_delete(id) then confirm_delete(); nothing is
  deleted without the confirmation step.
- A successful write re-fetches the dialog's list. Dependent views are
  notified by the service through the session's invalidation bus.
- Closing the dialog cancels its token: a submission that has not reached the
  store yet is never sent, and a result that arrives after close is dropped.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

from app.core.errors import ConfirmationRequired, InventoryError, StoreError, SubmissionInProgress
from app.core.logging import get_logger
from app.services.inventory.entities import EntityService
from app.services.inventory.scope import DEFERRED
from app.services.inventory.types import Record

logger = get_logger(__name__)


class DialogState(str, Enum):
    CLOSED = "closed"
    OPEN_NEW = "open_new"
    OPEN_EDITING = "open_editing"
    SUBMITTING = "submitting"


class DialogClosed(RuntimeError):
    """Raised when an action needs an open dialog."""


class CancellationToken:
    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class EntityDialog:
    def __init__(self, service: EntityService):
        self.service = service
        self.state = DialogState.CLOSED
        self.editing: Optional[Record] = None
        self.form: Dict[str, Any] = service.default_form()
        self.items: List[Record] = []
        self.pending_delete: Optional[str] = None
        self._token = CancellationToken()
        self._in_flight = False
        self._load_queued = False

    @property
    def is_open(self) -> bool:
        return self.state in (DialogState.OPEN_NEW, DialogState.OPEN_EDITING, DialogState.SUBMITTING)

    @property
    def submitting(self) -> bool:
        return self._in_flight

    # ------------------------------------------------------------------ #
    # Transitions
    async def open(self) -> List[Record]:
        self._token = CancellationToken()
        self._reset_form()
        self.state = DialogState.OPEN_NEW
        await self.reload()
        return self.items

    def edit(self, record: Record) -> None:
        self._require_open()
        self.editing = record
        self.form = self.service.form_from(record)
        self.state = DialogState.OPEN_EDITING

    def cancel(self) -> None:
        self._require_open()
        self._reset_form()
        self.pending_delete = None
        if not self._in_flight:
            self.state = DialogState.OPEN_NEW

    def close(self) -> None:
        if self._in_flight:
            logger.info("Closing %s dialog with a submission in flight; its result will be dropped",
                        self.service.table)
        self._token.cancel()
        self._reset_form()
        self.pending_delete = None
        self.state = DialogState.CLOSED

    def set_field(self, name: str, value: Any) -> None:
        self._require_open()
        self.form[name] = value

    def update_form(self, **fields: Any) -> None:
        self._require_open()
        self.form.update(fields)

    # ------------------------------------------------------------------ #
    # Submission
    async def submit(self) -> Optional[Record]:
        """
        Create or update from the current form.

        Returns the saved record, or None when the dialog was closed before
        the result could be applied. Validation, permission and store errors
        propagate with the dialog left open for another attempt.
        """
        if self._in_flight:
            raise SubmissionInProgress("A save is already in progress")
        self._require_open()

        token = self._token
        editing = self.editing
        previous_state = self.state
        fields = dict(self.form)

        self._in_flight = True
        self.state = DialogState.SUBMITTING
        try:
            # Give close() a chance to run before anything is sent
            await asyncio.sleep(0)
            if token.cancelled:
                logger.info("Dropped %s submission: dialog closed before sending", self.service.table)
                return None
            if editing is not None:
                result = await asyncio.to_thread(self.service.update, editing.id, fields)
            else:
                result = await asyncio.to_thread(self.service.create, fields)
        except InventoryError as e:
            if token.cancelled:
                logger.warning("Dropped %s error after dialog close: %s", self.service.table, e)
                return None
            self.state = previous_state
            raise
        finally:
            self._in_flight = False

        if token.cancelled:
            logger.info("Dropped %s result: dialog closed while saving", self.service.table)
            return None

        self._reset_form()
        self.state = DialogState.CLOSED
        await self.reload()
        return result

    # ------------------------------------------------------------------ #
    # Deletion (confirm gate)
    def request_delete(self, entity_id: str) -> str:
        """First step of a delete: remember the target and ask for confirmation."""
        self._require_open()
        self.pending_delete = entity_id
        return entity_id

    def dismiss_delete(self) -> None:
        self.pending_delete = None

    async def confirm_delete(self, entity_id: Optional[str] = None) -> None:
        if self.pending_delete is None or (entity_id is not None and entity_id != self.pending_delete):
            raise ConfirmationRequired("Confirm the deletion before it is carried out")
        if self._in_flight:
            raise SubmissionInProgress("Another request is already in progress")

        target = self.pending_delete
        token = self._token
        self._in_flight = True
        try:
            await asyncio.to_thread(self.service.delete, target)
        finally:
            self._in_flight = False
            self.pending_delete = None

        if token.cancelled:
            return
        if self.editing is not None and self.editing.id == target:
            self._reset_form()
            self.state = DialogState.OPEN_NEW
        await self.reload()

    # ------------------------------------------------------------------ #
    # Helpers
    async def reload(self) -> List[Record]:
        """
        Re-fetch the dialog's list.

        While no organization is selected, a scoped list is queued once and
        fills `items` when the scope resolves; until then `items` is empty.
        """
        if self._load_queued:
            return self.items
        if getattr(self.service, "list_in", None) is None:
            items = await asyncio.to_thread(self.service.list)
            self.items = [] if items is DEFERRED else list(items)
            return self.items

        scope = self.service.session.scope
        if not scope.is_resolved:
            self._load_queued = True
            self.items = []
            scope.run_scoped(self._load)
            return self.items
        await asyncio.to_thread(scope.run_scoped, self._load)
        return self.items

    def _load(self, org_id: str) -> List[Record]:
        queued = self._load_queued
        self._load_queued = False
        try:
            self.items = list(self.service.list_in(org_id))
        except StoreError as e:
            if not queued:
                raise
            # Runs inside whoever resolved the scope; keep their call working
            logger.warning("Queued %s list failed: %s", self.service.table, e)
            self.items = []
        return self.items

    def _reset_form(self) -> None:
        self.editing = None
        self.form = self.service.default_form()

    def _require_open(self) -> None:
        if self.state == DialogState.CLOSED:
            raise DialogClosed(f"The {self.service.table} dialog is not open")
