"""
Tests for the entity dialog state machine. Each test drives the dialog on
its own event loop with asyncio.run.
"""

import asyncio
import threading

import pytest

from app.core.cache import KeyValueStorage
from app.core.errors import ConfirmationRequired, ConflictError, SubmissionInProgress, ValidationFailed
from app.services.inventory.dialogs import DialogClosed, DialogState, EntityDialog
from app.services.inventory.entities import CategoryService, ProductService
from app.services.inventory.session import SessionContext, SessionStorage
from app.services.inventory.types import User


class BlockingCategoryService(CategoryService):
    """Holds `create` until the test releases it."""

    def __init__(self, session):
        super().__init__(session)
        self.started = threading.Event()
        self.release = threading.Event()

    def create(self, fields):
        self.started.set()
        self.release.wait(timeout=5)
        return super().create(fields)


async def wait_for(event: threading.Event):
    while not event.is_set():
        await asyncio.sleep(0.01)


def test_open_edit_cancel(admin_session):
    dialog = EntityDialog(CategoryService(admin_session))

    async def scenario():
        items = await dialog.open()
        assert dialog.state == DialogState.OPEN_NEW
        assert [c.name for c in items] == ["Monitors", "Notebooks"]

        dialog.edit(items[0])
        assert dialog.state == DialogState.OPEN_EDITING
        assert dialog.form["name"] == "Monitors"

        dialog.cancel()
        assert dialog.state == DialogState.OPEN_NEW
        assert dialog.editing is None
        assert dialog.form == {"name": "", "description": ""}

    asyncio.run(scenario())


def test_submit_creates_then_closes_and_reloads(admin_session):
    dialog = EntityDialog(CategoryService(admin_session))

    async def scenario():
        await dialog.open()
        dialog.set_field("name", "Peripherals")
        saved = await dialog.submit()
        assert saved.name == "Peripherals"
        assert dialog.state == DialogState.CLOSED
        assert "Peripherals" in [c.name for c in dialog.items]

    asyncio.run(scenario())


def test_submit_update_of_edited_record(editor_session, store):
    dialog = EntityDialog(ProductService(editor_session))

    async def scenario():
        items = await dialog.open()
        monitor = next(p for p in items if p.id == "prod-monitor")
        dialog.edit(monitor)
        dialog.update_form(quantity=5)
        await dialog.submit()

    asyncio.run(scenario())
    assert store.get("products", "prod-monitor")["quantity"] == 5


def test_failed_submit_keeps_dialog_open_with_form(admin_session):
    dialog = EntityDialog(CategoryService(admin_session))

    async def scenario():
        await dialog.open()
        dialog.set_field("description", "no name given")
        with pytest.raises(ValidationFailed):
            await dialog.submit()
        assert dialog.state == DialogState.OPEN_NEW
        assert dialog.form["description"] == "no name given"
        assert not dialog.submitting

    asyncio.run(scenario())


def test_second_submit_while_in_flight_is_rejected(admin_session):
    dialog = EntityDialog(CategoryService(admin_session))

    async def scenario():
        await dialog.open()
        dialog.set_field("name", "Peripherals")
        first = asyncio.create_task(dialog.submit())
        await asyncio.sleep(0)
        assert dialog.state == DialogState.SUBMITTING
        with pytest.raises(SubmissionInProgress):
            await dialog.submit()
        await first

    asyncio.run(scenario())
    assert [c["name"] for c in admin_session.store.select("categories", {"name": "Peripherals"})] == ["Peripherals"]


def test_close_before_sending_drops_the_submission(admin_session, store):
    dialog = EntityDialog(CategoryService(admin_session))

    async def scenario():
        await dialog.open()
        dialog.set_field("name", "Never Saved")
        task = asyncio.create_task(dialog.submit())
        await asyncio.sleep(0)
        dialog.close()
        return await task

    assert asyncio.run(scenario()) is None
    assert store.select("categories", {"name": "Never Saved"}) == []


def test_result_after_close_is_discarded(admin_session):
    service = BlockingCategoryService(admin_session)
    dialog = EntityDialog(service)

    async def scenario():
        await dialog.open()
        items_before = list(dialog.items)
        dialog.set_field("name", "Late")
        task = asyncio.create_task(dialog.submit())
        await wait_for(service.started)
        dialog.close()
        service.release.set()
        result = await task
        return result, items_before

    result, items_before = asyncio.run(scenario())
    assert result is None
    assert dialog.state == DialogState.CLOSED
    assert dialog.items == items_before


def test_delete_needs_confirmation(admin_session, store):
    dialog = EntityDialog(ProductService(admin_session))

    async def scenario():
        await dialog.open()
        with pytest.raises(ConfirmationRequired):
            await dialog.confirm_delete()

        dialog.request_delete("prod-monitor")
        dialog.dismiss_delete()
        with pytest.raises(ConfirmationRequired):
            await dialog.confirm_delete("prod-monitor")

        dialog.request_delete("prod-monitor")
        await dialog.confirm_delete("prod-monitor")
        assert dialog.pending_delete is None
        assert "prod-monitor" not in [p.id for p in dialog.items]

    asyncio.run(scenario())
    assert store.get("products", "prod-monitor") is None


def test_refused_delete_clears_pending_and_keeps_record(admin_session, store):
    dialog = EntityDialog(CategoryService(admin_session))

    async def scenario():
        await dialog.open()
        dialog.request_delete("cat-notebooks")
        with pytest.raises(ConflictError):
            await dialog.confirm_delete()
        assert dialog.pending_delete is None

    asyncio.run(scenario())
    assert store.get("categories", "cat-notebooks") is not None


def test_actions_on_closed_dialog(admin_session):
    dialog = EntityDialog(CategoryService(admin_session))
    with pytest.raises(DialogClosed):
        dialog.set_field("name", "x")


def test_open_without_scope_shows_no_items(store):
    user = User.from_row(store.get("users", "user-admin"))
    session = SessionContext("dialog-unresolved", user, store, SessionStorage(KeyValueStorage("session:d")))
    dialog = EntityDialog(CategoryService(session))

    assert asyncio.run(dialog.open()) == []
    assert session.scope.deferred_count == 1


def test_reopening_without_scope_queues_one_load_that_fills_the_items(store):
    user = User.from_row(store.get("users", "user-admin"))
    session = SessionContext("dialog-queued", user, store, SessionStorage(KeyValueStorage("session:q")))
    dialog = EntityDialog(CategoryService(session))

    async def scenario():
        for _ in range(5):
            await dialog.open()
            dialog.close()
        await dialog.open()

    asyncio.run(scenario())
    assert session.scope.deferred_count == 1
    assert dialog.items == []

    session.load_memberships()

    assert session.scope.deferred_count == 0
    assert [c.name for c in dialog.items] == ["Monitors", "Notebooks"]
