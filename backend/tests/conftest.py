"""
Shared fixtures: a demo-seeded memory store with a fixed clock and signed-in
sessions for each demo account.
"""

from datetime import datetime, timezone

import pytest

from app.core.cache import cache_clear
from app.services.inventory.session import SessionRegistry
from app.services.inventory.types import User
from app.services.store.fixtures import demo_data
from app.services.store.memory import MemoryEntityStore

FIXED_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def clear_session_slots():
    cache_clear()
    yield
    cache_clear()


@pytest.fixture
def store() -> MemoryEntityStore:
    return MemoryEntityStore(seed=demo_data(), clock=lambda: FIXED_NOW)


@pytest.fixture
def registry(store) -> SessionRegistry:
    return SessionRegistry(store)


def open_session(registry: SessionRegistry, user_id: str):
    user = User.from_row(registry.store.get("users", user_id))
    return registry.open(user)


@pytest.fixture
def admin_session(registry):
    return open_session(registry, "user-admin")


@pytest.fixture
def editor_session(registry):
    return open_session(registry, "user-editor")


@pytest.fixture
def viewer_session(registry):
    return open_session(registry, "user-common")
