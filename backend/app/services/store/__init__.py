"""
Entity Store backends and the startup-time factory that picks one.
"""

from app.core.config import Settings
from app.core.logging import get_logger
from app.services.store.base import EntityStore, Row
from app.services.store.memory import MemoryEntityStore

logger = get_logger(__name__)


def build_entity_store(config: Settings) -> EntityStore:
    """
    Construct the Entity Store named by `config.ENTITY_STORE_BACKEND`.

    Remote backends are imported lazily so the memory backend runs without
    their drivers configured.
    """
    backend = config.ENTITY_STORE_BACKEND

    if backend == "memory":
        from app.services.store.fixtures import demo_data

        store: EntityStore = MemoryEntityStore(seed=demo_data())
    elif backend == "supabase":
        from app.services.store.supabase_store import SupabaseEntityStore

        store = SupabaseEntityStore()
    elif backend == "sql":
        from app.core.database import make_engine
        from app.services.store.sql_store import SqlEntityStore

        store = SqlEntityStore(make_engine(config.SUPABASE_DB_URL))
    else:
        raise ValueError(f"Unknown entity store backend {backend!r}")

    logger.info("Entity store backend: %s", store.backend_name)
    return store


__all__ = ["EntityStore", "MemoryEntityStore", "Row", "build_entity_store"]
