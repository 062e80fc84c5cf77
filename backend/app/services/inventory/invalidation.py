"""
invalidation.py — Change Notifications Between Views

Purpose:
- After a successful create/update/delete, tell every view that shows the
  changed table, or a table derived from it, that its data is stale.

Example:
    Deleting a model invalidates product displays (products show model
    name and brand), so MODELS → PRODUCTS.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Callable, Dict, List, Set, Tuple

from app.core.logging import get_logger
from app.services.inventory.types import (
    CATEGORIES,
    MEMBERSHIPS,
    MODELS,
    NOTIFICATIONS,
    ORGANIZATIONS,
    PRODUCTS,
    USERS,
)

logger = get_logger(__name__)

Listener = Callable[[str], None]

# Changed table → tables whose displays embed it
DEPENDENTS: Dict[str, Tuple[str, ...]] = {
    ORGANIZATIONS: (MEMBERSHIPS, CATEGORIES, MODELS, PRODUCTS),
    USERS: (MEMBERSHIPS,),
    CATEGORIES: (MODELS, PRODUCTS),
    MODELS: (PRODUCTS,),
    PRODUCTS: (NOTIFICATIONS,),
}


def affected_tables(table: str) -> List[str]:
    """`table` followed by every table that transitively depends on it."""
    ordered: List[str] = []
    pending = [table]
    while pending:
        current = pending.pop(0)
        if current in ordered:
            continue
        ordered.append(current)
        pending.extend(DEPENDENTS.get(current, ()))
    return ordered


class InvalidationBus:
    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)

    def subscribe(self, table: str, listener: Listener) -> Callable[[], None]:
        """Register `listener` for `table`; returns a function that unsubscribes it."""
        self._listeners[table].append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners[table]:
                self._listeners[table].remove(listener)

        return _unsubscribe

    def publish(self, table: str) -> Set[str]:
        """
        Notify listeners of `table` and its dependents.

        A listener registered on several affected tables is called once, with
        the first affected table it is registered for.
        """
        tables = affected_tables(table)
        called: Set[int] = set()
        for affected in tables:
            for listener in list(self._listeners.get(affected, ())):
                if id(listener) in called:
                    continue
                called.add(id(listener))
                listener(affected)
        logger.debug("Invalidated %s after change to %s", ", ".join(tables), table)
        return set(tables)
