"""
cache.py — In-Memory Key-Value Storage

Purpose:
- Hold small per-session values keyed by namespace, most importantly the
  `currentUser` slot that keeps the signed-in identity between requests.
- In-process dict (non-distributed, non-persistent); a single worker process
  is assumed.

Key Notes:
- Keys are "<namespace>:<identifier>"; clearing a namespace drops every key
  under it, which is how logout tears a session down.
- Values are stored as given. Session slots store JSON strings so the layout
  matches what a browser would keep in local storage.
"""

from typing import Any, Dict, Optional

# -----------------------------------------------------------------------------
# Process-wide store
# -----------------------------------------------------------------------------

_cache_store: Dict[str, Any] = {}


def make_key(namespace: str, identifier: Any) -> str:
    """
    Utility to construct consistent cache keys.

    Example:
        make_key("session:ab12", "currentUser") → "session:ab12:currentUser"
    """
    return f"{namespace}:{identifier}"


def cache_get(key: str) -> Any:
    """
    Retrieve cached object if present.
    Returns None if not cached.
    """
    return _cache_store.get(key)


def cache_set(key: str, value: Any) -> None:
    """
    Store object in cache. No TTL.
    """
    _cache_store[key] = value


def cache_delete(key: str) -> None:
    _cache_store.pop(key, None)


def cache_clear(namespace: str = None) -> None:
    """
    Clears cache entirely, or optionally clears only a specific namespace.

    Example:
        cache_clear("session:ab12") clears keys starting with "session:ab12:"
    """
    if namespace is None:
        _cache_store.clear()
    else:
        prefix = f"{namespace}:"
        for key in list(_cache_store.keys()):
            if key.startswith(prefix):
                del _cache_store[key]


# -----------------------------------------------------------------------------
# Namespaced view (local-storage style API)
# -----------------------------------------------------------------------------

class KeyValueStorage:
    """
    A namespace of the process cache exposed with get/set/remove semantics.
    """

    def __init__(self, namespace: str):
        self.namespace = namespace

    def get_item(self, key: str) -> Optional[str]:
        return cache_get(make_key(self.namespace, key))

    def set_item(self, key: str, value: str) -> None:
        cache_set(make_key(self.namespace, key), value)

    def remove_item(self, key: str) -> None:
        cache_delete(make_key(self.namespace, key))

    def clear(self) -> None:
        cache_clear(self.namespace)
