"""
fixtures.py — Demo Data for the In-Memory Store

Two organizations, three users (one per global role), a small catalog and a
few notifications. Timestamps are fixed so list ordering is predictable.
"""

from __future__ import annotations

import copy
from typing import Dict, List

from app.services.inventory.types import (
    CATEGORIES,
    MEMBERSHIPS,
    MODELS,
    NOTIFICATIONS,
    ORGANIZATIONS,
    PRODUCTS,
    USERS,
)
from app.services.store.base import EntityStore, Row

ORG_MAIN = "org-main"
ORG_SOUTH = "org-south"


def _ts(day: int, hour: int = 9) -> str:
    return f"2024-01-{day:02d}T{hour:02d}:00:00+00:00"


DEMO_DATA: Dict[str, List[Row]] = {
    ORGANIZATIONS: [
        {
            "id": ORG_MAIN,
            "name": "LAQUS Principal",
            "description": "Main office",
            "created_at": _ts(1),
            "updated_at": _ts(1),
        },
        {
            "id": ORG_SOUTH,
            "name": "LAQUS Filial Sul",
            "description": "Southern branch",
            "created_at": _ts(2),
            "updated_at": _ts(2),
        },
    ],
    USERS: [
        {"id": "user-admin", "name": "Admin Sistema", "email": "admin@empresa.com", "user_type": "admin",
         "created_at": _ts(1), "updated_at": _ts(1)},
        {"id": "user-editor", "name": "Edna Editor", "email": "editor@empresa.com", "user_type": "editor",
         "created_at": _ts(3), "updated_at": _ts(3)},
        {"id": "user-common", "name": "Vitor Viewer", "email": "viewer@empresa.com", "user_type": "common",
         "created_at": _ts(4), "updated_at": _ts(4)},
    ],
    MEMBERSHIPS: [
        {"id": "uo-1", "user_id": "user-admin", "organization_id": ORG_MAIN, "role": "admin", "created_at": _ts(1, 10)},
        {"id": "uo-2", "user_id": "user-admin", "organization_id": ORG_SOUTH, "role": "admin", "created_at": _ts(2, 10)},
        {"id": "uo-3", "user_id": "user-editor", "organization_id": ORG_MAIN, "role": "editor", "created_at": _ts(3, 10)},
        {"id": "uo-4", "user_id": "user-common", "organization_id": ORG_MAIN, "role": "viewer", "created_at": _ts(4, 10)},
    ],
    CATEGORIES: [
        {"id": "cat-notebooks", "name": "Notebooks", "description": "Laptops for staff",
         "organization_id": ORG_MAIN, "created_at": _ts(5), "updated_at": _ts(5)},
        {"id": "cat-monitors", "name": "Monitors", "description": None,
         "organization_id": ORG_MAIN, "created_at": _ts(5, 11), "updated_at": _ts(5, 11)},
        {"id": "cat-supplies", "name": "Supplies", "description": "Consumables",
         "organization_id": ORG_SOUTH, "created_at": _ts(6), "updated_at": _ts(6)},
    ],
    MODELS: [
        {"id": "model-thinkpad", "name": "ThinkPad", "brand": "Lenovo", "category_id": "cat-notebooks",
         "organization_id": ORG_MAIN, "created_at": _ts(7), "updated_at": _ts(7)},
        {"id": "model-ultrasharp", "name": "UltraSharp 27", "brand": "Dell", "category_id": "cat-monitors",
         "organization_id": ORG_MAIN, "created_at": _ts(7, 11), "updated_at": _ts(7, 11)},
        {"id": "model-toner", "name": "Toner 85A", "brand": "HP", "category_id": "cat-supplies",
         "organization_id": ORG_SOUTH, "created_at": _ts(8), "updated_at": _ts(8)},
    ],
    PRODUCTS: [
        {"id": "prod-notebook-dev", "name": "Notebook Dev", "model_id": "model-thinkpad",
         "category_id": "cat-notebooks", "organization_id": ORG_MAIN, "quantity": 4, "min_quantity": 2,
         "value": 7500.0, "expiry_date": None, "created_at": _ts(10), "updated_at": _ts(10)},
        {"id": "prod-monitor", "name": "Design Monitor", "model_id": "model-ultrasharp",
         "category_id": "cat-monitors", "organization_id": ORG_MAIN, "quantity": 1, "min_quantity": 2,
         "value": 2300.0, "expiry_date": None, "created_at": _ts(11), "updated_at": _ts(11)},
        {"id": "prod-toner", "name": "Printer Toner", "model_id": "model-toner",
         "category_id": "cat-supplies", "organization_id": ORG_SOUTH, "quantity": 12, "min_quantity": 3,
         "value": 320.0, "expiry_date": "2025-06-30", "created_at": _ts(12), "updated_at": _ts(12)},
    ],
    NOTIFICATIONS: [
        {"id": "notif-1", "type": "low_stock", "message": "Design Monitor is below its minimum stock",
         "product_id": "prod-monitor", "is_read": False, "created_at": _ts(13)},
        {"id": "notif-2", "type": "new_item", "message": "Notebook Dev was added",
         "product_id": "prod-notebook-dev", "is_read": True, "created_at": _ts(10, 12)},
        {"id": "notif-3", "type": "expiry_warning", "message": "Printer Toner expires soon",
         "product_id": "prod-toner", "is_read": False, "created_at": _ts(14)},
    ],
}


def demo_data() -> Dict[str, List[Row]]:
    """A fresh copy of the demo rows."""
    return copy.deepcopy(DEMO_DATA)


# Parents before children so foreign keys resolve
LOAD_ORDER = (ORGANIZATIONS, USERS, MEMBERSHIPS, CATEGORIES, MODELS, PRODUCTS, NOTIFICATIONS)


def load_demo_data(store: EntityStore) -> Dict[str, int]:
    """Insert the demo rows into an empty store; returns rows written per table."""
    data = demo_data()
    return {table: len(store.insert_many(table, data[table])) for table in LOAD_ORDER}
