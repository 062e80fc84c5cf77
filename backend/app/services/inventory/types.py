"""
types.py — Shared Record Types for the Inventory Services

Purpose:
- Typed views over the rows the Entity Store returns (stores speak plain dicts).
- Used as API response models and by the dashboard/dialog logic.

Joined fields (`model`, `category`, `organization`, `product_name`) are filled
in by the services after fetching, never stored.
"""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


# Entity Store table names
USERS = "users"
ORGANIZATIONS = "organizations"
MEMBERSHIPS = "user_organizations"
CATEGORIES = "categories"
MODELS = "models"
PRODUCTS = "products"
NOTIFICATIONS = "notifications"

TABLES = (USERS, ORGANIZATIONS, MEMBERSHIPS, CATEGORIES, MODELS, PRODUCTS, NOTIFICATIONS)


class NotificationType(str, Enum):
    LOW_STOCK = "low_stock"
    EXPIRY_WARNING = "expiry_warning"
    NEW_ITEM = "new_item"


class Record(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, protected_namespaces=())

    id: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]):
        return cls.model_validate(row)


class Organization(Record):
    name: str
    description: Optional[str] = None
    updated_at: Optional[datetime] = None


class User(Record):
    name: str
    email: str
    user_type: str = "common"
    updated_at: Optional[datetime] = None

    @property
    def role(self) -> str:
        return self.user_type


class UserOrganization(Record):
    user_id: str
    organization_id: str
    role: str = "viewer"
    organization: Optional[Organization] = None


class Category(Record):
    name: str
    description: Optional[str] = None
    organization_id: str
    updated_at: Optional[datetime] = None


class ProductModel(Record):
    """A product model (name + brand) in the "models" table."""

    name: str
    brand: str
    category_id: str
    organization_id: str
    updated_at: Optional[datetime] = None
    category: Optional[Category] = None


class Product(Record):
    name: str
    model_id: str
    category_id: str
    organization_id: str
    quantity: int = 1
    min_quantity: int = 1
    value: Optional[float] = None
    expiry_date: Optional[date] = None
    updated_at: Optional[datetime] = None
    model: Optional[ProductModel] = None
    category: Optional[Category] = None


class Notification(Record):
    type: NotificationType
    message: str
    product_id: Optional[str] = None
    is_read: bool = False
    product_name: Optional[str] = None
