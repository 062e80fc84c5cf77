"""
ORM tables for the "sql" Entity Store.

Importing this package registers every table on app.core.database.Base.
"""

from app.models.organization import Organization
from app.models.user import User
from app.models.membership import UserOrganization
from app.models.category import Category
from app.models.catalog_model import CatalogModel
from app.models.product import Product
from app.models.notification import Notification

# Entity Store table name → ORM class
TABLE_MODELS = {
    Organization.__tablename__: Organization,
    User.__tablename__: User,
    UserOrganization.__tablename__: UserOrganization,
    Category.__tablename__: Category,
    CatalogModel.__tablename__: CatalogModel,
    Product.__tablename__: Product,
    Notification.__tablename__: Notification,
}

__all__ = [
    "Organization",
    "User",
    "UserOrganization",
    "Category",
    "CatalogModel",
    "Product",
    "Notification",
    "TABLE_MODELS",
]
