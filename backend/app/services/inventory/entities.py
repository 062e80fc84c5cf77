"""
entities.py — Entity Services (categories, models, products, users,
organizations, notifications)

Purpose:
- The list/create/update/delete contract behind every dialog and endpoint.
- Validation happens here, before the store is called.
- Permission gates happen here, before validation and before the store.
- Organization scoping happens here: scoped reads go through
  `scope.run_scoped` (queued while no organization is selected), scoped
  writes require a resolved scope. The scope is checked before the role
  gate; the effective role only exists once an organization is selected.
- After every successful write the session's invalidation bus is notified.

Ordering:
- categories, models, organizations → name
- users, products                   → created_at, newest first
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from app.core.errors import NotFoundError, StoreError, ValidationFailed
from app.core.logging import get_logger
from app.core.permissions import Role, membership_role_for
from app.services.inventory.session import SessionContext
from app.services.inventory.types import (
    CATEGORIES,
    MEMBERSHIPS,
    MODELS,
    NOTIFICATIONS,
    ORGANIZATIONS,
    PRODUCTS,
    USERS,
    Category,
    Notification,
    Organization,
    Product,
    ProductModel,
    Record,
    User,
    UserOrganization,
)

logger = get_logger(__name__)

Fields = Dict[str, Any]

GLOBAL_ROLES = (Role.ADMIN.value, Role.EDITOR.value, Role.COMMON.value)


# -----------------------------------------------------------------------------
# Field validation helpers
# -----------------------------------------------------------------------------

def _text(fields: Fields, name: str, required: bool = True) -> Optional[str]:
    value = fields.get(name)
    if value is None:
        if required:
            raise ValidationFailed(f"{name} is required", field=name)
        return None
    if not isinstance(value, str):
        raise ValidationFailed(f"{name} must be text", field=name)
    value = value.strip()
    if required and not value:
        raise ValidationFailed(f"{name} is required", field=name)
    return value or None


def _integer(fields: Fields, name: str, minimum: int, default: Optional[int] = None) -> int:
    value = fields.get(name, default)
    if value is None:
        raise ValidationFailed(f"{name} is required", field=name)
    if isinstance(value, bool):
        raise ValidationFailed(f"{name} must be a whole number", field=name)
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        value = int(value.strip())
    if not isinstance(value, int):
        raise ValidationFailed(f"{name} must be a whole number", field=name)
    if value < minimum:
        raise ValidationFailed(f"{name} must be at least {minimum}", field=name)
    return value


def _money(fields: Fields, name: str) -> Optional[float]:
    value = fields.get(name)
    if value is None or value == "":
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        raise ValidationFailed(f"{name} must be a number", field=name) from None
    if amount < 0:
        raise ValidationFailed(f"{name} cannot be negative", field=name)
    return amount


def _iso_date(fields: Fields, name: str) -> Optional[str]:
    value = fields.get(name)
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10]).isoformat()
        except ValueError:
            pass
    raise ValidationFailed(f"{name} must be an ISO date (YYYY-MM-DD)", field=name)


def _only(fields: Fields, allowed: Iterable[str]) -> Fields:
    allowed = set(allowed)
    return {k: v for k, v in fields.items() if k in allowed}


# -----------------------------------------------------------------------------
# Base service
# -----------------------------------------------------------------------------

class EntityService:
    table: str = ""
    record_type = Record
    order_by = "name"
    descending = False
    editable_fields: Sequence[str] = ()

    def __init__(self, session: SessionContext):
        self.session = session
        self.store = session.store

    # Dialog form support
    def default_form(self) -> Fields:
        return {}

    def form_from(self, record: Record) -> Fields:
        return {name: getattr(record, name, None) for name in self.editable_fields}

    # Contract
    def list(self):
        raise NotImplementedError

    def create(self, fields: Fields):
        raise NotImplementedError

    def update(self, entity_id: str, fields: Fields):
        raise NotImplementedError

    def delete(self, entity_id: str) -> None:
        raise NotImplementedError

    # Shared plumbing
    def _changed(self, table: Optional[str] = None) -> None:
        self.session.bus.publish(table or self.table)

    def _existing(self, entity_id: str, org_id: Optional[str] = None) -> Dict[str, Any]:
        row = self.store.get(self.table, entity_id)
        if row is None or (org_id is not None and row.get("organization_id") != org_id):
            raise NotFoundError(self.table, entity_id)
        return row


class ScopedEntityService(EntityService):
    """Entities owned by the organization the session is scoped to."""

    def list(self):
        return self.session.scope.run_scoped(self.list_in)

    def list_in(self, org_id: str) -> List[Record]:
        rows = self.store.select(
            self.table, {"organization_id": org_id}, order_by=self.order_by, descending=self.descending
        )
        return self._decorate(rows, org_id)

    def _decorate(self, rows: List[Dict[str, Any]], org_id: str) -> List[Record]:
        return [self.record_type.from_row(row) for row in rows]

    def get(self, entity_id: str) -> Record:
        org_id = self.session.scope.require_org_id()
        row = self._existing(entity_id, org_id)
        return self._decorate([row], org_id)[0]

    def delete(self, entity_id: str) -> None:
        org_id = self.session.scope.require_org_id()
        self._gate("delete")
        self._existing(entity_id, org_id)
        try:
            self.store.delete(self.table, entity_id)
        except StoreError:
            logger.exception("Failed to delete %s %s", self.table, entity_id)
            raise
        logger.info("Deleted %s %s", self.table, entity_id)
        self._changed()

    def _gate(self, action: str) -> None:
        raise NotImplementedError


# -----------------------------------------------------------------------------
# Categories
# -----------------------------------------------------------------------------

class CategoryService(ScopedEntityService):
    table = CATEGORIES
    record_type = Category
    editable_fields = ("name", "description")

    def default_form(self) -> Fields:
        return {"name": "", "description": ""}

    def _gate(self, action: str) -> None:
        self.session.require_administer(f"{action} categories")

    def create(self, fields: Fields) -> Category:
        org_id = self.session.scope.require_org_id()
        self._gate("create")
        values = {
            "name": _text(fields, "name"),
            "description": _text(fields, "description", required=False),
            "organization_id": org_id,
        }
        row = self.store.insert(self.table, values)
        logger.info("Created category %s in %s", row["id"], org_id)
        self._changed()
        return Category.from_row(row)

    def update(self, entity_id: str, fields: Fields) -> Category:
        org_id = self.session.scope.require_org_id()
        self._gate("edit")
        fields = _only(fields, self.editable_fields)
        changes: Fields = {}
        if "name" in fields:
            changes["name"] = _text(fields, "name")
        if "description" in fields:
            changes["description"] = _text(fields, "description", required=False)
        self._existing(entity_id, org_id)
        row = self.store.update(self.table, entity_id, changes)
        self._changed()
        return Category.from_row(row)


# -----------------------------------------------------------------------------
# Models
# -----------------------------------------------------------------------------

class ModelService(ScopedEntityService):
    table = MODELS
    record_type = ProductModel
    editable_fields = ("name", "brand", "category_id")

    def default_form(self) -> Fields:
        return {"name": "", "brand": "", "category_id": ""}

    def _gate(self, action: str) -> None:
        self.session.require_administer(f"{action} models")

    def _decorate(self, rows, org_id):
        categories = {c["id"]: c for c in self.store.select(CATEGORIES, {"organization_id": org_id})}
        return [ProductModel.from_row({**row, "category": categories.get(row["category_id"])}) for row in rows]

    def _category_in_scope(self, fields: Fields, org_id: str) -> str:
        category_id = _text(fields, "category_id")
        category = self.store.get(CATEGORIES, category_id)
        if category is None or category.get("organization_id") != org_id:
            raise ValidationFailed("category_id must reference a category of this organization", field="category_id")
        return category_id

    def create(self, fields: Fields) -> ProductModel:
        org_id = self.session.scope.require_org_id()
        self._gate("create")
        values = {
            "name": _text(fields, "name"),
            "brand": _text(fields, "brand"),
            "category_id": self._category_in_scope(fields, org_id),
            "organization_id": org_id,
        }
        row = self.store.insert(self.table, values)
        logger.info("Created model %s in %s", row["id"], org_id)
        self._changed()
        return self._decorate([row], org_id)[0]

    def update(self, entity_id: str, fields: Fields) -> ProductModel:
        org_id = self.session.scope.require_org_id()
        self._gate("edit")
        fields = _only(fields, self.editable_fields)
        changes: Fields = {}
        if "name" in fields:
            changes["name"] = _text(fields, "name")
        if "brand" in fields:
            changes["brand"] = _text(fields, "brand")
        if "category_id" in fields:
            changes["category_id"] = self._category_in_scope(fields, org_id)
        self._existing(entity_id, org_id)
        row = self.store.update(self.table, entity_id, changes)
        if "category_id" in changes:
            # Products carry a copy of their model's category
            for product in self.store.select(PRODUCTS, {"model_id": entity_id}):
                if product["category_id"] != changes["category_id"]:
                    self.store.update(PRODUCTS, product["id"], {"category_id": changes["category_id"]})
        self._changed()
        return self._decorate([row], org_id)[0]


# -----------------------------------------------------------------------------
# Products
# -----------------------------------------------------------------------------

class ProductService(ScopedEntityService):
    table = PRODUCTS
    record_type = Product
    order_by = "created_at"
    descending = True
    editable_fields = ("name", "model_id", "category_id", "quantity", "min_quantity", "value", "expiry_date")

    def default_form(self) -> Fields:
        return {
            "name": "",
            "category_id": "",
            "model_id": "",
            "quantity": 1,
            "min_quantity": 1,
            "value": None,
            "expiry_date": None,
        }

    def _gate(self, action: str) -> None:
        self.session.require_mutate(f"{action} products")

    def _decorate(self, rows, org_id):
        categories = {c["id"]: c for c in self.store.select(CATEGORIES, {"organization_id": org_id})}
        models = {m["id"]: m for m in self.store.select(MODELS, {"organization_id": org_id})}
        decorated = []
        for row in rows:
            model = models.get(row["model_id"])
            if model is not None:
                model = {**model, "category": categories.get(model["category_id"])}
            decorated.append(
                Product.from_row({**row, "model": model, "category": categories.get(row["category_id"])})
            )
        return decorated

    def _model_in_scope(self, model_id: Optional[str], org_id: str) -> Dict[str, Any]:
        model = self.store.get(MODELS, model_id) if model_id else None
        if model is None or model.get("organization_id") != org_id:
            raise ValidationFailed("model_id must reference a model of this organization", field="model_id")
        return model

    @staticmethod
    def _category_matches(fields: Fields, model: Dict[str, Any]) -> str:
        category_id = fields.get("category_id") or model["category_id"]
        if category_id != model["category_id"]:
            raise ValidationFailed("category_id must match the model's category", field="category_id")
        return category_id

    def create(self, fields: Fields) -> Product:
        org_id = self.session.scope.require_org_id()
        self._gate("create")
        name = _text(fields, "name")
        model = self._model_in_scope(_text(fields, "model_id"), org_id)
        values = {
            "name": name,
            "model_id": model["id"],
            "category_id": self._category_matches(fields, model),
            "organization_id": org_id,
            "quantity": _integer(fields, "quantity", 0, default=1),
            "min_quantity": _integer(fields, "min_quantity", 1, default=1),
            "value": _money(fields, "value"),
            "expiry_date": _iso_date(fields, "expiry_date"),
        }
        row = self.store.insert(self.table, values)
        logger.info("Created product %s in %s", row["id"], org_id)
        self._changed()
        return self._decorate([row], org_id)[0]

    def update(self, entity_id: str, fields: Fields) -> Product:
        org_id = self.session.scope.require_org_id()
        self._gate("edit")
        fields = _only(fields, self.editable_fields)
        changes: Fields = {}
        if "name" in fields:
            changes["name"] = _text(fields, "name")
        if "quantity" in fields:
            changes["quantity"] = _integer(fields, "quantity", 0)
        if "min_quantity" in fields:
            changes["min_quantity"] = _integer(fields, "min_quantity", 1)
        if "value" in fields:
            changes["value"] = _money(fields, "value")
        if "expiry_date" in fields:
            changes["expiry_date"] = _iso_date(fields, "expiry_date")
        existing = self._existing(entity_id, org_id)
        if "model_id" in fields or "category_id" in fields:
            model = self._model_in_scope(fields.get("model_id") or existing["model_id"], org_id)
            changes["model_id"] = model["id"]
            changes["category_id"] = self._category_matches(fields, model)
        row = self.store.update(self.table, entity_id, changes)
        self._changed()
        return self._decorate([row], org_id)[0]

    def set_quantity(self, entity_id: str, quantity: int) -> Product:
        """Store write behind the dashboard's +/- buttons."""
        org_id = self.session.scope.require_org_id()
        self.session.require_mutate("change quantities")
        quantity = _integer({"quantity": quantity}, "quantity", 0)
        self._existing(entity_id, org_id)
        row = self.store.update(self.table, entity_id, {"quantity": quantity})
        self._changed()
        return Product.from_row(row)


# -----------------------------------------------------------------------------
# Notifications
# -----------------------------------------------------------------------------

class NotificationService(EntityService):
    table = NOTIFICATIONS
    record_type = Notification
    order_by = "created_at"
    descending = True

    def list(self, limit: Optional[int] = None):
        return self.session.scope.run_scoped(lambda org_id: self.unread_in(org_id, limit))

    def unread_in(self, org_id: str, limit: Optional[int] = None) -> List[Notification]:
        """
        Unread notifications, newest first, for products of `org_id`.
        Notifications without a product are shown in every organization.
        """
        products = {p["id"]: p for p in self.store.select(PRODUCTS, {"organization_id": org_id})}
        rows = self.store.select(self.table, {"is_read": False}, order_by=self.order_by, descending=True)
        visible = [
            Notification.from_row({**row, "product_name": products[row["product_id"]]["name"]})
            if row.get("product_id") in products
            else Notification.from_row(row)
            for row in rows
            if row.get("product_id") is None or row.get("product_id") in products
        ]
        return visible[:limit] if limit is not None else visible

    def _visible_in(self, row: Dict[str, Any], org_id: str) -> bool:
        product_id = row.get("product_id")
        if product_id is None:
            return True
        product = self.store.get(PRODUCTS, product_id)
        return product is not None and product.get("organization_id") == org_id

    def mark_read(self, entity_id: str) -> Notification:
        """Mark one notification read; only notifications visible in the active organization."""
        org_id = self.session.scope.require_org_id()
        row = self.store.get(self.table, entity_id)
        if row is None or not self._visible_in(row, org_id):
            raise NotFoundError(self.table, entity_id)
        row = self.store.update(self.table, entity_id, {"is_read": True})
        self._changed()
        return Notification.from_row(row)


# -----------------------------------------------------------------------------
# Organizations (global, admin managed)
# -----------------------------------------------------------------------------

class OrganizationService(EntityService):
    table = ORGANIZATIONS
    record_type = Organization
    editable_fields = ("name", "description")

    def default_form(self) -> Fields:
        return {"name": "", "description": ""}

    def list(self) -> List[Organization]:
        rows = self.store.select(self.table, order_by="name")
        if not self.session.is_admin:
            member_of = {m.organization_id for m in self.session.scope.memberships}
            rows = [row for row in rows if row["id"] in member_of]
        return [Organization.from_row(row) for row in rows]

    def create(self, fields: Fields) -> Organization:
        self.session.require_global_admin("create organizations")
        values = {
            "name": _text(fields, "name"),
            "description": _text(fields, "description", required=False),
        }
        row = self.store.insert(self.table, values)
        # The creating administrator becomes an admin member so the new
        # organization can be selected right away.
        self.store.insert(
            MEMBERSHIPS,
            {"user_id": self.session.user.id, "organization_id": row["id"], "role": Role.ADMIN.value},
        )
        logger.info("Created organization %s", row["id"])
        self._changed()
        self._changed(MEMBERSHIPS)
        return Organization.from_row(row)

    def update(self, entity_id: str, fields: Fields) -> Organization:
        self.session.require_global_admin("edit organizations")
        fields = _only(fields, self.editable_fields)
        changes: Fields = {}
        if "name" in fields:
            changes["name"] = _text(fields, "name")
        if "description" in fields:
            changes["description"] = _text(fields, "description", required=False)
        self._existing(entity_id)
        row = self.store.update(self.table, entity_id, changes)
        self._changed()
        return Organization.from_row(row)

    def delete(self, entity_id: str) -> None:
        self.session.require_global_admin("delete organizations")
        self._existing(entity_id)
        try:
            self.store.delete(self.table, entity_id)
        except StoreError:
            logger.exception("Failed to delete organization %s", entity_id)
            raise
        logger.info("Deleted organization %s", entity_id)
        self.session.scope.forget(entity_id)
        self._changed()


# -----------------------------------------------------------------------------
# Users (global, admin managed)
# -----------------------------------------------------------------------------

class UserService(EntityService):
    table = USERS
    record_type = User
    order_by = "created_at"
    descending = True
    editable_fields = ("name", "email", "user_type")

    def default_form(self) -> Fields:
        return {"name": "", "email": "", "user_type": Role.COMMON.value, "organization_ids": []}

    def form_from(self, record: User) -> Fields:
        form = super().form_from(record)
        form["organization_ids"] = [m.organization_id for m in self.memberships_of(record.id)]
        return form

    def list(self) -> List[User]:
        self.session.require_global_admin("manage users")
        rows = self.store.select(self.table, order_by=self.order_by, descending=True)
        return [User.from_row(row) for row in rows]

    def memberships_of(self, user_id: str) -> List[UserOrganization]:
        organizations = {o["id"]: o for o in self.store.select(ORGANIZATIONS)}
        rows = self.store.select(MEMBERSHIPS, {"user_id": user_id}, order_by="created_at")
        return [
            UserOrganization.from_row({**row, "organization": organizations.get(row["organization_id"])})
            for row in rows
        ]

    @staticmethod
    def _email(fields: Fields) -> str:
        email = _text(fields, "email")
        local, _, domain = email.partition("@")
        if not local or not domain:
            raise ValidationFailed("email must be a valid address", field="email")
        return email.lower()

    @staticmethod
    def _user_type(fields: Fields, default: Optional[str] = None) -> str:
        value = fields.get("user_type", fields.get("role", default))
        if value not in GLOBAL_ROLES:
            raise ValidationFailed(f"user_type must be one of {', '.join(GLOBAL_ROLES)}", field="user_type")
        return value

    def _organization_ids(self, fields: Fields) -> Optional[List[str]]:
        if "organization_ids" not in fields or fields["organization_ids"] is None:
            return None
        org_ids = fields["organization_ids"]
        if isinstance(org_ids, str) or not isinstance(org_ids, (list, tuple, set)):
            raise ValidationFailed("organization_ids must be a list", field="organization_ids")
        known = {o["id"] for o in self.store.select(ORGANIZATIONS)}
        unknown = [org_id for org_id in org_ids if org_id not in known]
        if unknown:
            raise ValidationFailed(f"Unknown organizations: {', '.join(unknown)}", field="organization_ids")
        return list(org_ids)

    def set_memberships(self, user_id: str, organization_ids: Sequence[str], user_type: Optional[str] = None):
        """Replace the user's membership list in one store operation."""
        self.session.require_global_admin("change memberships")
        organization_ids = self._organization_ids({"organization_ids": organization_ids})
        if user_type is None:
            user_type = self._existing(user_id)["user_type"]
        role = membership_role_for(user_type).value
        rows = self.store.replace_memberships(user_id, [(org_id, role) for org_id in organization_ids])
        self._changed(MEMBERSHIPS)
        return [UserOrganization.from_row(row) for row in rows]

    def create(self, fields: Fields) -> User:
        self.session.require_global_admin("create users")
        values = {
            "name": _text(fields, "name"),
            "email": self._email(fields),
            "user_type": self._user_type(fields, Role.COMMON.value),
        }
        organization_ids = self._organization_ids(fields)
        row = self.store.insert(self.table, values)
        if organization_ids:
            try:
                self.set_memberships(row["id"], organization_ids, values["user_type"])
            except StoreError:
                logger.exception("Memberships for new user %s failed; removing the user", row["id"])
                self.store.delete(self.table, row["id"])
                raise
        logger.info("Created user %s", row["id"])
        self._changed()
        return User.from_row(row)

    def update(self, entity_id: str, fields: Fields) -> User:
        self.session.require_global_admin("edit users")
        changes: Fields = {}
        if "name" in fields:
            changes["name"] = _text(fields, "name")
        if "email" in fields:
            changes["email"] = self._email(fields)
        if "user_type" in fields or "role" in fields:
            changes["user_type"] = self._user_type(fields)
        organization_ids = self._organization_ids(fields)
        self._existing(entity_id)
        row = self.store.update(self.table, entity_id, changes) if changes else self.store.get(self.table, entity_id)
        if organization_ids is not None:
            self.set_memberships(entity_id, organization_ids, row["user_type"])
        user = User.from_row(row)
        if entity_id == self.session.user.id:
            self.session.user = user
            self.session.storage.save_user(user)
        self._changed()
        return user

    def delete(self, entity_id: str) -> None:
        self.session.require_global_admin("delete users")
        self._existing(entity_id)
        try:
            self.store.delete(self.table, entity_id)
        except StoreError:
            logger.exception("Failed to delete user %s", entity_id)
            raise
        logger.info("Deleted user %s", entity_id)
        if self.session.registry is not None:
            self.session.registry.close_user(entity_id)
        self._changed()


SERVICES = {
    CATEGORIES: CategoryService,
    MODELS: ModelService,
    PRODUCTS: ProductService,
    ORGANIZATIONS: OrganizationService,
    USERS: UserService,
    NOTIFICATIONS: NotificationService,
}


def service_for(table: str, session: SessionContext) -> EntityService:
    try:
        return SERVICES[table](session)
    except KeyError:
        raise ValueError(f"No service for table {table!r}") from None
