"""
dashboard.py — Dashboard Aggregator

Purpose:
- Hold the session's latest product and unread-notification lists.
- Derive the dashboard counters from them on every call (no incremental
  bookkeeping, no cached aggregates).
- Client-side search over the fetched list.
- Quantity +/- with an optimistic local change that is reverted when the
  store write fails.

Definitions:
- low stock      : quantity <= min_quantity
- expiring soon  : expiry_date set and expiry (start of that day, UTC)
                   <= now + EXPIRY_WARNING_DAYS
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, List, Optional, Union

from app.core.config import settings
from app.core.errors import NotFoundError, StoreError
from app.core.logging import get_logger
from app.services.inventory.entities import NotificationService, ProductService
from app.services.inventory.scope import DEFERRED
from app.services.inventory.types import CATEGORIES, MODELS, NOTIFICATIONS, PRODUCTS, Notification, Product

logger = get_logger(__name__)

STATUS_LOW_STOCK = "low_stock"
STATUS_EXPIRING_SOON = "expiring_soon"
STATUS_OK = "ok"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Pure projections
# -----------------------------------------------------------------------------

def is_low_stock(product: Product) -> bool:
    return product.quantity <= product.min_quantity


def expiry_moment(value: Union[date, datetime, str, None]) -> Optional[datetime]:
    """The instant a product expires: midnight UTC of its expiry date."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00")) if "T" in value else date.fromisoformat(value)
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def is_expiring_soon(product: Product, now: Optional[datetime] = None, days: int = 30) -> bool:
    moment = expiry_moment(product.expiry_date)
    if moment is None:
        return False
    now = now or _utcnow()
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    return moment <= now + timedelta(days=days)


def product_status(product: Product, now: Optional[datetime] = None, days: int = 30) -> str:
    if is_low_stock(product):
        return STATUS_LOW_STOCK
    if is_expiring_soon(product, now, days):
        return STATUS_EXPIRING_SOON
    return STATUS_OK


def filter_products(products: List[Product], term: Optional[str]) -> List[Product]:
    """Case-insensitive substring match on product name, model name and model brand."""
    needle = (term or "").strip().lower()
    if not needle:
        return list(products)

    def _matches(product: Product) -> bool:
        haystacks = [product.name]
        if product.model is not None:
            haystacks.extend([product.model.name, product.model.brand])
        return any(needle in (text or "").lower() for text in haystacks)

    return [product for product in products if _matches(product)]


@dataclass
class DashboardSummary:
    total_count: int
    low_stock_count: int
    expiring_soon_count: int
    unread_notification_count: int

    def to_dict(self) -> dict:
        return asdict(self)


def summarize(
    products: List[Product],
    notifications: List[Notification],
    now: Optional[datetime] = None,
    days: int = 30,
) -> DashboardSummary:
    now = now or _utcnow()
    return DashboardSummary(
        total_count=len(products),
        low_stock_count=sum(1 for p in products if is_low_stock(p)),
        expiring_soon_count=sum(1 for p in products if is_expiring_soon(p, now, days)),
        unread_notification_count=len(notifications),
    )


# -----------------------------------------------------------------------------
# Session-bound view
# -----------------------------------------------------------------------------

class Dashboard:
    def __init__(
        self,
        session,
        expiry_days: Optional[int] = None,
        notification_limit: Optional[int] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.session = session
        self.expiry_days = expiry_days if expiry_days is not None else settings.EXPIRY_WARNING_DAYS
        self.notification_limit = (
            notification_limit if notification_limit is not None else settings.NOTIFICATION_LIMIT
        )
        self._clock = clock or _utcnow
        self._products_service = ProductService(session)
        self._notifications_service = NotificationService(session)

        self.products: List[Product] = []
        self.notifications: List[Notification] = []
        self.stale = True
        self.last_error: Optional[StoreError] = None
        self._load_queued = False

        for table in (PRODUCTS, MODELS, CATEGORIES, NOTIFICATIONS):
            session.bus.subscribe(table, self._invalidate)
        session.scope.on_switch(lambda _previous, _new: self._invalidate(PRODUCTS))

    def _invalidate(self, _table: str) -> None:
        self.stale = True

    # ------------------------------------------------------------------ #
    # Loading
    def refresh(self) -> bool:
        """
        Re-fetch products and notifications for the current scope.

        Returns False when no organization is selected yet (nothing fetched).
        Raises StoreError when the product list cannot be loaded.
        """
        if self._load_queued:
            return False
        result = self.session.scope.run_scoped(self._load)
        if result is DEFERRED:
            # Runs once the scope resolves
            self._load_queued = True
            self.products = []
            self.notifications = []
            self.stale = True
            return False
        return True

    def _load(self, org_id: str) -> bool:
        self._load_queued = False
        self.products = self._products_service.list_in(org_id)
        self.stale = False
        self._load_notifications(org_id)
        return True

    def reload_notifications(self) -> None:
        if self.session.scope.is_resolved:
            self._load_notifications(self.session.scope.org_id)

    def _load_notifications(self, org_id: str) -> None:
        try:
            notifications = self._notifications_service.unread_in(org_id, limit=self.notification_limit)
        except StoreError as e:
            # Advisory data: keep the previous list and record the error
            logger.warning("Could not load notifications: %s", e)
            self.last_error = e
            return
        self.last_error = None
        self.notifications = notifications

    def _ensure_fresh(self) -> None:
        if self.stale:
            self.refresh()

    # ------------------------------------------------------------------ #
    # Projections
    def summary(self, now: Optional[datetime] = None) -> DashboardSummary:
        self._ensure_fresh()
        return summarize(self.products, self.notifications, now or self._clock(), self.expiry_days)

    def search(self, term: Optional[str]) -> List[Product]:
        self._ensure_fresh()
        return filter_products(self.products, term)

    def status_of(self, product: Product, now: Optional[datetime] = None) -> str:
        return product_status(product, now or self._clock(), self.expiry_days)

    # ------------------------------------------------------------------ #
    # Actions
    def adjust_quantity(self, product_id: str, delta: int) -> Optional[Product]:
        """
        Change a product's quantity by `delta`.

        Returns None (and changes nothing) when the result would be negative.
        Raises PermissionDenied for read-only roles, StoreError after
        reverting the local change when the store write fails.
        """
        self._ensure_fresh()
        index = next((i for i, p in enumerate(self.products) if p.id == product_id), None)
        if index is None:
            raise NotFoundError(PRODUCTS, product_id)

        current = self.products[index]
        new_quantity = current.quantity + delta
        if new_quantity < 0:
            return None

        self.session.require_mutate("change quantities")

        # Optimistic local update
        self.products[index] = current.model_copy(update={"quantity": new_quantity})
        try:
            self._products_service.set_quantity(product_id, new_quantity)
        except StoreError:
            self.products[index] = current
            logger.exception("Quantity update for %s failed; reverted to %d", product_id, current.quantity)
            raise

        # The write itself marked the list stale; the local copy is already current
        self.stale = False
        self.reload_notifications()
        return self.products[index]

    def mark_notification_read(self, notification_id: str) -> Notification:
        was_fresh = not self.stale
        notification = self._notifications_service.mark_read(notification_id)
        self.notifications = [n for n in self.notifications if n.id != notification_id]
        # Only this list changed; keep a fresh view fresh
        self.stale = not was_fresh
        return notification
