"""
dashboard.py — Dashboard Endpoints

Purpose:
- Counters for the active organization (total products, low stock,
  expiring soon, unread notifications), recomputed on every request.
- Product list with a per-product status and a case-insensitive search
  over product name, model name and brand.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import get_session
from app.services.inventory.session import SessionContext
from app.services.inventory.types import Notification, Product

router = APIRouter(
    prefix="/dashboard",
    tags=["dashboard"]
)


class DashboardProduct(BaseModel):
    product: Product
    status: str


class DashboardOut(BaseModel):
    organization_id: Optional[str] = None
    total_count: int
    low_stock_count: int
    expiring_soon_count: int
    unread_notification_count: int
    notifications: List[Notification]
    can_mutate: bool


@router.get("", response_model=DashboardOut)
def get_dashboard(session: SessionContext = Depends(get_session)):
    dashboard = session.dashboard
    summary = dashboard.summary()
    return DashboardOut(
        organization_id=session.scope.org_id,
        notifications=dashboard.notifications,
        can_mutate=session.can_mutate,
        **summary.to_dict(),
    )


@router.get("/products", response_model=List[DashboardProduct])
def search_products(
    q: Optional[str] = Query(None, description="Matches product name, model name or brand"),
    session: SessionContext = Depends(get_session),
):
    dashboard = session.dashboard
    return [DashboardProduct(product=p, status=dashboard.status_of(p)) for p in dashboard.search(q)]
