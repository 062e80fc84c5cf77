"""
products.py — Product Endpoints

Purpose:
- CRUD for the active organization's products.
- Quantity +/- through the session's dashboard (optimistic change, reverted
  when the store write fails).
- Writes need the admin or editor membership role.
"""

from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import get_session, product_service, scoped_list
from app.core.errors import ConfirmationRequired
from app.services.inventory.entities import ProductService
from app.services.inventory.session import SessionContext
from app.services.inventory.types import Product

router = APIRouter(
    prefix="/products",
    tags=["products"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class ProductIn(BaseModel):
    """
    Create/update payload. Omitted fields are left unchanged on update;
    on create, quantity and min_quantity default to 1.
    """
    name: Optional[str] = None
    model_id: Optional[str] = None
    category_id: Optional[str] = None
    quantity: Optional[Union[int, str]] = None
    min_quantity: Optional[Union[int, str]] = None
    value: Optional[Union[float, str]] = None
    expiry_date: Optional[str] = None


class AdjustRequest(BaseModel):
    delta: int


class AdjustResponse(BaseModel):
    changed: bool
    product: Product


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.get("", response_model=List[Product])
def list_products(service: ProductService = Depends(product_service)):
    return scoped_list(service)


@router.get("/{product_id}", response_model=Product)
def get_product(product_id: str, service: ProductService = Depends(product_service)):
    return service.get(product_id)


@router.post("", response_model=Product, status_code=201)
def create_product(payload: ProductIn, service: ProductService = Depends(product_service)):
    return service.create(payload.model_dump(exclude_unset=True))


@router.put("/{product_id}", response_model=Product)
def update_product(product_id: str, payload: ProductIn, service: ProductService = Depends(product_service)):
    return service.update(product_id, payload.model_dump(exclude_unset=True))


@router.delete("/{product_id}", status_code=204)
def delete_product(
    product_id: str,
    confirm: bool = Query(False),
    service: ProductService = Depends(product_service),
):
    if not confirm:
        raise ConfirmationRequired("Pass confirm=true to delete this product")
    service.delete(product_id)


@router.post("/{product_id}/adjust", response_model=AdjustResponse)
def adjust_quantity(product_id: str, payload: AdjustRequest, session: SessionContext = Depends(get_session)):
    """
    POST /products/{product_id}/adjust  {"delta": +1 | -1}

    A change that would make the quantity negative is ignored:
    `changed` is false and the product is returned as it was.
    """
    dashboard = session.dashboard
    updated = dashboard.adjust_quantity(product_id, payload.delta)
    if updated is None:
        current = next(p for p in dashboard.products if p.id == product_id)
        return AdjustResponse(changed=False, product=current)
    return AdjustResponse(changed=True, product=updated)
