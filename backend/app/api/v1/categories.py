"""
categories.py — Category Endpoints

Purpose:
- CRUD for the active organization's categories.
- Writes need the admin membership role in that organization.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import category_service, scoped_list
from app.core.errors import ConfirmationRequired
from app.services.inventory.entities import CategoryService
from app.services.inventory.types import Category

router = APIRouter(
    prefix="/categories",
    tags=["categories"]
)


class CategoryIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


@router.get("", response_model=List[Category])
def list_categories(service: CategoryService = Depends(category_service)):
    return scoped_list(service)


@router.get("/{category_id}", response_model=Category)
def get_category(category_id: str, service: CategoryService = Depends(category_service)):
    return service.get(category_id)


@router.post("", response_model=Category, status_code=201)
def create_category(payload: CategoryIn, service: CategoryService = Depends(category_service)):
    return service.create(payload.model_dump(exclude_unset=True))


@router.put("/{category_id}", response_model=Category)
def update_category(category_id: str, payload: CategoryIn, service: CategoryService = Depends(category_service)):
    return service.update(category_id, payload.model_dump(exclude_unset=True))


@router.delete("/{category_id}", status_code=204)
def delete_category(
    category_id: str,
    confirm: bool = Query(False),
    service: CategoryService = Depends(category_service),
):
    if not confirm:
        raise ConfirmationRequired("Pass confirm=true to delete this category")
    service.delete(category_id)
