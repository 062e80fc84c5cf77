"""
models.py — Product Model Endpoints

Purpose:
- CRUD for the active organization's product models (name + brand, filed
  under one category).
- Writes need the admin membership role in that organization.
- Moving a model to another category moves its products with it.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import model_service, scoped_list
from app.core.errors import ConfirmationRequired
from app.services.inventory.entities import ModelService
from app.services.inventory.types import ProductModel

router = APIRouter(
    prefix="/models",
    tags=["models"]
)


class ModelIn(BaseModel):
    name: Optional[str] = None
    brand: Optional[str] = None
    category_id: Optional[str] = None


@router.get("", response_model=List[ProductModel])
def list_models(service: ModelService = Depends(model_service)):
    return scoped_list(service)


@router.get("/{model_id}", response_model=ProductModel)
def get_model(model_id: str, service: ModelService = Depends(model_service)):
    return service.get(model_id)


@router.post("", response_model=ProductModel, status_code=201)
def create_model(payload: ModelIn, service: ModelService = Depends(model_service)):
    return service.create(payload.model_dump(exclude_unset=True))


@router.put("/{model_id}", response_model=ProductModel)
def update_model(model_id: str, payload: ModelIn, service: ModelService = Depends(model_service)):
    return service.update(model_id, payload.model_dump(exclude_unset=True))


@router.delete("/{model_id}", status_code=204)
def delete_model(
    model_id: str,
    confirm: bool = Query(False),
    service: ModelService = Depends(model_service),
):
    if not confirm:
        raise ConfirmationRequired("Pass confirm=true to delete this model")
    service.delete(model_id)
