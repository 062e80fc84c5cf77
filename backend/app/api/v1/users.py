"""
users.py — User Management Endpoints (global administrators only)

Purpose:
- CRUD for users.
- Read and replace a user's organization memberships in one operation.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import user_service
from app.core.errors import ConfirmationRequired
from app.services.inventory.entities import UserService
from app.services.inventory.types import User, UserOrganization

router = APIRouter(
    prefix="/users",
    tags=["users"]
)


class UserIn(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    user_type: Optional[str] = None
    organization_ids: Optional[List[str]] = None


class MembershipsIn(BaseModel):
    organization_ids: List[str]


@router.get("", response_model=List[User])
def list_users(service: UserService = Depends(user_service)):
    return service.list()


@router.post("", response_model=User, status_code=201)
def create_user(payload: UserIn, service: UserService = Depends(user_service)):
    return service.create(payload.model_dump(exclude_unset=True))


@router.put("/{user_id}", response_model=User)
def update_user(user_id: str, payload: UserIn, service: UserService = Depends(user_service)):
    return service.update(user_id, payload.model_dump(exclude_unset=True))


@router.delete("/{user_id}", status_code=204)
def delete_user(
    user_id: str,
    confirm: bool = Query(False),
    service: UserService = Depends(user_service),
):
    if not confirm:
        raise ConfirmationRequired("Pass confirm=true to delete this user")
    service.delete(user_id)


@router.get("/{user_id}/memberships", response_model=List[UserOrganization])
def get_memberships(user_id: str, service: UserService = Depends(user_service)):
    service.session.require_global_admin("view memberships")
    return service.memberships_of(user_id)


@router.put("/{user_id}/memberships", response_model=List[UserOrganization])
def replace_memberships(user_id: str, payload: MembershipsIn, service: UserService = Depends(user_service)):
    """
    PUT /users/{user_id}/memberships

    The user ends up a member of exactly `organization_ids`, with the
    membership role derived from their global role.
    """
    service.set_memberships(user_id, payload.organization_ids)
    return service.memberships_of(user_id)
