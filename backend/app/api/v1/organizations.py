"""
organizations.py — Organization Scope & Management Endpoints

Purpose:
- List the caller's memberships and switch the active organization.
- Organization CRUD for global administrators.

Data Flow:
Client → FastAPI Router → OrganizationScope / OrganizationService → Entity Store → response
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from app.api.deps import get_session, organization_service
from app.core.errors import ConfirmationRequired
from app.services.inventory.entities import OrganizationService
from app.services.inventory.session import SessionContext
from app.services.inventory.types import Organization, UserOrganization

router = APIRouter(
    prefix="/organizations",
    tags=["organizations"]
)

# -----------------------------------------------------------------------------
# Schemas
# -----------------------------------------------------------------------------

class ScopeRequest(BaseModel):
    organization_id: str


class OrganizationIn(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


# -----------------------------------------------------------------------------
# Scope
# -----------------------------------------------------------------------------

@router.get("/memberships", response_model=List[UserOrganization])
def list_memberships(session: SessionContext = Depends(get_session)):
    """GET /organizations/memberships — the caller's memberships, oldest first."""
    # Also drops the active organization if its membership is gone
    session.reload_memberships()
    return list(session.scope.memberships)


@router.post("/scope")
def switch_scope(payload: ScopeRequest, session: SessionContext = Depends(get_session)):
    """
    POST /organizations/scope

    Make `organization_id` the active organization. The caller must be a
    member of it (403 otherwise).
    """
    session.scope.switch(payload.organization_id)
    return session.to_dict()


# -----------------------------------------------------------------------------
# CRUD
# -----------------------------------------------------------------------------

@router.get("", response_model=List[Organization])
def list_organizations(service: OrganizationService = Depends(organization_service)):
    return service.list()


@router.post("", response_model=Organization, status_code=201)
def create_organization(payload: OrganizationIn, service: OrganizationService = Depends(organization_service)):
    return service.create(payload.model_dump(exclude_unset=True))


@router.put("/{organization_id}", response_model=Organization)
def update_organization(
    organization_id: str,
    payload: OrganizationIn,
    service: OrganizationService = Depends(organization_service),
):
    return service.update(organization_id, payload.model_dump(exclude_unset=True))


@router.delete("/{organization_id}", status_code=204)
def delete_organization(
    organization_id: str,
    confirm: bool = Query(False),
    service: OrganizationService = Depends(organization_service),
):
    if not confirm:
        raise ConfirmationRequired("Pass confirm=true to delete this organization")
    service.delete(organization_id)
