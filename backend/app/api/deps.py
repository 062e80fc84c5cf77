"""
deps.py — Shared FastAPI Dependencies

Purpose:
- Hand routers the application-root objects kept on `app.state`
  (the Entity Store and the SessionRegistry).
- Resolve the signed-in SessionContext from the request token.
- Build per-request entity services bound to that session.
"""

from typing import Optional

from fastapi import Depends, Request

from app.core.errors import AuthenticationFailed
from app.core.security import session_claims
from app.services.inventory.entities import (
    CategoryService,
    ModelService,
    NotificationService,
    OrganizationService,
    ProductService,
    UserService,
)
from app.services.inventory.session import SessionContext, SessionRegistry
from app.services.store.base import EntityStore


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.sessions


def optional_session(request: Request) -> Optional[SessionContext]:
    """Session for the request's token, or None when missing, invalid or closed."""
    claims = session_claims(request)
    if claims is None:
        return None
    session = get_registry(request).get(claims["sid"])
    if session is None or session.user.id != claims["sub"]:
        return None
    return session


def get_session(session: SessionContext = Depends(optional_session)) -> SessionContext:
    if session is None:
        raise AuthenticationFailed("Sign in to continue")
    return session


# -----------------------------------------------------------------------------
# Entity services
# -----------------------------------------------------------------------------

def category_service(session: SessionContext = Depends(get_session)) -> CategoryService:
    return CategoryService(session)


def model_service(session: SessionContext = Depends(get_session)) -> ModelService:
    return ModelService(session)


def product_service(session: SessionContext = Depends(get_session)) -> ProductService:
    return ProductService(session)


def notification_service(session: SessionContext = Depends(get_session)) -> NotificationService:
    return NotificationService(session)


def organization_service(session: SessionContext = Depends(get_session)) -> OrganizationService:
    return OrganizationService(session)


def user_service(session: SessionContext = Depends(get_session)) -> UserService:
    return UserService(session)


def scoped_list(service):
    """
    List an organization-scoped service for an HTTP response.

    Nothing to show until an organization is selected; a request cannot wait
    for the scope to resolve, so no call is queued.
    """
    if not service.session.scope.is_resolved:
        return []
    return service.list()
