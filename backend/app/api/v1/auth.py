"""
auth.py — Authentication and Session Handling Endpoints (API Layer)

Purpose:
- Sign in (email + shared demo password), sign out, and report the current
  session's identity, organization and role flags.
- Issue the JWT that names the server-side session (core/security.py) and set
  it as the `session` cookie for page routes.

This file should be thin. Login rules live in services/inventory/session.py.
"""

from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel

from app.api.deps import get_registry, get_session, get_store, optional_session
from app.core.config import settings
from app.core.logging import get_logger
from app.core.security import SESSION_COOKIE, create_access_token
from app.services.inventory.session import SessionContext, SessionRegistry, sign_in
from app.services.store.base import EntityStore

logger = get_logger(__name__)

router = APIRouter(
    prefix="/auth",
    tags=["auth"]
)

# -----------------------------------------------------------------------------
# Request / Response Schemas
# -----------------------------------------------------------------------------

class LoginRequest(BaseModel):
    """
    Schema for login POST.
    - `email`: User's login email.
    - `password`: The shared demo password.
    """
    email: str
    password: str


class TokenResponse(BaseModel):
    """
    Response schema when issuing JWT access tokens.
    - `access_token`: Encoded JWT string.
    - `token_type`: 'bearer' for Authorization headers.
    - `session`: identity, selected organization and role flags.
    """
    access_token: str
    token_type: str = "bearer"
    session: dict


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------

@router.post("/login", response_model=TokenResponse)
def login(
    payload: LoginRequest,
    response: Response,
    store: EntityStore = Depends(get_store),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    POST /auth/login

    1. Look up the user by email and compare the shared password.
    2. Open a server-side session (persists `currentUser`, selects the
       first organization membership).
    3. Return a JWT naming that session; also set it as a cookie.
    """
    user = sign_in(store, payload.email, payload.password, settings.DEMO_PASSWORD)
    session = registry.open(user)
    token = create_access_token({"sub": user.id, "sid": session.session_id}, expires_at=session.expires_at)
    response.set_cookie(
        SESSION_COOKIE,
        token,
        httponly=True,
        samesite="lax",
        max_age=settings.JWT_EXPIRE_MINUTES * 60,
    )
    return TokenResponse(access_token=token, session=session.to_dict())


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    registry: SessionRegistry = Depends(get_registry),
):
    """Drop the server-side session and its persisted slots. Always succeeds."""
    session = optional_session(request)
    if session is not None:
        registry.close(session.session_id)
    response.delete_cookie(SESSION_COOKIE)
    return {"status": "ok"}


@router.get("/me")
def me(session: SessionContext = Depends(get_session)):
    return session.to_dict()
