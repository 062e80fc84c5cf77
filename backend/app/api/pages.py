"""
pages.py — Page Routes

Purpose:
- `/`          landing payload (name, description, where to go next)
- `/login`     what the login form posts and the demo accounts hint
- `/dashboard` dashboard page data; redirects to /login without a session
"""

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse

from app.api.deps import optional_session
from app.core.config import settings
from app.services.inventory.session import SessionContext

router = APIRouter(tags=["pages"])


@router.get("/")
def landing():
    return {
        "name": settings.APP_NAME,
        "description": "Multi-organization inventory control for IT equipment and supplies",
        "links": {"login": "/login", "dashboard": "/dashboard", "docs": "/docs"},
    }


@router.get("/login")
def login_page(session: SessionContext = Depends(optional_session)):
    if session is not None:
        return RedirectResponse("/dashboard", status_code=307)
    return {
        "name": settings.APP_NAME,
        "action": "/api/v1/auth/login",
        "fields": ["email", "password"],
    }


@router.get("/dashboard")
def dashboard_page(session: SessionContext = Depends(optional_session)):
    if session is None:
        return RedirectResponse("/login", status_code=307)
    dashboard = session.dashboard
    return {
        "session": session.to_dict(),
        "summary": dashboard.summary().to_dict(),
        "memberships": [m.model_dump(mode="json") for m in session.scope.memberships],
    }
