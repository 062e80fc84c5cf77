"""
notifications.py — Notification Endpoints

Purpose:
- Unread notifications for the active organization, newest first.
- Mark one as read.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_session, notification_service
from app.core.config import settings
from app.services.inventory.entities import NotificationService
from app.services.inventory.session import SessionContext
from app.services.inventory.types import Notification

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"]
)


@router.get("", response_model=List[Notification])
def list_notifications(
    limit: Optional[int] = Query(None, ge=1, le=100),
    service: NotificationService = Depends(notification_service),
):
    if not service.session.scope.is_resolved:
        return []
    return service.list(limit or settings.NOTIFICATION_LIMIT)


@router.post("/{notification_id}/read", response_model=Notification)
def mark_read(notification_id: str, session: SessionContext = Depends(get_session)):
    return session.dashboard.mark_notification_read(notification_id)
