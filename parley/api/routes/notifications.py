"""
parley.api.routes.notifications — Notification inbox endpoints
===============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from parley.api.deps import get_current_user, get_engine
from parley.database.models import User
from parley.services import notification_service
from parley.services.notification_service import NotificationView

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _notification_dict(n: NotificationView) -> dict:
    return {
        "id": n.id,
        "type": n.type,
        "sender_id": n.sender_id,
        "sender_username": n.sender_username,
        "post_id": n.post_id,
        "topic_id": n.topic_id,
        "topic_title": n.topic_title,
        "conversation_id": n.conversation_id,
        "reaction_type": n.reaction_type,
        "message": n.message,
        "is_read": n.is_read,
        "created_at": n.created_at.isoformat() if n.created_at else None,
    }


@router.get("")
def list_notifications(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    items = notification_service.list_notifications(engine, user.id)
    return {"notifications": [_notification_dict(n) for n in items]}


@router.get("/unread-count")
def unread_notification_count(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"count": notification_service.unread_notification_count(engine, user.id)}


@router.post("/read-all")
def mark_all_read(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"updated": notification_service.mark_all_read(engine, user.id)}


@router.post("/{notification_id}/read")
def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    updated = notification_service.mark_notification_read(engine, notification_id, user.id)
    return {"updated": updated}
