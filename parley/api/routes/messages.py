"""
parley.api.routes.messages — Private messaging endpoints (JWT‑protected)
=========================================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from parley.api.deps import get_current_user, get_engine
from parley.database.models import Conversation, PrivateMessage, User
from parley.services import conversation_service, message_service, unread_service
from parley.services.conversation_service import ConversationSummary
from parley.services.message_service import MessageDisplay

router = APIRouter(tags=["messages"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class SendMessage(BaseModel):
    content: str
    receiver_id: str | None = None
    conversation_id: str | None = None
    subject: str | None = None


class StartConversation(BaseModel):
    username: str
    subject: str | None = None


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _iso(value):
    return value.isoformat() if value else None


def _message_dict(m: PrivateMessage) -> dict:
    return {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "sender_id": m.sender_id,
        "content": m.content,
        "created_at": _iso(m.created_at),
    }


def _display_dict(m: MessageDisplay) -> dict:
    return {
        "id": m.id,
        "conversation_id": m.conversation_id,
        "sender_id": m.sender_id,
        "sender_username": m.sender_username,
        "content": m.content,
        "created_at": _iso(m.created_at),
        "read_by": sorted(m.read_by),
        "is_own_message": m.is_own_message,
    }


def _conversation_dict(c: Conversation) -> dict:
    return {
        "id": c.id,
        "participant_ids": list(c.participant_ids),
        "subject": c.subject,
        "created_at": _iso(c.created_at),
        "last_message_at": _iso(c.last_message_at),
    }


def _summary_dict(s: ConversationSummary) -> dict:
    return {
        "id": s.id,
        "other_participant_id": s.other_participant_id,
        "other_participant_username": s.other_participant_username,
        "subject": s.subject,
        "last_message_snippet": s.last_message_snippet,
        "last_message_at": _iso(s.last_message_at),
        "is_last_message_from_current_user": s.is_last_message_from_current_user,
        "unread_count": s.unread_count,
    }


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------
@router.post("/messages", status_code=201)
def send_message(
    body: SendMessage,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    message = message_service.send_message(
        engine,
        sender_id=user.id,
        content=body.content,
        receiver_id=body.receiver_id,
        conversation_id=body.conversation_id,
        subject=body.subject,
    )
    return _message_dict(message)


@router.get("/messages/unread-count")
def unread_message_count(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    return {"count": unread_service.unread_message_count(engine, user.id)}


# ---------------------------------------------------------------------------
# Conversations
# ---------------------------------------------------------------------------
@router.post("/conversations", status_code=201)
def start_conversation(
    body: StartConversation,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    conversation = conversation_service.start_conversation(
        engine, user.id, body.username, body.subject
    )
    return _conversation_dict(conversation)


@router.get("/conversations")
def list_conversations(
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    summaries = conversation_service.list_conversations(engine, user.id)
    return {"conversations": [_summary_dict(s) for s in summaries]}


@router.get("/conversations/{conversation_id}/messages")
def list_messages(
    conversation_id: str,
    mark_read: bool = Query(True),
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    messages = message_service.list_messages(
        engine, conversation_id, user.id, mark_read=mark_read
    )
    return {"messages": [_display_dict(m) for m in messages]}
