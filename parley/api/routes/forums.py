"""
parley.api.routes.forums — Topic, post and reaction endpoints
==============================================================
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from parley.api.deps import get_current_user, get_engine
from parley.database.models import Post, Topic, User
from parley.services import forum_service, reaction_service

router = APIRouter(tags=["forums"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class TopicCreate(BaseModel):
    title: str
    content: str


class PostCreate(BaseModel):
    content: str


class PostUpdate(BaseModel):
    content: str


class ReactionToggle(BaseModel):
    reaction_type: str


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _post_dict(p: Post) -> dict:
    return {
        "id": p.id,
        "topic_id": p.topic_id,
        "author_id": p.author_id,
        "content": p.content,
        "created_at": p.created_at.isoformat() if p.created_at else None,
        "updated_at": p.updated_at.isoformat() if p.updated_at else None,
    }


def _topic_dict(t: Topic) -> dict:
    return {
        "id": t.id,
        "title": t.title,
        "author_id": t.author_id,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "last_activity": t.last_activity.isoformat() if t.last_activity else None,
    }


# ---------------------------------------------------------------------------
# Topics & posts
# ---------------------------------------------------------------------------
@router.post("/topics", status_code=201)
def create_topic(
    body: TopicCreate,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    topic, post = forum_service.create_topic(
        engine, author_id=user.id, title=body.title, first_post_content=body.content
    )
    return {"topic": _topic_dict(topic), "post": _post_dict(post)}


@router.post("/topics/{topic_id}/posts", status_code=201)
def create_post(
    topic_id: str,
    body: PostCreate,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    post = forum_service.create_post(
        engine, author_id=user.id, topic_id=topic_id, content=body.content
    )
    return _post_dict(post)


@router.patch("/posts/{post_id}")
def update_post(
    post_id: str,
    body: PostUpdate,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    post = forum_service.update_post(
        engine, post_id=post_id, user_id=user.id, content=body.content
    )
    return _post_dict(post)


@router.delete("/posts/{post_id}")
def delete_post(
    post_id: str,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    forum_service.delete_post(engine, post_id=post_id, user_id=user.id)
    return {"deleted": True}


# ---------------------------------------------------------------------------
# Reactions
# ---------------------------------------------------------------------------
@router.post("/posts/{post_id}/reactions")
def toggle_reaction(
    post_id: str,
    body: ReactionToggle,
    user: User = Depends(get_current_user),
    engine=Depends(get_engine),
):
    result = reaction_service.toggle_reaction(engine, post_id, user.id, body.reaction_type)
    return {
        "post_id": result.post_id,
        "change": result.change.value,
        "user_reaction": result.user_reaction,
        "author_points": result.author_points,
        "counts": result.counts,
    }
