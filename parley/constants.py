"""
parley.constants — Shared Limits & Helpers
===========================================

Single source of truth for input limits and the preview/snippet format.
Import from here instead of duplicating in services and routes.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Input limits
# ---------------------------------------------------------------------------
MESSAGE_MAX_LENGTH = 2000
SUBJECT_MAX_LENGTH = 200
USERNAME_MAX_LENGTH = 50
TOPIC_TITLE_MIN_LENGTH = 5
TOPIC_TITLE_MAX_LENGTH = 150
POST_CONTENT_MIN_LENGTH = 10

# Conversation snippets and private-message notification previews
PREVIEW_LENGTH = 50
ELLIPSIS = "..."


def make_preview(content: str, length: int = PREVIEW_LENGTH) -> str:
    """First *length* characters of *content*, with ``...`` when truncated."""
    if len(content) <= length:
        return content
    return content[:length] + ELLIPSIS
