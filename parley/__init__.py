"""
Parley — Forum Messaging, Reactions & Notifications
====================================================
The interaction core of a community forum: one-to-one private conversations
with read receipts, per-user reactions on posts that feed each author's
points, and a notification inbox fed by mentions, messages and reactions.

Package layout::

    parley/
    ├── config.py          # YAML → typed Python config
    ├── constants.py       # Length limits, preview helper
    ├── errors.py          # Typed error hierarchy + response envelope
    ├── database/
    │   ├── engine.py      # Backend selection + scoped transactions
    │   └── models.py      # All ORM models (8 tables)
    ├── engine/
    │   ├── identity.py    # Deterministic conversation ids
    │   ├── mentions.py    # @username extraction
    │   └── points.py      # Reaction weights
    ├── services/
    │   ├── conversation_service.py  # Get-or-create, conversation list
    │   ├── message_service.py       # Send, list, mark-read
    │   ├── reaction_service.py      # Toggle state machine
    │   ├── points_service.py        # Points recompute + reconcile
    │   ├── notification_service.py  # Fan-out + inbox
    │   ├── unread_service.py        # Unread counts
    │   ├── forum_service.py         # Topic/post writes
    │   └── user_service.py          # Identity lookups
    └── api/
        ├── main.py        # FastAPI app
        ├── deps.py        # JWT → current user, engine
        ├── error_handlers.py
        └── routes/        # Messages, notifications, forums
"""

__version__ = "0.1.0"
