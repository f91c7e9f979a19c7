"""
parley.engine.identity — Canonical Conversation Ids
====================================================

Pure functions, no I/O.  A conversation id depends only on the *set* of its
two participants and the normalized subject::

    conv-{low}__{high}                 # no subject
    conv-{low}__{high}--s-{subject}    # with subject

so ``derive_conversation_id(a, b, s) == derive_conversation_id(b, a, s)`` and
subjects that differ only in case, punctuation or spacing share an id.
"""

from __future__ import annotations

import re

__all__ = ["SUBJECT_ID_MAX_LENGTH", "derive_conversation_id", "normalize_subject"]

SUBJECT_ID_MAX_LENGTH = 50

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def normalize_subject(subject: str | None) -> str:
    """Reduce *subject* to its id form; ``""`` means "no subject".

    >>> normalize_subject("  Re: Weekend   Plans!! ")
    're-weekend-plans'
    """
    if not subject or not subject.strip():
        return ""
    slug = _DISALLOWED.sub("", subject.lower())
    slug = _WHITESPACE.sub("-", slug)
    slug = _HYPHENS.sub("-", slug)
    slug = slug.strip("-")
    return slug[:SUBJECT_ID_MAX_LENGTH]


def derive_conversation_id(
    participant_a: str, participant_b: str, subject: str | None = None
) -> str:
    """Return the order-independent id for a conversation.

    Raises
    ------
    ValueError
        If either participant id is empty.
    """
    if not participant_a or not participant_b:
        raise ValueError("Both participant ids are required to derive a conversation id")
    low, high = sorted((participant_a, participant_b))
    base = f"conv-{low}__{high}"
    slug = normalize_subject(subject)
    return f"{base}--s-{slug}" if slug else base
