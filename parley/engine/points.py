"""
parley.engine.points — Reaction Weight Table
=============================================

Pure calculation half of the points ledger.  Persistence lives in
:mod:`parley.services.points_service`.

Weights::

    like, love  → 2   ("strong")
    haha, wow   → 1   ("light")
    sad, angry  → 0
"""

from __future__ import annotations

from collections.abc import Iterable

from parley.database.models import ReactionType

__all__ = ["REACTION_WEIGHTS", "weight_for", "points_for_reactions"]

REACTION_WEIGHTS: dict[ReactionType, int] = {
    ReactionType.LIKE: 2,
    ReactionType.LOVE: 2,
    ReactionType.HAHA: 1,
    ReactionType.WOW: 1,
    ReactionType.SAD: 0,
    ReactionType.ANGRY: 0,
}


def weight_for(reaction_type: str) -> int:
    """Points contributed by one reaction of *reaction_type* (0 if unknown)."""
    try:
        return REACTION_WEIGHTS[ReactionType(reaction_type)]
    except ValueError:
        return 0


def points_for_reactions(reaction_types: Iterable[str]) -> int:
    """Sum of :func:`weight_for` over *reaction_types*."""
    return sum(weight_for(t) for t in reaction_types)
