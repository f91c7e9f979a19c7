"""
parley.engine.mentions — ``@username`` extraction
==================================================
"""

from __future__ import annotations

import re

__all__ = ["parse_mentions"]

_MENTION_REGEX = re.compile(r"@(\w+)")


def parse_mentions(content: str | None) -> list[str]:
    """Return the distinct usernames mentioned in *content*.

    Deduplication is case-sensitive and keeps first-seen order, so
    ``"@bob hi @bob @Bob"`` yields ``["bob", "Bob"]``.
    """
    if not content:
        return []
    return list(dict.fromkeys(_MENTION_REGEX.findall(content)))
