"""
parley.config — YAML Configuration Loader
==========================================

Reads ``config.yaml`` for deployment settings (community identity, API port,
storage backend override).  Secrets stay in ``.env``.

Usage::

    from parley.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.community_name)    # "Parley Dev"
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml


@dataclass(frozen=True, slots=True)
class ParleyConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Identity
    community_name: str

    # API
    api_port: int

    # Optional
    storage_backend: str | None = None  # Overrides PARLEY_STORAGE_BACKEND when set


def load_config(path: str | Path = "config.yaml") -> ParleyConfig:
    """Read *path* and return a :class:`ParleyConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    return ParleyConfig(
        community_name=raw["community_name"],
        api_port=int(raw["api_port"]),
        storage_backend=raw.get("storage_backend") or None,
    )
