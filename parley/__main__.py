"""
parley.__main__ — Entry point for ``python -m parley``
=======================================================

Wiring:
1. Load .env (secrets, DATABASE_URL, storage backend).
2. Load config.yaml (community name, API port).
3. Serve :mod:`parley.api.main` with uvicorn.  The app's lifespan creates
   the engine, ensures tables exist and disposes the engine at exit.

Run with::

    python -m parley
"""

from __future__ import annotations

import logging

import uvicorn
from dotenv import load_dotenv

from parley.config import load_config

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("parley")


def main() -> None:
    """Bootstrap and run the Parley API."""
    load_dotenv()

    cfg = load_config()
    logger.info("Config loaded — Community: %s", cfg.community_name)

    logger.info("Starting Parley API on port %d…", cfg.api_port)
    try:
        uvicorn.run("parley.api.main:app", host="0.0.0.0", port=cfg.api_port, log_config=None)
    except KeyboardInterrupt:
        logger.info("Shutting down gracefully…")


if __name__ == "__main__":
    main()
