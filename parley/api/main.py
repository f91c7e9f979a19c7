"""
parley.api.main — FastAPI application entry point
==================================================

Run with::

    uvicorn parley.api.main:app --reload --port 8000
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from parley.api.error_handlers import register_error_handlers  # noqa: E402
from parley.api.routes.forums import router as forums_router  # noqa: E402
from parley.api.routes.messages import router as messages_router  # noqa: E402
from parley.api.routes.notifications import router as notifications_router  # noqa: E402
from parley.config import load_config  # noqa: E402
from parley.database.engine import create_db_engine, dispose_engine, init_db  # noqa: E402

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("PARLEY_CONFIG", "config.yaml")


def _cors_origins() -> list[str]:
    """Resolve allowed CORS origins from env with safe defaults.

    Priority:
      1) CORS_ALLOW_ORIGINS (comma-separated)
      2) FRONTEND_URL (single origin)
    """
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]

    frontend_url = os.getenv("FRONTEND_URL", "").strip()
    if frontend_url:
        return [frontend_url.rstrip("/")]

    return []


def _configured_backend() -> str | None:
    """``storage_backend`` from config.yaml, when the file exists."""
    if not Path(CONFIG_PATH).exists():
        return None
    return load_config(CONFIG_PATH).storage_backend


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — build the engine once, dispose it at exit."""
    engine = create_db_engine(backend=_configured_backend())
    init_db(engine)
    app.state.engine = engine
    logger.info("Parley API started — engine ready (%s)", engine.url.get_backend_name())
    yield
    logger.info("Parley API shutting down")
    dispose_engine(engine)


app = FastAPI(
    title="Parley API",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_error_handlers(app)

# Mount routers
app.include_router(messages_router, prefix="/api")
app.include_router(notifications_router, prefix="/api")
app.include_router(forums_router, prefix="/api")


@app.get("/api/health")
def health():
    return {"status": "ok"}
