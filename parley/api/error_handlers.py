"""
parley.api.error_handlers — Global exception handlers
======================================================

* :class:`~parley.errors.ParleyError` → its own status and envelope
* :class:`RequestValidationError`     → 400 with per-field details
* anything else                       → 500, no internal detail
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from parley.errors import ErrorCategory, ParleyError, StorageError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Register all global error handlers on *app*."""

    @app.exception_handler(ParleyError)
    async def parley_error_handler(request: Request, exc: ParleyError):
        if isinstance(exc, StorageError):
            logger.error("Storage unavailable on %s (%s)", request.url.path, exc.operation)
        else:
            logger.info("%s on %s: %s", exc.code, request.url.path, exc.message)
        return JSONResponse(status_code=exc.http_status, content=exc.to_response())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning("Validation error on %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_validation_envelope(exc),
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception):
        logger.error("Unhandled exception on %s", request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An unexpected error occurred",
                    "category": "internal",
                },
            },
        )


def _validation_envelope(exc: RequestValidationError) -> dict:
    return {
        "error": {
            "code": "VALIDATION_ERROR",
            "message": "Invalid request data",
            "category": ErrorCategory.VALIDATION.value,
            "details": [
                {
                    "field": ".".join(str(loc) for loc in e["loc"]),
                    "message": e["msg"],
                    "type": e["type"],
                }
                for e in exc.errors()
            ],
        },
    }
