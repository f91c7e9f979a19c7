"""
parley.errors — Typed Error Hierarchy
======================================

Every public operation fails with one of four kinds:

* :class:`ValidationError`    — malformed, empty or oversized input (400)
* :class:`AuthorizationError` — actor is not a participant / author / admin (403)
* :class:`NotFoundError`      — referenced conversation, post or user is missing (404)
* :class:`StorageError`       — backend I/O failure (503, generic message)

Services raise them; :mod:`parley.api.error_handlers` renders them as a
uniform JSON envelope.
"""

from __future__ import annotations

from enum import StrEnum


class ErrorCategory(StrEnum):
    VALIDATION = "validation"
    AUTHORIZATION = "authorization"
    NOT_FOUND = "not_found"
    STORAGE = "storage"


class ParleyError(Exception):
    """Base exception for all Parley failures."""

    code = "PARLEY_ERROR"
    category: ErrorCategory = ErrorCategory.VALIDATION
    http_status = 400

    def __init__(self, message: str, *, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field

    def to_response(self) -> dict:
        """Convert to the standard REST error envelope."""
        body = {
            "code": self.code,
            "message": self.message,
            "category": self.category.value,
        }
        if self.field is not None:
            body["field"] = self.field
        return {"error": body}


class ValidationError(ParleyError):
    """Input failed validation.  ``field`` names the offending input."""

    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION
    http_status = 400


class AuthorizationError(ParleyError):
    """The acting user may not perform this operation."""

    code = "FORBIDDEN"
    category = ErrorCategory.AUTHORIZATION
    http_status = 403


class NotFoundError(ParleyError):
    """A referenced resource does not exist."""

    code = "NOT_FOUND"
    category = ErrorCategory.NOT_FOUND
    http_status = 404

    def __init__(
        self, resource_type: str, resource_id: str, *, field: str | None = None
    ) -> None:
        super().__init__(f"{resource_type} '{resource_id}' not found", field=field)
        self.resource_type = resource_type
        self.resource_id = resource_id


class StorageError(ParleyError):
    """The storage backend failed.  The message never carries internals."""

    code = "STORAGE_UNAVAILABLE"
    category = ErrorCategory.STORAGE
    http_status = 503

    def __init__(self, operation: str) -> None:
        super().__init__("The service is temporarily unavailable. Please try again.")
        self.operation = operation
