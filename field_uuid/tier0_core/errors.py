"""
field_uuid.tier0_core.errors
─────────────────────────────
Standard error taxonomy for identifier management. Every error carries a
stable machine-readable code, a user-safe message, internal detail and the
HTTP status the admin API answers with.

Taxonomy:
  ConfigurationError: malformed settings, aborts process start
  GenerationExhaustedError: retry budget spent seeking a unique value
  ValidationError: malformed or conflicting value on a write
  DatastoreError: datastore unreachable or query failed
  AuthError / ForbiddenError / NotFoundError / BadRequestError: API surface
"""
from __future__ import annotations

from typing import Any


# ── Base error ────────────────────────────────────────────────────────────────

class PlatformError(Exception):
    """
    Base class for all field_uuid errors. Every error has:
    - code: stable machine-readable string (snake_case)
    - user_message: safe to surface to API callers
    - detail: internal context, logged but never returned
    - status_code: HTTP status code for API responses
    """

    status_code: int = 500
    code: str = "internal_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "An unexpected error occurred.",
        detail: str | None = None,
        **metadata: Any,
    ) -> None:
        self.code = code or self.__class__.code
        self.user_message = user_message
        self.detail = detail or user_message
        self.metadata = metadata
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.user_message,
            }
        }


# ── Typed error classes ───────────────────────────────────────────────────────

class AuthError(PlatformError):
    """Missing or invalid admin credential."""
    status_code = 401
    code = "auth_error"


class ForbiddenError(PlatformError):
    """Principal is authenticated but is not an admin."""
    status_code = 403
    code = "forbidden"


class BadRequestError(PlatformError):
    """Request refers to an unknown record type or field."""
    status_code = 400
    code = "bad_request"


class ValidationError(PlatformError):
    """A write carried a malformed or already-owned identifier value."""
    status_code = 422
    code = "validation_error"

    def __init__(
        self,
        code: str | None = None,
        user_message: str = "Validation failed.",
        fields: dict | None = None,
        **metadata: Any,
    ) -> None:
        self.fields = fields or {}
        super().__init__(code, user_message, **metadata)

    def to_dict(self) -> dict:
        d = super().to_dict()
        if self.fields:
            d["error"]["fields"] = self.fields
        return d


class NotFoundError(PlatformError):
    """Requested record does not exist."""
    status_code = 404
    code = "not_found"


class GenerationExhaustedError(PlatformError):
    """No unique value found within max_retry_attempts."""
    status_code = 500
    code = "generation_exhausted"


class DatastoreError(PlatformError):
    """Datastore query or write failed."""
    status_code = 500
    code = "datastore_error"


class ConfigurationError(PlatformError):
    """Misconfiguration detected at startup."""
    status_code = 500
    code = "configuration_error"


__all__ = [
    "PlatformError",
    "AuthError",
    "ForbiddenError",
    "BadRequestError",
    "ValidationError",
    "NotFoundError",
    "GenerationExhaustedError",
    "DatastoreError",
    "ConfigurationError",
]
