"""
field_uuid.tier0_core.identity
─────────────────────────────────
Verify admin credentials for the admin API and normalize them into a
Principal. Provider abstraction so deployments can swap the check.

Providers: static (shared admin token) | mock (tests / local dev)
Select via: FIELD_UUID_IDENTITY_PROVIDER=static|mock
"""
from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from field_uuid.tier0_core.config import FieldUuidConfig
from field_uuid.tier0_core.errors import AuthError, ConfigurationError

ADMIN_ROLE = "admin"


# ── Domain model ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Principal:
    """Normalized, provider-agnostic identity."""
    id: str
    roles: tuple[str, ...] = field(default_factory=tuple)

    def has_role(self, role: str) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return self.has_role(ADMIN_ROLE)


# ── Provider protocol ─────────────────────────────────────────────────────────

@runtime_checkable
class IdentityProvider(Protocol):
    """Implement this protocol to add a new credential backend."""

    def verify_token(self, token: str) -> Principal:
        """Verify a bearer token and return the Principal. Raises AuthError on failure."""
        ...


def _strip_bearer(token: str) -> str:
    if token.lower().startswith("bearer "):
        return token[7:].strip()
    return token.strip()


# ── Mock provider (tests / local dev) ─────────────────────────────────────────

class MockIdentityProvider:
    """
    Deterministic mock. Never calls external services.
    "invalid" and empty tokens fail; "viewer" yields a non-admin; anything
    else is an admin.
    """

    def verify_token(self, token: str) -> Principal:
        token = _strip_bearer(token)
        if not token or token == "invalid":
            raise AuthError("invalid_token", "Token is invalid or expired")
        if token == "viewer":
            return Principal(id="mock-viewer", roles=("viewer",))
        return Principal(id="mock-admin", roles=(ADMIN_ROLE,))


# ── Static token provider ─────────────────────────────────────────────────────

class StaticTokenProvider:
    """Single shared admin token from FIELD_UUID_ADMIN_TOKEN."""

    def __init__(self, admin_token: str) -> None:
        if not admin_token:
            raise ConfigurationError(
                user_message="FIELD_UUID_ADMIN_TOKEN is required when identity_provider=static"
            )
        self._token = admin_token.encode()

    def verify_token(self, token: str) -> Principal:
        presented = _strip_bearer(token).encode()
        if not presented or not hmac.compare_digest(presented, self._token):
            raise AuthError("invalid_token", "Token is invalid or expired")
        return Principal(id="admin", roles=(ADMIN_ROLE,))


# ── Provider factory ──────────────────────────────────────────────────────────

def build_identity_provider(config: FieldUuidConfig) -> IdentityProvider:
    name = config.identity_provider
    if name == "mock":
        return MockIdentityProvider()
    if name == "static":
        return StaticTokenProvider(config.admin_token)
    raise ConfigurationError(
        user_message=f"Unknown FIELD_UUID_IDENTITY_PROVIDER={name!r}. Valid options: mock, static"
    )


__all__ = [
    "ADMIN_ROLE",
    "Principal",
    "IdentityProvider",
    "MockIdentityProvider",
    "StaticTokenProvider",
    "build_identity_provider",
]
