"""
field_uuid.tier1_runtime.context
──────────────────────────────────
Request context: correlation id and acting principal, propagated across
async boundaries into logs and audit records.

Uses Python contextvars; every set_context() is mirrored into structlog
contextvars so log lines emitted during a request carry request_id.
"""
from __future__ import annotations

import uuid
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from field_uuid.tier0_core.logging import bind_context


@dataclass
class RequestContext:
    """All per-request metadata available throughout the request lifecycle."""
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    principal_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


_ctx: ContextVar[RequestContext | None] = ContextVar("field_uuid_request_context", default=None)


def get_context() -> RequestContext:
    """Return the current request context, creating one outside a request."""
    ctx = _ctx.get()
    if ctx is None:
        ctx = RequestContext()
        _ctx.set(ctx)
    return ctx


def set_context(ctx: RequestContext) -> None:
    _ctx.set(ctx)
    bind_context(request_id=ctx.request_id, principal_id=ctx.principal_id)


def set_principal(principal_id: str) -> None:
    """Attach the authenticated principal to the current context."""
    ctx = get_context()
    ctx.principal_id = principal_id
    bind_context(principal_id=principal_id)


def get_request_id() -> str:
    return get_context().request_id


def get_principal_id() -> str | None:
    return get_context().principal_id


__all__ = [
    "RequestContext",
    "get_context",
    "set_context",
    "set_principal",
    "get_request_id",
    "get_principal_id",
]
