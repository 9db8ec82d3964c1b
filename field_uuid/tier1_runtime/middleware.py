"""
field_uuid.tier1_runtime.middleware
─────────────────────────────────────
ASGI middleware that opens a RequestContext for every HTTP request to the
admin API and logs its completion.

Usage (FastAPI / Starlette)::

    app.add_middleware(RequestContextMiddleware)
"""
from __future__ import annotations

import time
import uuid
from typing import Any

from field_uuid.tier0_core.logging import clear_context, get_logger
from field_uuid.tier1_runtime.context import RequestContext, set_context

log = get_logger(__name__)


class RequestContextMiddleware:
    def __init__(self, app: Any) -> None:
        self.app = app

    async def __call__(self, scope: dict, receive: Any, send: Any) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = (
            headers.get(b"x-request-id", b"").decode()
            or headers.get(b"x-correlation-id", b"").decode()
            or str(uuid.uuid4())
        )
        clear_context()
        set_context(RequestContext(request_id=request_id))

        status: dict[str, int] = {}

        async def send_wrapper(message: dict) -> None:
            if message["type"] == "http.response.start":
                status["code"] = message["status"]
                message.setdefault("headers", []).append(
                    (b"x-request-id", request_id.encode())
                )
            await send(message)

        start = time.perf_counter()
        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            log.info(
                "http.request_completed",
                method=scope.get("method", ""),
                path=scope.get("path", ""),
                status=status.get("code", 500),
                duration_ms=round((time.perf_counter() - start) * 1000, 2),
            )


__all__ = ["RequestContextMiddleware"]
