"""
field_uuid.app
───────────────
HTTP admin API over a bootstrapped Plugin (FastAPI).

Usage:
    plugin = bootstrap(get_config())
    app = create_app(plugin)
    uvicorn.run(app)

Every route except /health requires ``Authorization: Bearer <token>``
resolving to an admin principal. Bodies are validated with validate_input,
so malformed requests answer with the same error envelope as everything else.
"""
from __future__ import annotations

import json
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from field_uuid.plugin import Plugin
from field_uuid.tier0_core.errors import (
    AuthError,
    BadRequestError,
    ForbiddenError,
    PlatformError,
)
from field_uuid.tier0_core.identity import Principal
from field_uuid.tier0_core.logging import get_logger
from field_uuid.tier1_runtime import clock
from field_uuid.tier1_runtime.context import set_principal
from field_uuid.tier1_runtime.middleware import RequestContextMiddleware
from field_uuid.tier1_runtime.serialize import ApiModel, to_dict
from field_uuid.tier1_runtime.validate import is_valid, validate_input

log = get_logger(__name__)


# ── Request bodies ────────────────────────────────────────────────────────────

class CheckDuplicateRequest(ApiModel):
    content_type: str
    field: str
    uuid: str
    exclude_document_id: str | None = None


class DryRunRequest(ApiModel):
    dry_run: bool = False


class RunMigrationRequest(ApiModel):
    dry_run: bool = True
    fix_empty: bool = True
    fix_invalid: bool = True
    fix_duplicates: bool = True


class ImportRequest(ApiModel):
    mappings: dict[str, Any] | None = None
    dry_run: bool = True
    overwrite: bool = False


async def _read_body(request: Request) -> Any:
    raw = await request.body()
    if not raw.strip():
        return {}
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BadRequestError(user_message=f"Malformed JSON body: {exc.msg}") from exc


def _respond(model: ApiModel, **kwargs: Any) -> JSONResponse:
    return JSONResponse(content=to_dict(model), **kwargs)


# ── App factory ───────────────────────────────────────────────────────────────

def create_app(plugin: Plugin) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if plugin.config.auto_migrate:
            plugin.start_auto_migration()
        yield
        await plugin.shutdown()

    app = FastAPI(
        title="field-uuid admin API",
        version=plugin.config.app_version,
        lifespan=lifespan,
    )
    app.state.plugin = plugin
    app.add_middleware(RequestContextMiddleware)

    # ── Error handling ────────────────────────────────────────────────────────

    @app.exception_handler(PlatformError)
    async def platform_error_handler(request: Request, exc: PlatformError) -> JSONResponse:
        if exc.status_code >= 500:
            log.error("http.platform_error", code=exc.code, detail=exc.detail, path=request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        log.exception("http.unhandled_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content=PlatformError().to_dict())

    # ── Auth ──────────────────────────────────────────────────────────────────

    async def require_admin(request: Request) -> Principal:
        header = request.headers.get("authorization", "")
        if not header.lower().startswith("bearer "):
            raise AuthError("missing_token", "Authorization: Bearer <token> required")
        principal = plugin.identity.verify_token(header)
        if not principal.is_admin:
            raise ForbiddenError(user_message="Admin role required")
        set_principal(principal.id)
        return principal

    admin = [Depends(require_admin)]

    # ── Routes ────────────────────────────────────────────────────────────────

    @app.get("/health")
    async def health() -> dict[str, str]:
        return await plugin.health.report()

    @app.post("/check-duplicate", dependencies=admin)
    async def check_duplicate(request: Request) -> dict[str, bool]:
        body = validate_input(CheckDuplicateRequest, await _read_body(request))
        monitored = plugin.registry.get_field(body.content_type, body.field)
        if monitored is None:
            raise BadRequestError(
                user_message=f"{body.content_type}.{body.field} is not a monitored UUID field",
                content_type=body.content_type,
                field=body.field,
            )
        if not is_valid(body.uuid, monitored.prefix):
            return {"exists": False, "valid": False}
        found = await plugin.oracle.lookup(
            body.content_type, body.field, body.uuid, body.exclude_document_id
        )
        return {"exists": found.exists, "valid": True}

    @app.get("/diagnose", dependencies=admin)
    async def diagnose() -> JSONResponse:
        return _respond(await plugin.engine.diagnose())

    @app.post("/autofix", dependencies=admin)
    async def autofix(request: Request) -> JSONResponse:
        body = validate_input(DryRunRequest, await _read_body(request))
        return _respond(await plugin.engine.autofix(dry_run=body.dry_run))

    @app.post("/generate-missing", dependencies=admin)
    async def generate_missing(request: Request) -> JSONResponse:
        body = validate_input(DryRunRequest, await _read_body(request))
        return _respond(await plugin.engine.generate_missing(dry_run=body.dry_run))

    @app.get("/models", dependencies=admin)
    async def models() -> dict[str, Any]:
        return {
            "models": plugin.registry.as_model_map(),
            "fields": plugin.registry.describe(),
        }

    @app.get("/migration/status", dependencies=admin)
    async def migration_status() -> JSONResponse:
        return _respond(await plugin.engine.status())

    @app.post("/migration/run", dependencies=admin)
    async def migration_run(request: Request) -> JSONResponse:
        body = validate_input(RunMigrationRequest, await _read_body(request))
        result = await plugin.engine.fix(
            dry_run=body.dry_run,
            fix_empty=body.fix_empty,
            fix_invalid=body.fix_invalid,
            fix_duplicates=body.fix_duplicates,
        )
        return _respond(result)

    @app.get("/migration/export", dependencies=admin)
    async def migration_export() -> JSONResponse:
        snapshot = await plugin.snapshots.export()
        filename = f"uuid-mappings-{clock.timestamp_ms()}.json"
        return _respond(
            snapshot,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
        )

    @app.post("/migration/import", dependencies=admin)
    async def migration_import(request: Request) -> JSONResponse:
        body = validate_input(ImportRequest, await _read_body(request))
        if not body.mappings:
            raise BadRequestError(user_message="Invalid import data: missing mappings")
        # Either a whole export file or just its mappings object.
        snapshot = body.mappings if "mappings" in body.mappings else {"mappings": body.mappings}
        result = await plugin.snapshots.import_snapshot(
            snapshot, dry_run=body.dry_run, overwrite=body.overwrite
        )
        return _respond(result)

    @app.get("/stats", dependencies=admin)
    async def stats() -> JSONResponse:
        return _respond(await plugin.engine.stats())

    return app


__all__ = [
    "CheckDuplicateRequest",
    "DryRunRequest",
    "RunMigrationRequest",
    "ImportRequest",
    "create_app",
]
