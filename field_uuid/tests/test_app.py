"""HTTP admin API tests via httpx.AsyncClient + ASGITransport."""
from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from field_uuid.app import create_app

from conftest import uuid4

ADMIN = {"Authorization": "Bearer admin-token"}


@pytest_asyncio.fixture
async def client(plugin):
    transport = httpx.ASGITransport(app=create_app(plugin))
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def add_duplicate(plugin):
    first = await plugin.store.create("article", {}, record_identity="doc-1")
    await plugin.store.create("article", {}, record_identity="doc-2")
    hooks, plugin.store._hooks = plugin.store._hooks, []
    try:
        await plugin.store.update("article", "doc-2", {"uid": first["uid"]})
    finally:
        plugin.store._hooks = hooks
    return first


class TestAuth:
    @pytest.mark.asyncio
    async def test_health_is_public(self, client):
        r = await client.get("/health")
        assert r.status_code == 200
        assert r.json() == {
            "status": "ok",
            "plugin": "field-uuid",
            "version": "1.0.0",
            "message": "Auto UUID plugin is running",
        }
        assert r.headers["x-request-id"]

    @pytest.mark.asyncio
    async def test_missing_token(self, client):
        r = await client.get("/diagnose")
        assert r.status_code == 401
        assert r.json()["error"]["code"] == "missing_token"

    @pytest.mark.asyncio
    async def test_invalid_token(self, client):
        r = await client.get("/diagnose", headers={"Authorization": "Bearer invalid"})
        assert r.status_code == 401

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self, client):
        r = await client.get("/stats", headers={"Authorization": "Bearer viewer"})
        assert r.status_code == 403

    @pytest.mark.asyncio
    async def test_request_id_is_echoed(self, client):
        r = await client.get("/health", headers={"X-Request-ID": "req-123"})
        assert r.headers["x-request-id"] == "req-123"


class TestCheckDuplicate:
    @pytest.mark.asyncio
    async def test_existing_value(self, client, plugin):
        row = await plugin.store.create("article", {}, record_identity="doc-1")
        r = await client.post("/check-duplicate", headers=ADMIN, json={
            "contentType": "article", "field": "uid", "uuid": row["uid"],
        })
        assert r.status_code == 200
        assert r.json() == {"exists": True, "valid": True}

    @pytest.mark.asyncio
    async def test_excluded_identity(self, client, plugin):
        row = await plugin.store.create("article", {}, record_identity="doc-1")
        r = await client.post("/check-duplicate", headers=ADMIN, json={
            "contentType": "article", "field": "uid", "uuid": row["uid"],
            "excludeDocumentId": "doc-1",
        })
        assert r.json() == {"exists": False, "valid": True}

    @pytest.mark.asyncio
    async def test_invalid_value(self, client):
        r = await client.post("/check-duplicate", headers=ADMIN, json={
            "contentType": "article", "field": "uid", "uuid": "nope",
        })
        assert r.json() == {"exists": False, "valid": False}

    @pytest.mark.asyncio
    async def test_prefix_aware(self, client):
        r = await client.post("/check-duplicate", headers=ADMIN, json={
            "contentType": "article", "field": "ref", "uuid": f"art_{uuid4()}",
        })
        assert r.json() == {"exists": False, "valid": True}

    @pytest.mark.asyncio
    async def test_unmonitored_field(self, client):
        r = await client.post("/check-duplicate", headers=ADMIN, json={
            "contentType": "article", "field": "title", "uuid": uuid4(),
        })
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_unknown_record_type(self, client):
        r = await client.post("/check-duplicate", headers=ADMIN, json={
            "contentType": "comment", "field": "uid", "uuid": uuid4(),
        })
        assert r.status_code == 400

    @pytest.mark.asyncio
    async def test_missing_body_fields(self, client):
        r = await client.post("/check-duplicate", headers=ADMIN, json={"field": "uid"})
        assert r.status_code == 422
        assert r.json()["error"]["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_malformed_json(self, client):
        r = await client.post(
            "/check-duplicate",
            headers={**ADMIN, "Content-Type": "application/json"},
            content=b"{not json",
        )
        assert r.status_code == 400


class TestReconcileRoutes:
    @pytest.mark.asyncio
    async def test_diagnose(self, client, plugin):
        first = await add_duplicate(plugin)
        r = await client.get("/diagnose", headers=ADMIN)
        assert r.status_code == 200
        body = r.json()
        assert body["totalDuplicates"] == 1
        group = body["details"]["article"]["fields"]["uid"]["duplicates"][0]
        assert group == {"value": first["uid"], "count": 2, "recordIdentities": ["doc-1", "doc-2"]}

    @pytest.mark.asyncio
    async def test_autofix_defaults_to_live(self, client, plugin):
        await add_duplicate(plugin)
        r = await client.post("/autofix", headers=ADMIN)
        body = r.json()
        assert body["dryRun"] is False
        assert body["fixed"]["duplicates"] == 1
        assert (await plugin.engine.diagnose()).total_duplicates == 0

    @pytest.mark.asyncio
    async def test_autofix_dry_run(self, client, plugin):
        await add_duplicate(plugin)
        r = await client.post("/autofix", headers=ADMIN, json={"dryRun": True})
        assert r.json()["dryRun"] is True
        assert (await plugin.engine.diagnose()).total_duplicates == 1

    @pytest.mark.asyncio
    async def test_generate_missing(self, client, make_plugin):
        plugin = make_plugin(auto_generate=False)
        await plugin.store.create("article", {}, record_identity="doc-1")
        transport = httpx.ASGITransport(app=create_app(plugin))
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            r = await c.post("/generate-missing", headers=ADMIN, json={})
        body = r.json()
        assert body["fixed"]["empty"] == 2
        assert {c["field"] for c in body["changes"]} == {"uid", "ref"}

    @pytest.mark.asyncio
    async def test_models(self, client):
        r = await client.get("/models", headers=ADMIN)
        body = r.json()
        assert body["models"] == {"article": ["uid", "ref"], "author": ["uid"]}
        assert body["fields"]["article"]["ref"]["prefix"] == "art_"

    @pytest.mark.asyncio
    async def test_migration_status(self, client, plugin):
        await add_duplicate(plugin)
        r = await client.get("/migration/status", headers=ADMIN)
        body = r.json()
        assert body["needsMigration"] is True
        assert body["totalFields"] == 3
        assert body["contentTypes"][0]["duplicateCount"] == 1

    @pytest.mark.asyncio
    async def test_migration_run_defaults_to_dry_run(self, client, plugin):
        await add_duplicate(plugin)
        r = await client.post("/migration/run", headers=ADMIN, json={})
        body = r.json()
        assert body["dryRun"] is True
        assert body["totalFixed"] == 1
        assert body["changes"][0]["keptRecordIdentity"] == "doc-1"
        assert (await plugin.engine.diagnose()).total_duplicates == 1

    @pytest.mark.asyncio
    async def test_migration_run_live(self, client, plugin):
        await add_duplicate(plugin)
        r = await client.post("/migration/run", headers=ADMIN, json={"dryRun": False})
        assert r.json()["fixed"]["duplicates"] == 1
        assert (await plugin.engine.diagnose()).total_duplicates == 0

    @pytest.mark.asyncio
    async def test_stats(self, client, plugin):
        await add_duplicate(plugin)
        body = (await client.get("/stats", headers=ADMIN)).json()
        assert body["contentTypes"] == 2
        assert body["totalFields"] == 3
        assert body["issues"]["duplicates"] == 1
        assert body["needsMigration"] is True


class TestSnapshotRoutes:
    @pytest.mark.asyncio
    async def test_export_is_attachment(self, client, plugin):
        await plugin.store.create("article", {}, record_identity="doc-1")
        r = await client.get("/migration/export", headers=ADMIN)
        assert r.status_code == 200
        disposition = r.headers["content-disposition"]
        assert disposition.startswith('attachment; filename="uuid-mappings-')
        assert disposition.endswith('.json"')
        body = r.json()
        assert body["version"] == "1.0.0"
        assert body["mappings"]["article"]["fields"]["uid"][0]["recordIdentity"] == "doc-1"

    @pytest.mark.asyncio
    async def test_import_full_export_file(self, client, plugin):
        await plugin.store.create("article", {}, record_identity="doc-1")
        exported = (await client.get("/migration/export", headers=ADMIN)).json()
        r = await client.post("/migration/import", headers=ADMIN, json={"mappings": exported})
        body = r.json()
        assert body["dryRun"] is True
        assert body["imported"] == 0
        assert body["errors"] == []

    @pytest.mark.asyncio
    async def test_import_bare_mappings(self, client, plugin):
        await plugin.store.create("article", {}, record_identity="doc-1")
        value = uuid4()
        r = await client.post("/migration/import", headers=ADMIN, json={
            "mappings": {"article": {"fields": {"uid": [{"recordIdentity": "doc-1", "value": value}]}}},
            "dryRun": False,
            "overwrite": True,
        })
        body = r.json()
        assert body["imported"] == 1
        assert body["changes"][0]["newValue"] == value
        assert (await plugin.store.get("article", "doc-1"))["uid"] == value

    @pytest.mark.asyncio
    async def test_import_without_mappings(self, client):
        r = await client.post("/migration/import", headers=ADMIN, json={"dryRun": False})
        assert r.status_code == 400
