"""Tests for identifier export and import."""
from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from field_uuid.tier1_runtime.clock import Clock, set_clock
from field_uuid.tier1_runtime.serialize import serialize, to_dict
from field_uuid.tier3_platform.reports import ExportSnapshot

from conftest import uuid4


async def populate(plugin, count=3):
    rows = []
    for n in range(count):
        rows.append(await plugin.store.create("article", {"title": f"a{n}"}, record_identity=f"doc-{n}"))
    await plugin.store.create("author", {"name": "x"}, record_identity="au-1")
    return rows


class TestExport:
    @pytest.mark.asyncio
    async def test_one_entry_per_identity_and_field(self, plugin):
        rows = await populate(plugin)
        await plugin.store.create(
            "article", {"uid": rows[0]["uid"], "ref": rows[0]["ref"]},
            record_identity="doc-0", revision="published",
        )
        snapshot = await plugin.snapshots.export()

        uid_entries = snapshot.mappings["article"].fields["uid"]
        assert [e.record_identity for e in uid_entries] == ["doc-0", "doc-1", "doc-2"]
        assert uid_entries[0].value == rows[0]["uid"]
        assert len(snapshot.mappings["article"].fields["ref"]) == 3
        assert len(snapshot.mappings["author"].fields["uid"]) == 1
        assert snapshot.version == "1.0.0"

    @pytest.mark.asyncio
    async def test_wire_format(self, plugin):
        await populate(plugin, count=1)
        set_clock(Clock().freeze(datetime(2025, 3, 1, tzinfo=timezone.utc)))
        try:
            snapshot = await plugin.snapshots.export()
        finally:
            set_clock(Clock())

        body = json.loads(serialize(snapshot))
        assert body["exportedAt"] == "2025-03-01T00:00:00.000Z"
        assert body["version"] == "1.0.0"
        entry = body["mappings"]["article"]["fields"]["uid"][0]
        assert set(entry) == {"recordIdentity", "value"}

    @pytest.mark.asyncio
    async def test_blank_values_are_exported(self, make_plugin):
        plugin = make_plugin(auto_generate=False)
        await plugin.store.create("article", {"title": "empty"}, record_identity="doc-0")
        snapshot = await plugin.snapshots.export()
        assert snapshot.mappings["article"].fields["uid"][0].value is None


class TestImport:
    @pytest.mark.asyncio
    async def test_reimport_of_unchanged_data_imports_nothing(self, plugin):
        await populate(plugin)
        snapshot = await plugin.snapshots.export()
        result = await plugin.snapshots.import_snapshot(snapshot, dry_run=False, overwrite=False)
        assert result.imported == 0
        assert result.errors == []
        assert result.skipped == 7

    @pytest.mark.asyncio
    async def test_reimport_keeps_legacy_malformed_value_without_error(self, make_plugin):
        plugin = make_plugin(auto_generate=False)
        await plugin.store.create("author", {"uid": "not-a-uuid"}, record_identity="au-1")
        snapshot = await plugin.snapshots.export()

        result = await plugin.snapshots.import_snapshot(snapshot, dry_run=False, overwrite=False)
        assert result.errors == []
        assert result.imported == 0
        assert result.skipped == 1
        assert (await plugin.store.get("author", "au-1"))["uid"] == "not-a-uuid"

    @pytest.mark.asyncio
    async def test_malformed_entry_for_missing_record_reports_not_found(self, plugin):
        snapshot = {"mappings": {"author": {"fields": {"uid": [
            {"recordIdentity": "au-404", "value": "not-a-uuid"},
        ]}}}}
        result = await plugin.snapshots.import_snapshot(snapshot, dry_run=False)
        assert [e.message for e in result.errors] == ["Entry not found: author au-404"]

    @pytest.mark.asyncio
    async def test_restores_values_into_blank_records(self, plugin, make_plugin):
        rows = await populate(plugin)
        snapshot = await plugin.snapshots.export()

        target = make_plugin(auto_generate=False)
        for n in range(3):
            await target.store.create("article", {"title": f"a{n}"}, record_identity=f"doc-{n}")
        await target.store.create("author", {"name": "x"}, record_identity="au-1")

        result = await target.snapshots.import_snapshot(snapshot, dry_run=False)
        assert result.dry_run is False
        assert result.imported == 7
        assert result.errors == []
        restored = await target.store.get("article", "doc-1")
        assert restored["uid"] == rows[1]["uid"]
        assert restored["ref"] == rows[1]["ref"]

    @pytest.mark.asyncio
    async def test_dry_run_reports_changes_without_writing(self, plugin, make_plugin):
        await populate(plugin, count=1)
        snapshot = await plugin.snapshots.export()

        target = make_plugin(auto_generate=False)
        await target.store.create("article", {}, record_identity="doc-0")

        result = await target.snapshots.import_snapshot(snapshot)
        assert result.dry_run is True
        assert result.imported == 2
        assert {(c.field, c.old_value) for c in result.changes} == {("uid", None), ("ref", None)}
        assert (await target.store.get("article", "doc-0"))["uid"] is None

    @pytest.mark.asyncio
    async def test_overwrite_replaces_existing_values(self, plugin):
        await populate(plugin, count=1)
        replacement = uuid4()
        snapshot = {"mappings": {"article": {"fields": {"uid": [
            {"recordIdentity": "doc-0", "value": replacement},
        ]}}}}

        skipped = await plugin.snapshots.import_snapshot(snapshot, dry_run=False)
        assert skipped.imported == 0
        assert skipped.skipped == 1

        result = await plugin.snapshots.import_snapshot(snapshot, dry_run=False, overwrite=True)
        assert result.imported == 1
        assert (await plugin.store.get("article", "doc-0"))["uid"] == replacement

    @pytest.mark.asyncio
    async def test_rejected_entries_are_reported(self, plugin):
        rows = await populate(plugin, count=2)
        snapshot = ExportSnapshot.model_validate({
            "exportedAt": "2025-01-01T00:00:00.000Z",
            "mappings": {
                "article": {"fields": {
                    "uid": [
                        {"recordIdentity": "doc-0", "value": "not-a-uuid"},
                        {"recordIdentity": "missing", "value": uuid4()},
                        {"recordIdentity": "doc-1", "value": rows[0]["uid"]},
                        {"recordIdentity": "doc-1", "value": None},
                    ],
                    "title": [{"recordIdentity": "doc-0", "value": uuid4()}],
                }},
            },
        })

        result = await plugin.snapshots.import_snapshot(snapshot, dry_run=False, overwrite=True)
        assert result.imported == 0
        assert result.skipped == 5
        messages = [e.message for e in result.errors]
        assert len(messages) == 4
        assert any("Invalid UUID" in m for m in messages)
        assert any("Entry not found" in m for m in messages)
        assert any("already used by article doc-0" in m for m in messages)
        assert any("Not a monitored field" in m for m in messages)
        assert (await plugin.store.get("article", "doc-1"))["uid"] == rows[1]["uid"]

    @pytest.mark.asyncio
    async def test_missing_mappings(self, plugin):
        result = await plugin.snapshots.import_snapshot({"version": "1.0.0"})
        assert result.imported == 0
        assert "missing mappings" in result.errors[0].message

    @pytest.mark.asyncio
    async def test_result_wire_format(self, plugin):
        result = await plugin.snapshots.import_snapshot({"mappings": {}})
        assert to_dict(result) == {
            "dryRun": True,
            "imported": 0,
            "skipped": 0,
            "errors": [],
            "changes": [],
        }
