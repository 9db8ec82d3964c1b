"""
field_uuid.tier3_platform.snapshot
────────────────────────────────────
Export and re-import of identifier state, for backups and for carrying
identifiers across a reorganization of the content store.

Export shape (camelCase on the wire):
    {exportedAt, version, mappings: {recordType: {fields: {field: [{recordIdentity, value}]}}}}

Import never runs on its own; it only re-applies a snapshot it is handed.
"""
from __future__ import annotations

from typing import Any

from field_uuid._registry import FieldRegistry
from field_uuid.tier0_core.errors import PlatformError
from field_uuid.tier0_core.logging import get_logger
from field_uuid.tier1_runtime import clock
from field_uuid.tier1_runtime.validate import is_blank, is_valid, validate_input
from field_uuid.tier2_reliability.audit import audit
from field_uuid.tier2_reliability.storage import RecordStore
from field_uuid.tier3_platform.oracle import UniquenessOracle
from field_uuid.tier3_platform.reports import (
    ExportSnapshot,
    ImportChange,
    ImportResult,
    MappingEntry,
    RecordError,
    RecordTypeMappings,
)

log = get_logger(__name__)


class SnapshotService:
    def __init__(
        self,
        store: RecordStore,
        registry: FieldRegistry,
        oracle: UniquenessOracle,
    ) -> None:
        self._store = store
        self._registry = registry
        self._oracle = oracle

    async def export(self) -> ExportSnapshot:
        """One entry per record identity per monitored field, in row order, blanks included."""
        snapshot = ExportSnapshot(exported_at=clock.isoformat())
        for record_type, fields in self._registry.items():
            mappings = RecordTypeMappings()
            for monitored in fields:
                rows = await self._store.scan(record_type, monitored.field)
                entries: list[MappingEntry] = []
                seen: set[str] = set()
                for row in rows:
                    if row.record_identity in seen:
                        continue
                    seen.add(row.record_identity)
                    entries.append(MappingEntry(record_identity=row.record_identity, value=row.value))
                mappings.fields[monitored.field] = entries
            snapshot.mappings[record_type] = mappings
        log.info(
            "snapshot.exported",
            record_types=len(snapshot.mappings),
            entries=sum(
                len(entries)
                for m in snapshot.mappings.values()
                for entries in m.fields.values()
            ),
        )
        return snapshot

    async def import_snapshot(
        self,
        snapshot: ExportSnapshot | dict[str, Any],
        dry_run: bool = True,
        overwrite: bool = False,
    ) -> ImportResult:
        """
        Re-apply a snapshot. Entries pointing at missing records, unmonitored
        fields, malformed values or values owned by another record are
        reported in ``errors`` and skipped; entries whose target already holds
        a value are skipped silently unless ``overwrite``.
        """
        result = ImportResult(dry_run=dry_run)

        if isinstance(snapshot, dict):
            if not isinstance(snapshot.get("mappings"), dict):
                result.errors.append(RecordError(
                    record_type="*",
                    message="Invalid import data: missing mappings",
                ))
                return result
            snapshot = validate_input(
                ExportSnapshot, {"exportedAt": snapshot.get("exportedAt", ""), **snapshot}
            )

        for record_type, type_mappings in snapshot.mappings.items():
            for field_name, entries in type_mappings.fields.items():
                monitored = self._registry.get_field(record_type, field_name)
                for entry in entries:
                    if not entry.record_identity or is_blank(entry.value):
                        result.skipped += 1
                        continue
                    if monitored is None:
                        result.skipped += 1
                        result.errors.append(RecordError(
                            record_type=record_type,
                            field=field_name,
                            record_identity=entry.record_identity,
                            message=f"Not a monitored field: {record_type}.{field_name}",
                        ))
                        continue
                    await self._import_entry(result, record_type, field_name, monitored.prefix, entry, overwrite)

        if not dry_run and result.imported:
            log.info("snapshot.imported", imported=result.imported, skipped=result.skipped)
        return result

    async def _import_entry(
        self,
        result: ImportResult,
        record_type: str,
        field_name: str,
        prefix: str,
        entry: MappingEntry,
        overwrite: bool,
    ) -> None:
        identity, value = entry.record_identity, entry.value

        def fail(message: str) -> None:
            result.skipped += 1
            result.errors.append(RecordError(
                record_type=record_type,
                field=field_name,
                record_identity=identity,
                message=message,
            ))

        try:
            existing = await self._store.get(record_type, identity)
            if existing is None:
                fail(f"Entry not found: {record_type} {identity}")
                return

            current = existing.get(field_name)
            if not is_blank(current) and not overwrite:
                result.skipped += 1
                return

            # Only entries that will be written are format-checked.
            if not is_valid(value, prefix):
                fail(f"Invalid UUID for {record_type}.{field_name} ({identity}): {value!r}")
                return

            found = await self._oracle.exists(record_type, field_name, value, identity)
            if found.exists:
                fail(
                    f"UUID {value!r} already used by {record_type} "
                    f"{found.owner_record_identity}"
                )
                return

            result.changes.append(ImportChange(
                record_type=record_type,
                field=field_name,
                record_identity=identity,
                old_value=current,
                new_value=value,
            ))
            if not result.dry_run:
                await self._store.update(record_type, identity, {field_name: value})
                await audit(
                    action="uuid.import",
                    resource_type=record_type,
                    resource_id=identity,
                    metadata={"field": field_name, "old_value": current, "new_value": value},
                )
            result.imported += 1
        except PlatformError as exc:
            log.warning(
                "snapshot.import_failed",
                record_type=record_type,
                field=field_name,
                record_identity=identity,
                error=exc.user_message,
            )
            result.errors.append(RecordError(
                record_type=record_type,
                field=field_name,
                record_identity=identity,
                message=f"Failed to import {record_type}.{identity}: {exc.user_message}",
            ))


__all__ = ["SnapshotService"]
