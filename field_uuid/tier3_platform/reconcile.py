"""
field_uuid.tier3_platform.reconcile
─────────────────────────────────────
Reconciliation engine. Scans every monitored field, classifies each record
identity as ok / empty / invalid / duplicate, and repairs what it finds.

Usage:
    engine = ReconciliationEngine(store, registry, oracle)
    report = await engine.diagnose()
    preview = await engine.fix(dry_run=True)
    result = await engine.fix(dry_run=False, fix_invalid=False)

Repairs are best-effort: a failure on one record lands in ``errors`` and the
run continues. Dry run and live run go through the same decisions and build
the same change log; only the store write is skipped in a dry run. A live
write that fails is reported in ``errors`` and left out of the change log.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from field_uuid._registry import FieldRegistry, MonitoredField
from field_uuid.tier0_core import metrics
from field_uuid.tier0_core.errors import PlatformError
from field_uuid.tier0_core.logging import get_logger
from field_uuid.tier1_runtime import clock
from field_uuid.tier1_runtime.validate import is_blank, is_valid
from field_uuid.tier2_reliability.audit import audit
from field_uuid.tier2_reliability.storage import RecordStore
from field_uuid.tier3_platform.oracle import UniquenessOracle
from field_uuid.tier3_platform.reports import (
    ChangeLogEntry,
    ChangeType,
    DiagnosisReport,
    DuplicateGroup,
    FieldDiagnosis,
    FieldIssue,
    FieldStatus,
    FixCounts,
    MigrationStatus,
    ReconciliationResult,
    RecordError,
    RecordTypeDiagnosis,
    Stats,
)

log = get_logger(__name__)

_CATEGORY = {
    "empty_fix": "empty",
    "invalid_fix": "invalid",
    "duplicate_fix": "duplicates",
}


@dataclass
class FieldScan:
    """One pass over a monitored field, grouped by record identity, in row order."""
    monitored: MonitoredField
    identities: list[str] = field(default_factory=list)
    empty: list[tuple[str, Any]] = field(default_factory=list)
    invalid: list[tuple[str, str]] = field(default_factory=list)
    groups: dict[str, list[str]] = field(default_factory=dict)

    @property
    def duplicates(self) -> list[tuple[str, list[str]]]:
        """Values held by two or more distinct record identities."""
        return [(value, ids) for value, ids in self.groups.items() if len(ids) > 1]

    @property
    def duplicate_count(self) -> int:
        return sum(len(ids) - 1 for _, ids in self.duplicates)


@dataclass
class _FixRun:
    result: ReconciliationResult
    reserved: set[str] = field(default_factory=set)
    handled: set[str] = field(default_factory=set)


class ReconciliationEngine:
    def __init__(
        self,
        store: RecordStore,
        registry: FieldRegistry,
        oracle: UniquenessOracle,
    ) -> None:
        self._store = store
        self._registry = registry
        self._oracle = oracle

    # ── Scanning ─────────────────────────────────────────────────────────────

    async def scan_field(self, monitored: MonitoredField) -> FieldScan:
        rows = await self._store.scan(monitored.record_type, monitored.field)
        scan = FieldScan(monitored)
        seen_identities: set[str] = set()
        seen_pairs: set[tuple[str, Any]] = set()

        for row in rows:
            identity, value = row.record_identity, row.value
            if identity not in seen_identities:
                seen_identities.add(identity)
                scan.identities.append(identity)

            # Revisions of one record repeat the same (identity, value) pair.
            pair = (identity, value)
            if pair in seen_pairs:
                continue
            seen_pairs.add(pair)

            if is_blank(value):
                scan.empty.append(pair)
                continue
            if not is_valid(value, monitored.prefix):
                scan.invalid.append(pair)
            scan.groups.setdefault(value, []).append(identity)

        return scan

    # ── Read-only reports ────────────────────────────────────────────────────

    async def diagnose(self) -> DiagnosisReport:
        """Duplicate groups per monitored field. Read-only; datastore errors propagate."""
        report = DiagnosisReport()
        for record_type, fields in self._registry.items():
            report.scanned_models += 1
            details = RecordTypeDiagnosis()
            for monitored in fields:
                scan = await self.scan_field(monitored)
                groups = [
                    DuplicateGroup(value=value, count=len(ids), record_identities=list(ids))
                    for value, ids in scan.duplicates
                ]
                details.fields[monitored.field] = FieldDiagnosis(
                    duplicate_groups=len(groups),
                    affected_entries=sum(g.count for g in groups),
                    duplicates=groups,
                )
                report.total_duplicates += scan.duplicate_count
            report.details[record_type] = details
        return report

    async def status(self) -> MigrationStatus:
        """Empty / invalid / duplicate counts per monitored field."""
        report = MigrationStatus()
        for monitored in self._registry.all_fields():
            info = FieldStatus(record_type=monitored.record_type, field=monitored.field)
            try:
                scan = await self.scan_field(monitored)
            except Exception as exc:
                log.error(
                    "reconcile.scan_failed",
                    record_type=monitored.record_type,
                    field=monitored.field,
                    error=str(exc),
                )
                info.error = str(exc)
                report.issues.append(
                    f"Failed to check {monitored.record_type}.{monitored.field}: {exc}"
                )
            else:
                info.entry_count = len(scan.identities)
                info.empty_count = len(scan.empty)
                info.invalid_count = len(scan.invalid)
                info.duplicate_count = scan.duplicate_count
                info.issues.extend(
                    FieldIssue(type="invalid", record_identity=identity, value=value)
                    for identity, value in scan.invalid
                )
                info.issues.extend(
                    FieldIssue(
                        type="duplicate",
                        value=value,
                        count=len(ids),
                        record_identities=list(ids),
                    )
                    for value, ids in scan.duplicates
                )
                report.total_entries += info.entry_count
                if info.empty_count or info.invalid_count or info.duplicate_count:
                    report.needs_migration = True
            report.content_types.append(info)
            report.total_fields += 1
        return report

    async def stats(self) -> Stats:
        status = await self.status()
        return Stats(
            content_types=len(self._registry),
            total_fields=sum(len(fields) for fields in self._registry.values()),
            total_entries=status.total_entries,
            issues=FixCounts(
                empty=sum(ct.empty_count for ct in status.content_types),
                invalid=sum(ct.invalid_count for ct in status.content_types),
                duplicates=sum(ct.duplicate_count for ct in status.content_types),
            ),
            needs_migration=status.needs_migration,
            models=self._registry.as_model_map(),
            last_checked=clock.isoformat(),
        )

    # ── Repair ───────────────────────────────────────────────────────────────

    async def fix(
        self,
        dry_run: bool = True,
        fix_empty: bool = True,
        fix_invalid: bool = True,
        fix_duplicates: bool = True,
    ) -> ReconciliationResult:
        """
        Scan each monitored field once and reassign empty, invalid and
        duplicate values. In a duplicate group the identity met first in row
        order keeps the value. A record identity is reassigned at most once
        per field per run.
        """
        run = _FixRun(ReconciliationResult(dry_run=dry_run, started_at=clock.isoformat()))

        for monitored in self._registry.all_fields():
            try:
                scan = await self.scan_field(monitored)
            except Exception as exc:
                log.error(
                    "reconcile.scan_failed",
                    record_type=monitored.record_type,
                    field=monitored.field,
                    error=str(exc),
                )
                run.result.errors.append(RecordError(
                    record_type=monitored.record_type,
                    field=monitored.field,
                    message=f"Failed to scan {monitored.record_type}.{monitored.field}: {exc}",
                ))
                continue

            run.handled = set()
            if fix_empty:
                for identity, value in scan.empty:
                    await self._reassign(run, "empty_fix", monitored, identity, value)
            if fix_invalid:
                for identity, value in scan.invalid:
                    await self._reassign(run, "invalid_fix", monitored, identity, value)
            if fix_duplicates:
                for value, identities in scan.duplicates:
                    keep, *others = identities
                    for identity in others:
                        await self._reassign(
                            run, "duplicate_fix", monitored, identity, value, kept=keep
                        )

        result = run.result
        result.completed_at = clock.isoformat()
        result.total_fixed = result.fixed.empty + result.fixed.invalid + result.fixed.duplicates
        if not dry_run and result.total_fixed:
            log.info("reconcile.completed", total_fixed=result.total_fixed, errors=len(result.errors))
        return result

    async def autofix(self, dry_run: bool = False) -> ReconciliationResult:
        """Reassign duplicates only."""
        return await self.fix(dry_run=dry_run, fix_empty=False, fix_invalid=False, fix_duplicates=True)

    async def generate_missing(self, dry_run: bool = False) -> ReconciliationResult:
        """Fill empty values only."""
        return await self.fix(dry_run=dry_run, fix_empty=True, fix_invalid=False, fix_duplicates=False)

    async def _reassign(
        self,
        run: _FixRun,
        change_type: ChangeType,
        monitored: MonitoredField,
        identity: str,
        old_value: Any,
        kept: str | None = None,
    ) -> None:
        if identity in run.handled:
            return
        record_type, field_name = monitored.record_type, monitored.field
        result = run.result

        try:
            new_value = await self._oracle.generate_unique(
                record_type, field_name, reserved=run.reserved
            )
        except PlatformError as exc:
            self._record_error(result, monitored, identity, exc)
            return

        run.reserved.add(new_value)
        run.handled.add(identity)
        result.changes.append(ChangeLogEntry(
            type=change_type,
            record_type=record_type,
            field=field_name,
            record_identity=identity,
            old_value=old_value if isinstance(old_value, str) else None,
            new_value=new_value,
            kept_record_identity=kept,
        ))

        category = _CATEGORY[change_type]
        if not result.dry_run:
            try:
                await self._store.update(record_type, identity, {field_name: new_value})
            except Exception as exc:
                result.changes.pop()
                self._record_error(result, monitored, identity, exc)
                return
            metrics.fixes(category=category).inc()
            await audit(
                action="uuid.reassign",
                resource_type=record_type,
                resource_id=identity,
                metadata={
                    "field": field_name,
                    "reason": change_type,
                    "old_value": old_value,
                    "new_value": new_value,
                },
            )
            log.info(
                "reconcile.fixed",
                reason=change_type,
                record_type=record_type,
                field=field_name,
                record_identity=identity,
                new_value=new_value,
            )

        setattr(result.fixed, category, getattr(result.fixed, category) + 1)

    @staticmethod
    def _record_error(
        result: ReconciliationResult,
        monitored: MonitoredField,
        identity: str,
        exc: Exception,
    ) -> None:
        message = exc.user_message if isinstance(exc, PlatformError) else str(exc)
        log.warning(
            "reconcile.fix_failed",
            record_type=monitored.record_type,
            field=monitored.field,
            record_identity=identity,
            error=message,
        )
        result.errors.append(RecordError(
            record_type=monitored.record_type,
            field=monitored.field,
            record_identity=identity,
            message=f"Failed to fix {monitored.record_type}.{monitored.field} ({identity}): {message}",
        ))


__all__ = ["FieldScan", "ReconciliationEngine"]
