"""
field_uuid.tier3_platform.reports
───────────────────────────────────
Report and snapshot shapes produced by reconciliation and export/import.
None of these are persisted; the export snapshot is the only one meant to be
written to a file and fed back later.
"""
from __future__ import annotations

from typing import Literal

from pydantic import Field

from field_uuid.tier1_runtime.serialize import ApiModel

SNAPSHOT_VERSION = "1.0.0"

ChangeType = Literal["empty_fix", "invalid_fix", "duplicate_fix"]


class RecordError(ApiModel):
    """A best-effort failure on one record (or one field scan) during a bulk run."""
    record_type: str
    field: str | None = None
    record_identity: str | None = None
    message: str


# ── Diagnosis ────────────────────────────────────────────────────────────────

class DuplicateGroup(ApiModel):
    value: str
    count: int
    record_identities: list[str]


class FieldDiagnosis(ApiModel):
    duplicate_groups: int = 0
    affected_entries: int = 0
    duplicates: list[DuplicateGroup] = Field(default_factory=list)


class RecordTypeDiagnosis(ApiModel):
    fields: dict[str, FieldDiagnosis] = Field(default_factory=dict)


class DiagnosisReport(ApiModel):
    scanned_models: int = 0
    total_duplicates: int = 0
    details: dict[str, RecordTypeDiagnosis] = Field(default_factory=dict)


# ── Migration status ─────────────────────────────────────────────────────────

class FieldIssue(ApiModel):
    type: Literal["invalid", "duplicate"]
    record_identity: str | None = None
    value: str | None = None
    count: int | None = None
    record_identities: list[str] | None = None


class FieldStatus(ApiModel):
    record_type: str
    field: str
    entry_count: int = 0
    empty_count: int = 0
    invalid_count: int = 0
    duplicate_count: int = 0
    issues: list[FieldIssue] = Field(default_factory=list)
    error: str | None = None


class MigrationStatus(ApiModel):
    needs_migration: bool = False
    content_types: list[FieldStatus] = Field(default_factory=list)
    total_fields: int = 0
    total_entries: int = 0
    issues: list[str] = Field(default_factory=list)


# ── Reconciliation ───────────────────────────────────────────────────────────

class ChangeLogEntry(ApiModel):
    type: ChangeType
    record_type: str
    field: str
    record_identity: str
    old_value: str | None = None
    new_value: str
    kept_record_identity: str | None = None


class FixCounts(ApiModel):
    empty: int = 0
    invalid: int = 0
    duplicates: int = 0


class ReconciliationResult(ApiModel):
    dry_run: bool
    started_at: str
    completed_at: str | None = None
    fixed: FixCounts = Field(default_factory=FixCounts)
    total_fixed: int = 0
    errors: list[RecordError] = Field(default_factory=list)
    changes: list[ChangeLogEntry] = Field(default_factory=list)


class Stats(ApiModel):
    content_types: int
    total_fields: int
    total_entries: int
    issues: FixCounts
    needs_migration: bool
    models: dict[str, list[str]]
    last_checked: str


# ── Export / import ──────────────────────────────────────────────────────────

class MappingEntry(ApiModel):
    record_identity: str | None = None
    value: str | None = None


class RecordTypeMappings(ApiModel):
    fields: dict[str, list[MappingEntry]] = Field(default_factory=dict)


class ExportSnapshot(ApiModel):
    exported_at: str
    version: str = SNAPSHOT_VERSION
    mappings: dict[str, RecordTypeMappings] = Field(default_factory=dict)


class ImportChange(ApiModel):
    record_type: str
    field: str
    record_identity: str
    old_value: str | None = None
    new_value: str


class ImportResult(ApiModel):
    dry_run: bool
    imported: int = 0
    skipped: int = 0
    errors: list[RecordError] = Field(default_factory=list)
    changes: list[ImportChange] = Field(default_factory=list)


__all__ = [
    "SNAPSHOT_VERSION",
    "RecordError",
    "DuplicateGroup",
    "FieldDiagnosis",
    "RecordTypeDiagnosis",
    "DiagnosisReport",
    "FieldIssue",
    "FieldStatus",
    "MigrationStatus",
    "ChangeLogEntry",
    "FixCounts",
    "ReconciliationResult",
    "Stats",
    "MappingEntry",
    "RecordTypeMappings",
    "ExportSnapshot",
    "ImportChange",
    "ImportResult",
]
