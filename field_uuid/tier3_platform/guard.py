"""
field_uuid.tier3_platform.guard
─────────────────────────────────
Write-time guard: the pre-commit hook that keeps monitored fields filled,
well-formed and unique on every create and update.

Per monitored field, a write moves INCOMING → NO_VALUE | HAS_VALUE → RESOLVED:

  create, NO_VALUE (blank or malformed) + auto-generate  → fresh unique value
  create, HAS_VALUE already owned by the same identity   → kept (revision)
  create, HAS_VALUE owned, incoming identity unknown     → kept or reassigned,
                                                           per keep_unattributed_duplicates
  create, HAS_VALUE owned by another identity            → fresh unique value
  update, field in payload, equal to the stored value    → kept
  update, field in payload, malformed                    → ValidationError
  update, field in payload, owned by another identity    → ValidationError
  update, field not in payload                           → untouched

Rejections and exhaustion abort only the write being guarded.
"""
from __future__ import annotations

from enum import Enum
from typing import Any

from field_uuid._registry import FieldRegistry, MonitoredField
from field_uuid.tier0_core import metrics
from field_uuid.tier0_core.config import FieldUuidConfig
from field_uuid.tier0_core.errors import ValidationError
from field_uuid.tier0_core.logging import get_logger
from field_uuid.tier1_runtime.validate import is_blank, is_valid
from field_uuid.tier2_reliability.storage import WriteOperation
from field_uuid.tier3_platform.oracle import UniquenessOracle

log = get_logger(__name__)


class Resolution(str, Enum):
    GENERATED = "generated"
    KEPT = "kept"
    REASSIGNED = "reassigned"
    ACCEPTED = "accepted"
    CLEARED = "cleared"


class WriteGuard:
    """Pre-commit hook enforcing identifier policy. Register with store.add_hook()."""

    def __init__(
        self,
        oracle: UniquenessOracle,
        registry: FieldRegistry,
        config: FieldUuidConfig,
    ) -> None:
        self._oracle = oracle
        self._registry = registry
        self._config = config

    async def __call__(self, operation: WriteOperation) -> dict[str, Any]:
        fields = self._registry.fields_for(operation.record_type)
        if not fields:
            return operation.data

        data = dict(operation.data)
        for monitored in fields:
            if operation.kind == "create":
                resolution = await self._resolve_create(monitored, data, operation.record_identity)
            else:
                resolution = await self._resolve_update(monitored, data, operation.record_identity)
            if resolution is not None:
                log.debug(
                    "guard.resolved",
                    kind=operation.kind,
                    record_type=monitored.record_type,
                    field=monitored.field,
                    record_identity=operation.record_identity,
                    resolution=resolution.value,
                )
        return data

    def _auto_generates(self, monitored: MonitoredField) -> bool:
        return self._config.auto_generate and monitored.auto_generate

    async def _unchanged(
        self, monitored: MonitoredField, value: Any, record_identity: str | None
    ) -> bool:
        """True when the update re-sends the value the record already holds."""
        if record_identity is None:
            return False
        current = await self._oracle.current_value(
            monitored.record_type, monitored.field, record_identity
        )
        return current == value

    async def _resolve_create(
        self,
        monitored: MonitoredField,
        data: dict[str, Any],
        record_identity: str | None,
    ) -> Resolution | None:
        record_type, field = monitored.record_type, monitored.field
        value = data.get(field)
        has_value = not is_blank(value) and is_valid(value, monitored.prefix)

        # NO_VALUE
        if not has_value and self._auto_generates(monitored):
            data[field] = await self._oracle.generate_unique(record_type, field)
            return Resolution.GENERATED

        if is_blank(value):
            return None

        # HAS_VALUE
        found = await self._oracle.exists(record_type, field, value)
        if not found.exists:
            return Resolution.ACCEPTED

        if record_identity is not None and found.owner_record_identity == record_identity:
            return Resolution.KEPT

        if record_identity is None and self._config.keep_unattributed_duplicates:
            log.debug(
                "guard.unattributed_duplicate_kept",
                record_type=record_type,
                field=field,
                value=value,
                owner=found.owner_record_identity,
            )
            return Resolution.KEPT

        log.info(
            "guard.duplicate_reassigned",
            record_type=record_type,
            field=field,
            value=value,
            owner=found.owner_record_identity,
            record_identity=record_identity,
        )
        data[field] = await self._oracle.generate_unique(record_type, field)
        return Resolution.REASSIGNED

    async def _resolve_update(
        self,
        monitored: MonitoredField,
        data: dict[str, Any],
        record_identity: str | None,
    ) -> Resolution | None:
        record_type, field = monitored.record_type, monitored.field
        if field not in data:
            return None

        value = data[field]
        if is_blank(value):
            return Resolution.CLEARED

        if await self._unchanged(monitored, value, record_identity):
            return Resolution.KEPT

        if not is_valid(value, monitored.prefix):
            metrics.rejected_writes(record_type=record_type, reason="invalid").inc()
            log.warning(
                "guard.invalid_value_rejected",
                record_type=record_type,
                field=field,
                value=value,
                record_identity=record_identity,
            )
            raise ValidationError(
                user_message=f"Invalid UUID format for field '{field}': '{value}'",
                fields={field: "invalid UUID format"},
                field=field,
                value=value,
            )

        found = await self._oracle.exists(record_type, field, value, record_identity)
        if found.exists:
            metrics.rejected_writes(record_type=record_type, reason="duplicate").inc()
            log.warning(
                "guard.duplicate_rejected",
                record_type=record_type,
                field=field,
                value=value,
                record_identity=record_identity,
                owner=found.owner_record_identity,
            )
            raise ValidationError(
                user_message=(
                    f"UUID '{value}' already exists for field '{field}'. "
                    "Please use a unique value."
                ),
                fields={field: "UUID already in use"},
                field=field,
                value=value,
            )
        return Resolution.ACCEPTED


__all__ = ["Resolution", "WriteGuard"]
