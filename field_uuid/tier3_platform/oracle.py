"""
field_uuid.tier3_platform.oracle
──────────────────────────────────
Uniqueness oracle: answers "who already owns this value?" for a monitored
(record type, field), and finds fresh values that nobody owns.

The owner's record identity is returned, not just a flag: a hit owned by the
same record identity is another revision of the same record, not a duplicate.
"""
from __future__ import annotations

from collections.abc import Collection
from dataclasses import dataclass
from typing import Any

from field_uuid._registry import FieldRegistry, MonitoredField
from field_uuid.tier0_core import metrics
from field_uuid.tier0_core.config import FieldUuidConfig
from field_uuid.tier0_core.errors import GenerationExhaustedError
from field_uuid.tier0_core.ids import generate
from field_uuid.tier0_core.logging import get_logger
from field_uuid.tier1_runtime.retry import CollisionError, RetryError, collision_retry
from field_uuid.tier2_reliability.storage import RecordStore

log = get_logger(__name__)


@dataclass(frozen=True)
class OwnerLookup:
    exists: bool
    owner_record_identity: str | None = None


_FREE = OwnerLookup(exists=False)


class UniquenessOracle:
    def __init__(
        self,
        store: RecordStore,
        registry: FieldRegistry,
        config: FieldUuidConfig,
        generator=generate,
    ) -> None:
        self._store = store
        self._registry = registry
        self._config = config
        self._generate = generator

    @property
    def enabled(self) -> bool:
        return self._config.validate_uniqueness

    async def lookup(
        self,
        record_type: str,
        field: str,
        value: str,
        exclude_record_identity: str | None = None,
    ) -> OwnerLookup:
        """Query the store regardless of the validate_uniqueness switch."""
        owner = await self._store.find_owner(record_type, field, value, exclude_record_identity)
        return OwnerLookup(exists=owner is not None, owner_record_identity=owner)

    async def exists(
        self,
        record_type: str,
        field: str,
        value: str,
        exclude_record_identity: str | None = None,
    ) -> OwnerLookup:
        """Owner lookup honoring configuration; always free when checking is disabled."""
        if not self.enabled:
            return _FREE
        return await self.lookup(record_type, field, value, exclude_record_identity)

    async def current_value(self, record_type: str, field: str, record_identity: str) -> Any:
        """The value the stored record holds now, or None when the record is absent."""
        row = await self._store.get(record_type, record_identity)
        return None if row is None else row.get(field)

    def _field(self, record_type: str, field: str) -> MonitoredField:
        monitored = self._registry.get_field(record_type, field)
        if monitored is None:
            # Unmonitored pairs still get a value in the configured layout.
            monitored = MonitoredField(record_type, field, self._config.default_version)
        return monitored

    async def generate_unique(
        self,
        record_type: str,
        field: str,
        *,
        reserved: Collection[str] = (),
    ) -> str:
        """
        Generate a value for the field (its version and prefix) that no record
        owns and that is not in ``reserved``. Retries up to max_retry_attempts;
        raises GenerationExhaustedError when every candidate collided.
        """
        monitored = self._field(record_type, field)
        max_attempts = self._config.max_retry_attempts
        try:
            async for attempt in collision_retry(
                max_attempts, record_type=record_type, field=field
            ):
                with attempt:
                    candidate = self._generate(monitored.version, monitored.prefix)
                    if candidate in reserved:
                        metrics.collisions(record_type=record_type, field=field).inc()
                        raise CollisionError(candidate)
                    found = await self.exists(record_type, field, candidate)
                    if found.exists:
                        metrics.collisions(record_type=record_type, field=field).inc()
                        raise CollisionError(candidate, found.owner_record_identity)
                    metrics.uuids_generated(record_type=record_type, field=field).inc()
                    return candidate
        except RetryError as exc:
            log.error(
                "uuid.generation_exhausted",
                record_type=record_type,
                field=field,
                max_attempts=max_attempts,
            )
            raise GenerationExhaustedError(
                user_message=(
                    f"Failed to generate unique UUID for {record_type}.{field} "
                    f"after {max_attempts} attempts"
                ),
                record_type=record_type,
                field=field,
            ) from exc


__all__ = ["OwnerLookup", "UniquenessOracle"]
