"""
field_uuid._registry
─────────────────────────
Monitored field registry: the single source of truth for which
(record type, field) pairs hold a managed identifier.

Declaring a monitored field:
  1. Define the record type as a declarative model on ``tier0_core.data.Base``
     (mix in ``RecordMixin`` for the row/record identity columns)
  2. Declare the identifier column with ``uuid_column(...)``

At startup ``build_registry()`` walks the mappers once and records every
column carrying the ``field_uuid`` marker. The result is immutable; a schema
change needs a restart.
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import asdict, dataclass
from types import MappingProxyType
from typing import Any

from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, MappedColumn, mapped_column

from field_uuid.tier0_core.config import FieldUuidConfig
from field_uuid.tier0_core.ids import UuidVersion

MARKER = "field_uuid"


@dataclass(frozen=True)
class MonitoredField:
    """A (record type, field) pair holding a managed identifier."""
    record_type: str
    field: str
    version: UuidVersion
    prefix: str = ""
    auto_generate: bool = True
    allow_edit: bool = False

    def options(self) -> dict[str, Any]:
        d = asdict(self)
        d.pop("record_type")
        d.pop("field")
        return d


def uuid_column(
    *,
    version: UuidVersion | None = None,
    prefix: str = "",
    auto_generate: bool = True,
    allow_edit: bool | None = None,
    length: int | None = None,
) -> MappedColumn[Any]:
    """
    Declare a monitored identifier column.

    Usage:
        class Article(RecordMixin, Base):
            __tablename__ = "article"
            uid: Mapped[str | None] = uuid_column()
            ref: Mapped[str | None] = uuid_column(version="v7", prefix="art_")

    ``version=None`` and ``allow_edit=None`` defer to the plugin config.
    Uniqueness is enforced by the write-time guard, not by a DB constraint:
    draft and published revisions of one record share the value.
    """
    if version is not None and version not in ("v4", "v7"):
        raise ValueError(f"Unknown UUID version: {version!r}. Use 'v4' or 'v7'.")
    return mapped_column(
        String(length or 36 + len(prefix)),
        nullable=True,
        index=True,
        info={
            MARKER: {
                "version": version,
                "prefix": prefix,
                "auto_generate": auto_generate,
                "allow_edit": allow_edit,
            }
        },
    )


class FieldRegistry(Mapping[str, tuple[MonitoredField, ...]]):
    """Immutable mapping of record type -> monitored fields, in declaration order."""

    def __init__(
        self,
        fields: Mapping[str, tuple[MonitoredField, ...]],
        models: Mapping[str, type] | None = None,
    ) -> None:
        self._fields = MappingProxyType(dict(fields))
        self._models = MappingProxyType(dict(models or {}))

    def __getitem__(self, record_type: str) -> tuple[MonitoredField, ...]:
        return self._fields[record_type]

    def __iter__(self) -> Iterator[str]:
        return iter(self._fields)

    def __len__(self) -> int:
        return len(self._fields)

    def fields_for(self, record_type: str) -> tuple[MonitoredField, ...]:
        """Monitored fields of a record type; empty for unmonitored types."""
        return self._fields.get(record_type, ())

    def get_field(self, record_type: str, field: str) -> MonitoredField | None:
        for monitored in self.fields_for(record_type):
            if monitored.field == field:
                return monitored
        return None

    def model_for(self, record_type: str) -> type | None:
        """Declarative class behind a record type (None for schema-less registries)."""
        return self._models.get(record_type)

    def all_fields(self) -> Iterator[MonitoredField]:
        for fields in self._fields.values():
            yield from fields

    def as_model_map(self) -> dict[str, list[str]]:
        """``{record_type: [field, ...]}``"""
        return {rt: [f.field for f in fields] for rt, fields in self._fields.items()}

    def describe(self) -> dict[str, dict[str, dict[str, Any]]]:
        """``{record_type: {field: options}}`` for editing clients."""
        return {
            rt: {f.field: f.options() for f in fields}
            for rt, fields in self._fields.items()
        }


def build_registry(
    config: FieldUuidConfig,
    base: type[DeclarativeBase] | None = None,
) -> FieldRegistry:
    """
    Scan every mapped class on ``base`` and collect monitored columns.

    Record types come back sorted by name so scans, reports and exports
    have a stable order.
    """
    if base is None:
        from field_uuid.tier0_core.data import Base
        base = Base

    fields: dict[str, tuple[MonitoredField, ...]] = {}
    models: dict[str, type] = {}

    mappers = sorted(base.registry.mappers, key=lambda m: m.local_table.name)
    for mapper in mappers:
        record_type = mapper.local_table.name
        found: list[MonitoredField] = []
        for attr in mapper.column_attrs:
            column = attr.columns[0]
            marker = column.info.get(MARKER)
            if marker is None:
                continue
            found.append(MonitoredField(
                record_type=record_type,
                field=attr.key,
                version=marker["version"] or config.default_version,
                prefix=marker["prefix"],
                auto_generate=marker["auto_generate"],
                allow_edit=(
                    config.allow_manual_edit
                    if marker["allow_edit"] is None
                    else marker["allow_edit"]
                ),
            ))
        if found:
            fields[record_type] = tuple(found)
            models[record_type] = mapper.class_

    return FieldRegistry(fields, models)


__all__ = ["MARKER", "MonitoredField", "FieldRegistry", "uuid_column", "build_registry"]
