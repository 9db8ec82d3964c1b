"""
field_uuid.tier2_reliability.storage
────────────────────────────────────────
Record store abstraction. A unified async query/write interface over the
records of monitored record types, regardless of the backend:

  - SqlRecordStore: SQLAlchemy async session per call (production)
  - MemoryRecordStore: in-process rows (tests / local dev)

Select via: FIELD_UUID_STORE_BACKEND=sql|memory

Writes go through pre-commit hooks: ``create`` and ``update`` hand a
WriteOperation to every registered hook, in registration order, and persist
the payload the last hook returns. A hook rejects a write by raising.
"""
from __future__ import annotations

import itertools
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Literal, Protocol, runtime_checkable

from sqlalchemy import func, select, text, update
from sqlalchemy.exc import SQLAlchemyError

from field_uuid._registry import FieldRegistry
from field_uuid.tier0_core.config import FieldUuidConfig
from field_uuid.tier0_core.data import get_session
from field_uuid.tier0_core.errors import ConfigurationError, DatastoreError, NotFoundError
from field_uuid.tier0_core.ids import new_record_identity
from field_uuid.tier0_core.logging import get_logger

log = get_logger(__name__)

WriteKind = Literal["create", "update"]
_RESERVED = ("id", "document_id", "revision")


@dataclass(frozen=True)
class WriteOperation:
    """A pending write as seen by pre-commit hooks."""
    kind: WriteKind
    record_type: str
    data: dict[str, Any] = field(default_factory=dict)
    record_identity: str | None = None


@dataclass(frozen=True)
class RecordValue:
    """One stored row's identifier value, tagged with its record identity."""
    record_identity: str
    value: Any
    row_id: int


@runtime_checkable
class PreCommitHook(Protocol):
    async def __call__(self, operation: WriteOperation) -> dict[str, Any]:
        """Return the payload to persist, or raise to reject the write."""
        ...


@runtime_checkable
class RecordStore(Protocol):
    def add_hook(self, hook: PreCommitHook) -> None: ...

    async def create(
        self,
        record_type: str,
        data: dict[str, Any],
        record_identity: str | None = None,
        revision: str = "draft",
    ) -> dict[str, Any]: ...

    async def update(
        self, record_type: str, record_identity: str, data: dict[str, Any]
    ) -> int: ...

    async def find_owner(
        self,
        record_type: str,
        field: str,
        value: str,
        exclude_record_identity: str | None = None,
    ) -> str | None: ...

    async def scan(self, record_type: str, field: str) -> list[RecordValue]: ...

    async def get(self, record_type: str, record_identity: str) -> dict[str, Any] | None: ...

    async def ping(self) -> bool: ...


class _HookedStore:
    """Hook bookkeeping shared by the backends."""

    def __init__(self) -> None:
        self._hooks: list[PreCommitHook] = []

    def add_hook(self, hook: PreCommitHook) -> None:
        self._hooks.append(hook)

    async def _run_hooks(self, operation: WriteOperation) -> dict[str, Any]:
        for hook in self._hooks:
            operation = replace(operation, data=await hook(operation))
        return {k: v for k, v in operation.data.items() if k not in _RESERVED}


# ── In-memory backend ─────────────────────────────────────────────────────────

class MemoryRecordStore(_HookedStore):
    """
    Rows kept in process, one list per record type, in insertion order.
    NOT suitable for production; use for tests and local dev only.
    """

    def __init__(self) -> None:
        super().__init__()
        self._tables: dict[str, list[dict[str, Any]]] = {}
        self._row_ids = itertools.count(1)

    def _table(self, record_type: str) -> list[dict[str, Any]]:
        return self._tables.setdefault(record_type, [])

    async def create(
        self,
        record_type: str,
        data: dict[str, Any],
        record_identity: str | None = None,
        revision: str = "draft",
    ) -> dict[str, Any]:
        payload = await self._run_hooks(
            WriteOperation("create", record_type, dict(data), record_identity)
        )
        row = {
            **payload,
            "id": next(self._row_ids),
            "document_id": record_identity or new_record_identity(),
            "revision": revision,
        }
        self._table(record_type).append(row)
        return dict(row)

    async def update(
        self, record_type: str, record_identity: str, data: dict[str, Any]
    ) -> int:
        rows = [r for r in self._table(record_type) if r["document_id"] == record_identity]
        if not rows:
            raise NotFoundError(
                user_message=f"Record not found: {record_type} {record_identity}",
                record_type=record_type,
                record_identity=record_identity,
            )
        payload = await self._run_hooks(
            WriteOperation("update", record_type, dict(data), record_identity)
        )
        for row in rows:
            row.update(payload)
        return len(rows)

    async def find_owner(
        self,
        record_type: str,
        field: str,
        value: str,
        exclude_record_identity: str | None = None,
    ) -> str | None:
        for row in self._table(record_type):
            if row.get(field) == value and row["document_id"] != exclude_record_identity:
                return row["document_id"]
        return None

    async def scan(self, record_type: str, field: str) -> list[RecordValue]:
        return [
            RecordValue(row["document_id"], row.get(field), row["id"])
            for row in self._table(record_type)
        ]

    async def get(self, record_type: str, record_identity: str) -> dict[str, Any] | None:
        for row in self._table(record_type):
            if row["document_id"] == record_identity:
                return dict(row)
        return None

    async def ping(self) -> bool:
        return True


# ── SQLAlchemy backend ────────────────────────────────────────────────────────

class SqlRecordStore(_HookedStore):
    """
    Record store over the declarative models in the registry. Each call opens
    its own transactional session; hooks run before the write session opens.
    """

    def __init__(self, registry: FieldRegistry) -> None:
        super().__init__()
        self._registry = registry

    def _model(self, record_type: str) -> Any:
        model = self._registry.model_for(record_type)
        if model is None:
            raise NotFoundError(
                user_message=f"Unknown record type: {record_type}",
                record_type=record_type,
            )
        return model

    @contextmanager
    def _errors(self, action: str, record_type: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as exc:
            log.error("store.query_failed", action=action, record_type=record_type, error=str(exc))
            raise DatastoreError(
                user_message="Datastore operation failed.",
                detail=f"{action} on {record_type} failed: {exc}",
                record_type=record_type,
            ) from exc

    @staticmethod
    def _as_dict(obj: Any) -> dict[str, Any]:
        return {c.key: getattr(obj, c.key) for c in obj.__mapper__.column_attrs}

    async def create(
        self,
        record_type: str,
        data: dict[str, Any],
        record_identity: str | None = None,
        revision: str = "draft",
    ) -> dict[str, Any]:
        model = self._model(record_type)
        payload = await self._run_hooks(
            WriteOperation("create", record_type, dict(data), record_identity)
        )
        with self._errors("create", record_type):
            async with get_session() as session:
                obj = model(
                    **payload,
                    document_id=record_identity or new_record_identity(),
                    revision=revision,
                )
                session.add(obj)
                await session.flush()
                return self._as_dict(obj)

    async def update(
        self, record_type: str, record_identity: str, data: dict[str, Any]
    ) -> int:
        model = self._model(record_type)
        with self._errors("update", record_type):
            async with get_session() as session:
                count = await session.scalar(
                    select(func.count()).select_from(model).where(
                        model.document_id == record_identity
                    )
                )
        if not count:
            raise NotFoundError(
                user_message=f"Record not found: {record_type} {record_identity}",
                record_type=record_type,
                record_identity=record_identity,
            )
        payload = await self._run_hooks(
            WriteOperation("update", record_type, dict(data), record_identity)
        )
        if not payload:
            return 0
        with self._errors("update", record_type):
            async with get_session() as session:
                result = await session.execute(
                    update(model)
                    .where(model.document_id == record_identity)
                    .values(**payload)
                )
                return result.rowcount

    async def find_owner(
        self,
        record_type: str,
        field: str,
        value: str,
        exclude_record_identity: str | None = None,
    ) -> str | None:
        model = self._model(record_type)
        stmt = select(model.document_id).where(getattr(model, field) == value)
        if exclude_record_identity is not None:
            stmt = stmt.where(model.document_id != exclude_record_identity)
        with self._errors("find_owner", record_type):
            async with get_session() as session:
                result = await session.execute(stmt.order_by(model.id).limit(1))
                return result.scalars().first()

    async def scan(self, record_type: str, field: str) -> list[RecordValue]:
        model = self._model(record_type)
        stmt = select(model.document_id, getattr(model, field), model.id).order_by(model.id)
        with self._errors("scan", record_type):
            async with get_session() as session:
                result = await session.execute(stmt)
                return [RecordValue(doc_id, value, row_id) for doc_id, value, row_id in result.all()]

    async def get(self, record_type: str, record_identity: str) -> dict[str, Any] | None:
        model = self._model(record_type)
        stmt = (
            select(model)
            .where(model.document_id == record_identity)
            .order_by(model.id)
            .limit(1)
        )
        with self._errors("get", record_type):
            async with get_session() as session:
                obj = (await session.execute(stmt)).scalars().first()
                return self._as_dict(obj) if obj is not None else None

    async def ping(self) -> bool:
        with self._errors("ping", "*"):
            async with get_session() as session:
                await session.execute(text("SELECT 1"))
        return True


# ── Backend factory ───────────────────────────────────────────────────────────

def build_store(config: FieldUuidConfig, registry: FieldRegistry) -> RecordStore:
    """Build the record store selected by ``store_backend``."""
    backend = config.store_backend
    if backend == "memory":
        return MemoryRecordStore()
    if backend == "sql":
        from field_uuid.tier0_core.data import get_engine
        get_engine(config.database_url)
        return SqlRecordStore(registry)
    raise ConfigurationError(
        user_message=f"Unknown FIELD_UUID_STORE_BACKEND={backend!r}. Valid options: sql, memory"
    )


__all__ = [
    "WriteOperation",
    "RecordValue",
    "PreCommitHook",
    "RecordStore",
    "MemoryRecordStore",
    "SqlRecordStore",
    "build_store",
]
