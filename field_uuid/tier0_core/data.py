"""
field_uuid.tier0_core.data
──────────────────────────────
Declarative base for record types, DB connection lifecycle and transaction
boundaries for the SQL record store.

Minimal stack: SQLAlchemy 2.x async (aiosqlite for local/dev)
Configure via: FIELD_UUID_DATABASE_URL

Every record type is a row-per-revision table: ``id`` is the storage row
identity, ``document_id`` the record identity shared by the draft and
published revisions of one logical record.
"""
from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Integer, String
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ── Base model ────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    """All record types inherit from this base."""
    pass


class RecordMixin:
    """Row identity, record identity and revision columns shared by record types."""

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    document_id: Mapped[str] = mapped_column(String(64), index=True, nullable=False)
    revision: Mapped[str] = mapped_column(String(16), default="draft", nullable=False)


# ── Engine / session factory ──────────────────────────────────────────────────

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine(url: str | None = None) -> AsyncEngine:
    """Return the singleton async engine. Created on first call."""
    global _engine
    if _engine is None:
        url = url or os.environ.get("FIELD_UUID_DATABASE_URL", "sqlite+aiosqlite:///./field_uuid.db")
        kwargs: dict[str, Any] = {"echo": os.getenv("FIELD_UUID_DATABASE_ECHO", "").lower() == "true"}
        _engine = create_async_engine(url, **kwargs)
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            bind=get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager that yields a transactional session.
    Commits on clean exit, rolls back on exception, always closes.

    Usage:
        async with get_session() as session:
            result = await session.execute(select(Article.document_id))
    """
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def create_all() -> None:
    """Create tables for every record type bound to Base."""
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the engine. Call on application shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


def _reset() -> None:
    """For tests: reset engine and session factory."""
    global _engine, _session_factory
    _engine = None
    _session_factory = None
