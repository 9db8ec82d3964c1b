"""
field_uuid test configuration.

All tests run against the in-memory record store and the mock identity
provider by default, so no database or credentials required. SQL backend
tests opt in with the ``sql_plugin`` fixture (temporary aiosqlite file).
"""
from __future__ import annotations

import itertools
import os
import uuid

import pytest
import pytest_asyncio
from sqlalchemy import String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# ── Force mock providers for all tests ────────────────────────────────────
# These must be set before any field_uuid modules read the environment.

os.environ.setdefault("FIELD_UUID_STORE_BACKEND", "memory")
os.environ.setdefault("FIELD_UUID_IDENTITY_PROVIDER", "mock")
os.environ.setdefault("FIELD_UUID_LOG_LEVEL", "warn")
os.environ.setdefault("FIELD_UUID_AUTO_MIGRATE", "false")

from field_uuid._registry import build_registry, uuid_column  # noqa: E402
from field_uuid.plugin import bootstrap  # noqa: E402
from field_uuid.tier0_core.config import load_config  # noqa: E402
from field_uuid.tier0_core.data import RecordMixin  # noqa: E402
from field_uuid.tier2_reliability.storage import MemoryRecordStore  # noqa: E402


# ── Sample record types ────────────────────────────────────────────────────

class SampleBase(DeclarativeBase):
    pass


class Article(RecordMixin, SampleBase):
    __tablename__ = "article"

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uid: Mapped[str | None] = uuid_column()
    ref: Mapped[str | None] = uuid_column(version="v7", prefix="art_")


class Author(RecordMixin, SampleBase):
    __tablename__ = "author"

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uid: Mapped[str | None] = uuid_column(allow_edit=True)


class Tag(RecordMixin, SampleBase):
    """No monitored fields; must never appear in the registry."""
    __tablename__ = "tag"

    label: Mapped[str | None] = mapped_column(String(64), nullable=True)


# ── Deterministic generators ───────────────────────────────────────────────

class SequenceGenerator:
    """
    Deterministic stand-in for ids.generate: the n-th call returns the n-th
    value of a fixed sequence, so two runs see the same candidates.
    """

    def __init__(self, seed: int = 0) -> None:
        self._counter = itertools.count(seed + 1)

    def __call__(self, version: str = "v4", prefix: str = "") -> str:
        n = next(self._counter)
        digit = "7" if version == "v7" else "4"
        return f"{prefix}{n:08x}-0000-{digit}000-8000-{n:012x}"


class FixedGenerator:
    """Always returns the same value, so every candidate collides once it is taken."""

    def __init__(self, value: str) -> None:
        self.value = value
        self.calls = 0

    def __call__(self, version: str = "v4", prefix: str = "") -> str:
        self.calls += 1
        return self.value


def uuid4() -> str:
    return str(uuid.uuid4())


# ── Fixtures ───────────────────────────────────────────────────────────────

@pytest.fixture
def config():
    return load_config(store_backend="memory", identity_provider="mock")


@pytest.fixture
def registry(config):
    return build_registry(config, SampleBase)


@pytest.fixture
def store():
    return MemoryRecordStore()


@pytest.fixture
def plugin(config, store):
    return bootstrap(config, base=SampleBase, store=store)


@pytest.fixture
def make_plugin():
    """Build a plugin with config overrides and an optional fixed generator."""

    def _make(generator=None, store=None, **overrides):
        overrides.setdefault("store_backend", "memory")
        overrides.setdefault("identity_provider", "mock")
        return bootstrap(
            load_config(**overrides),
            base=SampleBase,
            store=store or MemoryRecordStore(),
            generator=generator,
        )

    return _make


@pytest_asyncio.fixture
async def sql_plugin(tmp_path, monkeypatch):
    """Plugin over the SQL backend, on a fresh aiosqlite file per test."""
    from field_uuid.tier0_core import data

    url = f"sqlite+aiosqlite:///{tmp_path / 'field_uuid_test.db'}"
    monkeypatch.setenv("FIELD_UUID_DATABASE_URL", url)
    data._reset()
    plugin = bootstrap(
        load_config(store_backend="sql", database_url=url, identity_provider="mock"),
        base=SampleBase,
    )
    async with data.get_engine().begin() as conn:
        await conn.run_sync(SampleBase.metadata.create_all)
    yield plugin
    await data.dispose_engine()
