"""field-uuid admin server: minimal HTTP entry point.

Declares two example record types, creates their tables, and serves the
admin API:

  article: uid (default version), ref (v7, "art_" prefix)
  author: uid

Usage:
    FIELD_UUID_IDENTITY_PROVIDER=static FIELD_UUID_ADMIN_TOKEN=... python -m server.main
"""

from __future__ import annotations

import asyncio
import os

import uvicorn
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from field_uuid import bootstrap, create_app, get_config, get_logger, uuid_column
from field_uuid.tier0_core.data import Base, RecordMixin, create_all, dispose_engine
from field_uuid.tier0_core.metrics import start_metrics_server

log = get_logger("server")

HOST = os.getenv("FIELD_UUID_HOST", "0.0.0.0")
PORT = int(os.getenv("FIELD_UUID_PORT", "8080"))


class Article(RecordMixin, Base):
    __tablename__ = "article"

    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uid: Mapped[str | None] = uuid_column()
    ref: Mapped[str | None] = uuid_column(version="v7", prefix="art_")


class Author(RecordMixin, Base):
    __tablename__ = "author"

    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    uid: Mapped[str | None] = uuid_column()


async def main() -> None:
    config = get_config()
    plugin = bootstrap(config)
    if config.store_backend == "sql":
        await create_all()
    if config.metrics_enabled:
        start_metrics_server(config.metrics_port)

    app = create_app(plugin)
    server = uvicorn.Server(uvicorn.Config(app, host=HOST, port=PORT, log_config=None))
    log.info("server.starting", host=HOST, port=PORT, models=plugin.registry.as_model_map())
    try:
        await server.serve()
    finally:
        await dispose_engine()
        log.info("server.stopped")


if __name__ == "__main__":
    asyncio.run(main())
