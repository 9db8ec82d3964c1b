"""
field_uuid.plugin
──────────────────
Plugin bootstrap. Wires config, registry, record store, oracle, write-time
guard, reconciliation engine and snapshot service into one object.

Usage:
    plugin = bootstrap(get_config())
    await plugin.store.create("article", {"title": "Hello"})
    report = await plugin.engine.diagnose()

The guard is registered as a pre-commit hook on the store here, so every
create/update made through ``plugin.store`` is covered.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field

from sqlalchemy.orm import DeclarativeBase

from field_uuid._registry import FieldRegistry, build_registry
from field_uuid.tier0_core.config import FieldUuidConfig
from field_uuid.tier0_core.identity import IdentityProvider, build_identity_provider
from field_uuid.tier0_core.logging import configure_logging, get_logger
from field_uuid.tier2_reliability.health import HealthChecker
from field_uuid.tier2_reliability.storage import RecordStore, build_store
from field_uuid.tier3_platform.guard import WriteGuard
from field_uuid.tier3_platform.oracle import UniquenessOracle
from field_uuid.tier3_platform.reconcile import ReconciliationEngine
from field_uuid.tier3_platform.snapshot import SnapshotService

log = get_logger(__name__)

PLUGIN_NAME = "field-uuid"


@dataclass
class Plugin:
    config: FieldUuidConfig
    registry: FieldRegistry
    store: RecordStore
    oracle: UniquenessOracle
    guard: WriteGuard
    engine: ReconciliationEngine
    snapshots: SnapshotService
    identity: IdentityProvider
    health: HealthChecker
    _tasks: set[asyncio.Task] = field(default_factory=set, repr=False)

    def start_auto_migration(self) -> asyncio.Task:
        """Schedule one background status check + live fix. Needs a running loop."""
        task = asyncio.get_running_loop().create_task(self._auto_migrate())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _auto_migrate(self) -> None:
        try:
            status = await self.engine.status()
            if not status.needs_migration:
                log.info("migration.auto_skipped", total_entries=status.total_entries)
                return
            log.info("migration.auto_started", total_fields=status.total_fields)
            result = await self.engine.fix(dry_run=False)
            log.info(
                "migration.auto_completed",
                total_fixed=result.total_fixed,
                errors=len(result.errors),
            )
        except Exception as exc:
            log.error("migration.auto_failed", error=str(exc))

    async def shutdown(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)


def bootstrap(
    config: FieldUuidConfig,
    base: type[DeclarativeBase] | None = None,
    store: RecordStore | None = None,
    generator=None,
) -> Plugin:
    """
    Build the plugin. ``base`` selects the declarative base to scan for
    monitored fields; ``store`` and ``generator`` override the backend and
    the value generator (tests).
    """
    configure_logging(config)
    registry = build_registry(config, base)
    if store is None:
        store = build_store(config, registry)

    oracle_kwargs = {"generator": generator} if generator is not None else {}
    oracle = UniquenessOracle(store, registry, config, **oracle_kwargs)
    guard = WriteGuard(oracle, registry, config)
    store.add_hook(guard)

    health = HealthChecker(plugin=PLUGIN_NAME, version=config.app_version)
    health.register("datastore", store.ping, critical=True)

    log.info(
        "plugin.bootstrapped",
        record_types=len(registry),
        monitored_fields=sum(len(fields) for fields in registry.values()),
        store_backend=config.store_backend,
    )
    return Plugin(
        config=config,
        registry=registry,
        store=store,
        oracle=oracle,
        guard=guard,
        engine=ReconciliationEngine(store, registry, oracle),
        snapshots=SnapshotService(store, registry, oracle),
        identity=build_identity_provider(config),
        health=health,
    )


__all__ = ["PLUGIN_NAME", "Plugin", "bootstrap"]
