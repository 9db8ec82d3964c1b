"""
field_uuid
──────────
Stable top-level exports. Import from here, not from sub-modules directly.
Every name exported here is part of the public API and subject to semver.
"""
from field_uuid.tier0_core.config import FieldUuidConfig, get_config, load_config
from field_uuid.tier0_core.errors import (
    PlatformError,
    ConfigurationError,
    GenerationExhaustedError,
    ValidationError,
    DatastoreError,
    NotFoundError,
)
from field_uuid.tier0_core.ids import generate
from field_uuid.tier0_core.logging import get_logger

from field_uuid.tier1_runtime.validate import is_valid

from field_uuid._registry import FieldRegistry, MonitoredField, build_registry, uuid_column
from field_uuid.tier2_reliability.storage import (
    MemoryRecordStore,
    RecordStore,
    SqlRecordStore,
    WriteOperation,
)

from field_uuid.tier3_platform.oracle import UniquenessOracle
from field_uuid.tier3_platform.guard import WriteGuard
from field_uuid.tier3_platform.reconcile import ReconciliationEngine
from field_uuid.tier3_platform.snapshot import SnapshotService

from field_uuid.plugin import Plugin, bootstrap
from field_uuid.app import create_app

__version__ = "1.0.0"
__all__ = [
    # config
    "FieldUuidConfig", "get_config", "load_config",
    # errors
    "PlatformError", "ConfigurationError", "GenerationExhaustedError",
    "ValidationError", "DatastoreError", "NotFoundError",
    # identifiers
    "generate", "is_valid",
    # logging
    "get_logger",
    # registry
    "FieldRegistry", "MonitoredField", "build_registry", "uuid_column",
    # storage
    "RecordStore", "MemoryRecordStore", "SqlRecordStore", "WriteOperation",
    # core
    "UniquenessOracle", "WriteGuard", "ReconciliationEngine", "SnapshotService",
    # bootstrap
    "Plugin", "bootstrap", "create_app",
]
