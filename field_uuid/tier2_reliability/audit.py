"""
field_uuid.tier2_reliability.audit
───────────────────────────────────────
Append-only audit trail for identifier rewrites. Every committed corrective
write (reconciliation) and every committed import writes one record, so the
old → new value history of a record can be rebuilt from logs.

Backend: structured log (stdout/Loki).
"""
from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from typing import Any

from field_uuid.tier0_core.logging import get_logger
from field_uuid.tier1_runtime.context import get_principal_id

SYSTEM_ACTOR = "system"


@dataclass
class AuditRecord:
    """Immutable audit record. Never update or delete these."""
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    actor_id: str = SYSTEM_ACTOR
    action: str = ""            # e.g. "uuid.reassign", "uuid.import"
    resource_type: str = ""     # record type
    resource_id: str = ""       # record identity
    outcome: str = "success"    # "success" | "failure"
    metadata: dict[str, Any] = field(default_factory=dict)


async def audit(
    action: str,
    resource_type: str,
    resource_id: str,
    outcome: str = "success",
    metadata: dict | None = None,
    actor: str | None = None,
) -> AuditRecord:
    """
    Write an audit record. The actor defaults to the principal of the
    current request, or "system" outside one.

    Usage:
        await audit(
            action="uuid.reassign",
            resource_type="article",
            resource_id=record_identity,
            metadata={"field": "uid", "old_value": old, "new_value": new},
        )
    """
    record = AuditRecord(
        actor_id=actor or get_principal_id() or SYSTEM_ACTOR,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        outcome=outcome,
        metadata=metadata or {},
    )
    _write_log(record)
    return record


def _write_log(record: AuditRecord) -> None:
    log = get_logger("field_uuid.audit")
    log.info(
        "audit",
        audit_id=record.id,
        actor_id=record.actor_id,
        action=record.action,
        resource_type=record.resource_type,
        resource_id=record.resource_id,
        outcome=record.outcome,
        metadata=record.metadata,
        timestamp=record.timestamp,
    )


__all__ = ["AuditRecord", "audit"]
