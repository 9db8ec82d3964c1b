"""
field_uuid.tier0_core.ids
──────────────────────────
Identifier generation. Provides UUID v4 (random) and UUID v7 (time-ordered)
values in the standard 8-4-4-4-12 layout, optionally namespaced by a literal
prefix, plus opaque record identities for stores that mint them.

v7 layout: 48-bit unix milliseconds | version 7 | 12 random bits |
variant 0b10 | 62 random bits. Values from the same millisecond carry no
ordering guarantee beyond the millisecond.
"""
from __future__ import annotations

import os
import uuid
from typing import Literal

from field_uuid.tier1_runtime import clock

UuidVersion = Literal["v4", "v7"]

_MS_MASK = (1 << 48) - 1
_RAND_A_MASK = (1 << 12) - 1
_RAND_B_MASK = (1 << 62) - 1


def _uuid7() -> str:
    ms = clock.timestamp_ms() & _MS_MASK
    rand = int.from_bytes(os.urandom(10), "big")
    rand_a = rand & _RAND_A_MASK
    rand_b = (rand >> 12) & _RAND_B_MASK
    uuid_int = (ms << 80) | (0x7 << 76) | (rand_a << 64) | (0b10 << 62) | rand_b
    return str(uuid.UUID(int=uuid_int))


def generate(version: UuidVersion = "v4", prefix: str = "") -> str:
    """
    Generate an identifier value for a monitored field.

    Usage:
        generate("v7")            # '0190f4c2-...'
        generate("v4", "usr_")    # 'usr_9b2e...'
    """
    if version == "v7":
        return f"{prefix}{_uuid7()}"
    if version == "v4":
        return f"{prefix}{uuid.uuid4()}"
    raise ValueError(f"Unknown UUID version: {version!r}. Use 'v4' or 'v7'.")


def new_record_identity() -> str:
    """Opaque, version-independent record identity (24 lowercase hex chars)."""
    return uuid.uuid4().hex[:24]


__all__ = ["UuidVersion", "generate", "new_record_identity"]
