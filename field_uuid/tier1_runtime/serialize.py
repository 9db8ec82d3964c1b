"""
field_uuid.tier1_runtime.serialize
───────────────────────────────────────
Stable JSON serialization for reports, snapshots and request bodies.

Python attributes are snake_case; the wire format (HTTP bodies and export
files) is camelCase. ApiModel carries the alias mapping and accepts either
spelling on input.
"""
from __future__ import annotations

import json
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

T = TypeVar("T", bound=BaseModel)


class ApiModel(BaseModel):
    """Base for every wire-format model."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


def to_dict(obj: BaseModel) -> dict[str, Any]:
    """Convert a model to a plain camelCase dict (for JSON responses)."""
    return obj.model_dump(mode="json", by_alias=True)


def serialize(obj: BaseModel | dict | list) -> bytes:
    """
    Serialize a model or plain structure to JSON bytes.

    Usage:
        data = serialize(snapshot)           # → b'{"exportedAt": "...", ...}'
    """
    if isinstance(obj, BaseModel):
        return obj.model_dump_json(by_alias=True).encode()
    return json.dumps(obj, default=str).encode()


def deserialize(data: bytes | str, model: Type[T]) -> T:
    """
    Deserialize JSON bytes/str into a model.

    Usage:
        snapshot = deserialize(raw_bytes, ExportSnapshot)
    """
    if isinstance(data, bytes):
        data = data.decode()
    return model.model_validate_json(data)


__all__ = ["ApiModel", "to_dict", "serialize", "deserialize"]
