"""
field_uuid.tier1_runtime.validate
──────────────────────────────────────
Identifier format validation and request-body validation via Pydantic v2.
Raises field_uuid ValidationError (not raw Pydantic errors) so API responses
are always consistent.
"""
from __future__ import annotations

import re
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ValidationError as PydanticValidationError

from field_uuid.tier0_core.errors import ValidationError

T = TypeVar("T", bound=BaseModel)

# 8-4-4-4-12 hex, version nibble 1-8, RFC 4122 variant (8, 9, a, b)
_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-8][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid(value: Any, prefix: str = "") -> bool:
    """
    Return True when value is prefix + a standard-layout UUID.

    A value that does not start with the field's prefix is invalid, and so is
    a prefixed value on a field without a prefix.
    """
    if not isinstance(value, str):
        return False
    if prefix:
        if not value.startswith(prefix):
            return False
        value = value[len(prefix):]
    return len(value) == 36 and _UUID_RE.match(value) is not None


def is_blank(value: Any) -> bool:
    """None and whitespace-only strings count as an absent identifier."""
    return value is None or (isinstance(value, str) and not value.strip())


def validate_input(model: Type[T], data: Any) -> T:
    """
    Validate a raw request body against a Pydantic model.
    Raises field_uuid ValidationError (not Pydantic's) on failure.

    Usage:
        body = validate_input(RunMigrationRequest, await request.json())
    """
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        fields = {
            ".".join(str(loc) for loc in err["loc"]) or "body": err["msg"]
            for err in exc.errors()
        }
        raise ValidationError(
            code="validation_error",
            user_message="Request validation failed.",
            fields=fields,
        ) from exc


__all__ = ["is_valid", "is_blank", "validate_input"]
