"""Tests for tier1_runtime modules."""
from __future__ import annotations

from datetime import datetime, timezone

import pytest

from field_uuid.tier0_core.errors import ValidationError
from field_uuid.tier1_runtime.clock import Clock, isoformat, now, set_clock
from field_uuid.tier1_runtime.context import (
    RequestContext,
    get_context,
    get_principal_id,
    set_context,
    set_principal,
)
from field_uuid.tier1_runtime.retry import CollisionError, RetryError, collision_retry
from field_uuid.tier1_runtime.serialize import ApiModel, deserialize, serialize, to_dict
from field_uuid.tier1_runtime.validate import is_blank, is_valid, validate_input


# ── validate ───────────────────────────────────────────────────────────────

class TestIsValid:
    @pytest.mark.parametrize("value", [
        "550e8400-e29b-41d4-a716-446655440000",
        "550E8400-E29B-41D4-A716-446655440000",
        "0190f4c2-7a1b-7c3d-9e4f-0123456789ab",
        "00000001-0000-1000-b000-000000000001",
    ])
    def test_accepts_standard_layout(self, value):
        assert is_valid(value)

    @pytest.mark.parametrize("value", [
        "",
        "not-a-uuid",
        "550e8400e29b41d4a716446655440000",
        "550e8400-e29b-01d4-a716-446655440000",   # version 0
        "550e8400-e29b-41d4-c716-446655440000",   # non-RFC variant
        "550e8400-e29b-41d4-a716-44665544000",    # short last group
        " 550e8400-e29b-41d4-a716-446655440000",
        None,
        12345,
    ])
    def test_rejects_malformed(self, value):
        assert not is_valid(value)

    def test_prefix_required_when_configured(self):
        bare = "550e8400-e29b-41d4-a716-446655440000"
        assert is_valid(f"art_{bare}", "art_")
        assert not is_valid(bare, "art_")
        assert not is_valid(f"usr_{bare}", "art_")

    def test_prefix_rejected_on_unprefixed_field(self):
        assert not is_valid("art_550e8400-e29b-41d4-a716-446655440000")


class TestIsBlank:
    def test_blank_values(self):
        assert is_blank(None)
        assert is_blank("")
        assert is_blank("   ")

    def test_non_blank_values(self):
        assert not is_blank("x")
        assert not is_blank(0)


class TestValidateInput:
    class Body(ApiModel):
        dry_run: bool = True
        content_type: str

    def test_accepts_camel_case(self):
        body = validate_input(self.Body, {"dryRun": False, "contentType": "article"})
        assert body.dry_run is False
        assert body.content_type == "article"

    def test_accepts_snake_case(self):
        body = validate_input(self.Body, {"content_type": "article"})
        assert body.dry_run is True

    def test_invalid_input_raises_platform_validation_error(self):
        with pytest.raises(ValidationError) as exc:
            validate_input(self.Body, {"dryRun": "not-a-bool"})
        assert exc.value.fields


# ── serialize ──────────────────────────────────────────────────────────────

class TestSerialize:
    class Entry(ApiModel):
        record_identity: str
        old_value: str | None = None

    def test_to_dict_is_camel_case(self):
        assert to_dict(self.Entry(record_identity="abc")) == {
            "recordIdentity": "abc",
            "oldValue": None,
        }

    def test_serialize_roundtrip(self):
        raw = serialize(self.Entry(record_identity="abc", old_value="x"))
        assert b'"recordIdentity"' in raw
        assert deserialize(raw, self.Entry).old_value == "x"

    def test_serialize_plain_dict(self):
        assert serialize({"a": 1}) == b'{"a": 1}'


# ── clock ──────────────────────────────────────────────────────────────────

class TestClock:
    def test_now_returns_utc_datetime(self):
        assert now().tzinfo is not None

    def test_frozen_clock(self):
        fixed = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        clock = Clock().freeze(fixed)
        assert clock.now() == fixed
        assert clock.timestamp_ms() == 1735732800000

    def test_isoformat_has_z_suffix_and_ms(self):
        set_clock(Clock().freeze(datetime(2025, 6, 15, 8, 30, 0, 123456, tzinfo=timezone.utc)))
        try:
            assert isoformat() == "2025-06-15T08:30:00.123Z"
        finally:
            set_clock(Clock())


# ── context ────────────────────────────────────────────────────────────────

class TestContext:
    def test_set_and_get_context(self):
        set_context(RequestContext(request_id="req-abc"))
        assert get_context().request_id == "req-abc"

    def test_context_defaults(self):
        assert RequestContext().request_id

    def test_set_principal(self):
        set_context(RequestContext(request_id="req-1"))
        set_principal("mock-admin")
        assert get_principal_id() == "mock-admin"


# ── retry ──────────────────────────────────────────────────────────────────

class TestCollisionRetry:
    @pytest.mark.asyncio
    async def test_retries_collisions_until_free(self):
        candidates = iter(["a", "b", "c"])
        taken = {"a", "b"}

        async def pick():
            async for attempt in collision_retry(3):
                with attempt:
                    value = next(candidates)
                    if value in taken:
                        raise CollisionError(value)
                    return value

        assert await pick() == "c"

    @pytest.mark.asyncio
    async def test_exhaustion_raises_retry_error(self):
        attempts = []

        with pytest.raises(RetryError):
            async for attempt in collision_retry(2):
                with attempt:
                    attempts.append(1)
                    raise CollisionError("dup")
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_other_errors_are_not_retried(self):
        attempts = []

        with pytest.raises(RuntimeError):
            async for attempt in collision_retry(5):
                with attempt:
                    attempts.append(1)
                    raise RuntimeError("datastore down")
        assert len(attempts) == 1
