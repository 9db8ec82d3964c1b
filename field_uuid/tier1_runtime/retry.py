"""
field_uuid.tier1_runtime.retry
───────────────────────────────────
Bounded regenerate-and-recheck policy for identifier collisions.
Backed by Tenacity. Only CollisionError is retried; any other failure
(datastore errors included) propagates on the first attempt.

Usage:
    try:
        async for attempt in collision_retry(config.max_retry_attempts):
            with attempt:
                candidate = generate(...)
                if await taken(candidate):
                    raise CollisionError(candidate)
                return candidate
    except RetryError:
        ...
"""
from __future__ import annotations

from typing import Any

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

from field_uuid.tier0_core.logging import get_logger

log = get_logger(__name__)


class CollisionError(Exception):
    """A freshly generated candidate is already owned. Internal to the loop."""

    def __init__(self, value: str, owner: str | None = None) -> None:
        self.value = value
        self.owner = owner
        super().__init__(f"identifier {value!r} already in use")


def _log_collision(**context: Any):
    def before_sleep(state: RetryCallState) -> None:
        log.warning(
            "uuid.collision",
            attempt=state.attempt_number,
            **context,
        )
    return before_sleep


def collision_retry(max_attempts: int, **context: Any) -> AsyncRetrying:
    """
    Build the retry loop used when seeking a unique value.

    Args:
        max_attempts: Total number of candidates to try (including the first).
        context:      Extra fields for the collision log line (record_type, field).

    Exhaustion surfaces as tenacity.RetryError; callers translate it into
    GenerationExhaustedError.
    """
    return AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_none(),
        retry=retry_if_exception_type(CollisionError),
        before_sleep=_log_collision(max_attempts=max_attempts, **context),
        reraise=False,
    )


__all__ = ["CollisionError", "RetryError", "collision_retry"]
