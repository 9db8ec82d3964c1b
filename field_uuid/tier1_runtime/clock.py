"""
field_uuid.tier1_runtime.clock
────────────────────────────────
Mockable time source. The v7 generator embeds clock milliseconds and the
reconciliation/export reports stamp clock time, so tests can pin both.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable


class Clock:
    """Mockable clock. Pass now_fn to control time in tests."""

    def __init__(self, now_fn: Callable[[], datetime] | None = None) -> None:
        self._now_fn = now_fn or (lambda: datetime.now(tz=timezone.utc))

    def now(self) -> datetime:
        return self._now_fn()

    def timestamp_ms(self) -> int:
        """Unix time in whole milliseconds."""
        return int(self.now().timestamp() * 1000)

    def isoformat(self) -> str:
        """ISO-8601 UTC string with millisecond precision and a Z suffix."""
        return self.now().astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
            "+00:00", "Z"
        )

    def freeze(self, dt: datetime) -> "Clock":
        """Return a new Clock frozen at the given datetime."""
        return Clock(now_fn=lambda: dt)


_clock = Clock()


def get_clock() -> Clock:
    return _clock


def set_clock(clock: Clock) -> None:
    """Replace the global clock (use in tests)."""
    global _clock
    _clock = clock


def now() -> datetime:
    return _clock.now()


def timestamp_ms() -> int:
    return _clock.timestamp_ms()


def isoformat() -> str:
    return _clock.isoformat()


__all__ = ["Clock", "get_clock", "set_clock", "now", "timestamp_ms", "isoformat"]
