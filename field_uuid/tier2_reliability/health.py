"""
field_uuid.tier2_reliability.health
────────────────────────────────────────
Health report for the public /health endpoint, with dependency checks
(the record store is registered as a critical check at bootstrap).

Usage:
    checker = HealthChecker(plugin="field-uuid", version="1.0.0")
    checker.register("datastore", store.ping, critical=True)
    body = await checker.report()
"""
from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from field_uuid.tier0_core.logging import get_logger

log = get_logger(__name__)


@dataclass
class CheckResult:
    name: str
    status: str           # "ok" | "failed"
    critical: bool
    latency_ms: float
    detail: str | None = None


class HealthChecker:
    def __init__(self, plugin: str, version: str) -> None:
        self.plugin = plugin
        self.version = version
        self._checks: list[dict[str, Any]] = []

    def register(
        self,
        name: str,
        check_fn: Callable[[], Coroutine | bool],
        critical: bool = True,
        timeout: float = 5.0,
    ) -> None:
        """
        Register a health check.

        Args:
            name:       Check name (e.g. "datastore").
            check_fn:   Async or sync callable. Return True = healthy, raise/False = unhealthy.
            critical:   If True, failure turns the report "degraded".
            timeout:    Max seconds before the check is considered failed.
        """
        self._checks.append(
            {"name": name, "fn": check_fn, "critical": critical, "timeout": timeout}
        )

    async def run_checks(self) -> list[CheckResult]:
        results: list[CheckResult] = []
        for check in self._checks:
            start = time.monotonic()
            try:
                fn = check["fn"]
                if inspect.iscoroutinefunction(fn):
                    ok = await asyncio.wait_for(fn(), timeout=check["timeout"])
                else:
                    ok = fn()
                status = "ok" if ok else "failed"
                detail = None
            except asyncio.TimeoutError:
                status = "failed"
                detail = f"Timed out after {check['timeout']}s"
            except Exception as exc:
                status = "failed"
                detail = str(exc)

            if status != "ok":
                log.warning("health.check_failed", check=check["name"], detail=detail)
            results.append(CheckResult(
                name=check["name"],
                status=status,
                critical=check["critical"],
                latency_ms=round((time.monotonic() - start) * 1000, 2),
                detail=detail,
            ))
        return results

    async def report(self) -> dict[str, str]:
        """``{status, plugin, version, message}``; status is "ok" or "degraded"."""
        results = await self.run_checks()
        failed = [r.name for r in results if r.critical and r.status != "ok"]
        if failed:
            return {
                "status": "degraded",
                "plugin": self.plugin,
                "version": self.version,
                "message": f"Failing checks: {', '.join(failed)}",
            }
        return {
            "status": "ok",
            "plugin": self.plugin,
            "version": self.version,
            "message": "Auto UUID plugin is running",
        }


__all__ = ["CheckResult", "HealthChecker"]
