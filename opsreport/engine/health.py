"""
OpsReport Health Check — connectivity checks for the external collaborators.

Checks registered by the runtime:
    - store          (one list round trip)
    - identity       (provider health endpoint; always healthy for local)
    - notifications  (bot getMe; healthy when disabled or unconfigured)

Used by ``opsreport check``.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger("opsreport.engine.health")


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"


@dataclass
class HealthCheckResult:
    """Result of a single health check."""
    name: str
    status: HealthStatus
    latency_ms: float = 0.0
    message: str = ""
    checked_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status.value,
            "latency_ms": round(self.latency_ms, 2),
            "message": self.message,
            "checked_at": self.checked_at.isoformat(),
        }


class HealthCheckService:
    """
    Runs named checks. A check is a sync or async callable returning a bool.

    Usage:
        service = HealthCheckService(timeout=10)
        service.register_check("store", store.health_check)
        results = await service.check_all()
    """

    def __init__(self, timeout: float = 10.0):
        self._timeout = timeout
        self._checks: Dict[str, Callable[[], Any]] = {}
        self._results: Dict[str, HealthCheckResult] = {}

    def register_check(self, name: str, check_fn: Callable[[], Any]) -> None:
        self._checks[name] = check_fn
        self._results[name] = HealthCheckResult(name=name, status=HealthStatus.UNKNOWN)
        logger.debug("Registered health check: %s", name)

    @property
    def registered_checks(self) -> List[str]:
        return list(self._checks)

    async def check(self, name: str) -> HealthCheckResult:
        """Run one check; never raises."""
        check_fn = self._checks.get(name)
        if check_fn is None:
            return HealthCheckResult(
                name=name,
                status=HealthStatus.UNKNOWN,
                message=f"No health check registered for '{name}'",
            )

        start = time.monotonic()
        try:
            outcome = check_fn()
            if inspect.isawaitable(outcome):
                outcome = await asyncio.wait_for(outcome, timeout=self._timeout)
            healthy = bool(outcome)
            message = "OK" if healthy else "Check returned unhealthy"
        except asyncio.TimeoutError:
            healthy = False
            message = f"Timeout after {self._timeout}s"
        except Exception as e:
            healthy = False
            message = str(e)

        result = HealthCheckResult(
            name=name,
            status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
            latency_ms=(time.monotonic() - start) * 1000,
            message=message,
        )
        self._results[name] = result
        return result

    async def check_all(self) -> Dict[str, HealthCheckResult]:
        """Run all registered checks concurrently."""
        await asyncio.gather(*(self.check(name) for name in self._checks))
        return dict(self._results)

    def get_last_result(self, name: str) -> Optional[HealthCheckResult]:
        return self._results.get(name)

    def summary(self) -> Dict[str, Any]:
        """Overall status plus per-check results."""
        results = self._results
        if any(r.status == HealthStatus.UNHEALTHY for r in results.values()):
            overall = HealthStatus.UNHEALTHY
        elif results and all(r.status == HealthStatus.HEALTHY for r in results.values()):
            overall = HealthStatus.HEALTHY
        else:
            overall = HealthStatus.UNKNOWN
        return {
            "status": overall.value,
            "checks": {name: r.to_dict() for name, r in results.items()},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
