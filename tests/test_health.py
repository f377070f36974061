"""Unit tests for opsreport.engine.health — HealthCheckService."""

import asyncio
import pytest

from opsreport.engine.health import HealthCheckResult, HealthCheckService, HealthStatus


class TestHealthStatus:
    def test_values(self):
        assert HealthStatus.HEALTHY == "healthy"
        assert HealthStatus.UNHEALTHY == "unhealthy"
        assert HealthStatus.UNKNOWN == "unknown"


class TestHealthCheckResult:
    def test_to_dict(self):
        result = HealthCheckResult(
            name="store",
            status=HealthStatus.HEALTHY,
            latency_ms=5.25,
            message="OK",
        )
        d = result.to_dict()
        assert d["name"] == "store"
        assert d["status"] == "healthy"
        assert d["latency_ms"] == 5.25
        assert d["message"] == "OK"
        assert "checked_at" in d


class TestHealthCheckService:
    def setup_method(self):
        self.svc = HealthCheckService(timeout=0.2)

    def test_register_check(self):
        async def my_check():
            return True
        self.svc.register_check("store", my_check)
        assert self.svc.registered_checks == ["store"]
        assert self.svc.get_last_result("store").status == HealthStatus.UNKNOWN

    def test_get_last_result_none(self):
        assert self.svc.get_last_result("nonexistent") is None

    def test_summary_empty_is_unknown(self):
        assert self.svc.summary()["status"] == "unknown"

    @pytest.mark.asyncio
    async def test_async_check_healthy(self):
        async def ok():
            return True
        self.svc.register_check("store", ok)
        result = await self.svc.check("store")
        assert result.status == HealthStatus.HEALTHY
        assert result.message == "OK"

    @pytest.mark.asyncio
    async def test_sync_check(self):
        self.svc.register_check("identity", lambda: False)
        result = await self.svc.check("identity")
        assert result.status == HealthStatus.UNHEALTHY

    @pytest.mark.asyncio
    async def test_exception_is_unhealthy(self):
        async def boom():
            raise ConnectionError("refused")
        self.svc.register_check("store", boom)
        result = await self.svc.check("store")
        assert result.status == HealthStatus.UNHEALTHY
        assert "refused" in result.message

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def slow():
            await asyncio.sleep(5)
            return True
        self.svc.register_check("notifications", slow)
        result = await self.svc.check("notifications")
        assert result.status == HealthStatus.UNHEALTHY
        assert "Timeout" in result.message

    @pytest.mark.asyncio
    async def test_unregistered(self):
        result = await self.svc.check("nope")
        assert result.status == HealthStatus.UNKNOWN

    @pytest.mark.asyncio
    async def test_check_all_and_summary(self):
        async def ok():
            return True

        async def bad():
            return False

        self.svc.register_check("store", ok)
        self.svc.register_check("identity", ok)
        results = await self.svc.check_all()
        assert set(results) == {"store", "identity"}
        assert self.svc.summary()["status"] == "healthy"

        self.svc.register_check("notifications", bad)
        await self.svc.check_all()
        summary = self.svc.summary()
        assert summary["status"] == "unhealthy"
        assert summary["checks"]["notifications"]["status"] == "unhealthy"
