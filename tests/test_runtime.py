"""Unit tests for opsreport.engine.runtime — backend wiring and per-client contexts."""

import pytest

from opsreport.dashboard.gate import GateView
from opsreport.engine.config import PlatformConfig
from opsreport.engine.errors import ConfigError
from opsreport.engine.runtime import DashboardRuntime, get_runtime, init_runtime
from opsreport.records.rest_store import RestReportStore
from opsreport.records.sql_store import SqlReportStore
from opsreport.security.gotrue import GoTrueIdentityProvider
from opsreport.security.identity import LocalIdentityProvider


def _config(tmp_path, users=None, **sections):
    data = {
        "store": {"backend": "sql", "database_url": "sqlite:///:memory:"},
        "auth": {"backend": "local", "users": users or {}},
        "logging": {"directory": str(tmp_path / "logs")},
    }
    data.update(sections)
    return PlatformConfig(**data)


class TestStartup:
    def test_startup_creates_log_dirs(self, tmp_path):
        runtime = DashboardRuntime(_config(tmp_path))
        runtime.startup()
        assert (tmp_path / "logs" / "system" / "activity").exists()

    @pytest.mark.asyncio
    async def test_shutdown_closes_clients(self, tmp_path, ops_password_hash):
        runtime = DashboardRuntime(_config(tmp_path, users={"ops@example.com": ops_password_hash}))
        runtime.startup()
        runtime.open_client("tab-1")
        await runtime.shutdown()
        assert runtime.client_count == 0

    def test_rest_without_url(self, tmp_path):
        cfg = _config(tmp_path, store={"backend": "rest"})
        with pytest.raises(ConfigError, match="store.url"):
            DashboardRuntime(cfg).startup()

    def test_gotrue_without_url(self, tmp_path):
        cfg = _config(tmp_path, auth={"backend": "gotrue"})
        with pytest.raises(ConfigError, match="auth.url"):
            DashboardRuntime(cfg).startup()

    def test_singleton(self, tmp_path):
        assert get_runtime() is None
        runtime = init_runtime(_config(tmp_path))
        assert get_runtime() is runtime


class TestBuilders:
    def test_local_backends(self, tmp_path):
        runtime = DashboardRuntime(_config(tmp_path))
        assert isinstance(runtime.new_identity(), LocalIdentityProvider)
        store = runtime.build_store()
        assert isinstance(store, SqlReportStore)
        assert runtime.build_store() is store

    @pytest.mark.asyncio
    async def test_hosted_backends(self, tmp_path):
        runtime = DashboardRuntime(_config(
            tmp_path,
            store={"backend": "rest", "url": "https://abc.example.co", "api_key": "k"},
            auth={"backend": "gotrue", "url": "https://abc.example.co"},
        ))
        identity = runtime.new_identity()
        first = runtime.build_store(identity)
        second = runtime.build_store(identity)
        assert isinstance(identity, GoTrueIdentityProvider)
        assert isinstance(first, RestReportStore)
        assert first._access_token == identity.current_token
        assert first is not second
        for closable in (first, second, identity):
            await closable.close()

    @pytest.mark.asyncio
    async def test_health_service_checks(self, tmp_path):
        runtime = DashboardRuntime(_config(tmp_path))
        service = runtime.health_service()
        assert set(service.registered_checks) == {"store", "identity", "notifications"}
        await service.check_all()
        assert service.summary()["status"] == "healthy"
        await runtime.shutdown()


class TestClients:
    @pytest.mark.asyncio
    async def test_open_client_end_to_end(self, tmp_path, ops_password_hash):
        runtime = DashboardRuntime(_config(tmp_path, users={"ops@example.com": ops_password_hash}))
        runtime.startup()
        ctx = runtime.open_client("tab-1")
        assert runtime.open_client("tab-1") is ctx
        assert runtime.get_client("tab-1") is ctx
        assert ctx.owns_store is False

        assert await ctx.gate.start() is GateView.LOGIN
        assert await ctx.gate.sign_in("ops@example.com", "s3cret-pass") is None
        assert ctx.gate.view is GateView.DASHBOARD

        ctx.controller.open_create()
        ctx.controller.update_draft(name="Site survey", description="Walkthrough")
        assert await ctx.controller.submit() is True
        assert [r.name for r in ctx.controller.reports] == ["Site survey"]

        await ctx.controller.logout()
        assert ctx.gate.view is GateView.LOGIN
        assert await runtime.close_client("tab-1") is True
        assert await runtime.close_client("tab-1") is False
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_clients_are_isolated(self, tmp_path, ops_password_hash):
        runtime = DashboardRuntime(_config(tmp_path, users={"ops@example.com": ops_password_hash}))
        a = runtime.open_client("tab-a")
        b = runtime.open_client("tab-b")
        await a.gate.start()
        await b.gate.start()
        await a.gate.sign_in("ops@example.com", "s3cret-pass")
        assert a.gate.view is GateView.DASHBOARD
        assert b.gate.view is GateView.LOGIN
        assert a.controller is not b.controller
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_full_pool_evicts_least_recently_used(self, tmp_path, monkeypatch):
        runtime = DashboardRuntime(_config(tmp_path))
        monkeypatch.setattr(DashboardRuntime, "MAX_CLIENTS", 2)
        first = runtime.open_client("tab-1")
        second = runtime.open_client("tab-2")
        await first.gate.start()
        await second.gate.start()

        assert runtime.open_client("tab-1") is first
        third = runtime.open_client("tab-3")

        assert runtime.client_count == 2
        assert runtime.get_client("tab-2") is None
        assert runtime.get_client("tab-1") is first
        assert runtime.get_client("tab-3") is third
        assert second.identity.listener_count == 0
        assert first.identity.listener_count == 1
        await runtime.shutdown()

    @pytest.mark.asyncio
    async def test_idle_contexts_dropped(self, tmp_path, monkeypatch):
        runtime = DashboardRuntime(_config(tmp_path))
        monkeypatch.setattr(DashboardRuntime, "CLIENT_IDLE_SECONDS", 60)
        stale = runtime.open_client("tab-1")
        await stale.gate.start()
        stale.last_seen -= 120

        runtime.open_client("tab-2")

        assert runtime.get_client("tab-1") is None
        assert runtime.client_count == 1
        assert stale.identity.listener_count == 0
        await runtime.shutdown()

    def test_reopened_tab_after_eviction_gets_fresh_context(self, tmp_path, monkeypatch):
        runtime = DashboardRuntime(_config(tmp_path))
        monkeypatch.setattr(DashboardRuntime, "MAX_CLIENTS", 1)
        old = runtime.open_client("tab-1")
        runtime.open_client("tab-2")
        fresh = runtime.open_client("tab-1")
        assert fresh is not old
        assert runtime.client_count == 1
