"""
OpsReport Runtime — builds the collaborators from config and owns their lifecycle.

Ties together:
- Activity logging (AsyncLogQueue)
- Record store backend (rest | sql)
- Identity provider backend (gotrue | local)
- Notification dispatcher (shared by all clients)
- Per-browser-client contexts (gate + controller + store)

Lifecycle:
    runtime = init_runtime(config)
    runtime.startup()
    ctx = runtime.open_client(token, on_reset=...)
    ...
    await runtime.shutdown()
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Set

from sqlalchemy.orm import sessionmaker

from opsreport.dashboard.controller import DashboardController
from opsreport.dashboard.gate import SessionGate
from opsreport.db.session import init_db
from opsreport.engine.config import PlatformConfig
from opsreport.engine.errors import ConfigError
from opsreport.engine.health import HealthCheckService
from opsreport.engine.logging import init_logging, log, log_system_event, shutdown_logging
from opsreport.integrations.telegram import NotificationDispatcher, TelegramNotifier
from opsreport.records.rest_store import RestReportStore
from opsreport.records.sql_store import SqlReportStore
from opsreport.records.store import ReportStore
from opsreport.security.gotrue import GoTrueIdentityProvider
from opsreport.security.identity import IdentityProvider, LocalIdentityProvider

logger = logging.getLogger("opsreport.engine.runtime")


@dataclass
class ClientContext:
    """Everything one browser client owns."""
    identity: IdentityProvider
    gate: SessionGate
    controller: DashboardController
    store: ReportStore
    owns_store: bool = True
    last_seen: float = field(default_factory=time.monotonic)

    async def close(self) -> None:
        self.gate.close()
        if self.owns_store:
            await self.store.close()
        await self.identity.close()


class DashboardRuntime:
    """Single entry point for building and tearing down dashboard collaborators."""

    MAX_CLIENTS = 500
    CLIENT_IDLE_SECONDS = 8 * 3600

    def __init__(self, config: PlatformConfig):
        self.config = config
        self._session_factory: Optional[sessionmaker] = None
        self._shared_store: Optional[ReportStore] = None
        self._notifications: Optional[NotificationDispatcher] = None
        self._clients: "OrderedDict[str, ClientContext]" = OrderedDict()
        self._closing: Set[asyncio.Task] = set()
        self._started = False

    # -----------------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------------

    def startup(self) -> None:
        if self._started:
            return
        log_cfg = self.config.logging
        init_logging(
            log_dir=log_cfg.directory,
            level=log_cfg.level,
            flush_interval_ms=log_cfg.async_queue.flush_interval_ms,
            flush_batch_size=log_cfg.async_queue.flush_batch_size,
            max_queue_size=log_cfg.async_queue.max_queue_size,
        )
        self._check_backends()
        self._started = True
        log(log_system_event("startup", details={
            "environment": self.config.environment,
            "store": self.config.store.backend,
            "auth": self.config.auth.backend,
            "notifications": self.config.notifications.is_configured,
        }))
        logger.info(
            "OpsReport runtime started (env=%s, store=%s, auth=%s)",
            self.config.environment, self.config.store.backend, self.config.auth.backend,
        )

    async def shutdown(self) -> None:
        for token in list(self._clients):
            await self.close_client(token)
        if self._closing:
            await asyncio.gather(*list(self._closing), return_exceptions=True)
        if self._notifications is not None:
            await self._notifications.close()
            self._notifications = None
        if self._shared_store is not None:
            await self._shared_store.close()
            self._shared_store = None
        log(log_system_event("shutdown"))
        shutdown_logging()
        self._started = False
        logger.info("OpsReport runtime stopped")

    def _check_backends(self) -> None:
        store, auth = self.config.store, self.config.auth
        if store.backend == "rest" and not store.url:
            raise ConfigError("store.url is required for the rest backend")
        if auth.backend == "gotrue" and not auth.url:
            raise ConfigError("auth.url is required for the gotrue backend")
        if auth.backend == "local" and not auth.users:
            logger.warning("No local users configured; nobody can sign in (see `opsreport hash-password`)")

    # -----------------------------------------------------------------------
    # Builders
    # -----------------------------------------------------------------------

    def new_identity(self) -> IdentityProvider:
        auth = self.config.auth
        if auth.backend == "gotrue":
            return GoTrueIdentityProvider(auth.url, auth.api_key or self.config.store.api_key, auth.timeout)
        return LocalIdentityProvider(auth.users)

    def build_store(self, identity: Optional[IdentityProvider] = None) -> ReportStore:
        """A store bound to ``identity``'s bearer token (rest) or the shared SQL store."""
        store = self.config.store
        if store.backend == "rest":
            token_fn = identity.current_token if identity is not None else None
            return RestReportStore(store.url, store.api_key, store.table, store.timeout, access_token=token_fn)
        if self._shared_store is None:
            self._shared_store = SqlReportStore(self.session_factory)
        return self._shared_store

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = init_db(
                self.config.store.database_url,
                create_tables=self.config.environment == "dev",
            )
        return self._session_factory

    @property
    def notifications(self) -> NotificationDispatcher:
        if self._notifications is None:
            self._notifications = NotificationDispatcher(TelegramNotifier(self.config.notifications))
        return self._notifications

    def health_service(self, identity: Optional[IdentityProvider] = None) -> HealthCheckService:
        identity = identity or self.new_identity()
        service = HealthCheckService(timeout=max(self.config.store.timeout, 5))
        service.register_check("store", self.build_store(identity).health_check)
        service.register_check("identity", identity.health_check)
        service.register_check("notifications", self.notifications.notifier.health_check)
        return service

    # -----------------------------------------------------------------------
    # Per-client contexts
    # -----------------------------------------------------------------------

    def open_client(
        self,
        token: str,
        on_reset: Optional[Callable[[], Any]] = None,
    ) -> ClientContext:
        """
        Get or create the context for a browser client.

        Contexts idle for longer than ``CLIENT_IDLE_SECONDS`` are dropped first;
        if the pool is still full the least recently used one is evicted.
        """
        now = time.monotonic()
        ctx = self._clients.get(token)
        if ctx is not None:
            ctx.last_seen = now
            self._clients.move_to_end(token)
            return ctx

        self._evict_idle(now)
        while len(self._clients) >= self.MAX_CLIENTS:
            _, oldest = self._clients.popitem(last=False)
            logger.info("Client pool full (%d); evicting least recently used context", self.MAX_CLIENTS)
            self._discard(oldest)

        identity = self.new_identity()
        store = self.build_store(identity)
        ctx = ClientContext(
            identity=identity,
            gate=SessionGate(identity),
            controller=DashboardController(
                store,
                identity=identity,
                notifications=self.notifications,
                on_reset=on_reset,
            ),
            store=store,
            owns_store=store is not self._shared_store,
            last_seen=now,
        )
        self._clients[token] = ctx
        logger.debug("Opened client context (%d active)", len(self._clients))
        return ctx

    def _evict_idle(self, now: float) -> None:
        while self._clients:
            token, ctx = next(iter(self._clients.items()))
            if now - ctx.last_seen < self.CLIENT_IDLE_SECONDS:
                break
            del self._clients[token]
            logger.info("Dropping client context idle for %.0fs", now - ctx.last_seen)
            self._discard(ctx)

    def _discard(self, ctx: ClientContext) -> None:
        ctx.gate.close()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running loop; evicted context left for garbage collection")
            return
        task = loop.create_task(ctx.close())
        self._closing.add(task)
        task.add_done_callback(self._closing.discard)

    def get_client(self, token: str) -> Optional[ClientContext]:
        return self._clients.get(token)

    async def close_client(self, token: str) -> bool:
        ctx = self._clients.pop(token, None)
        if ctx is None:
            return False
        await ctx.close()
        return True

    @property
    def client_count(self) -> int:
        return len(self._clients)


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_runtime: Optional[DashboardRuntime] = None


def init_runtime(config: PlatformConfig) -> DashboardRuntime:
    """Create the global runtime. Call ``startup()`` on the result."""
    global _runtime
    _runtime = DashboardRuntime(config)
    return _runtime


def get_runtime() -> Optional[DashboardRuntime]:
    return _runtime
