"""
Session Gate — decides whether the entry form or the dashboard is shown.

On start it subscribes to session changes and resolves the current session
exactly once. Until that resolution finishes the view is LOADING; afterwards
it is always exactly one of LOGIN or DASHBOARD. A failed resolution ends the
loading state and counts as logged out.

Usage:
    async with SessionGate(provider) as gate:
        if gate.view is GateView.DASHBOARD:
            ...
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Optional

from opsreport.engine.logging import log, log_session_event
from opsreport.security.identity import AuthSession, IdentityProvider, Subscription

logger = logging.getLogger("opsreport.dashboard.gate")


class GateView(str, Enum):
    LOADING = "loading"
    LOGIN = "login"
    DASHBOARD = "dashboard"


class SessionGate:

    def __init__(
        self,
        provider: IdentityProvider,
        on_change: Optional[Callable[[GateView], None]] = None,
    ):
        self._provider = provider
        self._on_change = on_change
        self._subscription: Optional[Subscription] = None
        self._resolving = False
        self._changed_while_resolving = False
        self.loading: bool = True
        self.session: Optional[AuthSession] = None

    @property
    def view(self) -> GateView:
        if self.loading:
            return GateView.LOADING
        return GateView.DASHBOARD if self.session is not None else GateView.LOGIN

    @property
    def started(self) -> bool:
        return self._subscription is not None

    async def start(self) -> GateView:
        """Subscribe, then resolve the current session once. Idempotent."""
        if self._subscription is not None:
            return self.view

        # subscribe first so a change during resolution is not lost
        self._subscription = self._provider.subscribe(self._handle_change)
        self._resolving = True
        self._changed_while_resolving = False
        resolved: Optional[AuthSession] = None
        try:
            resolved = await self._provider.get_session()
        except Exception as e:
            logger.warning("Session resolution failed, treating as logged out: %s", e)
            log(log_session_event(
                "resolve_failed", backend=self._provider.backend_name, error=str(e),
            ))
            resolved = None
        finally:
            self._resolving = False
            if not self._changed_while_resolving:
                self.session = resolved
            self.loading = False

        self._emit()
        return self.view

    def _handle_change(self, session: Optional[AuthSession]) -> None:
        if self._resolving:
            self._changed_while_resolving = True
        self.session = session
        if not self.loading:
            self._emit()

    def _emit(self) -> None:
        if self._on_change is None:
            return
        try:
            self._on_change(self.view)
        except Exception as e:
            logger.error("Gate change handler failed: %s", e, exc_info=True)

    async def sign_in(self, email: str, password: str) -> Optional[str]:
        """Entry-form passthrough. Returns an error message or None."""
        return await self._provider.sign_in(email, password)

    def close(self) -> None:
        """Release the session subscription. Safe to call more than once."""
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> "SessionGate":
        await self.start()
        return self

    async def __aexit__(self, *exc) -> None:
        self.close()
