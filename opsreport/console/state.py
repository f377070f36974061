"""
OpsReport Console — Reflex state bridging the browser to the gate and controller.

Reflex vars must be serialisable, so the live objects (SessionGate,
DashboardController) stay in the runtime's per-client context and this
state mirrors their fields after every event.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

import reflex as rx

from opsreport.engine.runtime import ClientContext, DashboardRuntime, get_runtime
from opsreport.records.models import ReportStatus

logger = logging.getLogger("opsreport.console.state")


class DashboardState(rx.State):
    """
    Browser-facing state.

    Mirrors:
    - Gate: view ("loading" | "login" | "dashboard"), signed-in email
    - Controller: report rows, loading flag, dialog + draft, pending delete, error banner
    """

    # Gate
    gate_view: str = "loading"
    user_email: str = ""
    login_error: str = ""
    is_signing_in: bool = False

    # Dashboard
    reports: List[Dict[str, Any]] = []
    loading: bool = False
    submitting: bool = False
    dialog_open: bool = False
    editing_id: str = ""
    draft_date: str = ""
    draft_name: str = ""
    draft_description: str = ""
    draft_status: str = ReportStatus.PENDING.value
    pending_delete: str = ""
    error_message: str = ""
    error_source: str = ""
    error_record_id: str = ""

    # -----------------------------------------------------------------------
    # Derived (never stored)
    # -----------------------------------------------------------------------

    @rx.var
    def total(self) -> int:
        return len(self.reports)

    @rx.var
    def pending_count(self) -> int:
        return sum(1 for r in self.reports if r["status"] == ReportStatus.PENDING.value)

    @rx.var
    def done_count(self) -> int:
        return sum(1 for r in self.reports if r["status"] == ReportStatus.DONE.value)

    @rx.var
    def render_state(self) -> str:
        if self.loading:
            return "loading"
        return "populated" if self.reports else "empty"

    @rx.var
    def is_editing(self) -> bool:
        return self.editing_id != ""

    # -----------------------------------------------------------------------
    # Context plumbing
    # -----------------------------------------------------------------------

    def _runtime(self) -> DashboardRuntime:
        runtime = get_runtime()
        if runtime is None:
            raise RuntimeError("OpsReport runtime not initialized")
        return runtime

    def _ctx(self) -> ClientContext:
        return self._runtime().open_client(self.router.session.client_token)

    def _sync(self, ctx: ClientContext) -> None:
        gate, ctl = ctx.gate, ctx.controller
        self.gate_view = gate.view.value
        self.user_email = gate.session.email if gate.session else ""

        self.reports = [r.to_row() for r in ctl.reports]
        self.loading = ctl.loading
        self.submitting = ctl.submitting
        self.dialog_open = ctl.dialog_open
        self.editing_id = ctl.editing.id if ctl.editing else ""
        self.draft_date = ctl.draft.date
        self.draft_name = ctl.draft.name
        self.draft_description = ctl.draft.description
        self.draft_status = ctl.draft.status.value
        self.pending_delete = ctl.pending_delete or ""
        err = ctl.error
        self.error_message = err.message if err else ""
        self.error_source = err.source if err else ""
        self.error_record_id = (err.record_id or "") if err else ""

    # -----------------------------------------------------------------------
    # Gate events
    # -----------------------------------------------------------------------

    async def on_load(self):
        """Page mount: resolve the session once, then hydrate if signed in."""
        ctx = self._ctx()
        await ctx.gate.start()
        self._sync(ctx)
        if self.gate_view == "dashboard":
            self.loading = True
            yield
            await ctx.controller.hydrate()
            self._sync(ctx)

    async def login(self, form_data: dict):
        """Handle entry-form submission."""
        self.is_signing_in = True
        self.login_error = ""
        yield

        email = form_data.get("email", "").strip()
        password = form_data.get("password", "")
        if not email or not password:
            self.login_error = "Email and password are required"
            self.is_signing_in = False
            return

        ctx = self._ctx()
        error = await ctx.gate.sign_in(email, password)
        self.is_signing_in = False
        if error:
            self.login_error = error
            return

        self._sync(ctx)
        if self.gate_view == "dashboard":
            self.loading = True
            yield
            await ctx.controller.hydrate()
            self._sync(ctx)

    async def logout(self):
        """Sign out, drop this client's context and reload the app from scratch."""
        runtime = self._runtime()
        token = self.router.session.client_token
        ctx = runtime.get_client(token)
        if ctx is not None:
            await ctx.controller.logout()
            await runtime.close_client(token)
        self.reset()
        return rx.call_script("window.location.reload()")

    # -----------------------------------------------------------------------
    # Dashboard events
    # -----------------------------------------------------------------------

    async def refresh(self):
        ctx = self._ctx()
        self.loading = True
        yield
        await ctx.controller.hydrate()
        self._sync(ctx)

    def open_create(self) -> None:
        ctx = self._ctx()
        ctx.controller.open_create()
        self._sync(ctx)

    def open_edit(self, report_id: str) -> None:
        ctx = self._ctx()
        try:
            ctx.controller.open_edit(report_id)
        except KeyError as e:
            logger.warning("Edit requested for unknown report: %s", e)
        self._sync(ctx)

    def set_dialog_open(self, is_open: bool) -> None:
        if not is_open:
            ctx = self._ctx()
            ctx.controller.close_dialog()
            self._sync(ctx)

    def update_draft(self, field: str, value: str) -> None:
        ctx = self._ctx()
        try:
            ctx.controller.update_draft(**{field: value})
        except ValueError as e:
            logger.warning("Draft update rejected: %s", e)
        self._sync(ctx)

    async def submit(self, form_data: dict):
        ctx = self._ctx()
        self.submitting = True
        yield
        await ctx.controller.submit()
        self._sync(ctx)

    def request_delete(self, report_id: str) -> None:
        ctx = self._ctx()
        ctx.controller.request_delete(report_id)
        self._sync(ctx)

    def cancel_delete(self) -> None:
        ctx = self._ctx()
        ctx.controller.cancel_delete()
        self._sync(ctx)

    async def confirm_delete(self):
        ctx = self._ctx()
        self.pending_delete = ""
        yield
        await ctx.controller.confirm_delete()
        self._sync(ctx)

    def dismiss_error(self) -> None:
        ctx = self._ctx()
        ctx.controller.dismiss_error()
        self._sync(ctx)
