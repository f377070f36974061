"""
Dashboard Controller — owns the report list, the active Draft and the dialog.

Rules the controller keeps:
    - The list is only ever replaced wholesale by a successful Hydrate; it is
      never patched in place after a mutation.
    - Stats are computed from the list on every read, never stored.
    - Hydrates are tagged with an increasing sequence number; a result that
      is not from the latest Hydrate is discarded, and only the latest one
      clears the loading flag.
    - A failed create/update leaves the dialog open and the Draft untouched.
    - The create notification is emitted and forgotten; its outcome never
      reaches this class.
    - Store errors stop here: they become a dismissible banner, not an
      exception.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from pydantic import ValidationError

from opsreport.engine.errors import StoreError, ValidationRejected
from opsreport.engine.logging import log, log_dashboard_action
from opsreport.integrations.telegram import NotificationDispatcher
from opsreport.records.models import EDITABLE_FIELDS, Draft, Report, ReportStats, find_report
from opsreport.records.store import ReportStore
from opsreport.security.identity import IdentityProvider

logger = logging.getLogger("opsreport.dashboard.controller")

ConfirmFn = Callable[[str], Union[bool, Awaitable[bool]]]


class RenderState(str, Enum):
    LOADING = "loading"
    EMPTY = "empty"
    POPULATED = "populated"


@dataclass(frozen=True)
class ErrorBanner:
    """A transient message shown next to the control that triggered it."""
    message: str
    source: str  # "form" | "row" | "list"
    error_type: str
    record_id: Optional[str] = None
    retryable: bool = False


class DashboardController:
    """
    One instance per signed-in session.

    Args:
        store: The record store adapter.
        identity: Provider used by ``logout()``.
        notifications: Dispatcher for the create notification (optional).
        on_reset: Called after logout to rebuild the application from scratch.
    """

    def __init__(
        self,
        store: ReportStore,
        identity: Optional[IdentityProvider] = None,
        notifications: Optional[NotificationDispatcher] = None,
        on_reset: Optional[Callable[[], Any]] = None,
    ):
        self._store = store
        self._identity = identity
        self._notifications = notifications
        self._on_reset = on_reset
        self._hydrate_seq = 0
        self._initial_state()

    def _initial_state(self) -> None:
        self.reports: List[Report] = []
        self.loading: bool = False
        self.dialog_open: bool = False
        self.draft: Draft = Draft()
        self.editing: Optional[Report] = None
        self.pending_delete: Optional[str] = None
        self.error: Optional[ErrorBanner] = None
        self.submitting: bool = False
        # anything still in flight belongs to the discarded state
        self._hydrate_seq += 1

    # -----------------------------------------------------------------------
    # Derived state
    # -----------------------------------------------------------------------

    @property
    def stats(self) -> ReportStats:
        return ReportStats.from_reports(self.reports)

    @property
    def render_state(self) -> RenderState:
        if self.loading:
            return RenderState.LOADING
        return RenderState.POPULATED if self.reports else RenderState.EMPTY

    @property
    def is_editing(self) -> bool:
        return self.editing is not None

    # -----------------------------------------------------------------------
    # Hydrate
    # -----------------------------------------------------------------------

    async def hydrate(self) -> bool:
        """Replace the list with a fresh fetch. Returns True if this call's result was applied."""
        self._hydrate_seq += 1
        seq = self._hydrate_seq
        self.loading = True
        try:
            reports = await self._store.list()
        except StoreError as e:
            if seq == self._hydrate_seq:
                self._surface(e, "list")
                log(log_dashboard_action("hydrate", success=False, details=e.to_dict()))
            return False
        finally:
            if seq == self._hydrate_seq:
                self.loading = False

        if seq != self._hydrate_seq:
            logger.debug("Discarding out-of-order hydrate #%d (latest #%d)", seq, self._hydrate_seq)
            return False

        self.reports = reports
        if self.error is not None and self.error.source == "list":
            self.error = None
        log(log_dashboard_action("hydrate", details={"count": len(reports)}))
        return True

    # -----------------------------------------------------------------------
    # Dialog / Draft
    # -----------------------------------------------------------------------

    def open_create(self) -> None:
        self.editing = None
        self.draft = Draft()
        self.dialog_open = True
        self._clear_error("form")

    def open_edit(self, report: Union[Report, str]) -> None:
        if isinstance(report, str):
            found = find_report(self.reports, report)
            if found is None:
                raise KeyError(f"Report '{report}' is not in the current list")
            report = found
        self.editing = report
        self.draft = report.to_draft()
        self.dialog_open = True
        self._clear_error("form")

    def update_draft(self, **fields: Any) -> Draft:
        unknown = set(fields) - set(EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Not a draft field: {', '.join(sorted(unknown))}")
        for name, value in fields.items():
            try:
                setattr(self.draft, name, value)
            except ValidationError as e:
                self._surface(
                    ValidationRejected(
                        f"Invalid value for {name}: {value!r}",
                        validation_errors=e.errors(include_url=False),
                        user_message=f"{value!r} is not a valid {name}.",
                    ),
                    "form",
                )
        return self.draft

    def close_dialog(self) -> None:
        """Cancel: the Draft is discarded along with the edit target."""
        self.dialog_open = False
        self.editing = None
        self.draft = Draft()
        self._clear_error("form")

    # -----------------------------------------------------------------------
    # Submit
    # -----------------------------------------------------------------------

    async def submit(self) -> bool:
        """
        Create or update from the Draft, depending on whether an edit target
        is recorded. Returns True on success.
        """
        if self.submitting:
            logger.debug("Submit ignored, previous submit still in flight")
            return False

        draft = self.draft.model_copy()
        target = self.editing
        self.submitting = True
        created: Optional[Report] = None
        try:
            if target is None:
                created = await self._store.create(draft)
            else:
                await self._store.update(target.id, draft)
        except StoreError as e:
            self._surface(e, "form", target.id if target else None)
            log(log_dashboard_action(
                "create" if target is None else "update",
                success=False,
                record_id=target.id if target else None,
                details=e.to_dict(),
            ))
            return False
        finally:
            self.submitting = False

        if created is not None:
            self._notify_created(created)
            log(log_dashboard_action("create", record_id=created.id))
        else:
            log(log_dashboard_action("update", record_id=target.id))

        self.dialog_open = False
        self.editing = None
        self.draft = Draft()
        self._clear_error("form")
        await self.hydrate()
        return True

    def _notify_created(self, report: Report) -> None:
        if self._notifications is None:
            return
        try:
            self._notifications.emit(report)
        except Exception as e:
            logger.error("Could not schedule notification for %s: %s", report.id, e)

    # -----------------------------------------------------------------------
    # Delete
    # -----------------------------------------------------------------------

    def request_delete(self, report_id: str) -> None:
        """First step: remember which row awaits confirmation."""
        self.pending_delete = report_id

    def cancel_delete(self) -> None:
        self.pending_delete = None

    async def confirm_delete(self) -> bool:
        report_id = self.pending_delete
        if report_id is None:
            return False
        self.pending_delete = None
        return await self._delete(report_id)

    async def delete(self, report_id: str, confirm: ConfirmFn) -> bool:
        """Delete after ``confirm(report_id)`` agrees (sync or async callable)."""
        answer = confirm(report_id)
        if inspect.isawaitable(answer):
            answer = await answer
        if not answer:
            return False
        return await self._delete(report_id)

    async def _delete(self, report_id: str) -> bool:
        try:
            await self._store.delete(report_id)
        except StoreError as e:
            self._surface(e, "row", report_id)
            log(log_dashboard_action("delete", success=False, record_id=report_id, details=e.to_dict()))
            return False
        log(log_dashboard_action("delete", record_id=report_id))
        self._clear_error("row")
        await self.hydrate()
        return True

    # -----------------------------------------------------------------------
    # Errors / Logout
    # -----------------------------------------------------------------------

    def dismiss_error(self) -> None:
        self.error = None

    def _surface(self, error: StoreError, source: str, record_id: Optional[str] = None) -> None:
        logger.warning("Dashboard %s error: %r", source, error)
        self.error = ErrorBanner(
            message=error.user_message,
            source=source,
            error_type=error.error_type,
            record_id=record_id,
            retryable=error.is_retryable,
        )

    def _clear_error(self, source: str) -> None:
        if self.error is not None and self.error.source == source:
            self.error = None

    async def logout(self) -> None:
        """Sign out, then rebuild from scratch (``on_reset``)."""
        if self._identity is not None:
            try:
                await self._identity.sign_out()
            except Exception as e:
                logger.warning("Sign-out failed, resetting anyway: %s", e)
        log(log_dashboard_action("logout"))
        self._initial_state()
        if self._on_reset is not None:
            result = self._on_reset()
            if inspect.isawaitable(result):
                await result
