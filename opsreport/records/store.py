"""
Record Store Adapter — the only path through which the dashboard reads and
writes reports.

``ReportStore`` implements the four public operations once, on top of four
backend primitives. It does no caching, no batching and no retrying; its job
is to narrow whatever the backend raises into the store error taxonomy:

    StoreUnavailable    — transport / auth failure (retryable)
    ValidationRejected  — payload rejected (fix the input)
    NotFound            — the target row is gone

``create`` is never retried here or anywhere else: a failed create is
surfaced and the user resubmits explicitly.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

from pydantic import ValidationError

from opsreport.engine.errors import NotFound, StoreError, StoreUnavailable, ValidationRejected
from opsreport.engine.logging import log, log_store_operation
from opsreport.records.models import Draft, Report, newest_first

logger = logging.getLogger("opsreport.records.store")

T = TypeVar("T")


class ReportStore(ABC):
    """Base adapter. Subclasses implement the ``_fetch_all``/``_insert``/``_patch``/``_remove`` primitives."""

    backend_name: str = "abstract"

    # -----------------------------------------------------------------------
    # Public operations
    # -----------------------------------------------------------------------

    async def list(self) -> List[Report]:
        """All reports, newest first."""
        rows = await self._call("list", self._fetch_all)
        return newest_first([self._parse(row, "list") for row in rows])

    async def create(self, draft: Draft) -> Report:
        self._check_draft(draft, "create")
        row = await self._call("create", lambda: self._insert(draft.payload()))
        return self._parse(row, "create")

    async def update(self, report_id: str, draft: Draft) -> None:
        self._check_draft(draft, "update", report_id)
        found = await self._call(
            "update", lambda: self._patch(report_id, draft.payload()), report_id
        )
        if not found:
            raise NotFound(
                f"Report '{report_id}' not found",
                operation="update",
                record_id=report_id,
            )

    async def delete(self, report_id: str) -> None:
        found = await self._call("delete", lambda: self._remove(report_id), report_id)
        if not found:
            raise NotFound(
                f"Report '{report_id}' not found",
                operation="delete",
                record_id=report_id,
            )

    async def health_check(self) -> bool:
        """Return True when the store answers a list round trip."""
        try:
            await self._fetch_all()
            return True
        except Exception as e:
            logger.error("Store health check failed (%s): %s", self.backend_name, e)
            return False

    async def close(self) -> None:
        """Release backend resources. Default: nothing to release."""

    # -----------------------------------------------------------------------
    # Backend primitives
    # -----------------------------------------------------------------------

    @abstractmethod
    async def _fetch_all(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def _insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it with store-assigned ``id``/``created_at``."""
        ...

    @abstractmethod
    async def _patch(self, report_id: str, payload: Dict[str, Any]) -> bool:
        """Update a row. False when no row matched."""
        ...

    @abstractmethod
    async def _remove(self, report_id: str) -> bool:
        """Delete a row. False when no row matched."""
        ...

    # -----------------------------------------------------------------------
    # Error narrowing
    # -----------------------------------------------------------------------

    async def _call(
        self,
        operation: str,
        fn: Callable[[], Awaitable[T]],
        record_id: Optional[str] = None,
    ) -> T:
        start = time.monotonic()
        try:
            result = await fn()
        except StoreError as e:
            self._record(operation, start, False, record_id, error=e.to_dict())
            raise
        except Exception as e:
            err = StoreUnavailable(
                f"{self.backend_name} store {operation} failed: {e}",
                operation=operation,
                record_id=record_id,
                cause=type(e).__name__,
            )
            self._record(operation, start, False, record_id, error=err.to_dict())
            raise err from e

        row_count = len(result) if isinstance(result, list) else None
        self._record(operation, start, True, record_id, row_count=row_count)
        return result

    def _record(
        self,
        operation: str,
        start: float,
        success: bool,
        record_id: Optional[str],
        row_count: Optional[int] = None,
        error: Optional[Dict[str, Any]] = None,
    ) -> None:
        duration_ms = (time.monotonic() - start) * 1000
        if success:
            logger.debug("store %s ok (%.1fms)", operation, duration_ms)
        else:
            logger.warning("store %s failed: %s", operation, (error or {}).get("message"))
        log(log_store_operation(
            operation=operation,
            backend=self.backend_name,
            duration_ms=duration_ms,
            success=success,
            record_id=record_id,
            row_count=row_count,
            error=error,
        ))

    @staticmethod
    def _check_draft(draft: Draft, operation: str, record_id: Optional[str] = None) -> None:
        problems = draft.check()
        if problems:
            raise ValidationRejected(
                "Draft failed validation: "
                + ", ".join(f"{p['field']} {p['error']}" for p in problems),
                operation=operation,
                record_id=record_id,
                validation_errors=problems,
            )

    def _parse(self, row: Dict[str, Any], operation: str) -> Report:
        try:
            return Report.model_validate(row)
        except ValidationError as e:
            raise StoreUnavailable(
                f"{self.backend_name} store returned a malformed row",
                operation=operation,
                record_id=str(row.get("id")) if isinstance(row, dict) else None,
                validation_errors=e.errors(),
            ) from e
