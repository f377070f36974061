"""SQLAlchemy-backed report store for local and self-hosted deployments."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from opsreport.db.base import ReportRow
from opsreport.db.session import session_scope
from opsreport.engine.errors import StoreUnavailable, ValidationRejected
from opsreport.records.store import ReportStore

logger = logging.getLogger("opsreport.records.sql_store")

T = TypeVar("T")


class SqlReportStore(ReportStore):
    """
    Report store over a SQLAlchemy session factory.

    Blocking ORM calls run in a worker thread so the event loop is only
    suspended at the store boundary.
    """

    backend_name = "sql"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def _run(self, operation: str, fn: Callable[[Session], T]) -> T:
        def work() -> T:
            with session_scope(self._session_factory) as session:
                return fn(session)

        try:
            return await asyncio.to_thread(work)
        except (IntegrityError, DataError) as e:
            raise ValidationRejected(
                f"Database rejected {operation}: {e.orig}",
                operation=operation,
                validation_errors=[str(e.orig)],
            ) from e
        except SQLAlchemyError as e:
            raise StoreUnavailable(
                f"Database {operation} failed: {e}",
                operation=operation,
                cause=type(e).__name__,
            ) from e

    async def _fetch_all(self) -> List[Dict[str, Any]]:
        def fn(session: Session) -> List[Dict[str, Any]]:
            rows = session.execute(
                select(ReportRow).order_by(ReportRow.created_at.desc())
            ).scalars().all()
            return [row.to_dict() for row in rows]

        return await self._run("list", fn)

    async def _insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        def fn(session: Session) -> Dict[str, Any]:
            row = ReportRow(**payload)
            session.add(row)
            session.flush()
            return row.to_dict()

        return await self._run("create", fn)

    async def _patch(self, report_id: str, payload: Dict[str, Any]) -> bool:
        def fn(session: Session) -> bool:
            row = session.get(ReportRow, report_id)
            if row is None:
                return False
            for key, value in payload.items():
                setattr(row, key, value)
            return True

        return await self._run("update", fn)

    async def _remove(self, report_id: str) -> bool:
        def fn(session: Session) -> bool:
            row = session.get(ReportRow, report_id)
            if row is None:
                return False
            session.delete(row)
            return True

        return await self._run("delete", fn)

    async def close(self) -> None:
        engine = self._session_factory.kw.get("bind")
        if engine is not None:
            await asyncio.to_thread(engine.dispose)
