"""
OpsReport Test Suite — Shared fixtures and configuration.

Run:  pytest tests/ -v
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest

from opsreport.records.models import Report
from opsreport.records.store import ReportStore


# ---------------------------------------------------------------------------
# Global singletons: config, log queue, runtime
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _isolate_globals():
    """Reset module-level singletons around every test."""
    import opsreport.engine.config as cfg_mod
    import opsreport.engine.logging as log_mod
    import opsreport.engine.runtime as rt_mod

    cfg_mod._config = None
    rt_mod._runtime = None
    yield
    if log_mod._global_queue is not None:
        log_mod.shutdown_logging()
    cfg_mod._config = None
    rt_mod._runtime = None


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a clean temp directory."""
    return tmp_path


# ---------------------------------------------------------------------------
# In-memory record store
# ---------------------------------------------------------------------------

class MemoryReportStore(ReportStore):
    """
    ReportStore over a dict. ``fail`` maps a primitive name ("list",
    "create", "update", "delete") to an exception raised on the next call.
    """

    backend_name = "memory"

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None):
        self.rows: Dict[str, Dict[str, Any]] = {r["id"]: dict(r) for r in rows or []}
        self.fail: Dict[str, Exception] = {}
        self.calls: List[str] = []
        # later than every seeded row
        self._clock = datetime(2026, 10, 2, 8, 0, tzinfo=timezone.utc)

    def _maybe_fail(self, name: str) -> None:
        self.calls.append(name)
        exc = self.fail.pop(name, None)
        if exc is not None:
            raise exc

    async def _fetch_all(self) -> List[Dict[str, Any]]:
        self._maybe_fail("list")
        return [dict(r) for r in self.rows.values()]

    async def _insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        self._maybe_fail("create")
        self._clock += timedelta(minutes=1)
        row = dict(payload, id=str(uuid.uuid4()), created_at=self._clock)
        self.rows[row["id"]] = row
        return dict(row)

    async def _patch(self, report_id: str, payload: Dict[str, Any]) -> bool:
        self._maybe_fail("update")
        if report_id not in self.rows:
            return False
        self.rows[report_id].update(payload)
        return True

    async def _remove(self, report_id: str) -> bool:
        self._maybe_fail("delete")
        return self.rows.pop(report_id, None) is not None


class RecordingDispatcher:
    """Stands in for NotificationDispatcher; remembers what was emitted."""

    def __init__(self, raise_on_emit: Optional[Exception] = None):
        self.emitted: List[Report] = []
        self._raise = raise_on_emit

    def emit(self, report: Report, action: str = "New"):
        if self._raise is not None:
            raise self._raise
        self.emitted.append(report)


def make_row(
    name: str,
    status: str = "Pending",
    minutes: int = 0,
    report_id: Optional[str] = None,
    date: str = "2026-10-01",
    description: str = "Work done",
) -> Dict[str, Any]:
    return {
        "id": report_id or str(uuid.uuid4()),
        "date": date,
        "name": name,
        "description": description,
        "status": status,
        "created_at": datetime(2026, 10, 1, 8, 0, tzinfo=timezone.utc) + timedelta(minutes=minutes),
    }


@pytest.fixture
def memory_store():
    return MemoryReportStore()


@pytest.fixture
def seeded_store():
    """Three reports: two Pending, one Done; "Gamma" is newest."""
    return MemoryReportStore([
        make_row("Alpha", "Pending", minutes=1, report_id="r-alpha"),
        make_row("Beta", "Done", minutes=2, report_id="r-beta"),
        make_row("Gamma", "Pending", minutes=3, report_id="r-gamma"),
    ])


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


# ---------------------------------------------------------------------------
# SQL store on in-memory SQLite
# ---------------------------------------------------------------------------

@pytest.fixture
def session_factory():
    from opsreport.db.session import init_db

    factory = init_db("sqlite:///:memory:", create_tables=True)
    yield factory
    factory.kw["bind"].dispose()


@pytest.fixture
def sql_store(session_factory):
    from opsreport.records.sql_store import SqlReportStore

    return SqlReportStore(session_factory)


# ---------------------------------------------------------------------------
# Local identity
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def ops_password_hash():
    """bcrypt is slow on purpose; hash once per session."""
    from opsreport.security.identity import hash_password

    return hash_password("s3cret-pass")


@pytest.fixture
def local_identity(ops_password_hash):
    from opsreport.security.identity import LocalIdentityProvider

    return LocalIdentityProvider({"ops@example.com": ops_password_hash})
