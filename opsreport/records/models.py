"""
Report records — the persisted Report, the transient Draft, and derived stats.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReportStatus(str, Enum):
    PENDING = "Pending"
    DONE = "Done"


# Status labels written by older deployments of the dashboard
_LEGACY_STATUS = {"Selesai": ReportStatus.DONE}

EDITABLE_FIELDS = ("date", "name", "description", "status")


def _coerce_status(value: Any) -> Any:
    if isinstance(value, str) and value in _LEGACY_STATUS:
        return _LEGACY_STATUS[value]
    return value


def today_iso() -> str:
    return date.today().isoformat()


class Report(BaseModel):
    """A persisted report row. ``id`` and ``created_at`` are assigned by the store."""

    model_config = ConfigDict(frozen=True, use_enum_values=False)

    id: str
    date: str
    name: str
    description: str
    status: ReportStatus = ReportStatus.PENDING
    created_at: datetime

    @field_validator("id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, v: Any) -> Any:
        return _coerce_status(v)

    @field_validator("created_at")
    @classmethod
    def _aware(cls, v: datetime) -> datetime:
        return v if v.tzinfo else v.replace(tzinfo=timezone.utc)

    def to_draft(self) -> "Draft":
        return Draft(**{name: getattr(self, name) for name in EDITABLE_FIELDS})

    def to_row(self) -> Dict[str, Any]:
        """Flat JSON-friendly dict (used by the web state layer)."""
        return {
            "id": self.id,
            "date": self.date,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }


class Draft(BaseModel):
    """
    The form's working copy of a report-to-be. Never persisted as such.

    Field values are kept exactly as typed; ``check()`` is what decides
    whether the draft may be submitted.
    """

    model_config = ConfigDict(validate_assignment=True)

    date: str = Field(default_factory=today_iso)
    name: str = ""
    description: str = ""
    status: ReportStatus = ReportStatus.PENDING

    @field_validator("status", mode="before")
    @classmethod
    def _legacy_status(cls, v: Any) -> Any:
        return _coerce_status(v)

    def check(self) -> List[Dict[str, str]]:
        """Return field-level problems; empty list means submittable."""
        problems: List[Dict[str, str]] = []
        try:
            valid_date = date.fromisoformat(self.date).isoformat() == self.date
        except (TypeError, ValueError):
            valid_date = False
        if not valid_date:
            problems.append({"field": "date", "error": "must be a YYYY-MM-DD date"})
        if not self.name.strip():
            problems.append({"field": "name", "error": "is required"})
        if not self.description.strip():
            problems.append({"field": "description", "error": "is required"})
        return problems

    def payload(self) -> Dict[str, Any]:
        """Body sent to the store for create/update."""
        return {
            "date": self.date,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
        }


class ReportStats(BaseModel):
    total: int = 0
    pending: int = 0
    done: int = 0

    @classmethod
    def from_reports(cls, reports: Sequence[Report]) -> "ReportStats":
        return cls(
            total=len(reports),
            pending=sum(1 for r in reports if r.status == ReportStatus.PENDING),
            done=sum(1 for r in reports if r.status == ReportStatus.DONE),
        )


def newest_first(reports: Sequence[Report]) -> List[Report]:
    """Order reports by ``created_at`` descending (stable for ties)."""
    return sorted(reports, key=lambda r: r.created_at, reverse=True)


def find_report(reports: Sequence[Report], report_id: str) -> Optional[Report]:
    for report in reports:
        if report.id == report_id:
            return report
    return None
