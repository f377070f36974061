"""
OpsReport Database Base — SQLAlchemy declarative base and the ``reports`` table.

Used by the SQL store backend (local / self-hosted deployments). The hosted
REST backend owns its own schema; this mirrors it column for column.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for OpsReport models."""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportRow(Base):
    """One row per report. ``id`` and ``created_at`` are assigned on insert."""

    __tablename__ = "reports"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    date = Column(String(10), nullable=False)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String(16), nullable=False, default="Pending")
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow, index=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "created_at": self.created_at,
        }

    def __repr__(self) -> str:
        return f"<ReportRow {self.id} {self.name!r} {self.status}>"
