"""Report records and the stores that persist them."""

from opsreport.records.models import Draft, Report, ReportStats, ReportStatus
from opsreport.records.store import ReportStore

__all__ = ["Draft", "Report", "ReportStats", "ReportStatus", "ReportStore"]
