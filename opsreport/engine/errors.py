"""
OpsReport Error Hierarchy — Structured exceptions for the dashboard core.

Every error is serialisable to JSON so it can be written to the activity
logs and surfaced to the UI as a short, dismissible message.

Hierarchy:
    OpsReportError
    ├── StoreError               — Record store operation failed
    │   ├── StoreUnavailable     — Transport / auth failure (retryable)
    │   ├── ValidationRejected   — Store (or local check) rejected the payload
    │   └── NotFound             — Target record no longer exists
    ├── NotificationFailed       — Best-effort side-channel failed (logged only)
    ├── SessionError             — Identity provider failure
    └── ConfigError              — Invalid opsreport.yaml / environment
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class OpsReportError(Exception):
    """
    Base error for all OpsReport failures.
    All context is kept JSON-serialisable for the activity log.
    """

    is_retryable: bool = False
    default_user_message: str = "Something went wrong. Please try again."

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.error_type: str = self.__class__.__name__
        self.context: Dict[str, Any] = context
        self.user_message: str = context.get("user_message") or self.default_user_message
        self.timestamp: str = datetime.now(timezone.utc).isoformat()
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize error to a JSON-compatible dict."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "user_message": self.user_message,
            "retryable": self.is_retryable,
            "timestamp": self.timestamp,
            "context": {
                k: str(v) for k, v in self.context.items()
                if k != "user_message"
            },
        }

    def to_json(self) -> str:
        """Serialize to JSON string."""
        return json.dumps(self.to_dict(), default=str)

    def __repr__(self) -> str:
        parts = [f"{self.error_type}: {self.message}"]
        for key in ("operation", "record_id", "status_code"):
            if self.context.get(key) is not None:
                parts.append(f"{key}={self.context[key]}")
        return " | ".join(parts)


class StoreError(OpsReportError):
    """Record store operation failed (list, create, update, delete)."""

    def __init__(self, message: str, **context: Any):
        self.operation: Optional[str] = context.get("operation")
        self.record_id: Optional[str] = context.get("record_id")
        self.status_code: Optional[int] = context.get("status_code")
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["operation"] = self.operation
        d["record_id"] = self.record_id
        d["status_code"] = self.status_code
        return d


class StoreUnavailable(StoreError):
    """Transport or authentication failure talking to the record store."""

    is_retryable = True
    default_user_message = "The report store is unreachable. Please try again."


class ValidationRejected(StoreError):
    """
    The payload was rejected, either by the store's constraints or by the
    local draft check that runs before the round trip.
    Includes field-level error details when available.
    """

    default_user_message = "The report was rejected. Please check the form and resubmit."

    def __init__(self, message: str, **context: Any):
        self.validation_errors: List[Any] = context.get("validation_errors") or []
        super().__init__(message, **context)

    def to_dict(self) -> Dict[str, Any]:
        d = super().to_dict()
        d["validation_errors"] = self.validation_errors
        return d


class NotFound(StoreError):
    """The target record vanished before the operation reached it."""

    default_user_message = "That report no longer exists. Refresh the list."


class NotificationFailed(OpsReportError):
    """Outbound chat notification failed. Never surfaced to the dashboard."""

    default_user_message = "Notification could not be delivered."

    def __init__(self, message: str, **context: Any):
        self.status_code: Optional[int] = context.get("status_code")
        super().__init__(message, **context)


class SessionError(OpsReportError):
    """Session resolution, sign-in or sign-out failed."""

    default_user_message = "Could not reach the sign-in service."


class ConfigError(OpsReportError):
    """Configuration error — invalid opsreport.yaml or environment override."""

    def __init__(self, message: str, **context: Any):
        self.errors: Optional[list] = context.get("errors")
        super().__init__(message, **context)
