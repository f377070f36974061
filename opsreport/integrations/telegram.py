"""
Telegram bot notifications for newly created reports.

Best-effort only: the dispatcher runs each delivery as a detached task whose
outcome is observed by the log sink and nothing else. A missing bot token or
chat id is not an error; the send is skipped with a warning.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional, Set

import httpx

from opsreport.engine.config import NotificationConfig, missing_notification_settings
from opsreport.engine.errors import NotificationFailed
from opsreport.engine.logging import log, log_notification
from opsreport.records.models import Report

logger = logging.getLogger("opsreport.integrations.telegram")

CHANNEL = "telegram"


def format_report_message(report: Report, action: str = "New") -> str:
    """Markdown body sent to the chat."""
    return (
        f"📢 *Report {action}*\n\n"
        f"*Name:* {report.name}\n"
        f"*Date:* {report.date}\n"
        f"*Status:* {report.status.value}\n"
        f"*Description:* {report.description}"
    )


class TelegramNotifier:
    """Posts report messages to ``{api_base}/bot{token}/sendMessage``."""

    def __init__(
        self,
        config: NotificationConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._config = config
        self._client = httpx.AsyncClient(
            base_url=config.api_base.rstrip("/"),
            timeout=httpx.Timeout(config.timeout, connect=5.0),
            transport=transport,
        )

    @property
    def is_enabled(self) -> bool:
        return self._config.enabled and self._config.is_configured

    async def send(self, report: Report, action: str = "New") -> bool:
        """
        Deliver one message.

        Returns:
            True when sent, False when skipped (disabled or unconfigured).

        Raises:
            NotificationFailed on transport error or a rejected request.
        """
        if not self._config.enabled:
            logger.debug("Notifications disabled, skipping report %s", report.id)
            return False
        missing = missing_notification_settings(self._config)
        if missing:
            logger.warning("Telegram %s missing, notification skipped", " and ".join(missing))
            log(log_notification("notification_skipped", CHANNEL, record_id=report.id,
                                 error=f"missing {', '.join(missing)}"))
            return False

        payload = {
            "chat_id": self._config.chat_id,
            "text": format_report_message(report, action),
            "parse_mode": self._config.parse_mode,
        }
        start = time.monotonic()
        try:
            response = await self._client.post(f"/bot{self._config.bot_token}/sendMessage", json=payload)
        except httpx.HTTPError as e:
            raise NotificationFailed(
                f"Telegram request failed: {type(e).__name__}",
                record_id=report.id,
            ) from e

        duration_ms = (time.monotonic() - start) * 1000
        ok = response.is_success
        if ok:
            try:
                ok = bool(response.json().get("ok", True))
            except ValueError:
                pass
        if not ok:
            raise NotificationFailed(
                f"Telegram rejected message: HTTP {response.status_code}",
                record_id=report.id,
                status_code=response.status_code,
            )

        log(log_notification("notification_sent", CHANNEL, record_id=report.id,
                             status_code=response.status_code, duration_ms=duration_ms))
        logger.info("Telegram notification sent for report %s", report.id)
        return True

    async def health_check(self) -> bool:
        if not self.is_enabled:
            return True
        try:
            response = await self._client.get(f"/bot{self._config.bot_token}/getMe")
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error("Telegram health check failed: %s", e)
            return False

    async def close(self) -> None:
        await self._client.aclose()


class NotificationDispatcher:
    """
    Emit-and-forget wrapper around a notifier.

    ``emit()`` schedules a task and returns immediately; failures are logged
    and never reach the caller. Strong references are kept until each task
    finishes so they are not garbage collected mid-flight.
    """

    def __init__(self, notifier: TelegramNotifier):
        self._notifier = notifier
        self._tasks: Set[asyncio.Task] = set()

    def emit(self, report: Report, action: str = "New") -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._deliver(report, action), name=f"notify-{report.id}"
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, report: Report, action: str) -> None:
        try:
            await self._notifier.send(report, action)
        except NotificationFailed as e:
            logger.error("Notification for report %s failed: %s", report.id, e.message)
            log(log_notification("notification_failed", CHANNEL, record_id=report.id,
                                 status_code=e.status_code, error=e.message))
        except Exception as e:
            logger.error("Notification for report %s crashed: %s", report.id, e, exc_info=True)
            log(log_notification("notification_failed", CHANNEL, record_id=report.id, error=str(e)))

    @property
    def notifier(self) -> TelegramNotifier:
        return self._notifier

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        await self.drain()
        await self._notifier.close()
