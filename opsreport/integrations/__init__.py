"""Outbound integrations (chat notifications)."""

from opsreport.integrations.telegram import NotificationDispatcher, TelegramNotifier

__all__ = ["NotificationDispatcher", "TelegramNotifier"]
