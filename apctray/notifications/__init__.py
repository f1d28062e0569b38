"""Notification delivery: local notifier, Telegram and the dispatcher."""

from .dispatcher import NotificationDispatcher
from .local import LocalNotifier, LogNotifier
from .telegram import (
    TelegramClient,
    build_daily_log,
    build_status_summary,
    build_telegram_text,
    load_watts,
)

__all__ = [
    "NotificationDispatcher",
    "LocalNotifier",
    "LogNotifier",
    "TelegramClient",
    "build_daily_log",
    "build_status_summary",
    "build_telegram_text",
    "load_watts",
]
