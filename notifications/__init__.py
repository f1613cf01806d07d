"""Outbound notifications."""

from functools import lru_cache

from config import get_settings
from notifications.dispatcher import (
    HttpNotificationDispatcher,
    LoggingNotificationDispatcher,
    NotificationDispatcher,
    NotificationMessage,
)


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    """Get the singleton dispatcher for the configured channel."""
    settings = get_settings()
    if settings.notification_url:
        return HttpNotificationDispatcher(
            settings.notification_url,
            settings.notification_api_key or "",
            timeout_s=settings.notification_timeout_seconds,
        )
    return LoggingNotificationDispatcher()


__all__ = [
    "NotificationDispatcher",
    "NotificationMessage",
    "HttpNotificationDispatcher",
    "LoggingNotificationDispatcher",
    "get_dispatcher",
]
