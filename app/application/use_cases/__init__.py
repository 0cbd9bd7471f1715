"""Aggregate application use cases."""

from .notifications import (
    NotificationDispatcher,
    get_notification_dispatcher,
    is_channel_enabled,
    should_deliver,
)

__all__ = [
    "NotificationDispatcher",
    "get_notification_dispatcher",
    "is_channel_enabled",
    "should_deliver",
]
