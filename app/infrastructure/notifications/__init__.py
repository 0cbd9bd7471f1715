"""Realtime notification helpers for the infrastructure layer."""

from .manager import (
    ConnectedSessionRegistry,
    SimpleBroker,
    message_broker,
    session_registry,
)
from .publisher import (
    RealtimeNotificationService,
    realtime_notifications,
    serialize_notification,
)

__all__ = [
    "ConnectedSessionRegistry",
    "SimpleBroker",
    "message_broker",
    "session_registry",
    "RealtimeNotificationService",
    "realtime_notifications",
    "serialize_notification",
]
