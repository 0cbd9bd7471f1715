"""Domain entities exposed by the application."""

from .delivery import (
    DeliveryChannel,
    DeliveryOutcome,
    DeliveryRecord,
    DeliveryRecordStatus,
    DeliveryStatus,
    OperationResult,
)
from .notification import (
    NOTIFICATION_TYPE_APPOINTMENT,
    NOTIFICATION_TYPE_RESULT,
    NOTIFICATION_TYPE_SECURITY,
    NOTIFICATION_TYPE_TEST,
    PRIORITY_HIGH,
    PRIORITY_NORMAL,
    Notification,
)
from .notification_preferences import (
    CRITICAL_CATEGORIES,
    DEFAULT_NOTIFICATION_SETTINGS,
    ScheduleSettings,
)
from .realtime_session import (
    InvalidSessionTransition,
    Principal,
    SessionContext,
    SessionState,
)
from .support_ticket import SupportTicket
from .user import SUPPORTED_DEVICE_PLATFORMS, DeviceRegistration, User

__all__ = [
    "CRITICAL_CATEGORIES",
    "DEFAULT_NOTIFICATION_SETTINGS",
    "DeliveryChannel",
    "DeliveryOutcome",
    "DeliveryRecord",
    "DeliveryRecordStatus",
    "DeliveryStatus",
    "DeviceRegistration",
    "InvalidSessionTransition",
    "NOTIFICATION_TYPE_APPOINTMENT",
    "NOTIFICATION_TYPE_RESULT",
    "NOTIFICATION_TYPE_SECURITY",
    "NOTIFICATION_TYPE_TEST",
    "Notification",
    "OperationResult",
    "PRIORITY_HIGH",
    "PRIORITY_NORMAL",
    "Principal",
    "SUPPORTED_DEVICE_PLATFORMS",
    "ScheduleSettings",
    "SessionContext",
    "SessionState",
    "SupportTicket",
    "User",
]
