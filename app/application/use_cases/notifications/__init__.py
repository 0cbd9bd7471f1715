"""Notification decision engine and the use cases built on it."""

from .dispatcher import NotificationDispatcher, get_notification_dispatcher
from .events import (
    create_and_send_result_notification,
    notify_new_support_ticket,
    notify_user_of_agent_reply,
    send_appointment_reminder,
    send_login_notification,
    send_password_change_notification,
    send_result_notification,
    send_security_alert,
    send_suspicious_activity_alert,
    send_test_notification,
)
from .inbox import (
    delete_notification,
    list_user_notifications,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)
from .preferences import is_channel_enabled, should_deliver
from .settings import (
    check_notification_enabled,
    get_notification_settings,
    get_preferences_summary,
    reset_notification_settings,
    update_device_token,
    update_notification_settings,
)

__all__ = [
    "NotificationDispatcher",
    "get_notification_dispatcher",
    "is_channel_enabled",
    "should_deliver",
    "send_appointment_reminder",
    "send_result_notification",
    "send_security_alert",
    "send_test_notification",
    "notify_new_support_ticket",
    "notify_user_of_agent_reply",
    "send_password_change_notification",
    "send_login_notification",
    "send_suspicious_activity_alert",
    "create_and_send_result_notification",
    "get_notification_settings",
    "update_notification_settings",
    "reset_notification_settings",
    "get_preferences_summary",
    "check_notification_enabled",
    "update_device_token",
    "list_user_notifications",
    "mark_notification_as_read",
    "mark_all_notifications_as_read",
    "delete_notification",
]
