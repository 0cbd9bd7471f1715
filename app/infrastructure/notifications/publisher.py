"""Utility helpers to push realtime events to STOMP subscribers."""

from __future__ import annotations

import copy
import logging
from typing import Any

from app.domain.entities import Notification
from app.utils import now_in_app_timezone

from .manager import SimpleBroker, message_broker

logger = logging.getLogger(__name__)

BROADCAST_DESTINATION = "/topic/notifications"
USER_NOTIFICATIONS_TOPIC = "/user/{user_id}/topic/notifications"
USER_NOTIFICATIONS_QUEUE = "/user/{user_id}/queue/notifications"
USER_RESULTS_TOPIC = "/user/{user_id}/topic/results"
USER_APPOINTMENTS_TOPIC = "/user/{user_id}/topic/appointments"


def _timestamp() -> str:
    return now_in_app_timezone().isoformat()


def serialize_notification(notification: Notification) -> dict[str, Any]:
    """Return the websocket payload representation for ``notification``."""

    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "priority": notification.priority,
        "isRead": notification.is_read,
        "referenceType": notification.reference_type,
        "referenceId": notification.reference_id,
        "data": copy.deepcopy(notification.payload or {}),
        "createdAt": notification.created_at.isoformat()
        if notification.created_at
        else None,
        "readAt": notification.read_at.isoformat() if notification.read_at else None,
    }


class RealtimeNotificationService:
    """Publish JSON envelopes to per-user and broadcast destinations.

    Every method returns ``True`` when the broker accepted the message, even
    when nobody is subscribed, and ``False`` when publishing failed. Failures
    are logged, never raised.
    """

    def __init__(self, broker: SimpleBroker) -> None:
        self._broker = broker

    def notify_user(
        self, user_id: Any, title: str, message: str, notification_type: str
    ) -> bool:
        payload = {
            "event": "user_notification",
            "type": notification_type,
            "title": title,
            "message": message,
            "timestamp": _timestamp(),
        }
        return self._send_to_destination(
            USER_NOTIFICATIONS_TOPIC.format(user_id=user_id), payload
        )

    def broadcast(self, title: str, message: str, notification_type: str) -> bool:
        payload = {
            "event": "broadcast",
            "type": notification_type,
            "title": title,
            "message": message,
            "timestamp": _timestamp(),
        }
        return self._send_to_destination(BROADCAST_DESTINATION, payload)

    def notify_result_ready(self, patient_id: Any, result_data: Any) -> bool:
        payload = {
            "event": "TEST_RESULT_READY",
            "data": copy.deepcopy(result_data),
            "message": "Your test results are ready",
            "timestamp": _timestamp(),
        }
        return self._send_to_destination(
            USER_RESULTS_TOPIC.format(user_id=patient_id), payload
        )

    def notify_new_appointment(self, patient_id: Any, appointment_data: Any) -> bool:
        payload = {
            "event": "NEW_APPOINTMENT",
            "data": copy.deepcopy(appointment_data),
            "message": "New appointment scheduled",
            "timestamp": _timestamp(),
        }
        return self._send_to_destination(
            USER_APPOINTMENTS_TOPIC.format(user_id=patient_id), payload
        )

    def notify_appointment_status_changed(
        self, patient_id: Any, status: str, appointment_id: Any
    ) -> bool:
        payload = {
            "event": "APPOINTMENT_STATUS_CHANGE",
            "appointmentId": appointment_id,
            "status": status,
            "message": f"Appointment status changed to: {status}",
            "timestamp": _timestamp(),
        }
        return self._send_to_destination(
            USER_APPOINTMENTS_TOPIC.format(user_id=patient_id), payload
        )

    def send_custom_event(self, user_id: Any, event_type: str, data: Any) -> bool:
        payload = {
            "event": event_type,
            "data": copy.deepcopy(data),
            "timestamp": _timestamp(),
        }
        return self._send_to_destination(
            USER_NOTIFICATIONS_TOPIC.format(user_id=user_id), payload
        )

    def publish_inbox_notification(self, notification: Notification) -> bool:
        """Push a stored notification to the user's queue and topic."""

        payload = serialize_notification(notification)
        queued = self._send_to_destination(
            USER_NOTIFICATIONS_QUEUE.format(user_id=notification.user_id), payload
        )
        topical = self._send_to_destination(
            USER_NOTIFICATIONS_TOPIC.format(user_id=notification.user_id), payload
        )
        return queued and topical

    def _send_to_destination(self, destination: str, payload: dict[str, Any]) -> bool:
        try:
            delivered = self._broker.publish(destination, payload)
        except Exception:
            logger.exception("Failed to publish realtime message to %s", destination)
            return False
        logger.info(
            "Published %s to %s (%s subscribers)",
            payload.get("event", "notification"),
            destination,
            delivered,
        )
        return True


realtime_notifications = RealtimeNotificationService(message_broker)


__all__ = [
    "BROADCAST_DESTINATION",
    "RealtimeNotificationService",
    "USER_APPOINTMENTS_TOPIC",
    "USER_NOTIFICATIONS_QUEUE",
    "USER_NOTIFICATIONS_TOPIC",
    "USER_RESULTS_TOPIC",
    "realtime_notifications",
    "serialize_notification",
]
