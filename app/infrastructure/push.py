"""Client for the Expo push notification gateway."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from app.config import get_settings
from app.utils import now_in_app_timezone

logger = logging.getLogger(__name__)

_SCREEN_BY_TYPE: dict[str, str] = {
    "appointment": "appointments",
    "result": "test-results",
    "testResults": "test-results",
    "medicationAlerts": "medications",
    "security": "security",
    "support_reply": "support",
}


def screen_for_notification_type(notification_type: str) -> str:
    """Return the mobile screen a notification of ``notification_type`` opens."""

    return _SCREEN_BY_TYPE.get(notification_type, "home")


def build_push_payload(
    device_token: str, title: str, body: str, notification_type: str
) -> dict[str, Any]:
    return {
        "to": device_token,
        "notification": {
            "title": title,
            "body": body,
            "sound": "default",
            "badge": 1,
        },
        "data": {
            "type": notification_type,
            "timestamp": now_in_app_timezone().isoformat(),
            "screen": screen_for_notification_type(notification_type),
        },
        "priority": "high",
    }


class ExpoPushClient:
    """Send push notifications with a bounded request timeout."""

    def __init__(
        self,
        *,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._url = url or settings.push_gateway_url
        self._timeout = timeout if timeout is not None else settings.push_timeout_seconds
        self._transport = transport

    def send(
        self,
        device_token: str,
        title: str,
        body: str,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """POST one notification; return ``True`` when the gateway answers 200."""

        notification_type = str((data or {}).get("type") or "general")
        payload = build_push_payload(device_token, title, body, notification_type)
        headers = {"Accept": "application/json"}

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._url, json=payload, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Push gateway request failed: %s", exc)
            return False

        if response.status_code != httpx.codes.OK:
            logger.warning(
                "Push gateway returned status %s: %s",
                response.status_code,
                response.text[:200],
            )
            return False

        logger.debug("Push gateway response: %s", response.text[:200])
        return True


__all__ = [
    "ExpoPushClient",
    "build_push_payload",
    "screen_for_notification_type",
]
