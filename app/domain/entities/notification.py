"""Domain entity representing an inbox notification."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

NOTIFICATION_TYPE_APPOINTMENT = "appointment"
NOTIFICATION_TYPE_RESULT = "result"
NOTIFICATION_TYPE_SECURITY = "security"
NOTIFICATION_TYPE_MEDICATION = "medication"
NOTIFICATION_TYPE_SYSTEM = "system"
NOTIFICATION_TYPE_TEST = "test"

PRIORITY_LOW = "LOW"
PRIORITY_NORMAL = "NORMAL"
PRIORITY_HIGH = "HIGH"
PRIORITY_URGENT = "URGENT"


@dataclass
class Notification:
    """Information message kept in a user's notification inbox."""

    id: int | None
    user_id: int
    type: str
    title: str
    message: str
    priority: str = PRIORITY_NORMAL
    reference_type: str | None = None
    reference_id: int | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    is_read: bool = False
    created_at: datetime | None = None
    read_at: datetime | None = None

    def mark_as_read(self, when: datetime) -> None:
        if self.is_read:
            return
        self.is_read = True
        self.read_at = when


__all__ = [
    "Notification",
    "NOTIFICATION_TYPE_APPOINTMENT",
    "NOTIFICATION_TYPE_RESULT",
    "NOTIFICATION_TYPE_SECURITY",
    "NOTIFICATION_TYPE_MEDICATION",
    "NOTIFICATION_TYPE_SYSTEM",
    "NOTIFICATION_TYPE_TEST",
    "PRIORITY_LOW",
    "PRIORITY_NORMAL",
    "PRIORITY_HIGH",
    "PRIORITY_URGENT",
]
