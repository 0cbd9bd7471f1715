"""Typed notification preferences stored on the user record.

Both preference blobs are persisted as JSON text. They are deserialized here in
a single step: missing blobs yield the defaults, while malformed blobs raise
``ValueError`` so that each caller can pick its own fallback.
"""

from __future__ import annotations

import json
from datetime import time
from types import MappingProxyType
from typing import Any, Final, Mapping

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from app.utils.datetime import parse_wall_clock

DEFAULT_NOTIFICATION_SETTINGS: Final[Mapping[str, bool]] = MappingProxyType(
    {
        # Medical & health
        "testResults": True,
        "appointmentReminders": True,
        "medicationAlerts": True,
        "healthTips": False,
        "supportNotifications": True,
        # Security & account
        "loginAlerts": True,
        "securityUpdates": True,
        "accountChanges": True,
        # App updates
        "appUpdates": True,
        "featureAnnouncements": False,
        "maintenanceNotices": True,
        # Marketing
        "promotions": False,
        "newsletters": False,
        "surveys": False,
    }
)

CRITICAL_CATEGORIES: Final[frozenset[str]] = frozenset(
    {
        "testResults",
        "appointmentReminders",
        "medicationAlerts",
        "loginAlerts",
        "securityUpdates",
        "accountChanges",
        "maintenanceNotices",
        "support",
        "support_reply",
        "supportNotifications",
    }
)

_CATEGORY_SWITCH_ADAPTER: Final = TypeAdapter(bool)


def is_critical_category(category: str) -> bool:
    """Return ``True`` when ``category`` may bypass quiet hours."""

    return category in CRITICAL_CATEGORIES


class ScheduleSettings(BaseModel):
    """Quiet-hours configuration expressed in local wall-clock time."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    quiet_hours_enabled: bool = Field(default=True, alias="quietHoursEnabled")
    quiet_start: str = Field(default="22:00", alias="quietStart")
    quiet_end: str = Field(default="07:00", alias="quietEnd")
    weekend_quiet_hours: bool = Field(default=True, alias="weekendQuietHours")
    emergency_override: bool = Field(default=True, alias="emergencyOverride")

    @field_validator("quiet_start", "quiet_end")
    @classmethod
    def _validate_clock(cls, value: str) -> str:
        parse_wall_clock(value)
        return value.strip()

    @property
    def start(self) -> time:
        return parse_wall_clock(self.quiet_start)

    @property
    def end(self) -> time:
        return parse_wall_clock(self.quiet_end)

    def is_quiet_at(self, now: time) -> bool:
        """Return ``True`` when ``now`` falls strictly inside the quiet window.

        A window whose start is later than its end wraps past midnight.
        """

        start, end = self.start, self.end
        if start > end:
            return now > start or now < end
        return start < now < end

    def to_storage(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


def default_notification_settings() -> dict[str, bool]:
    """Return a mutable copy of the default category table."""

    return dict(DEFAULT_NOTIFICATION_SETTINGS)


def default_schedule_settings() -> ScheduleSettings:
    return ScheduleSettings()


def parse_notification_settings(raw: str | None) -> dict[str, bool]:
    """Return the stored category map merged over the default table.

    Entries whose value is not a boolean keep their default. Raises
    ``ValueError`` when ``raw`` is not a JSON object.
    """

    settings = default_notification_settings()
    if not raw or not raw.strip():
        return settings
    stored = json.loads(raw)
    if not isinstance(stored, dict):
        raise ValueError("Notification settings must be a JSON object")
    for category, value in stored.items():
        try:
            settings[category] = _CATEGORY_SWITCH_ADAPTER.validate_python(value)
        except ValidationError:
            continue
    return settings


def parse_schedule_settings(raw: str | None) -> ScheduleSettings:
    """Return the stored quiet-hours configuration merged over the defaults.

    Raises ``ValueError`` when ``raw`` cannot be decoded or validated.
    """

    if not raw or not raw.strip():
        return default_schedule_settings()
    stored = json.loads(raw)
    if not isinstance(stored, dict):
        raise ValueError("Schedule settings must be a JSON object")
    merged = {**default_schedule_settings().to_storage(), **stored}
    return ScheduleSettings.model_validate(merged)


def serialize_notification_settings(settings: Mapping[str, bool]) -> str:
    return json.dumps(dict(settings), sort_keys=True)


def serialize_schedule_settings(settings: ScheduleSettings) -> str:
    return json.dumps(settings.to_storage(), sort_keys=True)


__all__ = [
    "CRITICAL_CATEGORIES",
    "DEFAULT_NOTIFICATION_SETTINGS",
    "ScheduleSettings",
    "default_notification_settings",
    "default_schedule_settings",
    "is_critical_category",
    "parse_notification_settings",
    "parse_schedule_settings",
    "serialize_notification_settings",
    "serialize_schedule_settings",
]
