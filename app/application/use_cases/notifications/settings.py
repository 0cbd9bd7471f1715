"""Use cases for reading and changing a user's notification preferences."""

from __future__ import annotations

import logging
from typing import Any, Mapping

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from app.domain.entities import SUPPORTED_DEVICE_PLATFORMS, OperationResult, User
from app.domain.entities.notification_preferences import (
    ScheduleSettings,
    default_notification_settings,
    default_schedule_settings,
    parse_notification_settings,
    parse_schedule_settings,
    serialize_notification_settings,
    serialize_schedule_settings,
)
from app.infrastructure.repositories import UserRepository

from .preferences import is_channel_enabled

logger = logging.getLogger(__name__)

_CATEGORY_UPDATE_ADAPTER = TypeAdapter(dict[str, bool])


def _settings_payload(
    notification_settings: Mapping[str, bool], schedule_settings: ScheduleSettings
) -> dict[str, Any]:
    return {
        "notificationSettings": dict(notification_settings),
        "scheduleSettings": schedule_settings.to_storage(),
    }


def _load_settings(user: User) -> tuple[dict[str, bool], ScheduleSettings]:
    try:
        notification_settings = parse_notification_settings(user.notification_settings)
    except ValueError:
        logger.warning(
            "Discarding unreadable notification settings for user %s", user.username
        )
        notification_settings = default_notification_settings()
    try:
        schedule_settings = parse_schedule_settings(user.schedule_settings)
    except ValueError:
        logger.warning(
            "Discarding unreadable schedule settings for user %s", user.username
        )
        schedule_settings = default_schedule_settings()
    return notification_settings, schedule_settings


def get_notification_settings(session: Session, *, username: str) -> OperationResult:
    """Return both preference maps, persisting the defaults on first access."""

    repository = UserRepository(session)
    user = repository.get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    notification_settings, schedule_settings = _load_settings(user)
    if not user.notification_settings or not user.schedule_settings:
        user.notification_settings = user.notification_settings or (
            serialize_notification_settings(notification_settings)
        )
        user.schedule_settings = user.schedule_settings or (
            serialize_schedule_settings(schedule_settings)
        )
        repository.save(user)
        logger.info("Initialized default notification settings for %s", username)

    return OperationResult.ok(
        "Notification settings retrieved",
        **_settings_payload(notification_settings, schedule_settings),
    )


def update_notification_settings(
    session: Session,
    *,
    username: str,
    notification_settings: Mapping[str, Any] | None = None,
    schedule_settings: Mapping[str, Any] | None = None,
) -> OperationResult:
    """Merge the supplied values into the stored preferences.

    Concurrent updates for the same user are last-write-wins.
    """

    repository = UserRepository(session)
    user = repository.get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    current_notifications, current_schedule = _load_settings(user)

    try:
        if notification_settings is not None:
            current_notifications.update(
                _CATEGORY_UPDATE_ADAPTER.validate_python(dict(notification_settings))
            )
        if schedule_settings is not None:
            current_schedule = ScheduleSettings.model_validate(
                {**current_schedule.to_storage(), **dict(schedule_settings)}
            )
    except ValidationError as exc:
        logger.info("Rejected notification settings update for %s: %s", username, exc)
        return OperationResult.fail("Invalid notification settings", errors=exc.errors())

    user.notification_settings = serialize_notification_settings(current_notifications)
    user.schedule_settings = serialize_schedule_settings(current_schedule)
    repository.save(user)
    logger.info("Updated notification settings for %s", username)

    return OperationResult.ok(
        "Notification settings updated successfully",
        **_settings_payload(current_notifications, current_schedule),
    )


def reset_notification_settings(session: Session, *, username: str) -> OperationResult:
    repository = UserRepository(session)
    user = repository.get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    notification_settings = default_notification_settings()
    schedule_settings = default_schedule_settings()
    user.notification_settings = serialize_notification_settings(notification_settings)
    user.schedule_settings = serialize_schedule_settings(schedule_settings)
    repository.save(user)
    logger.info("Reset notification settings for %s", username)

    return OperationResult.ok(
        "Settings reset to defaults successfully",
        **_settings_payload(notification_settings, schedule_settings),
    )


def get_preferences_summary(session: Session, *, username: str) -> OperationResult:
    result = get_notification_settings(session, username=username)
    if not result.success:
        return result

    notification_settings: dict[str, bool] = result.data["notificationSettings"]
    schedule_settings: dict[str, Any] = result.data["scheduleSettings"]
    enabled = sum(1 for value in notification_settings.values() if value)

    return OperationResult.ok(
        "Preferences summary retrieved",
        summary={
            "totalNotifications": len(notification_settings),
            "enabledNotifications": enabled,
            "disabledNotifications": len(notification_settings) - enabled,
            "quietHoursEnabled": schedule_settings["quietHoursEnabled"],
            "emergencyOverride": schedule_settings["emergencyOverride"],
        },
    )


def check_notification_enabled(
    session: Session, *, username: str, category: str
) -> OperationResult:
    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")
    return OperationResult.ok(
        "Notification status retrieved",
        category=category,
        enabled=is_channel_enabled(category, user),
    )


def update_device_token(
    session: Session, *, username: str, device_token: str, platform: str
) -> OperationResult:
    """Register the push device of ``username``; the last registration wins."""

    normalized_platform = (platform or "").strip().lower()
    if normalized_platform not in SUPPORTED_DEVICE_PLATFORMS:
        return OperationResult.fail(f"Unsupported device platform: {platform}")
    if not device_token or not device_token.strip():
        return OperationResult.fail("Device token is required")

    repository = UserRepository(session)
    user = repository.get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    user.register_device(device_token.strip(), normalized_platform)
    repository.save(user)
    logger.info(
        "Registered %s device for %s (%s...)",
        normalized_platform,
        username,
        device_token[:20],
    )
    return OperationResult.ok(
        "Device token registered successfully", platform=normalized_platform
    )


__all__ = [
    "check_notification_enabled",
    "get_notification_settings",
    "get_preferences_summary",
    "reset_notification_settings",
    "update_device_token",
    "update_notification_settings",
]
