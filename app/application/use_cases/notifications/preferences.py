"""Decide whether a notification category may reach a user right now."""

from __future__ import annotations

import logging
from datetime import datetime

from app.domain.entities import User
from app.domain.entities.notification_preferences import (
    DEFAULT_NOTIFICATION_SETTINGS,
    is_critical_category,
    parse_notification_settings,
    parse_schedule_settings,
)
from app.utils import now_in_app_timezone, wall_clock

logger = logging.getLogger(__name__)


def is_channel_enabled(category: str, user: User) -> bool:
    """Return whether ``user`` wants notifications of ``category``.

    Unknown categories are disabled. A stored map that cannot be decoded falls
    back to the default table.
    """

    try:
        settings = parse_notification_settings(user.notification_settings)
    except ValueError:
        logger.warning(
            "Invalid notification settings for user %s; using defaults", user.username
        )
        return DEFAULT_NOTIFICATION_SETTINGS.get(category, False)
    return settings.get(category, False)


def should_deliver(category: str, user: User, now: datetime | None = None) -> bool:
    """Return ``False`` only when ``now`` falls inside the user's quiet hours.

    Critical categories pass when emergency override is on. Settings that
    cannot be parsed never block delivery.
    """

    try:
        schedule = parse_schedule_settings(user.schedule_settings)
    except ValueError:
        logger.warning(
            "Invalid schedule settings for user %s; allowing delivery", user.username
        )
        return True

    if not schedule.quiet_hours_enabled:
        return True

    if schedule.emergency_override and is_critical_category(category):
        return True

    current = wall_clock(now or now_in_app_timezone())
    if schedule.is_quiet_at(current):
        logger.info(
            "Quiet hours active for user %s; holding back %s", user.username, category
        )
        return False
    return True


__all__ = ["is_channel_enabled", "should_deliver"]
