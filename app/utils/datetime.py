"""Helpers for working with timezone-aware datetimes and wall-clock times."""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Final

from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.config import get_settings

_DEFAULT_TIMEZONE: Final[str] = "UTC"
_OFFSET_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?:UTC|GMT)(?P<sign>[+-])(?P<hours>\d{1,2})(?::?(?P<minutes>\d{2}))?$",
    re.IGNORECASE,
)
_WALL_CLOCK_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<hours>\d{1,2}):(?P<minutes>\d{2})(?::(?P<seconds>\d{2}))?$"
)


@lru_cache(maxsize=1)
def get_app_timezone() -> tzinfo:
    """Return the configured application timezone.

    Quiet hours are stored as local wall-clock times, so every evaluation is
    made in this zone. ``APP_TIMEZONE`` accepts IANA names (``Europe/Madrid``)
    or fixed offsets (``UTC+02:00``); anything unresolvable falls back to UTC.
    """

    settings = get_settings()
    tz_name = (settings.app_timezone or "").strip() or _DEFAULT_TIMEZONE
    return _resolve_timezone(tz_name)


def now_in_app_timezone() -> datetime:
    """Return the current time localized to the configured timezone."""

    return datetime.now(tz=get_app_timezone())


def now_in_app_naive_datetime() -> datetime:
    """Return the current localized time without attaching ``tzinfo``."""

    localized = ensure_app_naive_datetime(now_in_app_timezone())
    if localized is None:  # pragma: no cover - defensive guard
        msg = "Failed to compute the application naive datetime"
        raise RuntimeError(msg)
    return localized


def ensure_app_timezone(value: datetime | None) -> datetime | None:
    """Normalize ``value`` so it is expressed in the configured timezone."""

    if value is None:
        return None

    tz = get_app_timezone()
    if value.tzinfo is None:
        return value.replace(tzinfo=tz)
    return value.astimezone(tz)


def ensure_app_naive_datetime(value: datetime | None) -> datetime | None:
    """Return ``value`` localized to the app timezone but without ``tzinfo``."""

    localized = ensure_app_timezone(value)
    if localized is None:
        return None
    return localized.replace(tzinfo=None)


def wall_clock(value: datetime) -> time:
    """Return the local wall-clock time of ``value`` in the app timezone."""

    localized = ensure_app_timezone(value)
    if localized is None:
        raise ValueError("A datetime is required to read the wall clock")
    return localized.time().replace(tzinfo=None)


def parse_wall_clock(value: str) -> time:
    """Parse ``HH:MM`` or ``HH:MM:SS`` into a naive :class:`time`.

    Raises ``ValueError`` when ``value`` is not a valid clock reading.
    """

    match = _WALL_CLOCK_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f"Invalid wall-clock time: {value!r}")
    return time(
        hour=int(match.group("hours")),
        minute=int(match.group("minutes")),
        second=int(match.group("seconds") or 0),
    )


def _resolve_timezone(tz_name: str) -> tzinfo:
    """Resolve ``tz_name`` into a ``timezone`` instance."""

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        match = _OFFSET_PATTERN.match(tz_name)
        if match:
            sign = -1 if match.group("sign") == "-" else 1
            hours = int(match.group("hours"))
            minutes = int(match.group("minutes") or 0)
            offset = timedelta(hours=hours, minutes=minutes)
            return timezone(sign * offset)
    return timezone.utc
