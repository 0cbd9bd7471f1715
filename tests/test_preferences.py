"""Tests for the category switch and quiet-hours evaluation."""

from __future__ import annotations

import json
from datetime import time

import pytest

from app.application.use_cases.notifications import is_channel_enabled, should_deliver
from app.domain.entities import DEFAULT_NOTIFICATION_SETTINGS, User
from app.domain.entities.notification_preferences import (
    ScheduleSettings,
    parse_schedule_settings,
)
from app.utils import wall_clock
from conftest import at


def _user(notification_settings=None, schedule_settings=None) -> User:
    def _encode(value):
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value)

    return User(
        id=1,
        username="alice",
        email="alice@example.com",
        notification_settings=_encode(notification_settings),
        schedule_settings=_encode(schedule_settings),
    )


@pytest.mark.parametrize(
    ("category", "expected"), sorted(DEFAULT_NOTIFICATION_SETTINGS.items())
)
def test_categories_without_stored_entry_use_the_default(category, expected):
    user = _user(notification_settings={"promotions": True})
    if category == "promotions":
        expected = True

    assert is_channel_enabled(category, user) is expected


@pytest.mark.parametrize(("category", "expected"), sorted(DEFAULT_NOTIFICATION_SETTINGS.items()))
def test_absent_settings_use_the_default_table(category, expected):
    assert is_channel_enabled(category, _user()) is expected


def test_unknown_category_is_disabled():
    assert is_channel_enabled("carrierPigeon", _user()) is False


def test_stored_value_overrides_default():
    user = _user(notification_settings={"testResults": False, "healthTips": True})

    assert is_channel_enabled("testResults", user) is False
    assert is_channel_enabled("healthTips", user) is True


@pytest.mark.parametrize(
    "raw",
    ["{not json", "[1, 2, 3]", '{"testResults": "sometimes"}', '"plain string"'],
)
def test_malformed_notification_settings_fall_back_to_defaults(raw):
    user = _user(notification_settings=raw)

    assert is_channel_enabled("testResults", user) is True
    assert is_channel_enabled("healthTips", user) is False


def test_invalid_entry_does_not_discard_other_opt_outs():
    user = _user(notification_settings='{"testResults": false, "healthTips": null}')

    assert is_channel_enabled("testResults", user) is False
    assert is_channel_enabled("healthTips", user) is False


def test_invalid_entry_keeps_its_default():
    user = _user(notification_settings='{"promotions": true, "loginAlerts": [1]}')

    assert is_channel_enabled("promotions", user) is True
    assert is_channel_enabled("loginAlerts", user) is True


@pytest.mark.parametrize("hour", [0, 2, 7, 12, 21, 22, 23])
def test_quiet_hours_disabled_always_delivers(hour):
    user = _user(schedule_settings={"quietHoursEnabled": False})

    assert should_deliver("healthTips", user, at(hour)) is True


@pytest.mark.parametrize(
    ("hour", "minute", "expected"),
    [
        (23, 0, False),
        (3, 0, False),
        (12, 0, True),
        (22, 0, True),
        (22, 1, False),
        (6, 59, False),
        (7, 0, True),
    ],
)
def test_wrapping_window_is_evaluated_strictly(hour, minute, expected):
    user = _user(
        schedule_settings={
            "quietHoursEnabled": True,
            "quietStart": "22:00",
            "quietEnd": "07:00",
            "emergencyOverride": False,
        }
    )

    assert should_deliver("healthTips", user, at(hour, minute)) is expected


@pytest.mark.parametrize(("hour", "expected"), [(12, True), (14, False), (16, True)])
def test_same_day_window(hour, expected):
    user = _user(
        schedule_settings={"quietStart": "13:00", "quietEnd": "15:00"}
    )

    assert should_deliver("promotions", user, at(hour)) is expected


def test_absent_schedule_uses_default_quiet_hours():
    user = _user()

    assert should_deliver("healthTips", user, at(23)) is False
    assert should_deliver("healthTips", user, at(12)) is True


def test_critical_category_bypasses_quiet_hours_with_override():
    user = _user(schedule_settings={"emergencyOverride": True})

    assert should_deliver("testResults", user, at(3)) is True


def test_critical_category_is_held_without_override():
    user = _user(schedule_settings={"emergencyOverride": False})

    assert should_deliver("testResults", user, at(3)) is False


@pytest.mark.parametrize(
    "raw",
    [
        "{broken",
        '{"quietStart": "late evening"}',
        '{"quietHoursEnabled": "perhaps"}',
        "[]",
    ],
)
def test_malformed_schedule_fails_open(raw):
    user = _user(schedule_settings=raw)

    assert should_deliver("promotions", user, at(3)) is True


def test_schedule_round_trips_camel_case_aliases():
    schedule = parse_schedule_settings(
        '{"quietStart": "21:30", "quietEnd": "06:15", "unknownKey": 1}'
    )

    assert schedule.quiet_start == "21:30"
    assert schedule.to_storage() == {
        "quietHoursEnabled": True,
        "quietStart": "21:30",
        "quietEnd": "06:15",
        "weekendQuietHours": True,
        "emergencyOverride": True,
    }


def test_invalid_clock_is_rejected_by_the_model():
    with pytest.raises(ValueError):
        ScheduleSettings(quiet_start="25:99")


def test_wall_clock_reads_app_local_time():
    assert wall_clock(at(23, 30)) == time(23, 30)
    with pytest.raises(ValueError):
        wall_clock(None)
