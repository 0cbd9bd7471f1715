"""Tests for the notification dispatcher and its gating rules."""

from __future__ import annotations

import json

import pytest

from app.application.use_cases.notifications import (
    NotificationDispatcher,
    create_and_send_result_notification,
    send_result_notification,
    send_security_alert,
)
from app.domain.entities import (
    DeliveryChannel,
    DeliveryRecordStatus,
    DeliveryStatus,
    User,
)
from app.infrastructure import database
from app.infrastructure.models import DeliveryRecordModel
from app.infrastructure.repositories import (
    DeliveryRecordRepository,
    NotificationRepository,
    UserRepository,
)
from conftest import at


class FakePush:
    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.calls: list[tuple] = []
        self._result = result
        self._error = error

    def send(self, device_token, title, body, data=None):
        self.calls.append((device_token, title, body, data))
        if self._error is not None:
            raise self._error
        return self._result


class FakeMail:
    def __init__(self, result: bool = True, error: Exception | None = None) -> None:
        self.calls: list[tuple] = []
        self._result = result
        self._error = error

    def __call__(self, recipient, subject, body):
        self.calls.append((recipient, subject, body))
        if self._error is not None:
            raise self._error
        return self._result


class FakeRealtime:
    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def notify_user(self, user_id, title, message, notification_type):
        self.calls.append((user_id, title, message, notification_type))
        return True


class BrokenRecorder:
    def record(self, record):
        raise RuntimeError("database unavailable")


def _user(**overrides) -> User:
    values = {
        "id": 7,
        "username": "bob",
        "email": "bob@example.com",
        "device_token": "ExponentPushToken[abc]",
        "device_platform": "ios",
    }
    values.update(overrides)
    return User(**values)


def _dispatcher(push=None, mail=None, realtime=None, recorder=None, hour=12):
    return NotificationDispatcher(
        push_client=push,
        mail_sender=mail,
        realtime=realtime,
        recorder=recorder,
        clock=lambda: at(hour),
    )


def test_disabled_category_never_invokes_adapters():
    push, mail = FakePush(), FakeMail()
    user = _user(notification_settings=json.dumps({"testResults": False}))

    outcome = _dispatcher(push, mail).notify(
        user, "Results", "Ready", "testResults", email_subject="Results"
    )

    assert outcome.status is DeliveryStatus.SKIPPED_DISABLED
    assert push.calls == []
    assert mail.calls == []


def test_quiet_hours_hold_back_non_critical_notifications():
    push = FakePush()
    user = _user(notification_settings=json.dumps({"healthTips": True}))

    outcome = _dispatcher(push, hour=2).notify(user, "Tip", "Drink water", "healthTips")

    assert outcome.status is DeliveryStatus.SKIPPED_QUIET_HOURS
    assert outcome.skipped is True
    assert push.calls == []


def test_successful_push_is_recorded():
    push = FakePush()

    outcome = _dispatcher(push).notify(
        _user(), "Reminder", "Tomorrow", "appointmentReminders", push_type="appointment"
    )

    assert outcome.delivered is True
    assert outcome.channel_status(DeliveryChannel.PUSH) is DeliveryRecordStatus.SENT
    assert push.calls == [
        ("ExponentPushToken[abc]", "Reminder", "Tomorrow", {"type": "appointment"})
    ]


def test_throwing_adapters_produce_failed_outcome():
    push = FakePush(error=RuntimeError("gateway exploded"))
    mail = FakeMail(error=TimeoutError("smtp timeout"))

    outcome = _dispatcher(push, mail).notify(
        _user(), "Reply", "Agent replied", "supportNotifications", email_subject="Reply"
    )

    assert outcome.status is DeliveryStatus.FAILED
    assert outcome.channel_status(DeliveryChannel.PUSH) is DeliveryRecordStatus.ERROR
    assert outcome.channel_status(DeliveryChannel.EMAIL) is DeliveryRecordStatus.ERROR
    assert "gateway exploded" in outcome.records[0].detail


def test_adapter_reporting_failure_is_not_an_error():
    outcome = _dispatcher(FakePush(result=False)).notify(
        _user(), "Reminder", "Soon", "appointmentReminders"
    )

    assert outcome.status is DeliveryStatus.FAILED
    assert outcome.channel_status(DeliveryChannel.PUSH) is DeliveryRecordStatus.FAILED


def test_user_without_device_skips_push(caplog):
    push = FakePush()

    with caplog.at_level("INFO"):
        outcome = _dispatcher(push).notify(
            _user(device_token=None), "Reminder", "Soon", "appointmentReminders"
        )

    assert push.calls == []
    assert outcome.status is DeliveryStatus.FAILED
    assert outcome.records == []
    assert "No device token registered for user bob" in caplog.text


def test_missing_push_client_is_not_reported_as_missing_device(caplog):
    with caplog.at_level("INFO"):
        outcome = _dispatcher().notify(_user(), "Reminder", "Soon", "appointmentReminders")

    assert outcome.records == []
    assert "No push client configured" in caplog.text
    assert "No device token registered" not in caplog.text


def test_realtime_channel_is_used_for_in_app_delivery():
    realtime = FakeRealtime()

    outcome = _dispatcher(realtime=realtime).notify(
        _user(device_token=None), "Reminder", "Soon", "appointmentReminders"
    )

    assert outcome.delivered is True
    assert realtime.calls == [(7, "Reminder", "Soon", "appointmentReminders")]


def test_bypass_ignores_disabled_switch_and_quiet_hours():
    push = FakePush()
    user = _user(
        notification_settings=json.dumps({"loginAlerts": False}),
        schedule_settings=json.dumps({"emergencyOverride": False}),
    )

    outcome = _dispatcher(push, hour=3).notify(
        user, "Security Alert", "New login", "loginAlerts", bypass_preferences=True
    )

    assert outcome.delivered is True
    assert len(push.calls) == 1


def test_recorder_failure_does_not_break_delivery(caplog):
    with caplog.at_level("ERROR"):
        outcome = _dispatcher(FakePush(), recorder=BrokenRecorder()).notify(
            _user(), "Reminder", "Soon", "appointmentReminders"
        )

    assert outcome.delivered is True
    assert "Could not store push delivery record" in caplog.text


def test_records_are_persisted(db_session, make_user):
    user = make_user(device_token="ExponentPushToken[xyz]", device_platform="android")
    repository = DeliveryRecordRepository(db_session)

    _dispatcher(FakePush(error=ValueError("bad payload")), recorder=repository).notify(
        user, "Reminder", "Soon", "appointmentReminders"
    )

    [record] = repository.list_for_user(user.id)
    assert record.channel is DeliveryChannel.PUSH
    assert record.status is DeliveryRecordStatus.ERROR
    assert record.category == "appointmentReminders"


def test_disabled_results_skip_push_but_upload_still_succeeds(db_session, make_user):
    push = FakePush()
    patient = make_user(
        device_token="ExponentPushToken[res]",
        notification_settings=json.dumps({"testResults": False}),
    )

    def upload_result() -> bool:
        stored = create_and_send_result_notification(
            db_session,
            patient_id=patient.id,
            result_id=42,
            test_name="Blood Panel",
            status="COMPLETED",
        )
        pushed = send_result_notification(
            db_session,
            username=patient.username,
            result_id=42,
            test_name="Blood Panel",
            dispatcher=_dispatcher(push),
        )
        assert pushed.success is False
        assert pushed.message == "Test result notifications are disabled"
        return stored.success

    assert upload_result() is True
    assert push.calls == []
    assert len(NotificationRepository(db_session).list_for_user(patient.id)) == 1


def test_login_alert_bypasses_quiet_hours_but_health_tip_does_not(db_session, make_user):
    push = FakePush()
    patient = make_user(
        device_token="ExponentPushToken[night]",
        notification_settings=json.dumps({"healthTips": True}),
        schedule_settings=json.dumps(
            {
                "quietHoursEnabled": True,
                "quietStart": "22:00",
                "quietEnd": "07:00",
                "emergencyOverride": True,
            }
        ),
    )
    dispatcher = _dispatcher(push, hour=2)

    alert = send_security_alert(
        db_session,
        username=patient.username,
        alert_type="login",
        message="New login from Chrome on Windows",
        dispatcher=dispatcher,
    )
    tip = dispatcher.notify(patient, "Health Tip", "Stretch daily", "healthTips")

    assert alert.success is True
    assert tip.status is DeliveryStatus.SKIPPED_QUIET_HOURS
    assert [call[1] for call in push.calls] == ["Security Alert"]


def test_non_critical_security_alert_respects_quiet_hours(db_session, make_user):
    push = FakePush()
    patient = make_user(device_token="ExponentPushToken[night]")

    result = send_security_alert(
        db_session,
        username=patient.username,
        alert_type="new_device",
        message="A new device was added",
        dispatcher=_dispatcher(push, hour=23),
    )

    assert result.success is False
    assert result.message == "Security alert blocked by quiet hours"
    assert push.calls == []


@pytest.mark.parametrize("alert_type", ["login", "password_change", "account_locked"])
def test_critical_security_alerts_ignore_disabled_preferences(
    db_session, make_user, alert_type
):
    push = FakePush()
    patient = make_user(
        device_token="ExponentPushToken[sec]",
        notification_settings=json.dumps({"securityUpdates": False, "loginAlerts": False}),
        schedule_settings=json.dumps({"emergencyOverride": False}),
    )

    result = send_security_alert(
        db_session,
        username=patient.username,
        alert_type=alert_type,
        message="Check your account",
        dispatcher=_dispatcher(push, hour=3),
    )

    assert result.success is True
    assert result.data["critical"] is True
    assert len(push.calls) == 1


def test_failed_record_write_leaves_session_usable(db_session, make_user, caplog):
    user = make_user(device_token="ExponentPushToken[rb]")
    db_session.commit()
    DeliveryRecordModel.__table__.drop(bind=database.engine)

    with caplog.at_level("ERROR"):
        outcome = _dispatcher(
            FakePush(), recorder=DeliveryRecordRepository(db_session)
        ).notify(user, "Results", "Ready", "testResults")

    assert outcome.status is DeliveryStatus.SENT
    assert "Could not store push delivery record" in caplog.text
    assert UserRepository(db_session).get(user.id).username == user.username
