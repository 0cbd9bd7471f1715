"""Domain-specific notifications composed on top of the dispatcher.

Every helper returns an :class:`OperationResult` and never raises: they run as
side effects of other business operations, which must not fail because a
notification could not be delivered.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from app.config import get_settings
from app.domain.entities import (
    NOTIFICATION_TYPE_RESULT,
    PRIORITY_HIGH,
    DeliveryOutcome,
    DeliveryStatus,
    Notification,
    OperationResult,
    SupportTicket,
    User,
)
from app.infrastructure.email import (
    agent_reply_email_body,
    send_login_alert_email,
    send_password_change_email,
    send_support_ticket_alert_email,
    send_suspicious_activity_email,
)
from app.infrastructure.notifications import (
    RealtimeNotificationService,
    realtime_notifications,
)
from app.infrastructure.repositories import NotificationRepository, UserRepository
from app.utils import now_in_app_timezone

from .dispatcher import NotificationDispatcher, get_notification_dispatcher
from .preferences import is_channel_enabled

logger = logging.getLogger(__name__)

_F = TypeVar("_F", bound=Callable[..., OperationResult])

CRITICAL_SECURITY_ALERTS = frozenset({"login", "password_change", "account_locked"})

_REMINDER_MESSAGES = {
    "24h": "You have an appointment tomorrow. Don't forget to prepare any required documents.",
    "1h": "Your appointment is in 1 hour. Please arrive 15 minutes early.",
    "15m": "Your appointment is in 15 minutes. Please check in when you arrive.",
}
_DEFAULT_REMINDER_MESSAGE = "You have an upcoming appointment."

_EMAIL_TIMESTAMP_FORMAT = "%B %d, %Y at %I:%M %p"


def _session_argument(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Session | None:
    candidate = kwargs.get("session", args[0] if args else None)
    return candidate if isinstance(candidate, Session) else None


def _reported(failure_message: str) -> Callable[[_F], _F]:
    """Turn unexpected exceptions into a logged ``OperationResult`` failure.

    A session passed to the wrapped function is rolled back so the caller can
    keep using it.
    """

    def decorator(func: _F) -> _F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> OperationResult:
            try:
                return func(*args, **kwargs)
            except Exception as exc:
                logger.exception(failure_message)
                session = _session_argument(args, kwargs)
                if session is not None:
                    session.rollback()
                return OperationResult.fail(f"{failure_message}: {exc}")

        return wrapper  # type: ignore[return-value]

    return decorator


def reminder_message(reminder_type: str) -> str:
    return _REMINDER_MESSAGES.get(reminder_type, _DEFAULT_REMINDER_MESSAGE)


def _outcome_result(
    outcome: DeliveryOutcome,
    *,
    sent: str,
    failed: str,
    disabled: str | None = None,
    quiet: str | None = None,
    **data: Any,
) -> OperationResult:
    data = {"delivery_status": outcome.status.value, **data}
    if outcome.status is DeliveryStatus.SENT:
        return OperationResult.ok(sent, **data)
    if outcome.status is DeliveryStatus.SKIPPED_DISABLED:
        return OperationResult.fail(disabled or outcome.message, **data)
    if outcome.status is DeliveryStatus.SKIPPED_QUIET_HOURS:
        return OperationResult.fail(quiet or outcome.message, **data)
    return OperationResult.fail(failed, **data)


def _dispatcher_for(
    session: Session, dispatcher: NotificationDispatcher | None
) -> NotificationDispatcher:
    return dispatcher if dispatcher is not None else get_notification_dispatcher(session)


@_reported("Error sending appointment reminder")
def send_appointment_reminder(
    session: Session,
    *,
    username: str,
    appointment_id: int,
    reminder_type: str,
    dispatcher: NotificationDispatcher | None = None,
) -> OperationResult:
    """Remind a patient about an upcoming appointment."""

    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    outcome = _dispatcher_for(session, dispatcher).notify(
        user,
        "Appointment Reminder",
        reminder_message(reminder_type),
        "appointmentReminders",
        push_type="appointment",
    )
    return _outcome_result(
        outcome,
        sent="Appointment reminder sent",
        failed="Failed to send reminder",
        disabled="Appointment reminders are disabled",
        quiet="Appointment reminder blocked by quiet hours",
        appointment_id=appointment_id,
    )


@_reported("Error sending result notification")
def send_result_notification(
    session: Session,
    *,
    username: str,
    result_id: int,
    test_name: str,
    dispatcher: NotificationDispatcher | None = None,
) -> OperationResult:
    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    outcome = _dispatcher_for(session, dispatcher).notify(
        user,
        "Test Results Available",
        f"Your {test_name} results are now available in the app.",
        "testResults",
        push_type="result",
    )
    return _outcome_result(
        outcome,
        sent="Result notification sent",
        failed="Failed to send notification",
        disabled="Test result notifications are disabled",
        quiet="Result notification blocked by quiet hours",
        result_id=result_id,
    )


@_reported("Error sending security alert")
def send_security_alert(
    session: Session,
    *,
    username: str,
    alert_type: str,
    message: str,
    dispatcher: NotificationDispatcher | None = None,
) -> OperationResult:
    """Send a security alert.

    Login, password-change and account-locked alerts ignore every user
    preference. Other alerts only respect quiet hours.
    """

    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    critical = alert_type in CRITICAL_SECURITY_ALERTS
    outcome = _dispatcher_for(session, dispatcher).notify(
        user,
        "Security Alert",
        message,
        "security",
        push_type="security",
        check_enabled=False,
        bypass_preferences=critical,
    )
    return _outcome_result(
        outcome,
        sent="Security alert sent",
        failed="Failed to send alert",
        quiet="Security alert blocked by quiet hours",
        alert_type=alert_type,
        critical=critical,
    )


@_reported("Error sending test notification")
def send_test_notification(
    session: Session,
    *,
    username: str,
    dispatcher: NotificationDispatcher | None = None,
) -> OperationResult:
    user = UserRepository(session).get_by_username(username)
    if user is None:
        return OperationResult.fail("User not found")

    outcome = _dispatcher_for(session, dispatcher).notify(
        user,
        "Test Notification",
        "This is a test notification from Qualitest Medical",
        "test",
        check_enabled=False,
    )
    return _outcome_result(
        outcome,
        sent="Test notification sent successfully",
        failed="Failed to send test notification",
        quiet="Test notification blocked by quiet hours settings",
    )


@_reported("Error notifying user of agent reply")
def notify_user_of_agent_reply(
    session: Session,
    *,
    user: User,
    reply: str,
    agent_name: str,
    dispatcher: NotificationDispatcher | None = None,
) -> OperationResult:
    """Tell ``user`` that a support agent answered, by push and by email."""

    title = "Medical Support Reply"
    outcome = _dispatcher_for(session, dispatcher).notify(
        user,
        title,
        f"{agent_name} from our medical support team has replied to your message",
        "supportNotifications",
        push_type="support_reply",
        email_subject=title,
        email_body=agent_reply_email_body(
            first_name=user.display_name, agent_name=agent_name, reply=reply
        ),
    )
    return _outcome_result(
        outcome,
        sent="Agent reply notification sent",
        failed="Failed to notify user of agent reply",
        disabled="Support notifications are disabled",
        quiet="Support reply blocked by quiet hours",
    )


@_reported("Error notifying support team about new ticket")
def notify_new_support_ticket(ticket: SupportTicket) -> OperationResult:
    """Alert the support distribution list that a ticket was opened."""

    logger.info(
        "New support ticket %s from %s (%s)", ticket.ticket_number, ticket.name, ticket.email
    )
    recipient = get_settings().support_team_email
    if not recipient:
        logger.warning(
            "Support team email is not configured; ticket %s alert not sent",
            ticket.ticket_number,
        )
        return OperationResult.fail("Support team email is not configured")

    if send_support_ticket_alert_email(recipient, ticket):
        return OperationResult.ok(
            "Support team notified", ticket_number=ticket.ticket_number
        )
    return OperationResult.fail(
        "Failed to notify support team", ticket_number=ticket.ticket_number
    )


@_reported("Error sending password change notification")
def send_password_change_notification(email: str) -> OperationResult:
    """Confirm a password change; this notice ignores every preference."""

    changed_at = now_in_app_timezone().strftime(_EMAIL_TIMESTAMP_FORMAT)
    if send_password_change_email(email, changed_at):
        return OperationResult.ok("Password change notification sent")
    return OperationResult.fail("Failed to send password change notification")


@_reported("Error sending login notification")
def send_login_notification(
    session: Session,
    *,
    email: str,
    device_info: str,
    ip_address: str,
    location: str,
) -> OperationResult:
    user = UserRepository(session).get_by_email(email)
    if user is not None and not is_channel_enabled("loginAlerts", user):
        logger.info("Login notifications disabled for %s", email)
        return OperationResult.fail("Login notifications are disabled")

    sent = send_login_alert_email(
        email,
        timestamp=now_in_app_timezone().strftime(_EMAIL_TIMESTAMP_FORMAT),
        device_info=device_info,
        ip_address=ip_address,
        location=location,
    )
    if sent:
        return OperationResult.ok("Login notification sent")
    return OperationResult.fail("Failed to send login notification")


@_reported("Error sending suspicious activity alert")
def send_suspicious_activity_alert(
    session: Session,
    *,
    email: str,
    activity_type: str,
    details: str,
) -> OperationResult:
    user = UserRepository(session).get_by_email(email)
    if user is not None and not is_channel_enabled("securityUpdates", user):
        logger.info("Suspicious activity alerts disabled for %s", email)
        return OperationResult.fail("Suspicious activity alerts are disabled")

    sent = send_suspicious_activity_email(
        email,
        activity_type=activity_type,
        timestamp=now_in_app_timezone().strftime(_EMAIL_TIMESTAMP_FORMAT),
        details=details,
    )
    if sent:
        return OperationResult.ok("Suspicious activity alert sent")
    return OperationResult.fail("Failed to send suspicious activity alert")


@_reported("Error creating result notification")
def create_and_send_result_notification(
    session: Session,
    *,
    patient_id: int,
    result_id: int,
    test_name: str,
    status: str,
    publisher: RealtimeNotificationService | None = None,
) -> OperationResult:
    """Store an inbox notification for a new result and push it live."""

    patient = UserRepository(session).get(patient_id)
    if patient is None:
        return OperationResult.fail(f"Patient not found with ID: {patient_id}")

    notification = NotificationRepository(session).create(
        Notification(
            id=None,
            user_id=patient_id,
            type=NOTIFICATION_TYPE_RESULT,
            title="New Test Result Available",
            message=f"Your {test_name} results are ready to view",
            priority=PRIORITY_HIGH,
            reference_type="MEDICAL_RESULT",
            reference_id=result_id,
            payload={
                "testName": test_name,
                "status": status,
                "resultId": result_id,
                "patientId": patient_id,
            },
            created_at=now_in_app_timezone(),
        )
    )
    logger.info(
        "Stored result notification %s for patient %s", notification.id, patient_id
    )

    published = (publisher or realtime_notifications).publish_inbox_notification(
        notification
    )
    return OperationResult.ok(
        "Result notification created",
        notification_id=notification.id,
        published=published,
    )


__all__ = [
    "CRITICAL_SECURITY_ALERTS",
    "create_and_send_result_notification",
    "notify_new_support_ticket",
    "notify_user_of_agent_reply",
    "reminder_message",
    "send_appointment_reminder",
    "send_login_notification",
    "send_password_change_notification",
    "send_result_notification",
    "send_security_alert",
    "send_suspicious_activity_alert",
    "send_test_notification",
]
